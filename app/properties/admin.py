from django import forms
from django.contrib import admin

from core.exceptions import DecryptionError
from properties.models import Listing, ListingGroup


class PaymentAccountForm(forms.ModelForm):
    """Edits the plaintext account id; the model encrypts it on assignment."""

    stripe_account_id = forms.CharField(
        max_length=255,
        required=False,
        help_text="Stripe Connect account ID (acct_xxx). Stored encrypted.",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        if self.instance.pk:
            try:
                self.fields["stripe_account_id"].initial = self.instance.stripe_account_id
            except DecryptionError:
                self.fields["stripe_account_id"].help_text = (
                    "Stored value could not be decrypted; enter the account id again."
                )

    def save(self, commit=True):
        if "stripe_account_id" in self.changed_data:
            self.instance.stripe_account_id = self.cleaned_data["stripe_account_id"] or None
        return super().save(commit=commit)


class PaymentAccountAdmin(admin.ModelAdmin):
    form = PaymentAccountForm
    exclude = ["stripe_account_id_encrypted"]

    @admin.display(boolean=True, description="Payment account")
    def payment_account(self, obj):
        return obj.has_payment_account


@admin.register(ListingGroup)
class ListingGroupAdmin(PaymentAccountAdmin):
    list_display = ["name", "payment_account", "stripe_onboarding_status"]
    list_filter = ["stripe_onboarding_status"]
    search_fields = ["name"]


@admin.register(Listing)
class ListingAdmin(PaymentAccountAdmin):
    list_display = [
        "name",
        "group",
        "owner_email",
        "payment_account",
        "stripe_onboarding_status",
        "is_active",
    ]
    list_filter = ["stripe_onboarding_status", "is_active"]
    search_fields = ["name", "owner_email"]
    raw_id_fields = ["group"]
