"""
Listing and listing group models.

Both carry a Stripe Connect payment account. A group's account takes
precedence over its listings' accounts when a statement covers the group
(see payouts.services.AccountResolver).

Usage:
    from properties.models import Listing, ListingGroup

    group = ListingGroup.objects.create(
        name="Beach houses",
        stripe_account_id="acct_123",
    )
    listing = Listing.objects.create(name="Dune Cottage", group=group)
"""

from __future__ import annotations

from django.db import models

from core.encryption import decrypt_optional, encrypt_optional, lookup_digest
from core.models import BaseModel
from payouts.state_machines import OnboardingStatus


class PaymentAccountQuerySet(models.QuerySet):
    def with_account(self, account_id: str):
        return self.filter(stripe_account_lookup=lookup_digest(account_id))


class PaymentAccountFields(models.Model):
    """
    Stripe Connect destination account configuration.

    The account id is encrypted at rest. Read and assign it through the
    `stripe_account_id` property; `stripe_account_lookup` is its keyed
    digest and backs `with_account()` queries.

    Fields:
        stripe_account_id_encrypted: Fernet token of the Connect account id
        stripe_account_lookup: HMAC of the account id, null until onboarding
        stripe_onboarding_status: Last known onboarding state
    """

    stripe_account_id_encrypted = models.TextField(
        null=True,
        blank=True,
        help_text="Encrypted Stripe Connect account ID (acct_xxx)",
    )
    stripe_account_lookup = models.CharField(
        max_length=64,
        null=True,
        blank=True,
        db_index=True,
        editable=False,
    )
    stripe_onboarding_status = models.CharField(
        max_length=20,
        choices=OnboardingStatus.choices,
        default=OnboardingStatus.MISSING,
        help_text="Stripe Connect onboarding status",
    )

    objects = PaymentAccountQuerySet.as_manager()

    class Meta:
        abstract = True

    @property
    def stripe_account_id(self) -> str | None:
        """
        Decrypted Connect account id.

        Raises:
            DecryptionError: If the stored value cannot be decrypted
        """
        return decrypt_optional(self.stripe_account_id_encrypted)

    @stripe_account_id.setter
    def stripe_account_id(self, value: str | None) -> None:
        self.stripe_account_id_encrypted = encrypt_optional(value)
        self.stripe_account_lookup = lookup_digest(value)

    @property
    def has_payment_account(self) -> bool:
        return bool(self.stripe_account_id_encrypted)


class ListingGroup(PaymentAccountFields, BaseModel):
    """A set of listings sharing one owner and one payout account."""

    name = models.CharField(max_length=255)

    class Meta:
        ordering = ["name"]
        verbose_name = "Listing group"
        verbose_name_plural = "Listing groups"

    def __str__(self) -> str:
        return self.name


class Listing(PaymentAccountFields, BaseModel):
    """A rental property whose owner receives payout statements."""

    name = models.CharField(max_length=255)
    owner_email = models.EmailField(blank=True, default="")
    group = models.ForeignKey(
        ListingGroup,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="listings",
        help_text="Group this listing belongs to, if any",
    )
    is_active = models.BooleanField(default=True)

    class Meta:
        ordering = ["name"]
        verbose_name = "Listing"
        verbose_name_plural = "Listings"

    def __str__(self) -> str:
        return self.name
