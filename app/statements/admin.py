from django.contrib import admin

from statements.models import Statement


@admin.register(Statement)
class StatementAdmin(admin.ModelAdmin):
    list_display = [
        "id",
        "property_name",
        "owner_name",
        "owner_payout",
        "currency",
        "status",
        "payout_status",
        "paid_at",
    ]
    list_filter = ["status", "payout_status", "currency"]
    search_fields = ["property_name", "owner_name", "payout_transfer_id"]
    raw_id_fields = ["group", "listing"]
    # Settlement fields are written by the payout engine only
    readonly_fields = [
        "payout_status",
        "payout_transfer_id",
        "stripe_fee",
        "total_transfer_amount",
        "paid_at",
        "payout_error",
        "payout_attempt",
    ]
