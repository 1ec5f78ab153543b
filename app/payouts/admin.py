"""
Payout admin configuration.

Read-mostly visibility into top-ups and webhook processing. Statement
settlement fields are shown in the statements app admin.
"""

from django.contrib import admin

from payouts.models import PlatformTopUp, WebhookEvent


@admin.register(PlatformTopUp)
class PlatformTopUpAdmin(admin.ModelAdmin):
    """Top-ups are created by the settlement engine and updated by webhooks."""

    list_display = [
        "stripe_topup_id",
        "currency",
        "amount_cents",
        "shortfall_cents",
        "status",
        "expected_availability_date",
        "completed_at",
        "created_at",
    ]
    list_filter = ["status", "currency"]
    search_fields = ["stripe_topup_id"]
    readonly_fields = [
        "id",
        "stripe_topup_id",
        "amount_cents",
        "shortfall_cents",
        "currency",
        "statement_ids",
        "expected_availability_date",
        "completed_at",
        "created_at",
        "updated_at",
    ]
    ordering = ["-created_at"]


@admin.register(WebhookEvent)
class WebhookEventAdmin(admin.ModelAdmin):
    """
    Admin configuration for WebhookEvent.

    Webhook events are immutable once received.
    """

    list_display = [
        "id",
        "stripe_event_id",
        "event_type",
        "status",
        "retry_count",
        "processed_at",
        "created_at",
    ]
    list_filter = ["status", "event_type", "created_at"]
    search_fields = ["id", "stripe_event_id", "event_type"]
    readonly_fields = [
        "id",
        "created_at",
        "updated_at",
        "stripe_event_id",
        "event_type",
        "payload",
        "processed_at",
    ]
    date_hierarchy = "created_at"
    ordering = ["-created_at"]

    fieldsets = (
        (None, {"fields": ("id", "stripe_event_id", "event_type", "status")}),
        ("Processing", {"fields": ("processed_at", "retry_count")}),
        ("Error Info", {"fields": ("error_message",), "classes": ("collapse",)}),
        ("Payload", {"fields": ("payload",), "classes": ("collapse",)}),
        ("Timestamps", {"fields": ("created_at", "updated_at")}),
    )
