"""
PlatformTopUp model: audit record of a platform balance top-up.

BalanceGuard writes one row per Stripe top-up it creates. The
topup.* webhooks move the row to its final status; a succeeded top-up
triggers a drain of the queued statements listed in statement_ids.
"""

from __future__ import annotations

from django.db import models
from django.utils import timezone

from core.model_mixins import UUIDPrimaryKeyMixin
from core.models import BaseModel
from payouts.state_machines import TopUpStatus


class PlatformTopUp(UUIDPrimaryKeyMixin, BaseModel):
    """
    Top-up of the platform's Stripe balance requested for queued statements.

    Fields:
        stripe_topup_id: Stripe Top-up id (tu_xxx)
        amount_cents: Requested amount, shortfall plus buffer
        shortfall_cents: Shortfall that triggered the top-up
        statement_ids: Statements queued behind this top-up
        expected_availability_date: Stripe's estimate of when funds land
    """

    stripe_topup_id = models.CharField(max_length=255, unique=True)
    amount_cents = models.PositiveBigIntegerField()
    shortfall_cents = models.PositiveBigIntegerField(default=0)
    currency = models.CharField(max_length=3, default="usd")
    status = models.CharField(
        max_length=20,
        choices=TopUpStatus.choices,
        default=TopUpStatus.PENDING,
        db_index=True,
    )
    statement_ids = models.JSONField(default=list, blank=True)
    expected_availability_date = models.DateTimeField(null=True, blank=True)
    failure_reason = models.TextField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Platform top-up"
        verbose_name_plural = "Platform top-ups"

    def __str__(self) -> str:
        return (
            f"PlatformTopUp({self.stripe_topup_id}, {self.status}, "
            f"{self.amount_cents / 100:.2f} {self.currency.upper()})"
        )

    def mark_succeeded(self) -> None:
        self.status = TopUpStatus.SUCCEEDED
        self.completed_at = timezone.now()
        self.failure_reason = None

    def mark_failed(self, status: str, reason: str | None = None) -> None:
        """Record a failed or canceled top-up. Does not save."""
        self.status = status
        self.completed_at = timezone.now()
        self.failure_reason = reason
