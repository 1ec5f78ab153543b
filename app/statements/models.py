"""
Statement model: one owner payout period for a listing or group.

The payout engine reads the amount and correlation fields and drives
`payout_status` through django-fsm transitions. ConcurrentTransitionMixin
turns every save into a conditional update on the status that was read,
so two writers racing on the same statement cannot both move it:

    statement = Statement.objects.get(pk=42)   # payout_status == "missing"
    statement.start_settlement()
    statement.save()  # UPDATE ... WHERE id = 42 AND payout_status = 'missing'
                      # raises ConcurrentTransition if no row matched

State Flow:
    missing → pending → paid | collected | failed
    missing | failed → queued → pending
    failed → pending (retry)
    missing | queued | failed → failed (no account, no longer final)
"""

from __future__ import annotations

from decimal import Decimal

from django.db import models
from django.utils import timezone
from django_fsm import ConcurrentTransitionMixin, FSMField, transition

from core.models import BaseModel
from payouts.state_machines import PayoutOperation, PayoutStatus, StatementStatus


class Statement(ConcurrentTransitionMixin, BaseModel):
    """
    Owner payout statement for one period.

    Fields:
        owner_payout: Signed amount; >0 transfer to owner, <0 collect from owner
        currency: ISO 4217 code (lowercase)
        group / listing / property_ids: Listings the statement covers
        status: Document lifecycle; only FINAL statements are settled
        payout_status: Settlement state (FSM)
        payout_transfer_id: Stripe transfer or charge id once settled
        stripe_fee / total_transfer_amount: Amounts fixed at settlement
        paid_at: When the settlement succeeded
        payout_error: Last failure message, cleared on each new attempt
        payout_attempt: Idempotency key generation counter
    """

    # ==========================================================================
    # Amount & Coverage
    # ==========================================================================

    owner_payout = models.DecimalField(
        max_digits=12,
        decimal_places=2,
        help_text="Signed owner payout for the period",
    )
    currency = models.CharField(
        max_length=3,
        default="usd",
        help_text="ISO 4217 currency code (lowercase)",
    )
    group = models.ForeignKey(
        "properties.ListingGroup",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="statements",
    )
    listing = models.ForeignKey(
        "properties.Listing",
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="statements",
        db_column="property_id",
    )
    property_ids = models.JSONField(
        default=list,
        blank=True,
        help_text="Listing ids covered by a combined statement",
    )

    # ==========================================================================
    # Correlation Metadata
    # ==========================================================================

    property_name = models.CharField(max_length=255, blank=True, default="")
    owner_name = models.CharField(max_length=255, blank=True, default="")
    week_start_date = models.DateField(null=True, blank=True)
    week_end_date = models.DateField(null=True, blank=True)

    status = models.CharField(
        max_length=10,
        choices=StatementStatus.choices,
        default=StatementStatus.DRAFT,
        db_index=True,
    )

    # ==========================================================================
    # Settlement
    # ==========================================================================

    payout_status = FSMField(
        default=PayoutStatus.MISSING,
        choices=PayoutStatus.choices,
        db_index=True,
        help_text="Settlement state (managed by FSM)",
    )
    payout_transfer_id = models.CharField(
        max_length=255,
        null=True,
        blank=True,
        help_text="Stripe transfer (tr_xxx) or charge (py_xxx) id",
    )
    stripe_fee = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    total_transfer_amount = models.DecimalField(
        max_digits=12, decimal_places=2, null=True, blank=True
    )
    paid_at = models.DateTimeField(null=True, blank=True)
    payout_error = models.TextField(null=True, blank=True)
    payout_attempt = models.PositiveIntegerField(
        default=1,
        help_text="Advanced after a failure whose outcome at Stripe is known",
    )

    class Meta:
        ordering = ["-created_at"]
        verbose_name = "Statement"
        verbose_name_plural = "Statements"
        indexes = [
            models.Index(
                fields=["payout_status", "status"],
                name="statements__payout__6c1f0e_idx",
            ),
        ]

    def __str__(self) -> str:
        return f"Statement({self.pk}, {self.payout_status}, {self.owner_payout} {self.currency.upper()})"

    # ==========================================================================
    # Properties
    # ==========================================================================

    @property
    def is_final(self) -> bool:
        return self.status == StatementStatus.FINAL

    @property
    def is_settled(self) -> bool:
        return self.payout_status in PayoutStatus.terminal()

    @property
    def operation(self) -> str | None:
        """Operation implied by the payout sign, None for a zero payout."""
        if self.owner_payout > Decimal("0"):
            return PayoutOperation.TRANSFER
        if self.owner_payout < Decimal("0"):
            return PayoutOperation.COLLECTION
        return None

    @property
    def primary_listing_id(self) -> int | None:
        """The listing used for account lookup: `listing`, else the first covered id."""
        if self.listing_id:
            return self.listing_id
        if self.property_ids:
            return int(self.property_ids[0])
        return None

    # ==========================================================================
    # State Transitions (django-fsm)
    # ==========================================================================

    @transition(
        field=payout_status,
        source=PayoutStatus.settleable(),
        target=PayoutStatus.PENDING,
    )
    def start_settlement(self):
        """
        Claim the statement for one rail call.

        Transition: MISSING/QUEUED/FAILED -> PENDING
        """
        self.payout_error = None

    @transition(
        field=payout_status,
        source=[PayoutStatus.MISSING, PayoutStatus.FAILED],
        target=PayoutStatus.QUEUED,
    )
    def queue(self):
        """
        Defer settlement until a platform top-up lands.

        Transition: MISSING/FAILED -> QUEUED
        """
        self.payout_error = None

    @transition(
        field=payout_status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.PAID,
    )
    def mark_paid(self, transfer_id: str, fee: Decimal, total: Decimal):
        """Transition: PENDING -> PAID"""
        self._record_settlement(transfer_id, fee, total)

    @transition(
        field=payout_status,
        source=PayoutStatus.PENDING,
        target=PayoutStatus.COLLECTED,
    )
    def mark_collected(self, charge_id: str, amount: Decimal):
        """Transition: PENDING -> COLLECTED"""
        self._record_settlement(charge_id, Decimal("0.00"), amount)

    @transition(
        field=payout_status,
        source=[
            PayoutStatus.MISSING,
            PayoutStatus.QUEUED,
            PayoutStatus.FAILED,
            PayoutStatus.PENDING,
        ],
        target=PayoutStatus.FAILED,
    )
    def mark_failed(self, reason: str, advance_attempt: bool = False):
        """
        Record a failed settlement.

        Transition: MISSING/QUEUED/FAILED/PENDING -> FAILED

        Args:
            reason: Message stored in payout_error
            advance_attempt: Move to a fresh idempotency key. Only set when
                Stripe definitely did not execute the call; after a timeout
                the retry must replay the same key.
        """
        self.payout_error = reason
        if advance_attempt:
            self.payout_attempt += 1

    def _record_settlement(self, reference: str, fee: Decimal, total: Decimal) -> None:
        self.payout_transfer_id = reference
        self.stripe_fee = fee
        self.total_transfer_amount = total
        self.paid_at = timezone.now()
        self.payout_error = None
