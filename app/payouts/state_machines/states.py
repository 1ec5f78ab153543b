"""
State enums for payout settlement.

These are Django TextChoices for database storage and admin integration.
The statement payout field is driven by django-fsm transitions declared
on statements.Statement.

State Machines Overview:

Statement payout status:
    missing → pending → paid | collected | failed
    missing | failed → queued → pending
    failed → pending (retry)
    missing | queued | failed → failed (no account, no longer final)
    paid, collected are terminal

Platform top-up status:
    pending → succeeded | failed | canceled
"""

from django.db import models


class PayoutStatus(models.TextChoices):
    """
    Settlement state of a statement.

    PENDING is held only while a rail call is in flight. PAID and
    COLLECTED are terminal and carry the rail reference.
    """

    MISSING = "missing", "Missing"
    PENDING = "pending", "Pending"
    QUEUED = "queued", "Queued"
    PAID = "paid", "Paid"
    COLLECTED = "collected", "Collected"
    FAILED = "failed", "Failed"

    @classmethod
    def terminal(cls) -> list[str]:
        return [cls.PAID, cls.COLLECTED]

    @classmethod
    def settleable(cls) -> list[str]:
        """Statuses a settlement attempt may start from."""
        return [cls.MISSING, cls.QUEUED, cls.FAILED]


class PayoutOperation(models.TextChoices):
    """
    Direction of money movement, fixed by the sign of the owner payout.

    TRANSFER: platform → owner (positive payout)
    COLLECTION: owner → platform (negative payout)
    """

    TRANSFER = "transfer", "Transfer"
    COLLECTION = "collection", "Collection"


class StatementStatus(models.TextChoices):
    """Lifecycle of the statement document itself."""

    DRAFT = "draft", "Draft"
    FINAL = "final", "Final"


class OnboardingStatus(models.TextChoices):
    """
    Stripe Connect onboarding status of a listing or group account.

    Only VERIFIED accounts can receive transfers without Stripe
    rejecting them, but settlement does not gate on it.
    """

    MISSING = "missing", "Missing"
    PENDING = "pending", "Pending"
    VERIFIED = "verified", "Verified"
    REQUIRES_ACTION = "requires_action", "Requires Action"


class TopUpStatus(models.TextChoices):
    """Lifecycle of a platform balance top-up at Stripe."""

    PENDING = "pending", "Pending"
    SUCCEEDED = "succeeded", "Succeeded"
    FAILED = "failed", "Failed"
    CANCELED = "canceled", "Canceled"


class WebhookEventStatus(models.TextChoices):
    """
    Processing status for WebhookEvent.

    State Flow:
        PENDING → PROCESSING → PROCESSED
        PENDING → PROCESSING → FAILED (can retry)
    """

    PENDING = "pending", "Pending"
    PROCESSING = "processing", "Processing"
    PROCESSED = "processed", "Processed"
    FAILED = "failed", "Failed"
