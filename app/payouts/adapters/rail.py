"""
Payment rail interface and result types.

Services depend on the PaymentRail protocol, not on Stripe. StripeAdapter
is the production implementation; tests pass a MagicMock or any object
with the same methods.

All money-moving calls take amounts in minor units (cents) and a
mandatory idempotency key.
"""

from __future__ import annotations

import hashlib
import uuid
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Protocol

from django.conf import settings

if TYPE_CHECKING:
    from typing import Any


# =============================================================================
# Data Types
# =============================================================================


@dataclass
class TransferResult:
    """
    Result of a transfer to a connected account.

    Attributes:
        id: Transfer ID (tr_xxx)
        amount_cents: Amount transferred
        currency: Currency code
        destination_account: Destination Connect account (acct_xxx)
    """

    id: str
    amount_cents: int
    currency: str
    destination_account: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class ChargeResult:
    """
    Result of a debit from a connected account.

    Attributes:
        id: Charge ID (py_xxx for account debits)
        amount_cents: Amount collected
        currency: Currency code
        source_account: Debited Connect account (acct_xxx)
    """

    id: str
    amount_cents: int
    currency: str
    source_account: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class TopUpResult:
    """
    Result of a platform balance top-up.

    Attributes:
        id: Top-up ID (tu_xxx)
        amount_cents: Requested amount
        currency: Currency code
        status: Stripe status (pending, succeeded, ...)
        expected_availability_date: When Stripe expects the funds to land
    """

    id: str
    amount_cents: int
    currency: str
    status: str
    expected_availability_date: datetime | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountSnapshot:
    """
    Capability snapshot of a Connect account.

    Attributes:
        id: Account ID (acct_xxx)
        charges_enabled: Account can accept charges
        payouts_enabled: Account can receive payouts
        details_submitted: Onboarding form completed
        requirements: Stripe requirements hash (currently_due, past_due,
            disabled_reason, ...)
    """

    id: str
    charges_enabled: bool
    payouts_enabled: bool
    details_submitted: bool = False
    requirements: dict[str, Any] = field(default_factory=dict)


@dataclass
class AccountLinkResult:
    """Hosted onboarding link for a Connect account."""

    url: str
    expires_at: datetime | None = None


# =============================================================================
# Rail Protocol
# =============================================================================


class PaymentRail(Protocol):
    """
    Operations the settlement engine needs from the payment processor.

    Every method raises a payouts.exceptions.RailError subclass on failure.
    """

    def retrieve_balance(self, currency: str) -> int:
        """Available platform balance in minor units."""
        ...

    def create_top_up(
        self,
        amount_cents: int,
        currency: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> TopUpResult: ...

    def create_transfer(
        self,
        amount_cents: int,
        currency: str,
        destination_account_id: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> TransferResult: ...

    def create_charge(
        self,
        amount_cents: int,
        currency: str,
        source_account_id: str,
        idempotency_key: str,
        metadata: dict[str, str] | None = None,
    ) -> ChargeResult: ...

    def retrieve_account(self, account_id: str) -> AccountSnapshot: ...

    def create_account_link(
        self,
        account_id: str,
        refresh_url: str,
        return_url: str,
    ) -> AccountLinkResult: ...


# =============================================================================
# Idempotency Key Generator
# =============================================================================


class IdempotencyKeyGenerator:
    """
    Generate idempotency keys for rail calls.

    Format: "{operation}:{entity_id}:{attempt}:{hash}"

    The same (operation, entity, attempt) always yields the same key, so a
    retry after a timeout replays at Stripe instead of moving money twice.
    The hash is salted with SECRET_KEY so keys can't be forged from ids.

    Example:
        key = IdempotencyKeyGenerator.generate(
            operation="settle_transfer",
            entity_id=statement.id,
            attempt=statement.payout_attempt,
        )
        # Result: "settle_transfer:42:1:a1b2c3d4"
    """

    @staticmethod
    def generate(
        operation: str,
        entity_id: uuid.UUID | str | int,
        attempt: int = 1,
    ) -> str:
        entity_str = str(entity_id)
        hash_input = f"{operation}:{entity_str}:{attempt}:{settings.SECRET_KEY}"
        short_hash = hashlib.sha256(hash_input.encode()).hexdigest()[:8]

        return f"{operation}:{entity_str}:{attempt}:{short_hash}"
