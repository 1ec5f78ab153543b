"""
Payment rail adapters.

Services receive a PaymentRail (StripeAdapter in production) through
their constructor; nothing reaches Stripe except through here.

Usage:
    from payouts.adapters import StripeAdapter, IdempotencyKeyGenerator

    rail = StripeAdapter()
    rail.create_transfer(
        amount_cents=50125,
        currency="usd",
        destination_account_id="acct_123",
        idempotency_key=IdempotencyKeyGenerator.generate("settle_transfer", 42, 1),
    )
"""

from payouts.adapters.rail import (
    AccountLinkResult,
    AccountSnapshot,
    ChargeResult,
    IdempotencyKeyGenerator,
    PaymentRail,
    TopUpResult,
    TransferResult,
)
from payouts.adapters.stripe_adapter import StripeAdapter
from payouts.exceptions import RailErrorKind

__all__ = [
    "AccountLinkResult",
    "AccountSnapshot",
    "ChargeResult",
    "IdempotencyKeyGenerator",
    "PaymentRail",
    "RailErrorKind",
    "StripeAdapter",
    "TopUpResult",
    "TransferResult",
]
