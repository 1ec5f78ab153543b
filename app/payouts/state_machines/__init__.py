"""
State machine enums for payout settlement.
"""

from payouts.state_machines.states import (
    OnboardingStatus,
    PayoutOperation,
    PayoutStatus,
    StatementStatus,
    TopUpStatus,
    WebhookEventStatus,
)

__all__ = [
    "OnboardingStatus",
    "PayoutOperation",
    "PayoutStatus",
    "StatementStatus",
    "TopUpStatus",
    "WebhookEventStatus",
]
