"""
Payout models.

Models:
- PlatformTopUp: Audit record of platform balance top-ups
- WebhookEvent: Stripe webhook deliveries for idempotent processing

Statements and listings live in the statements and properties apps.
"""

from payouts.models.platform_top_up import PlatformTopUp
from payouts.models.webhook_event import WebhookEvent

__all__ = [
    "PlatformTopUp",
    "WebhookEvent",
]
