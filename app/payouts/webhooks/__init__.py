"""
Stripe webhooks for the settlement engine.

Events are verified, stored idempotently as WebhookEvent rows and
processed asynchronously by payouts.tasks.process_webhook_event.

Usage:
    # In urls.py
    from payouts.webhooks.views import stripe_webhook

    urlpatterns = [
        path("webhooks/stripe/", stripe_webhook, name="stripe_webhook"),
    ]
"""

from payouts.webhooks.handlers import dispatch_webhook, register_handler
from payouts.webhooks.views import stripe_webhook

__all__ = [
    "dispatch_webhook",
    "register_handler",
    "stripe_webhook",
]
