"""
Payouts app configuration.

This app settles owner payout statements over Stripe Connect:
- Transfers to and collections from owner accounts
- Platform balance checks and top-ups
- Queue draining after a top-up lands
- Stripe webhook handling
"""

from django.apps import AppConfig


class PayoutsConfig(AppConfig):
    """Configuration for the payouts application."""

    default_auto_field = "django.db.models.BigAutoField"
    name = "payouts"
    verbose_name = "Payouts"

    def ready(self):
        # Registers the webhook handlers with the dispatch registry
        from payouts.webhooks import handlers  # noqa: F401
