"""
Celery configuration for the payout platform.

Background work handled by Celery:
- Stripe webhook processing (topup.succeeded triggers a queue drain)
- Draining statements queued behind a platform top-up
- Periodic retry of failed webhook deliveries (django-celery-beat)

Redis is both the message broker and result backend. Tasks are
auto-discovered from the installed apps.

Usage:
    from payouts.tasks import process_queued_statements

    process_queued_statements.delay()
"""

import os

from celery import Celery

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings")

app = Celery("config")

# All Celery settings are prefixed with CELERY_ in settings.py
app.config_from_object("django.conf:settings", namespace="CELERY")

app.autodiscover_tasks()
