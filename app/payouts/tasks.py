"""
Celery tasks for the settlement engine.

This module provides async tasks for:
- Processing Stripe webhook events
- Retrying failed webhook events
- Draining statements queued behind a top-up
- Settling a single statement

Usage:
    from payouts.tasks import process_queued_statements, settle_statement

    # After a top-up lands (queued by the topup.succeeded handler)
    process_queued_statements.delay()

    # Settle one statement in the background
    settle_statement.delay(statement_id)
"""

from __future__ import annotations

import logging
from datetime import timedelta
from uuid import UUID

from celery import shared_task
from django.db import transaction
from django.db.models import Q
from django.utils import timezone

from payouts.models import WebhookEvent
from payouts.state_machines import WebhookEventStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Constants
# =============================================================================

MAX_WEBHOOK_RETRIES = WebhookEvent.MAX_RETRIES
RETRY_BATCH_SIZE = 100
WEBHOOK_PENDING_STALE_AFTER = timedelta(minutes=10)


# =============================================================================
# Webhook Processing Tasks
# =============================================================================


@shared_task(
    bind=True,
    autoretry_for=(Exception,),
    retry_backoff=True,
    retry_backoff_max=300,
    retry_kwargs={"max_retries": MAX_WEBHOOK_RETRIES},
    acks_late=True,
)
def process_webhook_event(self, webhook_event_id: str) -> dict:
    """
    Process a stored Stripe webhook event.

    Loads the event, skips it if already processed, dispatches it to its
    handler and records the outcome. Unexpected exceptions mark the event
    failed and are re-raised so Celery retries.
    """
    from payouts.webhooks.handlers import dispatch_webhook

    if isinstance(webhook_event_id, str):
        webhook_event_id = UUID(webhook_event_id)

    logger.info(
        "Processing webhook event",
        extra={"webhook_event_id": str(webhook_event_id)},
    )

    try:
        webhook_event = WebhookEvent.objects.get(id=webhook_event_id)
    except WebhookEvent.DoesNotExist:
        logger.error(
            "WebhookEvent not found",
            extra={"webhook_event_id": str(webhook_event_id)},
        )
        return {"status": "not_found", "webhook_event_id": str(webhook_event_id)}

    if webhook_event.is_processed:
        logger.info(
            "WebhookEvent already processed, skipping",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        return {"status": "already_processed", "webhook_event_id": str(webhook_event_id)}

    webhook_event.mark_processing()
    webhook_event.save()

    try:
        with transaction.atomic():
            result = dispatch_webhook(webhook_event)
    except Exception as e:
        error_msg = f"{type(e).__name__}: {e}"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.exception(
            "Webhook processing failed with exception",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
            },
        )
        raise

    if not result.success:
        error_msg = result.error or "Handler returned failure"
        webhook_event.mark_failed(error_msg)
        webhook_event.save()
        logger.warning(
            f"Webhook handler failed: {error_msg}",
            extra={
                "webhook_event_id": str(webhook_event_id),
                "stripe_event_id": webhook_event.stripe_event_id,
                "error_code": result.error_code,
            },
        )
        return {
            "status": "handler_failed",
            "webhook_event_id": str(webhook_event_id),
            "error": error_msg,
        }

    webhook_event.mark_processed()
    webhook_event.save()
    logger.info(
        "Webhook processed successfully",
        extra={
            "webhook_event_id": str(webhook_event_id),
            "stripe_event_id": webhook_event.stripe_event_id,
        },
    )
    return {
        "status": "processed",
        "webhook_event_id": str(webhook_event_id),
        "stripe_event_id": webhook_event.stripe_event_id,
    }


@shared_task
def retry_failed_webhooks() -> dict:
    """
    Periodic task to requeue failed and stranded webhook events.

    Picks up FAILED events under the retry limit and PENDING events older
    than WEBHOOK_PENDING_STALE_AFTER, which were stored but never reached
    the broker. Scheduled via celery-beat (see migration 0002).
    """
    stale_before = timezone.now() - WEBHOOK_PENDING_STALE_AFTER
    retryable_webhooks = WebhookEvent.objects.filter(
        Q(status=WebhookEventStatus.FAILED)
        | Q(status=WebhookEventStatus.PENDING, created_at__lt=stale_before),
        retry_count__lt=MAX_WEBHOOK_RETRIES,
    ).order_by("created_at")[:RETRY_BATCH_SIZE]

    queued_count = 0
    for webhook in retryable_webhooks:
        process_webhook_event.delay(str(webhook.id))
        queued_count += 1
        logger.info(
            "Queued webhook for retry",
            extra={
                "webhook_event_id": str(webhook.id),
                "stripe_event_id": webhook.stripe_event_id,
                "status": webhook.status,
                "retry_count": webhook.retry_count,
            },
        )

    logger.info(
        f"Queued {queued_count} webhooks for retry",
        extra={"queued_count": queued_count},
    )
    return {"queued_count": queued_count}


# =============================================================================
# Settlement Tasks
# =============================================================================


@shared_task(acks_late=True)
def process_queued_statements() -> dict:
    """
    Drain statements queued behind a top-up.

    Safe to run concurrently: a second drain returns DRAIN_IN_PROGRESS.
    """
    from payouts.services import build_settlement_engine

    result = build_settlement_engine().drainer.drain()
    if not result.success:
        logger.info(
            f"Queued statement drain did not run: {result.error}",
            extra={"error_code": result.error_code},
        )
        return {"status": "skipped", "error_code": result.error_code}

    drain = result.data
    return {
        "status": "aborted" if drain.aborted else "drained",
        "processed": drain.processed,
        "failed": drain.failed,
        "shortfall_by_currency": drain.shortfall_by_currency,
    }


@shared_task(acks_late=True)
def settle_statement(statement_id: int, operation: str | None = None) -> dict:
    """
    Settle one statement.

    Not auto-retried: a failed settlement is re-run explicitly, and the
    stored idempotency attempt decides whether Stripe replays it.
    """
    from payouts.services import build_settlement_engine

    result = build_settlement_engine().settlement.settle(statement_id, operation=operation)
    if result.success:
        return {
            "status": "settled",
            "statement_id": statement_id,
            "payout_status": result.data.payout_status,
            "transfer_id": result.data.transfer_id,
            "already_settled": result.data.already_settled,
        }
    return {
        "status": "failed",
        "statement_id": statement_id,
        "error": result.error,
        "error_code": result.error_code,
    }
