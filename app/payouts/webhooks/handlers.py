"""
Webhook event handlers for Stripe events.

Handlers are registered by event type and receive the stored
WebhookEvent. A handler returning a failed ServiceResult leaves the event
FAILED so retry_failed_webhooks picks it up again.

Usage:
    from payouts.webhooks.handlers import dispatch_webhook, register_handler

    @register_handler("custom.event")
    def handle_custom_event(webhook_event: WebhookEvent) -> ServiceResult:
        ...

    result = dispatch_webhook(webhook_event)
"""

from __future__ import annotations

import logging
from typing import Callable

from django.db import transaction

from core.services import ServiceResult
from payouts.adapters import StripeAdapter
from payouts.models import PlatformTopUp, WebhookEvent
from payouts.state_machines import TopUpStatus

logger = logging.getLogger(__name__)


# =============================================================================
# Handler Registry
# =============================================================================


WEBHOOK_HANDLERS: dict[str, Callable[[WebhookEvent], ServiceResult]] = {}


def register_handler(event_type: str) -> Callable:
    """
    Decorator to register a webhook event handler.

    Args:
        event_type: The Stripe event type (e.g., "topup.succeeded")
    """

    def decorator(func: Callable[[WebhookEvent], ServiceResult]) -> Callable:
        WEBHOOK_HANDLERS[event_type] = func
        logger.debug(f"Registered webhook handler for {event_type}")
        return func

    return decorator


def dispatch_webhook(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Dispatch a webhook event to its handler.

    Unknown event types succeed without doing anything.
    """
    handler = WEBHOOK_HANDLERS.get(webhook_event.event_type)

    if not handler:
        logger.info(
            f"No handler registered for event type: {webhook_event.event_type}",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.success(None)

    logger.info(
        f"Dispatching {webhook_event.event_type} to handler",
        extra={"stripe_event_id": webhook_event.stripe_event_id},
    )
    return handler(webhook_event)


# =============================================================================
# Top-up Handlers
# =============================================================================


def _get_top_up(webhook_event: WebhookEvent) -> PlatformTopUp | None:
    topup_id = webhook_event.data_object.get("id")
    if not topup_id:
        return None
    return PlatformTopUp.objects.select_for_update().filter(stripe_topup_id=topup_id).first()


@register_handler("topup.succeeded")
def handle_topup_succeeded(webhook_event: WebhookEvent) -> ServiceResult:
    """
    Mark the top-up succeeded and drain the queue.

    The drain runs after the transaction commits, and also for top-ups
    created outside this system: any landed funds may unblock the queue.
    """
    from payouts.tasks import process_queued_statements

    with transaction.atomic():
        top_up = _get_top_up(webhook_event)
        if top_up is None:
            logger.warning(
                "topup.succeeded for unknown top-up",
                extra={
                    "stripe_event_id": webhook_event.stripe_event_id,
                    "topup_id": webhook_event.data_object.get("id"),
                },
            )
        elif top_up.status != TopUpStatus.SUCCEEDED:
            top_up.mark_succeeded()
            top_up.save()
            logger.info(
                "Top-up succeeded",
                extra={
                    "topup_id": top_up.stripe_topup_id,
                    "amount_cents": top_up.amount_cents,
                    "currency": top_up.currency,
                },
            )

        transaction.on_commit(process_queued_statements.delay)

    return ServiceResult.success(top_up.stripe_topup_id if top_up else None)


def _handle_topup_failure(webhook_event: WebhookEvent, status: str) -> ServiceResult:
    data = webhook_event.data_object
    reason = data.get("failure_message") or data.get("failure_code") or status

    with transaction.atomic():
        top_up = _get_top_up(webhook_event)
        if top_up is None:
            logger.warning(
                f"topup.{status} for unknown top-up",
                extra={"stripe_event_id": webhook_event.stripe_event_id},
            )
            return ServiceResult.success(None)

        top_up.mark_failed(status, reason)
        top_up.save()

    # Statements stay QUEUED and fund-and-queue skips them as already queued.
    # They drain on the next successful top-up, or via process-queued once an
    # operator funds the balance by hand.
    logger.error(
        "Top-up did not complete; queued statements remain queued",
        extra={
            "topup_id": top_up.stripe_topup_id,
            "status": status,
            "reason": reason,
            "statement_ids": top_up.statement_ids,
        },
    )
    return ServiceResult.success(top_up.stripe_topup_id)


@register_handler("topup.failed")
def handle_topup_failed(webhook_event: WebhookEvent) -> ServiceResult:
    return _handle_topup_failure(webhook_event, TopUpStatus.FAILED)


@register_handler("topup.canceled")
def handle_topup_canceled(webhook_event: WebhookEvent) -> ServiceResult:
    return _handle_topup_failure(webhook_event, TopUpStatus.CANCELED)


# =============================================================================
# Account Handlers
# =============================================================================


@register_handler("account.updated")
def handle_account_updated(webhook_event: WebhookEvent) -> ServiceResult:
    """Refresh the onboarding status of listings and groups using the account."""
    from payouts.services import AccountStatusService

    data = webhook_event.data_object
    account_id = data.get("id")
    if not account_id:
        logger.error(
            "account.updated: Could not extract account id",
            extra={"stripe_event_id": webhook_event.stripe_event_id},
        )
        return ServiceResult.failure(
            "Missing account id in event payload",
            error_code="INVALID_WEBHOOK_PAYLOAD",
        )

    snapshot = StripeAdapter.snapshot_from_payload(data)
    # The event already carries the account; no rail call needed
    return AccountStatusService(rail=None).apply_account_snapshot(account_id, snapshot)
