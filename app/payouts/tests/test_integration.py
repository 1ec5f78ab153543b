"""
End-to-end payout flow through the admin API, the webhook task and the
queue drain.

Short balance -> statements queued behind a top-up -> topup.succeeded
webhook -> drain settles the queue.
"""

from decimal import Decimal

import pytest
from django.urls import reverse
from rest_framework import status

from payouts.models import PlatformTopUp
from payouts.state_machines import PayoutStatus, TopUpStatus
from payouts.tasks import process_webhook_event
from payouts.tests.factories import WebhookEventFactory
from statements.models import Statement
from statements.tests.factories import StatementFactory


@pytest.fixture
def wired_engine(engine, mocker):
    mocker.patch("payouts.views.build_settlement_engine", return_value=engine)
    mocker.patch("payouts.services.build_settlement_engine", return_value=engine)
    return engine


def test_queued_batch_settles_after_top_up_lands(
    staff_client,
    wired_engine,
    mock_rail,
    mock_redis_lock,
    listing,
    django_capture_on_commit_callbacks,
):
    """Should settle a queued batch once its top-up lands."""
    statements = [
        StatementFactory(listing=listing, owner_payout=Decimal("49.88")),
        StatementFactory(listing=listing, owner_payout=Decimal("49.88")),
    ]
    ids = [s.pk for s in statements]
    mock_rail.retrieve_balance.return_value = 4000

    # Short: everything is queued and one top-up is requested
    response = staff_client.post(
        reverse("payouts:fund_and_queue"),
        {"statement_ids": ids},
        format="json",
    )

    assert response.status_code == status.HTTP_200_OK
    assert response.data["outcome"] == "queued"
    assert sorted(response.data["queued_statement_ids"]) == sorted(ids)
    mock_rail.create_transfer.assert_not_called()

    top_up = PlatformTopUp.objects.get()
    assert top_up.status == TopUpStatus.PENDING
    assert top_up.amount_cents >= 6300

    # Funds land
    mock_rail.retrieve_balance.return_value = 10_000_000
    event = WebhookEventFactory(
        event_type="topup.succeeded",
        payload={"data": {"object": {"id": top_up.stripe_topup_id}}},
    )

    with django_capture_on_commit_callbacks(execute=True):
        result = process_webhook_event(str(event.id))

    assert result["status"] == "processed"
    top_up.refresh_from_db()
    assert top_up.status == TopUpStatus.SUCCEEDED
    assert set(
        Statement.objects.filter(pk__in=ids).values_list("payout_status", flat=True)
    ) == {PayoutStatus.PAID}
    assert mock_rail.create_transfer.call_count == 2


def test_second_fund_and_queue_skips_queued_statements(
    staff_client, wired_engine, mock_rail, final_statement
):
    """Should skip already queued statements on a second fund-and-queue."""
    mock_rail.retrieve_balance.return_value = 0
    url = reverse("payouts:fund_and_queue")

    staff_client.post(url, {"statement_ids": [final_statement.pk]}, format="json")
    response = staff_client.post(url, {"statement_ids": [final_statement.pk]}, format="json")

    assert response.data["outcome"] == "nothing_to_settle"
    assert response.data["skipped"] == [
        {"statement_id": final_statement.pk, "reason": "already queued"}
    ]
    assert mock_rail.create_top_up.call_count == 1


def test_failed_top_up_leaves_queue_for_manual_drain(
    staff_client,
    wired_engine,
    mock_rail,
    mock_redis_lock,
    final_statement,
):
    """Should keep statements queued after a failed top-up until an operator drains them."""
    mock_rail.retrieve_balance.return_value = 0
    staff_client.post(
        reverse("payouts:fund_and_queue"),
        {"statement_ids": [final_statement.pk]},
        format="json",
    )
    top_up = PlatformTopUp.objects.get()
    event = WebhookEventFactory(
        event_type="topup.failed",
        payload={"data": {"object": {"id": top_up.stripe_topup_id}}},
    )

    assert process_webhook_event(str(event.id))["status"] == "processed"
    assert Statement.objects.get(pk=final_statement.pk).payout_status == PayoutStatus.QUEUED

    # Operator funds the balance by hand, then drains
    mock_rail.retrieve_balance.return_value = 10_000_000
    response = staff_client.post(reverse("payouts:process_queued"), format="json")

    assert response.status_code == status.HTTP_200_OK
    assert Statement.objects.get(pk=final_statement.pk).payout_status == PayoutStatus.PAID
    assert mock_rail.create_top_up.call_count == 1
