"""
Tests for the payouts admin API.

Every endpoint requires a staff user; the engine is built around the
mock rail.
"""

import pytest
from django.urls import reverse
from rest_framework import status

from payouts.exceptions import RailUnavailableError
from payouts.state_machines import OnboardingStatus, PayoutStatus
from properties.tests.factories import ListingFactory
from statements.models import Statement
from statements.tests.factories import StatementFactory


@pytest.fixture(autouse=True)
def patched_engine(engine, mocker):
    mocker.patch("payouts.views.build_settlement_engine", return_value=engine)
    return engine


# =============================================================================
# Permissions
# =============================================================================


class TestPermissions:
    def test_anonymous_rejected(self, api_client, final_statement):
        """Should reject unauthenticated requests."""
        url = reverse("payouts:settle_statement", args=[final_statement.pk])

        response = api_client.post(url)

        assert response.status_code in (status.HTTP_401_UNAUTHORIZED, status.HTTP_403_FORBIDDEN)

    def test_non_staff_rejected(self, api_client, final_statement, django_user_model, mock_rail):
        """Should reject authenticated non-staff users."""
        user = django_user_model.objects.create_user(username="owner", password="pw-12345!")
        api_client.force_authenticate(user=user)

        response = api_client.post(
            reverse("payouts:fund_and_queue"),
            {"statement_ids": [final_statement.pk]},
            format="json",
        )

        assert response.status_code == status.HTTP_403_FORBIDDEN
        mock_rail.create_transfer.assert_not_called()


# =============================================================================
# Settlement
# =============================================================================


class TestSettleStatementView:
    def test_settles_transfer(self, staff_client, final_statement):
        """Should settle a final statement and return the receipt."""
        url = reverse("payouts:settle_statement", args=[final_statement.pk])

        response = staff_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["payout_status"] == PayoutStatus.PAID
        assert response.data["total"] == "501.25"
        assert response.data["already_settled"] is False

    def test_already_settled_is_200(self, staff_client, paid_statement, mock_rail):
        """Should return 200 with the stored receipt for a settled statement."""
        url = reverse("payouts:settle_statement", args=[paid_statement.pk])

        response = staff_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_200_OK
        assert response.data["already_settled"] is True
        assert response.data["transfer_id"] == "tr_existing"
        mock_rail.create_transfer.assert_not_called()

    def test_unknown_statement_is_404(self, staff_client):
        """Should map STATEMENT_NOT_FOUND to 404."""
        url = reverse("payouts:settle_statement", args=[987654])

        response = staff_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data["error_code"] == "STATEMENT_NOT_FOUND"

    def test_wrong_operation_is_400(self, staff_client, final_statement):
        """Should map an operation contradicting the sign to 400."""
        url = reverse("payouts:settle_statement", args=[final_statement.pk])

        response = staff_client.post(url, {"operation": "collection"}, format="json")

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "PAYOUT_VALIDATION_ERROR"

    def test_in_progress_is_409(self, staff_client, listing):
        """Should map SETTLEMENT_IN_PROGRESS to 409."""
        statement = StatementFactory(listing=listing, payout_status=PayoutStatus.PENDING)
        url = reverse("payouts:settle_statement", args=[statement.pk])

        response = staff_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_rail_outage_is_502(self, staff_client, final_statement, mock_rail):
        """Should map a rail failure to 502."""
        mock_rail.create_transfer.side_effect = RailUnavailableError("Stripe down")
        url = reverse("payouts:settle_statement", args=[final_statement.pk])

        response = staff_client.post(url, {}, format="json")

        assert response.status_code == status.HTTP_502_BAD_GATEWAY
        assert response.data["error_code"] == "RAIL_UNAVAILABLE"


class TestFundAndQueueView:
    def test_settles_when_funded(self, staff_client, final_statement):
        """Should settle the batch when the balance covers it."""
        response = staff_client.post(
            reverse("payouts:fund_and_queue"),
            {"statement_ids": [final_statement.pk, 987654]},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["outcome"] == "settled"
        assert response.data["processed"] == 1
        assert response.data["skipped"] == [
            {"statement_id": 987654, "reason": "statement not found"}
        ]

    def test_queues_when_short(self, staff_client, final_statement, mock_rail):
        """Should queue the batch behind a top-up when short."""
        mock_rail.retrieve_balance.return_value = 0

        response = staff_client.post(
            reverse("payouts:fund_and_queue"),
            {"statement_ids": [final_statement.pk]},
            format="json",
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["outcome"] == "queued"
        assert response.data["queued_statement_ids"] == [final_statement.pk]
        assert len(response.data["top_ups"]) == 1
        assert Statement.objects.get(pk=final_statement.pk).payout_status == (
            PayoutStatus.QUEUED
        )

    def test_empty_ids_rejected(self, staff_client):
        """Should reject an empty id list."""
        response = staff_client.post(
            reverse("payouts:fund_and_queue"),
            {"statement_ids": []},
            format="json",
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST


class TestProcessQueuedView:
    def test_drains(self, staff_client, queued_statement, mock_redis_lock):
        """Should drain queued statements."""
        response = staff_client.post(reverse("payouts:process_queued"))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["processed"] == 1
        assert response.data["aborted"] is False

    def test_concurrent_drain_is_409(self, staff_client, mock_redis_lock):
        """Should map DRAIN_IN_PROGRESS to 409."""
        mock_redis_lock.set.return_value = False

        response = staff_client.post(reverse("payouts:process_queued"))

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data["error_code"] == "DRAIN_IN_PROGRESS"


# =============================================================================
# Accounts
# =============================================================================


class TestAccountViews:
    def test_refresh_account_status(self, staff_client, db):
        """Should refresh onboarding status for an account."""
        listing = ListingFactory(
            stripe_account_id="acct_refresh",
            stripe_onboarding_status=OnboardingStatus.PENDING,
        )

        response = staff_client.post(
            reverse("payouts:refresh_account_status", args=["acct_refresh"])
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.data["onboarding_status"] == OnboardingStatus.VERIFIED
        assert response.data["listings_updated"] == 1
        listing.refresh_from_db()
        assert listing.stripe_onboarding_status == OnboardingStatus.VERIFIED

    def test_onboarding_link(self, staff_client, listing):
        """Should return a hosted onboarding link."""
        response = staff_client.post(
            reverse("payouts:listing_onboarding_link", args=[listing.pk])
        )

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data["url"] == "https://connect.stripe.com/setup/e/acct_mock/abc"

    def test_onboarding_link_without_account(self, staff_client, listing_without_account):
        """Should reject a link for a listing without an account."""
        response = staff_client.post(
            reverse("payouts:listing_onboarding_link", args=[listing_without_account.pk])
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data["error_code"] == "NO_PAYMENT_ACCOUNT"

    def test_listing_status_masks_account_id(self, staff_client, listing):
        """Should mask the account id in the listing status."""
        response = staff_client.get(reverse("payouts:listing_payout_status", args=[listing.pk]))

        assert response.status_code == status.HTTP_200_OK
        assert response.data["has_payment_account"] is True
        assert response.data["stripe_account_id"] == "[configured]"
        assert "acct_listing" not in str(response.data)

    def test_listing_status_not_found(self, staff_client, db):
        """Should return 404 for an unknown listing."""
        response = staff_client.get(reverse("payouts:listing_payout_status", args=[987654]))

        assert response.status_code == status.HTTP_404_NOT_FOUND
