"""
DRF views for the payouts admin API.

Endpoints:
    POST /api/v1/payouts/statements/<id>/settle/ - Settle one statement
    POST /api/v1/payouts/statements/fund-and-queue/ - Settle or queue a batch
    POST /api/v1/payouts/process-queued/ - Drain queued statements
    POST /api/v1/payouts/accounts/<account_id>/refresh/ - Refresh onboarding status
    POST /api/v1/payouts/listings/<id>/onboarding-link/ - Create onboarding link
    GET  /api/v1/payouts/listings/<id>/status/ - Stored payout status
    POST /api/v1/payouts/webhooks/stripe/ - Stripe webhook (see webhooks/views.py)

Security:
    - Everything except the webhook requires an admin (staff) user
    - The webhook verifies Stripe's signature
"""

from __future__ import annotations

import logging

from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAdminUser
from rest_framework.response import Response
from rest_framework.views import APIView

from core.services import ServiceResult
from payouts.serializers import (
    AccountStatusUpdateSerializer,
    DrainResultSerializer,
    FundAndQueueResultSerializer,
    FundAndQueueSerializer,
    ListingPayoutStatusSerializer,
    OnboardingLinkSerializer,
    SettlementReceiptSerializer,
    SettleStatementSerializer,
)
from payouts.services import build_settlement_engine

logger = logging.getLogger(__name__)


ERROR_STATUS_CODES = {
    "STATEMENT_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "LISTING_NOT_FOUND": status.HTTP_404_NOT_FOUND,
    "SETTLEMENT_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "SETTLEMENT_CONFLICT": status.HTTP_409_CONFLICT,
    "DRAIN_IN_PROGRESS": status.HTTP_409_CONFLICT,
    "PAYOUT_VALIDATION_ERROR": status.HTTP_400_BAD_REQUEST,
    "ACCOUNT_RESOLUTION_ERROR": status.HTTP_400_BAD_REQUEST,
    "NO_PAYMENT_ACCOUNT": status.HTTP_400_BAD_REQUEST,
}


def failure_response(result: ServiceResult) -> Response:
    """Render a failed ServiceResult; rail and top-up failures are 502."""
    http_status = ERROR_STATUS_CODES.get(result.error_code, status.HTTP_502_BAD_GATEWAY)
    return Response(result.to_response(), status=http_status)


class PayoutAdminView(APIView):
    """Base for admin payout views; builds the engine per request."""

    permission_classes = [IsAdminUser]

    def get_engine(self):
        return build_settlement_engine()


class SettleStatementView(PayoutAdminView):
    """
    Settle one statement.

    POST /api/v1/payouts/statements/{statement_id}/settle/

    Response:
        200 OK: Settled, or already settled (already_settled=true)
        400 Bad Request: Not final, zero payout, wrong operation, no account
        404 Not Found: Unknown statement
        409 Conflict: Settlement already in progress
        502 Bad Gateway: Stripe rejected or failed the call
    """

    @extend_schema(
        operation_id="settle_statement",
        summary="Settle a statement",
        request=SettleStatementSerializer,
        responses={
            200: OpenApiResponse(response=SettlementReceiptSerializer),
            400: OpenApiResponse(description="Validation error"),
            404: OpenApiResponse(description="Statement not found"),
            409: OpenApiResponse(description="Settlement in progress"),
            502: OpenApiResponse(description="Rail error"),
        },
        tags=["Payouts"],
    )
    def post(self, request, statement_id: int):
        serializer = SettleStatementSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_engine().settlement.settle(
            statement_id,
            operation=serializer.validated_data.get("operation"),
        )
        if not result.success:
            return failure_response(result)
        return Response(SettlementReceiptSerializer(result.data).data)


class FundAndQueueView(PayoutAdminView):
    """
    Settle a batch now, or queue it behind a top-up.

    POST /api/v1/payouts/statements/fund-and-queue/

    Request body:
        {"statement_ids": [1, 2, 3]}
    """

    @extend_schema(
        operation_id="fund_and_queue_statements",
        summary="Settle or queue a batch of statements",
        request=FundAndQueueSerializer,
        responses={
            200: OpenApiResponse(response=FundAndQueueResultSerializer),
            400: OpenApiResponse(description="Invalid request"),
            502: OpenApiResponse(description="Balance read or top-up failed"),
        },
        tags=["Payouts"],
    )
    def post(self, request):
        serializer = FundAndQueueSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        result = self.get_engine().batch.fund_and_queue(
            serializer.validated_data["statement_ids"]
        )
        if not result.success:
            return failure_response(result)
        return Response(FundAndQueueResultSerializer(result.data).data)


class ProcessQueuedView(PayoutAdminView):
    """
    Drain queued statements now.

    POST /api/v1/payouts/process-queued/
    """

    @extend_schema(
        operation_id="process_queued_statements",
        summary="Settle queued statements",
        request=None,
        responses={
            200: OpenApiResponse(response=DrainResultSerializer),
            409: OpenApiResponse(description="A drain is already running"),
        },
        tags=["Payouts"],
    )
    def post(self, request):
        result = self.get_engine().drainer.drain()
        if not result.success:
            return failure_response(result)
        return Response(DrainResultSerializer(result.data).data)


class RefreshAccountStatusView(PayoutAdminView):
    """
    Refresh onboarding status from Stripe.

    POST /api/v1/payouts/accounts/{account_id}/refresh/
    """

    @extend_schema(
        operation_id="refresh_account_status",
        summary="Refresh a Connect account's onboarding status",
        request=None,
        responses={
            200: OpenApiResponse(response=AccountStatusUpdateSerializer),
            502: OpenApiResponse(description="Rail error"),
        },
        tags=["Payouts - Accounts"],
    )
    def post(self, request, account_id: str):
        result = self.get_engine().accounts.refresh_account_status(account_id)
        if not result.success:
            return failure_response(result)
        return Response(AccountStatusUpdateSerializer(result.data).data)


class ListingOnboardingLinkView(PayoutAdminView):
    """
    Create a hosted onboarding link for a listing.

    POST /api/v1/payouts/listings/{listing_id}/onboarding-link/
    """

    @extend_schema(
        operation_id="create_listing_onboarding_link",
        summary="Create a Stripe onboarding link",
        request=None,
        responses={
            201: OpenApiResponse(response=OnboardingLinkSerializer),
            400: OpenApiResponse(description="Listing has no Stripe account"),
            404: OpenApiResponse(description="Listing not found"),
        },
        tags=["Payouts - Accounts"],
    )
    def post(self, request, listing_id: int):
        result = self.get_engine().accounts.create_onboarding_link(listing_id)
        if not result.success:
            return failure_response(result)
        return Response(
            OnboardingLinkSerializer(result.data).data,
            status=status.HTTP_201_CREATED,
        )


class ListingPayoutStatusView(PayoutAdminView):
    """
    Stored payout status of a listing.

    GET /api/v1/payouts/listings/{listing_id}/status/
    """

    @extend_schema(
        operation_id="get_listing_payout_status",
        summary="Get a listing's payout account status",
        responses={
            200: OpenApiResponse(response=ListingPayoutStatusSerializer),
            404: OpenApiResponse(description="Listing not found"),
        },
        tags=["Payouts - Accounts"],
    )
    def get(self, request, listing_id: int):
        result = self.get_engine().accounts.get_listing_payout_status(listing_id)
        if not result.success:
            return failure_response(result)
        return Response(ListingPayoutStatusSerializer(result.data).data)
