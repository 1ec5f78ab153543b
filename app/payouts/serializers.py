"""
DRF serializers for the payouts admin API.

Request serializers validate input; response serializers render the
service result dataclasses.

Related files:
    - services/: Result dataclasses rendered here
    - views.py: Payout admin API views
"""

from __future__ import annotations

from rest_framework import serializers

from payouts.state_machines import PayoutOperation


# =============================================================================
# Requests
# =============================================================================


class SettleStatementSerializer(serializers.Serializer):
    """Optional expected direction for a single settlement."""

    operation = serializers.ChoiceField(
        choices=PayoutOperation.choices,
        required=False,
        allow_null=True,
        help_text="Rejected when it contradicts the sign of owner_payout",
    )


class FundAndQueueSerializer(serializers.Serializer):
    statement_ids = serializers.ListField(
        child=serializers.IntegerField(min_value=1),
        allow_empty=False,
        max_length=500,
        help_text="Statements to settle now or queue behind a top-up",
    )


# =============================================================================
# Responses
# =============================================================================


class SettlementReceiptSerializer(serializers.Serializer):
    statement_id = serializers.IntegerField()
    operation = serializers.CharField()
    payout_status = serializers.CharField()
    transfer_id = serializers.CharField(allow_null=True)
    amount = serializers.DecimalField(max_digits=12, decimal_places=2)
    fee = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    total = serializers.DecimalField(max_digits=12, decimal_places=2, allow_null=True)
    currency = serializers.CharField()
    paid_at = serializers.DateTimeField(allow_null=True)
    destination_account_id = serializers.CharField(allow_null=True)
    already_settled = serializers.BooleanField()


class SkippedStatementSerializer(serializers.Serializer):
    statement_id = serializers.IntegerField()
    reason = serializers.CharField()


class BatchItemResultSerializer(serializers.Serializer):
    statement_id = serializers.IntegerField()
    success = serializers.BooleanField()
    payout_status = serializers.CharField(allow_null=True)
    transfer_id = serializers.CharField(allow_null=True)
    error = serializers.CharField(allow_null=True)
    error_code = serializers.CharField(allow_null=True)


class TopUpReceiptSerializer(serializers.Serializer):
    id = serializers.CharField()
    amount_cents = serializers.IntegerField()
    currency = serializers.CharField()
    shortfall_cents = serializers.IntegerField()
    expected_availability_date = serializers.DateTimeField(allow_null=True)


class FundAndQueueResultSerializer(serializers.Serializer):
    """
    Batch outcome.

    `outcome` is one of nothing_to_settle, settled or queued. Amount maps
    are in minor units keyed by currency.
    """

    outcome = serializers.CharField()
    queued = serializers.BooleanField()
    processed = serializers.IntegerField()
    failed = serializers.IntegerField()
    skipped = SkippedStatementSerializer(many=True)
    items = BatchItemResultSerializer(many=True)
    queued_statement_ids = serializers.ListField(child=serializers.IntegerField())
    top_ups = TopUpReceiptSerializer(many=True)
    needed_by_currency = serializers.DictField(child=serializers.IntegerField())
    available_by_currency = serializers.DictField(child=serializers.IntegerField())
    shortfall_by_currency = serializers.DictField(child=serializers.IntegerField())
    estimated_arrival = serializers.DateTimeField(allow_null=True)


class DrainResultSerializer(serializers.Serializer):
    processed = serializers.IntegerField()
    failed = serializers.IntegerField()
    skipped_reasons = serializers.DictField(child=serializers.CharField())
    aborted = serializers.BooleanField()
    shortfall_by_currency = serializers.DictField(child=serializers.IntegerField())


class AccountStatusUpdateSerializer(serializers.Serializer):
    account_id = serializers.CharField()
    onboarding_status = serializers.CharField()
    listings_updated = serializers.IntegerField()
    groups_updated = serializers.IntegerField()


class OnboardingLinkSerializer(serializers.Serializer):
    listing_id = serializers.IntegerField()
    url = serializers.URLField()
    expires_at = serializers.DateTimeField(allow_null=True)
    onboarding_status = serializers.CharField()


class ListingPayoutStatusSerializer(serializers.Serializer):
    listing_id = serializers.IntegerField()
    has_payment_account = serializers.BooleanField()
    stripe_account_id = serializers.CharField(allow_null=True)
    onboarding_status = serializers.CharField()
