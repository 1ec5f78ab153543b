"""
Connect account onboarding status.

Keeps `stripe_onboarding_status` on listings and groups in step with the
account's capabilities at Stripe, and creates hosted onboarding links.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from django.conf import settings
from django.db import transaction

from core.exceptions import DecryptionError
from core.services import BaseService, ServiceResult
from payouts.exceptions import RailError
from payouts.state_machines import OnboardingStatus
from properties.models import Listing, ListingGroup

if TYPE_CHECKING:
    from datetime import datetime

    from payouts.adapters import AccountSnapshot, PaymentRail

MASKED_ACCOUNT_ID = "[configured]"


def derive_onboarding_status(snapshot: AccountSnapshot) -> str:
    """Map an account's capabilities to an onboarding status."""
    requirements = snapshot.requirements or {}
    if requirements.get("disabled_reason") or requirements.get("currently_due") or (
        requirements.get("past_due")
    ):
        return OnboardingStatus.REQUIRES_ACTION
    if snapshot.charges_enabled and snapshot.payouts_enabled:
        return OnboardingStatus.VERIFIED
    return OnboardingStatus.PENDING


@dataclass
class AccountStatusUpdate:
    account_id: str
    onboarding_status: str
    listings_updated: int
    groups_updated: int


@dataclass
class OnboardingLink:
    listing_id: int
    url: str
    expires_at: datetime | None
    onboarding_status: str


@dataclass
class ListingPayoutStatus:
    listing_id: int
    has_payment_account: bool
    stripe_account_id: str | None
    onboarding_status: str


class AccountStatusService(BaseService):
    """
    Refresh and report Connect account onboarding state.

    Args:
        rail: Payment rail
    """

    def __init__(self, rail: PaymentRail):
        self.rail = rail

    def refresh_account_status(self, account_id: str) -> ServiceResult[AccountStatusUpdate]:
        """Fetch the account from the rail and store the derived status."""
        try:
            snapshot = self.rail.retrieve_account(account_id)
        except RailError as e:
            self.get_logger().warning(
                "Account retrieval failed",
                extra={"account_id": account_id, "kind": e.kind.value, "error": e.message},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        return self.apply_account_snapshot(account_id, snapshot)

    def apply_account_snapshot(
        self,
        account_id: str,
        snapshot: AccountSnapshot,
    ) -> ServiceResult[AccountStatusUpdate]:
        """Write the status derived from a snapshot to every holder of the account."""
        status = derive_onboarding_status(snapshot)

        with transaction.atomic():
            listings_updated = Listing.objects.with_account(account_id).update(
                stripe_onboarding_status=status
            )
            groups_updated = ListingGroup.objects.with_account(account_id).update(
                stripe_onboarding_status=status
            )

        self.get_logger().info(
            "Account onboarding status refreshed",
            extra={
                "account_id": account_id,
                "onboarding_status": status,
                "listings_updated": listings_updated,
                "groups_updated": groups_updated,
            },
        )
        return ServiceResult.success(
            AccountStatusUpdate(
                account_id=account_id,
                onboarding_status=status,
                listings_updated=listings_updated,
                groups_updated=groups_updated,
            )
        )

    def create_onboarding_link(self, listing_id: int) -> ServiceResult[OnboardingLink]:
        """
        Create a hosted onboarding link for a listing's account.

        The listing must already have an account id configured. A listing in
        MISSING moves to PENDING once the link exists.
        """
        listing = Listing.objects.filter(pk=listing_id).first()
        if listing is None:
            return ServiceResult.failure("Listing not found", error_code="LISTING_NOT_FOUND")
        try:
            account_id = listing.stripe_account_id
        except DecryptionError:
            self.get_logger().warning(
                "Stored Stripe account id could not be decrypted",
                extra={"listing_id": listing_id},
            )
            account_id = None
        if not account_id:
            return ServiceResult.failure(
                "Listing has no connected Stripe account",
                error_code="NO_PAYMENT_ACCOUNT",
            )

        try:
            link = self.rail.create_account_link(
                account_id=account_id,
                refresh_url=settings.STRIPE_ONBOARDING_REFRESH_URL,
                return_url=settings.STRIPE_ONBOARDING_RETURN_URL,
            )
        except RailError as e:
            self.get_logger().error(
                "Onboarding link creation failed",
                extra={"listing_id": listing_id, "error": e.message},
            )
            return ServiceResult.failure(e.message, error_code=e.error_code)

        if listing.stripe_onboarding_status == OnboardingStatus.MISSING:
            Listing.objects.filter(
                pk=listing.pk,
                stripe_onboarding_status=OnboardingStatus.MISSING,
            ).update(stripe_onboarding_status=OnboardingStatus.PENDING)
            listing.stripe_onboarding_status = OnboardingStatus.PENDING

        self.get_logger().info("Onboarding link created", extra={"listing_id": listing_id})
        return ServiceResult.success(
            OnboardingLink(
                listing_id=listing.pk,
                url=link.url,
                expires_at=link.expires_at,
                onboarding_status=listing.stripe_onboarding_status,
            )
        )

    def get_listing_payout_status(self, listing_id: int) -> ServiceResult[ListingPayoutStatus]:
        """Stored onboarding state for a listing; the account id is never exposed."""
        listing = Listing.objects.filter(pk=listing_id).first()
        if listing is None:
            return ServiceResult.failure("Listing not found", error_code="LISTING_NOT_FOUND")

        return ServiceResult.success(
            ListingPayoutStatus(
                listing_id=listing.pk,
                has_payment_account=listing.has_payment_account,
                stripe_account_id=MASKED_ACCOUNT_ID if listing.has_payment_account else None,
                onboarding_status=listing.stripe_onboarding_status,
            )
        )
