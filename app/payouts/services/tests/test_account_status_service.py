"""
Tests for AccountStatusService.
"""

import pytest

from payouts.adapters import AccountSnapshot
from payouts.exceptions import RailRateLimitError
from payouts.services import derive_onboarding_status
from payouts.state_machines import OnboardingStatus
from properties.models import Listing, ListingGroup
from properties.tests.factories import ListingFactory, ListingGroupFactory


def snapshot(**overrides) -> AccountSnapshot:
    values = {
        "id": "acct_shared",
        "charges_enabled": True,
        "payouts_enabled": True,
        "details_submitted": True,
        "requirements": {},
    }
    values.update(overrides)
    return AccountSnapshot(**values)


class TestDeriveOnboardingStatus:
    def test_verified_when_enabled_and_nothing_due(self):
        """Should map enabled capabilities with nothing due to VERIFIED."""
        assert derive_onboarding_status(snapshot()) == OnboardingStatus.VERIFIED

    @pytest.mark.parametrize(
        "requirements",
        [
            {"disabled_reason": "requirements.past_due"},
            {"currently_due": ["external_account"]},
            {"past_due": ["individual.dob.day"]},
        ],
    )
    def test_requires_action(self, requirements):
        """Should map outstanding requirements to REQUIRES_ACTION."""
        assert (
            derive_onboarding_status(snapshot(requirements=requirements))
            == OnboardingStatus.REQUIRES_ACTION
        )

    def test_pending_when_capabilities_not_enabled(self):
        """Should map disabled capabilities to PENDING."""
        status = derive_onboarding_status(
            snapshot(charges_enabled=False, payouts_enabled=False)
        )

        assert status == OnboardingStatus.PENDING


class TestRefreshAccountStatus:
    def test_updates_every_holder_of_the_account(self, engine, mock_rail):
        """Should update every listing and group holding the account."""
        first = ListingFactory(
            stripe_account_id="acct_shared",
            stripe_onboarding_status=OnboardingStatus.PENDING,
        )
        second = ListingFactory(
            stripe_account_id="acct_shared",
            stripe_onboarding_status=OnboardingStatus.PENDING,
        )
        group = ListingGroupFactory(stripe_account_id="acct_shared")
        other = ListingFactory(
            stripe_account_id="acct_other",
            stripe_onboarding_status=OnboardingStatus.PENDING,
        )

        result = engine.accounts.refresh_account_status("acct_shared")

        assert result.success is True
        assert result.data.onboarding_status == OnboardingStatus.VERIFIED
        assert result.data.listings_updated == 2
        assert result.data.groups_updated == 1
        mock_rail.retrieve_account.assert_called_once_with("acct_shared")

        for listing in (first, second):
            assert Listing.objects.get(pk=listing.pk).stripe_onboarding_status == (
                OnboardingStatus.VERIFIED
            )
        assert ListingGroup.objects.get(pk=group.pk).stripe_onboarding_status == (
            OnboardingStatus.VERIFIED
        )
        assert Listing.objects.get(pk=other.pk).stripe_onboarding_status == (
            OnboardingStatus.PENDING
        )

    def test_rail_error_returns_failure(self, engine, mock_rail):
        """Should return a failure when the account cannot be read."""
        mock_rail.retrieve_account.side_effect = RailRateLimitError("Too many requests")

        result = engine.accounts.refresh_account_status("acct_shared")

        assert result.success is False
        assert result.error_code == "RAIL_RATE_LIMITED"


class TestOnboardingLink:
    def test_creates_link_and_moves_missing_to_pending(self, engine, mock_rail, settings):
        """Should create an onboarding link and move MISSING to PENDING."""
        listing = ListingFactory(
            stripe_account_id="acct_new",
            stripe_onboarding_status=OnboardingStatus.MISSING,
        )

        result = engine.accounts.create_onboarding_link(listing.pk)

        assert result.success is True
        assert result.data.url.startswith("https://connect.stripe.com/")
        assert result.data.onboarding_status == OnboardingStatus.PENDING
        mock_rail.create_account_link.assert_called_once_with(
            account_id="acct_new",
            refresh_url=settings.STRIPE_ONBOARDING_REFRESH_URL,
            return_url=settings.STRIPE_ONBOARDING_RETURN_URL,
        )
        assert Listing.objects.get(pk=listing.pk).stripe_onboarding_status == (
            OnboardingStatus.PENDING
        )

    def test_verified_status_is_kept(self, engine, listing):
        """Should keep a VERIFIED status when a new link is created."""
        result = engine.accounts.create_onboarding_link(listing.pk)

        assert result.data.onboarding_status == OnboardingStatus.VERIFIED

    def test_requires_configured_account(self, engine, listing_without_account, mock_rail):
        """Should refuse to create a link without an account."""
        result = engine.accounts.create_onboarding_link(listing_without_account.pk)

        assert result.error_code == "NO_PAYMENT_ACCOUNT"
        mock_rail.create_account_link.assert_not_called()

    def test_undecryptable_account_counts_as_missing(self, engine, listing, mock_rail):
        """Should refuse to create a link when the stored id cannot be decrypted."""
        Listing.objects.filter(pk=listing.pk).update(stripe_account_id_encrypted="garbage")

        result = engine.accounts.create_onboarding_link(listing.pk)

        assert result.error_code == "NO_PAYMENT_ACCOUNT"
        mock_rail.create_account_link.assert_not_called()

    def test_unknown_listing(self, engine):
        """Should fail with LISTING_NOT_FOUND for an unknown listing."""
        result = engine.accounts.create_onboarding_link(999_999)

        assert result.error_code == "LISTING_NOT_FOUND"


class TestListingPayoutStatus:
    def test_masks_account_id(self, engine, listing):
        """Should mask the account id in the status payload."""
        result = engine.accounts.get_listing_payout_status(listing.pk)

        assert result.data.has_payment_account is True
        assert result.data.stripe_account_id == "[configured]"
        assert result.data.onboarding_status == OnboardingStatus.VERIFIED

    def test_listing_without_account(self, engine, listing_without_account):
        """Should report no payment account for a listing without one."""
        result = engine.accounts.get_listing_payout_status(listing_without_account.pk)

        assert result.data.has_payment_account is False
        assert result.data.stripe_account_id is None
