"""
Tests for AccountResolver.
"""

import pytest

from payouts.exceptions import AccountResolutionError
from payouts.services import AccountResolver
from properties.models import Listing, ListingGroup
from properties.tests.factories import ListingFactory, ListingGroupFactory
from statements.tests.factories import StatementFactory


class TestAccountResolver:
    def test_uses_listing_account(self, final_statement):
        """Should return the listing's connected account."""
        assert AccountResolver().resolve(final_statement) == "acct_listing"

    def test_group_account_takes_priority(self, listing, group_with_account):
        """Should prefer the group's account over the listing's."""
        statement = StatementFactory(listing=listing, group=group_with_account)

        assert AccountResolver().resolve(statement) == "acct_group"

    def test_group_without_account_falls_back_to_listing(self, listing):
        """Should fall back to the listing when the group has no account."""
        group = ListingGroupFactory(stripe_account_id=None)
        statement = StatementFactory(listing=listing, group=group)

        assert AccountResolver().resolve(statement) == "acct_listing"

    def test_uses_first_property_id_for_combined_statement(self, db):
        """Should resolve through the first covered listing id."""
        first = ListingFactory(stripe_account_id="acct_first")
        second = ListingFactory(stripe_account_id="acct_second")
        statement = StatementFactory(listing=None, property_ids=[first.pk, second.pk])

        assert AccountResolver().resolve(statement) == "acct_first"

    def test_no_listing(self, db):
        """Should raise when the statement covers no listing."""
        statement = StatementFactory(listing=None, property_ids=[])

        with pytest.raises(AccountResolutionError) as exc_info:
            AccountResolver().resolve(statement)

        assert exc_info.value.message == "Statement has no associated listing"

    def test_listing_not_found(self, db):
        """Should raise when the covered listing does not exist."""
        statement = StatementFactory(listing=None, property_ids=[999_999])

        with pytest.raises(AccountResolutionError) as exc_info:
            AccountResolver().resolve(statement)

        assert exc_info.value.message == "Listing not found"

    def test_listing_without_account(self, listing_without_account):
        """Should raise when the listing has no connected account."""
        statement = StatementFactory(listing=listing_without_account)

        with pytest.raises(AccountResolutionError) as exc_info:
            AccountResolver().resolve(statement)

        assert exc_info.value.message == "Listing has no connected Stripe account"
        assert exc_info.value.error_code == "ACCOUNT_RESOLUTION_ERROR"

    def test_reads_configuration_fresh(self, final_statement, listing):
        """Should read the account from the database on every call."""
        listing.stripe_account_id = "acct_rotated"
        listing.save()

        assert AccountResolver().resolve(final_statement) == "acct_rotated"

    def test_undecryptable_listing_account_counts_as_missing(self, final_statement, listing):
        """Should raise the no-account reason when the stored id cannot be decrypted."""
        Listing.objects.filter(pk=listing.pk).update(stripe_account_id_encrypted="garbage")

        with pytest.raises(AccountResolutionError) as exc_info:
            AccountResolver().resolve(final_statement)

        assert exc_info.value.message == "Listing has no connected Stripe account"

    def test_undecryptable_group_account_falls_back_to_listing(
        self, listing, group_with_account
    ):
        """Should fall back to the listing when the group's id cannot be decrypted."""
        ListingGroup.objects.filter(pk=group_with_account.pk).update(
            stripe_account_id_encrypted="garbage"
        )
        statement = StatementFactory(listing=listing, group=group_with_account)

        assert AccountResolver().resolve(statement) == "acct_listing"
