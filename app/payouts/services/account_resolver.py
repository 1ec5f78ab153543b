"""
Destination account lookup for statements.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import DecryptionError
from core.services import BaseService
from payouts.exceptions import AccountResolutionError
from properties.models import Listing, ListingGroup

if TYPE_CHECKING:
    from statements.models import Statement


class AccountResolver(BaseService):
    """
    Map a statement to the Stripe Connect account that settles it.

    Priority:
        1. The statement's group, if it has an account configured
        2. The statement's listing (`listing`, else first of `property_ids`)

    Reads configuration fresh on every call and has no side effects.
    """

    NO_LISTING = "Statement has no associated listing"
    LISTING_NOT_FOUND = "Listing not found"
    NO_ACCOUNT = "Listing has no connected Stripe account"

    def resolve(self, statement: Statement) -> str:
        """
        Return the destination account id.

        A stored id that cannot be decrypted counts as no account.

        Raises:
            AccountResolutionError: With one of the fixed reasons above
        """
        if statement.group_id:
            group = ListingGroup.objects.filter(pk=statement.group_id).first()
            group_account = self._decrypted_account(group) if group else None
            if group_account:
                return group_account

        listing_id = statement.primary_listing_id
        if listing_id is None:
            raise self._error(statement, self.NO_LISTING)

        listing = Listing.objects.filter(pk=listing_id).first()
        if listing is None:
            raise self._error(statement, self.LISTING_NOT_FOUND, listing_id=listing_id)

        account_id = self._decrypted_account(listing)
        if not account_id:
            raise self._error(statement, self.NO_ACCOUNT, listing_id=listing_id)
        return account_id

    def _decrypted_account(self, holder: Listing | ListingGroup) -> str | None:
        try:
            return holder.stripe_account_id
        except DecryptionError:
            self.get_logger().warning(
                "Stored Stripe account id could not be decrypted",
                extra={"model": holder._meta.label, "pk": holder.pk},
            )
            return None

    def _error(self, statement: Statement, reason: str, **details) -> AccountResolutionError:
        self.get_logger().info(
            "Account resolution failed",
            extra={"statement_id": statement.pk, "reason": reason, **details},
        )
        return AccountResolutionError(
            reason,
            details={"statement_id": statement.pk, **details},
        )
