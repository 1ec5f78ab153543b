"""
Pytest fixtures for Stripe adapter tests.

Sections:
    - Mock Stripe Objects
    - Mock Stripe API Fixtures
    - Error Fixtures
"""

from dataclasses import dataclass
from typing import Any
from unittest.mock import patch

import pytest
import stripe

from payouts.adapters import StripeAdapter


# =============================================================================
# Mock Stripe Objects
# =============================================================================


@dataclass
class MockStripeObject:
    """Mock Stripe API object with attribute, item and to_dict access."""

    data: dict[str, Any]

    def __getattr__(self, name: str) -> Any:
        if name == "data":
            return self.__dict__["data"]
        return self.data.get(name)

    def __getitem__(self, key: str) -> Any:
        return self.data[key]

    def to_dict(self) -> dict[str, Any]:
        return self.data


@pytest.fixture
def adapter(settings):
    settings.STRIPE_SECRET_KEY = "sk_test_adapter"
    settings.STRIPE_API_TIMEOUT_SECONDS = 7
    return StripeAdapter()


@pytest.fixture
def mock_stripe_http_client():
    """Keep the adapter from building a real HTTP client."""
    with patch("stripe.RequestsClient") as mock:
        yield mock


# =============================================================================
# Mock Stripe API Fixtures
# =============================================================================


@pytest.fixture
def mock_stripe_transfer():
    with patch("stripe.Transfer") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "id": "tr_test123",
                "object": "transfer",
                "amount": 50000,
                "currency": "usd",
                "destination": "acct_owner",
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_charge():
    with patch("stripe.Charge") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "id": "py_test123",
                "object": "charge",
                "amount": 12000,
                "currency": "usd",
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_topup():
    with patch("stripe.Topup") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "id": "tu_test123",
                "object": "topup",
                "amount": 6300,
                "currency": "usd",
                "status": "pending",
                "expected_availability_date": 1792454400,
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_balance():
    with patch("stripe.Balance") as mock:
        mock.retrieve.return_value = MockStripeObject(
            {
                "object": "balance",
                "available": [
                    {"amount": 4000, "currency": "usd", "source_types": {"card": 4000}},
                    {"amount": 1500, "currency": "usd", "source_types": {"bank_account": 1500}},
                    {"amount": 9999, "currency": "eur", "source_types": {"card": 9999}},
                ],
                "pending": [],
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_account():
    with patch("stripe.Account") as mock:
        mock.retrieve.return_value = MockStripeObject(
            {
                "id": "acct_owner",
                "object": "account",
                "charges_enabled": True,
                "payouts_enabled": False,
                "details_submitted": True,
                "requirements": {"currently_due": ["external_account"]},
            }
        )
        yield mock


@pytest.fixture
def mock_stripe_account_link():
    with patch("stripe.AccountLink") as mock:
        mock.create.return_value = MockStripeObject(
            {
                "object": "account_link",
                "url": "https://connect.stripe.com/setup/e/acct_owner/abc",
                "expires_at": 1792454400,
            }
        )
        yield mock


# =============================================================================
# Error Fixtures
# =============================================================================


@pytest.fixture
def invalid_request_error():
    def _create(
        message: str = "Invalid request",
        param: str | None = None,
        code: str | None = "parameter_invalid",
    ) -> stripe.InvalidRequestError:
        return stripe.InvalidRequestError(message=message, param=param, code=code)

    return _create


@pytest.fixture
def card_error():
    def _create(
        message: str = "Your card was declined.",
        code: str = "card_declined",
        decline_code: str | None = None,
    ) -> stripe.CardError:
        error = stripe.CardError(message=message, param=None, code=code)
        error.decline_code = decline_code
        return error

    return _create
