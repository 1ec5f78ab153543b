"""Tests for the application exception hierarchy."""

from core.exceptions import BaseApplicationError, ConflictError, NotFoundError
from payouts.exceptions import (
    RailTimeoutError,
    SettlementConflictError,
    TopUpCreationError,
)


def test_default_error_code():
    """Should use the class's default error code."""
    assert NotFoundError("missing").error_code == "NOT_FOUND"
    assert TopUpCreationError("Stripe refused").error_code == "TOPUP_CREATION_FAILED"


def test_to_dict_includes_details_only_when_present():
    """Should include details only when present."""
    error = ConflictError("Statement moved", details={"statement_id": 42})

    assert error.to_dict() == {
        "error": "Statement moved",
        "error_code": "CONFLICT",
        "details": {"statement_id": 42},
    }
    assert "details" not in BaseApplicationError("plain").to_dict()


def test_str_contains_code():
    """Should prefix the message with the error code."""
    assert str(SettlementConflictError("Lost race")) == "[SETTLEMENT_CONFLICT] Lost race"


def test_rail_error_details_carry_kind_and_stripe_code():
    """Should carry kind and Stripe code in details."""
    error = RailTimeoutError("No response", stripe_code="api_connection_error")

    assert error.outcome_unknown is True
    assert error.details == {"kind": "other", "stripe_code": "api_connection_error"}
