"""
Application exception hierarchy.

    BaseApplicationError
    ├── ValidationError       - business rule violations (HTTP 400)
    ├── NotFoundError         - missing statement, listing or account (HTTP 404)
    ├── ConflictError         - lost a race or lock (HTTP 409)
    ├── ExternalServiceError  - Stripe and other third parties (HTTP 502)
    └── DecryptionError       - encrypted field unreadable with the configured key

Domain apps subclass these (see payouts.exceptions) and set
`default_error_code`. Services usually catch them and return
`ServiceResult.failure(e.message, error_code=e.error_code)`.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from typing import Any


class BaseApplicationError(Exception):
    """
    Base exception with a machine-readable code.

    Attributes:
        message: Human-readable description
        error_code: Defaults to the class's default_error_code
        details: Extra context (ids, Stripe codes, shortfalls)
    """

    default_error_code: str = "APPLICATION_ERROR"

    def __init__(
        self,
        message: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.message = message
        self.error_code = error_code or self.default_error_code
        self.details = details or {}
        super().__init__(message)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "error": self.message,
            "error_code": self.error_code,
        }
        if self.details:
            result["details"] = self.details
        return result

    def __str__(self) -> str:
        return f"[{self.error_code}] {self.message}"

    def __repr__(self) -> str:
        return (
            f"{self.__class__.__name__}("
            f"message={self.message!r}, "
            f"error_code={self.error_code!r}, "
            f"details={self.details!r})"
        )


class ValidationError(BaseApplicationError):
    """Input or business rule validation failed in the service layer."""

    default_error_code: str = "VALIDATION_ERROR"


class NotFoundError(BaseApplicationError):
    default_error_code: str = "NOT_FOUND"


class ConflictError(BaseApplicationError):
    """The operation conflicts with the current state of a record."""

    default_error_code: str = "CONFLICT"


class ExternalServiceError(BaseApplicationError):
    """A third-party call failed; log the original error, don't expose it."""

    default_error_code: str = "EXTERNAL_SERVICE_ERROR"


class DecryptionError(BaseApplicationError):
    """An encrypted field could not be read with the configured key."""

    default_error_code: str = "DECRYPTION_ERROR"
