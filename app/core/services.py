"""
Service layer building blocks.

- ServiceResult: returned by services for expected failures (statement not
  final, no destination account, rail refused the call)
- BaseService: per-class logger, transaction helper, exception conversion

Unexpected failures (database errors, bugs) raise instead.

Usage:
    from core.services import BaseService, ServiceResult

    class SettlementService(BaseService):
        def settle(self, statement_id: int) -> ServiceResult[SettlementReceipt]:
            ...
            return ServiceResult.failure(
                "Statement is not final",
                error_code="PAYOUT_VALIDATION_ERROR",
            )

    result = engine.settlement.settle(statement_id)
    if not result:
        return Response(result.to_response(), status=400)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation succeeded
        data: Result payload; failures may carry partial data
        error: Human-readable message when failed
        error_code: Machine-readable code, mapped to HTTP status by views
        errors: Field-level errors
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    errors: dict[str, list[str]] | None = field(default=None)

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        errors: dict[str, list[str]] | None = None,
        data: T | None = None,
    ) -> ServiceResult[T]:
        return cls(
            success=False,
            data=data,
            error=error,
            error_code=error_code,
            errors=errors,
        )

    @classmethod
    def from_exception(cls, exc: Exception, error_code: str | None = None) -> ServiceResult[T]:
        """Failed result from an exception, keeping its own error_code when it has one."""
        message = getattr(exc, "message", None) or str(exc)
        return cls(
            success=False,
            error=message,
            error_code=error_code
            or getattr(exc, "error_code", None)
            or exc.__class__.__name__.upper(),
        )

    def to_response(self) -> dict[str, Any]:
        if self.success:
            return {"success": True, "data": self.data}

        response: dict[str, Any] = {
            "success": False,
            "error": self.error,
        }
        if self.error_code:
            response["error_code"] = self.error_code
        if self.errors:
            response["errors"] = self.errors
        return response

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for payout services.

    Collaborators (the payment rail, other services) are passed to
    __init__; tests substitute doubles there.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named `module.ClassName`."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls) -> Generator[None, None, None]:
        with transaction.atomic():
            yield

    @classmethod
    def handle_exception(
        cls,
        exc: Exception,
        context: str = "",
        log_level: int = logging.ERROR,
    ) -> ServiceResult:
        """Log an exception and convert it to a failed ServiceResult."""
        message = f"{context}: {exc}" if context else str(exc)
        cls.get_logger().log(log_level, message, exc_info=log_level >= logging.ERROR)
        return ServiceResult.from_exception(exc)
