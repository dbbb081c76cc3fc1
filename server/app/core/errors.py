from __future__ import annotations

from typing import Any

from fastapi import status


class FinanceError(Exception):
    """Base class for errors raised by the finance services."""

    status_code = status.HTTP_400_BAD_REQUEST
    code = "finance_error"

    def __init__(self, message: str, **context: Any):
        super().__init__(message)
        self.message = message
        self.context = context

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {"detail": self.message, "code": self.code}
        payload.update(self.context)
        return payload


class ValidationError(FinanceError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"


class CollectorRequired(ValidationError):
    code = "collector_required"

    def __init__(self, message: str = "Collector (authenticated member) is required for posting", **context: Any):
        super().__init__(message, **context)


class ConflictError(FinanceError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"


class AlreadyReconciled(ConflictError):
    code = "already_reconciled"


class DuplicatePosting(ConflictError):
    code = "duplicate_posting"


class PledgeBelowMinimum(ConflictError):
    code = "pledge_below_minimum"


class NotFoundError(FinanceError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"


class DependencyError(FinanceError):
    status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    code = "dependency_unavailable"
