"""Service-layer errors. Routers map ``status_code``/``message`` onto HTTP responses."""

from typing import List, Optional
from uuid import UUID

from fastapi import status


class ServiceError(Exception):
    """Base exception for service layer errors."""

    def __init__(self, message: str, status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR) -> None:
        super().__init__(message)
        self.message = message
        self.status_code = status_code


class ValidationError(ServiceError):
    """Malformed or missing input. Raised before any mutation."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_400_BAD_REQUEST)


class InvalidAmountError(ValidationError):
    """Negative, NaN, infinite or non-numeric money amount."""


class NotFoundError(ServiceError):
    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(ServiceError):
    """The write collides with existing state, e.g. a period that is already paid."""

    def __init__(self, message: str) -> None:
        super().__init__(message, status.HTTP_409_CONFLICT)


class PartialFailureError(ServiceError):
    """A multi-step payment recording failed after some sub-records were staged.

    ``completed_steps`` names the steps that finished, in order; ``staged_ids`` maps
    record kind to id for manual reconciliation.
    """

    def __init__(
        self,
        message: str,
        completed_steps: List[str],
        staged_ids: Optional[dict[str, UUID]] = None,
    ) -> None:
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR)
        self.completed_steps = list(completed_steps)
        self.staged_ids = dict(staged_ids or {})


class AllocationDegradedWarning(UserWarning):
    """Serial allocator fell back to a timestamp-derived serial (not guaranteed unique)."""
