"""
Error taxonomy for the release publication workflow.

Every business error carries a stable ``code`` (what clients match on), a
human-readable ``message`` and the HTTP status the API responds with.
Infrastructure failures (database, network, PDF parsing) are not part of
this hierarchy and propagate unchanged.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List


@dataclass(frozen=True)
class ValidationFailure:
    """A single failed validation stage."""

    code: str
    message: str

    def to_dict(self) -> Dict[str, str]:
        return {"code": self.code, "message": self.message}


class ApiError(Exception):
    code = "INTERNAL_ERROR"
    message = "Unexpected error"
    status_code = 500

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    def errors(self) -> List[Dict[str, str]]:
        return [{"code": self.code, "message": self.message}]

    def to_detail(self) -> Dict[str, Any]:
        return {"errors": self.errors()}


class NotAuthenticated(ApiError):
    code = "NOT_AUTHENTICATED"
    message = "You are not authenticated"
    status_code = 401


class ActionNotAllowed(ApiError):
    code = "ACTION_NOT_ALLOWED"
    message = "You are not allowed to perform this action"
    status_code = 403


class NotFound(ApiError):
    code = "NOT_FOUND"
    message = "Resource does not exist"
    status_code = 404


class ReleaseDoesNotExist(NotFound):
    code = "STORE_BOOK_RELEASE_DOES_NOT_EXIST"
    message = "The store book release does not exist"


class StoreBookDoesNotExist(NotFound):
    code = "STORE_BOOK_DOES_NOT_EXIST"
    message = "The store book does not exist"


class AlreadyPublished(ApiError):
    code = "STORE_BOOK_RELEASE_ALREADY_PUBLISHED"
    message = "The store book release is already published"
    status_code = 409


class ParentNotPublished(ApiError):
    code = "STORE_BOOK_NOT_PUBLISHED"
    message = "The store book must be published or hidden before releases can be published"
    status_code = 422


class ValidationFailed(ApiError):
    code = "VALIDATION_FAILED"
    message = "Validation failed"
    status_code = 400

    def __init__(self, failures: Iterable[ValidationFailure]) -> None:
        self.failures = list(failures)
        super().__init__("; ".join(failure.message for failure in self.failures) or self.message)

    def errors(self) -> List[Dict[str, str]]:
        return [failure.to_dict() for failure in self.failures]


class DocumentInspectionError(Exception):
    """Raised when a print document cannot be fetched or parsed."""
