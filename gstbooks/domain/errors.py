# gstbooks/domain/errors.py
"""
Error taxonomy shared by the document engine, the credential workflow and
the books API client.

Local errors (ValidationFailure, PolicyViolation, PreconditionFailed) are
raised before any network call. Remote errors (RemoteRejection,
TransientFailure) only exist after a call returns, and never mutate state.
"""

from __future__ import annotations

from typing import Any


class BooksError(Exception):
    """Base class for every error raised by gstbooks."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailure(BooksError):
    """Malformed input: bad GSTIN, out-of-range amount, unbalanced journal."""

    def __init__(self, message: str, errors: list[dict[str, Any]] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []

    @classmethod
    def for_field(cls, field: str, message: str) -> "ValidationFailure":
        return cls(message, errors=[{"field": field, "message": message}])


class PolicyViolation(BooksError):
    """A well-formed request that local policy forbids."""


class PreconditionFailed(PolicyViolation):
    """Raised when an operation needs a usable GST credential and has none."""


class RemoteRejection(BooksError):
    """The backend answered a syntactically valid request with an error."""

    def __init__(
        self,
        message: str,
        status_code: int = 0,
        response: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.response = response or {}


class TransientFailure(BooksError):
    """Network error, timeout or 5xx. Safe for the user to retry."""

    def __init__(self, message: str, status_code: int = 0) -> None:
        super().__init__(message)
        self.status_code = status_code


class IncompleteSubmission(BooksError):
    """A document was created but a later step (post, payment) failed.

    ``document_id`` lets the user finish the remaining steps by hand.
    """

    def __init__(self, message: str, document_id: str, stage: str, cause: BooksError) -> None:
        super().__init__(message)
        self.document_id = document_id
        self.stage = stage
        self.cause = cause
