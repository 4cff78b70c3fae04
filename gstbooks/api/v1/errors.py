# gstbooks/api/v1/errors.py
"""
Maps the domain error taxonomy onto HTTP responses with the v1 envelope.

    ValidationFailure     422
    PolicyViolation       409
    PreconditionFailed    412
    RemoteRejection       backend's 4xx status (400 if unknown)
    TransientFailure      503
    IncompleteSubmission  status of the underlying failure, plus document id
"""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from gstbooks.api.v1.envelope import error
from gstbooks.domain.errors import (
    BooksError,
    IncompleteSubmission,
    PolicyViolation,
    PreconditionFailed,
    RemoteRejection,
    TransientFailure,
    ValidationFailure,
)

logger = logging.getLogger("api.v1.errors")


def status_for(exc: BooksError) -> int:
    if isinstance(exc, IncompleteSubmission):
        return status_for(exc.cause)
    if isinstance(exc, ValidationFailure):
        return 422
    if isinstance(exc, PreconditionFailed):
        return 412
    if isinstance(exc, PolicyViolation):
        return 409
    if isinstance(exc, RemoteRejection):
        return exc.status_code if 400 <= exc.status_code < 500 else 400
    if isinstance(exc, TransientFailure):
        return 503
    return 500


async def books_error_handler(request: Request, exc: BooksError) -> JSONResponse:
    code = status_for(exc)
    errors = None
    if isinstance(exc, ValidationFailure):
        errors = exc.errors or None
    elif isinstance(exc, IncompleteSubmission):
        errors = [{"document_id": exc.document_id, "stage": exc.stage}]
    elif isinstance(exc, RemoteRejection) and exc.response.get("errors"):
        errors = [
            e if isinstance(e, dict) else {"message": str(e)}
            for e in exc.response["errors"]
        ]

    if code >= 500:
        logger.warning("%s %s -> %d %s", request.method, request.url.path, code, exc.message)
    else:
        logger.info("%s %s -> %d %s", request.method, request.url.path, code, exc.message)
    return JSONResponse(status_code=code, content=error(exc.message, errors=errors))


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BooksError, books_error_handler)
