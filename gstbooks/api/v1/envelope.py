# gstbooks/api/v1/envelope.py
"""
Response envelope for every v1 endpoint.

    {"status": "ok", "data": {...}, "message": "Invoice created"}
    {"status": "error", "message": "Invalid GST credential details",
     "errors": [{"field": "gstin", "message": "Invalid GSTIN format"}]}

``errors`` holds field errors for local validation failures, the
``{document_id, stage}`` of a half-finished submission, or whatever detail
list the books backend sent with a rejection.
"""

from __future__ import annotations

from typing import Any, Generic, TypeVar

from pydantic import BaseModel

T = TypeVar("T")


class ApiResponse(BaseModel, Generic[T]):
    status: str = "ok"
    data: T | None = None
    message: str | None = None
    errors: list[dict[str, Any]] | None = None


def ok(data: Any = None, message: str | None = None) -> dict:
    # mode="json" so Decimal and datetime values serialise
    return ApiResponse(status="ok", data=data, message=message).model_dump(mode="json")


def error(message: str, errors: list[dict[str, Any]] | None = None) -> dict:
    return ApiResponse(status="error", message=message, errors=errors).model_dump(mode="json")
