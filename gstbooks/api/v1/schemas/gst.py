# gstbooks/api/v1/schemas/gst.py
"""Pydantic schemas for GST credential and reconciliation endpoints."""

from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field

from gstbooks.domain.models.documents import Document
from gstbooks.domain.models.gst import BooksEntry


class CredentialCreateRequest(BaseModel):
    gstin: str = Field(description="15-char GSTIN")
    email: EmailStr
    state_code: str = Field(description="2-digit state code, e.g. 27")
    ip_address: str | None = None


class CredentialUpdateRequest(BaseModel):
    email: EmailStr | None = None
    state_code: str | None = None
    ip_address: str | None = None


class CredentialResponse(BaseModel):
    """A credential as shown to the user. The token itself is never returned."""
    id: str
    gstin: str
    email: str
    state_code: str
    ip_address: str | None = None
    auth_status: str
    token_expiry: str | None = None
    is_usable: bool = False
    needs_refresh: bool = False
    next_action: str | None = None
    is_active: bool = False


class SelectActiveRequest(BaseModel):
    credential_id: str


class OtpResponse(BaseModel):
    transaction_id: str


class AuthenticateRequest(BaseModel):
    otp: str = Field(min_length=1)
    transaction_id: str = Field(min_length=1)


class ReconcileRequest(BaseModel):
    return_period: str = Field(description="MMYY, e.g. 0425")
    financial_year: str = Field(description="YYYY-YY, e.g. 2025-26")
    documents: list[Document] = Field(default_factory=list, description="Purchase bills from the books")
    books_entries: list[BooksEntry] = Field(default_factory=list, description="Pre-built books rows")
    fetch_remote_return: bool = True


class PeriodOptionsResponse(BaseModel):
    return_periods: list[str]
    financial_years: list[str]
