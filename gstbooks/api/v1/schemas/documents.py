# gstbooks/api/v1/schemas/documents.py
"""Pydantic schemas for invoice / bill / manual journal endpoints."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from pydantic import BaseModel, Field, model_validator

from gstbooks.domain.models.documents import DocumentHeader, DocumentKind, JournalHeader


class LineItemIn(BaseModel):
    item_ref: str = ""
    description: str | None = None
    unit: str | None = None
    quantity: Decimal = Decimal("1")
    unit_price: Decimal = Decimal("0")
    discount_percent: Decimal = Decimal("0")
    tax_rate_percent: Decimal = Decimal("0")
    hsn_code: str | None = None


class DocumentDraftRequest(BaseModel):
    """Invoice or bill lines to price."""
    kind: DocumentKind = DocumentKind.INVOICE
    lines: list[LineItemIn] = Field(default_factory=list)
    document_discount_percent: Decimal = Decimal("0")


class DocumentSubmitRequest(DocumentHeader):
    """Header fields plus lines, as entered on the invoice / bill form."""
    lines: list[LineItemIn] = Field(default_factory=list)
    document_discount_percent: Decimal = Decimal("0")

    def header(self) -> DocumentHeader:
        return DocumentHeader.model_validate(self.model_dump(include=set(DocumentHeader.model_fields)))


class JournalLineIn(BaseModel):
    account_ref: str = ""
    description: str | None = None
    debit: Decimal | None = None
    credit: Decimal | None = None

    @model_validator(mode="after")
    def _one_side_only(self) -> "JournalLineIn":
        if (self.debit or 0) > 0 and (self.credit or 0) > 0:
            raise ValueError("Enter amount in either Debit or Credit, not both")
        return self


class JournalDraftRequest(BaseModel):
    lines: list[JournalLineIn] = Field(default_factory=list)


class JournalSubmitRequest(JournalDraftRequest):
    name: str
    date: date
    reference: str | None = None
    description: str | None = None
    post: bool = False

    def header(self) -> JournalHeader:
        return JournalHeader(
            name=self.name, date=self.date, reference=self.reference, description=self.description,
        )


class LineAmountsOut(BaseModel):
    taxable_amount: float
    tax_amount: float
    line_total: float


class DocumentTotalsOut(BaseModel):
    subtotal: float
    discount_amount: float
    tax_amount: float
    taxable_amount: float
    total: float
    lines: list[LineAmountsOut] = Field(default_factory=list)


class JournalTotalsOut(BaseModel):
    total_debits: float
    total_credits: float
    difference: float
    is_balanced: bool
