from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field, model_validator


class DocumentKind(str, Enum):
    INVOICE = "invoice"
    BILL = "bill"
    JOURNAL = "journal"


class PaymentMethod(str, Enum):
    CASH = "CASH"
    CREDIT = "CREDIT"
    BANK_TRANSFER = "BANK_TRANSFER"
    UPI = "UPI"
    CARD = "CARD"


class EntryType(str, Enum):
    DEBIT = "debit"
    CREDIT = "credit"


# Minimum number of lines a document must keep
MIN_LINES: dict[DocumentKind, int] = {
    DocumentKind.INVOICE: 1,
    DocumentKind.BILL: 1,
    DocumentKind.JOURNAL: 2,
}


class LineItem(BaseModel):
    """Editable inputs of one invoice/bill line. Amounts are derived, never stored."""

    item_ref: str = ""
    description: Optional[str] = None
    unit: Optional[str] = None
    quantity: Decimal = Field(default=Decimal("1"))
    unit_price: Decimal = Field(default=Decimal("0"))
    discount_percent: Decimal = Field(default=Decimal("0"))
    tax_rate_percent: Decimal = Field(default=Decimal("0"))
    hsn_code: Optional[str] = None


class JournalLine(BaseModel):
    account_ref: str = ""
    description: Optional[str] = None
    debit: Optional[Decimal] = None
    credit: Optional[Decimal] = None

    @model_validator(mode="after")
    def _one_side_only(self) -> "JournalLine":
        if (self.debit or 0) > 0 and (self.credit or 0) > 0:
            raise ValueError("Enter amount in either Debit or Credit, not both")
        return self

    @property
    def entry_type(self) -> Optional[EntryType]:
        if (self.debit or 0) > 0:
            return EntryType.DEBIT
        if (self.credit or 0) > 0:
            return EntryType.CREDIT
        return None

    @property
    def amount(self) -> Decimal:
        return self.debit or self.credit or Decimal("0")


class DocumentHeader(BaseModel):
    """Invoice/bill fields that do not take part in the arithmetic."""

    counterparty_ref: str
    counterparty_gstin: Optional[str] = None
    place_of_supply: Optional[str] = None
    date: date
    due_date: Optional[date] = None
    reference: Optional[str] = None
    number: Optional[str] = None
    notes: Optional[str] = None
    terms: Optional[str] = None
    payment_method: PaymentMethod = PaymentMethod.CREDIT


class JournalHeader(BaseModel):
    name: str
    date: date
    reference: Optional[str] = None
    description: Optional[str] = None


class Document(DocumentHeader):
    """A complete invoice or bill: header, lines and document-level discount."""

    id: Optional[str] = None
    kind: DocumentKind = DocumentKind.INVOICE
    lines: list[LineItem] = Field(default_factory=list)
    document_discount_percent: Decimal = Field(default=Decimal("0"))
