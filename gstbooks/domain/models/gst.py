from datetime import date, datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class GSTAuthStatus(str, Enum):
    PENDING = "PENDING"
    AUTHENTICATED = "AUTHENTICATED"
    EXPIRED = "EXPIRED"
    FAILED = "FAILED"


def _as_utc(value: Optional[datetime]) -> Optional[datetime]:
    if value is not None and value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


class GSTAuthToken(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    value: str = Field(validation_alias=AliasChoices("authToken", "auth_token", "value"))
    expiry: datetime
    transaction_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("txn", "transaction_id")
    )
    sek: Optional[str] = None

    @field_validator("expiry")
    @classmethod
    def expiry_as_utc(cls, value: datetime) -> datetime:
        return _as_utc(value)


class GSTCredential(BaseModel):
    """One GST API credential as stored by the backend.

    Accepts the backend's camelCase payload directly.
    """

    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(validation_alias=AliasChoices("id", "_id"))
    organization_id: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("organizationId", "organization_id")
    )
    gstin: str
    email: str
    state_code: str = Field(validation_alias=AliasChoices("stateCd", "state_code"))
    ip_address: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("ipAddress", "ip_address")
    )
    auth_status: GSTAuthStatus = Field(
        default=GSTAuthStatus.PENDING, validation_alias=AliasChoices("authStatus", "auth_status")
    )
    auth_token: Optional[GSTAuthToken] = Field(
        default=None, validation_alias=AliasChoices("authToken", "auth_token")
    )
    last_reconciliation_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("lastReconciliationDate", "last_reconciliation_date"),
    )
    last_reconciliation_period: Optional[str] = Field(
        default=None,
        validation_alias=AliasChoices("lastReconciliationPeriod", "last_reconciliation_period"),
    )

    @property
    def token_expiry(self) -> Optional[datetime]:
        return self.auth_token.expiry if self.auth_token else None


class AuthStatusSnapshot(BaseModel):
    """Server view of a credential's token, from ``GET auth-status``."""

    model_config = ConfigDict(populate_by_name=True)

    authenticated: bool = False
    auth_status: GSTAuthStatus = Field(
        default=GSTAuthStatus.PENDING, validation_alias=AliasChoices("authStatus", "auth_status")
    )
    token_expiry: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("tokenExpiry", "token_expiry")
    )
    token_expired: bool = Field(
        default=False, validation_alias=AliasChoices("tokenExpired", "token_expired")
    )
    needs_refresh: bool = Field(
        default=False, validation_alias=AliasChoices("needsRefresh", "needs_refresh")
    )

    @field_validator("token_expiry")
    @classmethod
    def expiry_as_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(value)


# ---------------------------------------------------------------------------
# Reconciliation
# ---------------------------------------------------------------------------

class BooksEntry(BaseModel):
    """One purchase record from the books, as sent to the remote matcher."""

    invoice_no: str
    supplier_gstin: str
    date: date
    taxable_value: Decimal = Decimal("0")
    cgst: Decimal = Decimal("0")
    sgst: Decimal = Decimal("0")
    igst: Decimal = Decimal("0")
    total: Decimal = Decimal("0")

    def to_api(self) -> dict[str, Any]:
        return {
            "invoiceNo": self.invoice_no,
            "supplierGstin": self.supplier_gstin,
            "date": self.date.isoformat(),
            "taxableValue": float(self.taxable_value),
            "cgst": float(self.cgst),
            "sgst": float(self.sgst),
            "igst": float(self.igst),
            "total": float(self.total),
        }


class ReconciliationJournalEntry(BaseModel):
    model_config = ConfigDict(frozen=True)

    account: str
    debit: Decimal = Decimal("0")
    credit: Decimal = Decimal("0")


class ReconciliationJournal(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: str
    narration: str = ""
    entries: tuple[ReconciliationJournalEntry, ...] = ()


class ReconciliationResult(BaseModel):
    """Aggregate owned by the remote matcher. Rendered, never mutated."""

    model_config = ConfigDict(frozen=True, extra="allow")

    total_in_books: int = 0
    total_in_2a: int = 0
    fully_matched: int = 0
    partially_matched: int = 0
    missing_in_2a: int = 0
    missing_in_books: int = 0
    itc_lost_due_to_mismatch: Decimal = Decimal("0")
    suggested_journals: tuple[ReconciliationJournal, ...] = ()

    @property
    def is_empty(self) -> bool:
        return self.total_in_books == 0 and self.total_in_2a == 0
