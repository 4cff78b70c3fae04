# gstbooks/domain/services/line_ledger.py
"""
Line-item ledgers for documents being edited.

``LineItemLedger`` holds invoice / bill lines, ``JournalLedger`` holds
manual-journal debit/credit lines. Every mutation re-runs the arithmetic
through ``recompute()`` and returns the fresh totals snapshot; listeners
registered with ``subscribe()`` receive the same snapshot.

The snapshot kept on ``.totals`` is for display only. Submission code must
call ``submission_totals()`` (or ``validate_for_submission()``), which always
recomputes from the current lines.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Generic, Optional, TypeVar

from gstbooks.domain.errors import PolicyViolation, ValidationFailure
from gstbooks.domain.models.documents import (
    MIN_LINES,
    Document,
    DocumentHeader,
    DocumentKind,
    JournalLine,
    LineItem,
)
from gstbooks.domain.services.money import (
    ZERO,
    DocumentTotals,
    JournalTotals,
    to_percent,
    compute_document_totals,
    compute_journal_totals,
    compute_line_item,
    round_money,
    to_decimal,
)

logger = logging.getLogger("line_ledger")

L = TypeVar("L", LineItem, JournalLine)
T = TypeVar("T", DocumentTotals, JournalTotals)

_LINE_NUMERIC_FIELDS = ("quantity", "unit_price", "discount_percent", "tax_rate_percent")
_LINE_TEXT_FIELDS = ("item_ref", "description", "unit", "hsn_code")
_JOURNAL_TEXT_FIELDS = ("account_ref", "description")


class _Ledger(Generic[L, T]):
    """Shared add/remove/notify plumbing for both ledger kinds."""

    kind: DocumentKind

    def __init__(self, lines: list[L]) -> None:
        self.min_lines = MIN_LINES[self.kind]
        self._lines: list[L] = list(lines)
        self._listeners: list[Callable[[T], None]] = []
        self._totals: T = self._compute()

    # -- subclass hooks ------------------------------------------------------

    def _blank_line(self) -> L:
        raise NotImplementedError

    def _coerce_line(self, line: Any) -> L:
        raise NotImplementedError

    def _compute(self) -> T:
        raise NotImplementedError

    # -- public API ----------------------------------------------------------

    @property
    def lines(self) -> tuple[L, ...]:
        return tuple(self._lines)

    @property
    def totals(self) -> T:
        """Last published snapshot (display only)."""
        return self._totals

    def __len__(self) -> int:
        return len(self._lines)

    def subscribe(self, callback: Callable[[T], None]) -> Callable[[], None]:
        """Register a listener for fresh totals. Returns an unsubscribe function."""
        self._listeners.append(callback)

        def _unsubscribe() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _unsubscribe

    def recompute(self) -> T:
        """Recompute totals from the current lines and publish the snapshot."""
        self._totals = self._compute()
        for callback in list(self._listeners):
            callback(self._totals)
        return self._totals

    def submission_totals(self) -> T:
        """Fresh totals for submission. Never returns the cached snapshot."""
        return self.recompute()

    def add_line(self, default: Any = None) -> T:
        line = self._blank_line() if default is None else self._coerce_line(default)
        self._lines.append(line)
        try:
            return self.recompute()
        except ValidationFailure:
            self._lines.pop()
            raise

    def remove_line(self, index: int) -> T:
        self._check_index(index)
        if len(self._lines) - 1 < self.min_lines:
            noun = "line" if self.min_lines == 1 else "lines"
            logger.info("Refused to remove line %d: %s needs %d", index, self.kind.value, self.min_lines)
            raise PolicyViolation(
                f"At least {self.min_lines} {noun} required on a {self.kind.value}"
            )
        removed = self._lines.pop(index)
        try:
            return self.recompute()
        except ValidationFailure:
            self._lines.insert(index, removed)
            raise

    def _check_index(self, index: int) -> None:
        if not 0 <= index < len(self._lines):
            raise ValidationFailure.for_field("index", f"No line at position {index}")

    def _replace(self, index: int, line: L) -> T:
        previous = self._lines[index]
        self._lines[index] = line
        try:
            return self.recompute()
        except ValidationFailure:
            self._lines[index] = previous
            raise


# ---------------------------------------------------------------------------
# Invoices / bills
# ---------------------------------------------------------------------------

class LineItemLedger(_Ledger[LineItem, DocumentTotals]):
    """Editable line collection for an invoice or a bill."""

    def __init__(
        self,
        kind: DocumentKind = DocumentKind.INVOICE,
        lines: Optional[list[LineItem]] = None,
        document_discount_percent: Any = ZERO,
    ) -> None:
        if kind == DocumentKind.JOURNAL:
            raise ValueError("Use JournalLedger for manual journals")
        self.kind = kind
        self._document_discount = to_percent("document_discount_percent", document_discount_percent)
        if lines is None:
            lines = [LineItem() for _ in range(MIN_LINES[kind])]
        super().__init__([self._coerce_line(line) for line in lines])

    @classmethod
    def from_document(cls, document: Document) -> "LineItemLedger":
        return cls(document.kind, list(document.lines), document.document_discount_percent)

    @property
    def document_discount_percent(self):
        return self._document_discount

    def _blank_line(self) -> LineItem:
        return LineItem()

    def _coerce_line(self, line: Any) -> LineItem:
        if isinstance(line, LineItem):
            return line
        if isinstance(line, dict):
            return self._apply_patch(LineItem(), line)
        raise ValidationFailure(f"Cannot build a line item from {type(line).__name__}")

    def _compute(self) -> DocumentTotals:
        return compute_document_totals(self._lines, self._document_discount)

    def _apply_patch(self, line: LineItem, patch: dict[str, Any]) -> LineItem:
        update: dict[str, Any] = {}
        for name, value in patch.items():
            if name in _LINE_NUMERIC_FIELDS:
                update[name] = to_decimal(name, value)
            elif name == "item_ref":
                update[name] = "" if value is None else str(value)
            elif name in _LINE_TEXT_FIELDS:
                update[name] = None if value is None else str(value)
            else:
                raise ValidationFailure.for_field(name, f"Unknown line field '{name}'")
        candidate = line.model_copy(update=update)
        # Range checks (quantity > 0, percentages within bounds)
        compute_line_item(candidate)
        return candidate

    def update_line(self, index: int, **patch: Any) -> DocumentTotals:
        """Edit one line. Invalid values are rejected and the line is left as it was."""
        self._check_index(index)
        return self._replace(index, self._apply_patch(self._lines[index], patch))

    def set_document_discount(self, percent: Any) -> DocumentTotals:
        self._document_discount = to_percent("document_discount_percent", percent)
        return self.recompute()

    def validate_for_submission(self) -> DocumentTotals:
        """Reject empty or incomplete documents locally. Returns fresh totals."""
        errors: list[dict[str, str]] = []
        if len(self._lines) < self.min_lines:
            errors.append({"field": "lines", "message": "Please add at least one line item"})
        for i, line in enumerate(self._lines):
            if not line.item_ref.strip():
                errors.append({"field": f"lines[{i}].item_ref", "message": "Select an item"})
            try:
                compute_line_item(line)
            except ValidationFailure as exc:
                for err in exc.errors:
                    errors.append({"field": f"lines[{i}].{err['field']}", "message": err["message"]})
        if errors:
            raise ValidationFailure(
                "Please ensure all line items have valid item, quantity, and unit price",
                errors=errors,
            )
        return self.submission_totals()

    def to_document(self, header: DocumentHeader, document_id: Optional[str] = None) -> Document:
        return Document(
            id=document_id,
            kind=self.kind,
            lines=list(self._lines),
            document_discount_percent=self._document_discount,
            **header.model_dump(),
        )

    def to_payload_lines(self) -> list[dict[str, Any]]:
        """Lines in wire form, derived amounts rounded at the boundary."""
        payload = []
        for line in self._lines:
            amounts = compute_line_item(line).rounded()
            item: dict[str, Any] = {
                "itemId": line.item_ref.strip(),
                "quantity": float(line.quantity),
                "unitPrice": float(line.unit_price),
                "discount": float(line.discount_percent),
                "taxRate": float(line.tax_rate_percent),
                "taxableAmount": float(amounts["taxable_amount"]),
                "taxAmount": float(amounts["tax_amount"]),
                "lineTotal": float(amounts["line_total"]),
            }
            if line.unit:
                item["unit"] = line.unit.strip()
            if line.description and line.description.strip():
                item["description"] = line.description.strip()
            if line.hsn_code and line.hsn_code.strip():
                item["hsnSacCode"] = line.hsn_code.strip()
            payload.append(item)
        return payload


# ---------------------------------------------------------------------------
# Manual journals
# ---------------------------------------------------------------------------

class JournalLedger(_Ledger[JournalLine, JournalTotals]):
    """Debit/credit lines of a manual journal. Needs two lines, balanced."""

    kind = DocumentKind.JOURNAL

    def __init__(self, lines: Optional[list[JournalLine]] = None) -> None:
        if lines is None:
            lines = [JournalLine() for _ in range(MIN_LINES[DocumentKind.JOURNAL])]
        super().__init__([self._coerce_line(line) for line in lines])

    @property
    def is_balanced(self) -> bool:
        return self._compute().is_balanced

    def _blank_line(self) -> JournalLine:
        return JournalLine()

    def _coerce_line(self, line: Any) -> JournalLine:
        if isinstance(line, JournalLine):
            return line
        if isinstance(line, dict):
            candidate = JournalLine()
            for name, value in line.items():
                candidate = self._patched(candidate, name, value)
            return candidate
        raise ValidationFailure(f"Cannot build a journal line from {type(line).__name__}")

    def _compute(self) -> JournalTotals:
        return compute_journal_totals(self._lines)

    def _patched(self, line: JournalLine, name: str, value: Any) -> JournalLine:
        if name == "debit":
            return self._with_amount(line, "debit", "credit", value)
        if name == "credit":
            return self._with_amount(line, "credit", "debit", value)
        if name == "account_ref":
            return line.model_copy(update={name: "" if value is None else str(value)})
        if name in _JOURNAL_TEXT_FIELDS:
            return line.model_copy(update={name: None if value is None else str(value)})
        raise ValidationFailure.for_field(name, f"Unknown journal line field '{name}'")

    @staticmethod
    def _with_amount(line: JournalLine, side: str, other: str, value: Any) -> JournalLine:
        if value is None or (isinstance(value, str) and not value.strip()):
            return line.model_copy(update={side: None})
        amount = to_decimal(side, value)
        if amount < ZERO:
            raise ValidationFailure.for_field(side, f"{side} must be non-negative")
        update: dict[str, Any] = {side: amount}
        # A line carries a debit or a credit, never both
        if amount > ZERO:
            update[other] = None
        return line.model_copy(update=update)

    def set_debit(self, index: int, amount: Any) -> JournalTotals:
        self._check_index(index)
        return self._replace(index, self._patched(self._lines[index], "debit", amount))

    def set_credit(self, index: int, amount: Any) -> JournalTotals:
        self._check_index(index)
        return self._replace(index, self._patched(self._lines[index], "credit", amount))

    def update_line(self, index: int, **patch: Any) -> JournalTotals:
        self._check_index(index)
        line = self._lines[index]
        for name, value in patch.items():
            line = self._patched(line, name, value)
        return self._replace(index, line)

    def validate_for_submission(self) -> JournalTotals:
        """Reject incomplete or unbalanced journals before any remote call."""
        errors: list[dict[str, str]] = []
        if len(self._lines) < self.min_lines:
            errors.append({"field": "lines", "message": "At least 2 transactions are required"})
        for i, line in enumerate(self._lines):
            if not line.account_ref.strip():
                errors.append({"field": f"lines[{i}].account_ref", "message": "Select an account"})
            if line.entry_type is None:
                errors.append({
                    "field": f"lines[{i}].debit",
                    "message": "Enter amount in either Debit or Credit",
                })
        if errors:
            raise ValidationFailure(
                "Please fill in the account and amount for every transaction",
                errors=errors,
            )

        totals = self.submission_totals()
        if not totals.is_balanced:
            raise ValidationFailure(
                "Debits and Credits must be equal",
                errors=[{
                    "field": "lines",
                    "message": (
                        f"Debits {round_money(totals.total_debits)} != "
                        f"credits {round_money(totals.total_credits)}"
                    ),
                }],
            )
        return totals

    def to_transactions(self) -> list[dict[str, Any]]:
        """Journal lines in the backend's transaction form."""
        transactions = []
        for line in self._lines:
            entry_type = line.entry_type
            if entry_type is None:
                continue
            txn: dict[str, Any] = {
                "amount": float(round_money(line.amount)),
                "type": entry_type.value,
                "accountId": line.account_ref.strip(),
            }
            if line.description:
                txn["description"] = line.description
            transactions.append(txn)
        return transactions
