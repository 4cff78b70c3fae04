# gstbooks/domain/services/money.py
"""
Money / tax arithmetic for invoices, bills and manual journals.

Pure functions, no I/O. Everything is computed in full Decimal precision;
rounding to 2 places happens only through ``round_money`` at the
presentation and submission boundaries.

Per line:
    gross_amount   = quantity * unit_price
    taxable_amount = quantity * unit_price * (1 - discount_percent / 100)
    tax_amount     = taxable_amount * tax_rate_percent / 100
    line_total     = taxable_amount + tax_amount

Per document:
    subtotal        = sum(line_total)
    discount_amount = subtotal * document_discount_percent / 100
    total           = subtotal - discount_amount

The document discount is taken on the tax-inclusive subtotal, which is
what the existing invoice and bill screens do.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Iterable

from gstbooks.domain.errors import ValidationFailure
from gstbooks.domain.models.documents import JournalLine, LineItem

ZERO = Decimal("0")
HUNDRED = Decimal("100")
MONEY_PLACES = Decimal("0.01")


# ---------------------------------------------------------------------------
# Input coercion / validation
# ---------------------------------------------------------------------------

def to_decimal(field_name: str, value: Any) -> Decimal:
    """Coerce user input to Decimal or raise ValidationFailure."""
    if value is None or isinstance(value, bool):
        raise ValidationFailure.for_field(field_name, f"{field_name} must be a number")

    if isinstance(value, Decimal):
        result = value
    elif isinstance(value, int):
        result = Decimal(value)
    elif isinstance(value, float):
        # str() keeps the value the user typed (0.1 stays 0.1)
        result = Decimal(str(value))
    elif isinstance(value, str):
        try:
            result = Decimal(value.strip().replace(",", ""))
        except InvalidOperation:
            raise ValidationFailure.for_field(
                field_name, f"{field_name} must be a number, got {value!r}"
            ) from None
    else:
        raise ValidationFailure.for_field(field_name, f"{field_name} must be a number")

    if not result.is_finite():
        raise ValidationFailure.for_field(field_name, f"{field_name} must be a finite number")
    return result


def to_percent(field_name: str, value: Any) -> Decimal:
    pct = to_decimal(field_name, value)
    if pct < ZERO or pct > HUNDRED:
        raise ValidationFailure.for_field(field_name, f"{field_name} must be between 0 and 100")
    return pct


def round_money(value: Decimal) -> Decimal:
    """Round half-up to 2 decimal places. Boundary use only."""
    return value.quantize(MONEY_PLACES, rounding=ROUND_HALF_UP)


# ---------------------------------------------------------------------------
# Results
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class LineAmounts:
    """Derived amounts for one line (full precision)."""
    gross_amount: Decimal
    discount_amount: Decimal
    taxable_amount: Decimal
    tax_amount: Decimal
    line_total: Decimal

    def rounded(self) -> dict[str, Decimal]:
        return {
            "taxable_amount": round_money(self.taxable_amount),
            "tax_amount": round_money(self.tax_amount),
            "line_total": round_money(self.line_total),
        }


@dataclass(frozen=True)
class DocumentTotals:
    """Totals snapshot for an invoice or bill (full precision)."""
    subtotal: Decimal = ZERO
    discount_amount: Decimal = ZERO
    tax_amount: Decimal = ZERO
    total: Decimal = ZERO
    taxable_amount: Decimal = ZERO
    gross_amount: Decimal = ZERO
    document_discount_percent: Decimal = ZERO
    lines: tuple[LineAmounts, ...] = field(default_factory=tuple)

    def rounded(self) -> dict[str, Decimal]:
        return {
            "subtotal": round_money(self.subtotal),
            "discount_amount": round_money(self.discount_amount),
            "tax_amount": round_money(self.tax_amount),
            "taxable_amount": round_money(self.taxable_amount),
            "total": round_money(self.total),
        }


@dataclass(frozen=True)
class JournalTotals:
    total_debits: Decimal = ZERO
    total_credits: Decimal = ZERO
    line_count: int = 0

    @property
    def difference(self) -> Decimal:
        return self.total_debits - self.total_credits

    @property
    def is_balanced(self) -> bool:
        return self.total_debits == self.total_credits and self.total_debits > ZERO

    def rounded(self) -> dict[str, Any]:
        return {
            "total_debits": round_money(self.total_debits),
            "total_credits": round_money(self.total_credits),
            "difference": round_money(self.difference),
            "is_balanced": self.is_balanced,
        }


# ---------------------------------------------------------------------------
# Public API
# ---------------------------------------------------------------------------

def compute_line(
    quantity: Any,
    unit_price: Any,
    discount_percent: Any = ZERO,
    tax_rate_percent: Any = ZERO,
) -> LineAmounts:
    """Compute taxable amount, tax and line total for one line.

    Raises ValidationFailure for quantity <= 0, unit_price < 0 or a
    percentage outside [0, 100].
    """
    qty = to_decimal("quantity", quantity)
    price = to_decimal("unit_price", unit_price)
    discount = to_percent("discount_percent", discount_percent)
    tax_rate = to_percent("tax_rate_percent", tax_rate_percent)

    if qty <= ZERO:
        raise ValidationFailure.for_field("quantity", "quantity must be positive")
    if price < ZERO:
        raise ValidationFailure.for_field("unit_price", "unit_price must be non-negative")

    gross = qty * price
    taxable = gross * (1 - discount / HUNDRED)
    tax = taxable * tax_rate / HUNDRED
    return LineAmounts(
        gross_amount=gross,
        discount_amount=gross - taxable,
        taxable_amount=taxable,
        tax_amount=tax,
        line_total=taxable + tax,
    )


def compute_line_item(line: LineItem) -> LineAmounts:
    return compute_line(
        line.quantity, line.unit_price, line.discount_percent, line.tax_rate_percent,
    )


def compute_document_totals(
    lines: Iterable[LineItem | LineAmounts],
    document_discount_percent: Any = ZERO,
) -> DocumentTotals:
    """Aggregate line amounts into document totals.

    Accepts LineItem inputs (computed here) or already computed LineAmounts.
    """
    doc_discount = to_percent("document_discount_percent", document_discount_percent)

    amounts = tuple(
        compute_line_item(line) if isinstance(line, LineItem) else line
        for line in lines
    )
    subtotal = sum((a.line_total for a in amounts), ZERO)
    discount_amount = subtotal * doc_discount / HUNDRED

    return DocumentTotals(
        subtotal=subtotal,
        discount_amount=discount_amount,
        tax_amount=sum((a.tax_amount for a in amounts), ZERO),
        total=subtotal - discount_amount,
        taxable_amount=sum((a.taxable_amount for a in amounts), ZERO),
        gross_amount=sum((a.gross_amount for a in amounts), ZERO),
        document_discount_percent=doc_discount,
        lines=amounts,
    )


def compute_journal_totals(lines: Iterable[JournalLine]) -> JournalTotals:
    """Sum debits and credits. Negative amounts are never counted."""
    debits = ZERO
    credits = ZERO
    count = 0
    for line in lines:
        count += 1
        if line.debit is not None and line.debit > ZERO:
            debits += line.debit
        if line.credit is not None and line.credit > ZERO:
            credits += line.credit
    return JournalTotals(total_debits=debits, total_credits=credits, line_count=count)
