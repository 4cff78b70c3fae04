"""Tests for the invoice/bill and manual-journal ledgers."""

from datetime import date
from decimal import Decimal

import pytest

from gstbooks.domain.errors import PolicyViolation, ValidationFailure
from gstbooks.domain.models.documents import DocumentHeader, DocumentKind, JournalLine, LineItem
from gstbooks.domain.services.line_ledger import JournalLedger, LineItemLedger


def _priced(**kwargs) -> LineItem:
    base = {"item_ref": "item-1", "quantity": 1, "unit_price": 100}
    base.update(kwargs)
    return LineItem(**base)


class TestLineItemLedger:

    def test_starts_with_one_blank_line(self):
        ledger = LineItemLedger()
        assert len(ledger) == 1
        assert ledger.totals.total == 0

    def test_update_line_recomputes(self):
        ledger = LineItemLedger()
        totals = ledger.update_line(0, item_ref="i1", quantity=2, unit_price=500, discount_percent=10, tax_rate_percent=18)
        assert totals.subtotal == Decimal("1062")
        assert ledger.totals is totals

    def test_add_and_remove_line(self):
        ledger = LineItemLedger(lines=[_priced()])
        ledger.add_line({"item_ref": "item-2", "quantity": 3, "unit_price": 10})
        assert ledger.totals.subtotal == Decimal("130")
        totals = ledger.remove_line(0)
        assert totals.subtotal == Decimal("30")

    def test_cannot_remove_last_invoice_line(self):
        ledger = LineItemLedger(lines=[_priced()])
        with pytest.raises(PolicyViolation):
            ledger.remove_line(0)
        assert len(ledger) == 1

    def test_bad_value_leaves_line_untouched(self):
        ledger = LineItemLedger(lines=[_priced()])
        with pytest.raises(ValidationFailure):
            ledger.update_line(0, quantity=0)
        with pytest.raises(ValidationFailure):
            ledger.update_line(0, tax_rate_percent="abc")
        assert ledger.lines[0].quantity == 1
        assert ledger.totals.total == Decimal("100")

    def test_unknown_field_rejected(self):
        ledger = LineItemLedger()
        with pytest.raises(ValidationFailure):
            ledger.update_line(0, colour="red")

    def test_out_of_range_index(self):
        ledger = LineItemLedger()
        with pytest.raises(ValidationFailure):
            ledger.update_line(3, quantity=1)

    def test_document_discount(self):
        ledger = LineItemLedger(lines=[_priced(tax_rate_percent=18)])
        totals = ledger.set_document_discount(10)
        assert totals.discount_amount == Decimal("11.8")
        assert totals.total == Decimal("106.2")

    def test_subscribers_see_every_recompute(self):
        ledger = LineItemLedger(lines=[_priced()])
        seen = []
        unsubscribe = ledger.subscribe(seen.append)
        ledger.update_line(0, quantity=2)
        ledger.add_line()
        unsubscribe()
        ledger.update_line(0, quantity=5)
        assert [t.subtotal for t in seen] == [Decimal("200"), Decimal("200")]

    def test_submission_totals_are_fresh(self):
        ledger = LineItemLedger(lines=[_priced()])
        ledger._lines[0] = _priced(quantity=4)
        assert ledger.totals.subtotal == Decimal("100")
        assert ledger.submission_totals().subtotal == Decimal("400")

    def test_validate_requires_item(self):
        ledger = LineItemLedger()
        with pytest.raises(ValidationFailure) as exc:
            ledger.validate_for_submission()
        assert exc.value.errors[0]["field"] == "lines[0].item_ref"

    def test_validate_empty_document(self):
        ledger = LineItemLedger(lines=[])
        with pytest.raises(ValidationFailure):
            ledger.validate_for_submission()

    def test_payload_lines_rounded(self):
        ledger = LineItemLedger(lines=[_priced(quantity=3, unit_price="0.335", tax_rate_percent=18, hsn_code="8471")])
        line = ledger.to_payload_lines()[0]
        assert line["taxableAmount"] == 1.01
        assert line["taxAmount"] == 0.18
        assert line["hsnSacCode"] == "8471"
        assert line["itemId"] == "item-1"

    def test_to_document(self):
        ledger = LineItemLedger(DocumentKind.BILL, [_priced()], 5)
        header = DocumentHeader(counterparty_ref="c-1", date=date(2025, 4, 2))
        doc = ledger.to_document(header, "bill-1")
        assert doc.kind == DocumentKind.BILL
        assert doc.document_discount_percent == Decimal("5")
        assert LineItemLedger.from_document(doc).totals == ledger.totals

    def test_journal_kind_rejected(self):
        with pytest.raises(ValueError):
            LineItemLedger(DocumentKind.JOURNAL)


class TestJournalLedger:

    def test_starts_with_two_lines(self):
        assert len(JournalLedger()) == 2

    def test_balance_law(self):
        assert JournalLedger([JournalLine(debit=100), JournalLine(credit=100)]).is_balanced
        assert not JournalLedger([JournalLine(debit=100), JournalLine(credit=60)]).is_balanced

    def test_is_balanced_is_read_only(self):
        ledger = JournalLedger([JournalLine(debit=100), JournalLine(credit=100)])
        snapshot = ledger.totals
        seen = []
        ledger.subscribe(seen.append)
        assert ledger.is_balanced
        assert seen == []
        assert ledger.totals is snapshot

    def test_debit_clears_credit(self):
        ledger = JournalLedger([JournalLine(credit=50), JournalLine()])
        ledger.set_debit(0, 50)
        assert ledger.lines[0].debit == Decimal("50")
        assert ledger.lines[0].credit is None

    def test_credit_clears_debit(self):
        ledger = JournalLedger([JournalLine(debit=50), JournalLine()])
        ledger.set_credit(0, "75")
        assert ledger.lines[0].credit == Decimal("75")
        assert ledger.lines[0].debit is None

    def test_blank_amount_clears_side(self):
        ledger = JournalLedger([JournalLine(debit=50), JournalLine()])
        ledger.set_debit(0, "")
        assert ledger.lines[0].debit is None

    def test_negative_amount_rejected(self):
        ledger = JournalLedger()
        with pytest.raises(ValidationFailure):
            ledger.set_debit(0, -5)

    def test_remove_from_two_line_journal_rejected(self):
        ledger = JournalLedger([JournalLine(debit=100), JournalLine(credit=100)])
        with pytest.raises(PolicyViolation):
            ledger.remove_line(1)
        assert len(ledger) == 2

    def test_remove_from_three_line_journal(self):
        ledger = JournalLedger([
            JournalLine(account_ref="cash", debit=100),
            JournalLine(account_ref="sales", credit=60),
            JournalLine(account_ref="tax", credit=40),
        ])
        assert ledger.is_balanced
        totals = ledger.remove_line(2)
        assert len(ledger) == 2
        assert totals.total_debits == Decimal("100")
        assert totals.total_credits == Decimal("60")
        assert not totals.is_balanced

    def test_validate_unbalanced(self):
        ledger = JournalLedger([
            JournalLine(account_ref="cash", debit=100),
            JournalLine(account_ref="sales", credit=60),
        ])
        with pytest.raises(ValidationFailure) as exc:
            ledger.validate_for_submission()
        assert exc.value.message == "Debits and Credits must be equal"

    def test_validate_missing_account(self):
        ledger = JournalLedger([JournalLine(debit=100), JournalLine(account_ref="sales", credit=100)])
        with pytest.raises(ValidationFailure) as exc:
            ledger.validate_for_submission()
        assert exc.value.errors[0]["field"] == "lines[0].account_ref"

    def test_transactions(self):
        ledger = JournalLedger([
            JournalLine(account_ref="cash", debit="100.005"),
            JournalLine(account_ref="sales", credit="100.005", description="Sale"),
        ])
        txns = ledger.to_transactions()
        assert txns[0] == {"amount": 100.01, "type": "debit", "accountId": "cash"}
        assert txns[1]["type"] == "credit"
        assert txns[1]["description"] == "Sale"
