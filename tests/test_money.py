"""Tests for line and document arithmetic."""

from decimal import Decimal

import pytest

from gstbooks.domain.errors import ValidationFailure
from gstbooks.domain.models.documents import JournalLine, LineItem
from gstbooks.domain.services.money import (
    compute_document_totals,
    compute_journal_totals,
    compute_line,
    round_money,
    to_decimal,
)


class TestComputeLine:

    def test_invoice_example(self):
        amounts = compute_line(2, 500, 10, 18)
        assert amounts.taxable_amount == Decimal("900")
        assert amounts.tax_amount == Decimal("162")
        assert amounts.line_total == Decimal("1062")

    def test_line_total_is_taxable_plus_tax(self):
        for qty, price, disc, rate in [
            ("3", "33.33", "7.5", "12"),
            ("0.125", "999.99", "0", "28"),
            ("17", "0", "50", "5"),
            ("1", "0.01", "100", "18"),
        ]:
            a = compute_line(qty, price, disc, rate)
            assert a.line_total == a.taxable_amount + a.tax_amount
            expected = Decimal(qty) * Decimal(price) * (1 - Decimal(disc) / 100)
            assert a.taxable_amount == expected

    def test_tax_is_on_post_discount_amount(self):
        a = compute_line(1, 1000, 20, 10)
        assert a.taxable_amount == Decimal("800")
        assert a.tax_amount == Decimal("80")

    def test_no_rounding_mid_calculation(self):
        a = compute_line("3", "0.335", "0", "18")
        # 1.005 taxable, 0.1809 tax: full precision kept
        assert a.taxable_amount == Decimal("1.005")
        assert a.tax_amount == Decimal("0.18090")
        assert round_money(a.taxable_amount) == Decimal("1.01")

    def test_float_input_keeps_typed_value(self):
        a = compute_line(0.1, 3, 0, 0)
        assert a.taxable_amount == Decimal("0.3")

    def test_string_with_grouping_commas(self):
        assert to_decimal("unit_price", "1,00,000.50") == Decimal("100000.50")

    @pytest.mark.parametrize("qty", [0, -1, "-0.5"])
    def test_quantity_must_be_positive(self, qty):
        with pytest.raises(ValidationFailure) as exc:
            compute_line(qty, 100, 0, 0)
        assert exc.value.errors[0]["field"] == "quantity"

    def test_negative_price_rejected(self):
        with pytest.raises(ValidationFailure):
            compute_line(1, -1, 0, 0)

    def test_zero_price_allowed(self):
        assert compute_line(1, 0, 0, 18).line_total == 0

    @pytest.mark.parametrize("field,args", [
        ("discount_percent", (1, 10, 101, 0)),
        ("discount_percent", (1, 10, -1, 0)),
        ("tax_rate_percent", (1, 10, 0, 100.5)),
    ])
    def test_percent_out_of_range(self, field, args):
        with pytest.raises(ValidationFailure) as exc:
            compute_line(*args)
        assert exc.value.errors[0]["field"] == field

    @pytest.mark.parametrize("bad", [None, "abc", True, "NaN", "Infinity", [1]])
    def test_non_numeric_rejected(self, bad):
        with pytest.raises(ValidationFailure):
            compute_line(bad, 10)


class TestDocumentTotals:

    def test_single_line_no_discount(self):
        totals = compute_document_totals(
            [LineItem(item_ref="i1", quantity=2, unit_price=500, discount_percent=10, tax_rate_percent=18)],
            0,
        )
        assert totals.subtotal == Decimal("1062")
        assert totals.total == Decimal("1062")
        assert totals.tax_amount == Decimal("162")

    def test_document_discount_taken_on_subtotal_of_line_totals(self):
        lines = [
            LineItem(item_ref="a", quantity=1, unit_price=1000, tax_rate_percent=18),
            LineItem(item_ref="b", quantity=2, unit_price=250, tax_rate_percent=5),
        ]
        totals = compute_document_totals(lines, 10)
        # 1180 + 525
        assert totals.subtotal == Decimal("1705")
        assert totals.discount_amount == Decimal("170.5")
        assert totals.total == totals.subtotal - totals.discount_amount

    def test_subtotal_is_sum_of_line_totals(self):
        lines = [
            LineItem(item_ref=str(i), quantity="1.5", unit_price="19.99", discount_percent=i, tax_rate_percent=12)
            for i in range(5)
        ]
        totals = compute_document_totals(lines, "2.5")
        assert totals.subtotal == sum(a.line_total for a in totals.lines)
        assert totals.total == totals.subtotal - totals.discount_amount

    def test_recompute_is_idempotent(self):
        lines = [LineItem(item_ref="x", quantity=3, unit_price="33.333", tax_rate_percent=18)]
        assert compute_document_totals(lines, 7) == compute_document_totals(lines, 7)

    def test_empty_document(self):
        totals = compute_document_totals([], 0)
        assert totals.total == 0
        assert totals.lines == ()

    def test_rounded_half_up(self):
        lines = [LineItem(item_ref="x", quantity=1, unit_price="0.125")]
        assert compute_document_totals(lines).rounded()["total"] == Decimal("0.13")

    def test_document_discount_out_of_range(self):
        with pytest.raises(ValidationFailure):
            compute_document_totals([], 150)


class TestJournalTotals:

    def test_balanced(self):
        totals = compute_journal_totals([JournalLine(debit=100), JournalLine(credit=100)])
        assert totals.is_balanced

    def test_unbalanced(self):
        totals = compute_journal_totals([JournalLine(debit=100), JournalLine(credit=60)])
        assert not totals.is_balanced
        assert totals.difference == Decimal("40")

    def test_all_zero_is_not_balanced(self):
        assert not compute_journal_totals([JournalLine(), JournalLine()]).is_balanced
