"""Tests for the reconciliation gateway and books-row conversion."""

from datetime import date, timedelta
from decimal import Decimal

import pytest

from gstbooks.domain.errors import PreconditionFailed, RemoteRejection, ValidationFailure
from gstbooks.domain.models.documents import Document, DocumentKind, LineItem
from gstbooks.domain.models.gst import BooksEntry, GSTCredential, ReconciliationResult
from gstbooks.domain.services.gst_credential import GSTCredentialWorkflow
from gstbooks.domain.services.gst_reconciliation import (
    ReconciliationOrchestrator,
    build_books_data,
    document_to_books_entry,
    format_summary,
)


@pytest.fixture
def workflow(client, cache, clock):
    return GSTCredentialWorkflow(client, cache, clock=clock, warning_window=timedelta(minutes=30))


@pytest.fixture
def orchestrator(client, workflow):
    return ReconciliationOrchestrator(client, workflow)


@pytest.fixture
def usable(now, authenticated_payload):
    return GSTCredential.model_validate(authenticated_payload(now + timedelta(hours=2)))


def _purchase(gstin="27AADCB2230M1ZP", place_of_supply=None, discount=0) -> Document:
    return Document(
        kind=DocumentKind.BILL,
        number="PB-17",
        counterparty_ref="vendor-1",
        counterparty_gstin=gstin,
        place_of_supply=place_of_supply,
        date=date(2025, 4, 12),
        lines=[LineItem(item_ref="item-1", quantity=1, unit_price=1000, tax_rate_percent=18)],
        document_discount_percent=discount,
    )


class TestBooksEntry:

    def test_intra_state_splits_cgst_sgst(self):
        entry = document_to_books_entry(_purchase(), "27")
        assert entry.cgst == Decimal("90.00")
        assert entry.sgst == Decimal("90.00")
        assert entry.igst == 0
        assert entry.taxable_value == Decimal("1000.00")
        assert entry.total == Decimal("1180.00")
        assert entry.invoice_no == "PB-17"

    def test_inter_state_is_igst(self):
        entry = document_to_books_entry(_purchase(gstin="29AADCB2230M1ZP"), "27")
        assert entry.igst == Decimal("180.00")
        assert entry.cgst == entry.sgst == 0

    def test_place_of_supply_overrides_gstin_prefix(self):
        entry = document_to_books_entry(_purchase(gstin="29AADCB2230M1ZP", place_of_supply="27-Maharashtra"), "27")
        assert entry.cgst == Decimal("90.00")
        assert entry.igst == 0

    def test_document_discount_spread(self):
        entry = document_to_books_entry(_purchase(discount=10), "27")
        assert entry.taxable_value == Decimal("900.00")
        assert entry.cgst + entry.sgst == Decimal("162.00")
        assert entry.total == Decimal("1062.00")

    def test_missing_gstin(self):
        with pytest.raises(ValidationFailure) as exc:
            document_to_books_entry(_purchase(gstin=None), "27")
        assert exc.value.errors[0]["field"] == "counterparty_gstin"

    def test_prebuilt_entries_pass_through(self):
        entry = BooksEntry(invoice_no="X-1", supplier_gstin="27AADCB2230M1ZP", date=date(2025, 4, 1), total=10)
        data = build_books_data([entry, _purchase()], "27")
        assert data[0]["invoiceNo"] == "X-1"
        assert data[0]["total"] == 10.0
        assert data[1]["cgst"] == 90.0
        assert data[1]["date"] == "2025-04-12"


class TestReconcile:

    def test_unusable_credential_makes_no_call(self, event_loop, orchestrator, client, credential_payload):
        pending = GSTCredential.model_validate(credential_payload())
        with pytest.raises(PreconditionFailed):
            event_loop.run_until_complete(orchestrator.reconcile(pending, "0425", "2025-26"))
        client.reconcile.assert_not_called()

    def test_expired_token_makes_no_call(self, event_loop, orchestrator, client, now, authenticated_payload):
        expired = GSTCredential.model_validate(authenticated_payload(now - timedelta(seconds=1)))
        with pytest.raises(PreconditionFailed):
            event_loop.run_until_complete(orchestrator.reconcile(expired, "0425", "2025-26"))
        client.reconcile.assert_not_called()

    @pytest.mark.parametrize("period,fy", [("13/25", "2025-26"), ("0425", "2025-27"), ("0425", "25-26")])
    def test_bad_period_or_year(self, event_loop, orchestrator, client, usable, period, fy):
        with pytest.raises(ValidationFailure):
            event_loop.run_until_complete(orchestrator.reconcile(usable, period, fy))
        client.reconcile.assert_not_called()

    def test_period_outside_year_is_forwarded(self, event_loop, orchestrator, client, usable):
        client.reconcile.return_value = {"reconciliation": {}}
        event_loop.run_until_complete(orchestrator.reconcile(usable, "0325", "2025-26"))
        assert client.reconcile.await_args.args[1:3] == ("0325", "2025-26")

    def test_forwards_books_data(self, event_loop, orchestrator, client, usable):
        client.reconcile.return_value = {
            "reconciliation": {
                "total_in_books": 1,
                "total_in_2a": 1,
                "fully_matched": 1,
            }
        }
        result = event_loop.run_until_complete(
            orchestrator.reconcile(usable, "0425", "2025-26", [_purchase()], fetch_remote_return=False)
        )
        args = client.reconcile.await_args.args
        assert args[0] == "cred-1"
        assert args[1:3] == ("0425", "2025-26")
        assert args[3][0]["cgst"] == 90.0
        assert args[4] is False
        assert result.fully_matched == 1

    def test_all_zero_result_is_returned(self, event_loop, orchestrator, client, usable):
        client.reconcile.return_value = {"reconciliation": {}}
        result = event_loop.run_until_complete(orchestrator.reconcile(usable, "0425", "2025-26"))
        assert result.is_empty
        assert result.suggested_journals == ()

    @pytest.mark.parametrize("payload", [{}, {"reconciliation": None}, {"reconciliation": []}])
    def test_missing_reconciliation_key(self, event_loop, orchestrator, client, usable, payload):
        client.reconcile.return_value = payload
        with pytest.raises(RemoteRejection):
            event_loop.run_until_complete(orchestrator.reconcile(usable, "0425", "2025-26"))

    def test_remote_rejection_propagates(self, event_loop, orchestrator, client, usable):
        client.reconcile.side_effect = RemoteRejection("GSTR-2A not available", status_code=400)
        with pytest.raises(RemoteRejection) as exc:
            event_loop.run_until_complete(orchestrator.reconcile(usable, "0425", "2025-26"))
        assert exc.value.message == "GSTR-2A not available"


class TestFormatSummary:

    def test_empty(self):
        assert format_summary(ReconciliationResult(), "0425") == "No records to reconcile for 0425."

    def test_full(self):
        result = ReconciliationResult.model_validate({
            "total_in_books": 10,
            "total_in_2a": 9,
            "fully_matched": 7,
            "partially_matched": 1,
            "missing_in_2a": 2,
            "missing_in_books": 1,
            "itc_lost_due_to_mismatch": "3600.5",
            "suggested_journals": [{
                "date": "2025-04-30",
                "narration": "Reverse ITC",
                "entries": [
                    {"account": "ITC Reversal", "debit": 3600.5},
                    {"account": "Input CGST", "credit": 3600.5},
                ],
            }],
        })
        text = format_summary(result, "0425")
        assert "Fully matched: 7" in text
        assert "Missing in GSTR-2A: 2" in text
        assert "ITC at risk: Rs 3,600.50" in text
        assert "Dr ITC Reversal  3,600.50" in text
        assert "Cr Input CGST  3,600.50" in text
