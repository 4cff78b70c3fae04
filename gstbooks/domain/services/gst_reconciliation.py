# gstbooks/domain/services/gst_reconciliation.py
"""
Books vs GSTR-2A reconciliation, client side.

Matching itself runs in the backend. This module checks that the credential
is usable and that the request is well formed, turns purchase documents into
the rows the matcher expects, and hands back whatever aggregate comes back.
An all-zero aggregate is a normal answer ("nothing to reconcile").
"""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Iterable, Union

from gstbooks.domain.errors import PreconditionFailed, RemoteRejection, ValidationFailure
from gstbooks.domain.models.documents import Document
from gstbooks.domain.models.gst import BooksEntry, GSTCredential, ReconciliationResult
from gstbooks.domain.services.gstin_validation import normalize_gstin
from gstbooks.domain.services.money import HUNDRED, compute_document_totals, round_money
from gstbooks.domain.services.return_periods import validate_period_and_year

logger = logging.getLogger("gst_reconciliation")

TWO = Decimal("2")

BooksRow = Union[Document, BooksEntry]


# ---------------------------------------------------------------------------
# Books data
# ---------------------------------------------------------------------------

def _state_of_supply(document: Document) -> str:
    """Two-digit state code: place of supply, else the supplier GSTIN prefix."""
    if document.place_of_supply:
        code = document.place_of_supply.strip()[:2]
        if code.isdigit():
            return code
    return normalize_gstin(document.counterparty_gstin)[:2]


def document_to_books_entry(document: Document, home_state_code: str) -> BooksEntry:
    """Convert a purchase document to one matcher row.

    Intra-state supplies carry CGST + SGST (tax split evenly), inter-state
    supplies carry IGST. The document discount is spread over taxable value
    and tax in the same proportion it reduces the total.
    """
    gstin = normalize_gstin(document.counterparty_gstin)
    invoice_no = document.number or document.reference or document.id or ""
    if not gstin:
        raise ValidationFailure.for_field(
            "counterparty_gstin", f"Purchase document {invoice_no!r} has no supplier GSTIN",
        )

    totals = compute_document_totals(document.lines, document.document_discount_percent)
    keep = 1 - totals.document_discount_percent / HUNDRED
    taxable = round_money(totals.taxable_amount * keep)
    tax = totals.tax_amount * keep

    if _state_of_supply(document) == home_state_code.strip():
        cgst = round_money(tax / TWO)
        sgst = round_money(tax / TWO)
        igst = Decimal("0.00")
    else:
        cgst = sgst = Decimal("0.00")
        igst = round_money(tax)

    return BooksEntry(
        invoice_no=invoice_no,
        supplier_gstin=gstin,
        date=document.date,
        taxable_value=taxable,
        cgst=cgst,
        sgst=sgst,
        igst=igst,
        total=round_money(totals.total),
    )


def build_books_data(rows: Iterable[BooksRow], home_state_code: str) -> list[dict[str, Any]]:
    data = []
    for row in rows:
        entry = row if isinstance(row, BooksEntry) else document_to_books_entry(row, home_state_code)
        data.append(entry.to_api())
    return data


# ---------------------------------------------------------------------------
# Orchestrator
# ---------------------------------------------------------------------------

class ReconciliationOrchestrator:
    """Gate on credential usability, validate, forward, return."""

    def __init__(self, client: Any, workflow: Any) -> None:
        self.client = client
        self.workflow = workflow

    async def reconcile(
        self,
        credential: GSTCredential,
        period: str,
        financial_year: str,
        books_snapshot: Iterable[BooksRow] = (),
        fetch_remote_return: bool = True,
    ) -> ReconciliationResult:
        if not self.workflow.is_usable(credential):
            logger.info(
                "Reconcile refused for GST credential %s (status=%s, expiry=%s)",
                credential.id, credential.auth_status.value, credential.token_expiry,
            )
            raise PreconditionFailed(
                "GST credential is not authenticated or its token has expired. "
                "Request a new OTP and authenticate before reconciling."
            )

        validate_period_and_year(period, financial_year)
        books_data = build_books_data(books_snapshot, credential.state_code)

        logger.info(
            "Reconciling GST credential %s for %s (FY %s, %d books rows, fetch2A=%s)",
            credential.id, period, financial_year, len(books_data), fetch_remote_return,
        )
        data = await self.client.reconcile(
            credential.id, period.strip(), financial_year.strip(), books_data, fetch_remote_return,
        ) or {}

        raw = data.get("reconciliation") if isinstance(data, dict) else None
        if not isinstance(raw, dict):
            raise RemoteRejection("Reconciliation response did not include a result", response=data)
        result = ReconciliationResult.model_validate(raw)
        if result.is_empty:
            logger.info("Reconciliation for %s returned no records", period)
        return result


def format_summary(result: ReconciliationResult, period: str = "") -> str:
    """Plain-text summary of a reconciliation result."""
    if result.is_empty:
        return f"No records to reconcile{' for ' + period if period else ''}."

    lines = [f"GSTR-2A reconciliation{' for ' + period if period else ''}"]
    lines.append(f"Books: {result.total_in_books} | GSTR-2A: {result.total_in_2a}")
    lines.append(f"Fully matched: {result.fully_matched}")
    if result.partially_matched:
        lines.append(f"Partially matched: {result.partially_matched}")
    if result.missing_in_2a:
        lines.append(f"Missing in GSTR-2A: {result.missing_in_2a}")
    if result.missing_in_books:
        lines.append(f"Missing in books: {result.missing_in_books}")
    if result.itc_lost_due_to_mismatch:
        lines.append(f"ITC at risk: Rs {result.itc_lost_due_to_mismatch:,.2f}")

    if result.suggested_journals:
        lines.append("")
        lines.append("Suggested journal entries:")
        for i, journal in enumerate(result.suggested_journals, 1):
            lines.append(f"{i}. {journal.date} {journal.narration}".rstrip())
            for entry in journal.entries:
                if entry.debit:
                    lines.append(f"   Dr {entry.account}  {entry.debit:,.2f}")
                if entry.credit:
                    lines.append(f"   Cr {entry.account}  {entry.credit:,.2f}")
    return "\n".join(lines)
