# gstbooks/api/v1/routes/documents.py
"""
V1 API endpoints for invoices, bills and manual journals.

``/compute`` endpoints price a draft without sending anything anywhere;
the submit endpoints validate locally and then call the books backend.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends

from gstbooks.api.v1.deps import get_books_client, get_organization_id
from gstbooks.api.v1.envelope import ok
from gstbooks.api.v1.schemas.documents import (
    DocumentDraftRequest,
    DocumentSubmitRequest,
    DocumentTotalsOut,
    JournalDraftRequest,
    JournalSubmitRequest,
    JournalTotalsOut,
    LineAmountsOut,
)
from gstbooks.domain.errors import ValidationFailure
from gstbooks.domain.models.documents import DocumentKind
from gstbooks.domain.services import document_submission
from gstbooks.domain.services.line_ledger import JournalLedger, LineItemLedger
from gstbooks.domain.services.money import DocumentTotals, JournalTotals
from gstbooks.infrastructure.external.books_api_client import BooksApiClient

logger = logging.getLogger("api.v1.documents")

router = APIRouter(prefix="/documents", tags=["Documents"])


# ============================================================
# Helpers
# ============================================================

def _line_ledger(kind: DocumentKind, body: DocumentDraftRequest | DocumentSubmitRequest) -> LineItemLedger:
    return LineItemLedger(
        kind,
        [line.model_dump(exclude_unset=True) for line in body.lines],
        body.document_discount_percent,
    )


def _journal_ledger(body: JournalDraftRequest) -> JournalLedger:
    return JournalLedger([line.model_dump(exclude_unset=True) for line in body.lines])


def _document_totals_out(totals: DocumentTotals) -> dict:
    r = totals.rounded()
    return DocumentTotalsOut(
        subtotal=float(r["subtotal"]),
        discount_amount=float(r["discount_amount"]),
        tax_amount=float(r["tax_amount"]),
        taxable_amount=float(r["taxable_amount"]),
        total=float(r["total"]),
        lines=[
            LineAmountsOut(**{k: float(v) for k, v in line.rounded().items()})
            for line in totals.lines
        ],
    ).model_dump()


def _journal_totals_out(totals: JournalTotals) -> dict:
    r = totals.rounded()
    return JournalTotalsOut(
        total_debits=float(r["total_debits"]),
        total_credits=float(r["total_credits"]),
        difference=float(r["difference"]),
        is_balanced=r["is_balanced"],
    ).model_dump()


# ============================================================
# Endpoints
# ============================================================

@router.post("/compute", summary="Price an invoice or bill draft")
async def compute_document(body: DocumentDraftRequest):
    if body.kind == DocumentKind.JOURNAL:
        raise ValidationFailure.for_field("kind", "Use /documents/journal/compute for journals")
    ledger = _line_ledger(body.kind, body)
    return ok(data=_document_totals_out(ledger.submission_totals()))


@router.post("/journal/compute", summary="Total a manual journal draft")
async def compute_journal(body: JournalDraftRequest):
    ledger = _journal_ledger(body)
    return ok(data=_journal_totals_out(ledger.submission_totals()))


@router.post("/invoices", summary="Create an invoice")
async def create_invoice(
    body: DocumentSubmitRequest,
    organization_id: str = Depends(get_organization_id),
    client: BooksApiClient = Depends(get_books_client),
):
    """Create the invoice; paid-on-the-spot invoices are also posted and settled."""
    ledger = _line_ledger(DocumentKind.INVOICE, body)
    result = await document_submission.submit_invoice(client, ledger, body.header(), organization_id)
    return ok(data=result.to_dict(), message="Invoice created")


@router.post("/bills", summary="Create a bill")
async def create_bill(
    body: DocumentSubmitRequest,
    organization_id: str = Depends(get_organization_id),
    client: BooksApiClient = Depends(get_books_client),
):
    ledger = _line_ledger(DocumentKind.BILL, body)
    result = await document_submission.submit_bill(client, ledger, body.header(), organization_id)
    return ok(data=result.to_dict(), message="Bill created")


@router.post("/journals", summary="Create a manual journal")
async def create_journal(
    body: JournalSubmitRequest,
    organization_id: str = Depends(get_organization_id),
    client: BooksApiClient = Depends(get_books_client),
):
    ledger = _journal_ledger(body)
    result = await document_submission.submit_journal(
        client, ledger, body.header(), organization_id, post=body.post,
    )
    return ok(data=result.to_dict(), message="Journal posted" if result.posted else "Journal saved")


@router.post("/journals/validate", summary="Check a journal against backend rules")
async def validate_journal(
    body: JournalDraftRequest,
    organization_id: str = Depends(get_organization_id),
    client: BooksApiClient = Depends(get_books_client),
):
    ledger = _journal_ledger(body)
    verdict = await document_submission.validate_journal(client, ledger, organization_id)
    return ok(data=verdict)


@router.post("/journals/{journal_id}/reverse", summary="Reverse a posted journal")
async def reverse_journal(
    journal_id: str,
    organization_id: str = Depends(get_organization_id),
    client: BooksApiClient = Depends(get_books_client),
):
    result = await document_submission.reverse_journal(client, journal_id)
    return ok(data=result, message="Journal reversed")
