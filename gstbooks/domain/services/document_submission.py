# gstbooks/domain/services/document_submission.py
"""
Invoice / bill / manual journal submission.

Local checks run first and raise before anything is sent. Amounts in the
payload come from a freshly recomputed snapshot, rounded to 2 places.

For invoices and bills paid on the spot (payment method other than CREDIT)
submission is three calls:

  create → post → record payment (full total)

If post or payment fails the document already exists; IncompleteSubmission
carries its id so the user can finish by hand. Nothing is retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Optional

from gstbooks.domain.errors import BooksError, IncompleteSubmission, RemoteRejection, ValidationFailure
from gstbooks.domain.models.documents import (
    DocumentHeader,
    DocumentKind,
    JournalHeader,
    PaymentMethod,
)
from gstbooks.domain.services.document_numbering import suggest_invoice_number
from gstbooks.domain.services.line_ledger import JournalLedger, LineItemLedger
from gstbooks.domain.services.money import round_money

logger = logging.getLogger("document_submission")

STAGE_POST = "post"
STAGE_PAYMENT = "payment"


@dataclass
class SubmissionResult:
    kind: DocumentKind
    document_id: str
    total: Decimal
    number: Optional[str] = None
    posted: bool = False
    payment_recorded: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "kind": self.kind.value,
            "document_id": self.document_id,
            "number": self.number,
            "total": float(self.total),
            "posted": self.posted,
            "payment_recorded": self.payment_recorded,
        }


def _document_id(data: Any) -> str:
    if isinstance(data, dict):
        doc_id = data.get("id") or data.get("_id")
        if doc_id:
            return str(doc_id)
    raise RemoteRejection("Backend did not return an id for the created document", response=data)


# ---------------------------------------------------------------------------
# Payloads
# ---------------------------------------------------------------------------

def build_document_payload(
    ledger: LineItemLedger,
    header: DocumentHeader,
    organization_id: Optional[str] = None,
    number: Optional[str] = None,
) -> dict[str, Any]:
    """Validate the ledger and build the create payload for an invoice or bill."""
    totals = ledger.validate_for_submission().rounded()

    payload: dict[str, Any] = {
        "contactId": header.counterparty_ref.strip(),
        "date": header.date.isoformat(),
        "paymentMethod": header.payment_method.value,
        "lineItems": ledger.to_payload_lines(),
        "subtotal": float(totals["subtotal"]),
        "discount": float(ledger.document_discount_percent),
        "discountAmount": float(totals["discount_amount"]),
        "taxAmount": float(totals["tax_amount"]),
        "total": float(totals["total"]),
    }
    if organization_id:
        payload["organizationId"] = organization_id
    if header.due_date:
        payload["dueDate"] = header.due_date.isoformat()
    if header.place_of_supply:
        payload["placeOfSupply"] = header.place_of_supply.strip()
    for key, value in (
        ("reference", header.reference),
        ("notes", header.notes),
        ("terms", header.terms),
    ):
        if value is not None:
            payload[key] = value.strip()
    if number and ledger.kind == DocumentKind.INVOICE:
        payload["invoiceNumber"] = number.strip()
    return payload


def build_journal_payload(
    ledger: JournalLedger,
    header: JournalHeader,
    organization_id: Optional[str] = None,
) -> dict[str, Any]:
    ledger.validate_for_submission()
    payload: dict[str, Any] = {
        "name": header.name.strip(),
        "date": header.date.isoformat(),
        "transactions": ledger.to_transactions(),
    }
    if organization_id:
        payload["organizationId"] = organization_id
    if header.description:
        payload["description"] = header.description
    if header.reference:
        payload["reference"] = header.reference
    return payload


# ---------------------------------------------------------------------------
# Submission
# ---------------------------------------------------------------------------

async def _submit(
    client: Any,
    kind: DocumentKind,
    payload: dict[str, Any],
    payment_method: PaymentMethod,
) -> SubmissionResult:
    if kind == DocumentKind.INVOICE:
        create, post, pay = client.create_invoice, client.post_invoice, client.record_invoice_payment
    else:
        create, post, pay = client.create_bill, client.post_bill, client.record_bill_payment

    total = Decimal(str(payload["total"]))
    data = await create(payload)
    doc_id = _document_id(data)
    result = SubmissionResult(
        kind=kind,
        document_id=doc_id,
        total=total,
        number=(data.get("invoiceNumber") if isinstance(data, dict) else None) or payload.get("invoiceNumber"),
    )
    logger.info("Created %s %s (total=%s, payment=%s)", kind.value, doc_id, total, payment_method.value)

    if payment_method == PaymentMethod.CREDIT:
        return result

    try:
        await post(doc_id)
        result.posted = True
    except BooksError as exc:
        logger.error("Posting %s %s failed: %s", kind.value, doc_id, exc.message)
        raise IncompleteSubmission(
            f"{kind.value.title()} {doc_id} was created but could not be posted: {exc.message}",
            document_id=doc_id,
            stage=STAGE_POST,
            cause=exc,
        ) from exc

    try:
        await pay(doc_id, float(total), payment_method.value)
        result.payment_recorded = True
    except BooksError as exc:
        logger.error("Recording payment for %s %s failed: %s", kind.value, doc_id, exc.message)
        raise IncompleteSubmission(
            f"{kind.value.title()} {doc_id} was posted but the payment could not be recorded: "
            f"{exc.message}",
            document_id=doc_id,
            stage=STAGE_PAYMENT,
            cause=exc,
        ) from exc

    return result


async def submit_invoice(
    client: Any,
    ledger: LineItemLedger,
    header: DocumentHeader,
    organization_id: Optional[str] = None,
) -> SubmissionResult:
    ledger.validate_for_submission()
    number = header.number
    if not number and organization_id:
        number = await suggest_invoice_number(client, organization_id)
    payload = build_document_payload(ledger, header, organization_id, number)
    return await _submit(client, DocumentKind.INVOICE, payload, header.payment_method)


async def submit_bill(
    client: Any,
    ledger: LineItemLedger,
    header: DocumentHeader,
    organization_id: Optional[str] = None,
) -> SubmissionResult:
    payload = build_document_payload(ledger, header, organization_id)
    return await _submit(client, DocumentKind.BILL, payload, header.payment_method)


async def submit_journal(
    client: Any,
    ledger: JournalLedger,
    header: JournalHeader,
    organization_id: Optional[str] = None,
    post: bool = False,
) -> SubmissionResult:
    """Create a manual journal; ``post=True`` also posts it to the ledger."""
    totals = ledger.submission_totals()
    payload = build_journal_payload(ledger, header, organization_id)
    data = await client.create_journal(payload)
    doc_id = _document_id(data)
    result = SubmissionResult(
        kind=DocumentKind.JOURNAL, document_id=doc_id, total=round_money(totals.total_debits),
    )
    logger.info("Created journal %s (%d lines)", doc_id, totals.line_count)
    if not post:
        return result

    try:
        await client.post_journal(doc_id)
        result.posted = True
    except BooksError as exc:
        logger.error("Posting journal %s failed: %s", doc_id, exc.message)
        raise IncompleteSubmission(
            f"Journal {doc_id} was saved as a draft but could not be posted: {exc.message}",
            document_id=doc_id,
            stage=STAGE_POST,
            cause=exc,
        ) from exc
    return result


async def validate_journal(
    client: Any,
    ledger: JournalLedger,
    organization_id: Optional[str] = None,
) -> dict[str, Any]:
    """Local checks, then the backend's cross-field journal rules.

    Returns ``{"is_valid": bool, "errors": [...]}``.
    """
    ledger.validate_for_submission()
    data = await client.validate_journal(organization_id, ledger.to_transactions()) or {}
    return {
        "is_valid": bool(data.get("isValid", data.get("is_valid", False))),
        "errors": list(data.get("errors") or []),
    }


async def reverse_journal(client: Any, journal_id: str) -> dict[str, Any]:
    """Reverse a posted journal. The backend refuses drafts and repeats."""
    journal_id = (journal_id or "").strip()
    if not journal_id:
        raise ValidationFailure.for_field("journal_id", "Journal id is required")
    data = await client.reverse_journal(journal_id) or {}
    status = data.get("status") if isinstance(data, dict) else None
    logger.info("Reversed journal %s (status=%s)", journal_id, status)
    return {"journal_id": journal_id, "status": status}
