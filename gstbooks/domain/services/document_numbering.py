# gstbooks/domain/services/document_numbering.py
"""
Invoice numbering authority.

  server       the number is left out and the backend assigns it
  client_hint  a suggestion is derived from the last number the backend
               issued (INV-000041 -> INV-000042); nothing is kept client
               side, so two sessions can at worst get the same *hint*, and
               the backend still has the final word
"""

from __future__ import annotations

import logging
import re
from typing import Any, Optional

from gstbooks.core.config import settings

logger = logging.getLogger("document_numbering")

AUTHORITY_SERVER = "server"
AUTHORITY_CLIENT_HINT = "client_hint"
ALL_AUTHORITIES = {AUTHORITY_SERVER, AUTHORITY_CLIENT_HINT}

DEFAULT_NUMBER_WIDTH = 6

_TRAILING_DIGITS = re.compile(r"(\d+)$")


def next_number_after(last_number: Optional[str], prefix: str) -> str:
    """Next number in a ``<prefix><digits>`` series.

    Zero padding of the last number is kept. With no usable last number
    the series starts at 1.
    """
    if last_number and last_number.startswith(prefix):
        m = _TRAILING_DIGITS.search(last_number[len(prefix):])
        if m:
            digits = m.group(1)
            return f"{prefix}{int(digits) + 1:0{len(digits)}d}"
    return f"{prefix}{1:0{DEFAULT_NUMBER_WIDTH}d}"


async def suggest_invoice_number(
    client: Any,
    organization_id: str,
    authority: Optional[str] = None,
    prefix: Optional[str] = None,
) -> Optional[str]:
    """Suggested number for a new invoice, or None when the server numbers."""
    authority = (authority or settings.DOCUMENT_NUMBER_AUTHORITY).lower()
    if authority not in ALL_AUTHORITIES:
        raise ValueError(f"Unknown document number authority: {authority!r}")
    if authority == AUTHORITY_SERVER:
        return None

    prefix = settings.INVOICE_NUMBER_PREFIX if prefix is None else prefix
    latest = await client.list_invoices(organization_id, page=1, limit=1, sort="-createdAt")
    last_number = (latest[0].get("invoiceNumber") if latest else None) or None
    suggestion = next_number_after(last_number, prefix)
    logger.debug("Invoice number hint for org %s: %s (last=%s)", organization_id, suggestion, last_number)
    return suggestion
