# gstbooks/domain/services/gst_returns.py
"""
GSTR-1, GSTR-2 and GSTR-3B summaries.

Two shapes come back from the backend:

  network summary  - fetched from the GST network, needs a usable credential
  books format     - built from the books for a from/to date range

A books-format request (both dates given) does not touch the GST network,
so it is not gated on the credential's token.
"""

from __future__ import annotations

import logging
from datetime import date
from enum import Enum
from typing import Any, Optional

from gstbooks.domain.errors import PreconditionFailed, RemoteRejection, ValidationFailure
from gstbooks.domain.models.gst import GSTCredential
from gstbooks.domain.services.return_periods import validate_period_and_year

logger = logging.getLogger("gst_returns")


class ReturnType(str, Enum):
    GSTR1 = "gstr1"
    GSTR2 = "gstr2"
    GSTR3B = "gstr3b"


def parse_return_type(value: Any) -> ReturnType:
    try:
        return ReturnType(str(value or "").strip().lower())
    except ValueError:
        raise ValidationFailure.for_field(
            "return_type", f"Unknown return type {value!r}; expected gstr1, gstr2 or gstr3b"
        ) from None


def _check_range(from_date: Optional[date], to_date: Optional[date]) -> None:
    if (from_date is None) != (to_date is None):
        field = "to_date" if to_date is None else "from_date"
        raise ValidationFailure.for_field(field, "Give both from and to dates, or neither")
    if from_date and to_date and from_date > to_date:
        raise ValidationFailure.for_field("from_date", "From date must not be after to date")


class GSTReturnsService:

    def __init__(self, client: Any, workflow: Any) -> None:
        self.client = client
        self.workflow = workflow

    async def fetch(
        self,
        credential: GSTCredential,
        return_type: Any,
        period: str,
        financial_year: str,
        from_date: Optional[date] = None,
        to_date: Optional[date] = None,
    ) -> dict[str, Any]:
        """Fetch one return summary. Local checks run before any network call."""
        kind = parse_return_type(return_type)
        validate_period_and_year(period, financial_year)
        _check_range(from_date, to_date)

        books_format = from_date is not None
        if not books_format and not self.workflow.is_usable(credential):
            logger.info(
                "%s refused for GST credential %s (status=%s, expiry=%s)",
                kind.value.upper(), credential.id, credential.auth_status.value, credential.token_expiry,
            )
            raise PreconditionFailed(
                "GST credential is not authenticated or its token has expired. "
                "Request a new OTP, or give a date range for a books-format report."
            )

        fetch = {
            ReturnType.GSTR1: self.client.get_gstr1,
            ReturnType.GSTR2: self.client.get_gstr2,
            ReturnType.GSTR3B: self.client.get_gstr3b,
        }[kind]
        logger.info(
            "Fetching %s for GST credential %s (%s, FY %s, books=%s)",
            kind.value.upper(), credential.id, period, financial_year, books_format,
        )
        data = await fetch(
            credential.id,
            period.strip(),
            financial_year.strip(),
            from_date=from_date.isoformat() if from_date else None,
            to_date=to_date.isoformat() if to_date else None,
        )
        if not isinstance(data, dict):
            raise RemoteRejection(f"{kind.value.upper()} response was not a summary object")
        return data
