# gstbooks/infrastructure/external/books_api_client.py
"""
Accounting backend API client.

The backend owns persistence, posting, the GST network session and the
GSTR-2A matcher. This client only shapes requests and classifies failures.

Every backend response is wrapped as:
    {"message": ..., "data": ..., "success": true, "status": 200}
and the client returns the unwrapped ``data``.

Failure mapping:
    4xx with a body        -> RemoteRejection (message surfaced verbatim)
    5xx, timeout, network  -> TransientFailure
Nothing is retried here; retrying is the user's decision.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

import httpx

from gstbooks.core.config import settings
from gstbooks.domain.errors import RemoteRejection, TransientFailure

logger = logging.getLogger("books_api_client")


class BooksApiClient:
    """Async client for the accounting backend's ``/v1`` API."""

    def __init__(
        self,
        base_url: Optional[str] = None,
        api_key: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self.base = (base_url or settings.BOOKS_API_BASE_URL).rstrip("/")
        self.api_key = settings.BOOKS_API_KEY if api_key is None else api_key
        self.timeout = timeout or settings.BOOKS_API_TIMEOUT_SECONDS
        self._transport = transport

    def _headers(self, organization_id: Optional[str] = None) -> Dict[str, str]:
        h = {"Content-Type": "application/json"}
        if self.api_key:
            h["Authorization"] = f"Bearer {self.api_key}"
        if organization_id:
            h["X-Organization-Id"] = organization_id
        return h

    async def _request(
        self,
        method: str,
        path: str,
        *,
        json_body: Any = None,
        params: Dict[str, Any] | None = None,
        organization_id: Optional[str] = None,
    ) -> Any:
        """Make an HTTP request to the backend and unwrap ``data``."""
        url = f"{self.base}/v1{path}"
        logger.info("Books API %s %s", method, path)

        async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
            try:
                r = await client.request(
                    method,
                    url,
                    headers=self._headers(organization_id),
                    json=json_body,
                    params=params,
                )
                r.raise_for_status()
            except httpx.HTTPStatusError as exc:
                body: dict = {}
                try:
                    parsed = exc.response.json()
                    if isinstance(parsed, dict):
                        body = parsed
                except ValueError:
                    pass
                code = exc.response.status_code
                logger.error("Books API HTTP error: %s %s -> %d %s", method, path, code, body)
                if code >= 500:
                    raise TransientFailure(
                        f"Books API unavailable ({code})", status_code=code,
                    ) from exc
                raise RemoteRejection(
                    body.get("message") or f"Books API rejected the request ({code})",
                    status_code=code,
                    response=body,
                ) from exc
            except httpx.TimeoutException as exc:
                logger.error("Books API timeout: %s %s", method, path)
                raise TransientFailure("Books API timeout") from exc
            except httpx.TransportError as exc:
                logger.error("Books API transport error: %s %s (%s)", method, path, exc)
                raise TransientFailure(f"Books API unreachable: {exc}") from exc

        raw = r.text.strip()
        if not raw:
            return {}
        try:
            payload = r.json()
        except ValueError as exc:
            logger.warning(
                "Books API returned non-JSON body: %s %s (status=%d, body=%.200s)",
                method, path, r.status_code, raw,
            )
            raise TransientFailure("Books API returned an unreadable response") from exc

        if isinstance(payload, dict) and "data" in payload:
            return payload["data"]
        return payload

    # ----------------------------------------------------------------
    # GST credentials
    # ----------------------------------------------------------------

    async def create_credential(
        self,
        organization_id: str,
        gstin: str,
        email: str,
        state_code: str,
        ip_address: Optional[str] = None,
    ) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "gstin": gstin,
            "email": email,
            "stateCd": state_code,
            "organizationId": organization_id,
        }
        if ip_address:
            body["ipAddress"] = ip_address
        return await self._request("POST", "/gst", json_body=body, organization_id=organization_id)

    async def list_credentials(
        self, organization_id: str, page: int = 1, limit: int = 20,
    ) -> list[Dict[str, Any]]:
        data = await self._request(
            "GET", "/gst", params={"page": page, "limit": limit}, organization_id=organization_id,
        )
        if isinstance(data, dict):
            return list(data.get("docs") or [])
        return list(data or [])

    async def get_credential(self, credential_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/gst/{credential_id}")

    async def update_credential(self, credential_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        """PATCH with backend field names (email, stateCd, ipAddress)."""
        return await self._request("PATCH", f"/gst/{credential_id}", json_body=changes)

    async def delete_credential(self, credential_id: str) -> Any:
        return await self._request("DELETE", f"/gst/{credential_id}")

    async def request_otp(self, credential_id: str) -> Dict[str, Any]:
        """POST /gst/{id}/otp -> {"success": ..., "txn": ..., "message": ...}."""
        return await self._request("POST", f"/gst/{credential_id}/otp", json_body={})

    async def authenticate(self, credential_id: str, otp: str, txn: str) -> Dict[str, Any]:
        return await self._request(
            "POST", f"/gst/{credential_id}/authenticate", json_body={"otp": otp, "txn": txn},
        )

    async def get_auth_status(self, credential_id: str) -> Dict[str, Any]:
        return await self._request("GET", f"/gst/{credential_id}/auth-status")

    async def reconcile(
        self,
        credential_id: str,
        ret_period: str,
        fy: str,
        books_data: list[Dict[str, Any]],
        fetch_2a: bool = True,
    ) -> Dict[str, Any]:
        """POST /gst/{id}/reconcile -> {"success": ..., "reconciliation": {...}}."""
        return await self._request(
            "POST",
            f"/gst/{credential_id}/reconcile",
            json_body={
                "retPeriod": ret_period,
                "fy": fy,
                "booksData": books_data,
                "fetch2A": fetch_2a,
            },
        )

    async def get_return(
        self,
        credential_id: str,
        return_type: str,
        ret_period: str,
        fy: str,
        from_date: Optional[str] = None,
        to_date: Optional[str] = None,
    ) -> Dict[str, Any]:
        """GET /gst/{id}/{gstr1|gstr2|gstr3b}.

        With ``fromDate``/``toDate`` the backend builds the report from the
        books instead of asking the GST network.
        """
        params: Dict[str, Any] = {"retPeriod": ret_period, "fy": fy}
        if from_date:
            params["fromDate"] = from_date
        if to_date:
            params["toDate"] = to_date
        return await self._request("GET", f"/gst/{credential_id}/{return_type}", params=params)

    async def get_gstr1(
        self, credential_id: str, ret_period: str, fy: str, **dates: Optional[str],
    ) -> Dict[str, Any]:
        return await self.get_return(credential_id, "gstr1", ret_period, fy, **dates)

    async def get_gstr2(
        self, credential_id: str, ret_period: str, fy: str, **dates: Optional[str],
    ) -> Dict[str, Any]:
        return await self.get_return(credential_id, "gstr2", ret_period, fy, **dates)

    async def get_gstr3b(
        self, credential_id: str, ret_period: str, fy: str, **dates: Optional[str],
    ) -> Dict[str, Any]:
        return await self.get_return(credential_id, "gstr3b", ret_period, fy, **dates)

    # ----------------------------------------------------------------
    # Invoices / bills
    # ----------------------------------------------------------------

    async def create_invoice(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", "/invoice", json_body=payload, organization_id=payload.get("organizationId"),
        )

    async def list_invoices(
        self, organization_id: str, page: int = 1, limit: int = 20, sort: str = "-createdAt",
    ) -> list[Dict[str, Any]]:
        data = await self._request(
            "GET",
            "/invoice",
            params={"page": page, "limit": limit, "sort": sort, "organizationId": organization_id},
            organization_id=organization_id,
        )
        if isinstance(data, dict):
            return list(data.get("docs") or [])
        return list(data or [])

    async def post_invoice(self, invoice_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/invoice/{invoice_id}/post")

    async def record_invoice_payment(
        self, invoice_id: str, amount: float, payment_method: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/invoice/{invoice_id}/payment",
            json_body={"amount": amount, "paymentMethod": payment_method},
        )

    async def create_bill(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST", "/bill", json_body=payload, organization_id=payload.get("organizationId"),
        )

    async def post_bill(self, bill_id: str) -> Dict[str, Any]:
        return await self._request("POST", f"/bill/{bill_id}/post")

    async def record_bill_payment(
        self, bill_id: str, amount: float, payment_method: str,
    ) -> Dict[str, Any]:
        return await self._request(
            "POST",
            f"/bill/{bill_id}/payment",
            json_body={"amount": amount, "paymentMethod": payment_method},
        )

    # ----------------------------------------------------------------
    # Manual journals
    # ----------------------------------------------------------------

    async def create_journal(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return await self._request(
            "POST",
            "/accounting/journal",
            json_body=payload,
            organization_id=payload.get("organizationId"),
        )

    async def post_journal(self, journal_id: str) -> Dict[str, Any]:
        return await self._request("PATCH", f"/accounting/journal/{journal_id}/post")

    async def reverse_journal(self, journal_id: str) -> Dict[str, Any]:
        """Reverse a posted journal; the backend books the contra entry."""
        return await self._request("PATCH", f"/accounting/journal/{journal_id}/reverse")

    async def validate_journal(
        self, organization_id: Optional[str], transactions: list[Dict[str, Any]],
    ) -> Dict[str, Any]:
        """Server-side journal rules: ``{"isValid": bool, "errors": [...]}``."""
        body: Dict[str, Any] = {"transactions": transactions}
        if organization_id:
            body["organizationId"] = organization_id
        return await self._request(
            "POST", "/accounting/journal/validate", json_body=body, organization_id=organization_id,
        )
