# gstbooks/domain/services/gst_credential.py
"""
GST credential lifecycle.

Server-declared status:
  PENDING → AUTHENTICATED → EXPIRED
  PENDING → FAILED → AUTHENTICATED

The server owns ``auth_status``. The client derives a usable flag from it
and the token expiry:

  usable        = auth_status == AUTHENTICATED and now < token_expiry
  needs_refresh = usable and token_expiry - now <= warning window

An expired token is never reused; the only way back to usable is a new
request_otp → authenticate round trip. Failures (wrong OTP, timeouts)
leave the recorded state exactly as it was.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional

from gstbooks.core.config import settings
from gstbooks.domain.errors import PolicyViolation, RemoteRejection, ValidationFailure
from gstbooks.domain.models.gst import AuthStatusSnapshot, GSTAuthStatus, GSTCredential
from gstbooks.domain.services.gstin_validation import normalize_gstin, validate_credential_fields

logger = logging.getLogger("gst_credential")


# ---------------------------------------------------------------------------
# Server status transitions we expect to observe
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[GSTAuthStatus, list[GSTAuthStatus]] = {
    GSTAuthStatus.PENDING: [GSTAuthStatus.AUTHENTICATED, GSTAuthStatus.FAILED],
    GSTAuthStatus.FAILED: [GSTAuthStatus.AUTHENTICATED, GSTAuthStatus.PENDING],
    GSTAuthStatus.AUTHENTICATED: [GSTAuthStatus.EXPIRED, GSTAuthStatus.AUTHENTICATED],
    GSTAuthStatus.EXPIRED: [GSTAuthStatus.AUTHENTICATED, GSTAuthStatus.PENDING],
}


def _log_transition(credential_id: str, old: GSTAuthStatus, new: GSTAuthStatus) -> None:
    if old == new:
        return
    if new in VALID_TRANSITIONS.get(old, []):
        logger.info("GST credential %s: %s -> %s", credential_id, old.value, new.value)
    else:
        logger.warning(
            "GST credential %s: unexpected server transition %s -> %s",
            credential_id, old.value, new.value,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# Health
# ---------------------------------------------------------------------------

NEXT_ACTION_REQUEST_OTP = "request_otp"
NEXT_ACTION_AUTHENTICATE = "authenticate"
NEXT_ACTION_REFRESH = "refresh"
NEXT_ACTION_RECONCILE = "reconcile"


@dataclass(frozen=True)
class CredentialHealth:
    """Client-side reading of one credential at a point in time."""
    credential_id: str
    auth_status: GSTAuthStatus
    is_usable: bool
    needs_refresh: bool
    expired: bool
    token_expiry: Optional[datetime]
    has_pending_otp: bool
    next_action: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "credential_id": self.credential_id,
            "auth_status": self.auth_status.value,
            "is_usable": self.is_usable,
            "needs_refresh": self.needs_refresh,
            "expired": self.expired,
            "token_expiry": self.token_expiry.isoformat() if self.token_expiry else None,
            "has_pending_otp": self.has_pending_otp,
            "next_action": self.next_action,
        }


# ---------------------------------------------------------------------------
# Workflow
# ---------------------------------------------------------------------------

class GSTCredentialWorkflow:
    """Drives one organization's GST credentials through OTP authentication.

    ``client`` is a BooksApiClient (or anything with the same coroutine
    methods), ``cache`` a CredentialCache. ``clock`` returns an aware UTC
    datetime and is injectable so expiry can be tested.
    """

    def __init__(
        self,
        client: Any,
        cache: Any,
        clock: Optional[Callable[[], datetime]] = None,
        warning_window: Optional[timedelta] = None,
    ) -> None:
        self.client = client
        self.cache = cache
        self.clock = clock or _utcnow
        if warning_window is None:
            warning_window = timedelta(minutes=settings.TOKEN_REFRESH_WARNING_MINUTES)
        self.warning_window = warning_window

    # ── passive reads ─────────────────────────────────────────────

    def is_expired(self, credential: GSTCredential) -> bool:
        expiry = credential.token_expiry
        return expiry is not None and self.clock() >= expiry

    def is_usable(self, credential: GSTCredential) -> bool:
        expiry = credential.token_expiry
        return (
            credential.auth_status == GSTAuthStatus.AUTHENTICATED
            and expiry is not None
            and self.clock() < expiry
        )

    def needs_refresh(self, credential: GSTCredential) -> bool:
        """Usable, but the token runs out inside the warning window."""
        if not self.is_usable(credential):
            return False
        return credential.token_expiry - self.clock() <= self.warning_window

    def evaluate(self, credential: GSTCredential, has_pending_otp: bool = False) -> CredentialHealth:
        usable = self.is_usable(credential)
        refresh = usable and self.needs_refresh(credential)
        expired = self.is_expired(credential) or credential.auth_status == GSTAuthStatus.EXPIRED

        if usable:
            next_action = NEXT_ACTION_REFRESH if refresh else NEXT_ACTION_RECONCILE
        elif has_pending_otp and not expired:
            next_action = NEXT_ACTION_AUTHENTICATE
        else:
            next_action = NEXT_ACTION_REQUEST_OTP

        return CredentialHealth(
            credential_id=credential.id,
            auth_status=credential.auth_status,
            is_usable=usable,
            needs_refresh=refresh,
            expired=expired,
            token_expiry=credential.token_expiry,
            has_pending_otp=has_pending_otp,
            next_action=next_action,
        )

    async def health(self, credential: GSTCredential) -> CredentialHealth:
        pending = await self.cache.get_pending_txn(credential.id)
        return self.evaluate(credential, has_pending_otp=pending is not None)

    # ── CRUD ──────────────────────────────────────────────────────

    async def create(
        self,
        organization_id: str,
        gstin: str,
        email: str,
        state_code: str,
        ip_address: Optional[str] = None,
    ) -> GSTCredential:
        """Register a credential. Comes back PENDING."""
        validate_credential_fields(gstin, email, state_code, ip_address)
        data = await self.client.create_credential(
            organization_id,
            normalize_gstin(gstin),
            email.strip(),
            state_code.strip(),
            ip_address.strip() if ip_address else None,
        )
        credential = GSTCredential.model_validate(data)
        logger.info("Created GST credential %s for org %s", credential.id, organization_id)
        await self.cache.watch(credential.id, organization_id)
        return credential

    async def list_credentials(self, organization_id: str) -> list[GSTCredential]:
        rows = await self.client.list_credentials(organization_id)
        return [GSTCredential.model_validate(row) for row in rows]

    async def get(self, credential_id: str) -> GSTCredential:
        return GSTCredential.model_validate(await self.client.get_credential(credential_id))

    async def update(
        self,
        credential_id: str,
        email: Optional[str] = None,
        state_code: Optional[str] = None,
        ip_address: Optional[str] = None,
    ) -> GSTCredential:
        validate_credential_fields(
            email=email, state_code=state_code, ip_address=ip_address, partial=True,
        )
        changes: dict[str, Any] = {}
        if email is not None:
            changes["email"] = email.strip()
        if state_code is not None:
            changes["stateCd"] = state_code.strip()
        if ip_address is not None:
            changes["ipAddress"] = ip_address.strip()
        if not changes:
            raise ValidationFailure("Nothing to update")
        data = await self.client.update_credential(credential_id, changes)
        return GSTCredential.model_validate(data)

    async def delete(self, credential_id: str, organization_id: Optional[str] = None) -> None:
        await self.client.delete_credential(credential_id)
        await self.cache.clear_pending_txn(credential_id)
        await self.cache.unwatch(credential_id)
        if organization_id and await self.cache.get_active(organization_id) == credential_id:
            await self.cache.clear_active(organization_id)
        logger.info("Deleted GST credential %s", credential_id)

    # ── active selection ──────────────────────────────────────────

    async def select_active(self, organization_id: str, credential_id: str) -> GSTCredential:
        credentials = await self.list_credentials(organization_id)
        for credential in credentials:
            if credential.id == credential_id:
                await self.cache.set_active(organization_id, credential_id)
                logger.info("Org %s selected GST credential %s", organization_id, credential_id)
                return credential
        raise ValidationFailure.for_field(
            "credential_id", f"GST credential {credential_id} does not belong to this organization"
        )

    async def get_active(self, organization_id: str) -> Optional[GSTCredential]:
        """The selected credential, else the first one the backend lists."""
        credentials = await self.list_credentials(organization_id)
        if not credentials:
            return None

        selected = await self.cache.get_active(organization_id)
        if selected:
            for credential in credentials:
                if credential.id == selected:
                    return credential
            logger.warning(
                "Org %s: selected GST credential %s no longer exists", organization_id, selected,
            )
            await self.cache.clear_active(organization_id)

        fallback = credentials[0]
        logger.info(
            "Org %s has no selected GST credential, using first record %s",
            organization_id, fallback.id,
        )
        return fallback

    # ── OTP round trip ────────────────────────────────────────────

    async def _acquire(self, credential_id: str, operation: str) -> None:
        if not await self.cache.acquire(credential_id, operation):
            raise PolicyViolation(
                f"Another GST request is already in progress for credential {credential_id}"
            )

    async def request_otp(self, credential_id: str) -> str:
        """Ask the GST network for an OTP. Returns the new transaction id.

        Any earlier pending transaction id is discarded.
        """
        await self._acquire(credential_id, "request_otp")
        try:
            data = await self.client.request_otp(credential_id) or {}
        finally:
            await self.cache.release(credential_id)

        txn = data.get("txn") or data.get("transactionId")
        if not txn:
            # backend answered 2xx but the GST network refused
            raise RemoteRejection(data.get("message") or "OTP request was not accepted", response=data)

        previous = await self.cache.get_pending_txn(credential_id)
        if previous and previous != txn:
            logger.info("GST credential %s: discarding previous OTP transaction", credential_id)
        await self.cache.set_pending_txn(credential_id, txn)
        logger.info("OTP requested for GST credential %s", credential_id)
        return txn

    async def authenticate(
        self,
        credential_id: str,
        otp: str,
        transaction_id: str,
        previous_status: Optional[GSTAuthStatus] = None,
    ) -> GSTCredential:
        """Verify the OTP against the most recent transaction id.

        ``previous_status`` is the status the caller last saw; it is only used
        to log the transition.
        """
        otp = (otp or "").strip()
        if not otp:
            raise ValidationFailure.for_field("otp", "OTP is required")
        if not transaction_id:
            raise ValidationFailure.for_field("transaction_id", "Transaction id is required")

        pending = await self.cache.get_pending_txn(credential_id)
        if pending is None:
            raise ValidationFailure.for_field(
                "transaction_id", "No OTP has been requested for this credential. Request a new OTP."
            )
        if pending != transaction_id:
            raise ValidationFailure.for_field(
                "transaction_id", "This OTP request has been replaced by a newer one. Use the latest OTP."
            )

        await self._acquire(credential_id, "authenticate")
        try:
            data = await self.client.authenticate(credential_id, otp, transaction_id) or {}
            if isinstance(data, dict) and data.get("gstin"):
                credential = GSTCredential.model_validate(data)
            else:
                credential = await self.get(credential_id)
        finally:
            await self.cache.release(credential_id)

        if previous_status is None:
            logger.info("GST credential %s: now %s", credential_id, credential.auth_status.value)
        else:
            _log_transition(credential_id, previous_status, credential.auth_status)
        await self.cache.clear_pending_txn(credential_id)
        await self.cache.watch(credential_id, credential.organization_id)
        return credential

    # ── server status ─────────────────────────────────────────────

    async def refresh_status(self, credential_id: str) -> AuthStatusSnapshot:
        """Fetch the server's view and merge it with the local clock.

        Either side saying "expired" makes the snapshot unauthenticated.
        """
        snap = AuthStatusSnapshot.model_validate(await self.client.get_auth_status(credential_id))
        now = self.clock()
        locally_expired = snap.token_expiry is not None and now >= snap.token_expiry
        expired = snap.token_expired or locally_expired
        authenticated = (
            snap.authenticated
            and snap.auth_status == GSTAuthStatus.AUTHENTICATED
            and not expired
        )
        needs_refresh = snap.needs_refresh or (
            authenticated
            and snap.token_expiry is not None
            and snap.token_expiry - now <= self.warning_window
        )
        return snap.model_copy(update={
            "authenticated": authenticated,
            "token_expired": expired,
            "needs_refresh": needs_refresh and authenticated,
        })
