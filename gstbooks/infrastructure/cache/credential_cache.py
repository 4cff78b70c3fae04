# gstbooks/infrastructure/cache/credential_cache.py
"""
Short-lived GST credential state that the backend does not keep for us:

* the pending OTP transaction id per credential
* the organization's explicitly selected (active) credential
* single-flight guards so one credential never has two OTP/auth calls racing
* the set of credentials the token watcher polls, with their last snapshot

Two backends: Redis for deployments, an in-process dict for dev and tests.
"""

from __future__ import annotations

import json
import time
from typing import Any, Dict, Optional

import redis.asyncio as redis

from gstbooks.core.config import settings

# ---------------------------------------------------------------------------
# TTL constants
# ---------------------------------------------------------------------------
OTP_TXN_TTL_SECONDS = 15 * 60                # GST OTPs are valid for ~10 minutes
WATCH_TTL_SECONDS = 7 * 24 * 60 * 60         # stop polling credentials untouched for a week


class CredentialCache:
    """Interface shared by both backends."""

    async def get_pending_txn(self, credential_id: str) -> Optional[str]:
        raise NotImplementedError

    async def set_pending_txn(self, credential_id: str, txn: str) -> None:
        raise NotImplementedError

    async def clear_pending_txn(self, credential_id: str) -> None:
        raise NotImplementedError

    async def get_active(self, organization_id: str) -> Optional[str]:
        raise NotImplementedError

    async def set_active(self, organization_id: str, credential_id: str) -> None:
        raise NotImplementedError

    async def clear_active(self, organization_id: str) -> None:
        raise NotImplementedError

    async def acquire(self, credential_id: str, operation: str) -> bool:
        """Take the single-flight guard. False if another call holds it."""
        raise NotImplementedError

    async def release(self, credential_id: str) -> None:
        raise NotImplementedError

    async def watch(self, credential_id: str, organization_id: Optional[str]) -> None:
        raise NotImplementedError

    async def unwatch(self, credential_id: str) -> None:
        raise NotImplementedError

    async def watched(self) -> Dict[str, Optional[str]]:
        """credential_id -> organization_id for every watched credential."""
        raise NotImplementedError

    async def save_snapshot(self, credential_id: str, snapshot: Dict[str, Any]) -> None:
        raise NotImplementedError

    async def get_snapshot(self, credential_id: str) -> Optional[Dict[str, Any]]:
        raise NotImplementedError


class MemoryCredentialCache(CredentialCache):
    """In-process cache. Not shared across workers; dev and tests only."""

    def __init__(self, in_flight_ttl: Optional[int] = None) -> None:
        self._in_flight_ttl = in_flight_ttl or settings.IN_FLIGHT_TTL_SECONDS
        self._txns: Dict[str, tuple[str, float]] = {}
        self._active: Dict[str, str] = {}
        self._in_flight: Dict[str, tuple[str, float]] = {}
        self._watched: Dict[str, Optional[str]] = {}
        self._snapshots: Dict[str, Dict[str, Any]] = {}

    async def get_pending_txn(self, credential_id: str) -> Optional[str]:
        entry = self._txns.get(credential_id)
        if entry is None:
            return None
        txn, expires_at = entry
        if time.monotonic() > expires_at:
            self._txns.pop(credential_id, None)
            return None
        return txn

    async def set_pending_txn(self, credential_id: str, txn: str) -> None:
        self._txns[credential_id] = (txn, time.monotonic() + OTP_TXN_TTL_SECONDS)

    async def clear_pending_txn(self, credential_id: str) -> None:
        self._txns.pop(credential_id, None)

    async def get_active(self, organization_id: str) -> Optional[str]:
        return self._active.get(organization_id)

    async def set_active(self, organization_id: str, credential_id: str) -> None:
        self._active[organization_id] = credential_id

    async def clear_active(self, organization_id: str) -> None:
        self._active.pop(organization_id, None)

    async def acquire(self, credential_id: str, operation: str) -> bool:
        held = self._in_flight.get(credential_id)
        if held is not None and time.monotonic() < held[1]:
            return False
        self._in_flight[credential_id] = (operation, time.monotonic() + self._in_flight_ttl)
        return True

    async def release(self, credential_id: str) -> None:
        self._in_flight.pop(credential_id, None)

    async def watch(self, credential_id: str, organization_id: Optional[str]) -> None:
        self._watched[credential_id] = organization_id

    async def unwatch(self, credential_id: str) -> None:
        self._watched.pop(credential_id, None)
        self._snapshots.pop(credential_id, None)

    async def watched(self) -> Dict[str, Optional[str]]:
        return dict(self._watched)

    async def save_snapshot(self, credential_id: str, snapshot: Dict[str, Any]) -> None:
        self._snapshots[credential_id] = dict(snapshot)

    async def get_snapshot(self, credential_id: str) -> Optional[Dict[str, Any]]:
        snap = self._snapshots.get(credential_id)
        return dict(snap) if snap is not None else None


class RedisCredentialCache(CredentialCache):
    def __init__(self, redis_url: str, in_flight_ttl: Optional[int] = None):
        if not redis_url:
            raise RuntimeError("REDIS_URL is not set")
        self._r = redis.from_url(redis_url, decode_responses=True)
        self._in_flight_ttl = in_flight_ttl or settings.IN_FLIGHT_TTL_SECONDS

    @staticmethod
    def _key(kind: str, ident: str) -> str:
        return f"gst:{kind}:{ident}"

    _WATCH_KEY = "gst:watched"

    async def get_pending_txn(self, credential_id: str) -> Optional[str]:
        return await self._r.get(self._key("txn", credential_id))

    async def set_pending_txn(self, credential_id: str, txn: str) -> None:
        await self._r.set(self._key("txn", credential_id), txn, ex=OTP_TXN_TTL_SECONDS)

    async def clear_pending_txn(self, credential_id: str) -> None:
        await self._r.delete(self._key("txn", credential_id))

    async def get_active(self, organization_id: str) -> Optional[str]:
        return await self._r.get(self._key("active", organization_id))

    async def set_active(self, organization_id: str, credential_id: str) -> None:
        await self._r.set(self._key("active", organization_id), credential_id)

    async def clear_active(self, organization_id: str) -> None:
        await self._r.delete(self._key("active", organization_id))

    async def acquire(self, credential_id: str, operation: str) -> bool:
        ok = await self._r.set(
            self._key("inflight", credential_id), operation, nx=True, ex=self._in_flight_ttl,
        )
        return bool(ok)

    async def release(self, credential_id: str) -> None:
        await self._r.delete(self._key("inflight", credential_id))

    async def watch(self, credential_id: str, organization_id: Optional[str]) -> None:
        await self._r.hset(self._WATCH_KEY, credential_id, organization_id or "")
        await self._r.expire(self._WATCH_KEY, WATCH_TTL_SECONDS)

    async def unwatch(self, credential_id: str) -> None:
        await self._r.hdel(self._WATCH_KEY, credential_id)
        await self._r.delete(self._key("snapshot", credential_id))

    async def watched(self) -> Dict[str, Optional[str]]:
        raw = await self._r.hgetall(self._WATCH_KEY)
        return {cid: (org or None) for cid, org in (raw or {}).items()}

    async def save_snapshot(self, credential_id: str, snapshot: Dict[str, Any]) -> None:
        await self._r.set(
            self._key("snapshot", credential_id),
            json.dumps(snapshot, default=str),
            ex=WATCH_TTL_SECONDS,
        )

    async def get_snapshot(self, credential_id: str) -> Optional[Dict[str, Any]]:
        raw = await self._r.get(self._key("snapshot", credential_id))
        if not raw:
            return None
        try:
            return json.loads(raw)
        except ValueError:
            return None


_cache: CredentialCache | None = None


def get_credential_cache() -> CredentialCache:
    """Process-wide cache chosen by CREDENTIAL_CACHE_BACKEND."""
    global _cache
    if _cache is None:
        if settings.CREDENTIAL_CACHE_BACKEND.lower() == "redis":
            _cache = RedisCredentialCache(settings.REDIS_URL)
        else:
            _cache = MemoryCredentialCache()
    return _cache
