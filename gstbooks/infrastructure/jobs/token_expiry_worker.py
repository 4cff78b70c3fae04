# gstbooks/infrastructure/jobs/token_expiry_worker.py
"""
Background GST token watcher.

Every AUTH_STATUS_CHECK_INTERVAL_SECONDS it asks the backend for the
auth-status of each watched credential, merges it with the local clock and
stores the snapshot in the credential cache. Moving into "needs refresh" or
"expired" is logged. Nothing is re-authenticated automatically.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Optional

from gstbooks.core.config import settings
from gstbooks.domain.errors import BooksError, RemoteRejection

logger = logging.getLogger("token_expiry_worker")

_worker_task: asyncio.Task | None = None

STATE_OK = "ok"
STATE_NEEDS_REFRESH = "needs_refresh"
STATE_EXPIRED = "expired"
STATE_UNAUTHENTICATED = "unauthenticated"


def _state_of(snapshot: dict[str, Any]) -> str:
    if snapshot.get("token_expired"):
        return STATE_EXPIRED
    if not snapshot.get("authenticated"):
        return STATE_UNAUTHENTICATED
    if snapshot.get("needs_refresh"):
        return STATE_NEEDS_REFRESH
    return STATE_OK


async def check_credentials(workflow: Any, cache: Any) -> dict[str, str]:
    """Run one pass over the watched credentials.

    Returns credential_id -> state for every credential that was checked.
    A credential the backend no longer knows (404) stops being watched.
    """
    states: dict[str, str] = {}
    watched = await cache.watched()
    for credential_id in watched:
        try:
            snap = await workflow.refresh_status(credential_id)
        except RemoteRejection as exc:
            if exc.status_code == 404:
                logger.info("GST credential %s is gone, no longer watching it", credential_id)
                await cache.unwatch(credential_id)
            else:
                logger.warning("Auth-status check for %s rejected: %s", credential_id, exc.message)
            continue
        except BooksError as exc:
            logger.warning("Auth-status check for %s failed: %s", credential_id, exc.message)
            continue

        snapshot = snap.model_dump(mode="json")
        state = _state_of(snapshot)
        previous: Optional[dict[str, Any]] = await cache.get_snapshot(credential_id)
        previous_state = _state_of(previous) if previous else None

        if state != previous_state:
            if state == STATE_NEEDS_REFRESH:
                logger.warning(
                    "GST token for credential %s expires at %s; re-authenticate soon",
                    credential_id, snapshot.get("token_expiry"),
                )
            elif state == STATE_EXPIRED:
                logger.warning("GST token for credential %s has expired", credential_id)
            elif previous_state is not None:
                logger.info("GST credential %s: %s -> %s", credential_id, previous_state, state)

        await cache.save_snapshot(credential_id, snapshot)
        states[credential_id] = state
    return states


async def _token_watch_loop(workflow: Any, cache: Any) -> None:
    interval = settings.AUTH_STATUS_CHECK_INTERVAL_SECONDS
    logger.info("Token expiry worker started (interval=%ds)", interval)

    while True:
        try:
            states = await check_credentials(workflow, cache)
            if states:
                logger.debug("Checked %d GST credentials", len(states))
        except asyncio.CancelledError:
            logger.info("Token expiry worker cancelled")
            break
        except Exception:
            logger.exception("Token expiry worker unexpected error")

        await asyncio.sleep(interval)


def start_token_expiry_worker(workflow: Any, cache: Any) -> None:
    """Start the background watcher. Only one runs at a time."""
    global _worker_task

    if not settings.TOKEN_WATCH_ENABLED:
        logger.info("Token watch disabled, worker not started")
        return

    if _worker_task is not None and not _worker_task.done():
        logger.debug("Token expiry worker already running")
        return

    _worker_task = asyncio.create_task(_token_watch_loop(workflow, cache))
    logger.info("Token expiry worker task created")


def stop_token_expiry_worker() -> None:
    global _worker_task
    if _worker_task is not None and not _worker_task.done():
        _worker_task.cancel()
        logger.info("Token expiry worker stopped")
    _worker_task = None
