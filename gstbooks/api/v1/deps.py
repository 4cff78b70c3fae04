# gstbooks/api/v1/deps.py
"""
FastAPI dependencies for the v1 API layer.

User login and organization switching live in the surrounding application;
requests reach this service with the active organization in the
``X-Organization-Id`` header.
"""

from __future__ import annotations

from fastapi import Depends, Header, HTTPException, status

from gstbooks.domain.services.gst_credential import GSTCredentialWorkflow
from gstbooks.domain.services.gst_reconciliation import ReconciliationOrchestrator
from gstbooks.domain.services.gst_returns import GSTReturnsService
from gstbooks.infrastructure.cache.credential_cache import CredentialCache, get_credential_cache
from gstbooks.infrastructure.external.books_api_client import BooksApiClient

_client: BooksApiClient | None = None


async def get_organization_id(
    x_organization_id: str | None = Header(None),
) -> str:
    if not x_organization_id or not x_organization_id.strip():
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Missing X-Organization-Id header",
        )
    return x_organization_id.strip()


def get_books_client() -> BooksApiClient:
    global _client
    if _client is None:
        _client = BooksApiClient()
    return _client


def get_cache() -> CredentialCache:
    return get_credential_cache()


def get_workflow(
    client: BooksApiClient = Depends(get_books_client),
    cache: CredentialCache = Depends(get_cache),
) -> GSTCredentialWorkflow:
    return GSTCredentialWorkflow(client, cache)


def get_orchestrator(
    client: BooksApiClient = Depends(get_books_client),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
) -> ReconciliationOrchestrator:
    return ReconciliationOrchestrator(client, workflow)


def get_returns_service(
    client: BooksApiClient = Depends(get_books_client),
    workflow: GSTCredentialWorkflow = Depends(get_workflow),
) -> GSTReturnsService:
    return GSTReturnsService(client, workflow)
