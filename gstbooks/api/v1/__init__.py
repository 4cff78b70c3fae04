# gstbooks/api/v1/__init__.py
"""
Versioned API v1: aggregates all sub-routers under ``/api/v1``.

Usage in ``main.py``::

    from gstbooks.api.v1 import v1_router
    app.include_router(v1_router)
"""

from fastapi import APIRouter

from gstbooks.api.v1.routes.documents import router as documents_router
from gstbooks.api.v1.routes.gst import router as gst_router

v1_router = APIRouter(prefix="/api/v1")

v1_router.include_router(documents_router)
v1_router.include_router(gst_router)

__all__ = ["v1_router"]
