# gstbooks/main.py
from contextlib import asynccontextmanager

from fastapi import FastAPI

from gstbooks.api.routes import health_router
from gstbooks.api.v1 import v1_router
from gstbooks.api.v1.deps import get_books_client
from gstbooks.api.v1.errors import register_error_handlers
from gstbooks.core.config import settings
from gstbooks.core.logging_config import setup_logging
from gstbooks.domain.services.gst_credential import GSTCredentialWorkflow
from gstbooks.infrastructure.cache.credential_cache import get_credential_cache
from gstbooks.infrastructure.jobs.token_expiry_worker import (
    start_token_expiry_worker,
    stop_token_expiry_worker,
)


@asynccontextmanager
async def lifespan(app: FastAPI):
    setup_logging()
    cache = get_credential_cache()
    start_token_expiry_worker(GSTCredentialWorkflow(get_books_client(), cache), cache)
    yield
    stop_token_expiry_worker()


app = FastAPI(title=settings.APP_NAME, debug=settings.DEBUG, lifespan=lifespan)
register_error_handlers(app)

app.include_router(health_router)
app.include_router(v1_router)
