from __future__ import annotations
import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse

from app.api import router
from app.web import router as web_router
from datastore.store import StoreError, build_default_store
from logging_config import configure_logging
from services.booking import build_default_booking
from services.dashboard import build_default_dashboard
from storage.photos import build_default_bucket

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(_app: FastAPI) -> AsyncIterator[None]:
    try:
        yield
    finally:
        build_default_dashboard.cache_clear()
        build_default_booking.cache_clear()
        build_default_bucket.cache_clear()
        build_default_store.cache_clear()


async def _store_error_handler(request: Request, exc: StoreError) -> JSONResponse:
    logger.error(
        "Store operation failed",
        exc_info=exc,
        extra={"reason": str(exc)},
    )
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": "Data store is temporarily unavailable."},
    )


def create_app() -> FastAPI:
    configure_logging()
    app = FastAPI(
        title="Restaurant Operations",
        description="HACCP kitchen dashboard and public table reservations for multiple restaurants.",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.add_exception_handler(StoreError, _store_error_handler)
    app.include_router(router)
    app.include_router(web_router)
    return app

app = create_app()
