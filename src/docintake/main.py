"""docintake API - FastAPI application

Exposes manual validation triggers, validation results and request status
queries, plus /metrics and /health for monitoring.

Run:
    uvicorn docintake.main:app
"""

import logging
from contextlib import asynccontextmanager
from typing import Any

from fastapi import APIRouter, Depends, FastAPI, Request, Response, status
from fastapi.responses import JSONResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from . import __version__
from .api.router import router as documents_router
from .config import settings
from .database import get_db
from .observability.logging_config import configure_logging
from .observability.middleware import RequestIDMiddleware

configure_logging(level=settings.LOG_LEVEL, json_format=settings.LOG_JSON)

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info(f"docintake API starting up (environment={settings.ENVIRONMENT})")
    yield
    logger.info("docintake API shutting down...")


app = FastAPI(
    title="docintake API",
    description="Document request intake, routing and validation",
    version=__version__,
    docs_url="/docs" if settings.ENVIRONMENT != "production" else None,
    redoc_url=None,
    lifespan=lifespan,
)

app.add_middleware(RequestIDMiddleware)


@app.exception_handler(SQLAlchemyError)
async def database_exception_handler(request: Request, exc: SQLAlchemyError) -> JSONResponse:
    """Log database errors, return a generic message."""
    logger.error(f"Database error on {request.method} {request.url.path}", exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={
            "error": "database_error",
            "message": "A database error occurred. Please try again later.",
        },
    )


observability_router = APIRouter(tags=["observability"])


@observability_router.get("/metrics", include_in_schema=False)
def metrics():
    """Prometheus exposition format."""
    return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)


@observability_router.get("/health")
def health_check(db: Session = Depends(get_db)) -> Any:
    try:
        db.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Health check failed: {e}")
        return JSONResponse(status_code=503, content={"status": "unhealthy", "database": "unavailable"})
    return {"status": "healthy", "database": "ok"}


app.include_router(observability_router)
app.include_router(documents_router, prefix="/api/v1")


def create_app() -> FastAPI:
    """Application factory for tests and ASGI servers."""
    return app
