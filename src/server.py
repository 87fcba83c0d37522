"""FastAPI server for the DocWebsite backend.

Run with:
    uv run uvicorn src.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.sessions import SessionMiddleware

from src.api.errors import install_error_handlers
from src.api.routes import router
from src.config import (
    CORS_ORIGINS,
    SERVER_HOST,
    SERVER_PORT,
    SESSION_SECRET,
    WEBHOOK_MONITOR_ENABLED,
)
from src.database import DatabaseManager, ensure_indexes
from src.services.google_calendar_client import get_google_calendar_client
from src.services.llm_service import get_llm_service
from src.services.metrics import metrics
from src.services.webhook_monitor import WebhookMonitor
from src.services.webhook_service import WebhookService

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Connect MongoDB, build the shared services and start the webhook monitor.

    Everything the routes need lives on ``app.state``; the dependencies in
    ``src.api.dependencies`` answer 503 while a resource is missing.
    """
    db_manager = DatabaseManager()
    database = await db_manager.connect()
    await ensure_indexes(database)

    calendar_client = get_google_calendar_client()
    webhook_service = WebhookService(database, calendar_client)
    monitor = WebhookMonitor(webhook_service)

    application.state.db_manager = db_manager
    application.state.db = database
    application.state.llm_service = get_llm_service()
    application.state.calendar_client = calendar_client
    application.state.webhook_service = webhook_service
    application.state.webhook_monitor = monitor

    if WEBHOOK_MONITOR_ENABLED:
        monitor.start()
    logger.info("LLM providers enabled: %s", application.state.llm_service.enabled_providers() or "none")
    yield

    monitor.stop()
    metrics.flush()
    await db_manager.disconnect()


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="DocWebsite Backend",
    description=(
        "Multi-tenant dental practice websites: service pages, "
        "AI-written content, blogs and Google Calendar sync."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

install_error_handlers(app)

# ── Sessions (Google sign-in cookie) ────────────────────────────────
app.add_middleware(
    SessionMiddleware,
    secret_key=SESSION_SECRET,
    session_cookie="docwebsite_session",
    max_age=24 * 60 * 60,
    same_site="lax",
)

# ── CORS (needed for the dashboard frontend) ────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed back in the ``X-Request-ID`` response header so the
    client can quote it in support tickets.
    """
    request_id = request.headers.get("X-Request-ID", str(uuid.uuid4()))
    request.state.request_id = request_id
    logger.info(
        "[%s] %s %s", request_id, request.method, request.url.path,
    )
    response = await call_next(request)
    response.headers["X-Request-ID"] = request_id
    return response


# ── Register routes ──────────────────────────────────────────────────
app.include_router(router, prefix="/api")


@app.get("/")
async def root():
    """Root endpoint with API info."""
    return {
        "service": "DocWebsite Backend",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

if __name__ == "__main__":
    logger.info("Starting DocWebsite API server on %s:%d", SERVER_HOST, SERVER_PORT)
    uvicorn.run(
        "src.server:app",
        host=SERVER_HOST,
        port=SERVER_PORT,
        reload=True,
    )
