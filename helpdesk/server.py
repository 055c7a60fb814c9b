"""FastAPI server for the helpdesk agent.

Run with:
    uvicorn helpdesk.server:app --reload --host 0.0.0.0 --port 8000
"""

from __future__ import annotations

import logging
import uuid
from contextlib import asynccontextmanager

import uvicorn
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from helpdesk.api.routes import router
from helpdesk.config import Settings
from helpdesk.context import build_context

# ── Logging ──────────────────────────────────────────────────────────
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-8s %(name)s — %(message)s",
)
logger = logging.getLogger(__name__)

# Read once; the CORS middleware, the lifespan and run() all use this object.
settings = Settings.from_env()


# ── Lifespan: initialise / tear-down shared resources ────────────────
@asynccontextmanager
async def lifespan(application: FastAPI):
    """Start-up: build the application context once from ``settings``.

    Shutdown flushes buffered metrics and closes the conversation log.
    """
    logger.info("Building helpdesk context (database: %s)…", settings.database_path)
    application.state.context = build_context(settings)
    logger.info("Agent ready.")
    yield
    application.state.context.close()
    application.state.context = None


# ── FastAPI application ──────────────────────────────────────────────
app = FastAPI(
    title="Helpdesk Agent",
    description=(
        "AI customer-support agent — answers from the knowledge base, looks up "
        "accounts and escalates to humans."
    ),
    version="1.0.0",
    lifespan=lifespan,
)

# ── CORS (needed for the web frontend) ───────────────────────────────
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ── Request-ID middleware ────────────────────────────────────────────
@app.middleware("http")
async def add_request_id(request: Request, call_next) -> Response:
    """Attach a unique request ID to every request for log correlation.

    The ID is echoed in the ``X-Request-ID`` response header so the client
    can reference it in support tickets.
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
        "service": "Helpdesk Agent",
        "version": "1.0.0",
        "docs": "/docs",
        "health": "/api/health",
    }


# ── CLI entry point ──────────────────────────────────────────────────

def run(config: Settings | None = None) -> None:
    config = config or settings
    host, port = config.server_host, config.server_port
    logger.info("Starting helpdesk API server on %s:%d", host, port)
    uvicorn.run("helpdesk.server:app", host=host, port=port)


if __name__ == "__main__":
    run()
