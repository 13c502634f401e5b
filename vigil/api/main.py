"""
vigil.api.main — FastAPI application entry point
=================================================

Run with::

    uvicorn vigil.api.main:app --port 8000

or ``python -m vigil``.
"""

from __future__ import annotations

import logging
import os
from contextlib import asynccontextmanager

from dotenv import load_dotenv
from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

load_dotenv()

from vigil import __version__  # noqa: E402
from vigil.api.deps import get_service  # noqa: E402
from vigil.api.routes.anticheat import router as anticheat_router  # noqa: E402
from vigil.errors import InvalidInput, NotFound, UpstreamUnavailable  # noqa: E402

logger = logging.getLogger(__name__)


def _cors_origins() -> list[str]:
    """Allowed CORS origins from CORS_ALLOW_ORIGINS (comma-separated)."""
    raw = os.getenv("CORS_ALLOW_ORIGINS", "").strip()
    if raw:
        return [origin.strip().rstrip("/") for origin in raw.split(",") if origin.strip()]
    return []


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Startup/shutdown lifecycle — build the service, drain analysis jobs."""
    service = app.dependency_overrides.get(get_service, get_service)()
    logger.info("Vigil API started — engine ready (%s)", service.engine.url.database)
    yield
    if service.dispatcher is not None and service.dispatcher.pending:
        logger.info("Waiting for %d analysis jobs", service.dispatcher.pending)
        await service.dispatcher.wait_idle()
    logger.info("Vigil API shutting down")


app = FastAPI(
    title="Vigil Anti-Cheat API",
    version=__version__,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_cors_origins(),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(anticheat_router, prefix="/api")


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------
@app.exception_handler(InvalidInput)
async def invalid_input_handler(request: Request, exc: InvalidInput):
    return JSONResponse(
        status_code=422,
        content={"detail": exc.message, "field": exc.field},
    )


@app.exception_handler(UpstreamUnavailable)
async def upstream_handler(request: Request, exc: UpstreamUnavailable):
    logger.error("Upstream unavailable on %s: %s", request.url.path, exc)
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content={"detail": str(exc), "source": exc.source},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(
        status_code=status.HTTP_404_NOT_FOUND,
        content={"detail": str(exc)},
    )


@app.get("/api/health")
def health():
    return {"status": "ok"}
