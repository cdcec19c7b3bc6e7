"""FastAPI application for the automod moderation API.

Provides REST API endpoints wrapping the automod package for:
- Rule management (CRUD, activation, bulk priority changes, dry runs)
- Content moderation (pipeline execution and simulation)
- Moderation action log and statistics
- Editorial workflows (review and completion of content changes)
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

# Ensure the automod package is importable by adding the project root to sys.path.
_project_root = str(Path(__file__).resolve().parents[3])
if _project_root not in sys.path:
    sys.path.insert(0, _project_root)

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from automod import __version__
from automod.config import configure_logging
from automod.exceptions import (
    AutomodError,
    InvalidTransition,
    NotFound,
    PermissionDenied,
    ValidationError,
)
from web.backend.app.routers import moderation, rules, workflows

configure_logging()
logger = logging.getLogger(__name__)

app = FastAPI(
    title="automod API",
    description=(
        "REST API for rule-based content moderation. "
        "Provides endpoints for rule management, content moderation, "
        "the moderation action log, and editorial workflows."
    ),
    version=__version__,
)

# ---------------------------------------------------------------------------
# CORS middleware (allow all origins for development)
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# ---------------------------------------------------------------------------
# Exception handlers
# ---------------------------------------------------------------------------


@app.exception_handler(ValidationError)
async def validation_error_handler(request: Request, exc: ValidationError):
    return JSONResponse(
        status_code=status.HTTP_400_BAD_REQUEST,
        content={"detail": "Validation failed", "errors": exc.errors},
    )


@app.exception_handler(NotFound)
async def not_found_handler(request: Request, exc: NotFound):
    return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content={"detail": str(exc)})


@app.exception_handler(InvalidTransition)
async def invalid_transition_handler(request: Request, exc: InvalidTransition):
    return JSONResponse(
        status_code=status.HTTP_409_CONFLICT,
        content={"detail": str(exc), "current": exc.current, "target": exc.target},
    )


@app.exception_handler(PermissionDenied)
async def permission_denied_handler(request: Request, exc: PermissionDenied):
    return JSONResponse(status_code=status.HTTP_403_FORBIDDEN, content={"detail": str(exc)})


@app.exception_handler(AutomodError)
async def automod_error_handler(request: Request, exc: AutomodError):
    logger.warning("Unhandled automod error on %s: %s", request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"detail": str(exc)})


# ---------------------------------------------------------------------------
# Include routers
# ---------------------------------------------------------------------------
app.include_router(rules.router)
app.include_router(moderation.router)
app.include_router(workflows.router)


# ---------------------------------------------------------------------------
# Root and health-check endpoints
# ---------------------------------------------------------------------------


@app.get("/", tags=["meta"])
async def root():
    """Return basic API information."""
    return {
        "name": "automod API",
        "version": __version__,
        "description": "Rule-based content moderation REST API",
        "docs": "/docs",
        "openapi": "/openapi.json",
    }


@app.get("/health", tags=["meta"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy"}
