"""Campus Gigs API -- Main Application Entry Point

Creates the FastAPI application, configures CORS middleware and error
handlers, registers all API route modules under the /api prefix, serves
uploaded attachments, and mounts the Socket.IO ASGI application for
real-time chat.

Run with::

    uvicorn src.main:app --host 0.0.0.0 --port 8000 --reload
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from src.core.config import settings
from src.core.exceptions import AppError
from src.services import file_service, notificationService

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Lifespan: startup / shutdown hooks
# ---------------------------------------------------------------------------

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    Startup:
      - Configure logging.
      - Import realtime handlers to register Socket.IO event listeners.

    Shutdown:
      - Let pending notification emails finish.
    """
    logging.basicConfig(
        level=settings.log_level.upper(),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    # Importing handlers is sufficient to register all Socket.IO events
    from src.realtime import handlers  # noqa: F401

    logger.info("%s %s starting", settings.app_name, settings.app_version)
    yield

    notifier = notificationService.get_notifier()
    if isinstance(notifier, notificationService.EmailNotifier):
        await notifier.drain()
    logger.info("%s stopped", settings.app_name)


# ---------------------------------------------------------------------------
# Application instance
# ---------------------------------------------------------------------------

app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    lifespan=lifespan,
)


# ---------------------------------------------------------------------------
# CORS middleware
# ---------------------------------------------------------------------------

_origins = [o.strip() for o in settings.cors_allowed_origins.split(",") if o.strip()]

app.add_middleware(
    CORSMiddleware,
    allow_origins=_origins or ["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------------------------------------------------------------------------
# Error handlers: every error body is {"message": "..."}
# ---------------------------------------------------------------------------

@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"message": exc.message})


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse(
        status_code=exc.status_code,
        content={"message": str(exc.detail)},
        headers=getattr(exc, "headers", None),
    )


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    errors = exc.errors()
    if errors:
        first = errors[0]
        field = ".".join(str(part) for part in first.get("loc", ())[1:])
        message = f"{field}: {first.get('msg')}" if field else str(first.get("msg"))
    else:
        message = "Invalid request"
    return JSONResponse(status_code=status.HTTP_400_BAD_REQUEST, content={"message": message})


@app.exception_handler(Exception)
async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    message = f"Server error: {exc}" if settings.debug else "Server error"
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content={"message": message},
    )


# ---------------------------------------------------------------------------
# Health check
# ---------------------------------------------------------------------------

@app.get("/health", tags=["Health"])
async def health():
    """Lightweight health check for load balancers and readiness probes."""
    return {"status": "ok", "version": settings.app_version}


# ---------------------------------------------------------------------------
# Register API route modules
# ---------------------------------------------------------------------------
# Each router already defines its own prefix (e.g. /jobs, /chat) and tags.
# We mount them under the shared /api prefix so the full paths become
# /api/jobs, /api/chat, etc.
# ---------------------------------------------------------------------------

from src.api.routes import (  # noqa: E402
    admin,
    auth,
    chat,
    god,
    jobs,
    profile,
    reports,
)

_prefix = settings.api_v1_prefix

app.include_router(auth.router, prefix=_prefix)
app.include_router(jobs.router, prefix=_prefix)
app.include_router(profile.router, prefix=_prefix)
app.include_router(reports.router, prefix=_prefix)
app.include_router(chat.router, prefix=_prefix)
app.include_router(admin.router, prefix=_prefix)
app.include_router(god.router, prefix=_prefix)


# ---------------------------------------------------------------------------
# Uploaded attachments
# ---------------------------------------------------------------------------

app.mount(
    f"/{settings.upload_dir.strip('/')}",
    StaticFiles(directory=file_service.upload_root()),
    name="uploads",
)


# ---------------------------------------------------------------------------
# Mount Socket.IO ASGI application
# ---------------------------------------------------------------------------

from src.realtime.socketServer import socket_app  # noqa: E402

app.mount("/ws", socket_app)
