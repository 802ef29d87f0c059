# src/campus_pulse/main.py
"""Main entry point for the Campus Pulse application."""

from __future__ import annotations

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import JSONResponse

from campus_pulse.api.v1 import pulse_router, reveals_router, system_router
from campus_pulse.core.errors import PulseError
from campus_pulse.core.settings import settings
from campus_pulse.services.collaborators import close_collaborators
from campus_pulse.services.sweeper import ExpirySweepWorker

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Start the expiry sweeper on startup and stop it on shutdown."""
    worker: ExpirySweepWorker | None = None
    if settings.sweeper_enabled:
        worker = ExpirySweepWorker()
        await worker.start()
    app.state.sweep_worker = worker
    try:
        yield
    finally:
        if worker is not None:
            await worker.stop()
        close_collaborators()


# Initialize FastAPI app
app = FastAPI(
    title=settings.app_name,
    description="Ephemeral anonymous campus feed with mutual identity reveal",
    version=settings.app_version,
    lifespan=lifespan,
)

# Add CORS middleware
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=settings.cors_allow_credentials,
    allow_methods=settings.cors_allow_methods,
    allow_headers=settings.cors_allow_headers,
)

# Add GZip middleware for compression
app.add_middleware(GZipMiddleware)

# Include API routers
app.include_router(pulse_router, prefix="/api/v1")
app.include_router(reveals_router, prefix="/api/v1")
app.include_router(system_router, prefix="/api/v1")


@app.exception_handler(PulseError)
async def pulse_error_handler(request: Request, exc: PulseError) -> JSONResponse:
    """Map service errors onto their HTTP status codes."""
    if exc.status_code >= 500:
        logger.warning("%s %s failed: %s", request.method, request.url.path, exc)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": str(exc), "error": exc.kind},
    )


@app.get("/health")
async def health_check() -> dict[str, str]:
    """Health check endpoint to verify the service is running."""
    return {"status": "ok"}


@app.get("/")
async def root() -> dict[str, str]:
    """Root endpoint with basic information about the API."""
    return {
        "name": settings.app_name,
        "version": settings.app_version,
        "description": "Ephemeral anonymous campus feed with mutual identity reveal",
        "docs": "/docs",
        "redoc": "/redoc",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("campus_pulse.main:app", host="0.0.0.0", port=8000, reload=settings.debug)
