"""
patchlog HTTP app.

A small FastAPI surface over HistoryEngine: save, read, patch, read a
historical version, roll back, list change-sets and audit a record.

Error mapping:
    InvalidVersionError     400
    VersionConflictError    409
    NoPreviousVersionError  409
    RecordNotFoundError     404
    ApplyFailureError       422
    other PatchlogError     500

Usage:
    uvicorn patchlog.api.http_app:create_app --factory --port 8090
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .._version import __version__
from ..config import PatchlogConfig
from ..errors import (
    ApplyFailureError,
    InvalidVersionError,
    NoPreviousVersionError,
    PatchlogError,
    RecordNotFoundError,
    VersionConflictError,
)
from ..observability import setup_logging
from ..versioning import HistoryEngine
from .config import ApiSettings
from .routes import router

ERROR_STATUS: dict[type[PatchlogError], int] = {
    InvalidVersionError: 400,
    VersionConflictError: 409,
    NoPreviousVersionError: 409,
    RecordNotFoundError: 404,
    ApplyFailureError: 422,
}


def status_for(error: PatchlogError) -> int:
    """HTTP status for a patchlog error."""
    for error_type, status in ERROR_STATUS.items():
        if isinstance(error, error_type):
            return status
    return 500


async def patchlog_error_handler(request: Request, exc: Exception) -> JSONResponse:
    assert isinstance(exc, PatchlogError)
    return JSONResponse(
        status_code=status_for(exc),
        content={"error": {"code": exc.code, "message": exc.message, "details": exc.details}},
    )


def create_app(
    engine: HistoryEngine | None = None,
    settings: ApiSettings | None = None,
) -> FastAPI:
    """Create the patchlog FastAPI app.

    Args:
        engine: Engine to serve; built from the environment when None and
            closed on shutdown
        settings: HTTP settings (defaults to PATCHLOG_API_* env vars)
    """
    settings = settings or ApiSettings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
        owned = app.state.engine is None
        if owned:
            config = PatchlogConfig.from_env()
            setup_logging(config.observability)
            app.state.engine = HistoryEngine(config)
        await app.state.engine.initialize()

        yield

        if owned:
            await app.state.engine.close()
            app.state.engine = None

    app = FastAPI(
        title="patchlog",
        description="Append-only version history for records.",
        version=__version__,
        lifespan=lifespan,
    )
    app.state.engine = engine
    app.state.settings = settings

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    app.add_exception_handler(PatchlogError, patchlog_error_handler)
    app.include_router(router, prefix="/v1")

    @app.get("/health")
    async def health():
        return {"status": "healthy", "service": "patchlog"}

    return app
