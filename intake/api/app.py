from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from intake.api.routes import documents, ingestion
from intake.config.settings import Settings
from intake.database.connection import close_pool, init_pool
from intake.logging.logger import Log
from intake.services import IntakeServices, build_intake_services
from intake.workflow.exceptions import (
    AuthenticationError,
    IntakeError,
    NotFoundError,
    ValidationError,
)

_ERROR_STATUS: tuple[tuple[type[IntakeError], int], ...] = (
    (ValidationError, 400),
    (AuthenticationError, 401),
    (NotFoundError, 404),
)


async def _intake_error_handler(request: Request, exc: Exception) -> JSONResponse:
    for error_type, status_code in _ERROR_STATUS:
        if isinstance(exc, error_type):
            return JSONResponse({"error": str(exc)}, status_code=status_code)
    Log.exception(f"{request.method} {request.url.path} failed: {exc}")
    return JSONResponse({"error": "Internal error"}, status_code=500)


def create_app(
    settings: Settings | None = None,
    services: IntakeServices | None = None,
) -> FastAPI:
    """Build the intake API.

    Without ``services`` the app owns the connection pool for its lifetime and
    builds the services from ``settings``.
    """
    settings = settings or Settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if services is not None:
            yield
            return
        Log.configure(settings.log_level)
        init_pool(settings)
        try:
            app.state.services = build_intake_services(settings)
            yield
        finally:
            close_pool()

    app = FastAPI(title="Document Intake API", version="0.1.0", lifespan=lifespan)
    if services is not None:
        app.state.services = services
    app.add_exception_handler(IntakeError, _intake_error_handler)

    app.include_router(ingestion.router, prefix="/api")
    app.include_router(documents.router, prefix="/api")

    @app.get("/health", include_in_schema=False)
    async def health() -> JSONResponse:
        return JSONResponse({"status": "ok", "env": settings.app_env})

    return app
