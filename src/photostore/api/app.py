"""
FastAPI application factory.

The app holds one StoreContext in ``app.state.context``. When no context is
passed in, one is built from configuration at startup and closed at
shutdown.
"""

from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from .. import __version__
from ..error_handling import MissingTokenError, PhotoStoreError, get_error_handler, http_status_for
from ..logging_config import configure_structured_logging, get_logger
from ..services.context import StoreContext
from .dependencies import missing_token
from .routes import health, photos, users

logger = get_logger(__name__)


def create_app(context: StoreContext | None = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        context: Store handles to serve from; built from configuration when omitted
    """
    configure_structured_logging()

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        owned = context is None
        if owned:
            app.state.context = StoreContext.from_config().open()
        logger.info("api_started", version=__version__)
        try:
            yield
        finally:
            if owned:
                app.state.context.close()
            logger.info("api_stopped")

    app = FastAPI(title="photostore", version=__version__, lifespan=lifespan)
    if context is not None:
        app.state.context = context.open()

    app.include_router(photos.router)
    app.include_router(users.router)
    app.include_router(health.router)

    register_error_handlers(app)
    return app


def register_error_handlers(app: FastAPI) -> None:
    """Answer every failure with ``{"error": code, "message": user_message}``."""

    @app.exception_handler(PhotoStoreError)
    async def handle_photostore_error(request: Request, exc: PhotoStoreError) -> JSONResponse:
        info = get_error_handler().handle_error(exc, {"path": request.url.path, "method": request.method})
        return JSONResponse(info.to_response(), status_code=http_status_for(exc))

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        # The body is parsed before dependencies run, so a missing header on a
        # protected route only surfaces here
        if missing_token(request):
            return await handle_photostore_error(request, MissingTokenError("Missing Authentication Header"))
        logger.warning("request_validation_failed", path=request.url.path, errors=str(exc.errors()))
        return JSONResponse(
            {"error": "invalid_request", "message": "The request body or parameters are malformed."},
            status_code=400,
        )

    @app.exception_handler(Exception)
    async def handle_unexpected_error(request: Request, exc: Exception) -> JSONResponse:
        info = get_error_handler().handle_error(exc, {"path": request.url.path, "method": request.method})
        return JSONResponse(info.to_response(), status_code=500)
