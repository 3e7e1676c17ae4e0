# audiotour/main.py
# Application factory, lifecycle and global error handling.

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from contextlib import asynccontextmanager
from typing import Optional
import logging
import uuid

# Local imports
from audiotour.core.config import Settings, settings as default_settings
from audiotour.api.routes import router as api_router
from audiotour.logging import configure_logging
from audiotour.middleware.logging import LoggingMiddleware
from audiotour.models.dto import ErrorResponse

logger = logging.getLogger(__name__)

def create_app(app_settings: Optional[Settings] = None) -> FastAPI:
    app_settings = app_settings or default_settings

    # --- Application Lifecycle Management ---
    @asynccontextmanager
    async def lifespan(app: FastAPI):
        logger.info(f"Application startup: v{app_settings.VERSION}")
        if not app_settings.has_places_credential:
            logger.warning("FOURSQUARE_API_KEY is not set; every tour request will return NO_RESULT")
        if not app_settings.has_generation_credential:
            logger.warning("OPENAI_API_KEY is not set; narratives will use the template fallback")
        yield
        logger.info("Application shutdown.")

    app = FastAPI(
        title=app_settings.PROJECT_NAME,
        version=app_settings.VERSION,
        description=app_settings.BRIEF_DESCRIPTION,
        lifespan=lifespan,
    )
    # Injected into every request's pipeline; core code never reads the environment.
    app.state.settings = app_settings

    app.add_middleware(LoggingMiddleware)
    app.include_router(api_router, prefix="/api")

    # --- Health Check Endpoint ---
    @app.get("/health", status_code=status.HTTP_200_OK)
    async def health_check():
        return {
            "status": "ok",
            "places_configured": app_settings.has_places_credential,
            "generation_configured": app_settings.has_generation_credential,
        }

    # --- Request validation errors use the same error body as everything else ---
    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={
                "detail": ErrorResponse(
                    error="INVALID_REQUEST",
                    detail=f"Invalid request body: {exc.errors()[0].get('msg') if exc.errors() else 'malformed'}",
                ).model_dump()
            },
        )

    # --- Global Exception Handler (for unhandled errors) ---
    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        error_id = str(uuid.uuid4())
        logger.error(f"Unhandled exception (ID: {error_id}): {exc}", exc_info=True)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={
                "detail": {
                    "error": "INTERNAL_SERVER_ERROR",
                    "detail": "An unexpected error occurred. Please report this error ID.",
                    "error_id": error_id
                }
            }
        )

    return app

configure_logging()
app = create_app()
