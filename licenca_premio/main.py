"""Main application entry point for the Licença-Prêmio API."""

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError as PydanticValidationError

from licenca_premio.api.licenses import licenses_router
from licenca_premio.config.settings import get_settings
from licenca_premio.services.license_aggregation_service import LicenseAggregationFacade, build_facade
from licenca_premio.utils.errors import LicencaError


# =============================================================================
# Logging Configuration
# =============================================================================

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


# =============================================================================
# Application Lifespan
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """Application lifespan manager for startup/shutdown events."""
    settings = get_settings()
    logger.info(f"Starting {settings.app_name}...")

    if settings.debug:
        logging.getLogger("licenca_premio").setLevel(logging.DEBUG)

    if app.state.facade is None:
        app.state.facade = build_facade(settings)

    yield

    logger.info(f"Shutting down {settings.app_name}...")


# =============================================================================
# Error Handlers
# =============================================================================

async def licenca_error_handler(request: Request, exc: LicencaError) -> JSONResponse:
    """Handle application errors and return structured responses."""
    response = exc.to_response()
    return JSONResponse(
        status_code=response.status_code,
        content=response.to_dict(),
    )


def _validation_response(errors) -> JSONResponse:
    field_errors = []
    for error in errors:
        loc = ".".join(str(x) for x in error["loc"])
        field_errors.append({
            "field": loc,
            "message": error["msg"],
            "code": error["type"],
        })

    return JSONResponse(
        status_code=400,
        content={
            "error": {
                "message": "Request validation failed",
                "code": "validation_error",
                "field_errors": field_errors,
            }
        },
    )


# =============================================================================
# Application Factory
# =============================================================================

def create_app(facade: Optional[LicenseAggregationFacade] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Without a facade, one is built at startup (or on first request) from
    ``LICENCA_DATA_FILE`` and ``REDIS_URL``.
    """
    settings = get_settings()

    app = FastAPI(
        title=settings.app_name,
        description=(
            "Licença-prêmio balances, urgency classification and "
            "retirement eligibility for civil servants."
        ),
        version=settings.app_version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        lifespan=lifespan,
    )
    app.state.facade = facade

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # Register routes
    app.include_router(licenses_router)

    # Register exception handlers
    app.add_exception_handler(LicencaError, licenca_error_handler)

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(
        request: Request,
        exc: RequestValidationError,
    ) -> JSONResponse:
        """Convert request parameter errors to structured response."""
        return _validation_response(exc.errors())

    @app.exception_handler(PydanticValidationError)
    async def pydantic_validation_handler(
        request: Request,
        exc: PydanticValidationError,
    ) -> JSONResponse:
        """Convert Pydantic validation errors to structured response."""
        return _validation_response(exc.errors())

    @app.exception_handler(Exception)
    async def generic_exception_handler(
        request: Request,
        exc: Exception,
    ) -> JSONResponse:
        """Handle unexpected exceptions."""
        logger.exception("Unexpected error occurred")
        return JSONResponse(
            status_code=500,
            content={
                "error": {
                    "message": "An unexpected error occurred",
                    "code": "internal_error",
                }
            },
        )

    # Health check endpoint
    @app.get("/health", tags=["Health"])
    async def health_check() -> dict:
        """Check application health."""
        return {"status": "healthy", "version": settings.app_version}

    return app


# =============================================================================
# Application Instance
# =============================================================================

app = create_app()


# =============================================================================
# Development Server
# =============================================================================

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "licenca_premio.main:app",
        host="0.0.0.0",
        port=8000,
        reload=True,
        log_level="info",
    )
