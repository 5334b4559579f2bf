"""Partner Onboarding: Main FastAPI Application.

Onboarding and multi-stage approval for partner organizations: partners
move through email verification and three submission sections, then a
Grants Manager and a Chief Operations Officer review the submission.
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from .api import api_router
from .core import close_db, get_settings, init_db
from .schemas import ErrorResponse
from .services import PersistenceUnavailableError

settings = get_settings()

logging.basicConfig(
    level=settings.log_level.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: startup and shutdown."""
    logger.info(f"Starting {settings.app_name} {settings.app_version} ({settings.environment})")

    # Startup - skip init_db in production (tables are migrated)
    if settings.environment != "production":
        try:
            await init_db()
        except (OSError, SQLAlchemyError) as e:
            logger.warning(f"Could not initialize database: {e}")
    yield
    # Shutdown
    await close_db()


app = FastAPI(
    title=settings.app_name,
    version=settings.app_version,
    description="""
    ## Partner Onboarding API

    Onboarding and review workflow for partner organizations.

    ### Key Features

    - **Status State Machine**: Every status change is validated against a single transition table.
    - **Access Gate**: Computes where a caller may go and where to send them instead.
    - **Review Queues**: Grants Manager and COO queues with aging summaries.
    - **Atomic Decisions**: Compare-and-swap on status; a lost race is reported as a conflict.

    ### Authentication

    Endpoints require a JWT in the `Authorization: Bearer <token>` header,
    except registration, login, email verification and the access check.
    """,
    openapi_url=f"{settings.api_prefix}/openapi.json",
    docs_url=f"{settings.api_prefix}/docs",
    redoc_url=f"{settings.api_prefix}/redoc",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.allowed_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "OPTIONS"],
    allow_headers=["*"],
    max_age=86400,
)


@app.exception_handler(PersistenceUnavailableError)
async def persistence_unavailable_handler(request: Request, exc: PersistenceUnavailableError):
    """Database outages are retryable; nothing was persisted."""
    return JSONResponse(
        status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
        content=ErrorResponse(
            error="persistence_unavailable",
            message=str(exc),
        ).model_dump(),
    )


# Global exception handler
@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Handle unexpected exceptions."""
    logger.exception(f"Unhandled exception on {request.method} {request.url.path}")

    message = "An unexpected error occurred"
    if settings.debug:
        message = f"{message}: {str(exc)[:200]}"

    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=ErrorResponse(
            error="internal_error",
            message=message,
            details=[],
        ).model_dump(),
    )


# Health check endpoint
@app.get("/health", tags=["health"])
async def health_check():
    """Health check endpoint."""
    return {"status": "healthy", "version": settings.app_version}


# Include API routes
app.include_router(api_router, prefix=settings.api_prefix)


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "partner_onboarding.main:app",
        host="0.0.0.0",
        port=8000,
        reload=settings.debug,
    )
