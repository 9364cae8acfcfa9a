"""FastAPI application entry point."""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded

from todo_api.config import settings
from todo_api.features.profile import router as profile_router
from todo_api.features.todos import router as todos_router
from todo_api.services.auth import TokenValidator
from todo_api.services.rate_limiter import limiter
from todo_api.services.task_store import TaskStore

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Manage application lifecycle (startup and shutdown)."""
    # Startup
    try:
        logger.info("Initializing token validator")
        token_validator = TokenValidator.from_settings(settings)

        # Fetch remote JWKS immediately on startup
        await token_validator.refresh_keys()

        logger.info(
            "Token validator initialized successfully",
            extra={
                "issuers": [entry.config.display_label for entry in token_validator.issuers.values()],
                "clock_skew_seconds": settings.jwt_clock_skew_seconds,
            },
        )
    except Exception as e:
        logger.error(
            f"Failed to initialize token validator: {e}",
            exc_info=True,
            extra={"error_type": "token_validator_init_failed"},
        )
        raise

    if not token_validator.issuers:
        logger.warning("No issuers configured, every request will be rejected")

    app.state.token_validator = token_validator
    app.state.task_store = TaskStore()

    yield

    # Shutdown
    try:
        await token_validator.close()
        logger.info("Token validator cleanup completed")
    except Exception as e:
        logger.error(f"Error during token validator cleanup: {e}", exc_info=True)


app = FastAPI(
    title="Todo API",
    description="Per-user task list behind multi-issuer bearer token authentication",
    version="0.1.0",
    debug=settings.debug,
    lifespan=lifespan,
)

app.state.limiter = limiter
app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)

origins = settings.cors_origins.split(",")
logger.info(f"Origins : {origins}")

app.add_middleware(
    CORSMiddleware,
    allow_origins=origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE", "PATCH"],
    allow_headers=["Content-Type", "Authorization"],
)

app.include_router(todos_router, prefix=settings.api_prefix, tags=["todos"])
app.include_router(profile_router, prefix=settings.api_prefix, tags=["profile"])


class HealthCheckResponse(BaseModel):
    """Health check response."""

    status: str


@app.get("/health", response_model=HealthCheckResponse)
async def health_check() -> HealthCheckResponse:
    """Health check endpoint."""
    return HealthCheckResponse(status="healthy")
