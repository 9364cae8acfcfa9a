"""FastAPI dependencies for bearer token authentication."""

import logging
from datetime import UTC, datetime

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from todo_api.services.auth.exceptions import AuthenticationError
from todo_api.services.auth.jwt_validator import TokenValidator
from todo_api.services.auth.models import IdentityClaims
from todo_api.services.posthog import PostHogService

security = HTTPBearer(auto_error=False)
logger = logging.getLogger(__name__)


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Invalid authentication credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_token_validator(request: Request) -> TokenValidator:
    """
    Get the token validator owned by the running application.

    Raises:
        RuntimeError: If the application lifespan has not set one up
    """
    validator = getattr(request.app.state, "token_validator", None)
    if validator is None:
        raise RuntimeError(
            "Token validator not initialized. "
            "Ensure the application lifespan sets app.state.token_validator."
        )
    return validator


async def get_current_user(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
    validator: TokenValidator = Depends(get_token_validator),
) -> IdentityClaims:
    """
    Validate the bearer token and return the caller's identity.

    Every validation failure produces the same 401 response; the failure
    kind is only logged and tracked.

    Args:
        request: Incoming request, used to expose the identity to the rate limiter
        credentials: Bearer token from Authorization header
        validator: Token validator from application state

    Returns:
        IdentityClaims of the authenticated caller

    Raises:
        HTTPException: 401 if token is missing or invalid

    Example:
        @router.get("/me")
        async def me(current_user: IdentityClaims = Depends(get_current_user)):
            return {"subject_id": current_user.subject_id}
    """
    posthog_service = PostHogService()

    if credentials is None or not credentials.credentials.strip():
        logger.warning("Auth failed: missing bearer token", extra={"error_type": "missing_token"})
        posthog_service.capture(
            distinct_id="anonymous",
            event="authentication_failed",
            properties={"error": "missing_token"},
        )
        raise _unauthorized()

    try:
        identity = await validator.validate(credentials.credentials, datetime.now(UTC))
    except AuthenticationError as e:
        logger.warning(
            f"Auth failed: {e.kind.value}",
            extra={"error_type": e.kind.value, "issuer": e.issuer},
        )
        posthog_service.capture(
            distinct_id="anonymous",
            event="authentication_failed",
            properties={"error": e.kind.value},
        )
        raise _unauthorized() from e
    except Exception as e:
        logger.error(f"Auth failed: {str(e)}", exc_info=True)
        posthog_service.capture(
            distinct_id="anonymous",
            event="authentication_failed",
            properties={"error": "token_validation_failed"},
        )
        raise _unauthorized() from e

    logger.info(
        f"User authenticated: {identity.subject_id}",
        extra={"user_id": identity.subject_id, "issuer_label": identity.issuer_label},
    )
    posthog_service.capture(
        distinct_id=identity.subject_id,
        event="user_authenticated",
        properties={
            "timestamp": datetime.now(UTC).isoformat(),
            "issuer_label": identity.issuer_label,
        },
    )

    request.state.user = identity
    return identity
