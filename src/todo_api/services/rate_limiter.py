"""Rate limiting service for API endpoints."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from todo_api.config import settings
from todo_api.services.auth.models import IdentityClaims

logger = logging.getLogger(__name__)


def get_subject_or_ip(request: Request) -> str:
    """
    Extract the authenticated subject or fall back to IP address.

    This function is used as the key_func for rate limiting:
    - Authenticated requests: Rate limited per subject identifier
    - Unauthenticated requests: Rate limited per IP address

    Args:
        request: FastAPI request object

    Returns:
        Subject key or IP address key
    """
    # Set by get_current_user
    user: IdentityClaims | None = getattr(request.state, "user", None)

    if user and user.subject_id:
        return f"user:{user.subject_id}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_subject_or_ip,
    default_limits=[],  # No global limits, applied per-endpoint
    storage_uri="memory://",  # Single-instance deployment
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """
    Rate limit tiers for different endpoint categories.

    All limits are per subject for authenticated endpoints.
    """

    # Reads
    DEFAULT = ["100 per minute", "1000 per hour"]

    # State-changing operations (POST/PUT/PATCH/DELETE)
    WRITE = ["30 per minute", "200 per hour"]


# Note: These decorators require the endpoint to have a 'request: Request' parameter
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
write_rate_limit = limiter.limit(";".join(RateLimitTiers.WRITE))
