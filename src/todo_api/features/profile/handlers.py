"""API handlers for the caller's profile."""

from fastapi import APIRouter, Depends, Request

from todo_api.features.profile.models import ProfileResponse
from todo_api.services.auth.dependencies import get_current_user
from todo_api.services.auth.models import IdentityClaims
from todo_api.services.rate_limiter import default_rate_limit

router = APIRouter(tags=["profile"])


@router.get("/me", response_model=ProfileResponse)
@default_rate_limit
async def get_me(
    request: Request,
    current_user: IdentityClaims = Depends(get_current_user),
) -> ProfileResponse:
    """
    Return the display claims of the authenticated caller.

    Example Response:
        {
            "subjectId": "6f1c2a6e-0d1b-4c1e-9a47-0b8c3f1f2d11",
            "displayName": "Ada Lovelace",
            "email": "ada@example.com",
            "issuerLabel": "v2"
        }
    """
    return ProfileResponse(
        subject_id=current_user.subject_id,
        display_name=current_user.display_name,
        email=current_user.email,
        issuer_label=current_user.issuer_label,
    )
