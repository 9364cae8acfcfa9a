"""Pydantic models for profile feature."""

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class ProfileResponse(BaseModel):
    """Response model for the current caller's identity."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "subjectId": "6f1c2a6e-0d1b-4c1e-9a47-0b8c3f1f2d11",
                "displayName": "Ada Lovelace",
                "email": "ada@example.com",
                "issuerLabel": "v2",
            }
        },
    )

    subject_id: str = Field(description="Stable account identifier owning the caller's tasks")
    display_name: str | None = Field(None, description="Name from the token, if any")
    email: str | None = Field(None, description="Email or UPN from the token, if any")
    issuer_label: str = Field(description="Which configured issuer accepted the token")
