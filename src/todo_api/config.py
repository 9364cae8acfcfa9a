"""Application configuration using Pydantic Settings."""

from typing import Any

from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class IssuerConfig(BaseModel):
    """
    One entry of the accepted-issuer table.

    Exactly one signing key source must be configured: either a remote
    ``jwks_url`` or an inline ``keys`` list of JWK dictionaries.

    Example:
        >>> IssuerConfig(
        ...     issuer="https://login.microsoftonline.com/<tenant>/v2.0",
        ...     audiences=["<client-id>"],
        ...     jwks_url="https://login.microsoftonline.com/<tenant>/discovery/v2.0/keys",
        ...     label="v2",
        ... )
    """

    issuer: str = Field(min_length=1, description="Exact 'iss' claim value")
    audiences: list[str] = Field(min_length=1, description="Accepted 'aud' values")
    jwks_url: str | None = Field(None, description="Remote JWKS endpoint")
    keys: list[dict[str, Any]] | None = Field(None, description="Inline JWK list")
    subject_claims: list[str] = Field(
        default_factory=lambda: ["oid", "sub"],
        min_length=1,
        description="Claims tried in order for the stable subject identifier",
    )
    label: str | None = Field(None, description="Name used in logs, e.g. 'v1'")

    @model_validator(mode="after")
    def _check_key_source(self) -> "IssuerConfig":
        if (self.jwks_url is None) == (self.keys is None):
            raise ValueError(
                f"Issuer '{self.issuer}' must set exactly one of jwks_url or keys"
            )
        return self

    @property
    def display_label(self) -> str:
        return self.label or self.issuer


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    # System Configuration
    api_prefix: str = "/api"
    debug: bool = False
    cors_origins: str = "http://localhost:4200"
    rate_limit_enabled: bool = True

    # Accepted issuers, e.g. ISSUERS='[{"issuer": "...", "audiences": [...], "jwks_url": "..."}]'
    issuers: list[IssuerConfig] = []

    # JWT Verification Configuration
    jwt_algorithms: list[str] = ["RS256"]
    jwt_clock_skew_seconds: int = 300  # 5 minutes
    jwks_cache_ttl_seconds: int = 3600  # 1 hour
    jwks_min_refresh_interval_seconds: int = 30

    # PostHog Configuration
    posthog_api_key: str | None = None
    posthog_host: str = "https://app.posthog.com"


settings = Settings()
