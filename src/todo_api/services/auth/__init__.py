"""Authentication module for multi-issuer bearer token validation."""

from todo_api.services.auth.dependencies import get_current_user, get_token_validator
from todo_api.services.auth.exceptions import (
    AuthenticationError,
    AuthErrorKind,
    ConfigurationError,
)
from todo_api.services.auth.jwks import JWKSCache, StaticKeySource
from todo_api.services.auth.jwt_validator import IssuerEntry, TokenValidator
from todo_api.services.auth.models import IdentityClaims

__all__ = [
    "get_current_user",
    "get_token_validator",
    "AuthenticationError",
    "AuthErrorKind",
    "ConfigurationError",
    "JWKSCache",
    "StaticKeySource",
    "IssuerEntry",
    "TokenValidator",
    "IdentityClaims",
]
