"""Custom exceptions for authentication."""

from enum import Enum


class AuthErrorKind(str, Enum):
    """Reason a bearer token was rejected."""

    UNKNOWN_ISSUER = "unknown_issuer"
    INVALID_SIGNATURE = "invalid_signature"
    EXPIRED = "expired"
    NOT_YET_VALID = "not_yet_valid"
    AUDIENCE_MISMATCH = "audience_mismatch"
    MISSING_SUBJECT = "missing_subject"


class AuthenticationError(Exception):
    """
    Raised when a bearer token fails validation.

    The ``kind`` is for logs and tests only. Callers at the HTTP boundary
    must report every kind as the same 401 response.
    """

    def __init__(self, kind: AuthErrorKind, message: str, issuer: str | None = None):
        super().__init__(message)
        self.kind = kind
        self.issuer = issuer


class ConfigurationError(Exception):
    """Raised when the accepted-issuer table is invalid."""

    pass
