"""Data models for authentication."""

from pydantic import BaseModel


class IdentityClaims(BaseModel):
    """
    Identity extracted from a validated bearer token.

    Recomputed on every request and never persisted. ``subject_id`` is the
    partition key for the caller's tasks.

    Attributes:
        subject_id: Stable per-account identifier ('oid' or 'sub' claim)
        display_name: Human readable name, if the token carries one
        email: Email or UPN, if the token carries one
        issuer: The 'iss' claim that matched the issuer table
        issuer_label: Configured label of the matched issuer (e.g. "v1")
        tenant_id: Directory tenant from the 'tid' claim
        token_version: Token format version from the 'ver' claim

    Example:
        >>> claims = IdentityClaims(
        ...     subject_id="6f1c2a6e-...",
        ...     display_name="Ada Lovelace",
        ...     email="ada@example.com",
        ...     issuer="https://login.microsoftonline.com/<tenant>/v2.0",
        ...     issuer_label="v2",
        ... )
    """

    subject_id: str
    display_name: str | None = None
    email: str | None = None
    issuer: str
    issuer_label: str
    tenant_id: str | None = None
    token_version: str | None = None
