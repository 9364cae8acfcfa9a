"""Multi-issuer JWT verification against an accepted-issuer table."""

import logging
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from typing import Any, Protocol

from jose import JWTError, jwt
from jose.backends.base import Key

from todo_api.config import IssuerConfig, Settings
from todo_api.services.auth.exceptions import (
    AuthenticationError,
    AuthErrorKind,
    ConfigurationError,
)
from todo_api.services.auth.jwks import JWKSCache, StaticKeySource
from todo_api.services.auth.models import IdentityClaims

logger = logging.getLogger(__name__)


class SigningKeySource(Protocol):
    """Anything that can resolve a JWT 'kid' to a public key."""

    async def get_signing_key(self, kid: str) -> Key: ...

    async def refresh_keys(self) -> None: ...

    async def close(self) -> None: ...


@dataclass(frozen=True)
class IssuerEntry:
    """A configured issuer bound to its signing key source."""

    config: IssuerConfig
    key_source: SigningKeySource

    @property
    def audiences(self) -> frozenset[str]:
        return frozenset(self.config.audiences)


class TokenValidator:
    """
    Verifies bearer tokens minted by any issuer in a fixed table.

    The token's 'iss' claim selects the table entry by exact string match,
    so legacy (v1) and current (v2) issuers of the same identity provider are
    accepted side by side. Validation then runs in a fixed order and stops
    at the first failure:

    1. Signature, against the matched entry's signing keys
    2. Lifetime: 'exp' (and 'nbf' if present), with clock-skew tolerance
    3. Audience, against the matched entry's audiences
    4. Subject, from the entry's ordered subject claims

    Attributes:
        issuers: Mapping of issuer URL -> IssuerEntry
        clock_skew: Tolerance applied to lifetime checks
        algorithms: Accepted JWS algorithms

    Example:
        >>> validator = TokenValidator.from_settings(settings)
        >>> claims = await validator.validate(token, datetime.now(UTC))
        >>> claims.subject_id
        '6f1c2a6e-...'
    """

    def __init__(
        self,
        entries: list[IssuerEntry],
        clock_skew: timedelta = timedelta(minutes=5),
        algorithms: list[str] | None = None,
    ):
        self.issuers: dict[str, IssuerEntry] = {}
        for entry in entries:
            if entry.config.issuer in self.issuers:
                raise ConfigurationError(f"Duplicate issuer '{entry.config.issuer}'")
            self.issuers[entry.config.issuer] = entry
        self.clock_skew = clock_skew
        self.algorithms = algorithms or ["RS256"]

    @classmethod
    def from_settings(cls, settings: Settings) -> "TokenValidator":
        """
        Build a validator from the accepted-issuer table in settings.

        Remote issuers get a JWKSCache, inline key lists a StaticKeySource.
        """
        entries = []
        for config in settings.issuers:
            key_source: SigningKeySource
            if config.jwks_url is not None:
                key_source = JWKSCache(
                    config.jwks_url,
                    cache_ttl=settings.jwks_cache_ttl_seconds,
                    min_refresh_interval=settings.jwks_min_refresh_interval_seconds,
                )
            else:
                key_source = StaticKeySource(config.keys or [])
            entries.append(IssuerEntry(config=config, key_source=key_source))

        return cls(
            entries,
            clock_skew=timedelta(seconds=settings.jwt_clock_skew_seconds),
            algorithms=settings.jwt_algorithms,
        )

    async def validate(self, token: str, now: datetime) -> IdentityClaims:
        """
        Validate a bearer token and extract the caller's identity.

        Args:
            token: JWT string (without "Bearer " prefix)
            now: Current UTC time, injected for deterministic checks. A naive
                datetime is taken as UTC

        Returns:
            IdentityClaims for the token's account

        Raises:
            AuthenticationError: With the kind of the first failed check
        """
        try:
            unverified_claims = jwt.get_unverified_claims(token)
            unverified_header = jwt.get_unverified_header(token)
        except JWTError as e:
            raise self._reject(
                AuthErrorKind.INVALID_SIGNATURE, f"Malformed token: {e}"
            ) from e

        issuer = unverified_claims.get("iss")
        if not isinstance(issuer, str):
            issuer = None
        entry = self.issuers.get(issuer) if issuer else None
        if entry is None:
            raise self._reject(
                AuthErrorKind.UNKNOWN_ISSUER, f"Issuer '{issuer}' is not accepted", issuer
            )

        if now.tzinfo is None:
            now = now.replace(tzinfo=UTC)

        claims = await self._verify_signature(token, unverified_header, entry)
        self._check_lifetime(claims, now, entry)
        self._check_audience(claims, entry)
        identity = self._extract_identity(claims, entry)

        logger.debug(
            "Token validated",
            extra={
                "issuer_label": entry.config.display_label,
                "user_id": identity.subject_id,
                "kid": unverified_header.get("kid"),
            },
        )
        return identity

    async def _verify_signature(
        self, token: str, header: dict[str, Any], entry: IssuerEntry
    ) -> dict[str, Any]:
        issuer = entry.config.issuer
        kid = header.get("kid")
        if not kid:
            raise self._reject(
                AuthErrorKind.INVALID_SIGNATURE, "JWT header missing 'kid' (key ID)", issuer
            )

        try:
            signing_key = await entry.key_source.get_signing_key(kid)
        except Exception as e:
            raise self._reject(
                AuthErrorKind.INVALID_SIGNATURE, f"No signing key for kid '{kid}': {e}", issuer
            ) from e

        # Claims are checked below against the injected clock, not jose's
        try:
            return jwt.decode(
                token,
                signing_key,
                algorithms=self.algorithms,
                options={
                    "verify_signature": True,
                    "verify_aud": False,
                    "verify_iat": False,
                    "verify_exp": False,
                    "verify_nbf": False,
                    "verify_iss": False,
                    "verify_sub": False,
                    "verify_jti": False,
                    "verify_at_hash": False,
                },
            )
        except JWTError as e:
            raise self._reject(AuthErrorKind.INVALID_SIGNATURE, str(e), issuer) from e

    def _check_lifetime(self, claims: dict[str, Any], now: datetime, entry: IssuerEntry) -> None:
        issuer = entry.config.issuer
        now_ts = now.timestamp()
        skew = self.clock_skew.total_seconds()

        exp = claims.get("exp")
        if not isinstance(exp, (int, float)) or isinstance(exp, bool):
            raise self._reject(AuthErrorKind.EXPIRED, "Token has no valid 'exp' claim", issuer)
        if exp <= now_ts - skew:
            raise self._reject(AuthErrorKind.EXPIRED, "Token is expired", issuer)

        nbf = claims.get("nbf")
        if isinstance(nbf, (int, float)) and not isinstance(nbf, bool) and nbf > now_ts + skew:
            raise self._reject(AuthErrorKind.NOT_YET_VALID, "Token is not yet valid", issuer)

    def _check_audience(self, claims: dict[str, Any], entry: IssuerEntry) -> None:
        aud = claims.get("aud")
        if isinstance(aud, str):
            token_audiences = {aud}
        elif isinstance(aud, list):
            token_audiences = {a for a in aud if isinstance(a, str)}
        else:
            token_audiences = set()

        if not token_audiences & entry.audiences:
            raise self._reject(
                AuthErrorKind.AUDIENCE_MISMATCH,
                f"Audience {aud!r} is not accepted",
                entry.config.issuer,
            )

    def _extract_identity(self, claims: dict[str, Any], entry: IssuerEntry) -> IdentityClaims:
        subject_id = _first_claim(claims, entry.config.subject_claims)
        if subject_id is None:
            raise self._reject(
                AuthErrorKind.MISSING_SUBJECT,
                f"Token has none of the subject claims {entry.config.subject_claims}",
                entry.config.issuer,
            )

        return IdentityClaims(
            subject_id=subject_id,
            display_name=_first_claim(claims, ["name", "preferred_username", "unique_name"]),
            email=_first_claim(claims, ["email", "preferred_username", "upn", "unique_name"]),
            issuer=entry.config.issuer,
            issuer_label=entry.config.display_label,
            tenant_id=_first_claim(claims, ["tid"]),
            token_version=_first_claim(claims, ["ver"]),
        )

    def _reject(
        self, kind: AuthErrorKind, message: str, issuer: str | None = None
    ) -> AuthenticationError:
        entry = self.issuers.get(issuer) if issuer else None
        logger.debug(
            f"JWT verification failed: {message}",
            extra={
                "error_type": kind.value,
                "issuer_label": entry.config.display_label if entry else None,
            },
        )
        return AuthenticationError(kind, message, issuer=issuer)

    async def refresh_keys(self) -> None:
        """Warm every issuer's key source. Called once on startup."""
        for entry in self.issuers.values():
            await entry.key_source.refresh_keys()

    async def close(self) -> None:
        """Release key source resources. Called on shutdown."""
        for entry in self.issuers.values():
            await entry.key_source.close()


def _first_claim(claims: dict[str, Any], names: list[str]) -> str | None:
    """Return the first claim in ``names`` that is a non-empty string."""
    for name in names:
        value = claims.get(name)
        if isinstance(value, str) and value.strip():
            return value
    return None
