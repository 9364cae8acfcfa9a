"""JWKS (JSON Web Key Set) fetching and caching for JWT verification."""

import asyncio
import logging
from datetime import UTC, datetime
from typing import Any

import httpx
from jose import jwk
from jose.backends.base import Key

logger = logging.getLogger(__name__)


def parse_jwks(keys_list: list[dict[str, Any]]) -> dict[str, Key]:
    """
    Convert a list of JWK dictionaries into public keys indexed by key ID.

    Keys without a 'kid' are skipped. RSA keys are bound to RS256 and EC keys
    to ES256; anything else falls back to the JWK's own 'alg'.

    Args:
        keys_list: The "keys" array of a JWKS document

    Returns:
        Mapping of kid -> constructed public key
    """
    keys: dict[str, Key] = {}
    for key_data in keys_list:
        kid = key_data.get("kid")
        if not kid:
            logger.warning("JWKS key missing 'kid', skipping")
            continue

        kty = key_data.get("kty")
        if kty == "EC":
            algorithm = "ES256"
        elif kty == "RSA":
            algorithm = "RS256"
        else:
            algorithm = key_data.get("alg", "RS256")

        keys[kid] = jwk.construct(key_data, algorithm=algorithm)

        logger.debug(
            f"Loaded key {kid} (type: {kty}, algorithm: {algorithm})",
            extra={"kid": kid, "kty": kty, "alg": algorithm},
        )
    return keys


class StaticKeySource:
    """
    Signing keys supplied inline in configuration.

    Useful for issuers whose keys are pinned at deploy time, and for tests.
    Exposes the same interface as JWKSCache.
    """

    def __init__(self, keys_list: list[dict[str, Any]]):
        self._keys = parse_jwks(keys_list)

    async def get_signing_key(self, kid: str) -> Key:
        key = self._keys.get(kid)
        if key is None:
            raise ValueError(
                f"Key ID '{kid}' not found in configured keys. "
                f"Available keys: {list(self._keys.keys())}"
            )
        return key

    async def refresh_keys(self) -> None:
        pass

    async def close(self) -> None:
        pass


class JWKSCache:
    """
    Manages JWKS fetching and caching with automatic refresh.

    Caches an issuer's published keys in-memory with a TTL. Automatically
    refreshes keys when the cache expires or when an unknown key ID is
    encountered (key rotation).

    Attributes:
        jwks_url: URL to fetch JWKS from
        cache_ttl: Cache time-to-live in seconds (default: 3600 = 1 hour)
        _keys: Cached JWKS keys dictionary (kid -> key) - supports RSA and EC keys
        min_refresh_interval: Minimum seconds between refreshes caused by an unknown kid
        _last_refresh: Timestamp of last successful JWKS fetch
        _http_client: HTTP client for fetching JWKS

    Example:
        >>> cache = JWKSCache("https://login.microsoftonline.com/<tenant>/discovery/v2.0/keys")
        >>> await cache.refresh_keys()
        >>> signing_key = await cache.get_signing_key("key-id-123")
    """

    def __init__(self, jwks_url: str, cache_ttl: int = 3600, min_refresh_interval: int = 30):
        """
        Initialize JWKS cache.

        Args:
            jwks_url: URL to fetch JWKS from
            cache_ttl: Cache TTL in seconds (default: 1 hour)
            min_refresh_interval: Seconds before an unknown kid may trigger
                another fetch (default: 30)
        """
        self.jwks_url = jwks_url
        self.cache_ttl = cache_ttl
        self.min_refresh_interval = min_refresh_interval
        self._keys: dict[str, Key] = {}
        self._last_refresh: datetime | None = None
        self._refresh_lock = asyncio.Lock()
        self._http_client = httpx.AsyncClient(
            timeout=httpx.Timeout(10.0, read=30.0, connect=10.0, write=10.0)
        )

    async def get_signing_key(self, kid: str) -> Key:
        """
        Get signing key by key ID (kid).

        Automatically refreshes JWKS if:
        1. Cache has expired (TTL exceeded)
        2. Key ID not found in cache (new key rotation)

        Args:
            kid: Key ID from JWT header

        Returns:
            Public key for signature verification (RSA or EC)

        Raises:
            ValueError: If key ID not found after refresh
            httpx.HTTPError: If JWKS fetch fails
        """
        if self._needs_refresh():
            await self.refresh_keys()

        key = self._keys.get(kid)

        # Unknown kid: refresh once in case the issuer rotated its keys,
        # at most once per min_refresh_interval
        if key is None and self._age_seconds() >= self.min_refresh_interval:
            logger.warning(
                f"Key ID '{kid}' not found in cache, refreshing JWKS",
                extra={"kid": kid, "cached_kids": list(self._keys.keys())},
            )
            await self.refresh_keys()
            key = self._keys.get(kid)

        if key is None:
            raise ValueError(
                f"Key ID '{kid}' not found in JWKS. Available keys: {list(self._keys.keys())}"
            )

        return key

    async def refresh_keys(self) -> None:
        """
        Fetch JWKS from the issuer and update cache.

        Callers that queued behind an in-flight refresh reuse its result
        instead of fetching again. The key map is swapped in a single
        assignment.

        Raises:
            httpx.HTTPError: If HTTP request fails
            ValueError: If JWKS response is invalid
        """
        seen_refresh = self._last_refresh
        async with self._refresh_lock:
            if self._last_refresh is not seen_refresh:
                return

            try:
                logger.info(f"Fetching JWKS from {self.jwks_url}")
                response = await self._http_client.get(self.jwks_url)
                response.raise_for_status()

                jwks_data = response.json()
                keys_list = jwks_data.get("keys", [])

                if not keys_list:
                    logger.warning(
                        "JWKS response contains no keys. Token verification will fail "
                        "until keys are available.",
                        extra={"jwks_url": self.jwks_url},
                    )

                new_keys = parse_jwks(keys_list)

                self._keys = new_keys
                self._last_refresh = datetime.now(UTC)

                logger.info(
                    "JWKS cache refreshed successfully",
                    extra={
                        "key_count": len(new_keys),
                        "key_ids": list(new_keys.keys()),
                        "ttl_seconds": self.cache_ttl,
                    },
                )

            except httpx.HTTPError as e:
                logger.error(
                    f"Failed to fetch JWKS from {self.jwks_url}: {e}",
                    exc_info=True,
                    extra={"error_type": "jwks_fetch_failed"},
                )
                raise

            except Exception as e:
                logger.error(
                    f"Failed to parse JWKS: {e}",
                    exc_info=True,
                    extra={"error_type": "jwks_parse_failed"},
                )
                raise

    def _needs_refresh(self) -> bool:
        """
        Check if cache needs refresh based on TTL.

        Returns:
            True if cache is stale or never initialized
        """
        return self._age_seconds() >= self.cache_ttl

    def _age_seconds(self) -> float:
        """Seconds since the last successful fetch (infinite if never fetched)."""
        if self._last_refresh is None:
            return float("inf")
        return (datetime.now(UTC) - self._last_refresh).total_seconds()

    async def close(self) -> None:
        """
        Close HTTP client and cleanup resources.

        Should be called during application shutdown.
        """
        await self._http_client.aclose()
        logger.info("JWKS cache closed", extra={"jwks_url": self.jwks_url})
