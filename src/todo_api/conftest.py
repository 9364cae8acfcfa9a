"""Pytest configuration and shared fixtures."""

import uuid
from collections.abc import Callable
from datetime import UTC, datetime, timedelta
from typing import Any

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from fastapi.testclient import TestClient
from jose import jwk, jwt

from todo_api.config import IssuerConfig
from todo_api.main import app
from todo_api.services.auth import IssuerEntry, StaticKeySource, TokenValidator
from todo_api.services.rate_limiter import limiter
from todo_api.services.task_store import TaskStore

TENANT_ID = "52451440-0000-4000-8000-000000000001"
CLIENT_ID = "01d37875-0000-4000-8000-000000000002"
GRAPH_AUDIENCE = "00000003-0000-0000-c000-000000000000"
V1_ISSUER = f"https://sts.windows.net/{TENANT_ID}/"
V2_ISSUER = f"https://login.microsoftonline.com/{TENANT_ID}/v2.0"
ACCOUNT_OID = "6f1c2a6e-0d1b-4c1e-9a47-0b8c3f1f2d11"
SIGNING_KID = "test-key-1"


def _generate_rsa_key(kid: str) -> tuple[str, dict[str, Any]]:
    private_key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    private_pem = private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode()
    public_pem = (
        private_key.public_key()
        .public_bytes(
            encoding=serialization.Encoding.PEM,
            format=serialization.PublicFormat.SubjectPublicKeyInfo,
        )
        .decode()
    )
    public_jwk = jwk.construct(public_pem, algorithm="RS256").to_dict()
    public_jwk.update({"kid": kid, "use": "sig"})
    return private_pem, public_jwk


@pytest.fixture(scope="session")
def signing_key() -> tuple[str, dict[str, Any]]:
    """Provide an RSA private key (PEM) and its public JWK."""
    return _generate_rsa_key(SIGNING_KID)


@pytest.fixture(scope="session")
def rogue_key() -> tuple[str, dict[str, Any]]:
    """Provide an RSA key the issuers do not trust, published under the same kid."""
    return _generate_rsa_key(SIGNING_KID)


@pytest.fixture
def make_token(signing_key) -> Callable[..., str]:
    """
    Provide a factory for signed test tokens.

    Example:
        >>> token = make_token(issuer=V1_ISSUER, oid="abc", now=NOW)
    """

    def _make_token(
        issuer: str = V2_ISSUER,
        now: datetime | None = None,
        lifetime: timedelta = timedelta(hours=1),
        private_pem: str | None = None,
        kid: str | None = SIGNING_KID,
        drop: tuple[str, ...] = (),
        **claims: Any,
    ) -> str:
        now = now or datetime.now(UTC)
        if issuer == V1_ISSUER:
            payload: dict[str, Any] = {
                "aud": f"api://{CLIENT_ID}",
                "ver": "1.0",
                "unique_name": "ada@example.com",
                "upn": "ada@example.com",
            }
        else:
            payload = {"aud": CLIENT_ID, "ver": "2.0", "preferred_username": "ada@example.com"}
        payload.update(
            {
                "iss": issuer,
                "iat": int(now.timestamp()),
                "nbf": int(now.timestamp()),
                "exp": int((now + lifetime).timestamp()),
                "oid": ACCOUNT_OID,
                "sub": f"pairwise-{uuid.uuid4()}",
                "tid": TENANT_ID,
                "name": "Ada Lovelace",
            }
        )
        payload.update(claims)
        for name in drop:
            payload.pop(name, None)

        headers = {"kid": kid} if kid else {}
        return jwt.encode(
            payload, private_pem or signing_key[0], algorithm="RS256", headers=headers
        )

    return _make_token


@pytest.fixture
def issuer_configs(signing_key) -> list[IssuerConfig]:
    """Provide a v1 and a v2 issuer entry for the same tenant, with inline keys."""
    public_jwk = signing_key[1]
    return [
        IssuerConfig(
            issuer=V1_ISSUER,
            audiences=[f"api://{CLIENT_ID}", CLIENT_ID, GRAPH_AUDIENCE],
            keys=[public_jwk],
            label="v1",
        ),
        IssuerConfig(
            issuer=V2_ISSUER,
            audiences=[CLIENT_ID, GRAPH_AUDIENCE],
            keys=[public_jwk],
            label="v2",
        ),
    ]


@pytest.fixture
def token_validator(issuer_configs) -> TokenValidator:
    """Provide a validator trusting the test v1 and v2 issuers."""
    entries = [
        IssuerEntry(config=config, key_source=StaticKeySource(config.keys or []))
        for config in issuer_configs
    ]
    return TokenValidator(entries, clock_skew=timedelta(minutes=5))


@pytest.fixture
def task_store() -> TaskStore:
    """Provide an empty task store."""
    return TaskStore()


@pytest.fixture
def client(token_validator, task_store):
    """
    Provide FastAPI test client wired to the test validator and store.

    Rate limiting is disabled so tests can issue many requests.

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    app.state.token_validator = token_validator
    app.state.task_store = task_store
    rate_limit_enabled = limiter.enabled
    limiter.enabled = False
    yield TestClient(app)
    limiter.enabled = rate_limit_enabled
    del app.state.token_validator
    del app.state.task_store


@pytest.fixture
def auth_headers(make_token) -> Callable[..., dict[str, str]]:
    """Provide a factory for Authorization headers carrying a fresh test token."""

    def _auth_headers(**token_kwargs: Any) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(**token_kwargs)}"}

    return _auth_headers
