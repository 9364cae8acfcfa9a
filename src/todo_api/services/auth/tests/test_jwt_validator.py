"""Tests for the multi-issuer token validator."""

from datetime import UTC, datetime, timedelta
from unittest.mock import AsyncMock, Mock, patch

import pytest
from jose import jwt
from pydantic import ValidationError

from todo_api.config import IssuerConfig, Settings
from todo_api.conftest import ACCOUNT_OID, CLIENT_ID, SIGNING_KID, TENANT_ID, V1_ISSUER, V2_ISSUER
from todo_api.services.auth.exceptions import AuthenticationError, AuthErrorKind, ConfigurationError
from todo_api.services.auth.jwks import JWKSCache, StaticKeySource
from todo_api.services.auth.jwt_validator import IssuerEntry, TokenValidator

NOW = datetime(2026, 1, 15, 12, 0, tzinfo=UTC)


async def _rejection(validator: TokenValidator, token: str, now: datetime = NOW) -> AuthErrorKind:
    with pytest.raises(AuthenticationError) as exc_info:
        await validator.validate(token, now)
    return exc_info.value.kind


@pytest.mark.asyncio
class TestAcceptedTokens:
    """Tokens that must validate."""

    async def test_v2_token_returns_identity(self, token_validator, make_token):
        token = make_token(issuer=V2_ISSUER, now=NOW, email="ada@contoso.com")

        identity = await token_validator.validate(token, NOW)

        assert identity.subject_id == ACCOUNT_OID
        assert identity.display_name == "Ada Lovelace"
        assert identity.email == "ada@contoso.com"
        assert identity.issuer == V2_ISSUER
        assert identity.issuer_label == "v2"
        assert identity.tenant_id == TENANT_ID
        assert identity.token_version == "2.0"

    async def test_v1_token_returns_identity(self, token_validator, make_token):
        token = make_token(issuer=V1_ISSUER, now=NOW)

        identity = await token_validator.validate(token, NOW)

        assert identity.subject_id == ACCOUNT_OID
        assert identity.email == "ada@example.com"
        assert identity.issuer_label == "v1"
        assert identity.token_version == "1.0"

    async def test_v1_and_v2_tokens_map_to_same_subject(self, token_validator, make_token):
        """Both issuer formats carry the account's object id, so they share a partition."""
        v1 = await token_validator.validate(make_token(issuer=V1_ISSUER, now=NOW), NOW)
        v2 = await token_validator.validate(make_token(issuer=V2_ISSUER, now=NOW), NOW)

        assert v1.subject_id == v2.subject_id == ACCOUNT_OID
        assert v1.issuer != v2.issuer

    async def test_repeated_validation_is_stable(self, token_validator, make_token):
        token = make_token(now=NOW)

        first = await token_validator.validate(token, NOW)
        second = await token_validator.validate(token, NOW)

        assert first == second

    async def test_audience_list_with_one_match(self, token_validator, make_token):
        token = make_token(now=NOW, aud=["https://other.example.com", CLIENT_ID])

        identity = await token_validator.validate(token, NOW)
        assert identity.subject_id == ACCOUNT_OID

    async def test_expired_within_clock_skew_is_accepted(self, token_validator, make_token):
        token = make_token(now=NOW - timedelta(hours=1, minutes=4))

        identity = await token_validator.validate(token, NOW)
        assert identity.subject_id == ACCOUNT_OID

    async def test_naive_now_is_treated_as_utc(self, token_validator, make_token):
        token = make_token(now=NOW)

        aware = await token_validator.validate(token, NOW)
        naive = await token_validator.validate(token, NOW.replace(tzinfo=None))

        assert naive == aware

    async def test_falls_back_to_sub_when_oid_missing(self, token_validator, make_token):
        token = make_token(now=NOW, drop=("oid",), sub="pairwise-subject")

        identity = await token_validator.validate(token, NOW)
        assert identity.subject_id == "pairwise-subject"

    async def test_blank_oid_is_skipped(self, token_validator, make_token):
        token = make_token(now=NOW, oid="  ", sub="pairwise-subject")

        identity = await token_validator.validate(token, NOW)
        assert identity.subject_id == "pairwise-subject"


@pytest.mark.asyncio
class TestRejectedTokens:
    """Each failed check is reported with its own kind."""

    async def test_unknown_issuer(self, token_validator, make_token):
        token = make_token(now=NOW, iss="https://evil.example.com/")

        assert await _rejection(token_validator, token) == AuthErrorKind.UNKNOWN_ISSUER

    async def test_issuer_match_is_exact(self, token_validator, make_token):
        token = make_token(now=NOW, iss=V2_ISSUER + "/")

        assert await _rejection(token_validator, token) == AuthErrorKind.UNKNOWN_ISSUER

    async def test_missing_issuer(self, token_validator, make_token):
        token = make_token(now=NOW, drop=("iss",))

        assert await _rejection(token_validator, token) == AuthErrorKind.UNKNOWN_ISSUER

    async def test_unknown_issuer_checked_before_signature(
        self, token_validator, make_token, rogue_key
    ):
        token = make_token(now=NOW, iss="https://evil.example.com/", private_pem=rogue_key[0])

        assert await _rejection(token_validator, token) == AuthErrorKind.UNKNOWN_ISSUER

    async def test_signature_from_untrusted_key(self, token_validator, make_token, rogue_key):
        token = make_token(now=NOW, private_pem=rogue_key[0])

        assert await _rejection(token_validator, token) == AuthErrorKind.INVALID_SIGNATURE

    async def test_missing_kid(self, token_validator, make_token):
        token = make_token(now=NOW, kid=None)

        assert await _rejection(token_validator, token) == AuthErrorKind.INVALID_SIGNATURE

    async def test_unknown_kid(self, token_validator, make_token):
        token = make_token(now=NOW, kid="unknown-kid")

        assert await _rejection(token_validator, token) == AuthErrorKind.INVALID_SIGNATURE

    async def test_malformed_token(self, token_validator):
        assert await _rejection(token_validator, "not-a-jwt") == AuthErrorKind.INVALID_SIGNATURE

    async def test_disallowed_algorithm(self, token_validator):
        token = jwt.encode(
            {"iss": V2_ISSUER, "aud": CLIENT_ID, "oid": ACCOUNT_OID, "exp": 9999999999},
            "shared-secret",
            algorithm="HS256",
            headers={"kid": SIGNING_KID},
        )

        assert await _rejection(token_validator, token) == AuthErrorKind.INVALID_SIGNATURE

    async def test_expired_beyond_clock_skew(self, token_validator, make_token):
        token = make_token(now=NOW - timedelta(hours=1, minutes=6))

        assert await _rejection(token_validator, token) == AuthErrorKind.EXPIRED

    async def test_expiry_exactly_at_skew_boundary(self, token_validator, make_token):
        token = make_token(now=NOW, exp=int((NOW - timedelta(minutes=5)).timestamp()))

        assert await _rejection(token_validator, token) == AuthErrorKind.EXPIRED

    async def test_missing_expiry(self, token_validator, make_token):
        token = make_token(now=NOW, drop=("exp",))

        assert await _rejection(token_validator, token) == AuthErrorKind.EXPIRED

    async def test_not_yet_valid(self, token_validator, make_token):
        token = make_token(now=NOW + timedelta(minutes=10))

        assert await _rejection(token_validator, token) == AuthErrorKind.NOT_YET_VALID

    async def test_audience_mismatch(self, token_validator, make_token):
        token = make_token(now=NOW, aud="https://other.example.com")

        assert await _rejection(token_validator, token) == AuthErrorKind.AUDIENCE_MISMATCH

    async def test_audience_of_other_issuer_entry_is_rejected(self, token_validator, make_token):
        """The v1-only App ID URI audience is not accepted on v2 tokens."""
        token = make_token(issuer=V2_ISSUER, now=NOW, aud=f"api://{CLIENT_ID}")

        assert await _rejection(token_validator, token) == AuthErrorKind.AUDIENCE_MISMATCH

    async def test_missing_subject(self, token_validator, make_token):
        token = make_token(now=NOW, drop=("oid", "sub"))

        assert await _rejection(token_validator, token) == AuthErrorKind.MISSING_SUBJECT

    async def test_expiry_checked_before_audience(self, token_validator, make_token):
        token = make_token(now=NOW - timedelta(hours=2), aud="https://other.example.com")

        assert await _rejection(token_validator, token) == AuthErrorKind.EXPIRED

    async def test_signature_checked_before_expiry(self, token_validator, make_token, rogue_key):
        token = make_token(now=NOW - timedelta(hours=2), private_pem=rogue_key[0])

        assert await _rejection(token_validator, token) == AuthErrorKind.INVALID_SIGNATURE

    async def test_key_source_failure_is_invalid_signature(self, issuer_configs, make_token):
        failing_source = Mock()
        failing_source.get_signing_key = AsyncMock(side_effect=RuntimeError("JWKS unreachable"))
        validator = TokenValidator([IssuerEntry(config=issuer_configs[1], key_source=failing_source)])

        assert await _rejection(validator, make_token(now=NOW)) == AuthErrorKind.INVALID_SIGNATURE

    async def test_error_records_issuer(self, token_validator, make_token):
        token = make_token(now=NOW, aud="https://other.example.com")

        with pytest.raises(AuthenticationError) as exc_info:
            await token_validator.validate(token, NOW)
        assert exc_info.value.issuer == V2_ISSUER

    async def test_empty_table_rejects_everything(self, make_token):
        validator = TokenValidator([])

        assert await _rejection(validator, make_token(now=NOW)) == AuthErrorKind.UNKNOWN_ISSUER

    async def test_expired_against_naive_now(self, token_validator, make_token):
        token = make_token(now=NOW - timedelta(hours=1, minutes=6))

        kind = await _rejection(token_validator, token, NOW.replace(tzinfo=None))
        assert kind == AuthErrorKind.EXPIRED

    async def test_rejection_logged_at_debug_only(self, token_validator, make_token):
        """The request boundary owns the warning, so a rejection is logged there once."""
        token = make_token(now=NOW, aud="https://other.example.com")

        with patch("todo_api.services.auth.jwt_validator.logger") as mock_logger:
            await _rejection(token_validator, token)

        mock_logger.warning.assert_not_called()
        mock_logger.debug.assert_called_once()
        assert mock_logger.debug.call_args.kwargs["extra"]["error_type"] == "audience_mismatch"


@pytest.mark.asyncio
class TestValidatorConfiguration:
    """Tests for building the issuer table."""

    async def test_from_settings_builds_key_sources(self, signing_key):
        settings = Settings(
            issuers=[
                IssuerConfig(
                    issuer=V1_ISSUER,
                    audiences=[CLIENT_ID],
                    jwks_url=f"https://login.microsoftonline.com/{TENANT_ID}/discovery/keys",
                    label="v1",
                ),
                IssuerConfig(issuer=V2_ISSUER, audiences=[CLIENT_ID], keys=[signing_key[1]]),
            ],
            jwt_clock_skew_seconds=120,
            jwks_cache_ttl_seconds=60,
            jwks_min_refresh_interval_seconds=5,
        )

        validator = TokenValidator.from_settings(settings)

        assert isinstance(validator.issuers[V1_ISSUER].key_source, JWKSCache)
        assert validator.issuers[V1_ISSUER].key_source.cache_ttl == 60
        assert validator.issuers[V1_ISSUER].key_source.min_refresh_interval == 5
        assert isinstance(validator.issuers[V2_ISSUER].key_source, StaticKeySource)
        assert validator.clock_skew == timedelta(seconds=120)
        assert validator.algorithms == ["RS256"]
        await validator.close()

    async def test_duplicate_issuer_raises(self, issuer_configs):
        entry = IssuerEntry(config=issuer_configs[0], key_source=Mock())

        with pytest.raises(ConfigurationError, match="Duplicate issuer"):
            TokenValidator([entry, entry])

    async def test_issuer_requires_exactly_one_key_source(self, signing_key):
        with pytest.raises(ValidationError):
            IssuerConfig(issuer=V2_ISSUER, audiences=[CLIENT_ID])

        with pytest.raises(ValidationError):
            IssuerConfig(
                issuer=V2_ISSUER,
                audiences=[CLIENT_ID],
                jwks_url="https://example.com/keys",
                keys=[signing_key[1]],
            )

    async def test_refresh_and_close_reach_every_source(self, issuer_configs):
        sources = [Mock(refresh_keys=AsyncMock(), close=AsyncMock()) for _ in issuer_configs]
        validator = TokenValidator(
            [IssuerEntry(config=c, key_source=s) for c, s in zip(issuer_configs, sources)]
        )

        await validator.refresh_keys()
        await validator.close()

        for source in sources:
            source.refresh_keys.assert_awaited_once()
            source.close.assert_awaited_once()
