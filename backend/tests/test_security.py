"""
Test suite for bearer token verification.
"""

from datetime import timedelta

import pytest
from jose import jwt

from storefront.core.security import TokenError, create_access_token, decode_token


class TestAccessTokens:
    """Test token creation and decoding."""

    def test_round_trip_claims(self, settings):
        token = create_access_token("user-1", "supplier", settings=settings, store="north")

        payload = decode_token(token, settings)

        assert payload["sub"] == "user-1"
        assert payload["role"] == "supplier"
        assert payload["store"] == "north"
        assert payload["type"] == "access"
        assert payload["exp"] > payload["iat"]

    def test_expired_token(self, settings):
        token = create_access_token(
            "user-1", "user", settings=settings, expires_delta=timedelta(minutes=-5)
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token, settings)

        assert exc_info.value.code == "TOKEN_EXPIRED"

    def test_wrong_signature(self, settings):
        other = settings.model_copy(update={"secret_key": "x" * 40})
        token = create_access_token("user-1", "user", settings=other)

        with pytest.raises(TokenError) as exc_info:
            decode_token(token, settings)

        assert exc_info.value.code == "TOKEN_INVALID"

    @pytest.mark.parametrize("token", ["", "abc.def", "not-a-token"])
    def test_malformed_tokens(self, settings, token):
        with pytest.raises(TokenError) as exc_info:
            decode_token(token, settings)

        assert exc_info.value.code in {"EMPTY_TOKEN", "TOKEN_INVALID"}

    def test_refresh_tokens_rejected(self, settings):
        token = jwt.encode(
            {"sub": "user-1", "role": "user", "type": "refresh"},
            settings.secret_key,
            algorithm=settings.jwt_algorithm,
        )

        with pytest.raises(TokenError) as exc_info:
            decode_token(token, settings)

        assert exc_info.value.code == "TOKEN_TYPE_MISMATCH"
