# =============================================================================
# tests/test_security.py - Passwords and Access Tokens
# =============================================================================

import pytest
from jose import ExpiredSignatureError, JWTError, jwt

from app.config import settings
from lib.security import create_access_token, decode_access_token, hash_password, verify_password


class TestPasswords:

    def test_hash_and_verify(self):
        hashed = hash_password("secret123")

        assert hashed != "secret123"
        assert verify_password("secret123", hashed)
        assert not verify_password("wrong", hashed)

    def test_missing_or_malformed_hash(self):
        assert not verify_password("secret123", None)
        assert not verify_password("secret123", "not-a-bcrypt-hash")


class TestAccessTokens:

    def test_round_trip_claims(self):
        token = create_access_token(user_id=42, email="ana@example.com", role="premium")

        claims = decode_access_token(token)

        assert claims["sub"] == "42"
        assert claims["role"] == "premium"

    def test_expired_token(self):
        token = create_access_token(user_id=1, email=None, role="free", expires_minutes=-1)

        with pytest.raises(ExpiredSignatureError):
            decode_access_token(token)

    def test_foreign_signature(self):
        token = jwt.encode({"sub": "1"}, "some-other-secret-key", algorithm=settings.JWT_ALGORITHM)

        with pytest.raises(JWTError):
            decode_access_token(token)
