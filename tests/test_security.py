from datetime import datetime, timedelta, timezone

import pytest
from jose import jwt

from siteauth.core import security
from siteauth.core.exceptions import VerificationException


class TestPasswordHashing:
    def test_same_password_gives_different_hashes(self):
        first = security.get_password_hash("Str0ngPass!", 4)
        second = security.get_password_hash("Str0ngPass!", 4)

        assert first != second
        assert security.verify_password("Str0ngPass!", first)
        assert security.verify_password("Str0ngPass!", second)

    def test_hash_uses_configured_work_factor(self):
        hashed = security.get_password_hash("Str0ngPass!", 5)

        assert hashed.startswith("$2b$05$")

    def test_wrong_password_returns_false(self):
        hashed = security.get_password_hash("Str0ngPass!", 4)

        assert security.verify_password("Wr0ngPass!", hashed) is False

    def test_malformed_hash_raises(self):
        with pytest.raises(VerificationException):
            security.verify_password("Str0ngPass!", "not-a-bcrypt-hash")

    def test_dummy_hash_is_cached(self):
        assert security.get_dummy_hash(4) is security.get_dummy_hash(4)


class TestAccessTokens:
    def test_round_trip_carries_user_identity(self, settings):
        token = security.create_access_token(user_id=42, email="alice@example.com", settings=settings)

        payload = security.decode_access_token(token, settings)

        assert payload["sub"] == "42"
        assert payload["userId"] == 42
        assert payload["email"] == "alice@example.com"
        assert payload["token_type"] == "access"
        assert "hashed_password" not in payload
        assert "password" not in payload

    def test_accepted_just_before_expiry(self, settings):
        lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        issued_at = datetime.now(timezone.utc) - lifetime + timedelta(seconds=30)
        token = security.create_access_token(user_id=1, email="a@b.co", settings=settings, now=issued_at)

        assert security.decode_access_token(token, settings) is not None

    def test_rejected_just_after_expiry(self, settings):
        lifetime = timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
        issued_at = datetime.now(timezone.utc) - lifetime - timedelta(seconds=30)
        token = security.create_access_token(user_id=1, email="a@b.co", settings=settings, now=issued_at)

        assert security.decode_access_token(token, settings) is None

    def test_foreign_secret_is_rejected(self, settings):
        other = settings.model_copy(update={"SECRET_KEY": "someone-elses-secret"})
        token = security.create_access_token(user_id=1, email="a@b.co", settings=other)

        assert security.decode_access_token(token, settings) is None

    def test_wrong_token_type_is_rejected(self, settings):
        now = datetime.now(timezone.utc)
        token = jwt.encode(
            {
                "iss": settings.JWT_ISSUER,
                "aud": settings.JWT_AUDIENCE,
                "exp": now + timedelta(minutes=5),
                "sub": "1",
                "token_type": "refresh",
            },
            settings.SECRET_KEY,
            algorithm=settings.ALGORITHM,
        )

        assert security.decode_access_token(token, settings) is None

    def test_garbage_is_rejected(self, settings):
        assert security.decode_access_token("not.a.jwt", settings) is None

    def test_each_token_has_its_own_jti(self, settings):
        first = security.decode_access_token(
            security.create_access_token(user_id=1, email="a@b.co", settings=settings), settings
        )
        second = security.decode_access_token(
            security.create_access_token(user_id=1, email="a@b.co", settings=settings), settings
        )

        assert first["jti"] != second["jti"]
