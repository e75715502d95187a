from datetime import timedelta

import pytest
from sqlalchemy import update

from siteauth.core import security
from siteauth.core.exceptions import (
    AccountLockedException,
    DuplicateEmailException,
    InvalidCredentialsException,
    InvalidTokenException,
    ValidationException,
)
from siteauth.models.user import User
from siteauth.services.auth_service import AuthService, validate_password

EMAIL = "alice@example.com"
PASSWORD = "Str0ngPass!"


async def _register(auth_service, **overrides):
    data = {"email": EMAIL, "password": PASSWORD, "first_name": "Alice", "last_name": "Anderson"}
    data.update(overrides)
    return await auth_service.register(**data)


async def _expire_lock(db, user_id):
    await db.execute(
        update(User)
        .where(User.id == user_id)
        .values(locked_until=security.utcnow() - timedelta(seconds=1))
    )
    await db.commit()


class TestRegister:
    async def test_register_then_login_yields_same_identity(self, auth_service):
        token, user = await _register(auth_service)

        identity = await auth_service.verify(token)
        assert identity.user_id == user.id

        login_token, logged_in = await auth_service.login(email=EMAIL, password=PASSWORD)
        assert logged_in.id == user.id
        assert (await auth_service.verify(login_token)).user_id == user.id

    async def test_names_are_trimmed(self, auth_service):
        _, user = await _register(auth_service, first_name="  Alice ", last_name=" Anderson")

        assert user.first_name == "Alice"
        assert user.last_name == "Anderson"

    async def test_duplicate_email(self, auth_service):
        await _register(auth_service)

        with pytest.raises(DuplicateEmailException):
            await _register(auth_service, password="Different1!", first_name="Bob", last_name="Brown")

    @pytest.mark.parametrize(
        "overrides, field",
        [
            ({"email": "not-an-email"}, "email"),
            ({"email": ""}, "email"),
            ({"email": "a" * 250 + "@example.com"}, "email"),
            ({"password": "short1!"}, "password"),
            ({"password": "alllowercase1!"}, "password"),
            ({"password": "NoDigitsHere!"}, "password"),
            ({"password": "NoSpecial123"}, "password"),
            ({"password": "Aa1!" + "x" * 69}, "password"),
            ({"password": "Aa1!" + "\u00e9" * 35}, "password"),
            ({"email": "alice@ex..com"}, "email"),
            ({"first_name": "A"}, "firstName"),
            ({"last_name": "   "}, "lastName"),
            ({"confirm_password": "Mismatch1!"}, "confirmPassword"),
        ],
    )
    async def test_invalid_input(self, auth_service, overrides, field):
        with pytest.raises(ValidationException) as exc_info:
            await _register(auth_service, **overrides)

        assert field in exc_info.value.errors

    async def test_validation_happens_before_storage(self, auth_service, users):
        with pytest.raises(ValidationException):
            await _register(auth_service, password="weak")

        assert await users.count_active() == 0


class TestLogin:
    async def test_unknown_email_is_invalid_credentials(self, auth_service):
        with pytest.raises(InvalidCredentialsException) as exc_info:
            await auth_service.login(email="nobody@example.com", password=PASSWORD)

        assert exc_info.value.message == "Invalid email or password"

    async def test_wrong_password_is_invalid_credentials(self, auth_service):
        await _register(auth_service)

        with pytest.raises(InvalidCredentialsException) as exc_info:
            await auth_service.login(email=EMAIL, password="Wr0ngPass!")

        assert exc_info.value.message == "Invalid email or password"

    async def test_missing_fields(self, auth_service):
        with pytest.raises(ValidationException) as exc_info:
            await auth_service.login(email="", password="")

        assert set(exc_info.value.errors) == {"email", "password"}

    async def test_success_resets_failed_attempts(self, auth_service, users):
        _, user = await _register(auth_service)
        for _ in range(3):
            with pytest.raises(InvalidCredentialsException):
                await auth_service.login(email=EMAIL, password="Wr0ngPass!")
        assert (await users.get(id=user.id)).login_attempts == 3

        _, logged_in = await auth_service.login(email=EMAIL, password=PASSWORD)

        assert logged_in.login_attempts == 0
        assert logged_in.last_login is not None

    async def test_fifth_failure_locks_and_correct_password_is_refused(self, auth_service, settings):
        await _register(auth_service)

        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS - 1):
            with pytest.raises(InvalidCredentialsException):
                await auth_service.login(email=EMAIL, password="Wr0ngPass!")

        with pytest.raises(AccountLockedException) as exc_info:
            await auth_service.login(email=EMAIL, password="Wr0ngPass!")
        assert exc_info.value.locked_until is not None

        with pytest.raises(AccountLockedException):
            await auth_service.login(email=EMAIL, password=PASSWORD)

    async def test_locked_account_skips_password_check(self, auth_service, users, settings, monkeypatch):
        _, user = await _register(auth_service)
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await users.record_failed_login(user_id=user.id)

        async def fail_if_called(*args, **kwargs):
            raise AssertionError("password must not be verified while locked")

        monkeypatch.setattr(users, "verify_password", fail_if_called)

        with pytest.raises(AccountLockedException):
            await auth_service.login(email=EMAIL, password=PASSWORD)

    async def test_login_after_lock_window_succeeds_and_resets(self, auth_service, users, db, settings):
        _, user = await _register(auth_service)
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await users.record_failed_login(user_id=user.id)
        await _expire_lock(db, user.id)

        _, logged_in = await auth_service.login(email=EMAIL, password=PASSWORD)

        assert logged_in.login_attempts == 0
        assert logged_in.locked_until is None

    async def test_wrong_password_after_lock_window_relocks(self, auth_service, users, db, settings):
        _, user = await _register(auth_service)
        for _ in range(settings.LOGIN_MAX_FAILED_ATTEMPTS):
            await users.record_failed_login(user_id=user.id)
        await _expire_lock(db, user.id)

        with pytest.raises(AccountLockedException):
            await auth_service.login(email=EMAIL, password="Wr0ngPass!")

    async def test_deactivated_user_cannot_log_in(self, auth_service, users):
        _, user = await _register(auth_service)
        await users.deactivate(user_id=user.id)

        with pytest.raises(InvalidCredentialsException):
            await auth_service.login(email=EMAIL, password=PASSWORD)


class TestTokens:
    async def test_verify_rejects_garbage(self, auth_service):
        with pytest.raises(InvalidTokenException):
            await auth_service.verify("garbage")

    async def test_logout_revokes_token(self, auth_service):
        token, _ = await _register(auth_service)

        assert await auth_service.logout(token) is True

        with pytest.raises(InvalidTokenException):
            await auth_service.verify(token)

    async def test_logout_leaves_other_tokens_valid(self, auth_service):
        first, user = await _register(auth_service)
        second, _ = await auth_service.login(email=EMAIL, password=PASSWORD)

        await auth_service.logout(first)

        assert (await auth_service.verify(second)).user_id == user.id

    async def test_prune_only_drops_expired_revocations(self, auth_service, sessions, settings):
        token, user = await _register(auth_service)
        await auth_service.logout(token)
        await sessions.revoke(
            token="already-expired-token",
            user_id=user.id,
            expires_at=security.utcnow() - timedelta(minutes=1),
        )

        assert await auth_service.prune_revoked_sessions() == 1
        assert await sessions.is_revoked(token=token)


def test_password_policy_accepts_strong_password():
    assert validate_password("Str0ngPass!") is None


def test_password_policy_accepts_exactly_72_bytes():
    assert validate_password("Aa1!" + "x" * 68) is None


def test_passwords_sharing_a_72_byte_prefix_cannot_both_register():
    prefix = "Aa1!" + "x" * 68
    assert validate_password(prefix + "one") is not None
    assert validate_password(prefix + "two") is not None


@pytest.mark.parametrize(
    "remaining, minutes",
    [
        (timedelta(minutes=15), 15),
        (timedelta(minutes=14, seconds=1), 15),
        (timedelta(minutes=14), 14),
        (timedelta(seconds=1), 1),
    ],
)
def test_lock_message_rounds_remaining_minutes_up(remaining, minutes):
    now = security.utcnow()

    exc = AuthService._locked(now + remaining, now)

    assert f"Try again in {minutes} minute(s)." in exc.message
    assert exc.locked_until == now + remaining
