# siteauth/services/auth_service.py
import math
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from email_validator import EmailNotValidError, validate_email as check_email_syntax
from loguru import logger

from siteauth.core import security
from siteauth.core.config import Settings
from siteauth.core.exceptions import (
    AccountLockedException,
    InvalidCredentialsException,
    InvalidTokenException,
    ValidationException,
)
from siteauth.crud.crud_session import CRUDSession
from siteauth.crud.crud_user import CRUDUser
from siteauth.models.user import User

EMAIL_MAX_LENGTH = 254
NAME_MIN_LENGTH = 2
NAME_MAX_LENGTH = 50
PASSWORD_MIN_LENGTH = 8
# bcrypt ignores everything past 72 bytes
PASSWORD_MAX_BYTES = 72


def validate_email(email: str) -> Optional[str]:
    if not email:
        return "Email is required"
    if len(email) > EMAIL_MAX_LENGTH:
        return "Please enter a valid email address"
    try:
        check_email_syntax(email, check_deliverability=False)
    except EmailNotValidError:
        return "Please enter a valid email address"
    return None


def validate_name(value: str, label: str) -> Optional[str]:
    value = (value or "").strip()
    if not value:
        return f"{label} is required"
    if len(value) < NAME_MIN_LENGTH:
        return f"{label} must be at least {NAME_MIN_LENGTH} characters long"
    if len(value) > NAME_MAX_LENGTH:
        return f"{label} must be at most {NAME_MAX_LENGTH} characters long"
    return None


def validate_password(password: str) -> Optional[str]:
    """
    Return an error string if the password does not meet the policy, or None.

    Policy: at least 8 chars and at most 72 bytes once UTF-8 encoded, with at
    least one lowercase, one uppercase, one digit and one character that is
    neither letter nor digit.
    """
    if not password:
        return "Password is required"
    if len(password) < PASSWORD_MIN_LENGTH:
        return f"Password must be at least {PASSWORD_MIN_LENGTH} characters"
    if len(password.encode("utf-8")) > PASSWORD_MAX_BYTES:
        return f"Password must be at most {PASSWORD_MAX_BYTES} bytes long"
    if not re.search(r"[a-z]", password):
        return "Password must contain at least one lowercase letter"
    if not re.search(r"[A-Z]", password):
        return "Password must contain at least one uppercase letter"
    if not re.search(r"[0-9]", password):
        return "Password must contain at least one digit"
    if not re.search(r"[^a-zA-Z0-9]", password):
        return "Password must contain at least one special character"
    return None


def validate_profile(first_name: str, last_name: str) -> dict[str, str]:
    errors = {}
    for field, label, value in (
        ("firstName", "First name", first_name),
        ("lastName", "Last name", last_name),
    ):
        error = validate_name(value, label)
        if error:
            errors[field] = error
    return errors


@dataclass(frozen=True)
class TokenIdentity:
    user_id: int
    email: Optional[str]
    jti: Optional[str]
    expires_at: datetime  # UTC naive


class AuthService:
    """
    Registration, login and bearer-token checks.

    Decides when a user row changes (failed/successful login, registration)
    and leaves the writes themselves to CRUDUser.
    """

    def __init__(self, users: CRUDUser, sessions: CRUDSession, settings: Settings):
        self.users = users
        self.sessions = sessions
        self.settings = settings

    def issue_token(self, user: User) -> str:
        return security.create_access_token(user_id=user.id, email=user.email, settings=self.settings)

    async def register(
        self,
        *,
        email: str,
        password: str,
        first_name: str,
        last_name: str,
        confirm_password: Optional[str] = None,
    ) -> tuple[str, User]:
        errors = validate_profile(first_name, last_name)
        email_error = validate_email(email)
        if email_error:
            errors["email"] = email_error
        password_error = validate_password(password)
        if password_error:
            errors["password"] = password_error
        elif confirm_password is not None and confirm_password != password:
            errors["confirmPassword"] = "Passwords do not match"
        if errors:
            raise ValidationException(errors)

        # DuplicateEmailException propagates as-is
        user = await self.users.create(
            email=email,
            password=password,
            first_name=first_name.strip(),
            last_name=last_name.strip(),
        )
        logger.info(f"Registration completed for {user.email} (id={user.id})")
        return self.issue_token(user), user

    async def login(self, *, email: str, password: str) -> tuple[str, User]:
        errors = {}
        if not email:
            errors["email"] = "Email is required"
        if not password:
            errors["password"] = "Password is required"
        if errors:
            raise ValidationException(errors)

        user = await self.users.get_by_email(email=email, include_secret=True)
        if user is None:
            # Same bcrypt cost as a wrong password, so response time does not
            # reveal whether the email is registered
            await self.users.verify_password(password, security.get_dummy_hash(self.settings.BCRYPT_ROUNDS))
            logger.info(f"Login failed for unknown email {email}")
            raise InvalidCredentialsException()

        now = security.utcnow()
        if user.is_locked(now):
            logger.warning(f"Login attempt for locked account {email} (locked until {user.locked_until})")
            raise self._locked(user.locked_until, now)

        if not await self.users.verify_password(password, user.hashed_password):
            result = await self.users.record_failed_login(user_id=user.id)
            if result.locked_until is not None and result.locked_until > now:
                logger.warning(
                    f"ACCOUNT LOCKED: {email} after {result.attempts} failed attempts, until {result.locked_until}"
                )
                raise self._locked(result.locked_until, now)
            logger.info(f"Login failed for {email}: wrong password (attempt {result.attempts})")
            raise InvalidCredentialsException()

        await self.users.record_successful_login(user_id=user.id)
        refreshed = await self.users.get(id=user.id)
        if refreshed is None:
            # deactivated between the two reads
            raise InvalidCredentialsException()
        logger.info(f"Login succeeded for {refreshed.email} (id={refreshed.id})")
        return self.issue_token(refreshed), refreshed

    @staticmethod
    def _locked(locked_until: datetime, now: datetime) -> AccountLockedException:
        remaining_minutes = max(1, math.ceil((locked_until - now).total_seconds() / 60))
        return AccountLockedException(
            f"Account locked due to too many failed login attempts. Try again in {remaining_minutes} minute(s).",
            locked_until=locked_until,
        )

    async def verify(self, token: str) -> TokenIdentity:
        payload = security.decode_access_token(token, self.settings)
        if payload is None:
            raise InvalidTokenException()
        try:
            user_id = int(payload["sub"])
            expires_at = datetime.fromtimestamp(payload["exp"], tz=timezone.utc).replace(tzinfo=None)
        except (KeyError, TypeError, ValueError):
            logger.debug("Rejected access token: malformed sub/exp claims")
            raise InvalidTokenException()
        if await self.sessions.is_revoked(token=token):
            logger.debug(f"Rejected access token: revoked (user id {user_id})")
            raise InvalidTokenException()
        return TokenIdentity(
            user_id=user_id,
            email=payload.get("email"),
            jti=payload.get("jti"),
            expires_at=expires_at,
        )

    async def logout(self, token: str) -> bool:
        identity = await self.verify(token)
        revoked = await self.sessions.revoke(
            token=token, user_id=identity.user_id, expires_at=identity.expires_at
        )
        if revoked:
            logger.info(f"Token revoked for user id {identity.user_id}")
        return revoked

    async def prune_revoked_sessions(self) -> int:
        return await self.sessions.prune_expired()
