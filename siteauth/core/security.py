# siteauth/core/security.py
import hashlib
import secrets
from datetime import datetime, timedelta, timezone
from functools import lru_cache
from typing import Any, Dict, Optional

from jose import jwt, JWTError
from loguru import logger
from passlib.context import CryptContext

from siteauth.core.config import Settings
from siteauth.core.exceptions import HashingException, VerificationException


def utcnow() -> datetime:
    """Current time as naive UTC, the form every timestamp column stores."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")


@lru_cache
def get_password_context(rounds: int) -> CryptContext:
    return pwd_context.copy(bcrypt__rounds=rounds)


def _password_bytes(password: str) -> bytes:
    # bcrypt only looks at the first 72 bytes
    return password.encode("utf-8")[:72]


def get_password_hash(password: str, rounds: int) -> str:
    try:
        return get_password_context(rounds).hash(_password_bytes(password))
    except (ValueError, TypeError) as e:
        raise HashingException() from e


def verify_password(plain_password: str, hashed_password: str) -> bool:
    """
    Checks a plaintext password against a stored bcrypt hash.

    A mismatch returns False. A hash the primitive cannot parse raises
    VerificationException instead, so corrupt rows are never mistaken for
    a wrong password.
    """
    try:
        return pwd_context.verify(_password_bytes(plain_password), hashed_password)
    except (ValueError, TypeError) as e:
        logger.error("Password verification failed at the hashing primitive level")
        raise VerificationException() from e


@lru_cache
def get_dummy_hash(rounds: int) -> str:
    """Hash of a random secret, verified against when the email is unknown."""
    return get_password_hash(secrets.token_urlsafe(32), rounds)


def hash_token(token: str) -> str:
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


# --- JWT ---
def create_access_token(
    *,
    user_id: int,
    email: str,
    settings: Settings,
    now: Optional[datetime] = None,
) -> str:
    now = now or datetime.now(timezone.utc)
    expire = now + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    to_encode: Dict[str, Any] = {
        "iss": settings.JWT_ISSUER,
        "aud": settings.JWT_AUDIENCE,
        "iat": now,
        "nbf": now,
        "exp": expire,
        "jti": secrets.token_urlsafe(16),
        "sub": str(user_id),
        "userId": user_id,
        "email": email,
        "token_type": "access",
    }
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str, settings: Settings) -> Dict | None:
    try:
        payload = jwt.decode(
            token,
            settings.SECRET_KEY,
            algorithms=[settings.ALGORITHM],
            audience=settings.JWT_AUDIENCE,
            issuer=settings.JWT_ISSUER,
            options={"verify_iss": True, "verify_aud": True},
        )
    except JWTError as e:
        logger.debug(f"Rejected access token: {e}")
        return None
    if payload.get("token_type") != "access":
        logger.debug("Rejected access token: wrong token_type")
        return None
    return payload
