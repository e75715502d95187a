# siteauth/crud/crud_session.py
from datetime import datetime

from loguru import logger
from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError

from siteauth.core.security import hash_token, utcnow
from siteauth.crud.base import CRUDBase
from siteauth.models.session import UserSession


class CRUDSession(CRUDBase):
    """Revocation list for bearer tokens, keyed by the token's SHA-256."""

    async def revoke(self, *, token: str, user_id: int, expires_at: datetime) -> bool:
        """Blacklists a token. Returns False if it was already revoked."""
        if await self.is_revoked(token=token):
            return False
        self.db.add(UserSession(
            user_id=user_id,
            token_hash=hash_token(token),
            expires_at=expires_at,
            created_at=utcnow(),
        ))
        try:
            await self._run(self.db.commit())
        except IntegrityError:
            # concurrent logout of the same token
            return False
        return True

    async def is_revoked(self, *, token: str) -> bool:
        stmt = select(UserSession.id).where(UserSession.token_hash == hash_token(token))
        result = await self._run(self.db.execute(stmt))
        return result.first() is not None

    async def prune_expired(self) -> int:
        """Deletes revocation rows whose tokens have expired on their own."""
        stmt = delete(UserSession).where(UserSession.expires_at <= utcnow())
        result = await self._run(self.db.execute(stmt))
        await self._run(self.db.commit())
        if result.rowcount:
            logger.info(f"Pruned {result.rowcount} expired revoked session(s)")
        return result.rowcount
