# siteauth/crud/crud_user.py
import asyncio
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Optional

from loguru import logger
from sqlalchemy import case, func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import defer

from siteauth.core import security
from siteauth.core.exceptions import DuplicateEmailException, StorageException
from siteauth.crud.base import CRUDBase
from siteauth.models.user import User


@dataclass(frozen=True)
class FailedLoginResult:
    attempts: int
    locked_until: Optional[datetime]


class CRUDUser(CRUDBase):
    """
    Owns every write to the users table and the password hashing around it.

    Lookups only ever see active rows.
    """

    async def _hash(self, password: str) -> str:
        # bcrypt is CPU bound; keep it off the event loop
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(
            None, security.get_password_hash, password, self.settings.BCRYPT_ROUNDS
        )

    async def create(self, *, email: str, password: str, first_name: str, last_name: str) -> User:
        hashed_password = await self._hash(password)
        now = security.utcnow()
        db_obj = User(
            email=email,
            hashed_password=hashed_password,
            first_name=first_name,
            last_name=last_name,
            is_active=True,
            login_attempts=0,
            created_at=now,
            updated_at=now,
        )
        self.db.add(db_obj)
        try:
            await self._run(self.db.commit())
        except IntegrityError as e:
            raise DuplicateEmailException() from e
        await self._run(self.db.refresh(db_obj))
        logger.info(f"User created: id={db_obj.id} email={db_obj.email}")
        return db_obj

    async def get_by_email(self, *, email: str, include_secret: bool = True) -> Optional[User]:
        stmt = (
            select(User)
            .where(User.email == email, User.is_active.is_(True))
            .execution_options(populate_existing=True)
        )
        if not include_secret:
            stmt = stmt.options(defer(User.hashed_password, raiseload=True))
        result = await self._run(self.db.execute(stmt))
        return result.scalars().first()

    async def get(self, *, id: int) -> Optional[User]:
        stmt = (
            select(User)
            .where(User.id == id, User.is_active.is_(True))
            .options(defer(User.hashed_password, raiseload=True))
            .execution_options(populate_existing=True)
        )
        result = await self._run(self.db.execute(stmt))
        return result.scalars().first()

    async def verify_password(self, password: str, stored_hash: str) -> bool:
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(None, security.verify_password, password, stored_hash)

    async def record_successful_login(self, *, user_id: int) -> None:
        now = security.utcnow()
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(last_login=now, login_attempts=0, locked_until=None, updated_at=now)
            .execution_options(synchronize_session=False)
        )
        await self._run(self.db.execute(stmt))
        await self._run(self.db.commit())

    async def record_failed_login(self, *, user_id: int) -> FailedLoginResult:
        """
        Increments the failure counter and, once it reaches the threshold,
        stamps locked_until, in a single UPDATE so concurrent failures for the
        same account cannot lose an increment.
        """
        now = security.utcnow()
        threshold = self.settings.LOGIN_MAX_FAILED_ATTEMPTS
        lock_until = now + timedelta(minutes=self.settings.LOGIN_LOCKOUT_MINUTES)
        stmt = (
            update(User)
            .where(User.id == user_id)
            .values(
                login_attempts=User.login_attempts + 1,
                locked_until=case(
                    (User.login_attempts + 1 >= threshold, lock_until),
                    else_=User.locked_until,
                ),
                updated_at=now,
            )
            .returning(User.login_attempts, User.locked_until)
            .execution_options(synchronize_session=False)
        )
        result = await self._run(self.db.execute(stmt))
        row = result.one_or_none()
        if row is None:
            await self._rollback()
            raise StorageException(f"User {user_id} disappeared while recording a failed login")
        await self._run(self.db.commit())
        return FailedLoginResult(attempts=row.login_attempts, locked_until=row.locked_until)

    async def list_active(self, *, limit: int = 100, offset: int = 0) -> list[User]:
        stmt = (
            select(User)
            .where(User.is_active.is_(True))
            .options(defer(User.hashed_password, raiseload=True))
            .order_by(User.created_at.desc(), User.id.desc())
            .limit(limit)
            .offset(offset)
        )
        result = await self._run(self.db.execute(stmt))
        return list(result.scalars().all())

    async def count_active(self, *, created_since: Optional[datetime] = None) -> int:
        stmt = select(func.count(User.id)).where(User.is_active.is_(True))
        if created_since is not None:
            stmt = stmt.where(User.created_at >= created_since)
        result = await self._run(self.db.execute(stmt))
        return result.scalar_one()

    async def count_logged_in_since(self, *, since: datetime) -> int:
        stmt = select(func.count(User.id)).where(
            User.is_active.is_(True), User.last_login >= since
        )
        result = await self._run(self.db.execute(stmt))
        return result.scalar_one()

    async def update_profile(self, *, user_id: int, first_name: str, last_name: str) -> Optional[User]:
        stmt = (
            update(User)
            .where(User.id == user_id, User.is_active.is_(True))
            .values(first_name=first_name, last_name=last_name, updated_at=security.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self._run(self.db.execute(stmt))
        await self._run(self.db.commit())
        if result.rowcount == 0:
            return None
        return await self.get(id=user_id)

    async def deactivate(self, *, user_id: int) -> bool:
        stmt = (
            update(User)
            .where(User.id == user_id, User.is_active.is_(True))
            .values(is_active=False, updated_at=security.utcnow())
            .execution_options(synchronize_session=False)
        )
        result = await self._run(self.db.execute(stmt))
        await self._run(self.db.commit())
        if result.rowcount:
            logger.info(f"User deactivated: id={user_id}")
        return bool(result.rowcount)
