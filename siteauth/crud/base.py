# siteauth/crud/base.py
import asyncio
from typing import Awaitable, TypeVar

from loguru import logger
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from siteauth.core.config import Settings
from siteauth.core.exceptions import StorageException

T = TypeVar("T")


class CRUDBase:
    """
    Holds the per-request session and bounds every store round trip.

    A timeout or driver error rolls the session back and surfaces as
    StorageException. IntegrityError is re-raised untouched so callers can
    turn constraint violations into domain errors.
    """

    def __init__(self, db: AsyncSession, settings: Settings):
        self.db = db
        self.settings = settings

    async def _run(self, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.settings.DB_OPERATION_TIMEOUT_SECONDS)
        except asyncio.TimeoutError as e:
            await self._rollback()
            raise StorageException("Database operation timed out") from e
        except IntegrityError:
            await self._rollback()
            raise
        except SQLAlchemyError as e:
            await self._rollback()
            raise StorageException(f"Database error: {e.__class__.__name__}") from e

    async def _rollback(self) -> None:
        try:
            await self.db.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed after a storage error")
