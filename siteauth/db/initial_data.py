# siteauth/db/initial_data.py
"""
Schema bootstrap and demo data.

    python -m siteauth.db.initial_data            # create missing tables
    python -m siteauth.db.initial_data --seed     # ... and insert demo users
    python -m siteauth.db.initial_data --drop     # drop and recreate everything
"""
import argparse
import asyncio

from loguru import logger
from sqlalchemy.ext.asyncio import AsyncEngine

from siteauth.core.config import Settings, get_settings
from siteauth.core.exceptions import DuplicateEmailException
from siteauth.crud.crud_user import CRUDUser
from siteauth.db.base import Base
from siteauth.db.session import create_engine, create_session_factory

# registers every model on Base.metadata
from siteauth.models import session, user  # noqa: F401

DEMO_USERS = [
    {"email": "john.doe@example.com", "password": "SecurePass123!", "first_name": "John", "last_name": "Doe"},
    {"email": "jane.smith@example.com", "password": "StrongPass456!", "first_name": "Jane", "last_name": "Smith"},
    {"email": "admin@yoursite.com", "password": "AdminPass789!", "first_name": "Admin", "last_name": "User"},
    {"email": "demo@example.com", "password": "DemoPass123!", "first_name": "Demo", "last_name": "User"},
    {"email": "test.user@example.com", "password": "TestPass456!", "first_name": "Test", "last_name": "User"},
]


async def create_tables(engine: AsyncEngine) -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Users/sessions tables created or verified")


async def init_db(engine: AsyncEngine, *, drop: bool = False) -> None:
    if drop:
        logger.info("Dropping all tables...")
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.drop_all)
    await create_tables(engine)


async def seed_db(engine: AsyncEngine, settings: Settings) -> tuple[int, int]:
    """Inserts DEMO_USERS, skipping emails that already exist. Returns (created, skipped)."""
    session_factory = create_session_factory(engine)
    created = skipped = 0
    for data in DEMO_USERS:
        async with session_factory() as db:
            users = CRUDUser(db, settings)
            try:
                await users.create(**data)
            except DuplicateEmailException:
                logger.info(f"User {data['email']} already exists, skipping")
                skipped += 1
                continue
            created += 1
    logger.info(f"Seeding finished: {created} created, {skipped} skipped")
    return created, skipped


async def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Create the SiteAuth schema and optional demo users")
    parser.add_argument("--drop", action="store_true", help="drop existing tables first")
    parser.add_argument("--seed", action="store_true", help="insert the demo users")
    args = parser.parse_args(argv)

    settings = get_settings()
    engine = create_engine(settings)
    try:
        await init_db(engine, drop=args.drop)
        if args.seed:
            await seed_db(engine, settings)
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
