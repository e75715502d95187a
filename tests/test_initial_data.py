from siteauth.crud.crud_user import CRUDUser
from siteauth.db.initial_data import DEMO_USERS, init_db, seed_db


async def test_seed_is_idempotent(engine, settings, session_factory):
    assert await seed_db(engine, settings) == (len(DEMO_USERS), 0)
    assert await seed_db(engine, settings) == (0, len(DEMO_USERS))

    async with session_factory() as db:
        users = CRUDUser(db, settings)
        assert await users.count_active() == len(DEMO_USERS)
        demo = await users.get_by_email(email="demo@example.com")
        assert await users.verify_password("DemoPass123!", demo.hashed_password)


async def test_init_db_with_drop_clears_rows(engine, settings, session_factory):
    await seed_db(engine, settings)

    await init_db(engine, drop=True)

    async with session_factory() as db:
        assert await CRUDUser(db, settings).count_active() == 0
