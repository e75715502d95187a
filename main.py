# main.py
import asyncio
import time
from contextlib import asynccontextmanager
from datetime import datetime, timezone

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from slowapi import _rate_limit_exceeded_handler
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from siteauth.api.endpoints import auth, users
from siteauth.api.exception_handlers import setup_exception_handlers
from siteauth.core import security
from siteauth.core.config import Settings, get_settings
from siteauth.core.logger import configure_logging
from siteauth.core.rate_limit import configure_rate_limits
from siteauth.db.initial_data import create_tables
from siteauth.db.session import create_engine, create_session_factory


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings: Settings = app.state.settings
    engine = create_engine(settings)
    app.state.engine = engine
    app.state.session_factory = create_session_factory(engine)
    if settings.DB_CREATE_TABLES:
        await create_tables(engine)
    # Compute the unknown-email dummy hash before the first login needs it
    loop = asyncio.get_running_loop()
    await loop.run_in_executor(None, security.get_dummy_hash, settings.BCRYPT_ROUNDS)
    app.state.started_at = time.monotonic()
    logger.info(f"SiteAuth API started (environment={settings.ENVIRONMENT})")
    try:
        yield
    finally:
        logger.info("Shutting down: disposing database engine...")
        await engine.dispose()
        logger.info("Database engine disposed.")


def create_app(settings: Settings | None = None) -> FastAPI:
    settings = settings or get_settings()
    configure_logging(settings)

    app = FastAPI(
        title="SiteAuth API",
        description="Registration, login and bearer-token sessions for the marketing site",
        version="1.0.0",
        lifespan=lifespan,
    )
    app.state.settings = settings

    app.state.limiter = configure_rate_limits(settings)
    app.add_exception_handler(RateLimitExceeded, _rate_limit_exceeded_handler)
    app.add_middleware(SlowAPIMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.CORS_ORIGINS,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    setup_exception_handlers(app)

    api_prefix = settings.API_PREFIX.rstrip("/")
    app.include_router(auth.router, prefix=f"{api_prefix}/auth", tags=["Authentication"])
    app.include_router(users.router, prefix=f"{api_prefix}/users", tags=["Users"])

    @app.get(f"{api_prefix}/health", tags=["Health"])
    async def health(request: Request):
        started_at = getattr(request.app.state, "started_at", time.monotonic())
        return {
            "status": "OK",
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "uptime": round(time.monotonic() - started_at, 3),
            "environment": settings.ENVIRONMENT,
        }

    return app


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(create_app(), host="0.0.0.0", port=3001)
