from typing import Optional

from slowapi import Limiter
from slowapi.util import get_remote_address

from siteauth.core.config import Settings, get_settings

# Settings of the app that owns the limiter; set by configure_rate_limits()
_active_settings: Optional[Settings] = None


def _settings() -> Settings:
    return _active_settings or get_settings()


# slowapi calls these on every request, so the limits follow the active app
def default_rate_limit() -> str:
    return _settings().DEFAULT_RATE_LIMIT


def auth_rate_limit() -> str:
    return _settings().AUTH_RATE_LIMIT


# Per client address. Complements account lockout: lockout protects one
# account, this protects the endpoints from guessing spread across accounts.
limiter = Limiter(key_func=get_remote_address, default_limits=[default_rate_limit])


def configure_rate_limits(settings: Settings) -> Limiter:
    """Binds the limiter to `settings` and starts from empty counters."""
    global _active_settings
    _active_settings = settings
    limiter.enabled = settings.RATE_LIMIT_ENABLED
    limiter.reset()
    return limiter
