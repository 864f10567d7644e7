# chatline/core/rate_limit.py

from slowapi import Limiter
from slowapi.util import get_remote_address

from chatline.config import Settings, get_settings

_settings = get_settings()

# Keyed by client address; in-memory, so limits are per process.
limiter = Limiter(
    key_func=get_remote_address,
    enabled=_settings.rate_limit_enabled,
)

_send_message_limit = _settings.send_rate_limit


def configure_limiter(settings: Settings) -> None:
    """Apply the rate limit settings of the app being built."""
    global _send_message_limit
    limiter.enabled = settings.rate_limit_enabled
    _send_message_limit = settings.send_rate_limit


def send_message_limit() -> str:
    # Evaluated per request, so configure_limiter() takes effect on routes
    # that were decorated at import time.
    return _send_message_limit
