from __future__ import annotations

from slowapi import Limiter
from slowapi.util import get_remote_address

from recipeshare.core.config import settings

# Decorators bind at import time; toggling `limiter.enabled` switches enforcement at request time.
limiter = Limiter(key_func=get_remote_address, enabled=settings.ENABLE_RATE_LIMITING)

LOGIN_LIMIT = "10/minute"
REGISTER_LIMIT = "5/minute"
EMAIL_REQUEST_LIMIT = "5/minute"
