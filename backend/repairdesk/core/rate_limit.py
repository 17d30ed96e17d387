"""Shared rate limiter instance for use across route files."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from repairdesk.core.config import settings

# Keyed by client IP; applied to the authentication and password endpoints
limiter = Limiter(key_func=get_remote_address, enabled=settings.rate_limit_enabled)
