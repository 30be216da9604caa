"""Shared slowapi limiter (kept outside main.py so routers can decorate endpoints)."""
from slowapi import Limiter
from slowapi.util import get_remote_address
from marketplace.config import settings

limiter = Limiter(key_func=get_remote_address, enabled=settings.RATE_LIMIT_ENABLED)
