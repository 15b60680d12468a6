"""Rate limiting for the inbound webhooks.

Process-local (memory://) counters: the limiter only sheds abusive traffic
and carries no correctness weight.
"""

import os

from slowapi import Limiter
from slowapi.util import get_remote_address

from liftalert.core.config import settings

IS_TESTING = os.getenv("TESTING", "").lower() in ("1", "true", "yes")

limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=not IS_TESTING and settings.RATE_LIMIT_WEBHOOK > 0,
)


def webhook_limit() -> str:
    """Dynamic limit so tests and settings overrides take effect at request time."""
    return f"{max(settings.RATE_LIMIT_WEBHOOK, 1)}/minute"
