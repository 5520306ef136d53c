"""Rate limiting configuration for the portal API."""

from slowapi import Limiter
from slowapi.util import get_remote_address

from portal_api.core.config import settings

# Single-process deployments keep counters in memory; each worker limits independently.
limiter = Limiter(
    key_func=get_remote_address,
    storage_uri="memory://",
    enabled=settings.RATE_LIMIT_ENABLED,
)
