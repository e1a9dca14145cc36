"""Lightweight per-IP per-path rate limiter for the auth endpoints."""
import math
import time
from collections import defaultdict, deque

from fastapi import Request

from parkease.core.config import settings
from parkease.utils.errors import RateLimitedError

# In-memory sliding window buckets: key -> deque[timestamps]
_buckets = defaultdict(deque)


def _prune(window_start: float) -> None:
    """Forget clients with no request inside the current window."""
    stale = [key for key, bucket in _buckets.items() if not bucket or bucket[-1] <= window_start]
    for key in stale:
        del _buckets[key]


async def rate_limit(request: Request):
    if not settings.RATE_LIMIT_ENABLED:
        return True

    now = time.time()
    window = settings.RATE_LIMIT_PERIOD_SECONDS
    limit = settings.RATE_LIMIT_REQUESTS
    window_start = now - window

    _prune(window_start)

    # Keyed on the socket peer; X-Forwarded-For is client-controlled
    client = getattr(request, "client", None)
    client_ip = client.host if client and getattr(client, "host", None) else "unknown"
    key = f"{client_ip}:{request.url.path}"

    bucket = _buckets[key]

    # Drop old entries outside the window
    while bucket and bucket[0] <= window_start:
        bucket.popleft()

    if len(bucket) >= limit:
        retry_after = max(1, math.ceil(bucket[0] + window - now))
        raise RateLimitedError(retry_after=retry_after)

    bucket.append(now)
    return True
