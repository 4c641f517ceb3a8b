"""In-memory login throttle (single process, no Redis). Counts attempts per key in a fixed window."""
import time
from threading import Lock
from typing import Dict, Optional, Tuple

from flowdash.core.config import settings

_attempts: Dict[str, Tuple[float, int]] = {}  # key -> (window_started_at, count)
_lock = Lock()


def _evict_expired(now: float, window: float) -> None:
    expired = [key for key, (started_at, _) in _attempts.items() if now - started_at >= window]
    for key in expired:
        del _attempts[key]


def hit(key: str, limit: Optional[int] = None, window_seconds: Optional[int] = None) -> bool:
    """Record one attempt for ``key``. Returns False once the key is over its limit."""
    limit = limit if limit is not None else settings.LOGIN_RATE_LIMIT
    window = window_seconds if window_seconds is not None else settings.LOGIN_RATE_WINDOW_SECONDS
    now = time.time()
    with _lock:
        _evict_expired(now, window)
        started_at, count = _attempts.get(key, (now, 0))
        count += 1
        _attempts[key] = (started_at, count)
        return count <= limit


def clear() -> None:
    with _lock:
        _attempts.clear()
