"""Webhook replay/retry dedup: Redis-based insert-if-absent.

Security contract:
- Tracks seen keys in Redis with a bounded TTL (default 5 min)
- Key pattern: slack:seen:{namespace}:{key}
- Duplicates are reported to the caller, which decides the HTTP reply
- If Redis is down, falls back to allowing (fail-open for availability)
- No redis_url configured -> dedup disabled
"""

from __future__ import annotations

import hashlib
import logging
from functools import lru_cache

logger = logging.getLogger(__name__)

_KEY_PREFIX = "slack:seen"

DEFAULT_TTL_SECONDS = 300


@lru_cache(maxsize=4)
def _get_redis(redis_url: str):
    """Get a Redis client for the given URL (one per URL)."""
    import redis as redis_lib

    return redis_lib.from_url(redis_url, decode_responses=True)


def _key(namespace: str, key: str) -> str:
    # Long keys (e.g. signatures) are hashed to keep Redis keys short
    if len(key) > 64:
        key = hashlib.sha256(key.encode("utf-8")).hexdigest()
    return f"{_KEY_PREFIX}:{namespace}:{key}"


class DedupStore:
    """Insert-if-absent store with a bounded retention window."""

    def __init__(self, redis_url: str = "", ttl_seconds: int = DEFAULT_TTL_SECONDS):
        self.redis_url = redis_url
        self.ttl_seconds = ttl_seconds

    @property
    def enabled(self) -> bool:
        return bool(self.redis_url)

    def is_duplicate(self, namespace: str, key: str) -> bool:
        """Check-and-mark a key atomically.

        Uses Redis SET NX EX so concurrent receivers agree on who saw it first.

        Args:
            namespace: Key family (e.g. 'event', 'signature')
            key: Unique identifier within the namespace

        Returns:
            True if this key has already been seen inside the TTL window
        """
        if not key or not self.enabled:
            return False

        full_key = _key(namespace, key)
        try:
            r = _get_redis(self.redis_url)
            # SET NX returns True if key was set (new), None if it already existed
            was_set = r.set(full_key, "1", nx=True, ex=self.ttl_seconds)
            if not was_set:
                logger.info("Duplicate webhook rejected: %s/%s", namespace, key[:16])
                return True
            return False
        except Exception:
            logger.warning(
                "Redis unavailable for webhook dedup, allowing %s/%s",
                namespace,
                key[:16],
                exc_info=True,
            )
            return False

    def mark_seen(self, namespace: str, key: str) -> None:
        """Explicitly mark a key as seen."""
        if not key or not self.enabled:
            return
        try:
            r = _get_redis(self.redis_url)
            r.set(_key(namespace, key), "1", ex=self.ttl_seconds)
        except Exception:
            logger.warning("Failed to mark webhook as seen: %s/%s", namespace, key[:16])
