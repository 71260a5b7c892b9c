"""Webhook idempotency — deduplication of order deliveries.

Security contract:
- Key pattern: {shop}:{order_id} (orders/create), {shop}:{topic}:{order_id} otherwise
- Check-and-mark is a single atomic insert-if-absent on the store
- Duplicate webhooks are acknowledged with 200 (provider retries on errors)
- Redis backend: SET NX with optional TTL; if Redis is down, fail open
  (allow the delivery through) for availability
- Memory backend: no TTL means keys are kept for the process lifetime
"""

from __future__ import annotations

import logging
import threading
import time
from typing import Protocol

from orderhooks.config import Settings

logger = logging.getLogger(__name__)

ORDERS_CREATE_TOPIC = "orders/create"


def make_key(shop: str, order_id: object, topic: str | None = None) -> str:
    """Build the idempotency key for an order delivery.

    Creation notifications use {shop}:{order_id}. Other order topics are
    scoped by topic so that e.g. orders/paid is not swallowed by the
    earlier orders/create for the same order.
    """
    if topic and topic != ORDERS_CREATE_TOPIC:
        return f"{shop}:{topic}:{order_id}"
    return f"{shop}:{order_id}"


class IdempotencyStore(Protocol):
    """Store of processed delivery keys."""

    def add_if_absent(self, key: str) -> bool:
        """Record key. Returns True if newly recorded, False if already present."""
        ...

    def __contains__(self, key: object) -> bool: ...


class MemoryIdempotencyStore:
    """Process-local store guarded by a lock.

    Without a TTL the store grows for the lifetime of the process. With a
    TTL, keys are kept in expiry order and expired ones are evicted on
    every insert.
    """

    def __init__(self, ttl_seconds: int | None = None) -> None:
        self._ttl = ttl_seconds
        self._lock = threading.Lock()
        self._keys: dict[str, float | None] = {}  # key -> expiry (monotonic)

    def _expired(self, key: str, now: float) -> bool:
        expiry = self._keys.get(key)
        return expiry is not None and expiry <= now

    def _evict_expired(self, now: float) -> None:
        # Insertion order is expiry order: stop at the first live key
        while self._keys:
            key, expiry = next(iter(self._keys.items()))
            if expiry is None or expiry > now:
                return
            del self._keys[key]

    def add_if_absent(self, key: str) -> bool:
        now = time.monotonic()
        with self._lock:
            self._evict_expired(now)
            if key in self._keys:
                return False
            self._keys[key] = now + self._ttl if self._ttl else None
            return True

    def __contains__(self, key: object) -> bool:
        with self._lock:
            return key in self._keys and not self._expired(key, time.monotonic())

    def __len__(self) -> int:
        now = time.monotonic()
        with self._lock:
            return sum(1 for k in self._keys if not self._expired(k, now))


class RedisIdempotencyStore:
    """Redis-backed store. Keys survive process restarts."""

    PREFIX = "webhook:seen:"

    def __init__(self, redis_url: str, ttl_seconds: int | None = None) -> None:
        import redis

        self._redis = redis.from_url(redis_url, decode_responses=True)
        self._ttl = ttl_seconds

    def add_if_absent(self, key: str) -> bool:
        full_key = f"{self.PREFIX}{key}"
        try:
            # SET NX returns True if key was set (new), None if it already existed
            was_set = self._redis.set(full_key, "1", nx=True, ex=self._ttl or None)
        except Exception:
            logger.warning(
                "Redis unavailable for webhook dedup — allowing %s", key, exc_info=True
            )
            return True
        return bool(was_set)

    def __contains__(self, key: object) -> bool:
        try:
            return bool(self._redis.exists(f"{self.PREFIX}{key}"))
        except Exception:
            logger.warning("Redis unavailable for dedup lookup of %s", key, exc_info=True)
            return False


def build_store(settings: Settings) -> IdempotencyStore:
    """Create the idempotency store selected by configuration."""
    if settings.idempotency_backend == "redis":
        logger.info("Using Redis idempotency store at %s", settings.redis_url)
        return RedisIdempotencyStore(settings.redis_url, settings.idempotency_ttl_seconds)
    logger.info(
        "Using in-memory idempotency store (ttl=%s)", settings.idempotency_ttl_seconds
    )
    return MemoryIdempotencyStore(settings.idempotency_ttl_seconds)
