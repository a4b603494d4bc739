"""Redis client and per-category locks shared across workers."""

import threading
import time
from contextlib import contextmanager

import redis
import logging
from flask import current_app

logger = logging.getLogger(__name__)

# Redis connection (lazy initialization)
_redis_client = None
# Monotonic time before which a failed connection is not retried
_redis_retry_at = 0.0

# Process-local fallback locks, one per category
_local_locks = {}
_local_locks_guard = threading.Lock()

LOCK_PREFIX = "boost:category:"
LOCK_TIMEOUT = 30  # seconds a held lock survives a crashed worker
LOCK_BLOCKING_TIMEOUT = 10  # seconds to wait for a busy category
REDIS_RETRY_INTERVAL = 60  # seconds between reconnect attempts after a failure


class CategoryLockTimeout(Exception):
    """Raised when a category lock could not be acquired in time."""


def get_redis():
    """Get or create Redis connection. Returns None when REDIS_URL is unset."""
    global _redis_client, _redis_retry_at

    if _redis_client is not None:
        return _redis_client

    redis_url = current_app.config.get('REDIS_URL')

    if not redis_url:
        return None

    if time.monotonic() < _redis_retry_at:
        return None

    try:
        _redis_client = redis.from_url(redis_url, decode_responses=True)
        # Test connection
        _redis_client.ping()
        logger.info("Redis connected successfully")
        return _redis_client
    except Exception as e:
        _redis_client = None
        _redis_retry_at = time.monotonic() + REDIS_RETRY_INTERVAL
        logger.error(f"Redis connection failed, retrying in {REDIS_RETRY_INTERVAL}s: {e}")
        return None


def _local_lock(category: str) -> threading.Lock:
    with _local_locks_guard:
        lock = _local_locks.get(category)
        if lock is None:
            lock = _local_locks[category] = threading.Lock()
        return lock


@contextmanager
def category_lock(category: str):
    """Serialize boost mutations for one category.

    Uses a Redis lock when Redis is configured so that every worker process
    agrees; otherwise a lock local to this process.
    """
    r = get_redis()

    if r is None:
        lock = _local_lock(category)
        if not lock.acquire(timeout=LOCK_BLOCKING_TIMEOUT):
            raise CategoryLockTimeout(f"Category '{category}' is busy, try again")
        try:
            yield
        finally:
            lock.release()
        return

    lock = r.lock(
        f"{LOCK_PREFIX}{category}",
        timeout=LOCK_TIMEOUT,
        blocking_timeout=LOCK_BLOCKING_TIMEOUT
    )
    if not lock.acquire():
        raise CategoryLockTimeout(f"Category '{category}' is busy, try again")
    try:
        yield
    finally:
        try:
            lock.release()
        except redis.exceptions.LockError as e:
            # Lock expired while held; the conditional write still guards the slot
            logger.warning(f"Redis lock for category {category} was lost: {e}")
