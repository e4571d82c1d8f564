import logging
import time
from collections.abc import Generator
from contextlib import contextmanager

from django.core.cache import caches

logger = logging.getLogger(__name__)

DEFAULT_LOCK_DURATION = 60 * 10  # 10 minutes


@contextmanager
def cache_lock(
    lock_id: str,
    owner: str,
    lock_duration: int = DEFAULT_LOCK_DURATION,
    cache_alias: str = "default",
) -> Generator[bool, None, None]:
    """
    Hold a lock shared between worker processes for the duration of the block.

    The lock is a cache key created with ``cache.add``, which only succeeds
    for the first caller. It expires on its own after ``lock_duration``
    seconds so a crashed worker can never hold it forever, and it is only
    deleted on exit by the caller that created it and only while it has not
    expired, since after expiry another worker may own it.

    Args:
        lock_id (str): Cache key naming the lock.
        owner (str): Stored as the lock value to help when debugging.
        lock_duration (int): Seconds before the lock expires on its own.
        cache_alias (str): Cache holding the lock; it must be shared by all
            workers.

    Yields:
        bool: True if this caller holds the lock.
    """
    cache = caches[cache_alias]
    acquired = False
    expires_at = time.monotonic() + lock_duration
    try:
        acquired = cache.add(lock_id, owner, lock_duration)
        if not acquired:
            logger.debug("Lock %s is held by another worker", lock_id)
        yield acquired
    finally:
        if acquired and time.monotonic() < expires_at:
            cache.delete(lock_id)
