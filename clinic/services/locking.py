# clinic/services/locking.py
"""
Per-series and per-booking write serialization.

Every read-modify-write of a template (or of a booking's payments and status)
runs inside ``series_lock`` / ``booking_lock``. With the ``redis`` backend the
lock is shared by all API workers and Celery; the ``memory`` backend only
serializes threads of one process.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Dict, Iterator

from redis.exceptions import LockError

from clinic.config.redis import RedisKeys, get_sync_redis
from clinic.config.settings import get_settings
from clinic.core.exceptions import LockUnavailableException

logger = logging.getLogger(__name__)
settings = get_settings()


class _LocalLock:
    """A lock plus the number of threads holding or waiting for it"""

    def __init__(self):
        self.lock = threading.Lock()
        self.users = 0


_local_locks: Dict[str, _LocalLock] = {}
_local_locks_guard = threading.Lock()


@contextmanager
def _memory_lock(key: str) -> Iterator[None]:
    with _local_locks_guard:
        entry = _local_locks.setdefault(key, _LocalLock())
        entry.users += 1
    try:
        if not entry.lock.acquire(timeout=settings.LOCK_WAIT_SECONDS):
            raise LockUnavailableException(
                "Another change to this appointment is in progress, try again",
                code="lock_unavailable",
                details={"key": key},
            )
        try:
            yield
        finally:
            entry.lock.release()
    finally:
        # Dropped once nobody holds or waits for it
        with _local_locks_guard:
            entry.users -= 1
            if entry.users == 0:
                del _local_locks[key]


@contextmanager
def _redis_lock(key: str) -> Iterator[None]:
    lock = get_sync_redis().lock(
        key,
        timeout=settings.LOCK_TIMEOUT_SECONDS,
        blocking_timeout=settings.LOCK_WAIT_SECONDS,
    )
    if not lock.acquire():
        raise LockUnavailableException(
            "Another change to this appointment is in progress, try again",
            code="lock_unavailable",
            details={"key": key},
        )
    try:
        yield
    finally:
        try:
            lock.release()
        except LockError:
            # Expired while we held it; the write already finished
            logger.warning(f"Lock {key} expired before release")


@contextmanager
def keyed_lock(key: str) -> Iterator[None]:
    if settings.LOCK_BACKEND == "memory":
        with _memory_lock(key):
            yield
    else:
        with _redis_lock(key):
            yield


def series_lock(template_id):
    return keyed_lock(RedisKeys.SERIES_LOCK.format(template_id=template_id))


def booking_lock(booking_id):
    return keyed_lock(RedisKeys.BOOKING_LOCK.format(booking_id=booking_id))
