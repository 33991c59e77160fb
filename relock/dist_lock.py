from __future__ import annotations

import contextlib
import logging
import threading
import time
from dataclasses import dataclass
from typing import Iterator, Optional

import redis

from .config import Settings, get_settings
from .owner import new_owner
from .record import LockRecord
from .store import ACQUIRE_SCRIPT, RELEASE_SCRIPT, RedisStore, StoreFactory
from .watchdog import Watchdog

logger = logging.getLogger(__name__)

# release_reentrant.lua results
RELEASED = 0
NOT_HELD = -1
NOT_OWNER = -2


class LockNotAcquired(RuntimeError):
    pass


@dataclass(frozen=True)
class LockState:
    """What the handle last acquired. Replaced as a whole, never mutated."""

    key: str
    owner: str
    ttl_ms: int


def _check_ttl(ttl_ms: int) -> int:
    if isinstance(ttl_ms, bool) or not isinstance(ttl_ms, int) or ttl_ms <= 0:
        raise ValueError(f"ttl_ms must be a positive int, got {ttl_ms!r}")
    return ttl_ms


class LockHandle:
    """Client side of a reentrant Redis lock.

    A handle owns one connection for acquire/release and, while it holds a
    lock acquired with ``acquire``, a watchdog with a second connection that
    keeps the lease alive. ``close`` tears both down but does not release the
    lock; an unreleased lock simply expires once renewal stops.

        with LockHandle.open(url) as handle:
            owner = new_owner()
            if handle.acquire("lock:report", owner, ttl_ms=5000, wait_ms=2000):
                try:
                    ...
                finally:
                    handle.release("lock:report", owner)
    """

    def __init__(
        self,
        url: Optional[str] = None,
        *,
        settings: Optional[Settings] = None,
        store_factory: Optional[StoreFactory] = None,
        watchdog: Optional[bool] = None,
    ):
        self.settings = settings or get_settings()
        self.url = url
        self._store_factory: StoreFactory = store_factory or RedisStore.from_url
        self.store = self._store_factory(url)
        self.watchdog_enabled = self.settings.WATCHDOG_ENABLED if watchdog is None else watchdog
        self._state_lock = threading.Lock()
        self._state: Optional[LockState] = None
        self._closed = False
        self.watchdog = Watchdog(
            self._store_factory,
            lambda: self.state,
            url=url,
            floor_ms=self.settings.WATCHDOG_FLOOR_MS,
        )

    @classmethod
    def open(cls, url: Optional[str] = None, **kwargs) -> "LockHandle":
        return cls(url, **kwargs)

    @property
    def state(self) -> Optional[LockState]:
        with self._state_lock:
            return self._state

    @property
    def held(self) -> bool:
        return self.state is not None

    @property
    def closed(self) -> bool:
        return self._closed

    def _set_state(self, state: Optional[LockState]) -> None:
        with self._state_lock:
            self._state = state

    def _clear_state(self, key: str, owner: str) -> None:
        with self._state_lock:
            if self._state is not None and self._state.key == key and self._state.owner == owner:
                self._state = None

    def _ensure_open(self) -> None:
        if self._closed:
            raise RuntimeError("lock handle is closed")

    # Single attempt, no waiting
    def try_acquire(self, key: str, owner: str, ttl_ms: Optional[int] = None) -> bool:
        self._ensure_open()
        ttl_ms = _check_ttl(self.settings.LOCK_TTL_MS if ttl_ms is None else ttl_ms)
        try:
            count = self.store.run_script(ACQUIRE_SCRIPT, keys=[key], args=[owner, ttl_ms])
        except redis.exceptions.RedisError as e:
            logger.error(f"Lock acquire failed for {key}: {e}")
            return False
        if count < 1:
            return False
        self._set_state(LockState(key, owner, ttl_ms))
        logger.debug(f"Lock {key} acquired by {owner} (count={count})")
        return True

    # Fixed-interval poll until wait_ms elapses
    def acquire(
        self,
        key: str,
        owner: str,
        ttl_ms: Optional[int] = None,
        wait_ms: Optional[int] = None,
        retry_ms: Optional[int] = None,
        cancel: Optional[threading.Event] = None,
    ) -> bool:
        self._ensure_open()
        ttl_ms = _check_ttl(self.settings.LOCK_TTL_MS if ttl_ms is None else ttl_ms)
        wait_ms = self.settings.LOCK_WAIT_MS if wait_ms is None else wait_ms
        retry_ms = self.settings.LOCK_RETRY_MS if retry_ms is None else retry_ms
        cancel = cancel or threading.Event()
        deadline = time.monotonic() + (wait_ms / 1000.0)
        while not cancel.is_set():
            if self.try_acquire(key, owner, ttl_ms):
                if self.watchdog_enabled:
                    self.watchdog.start(ttl_ms, name=key)
                return True
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.info(f"Lock {key} not acquired within {wait_ms}ms")
                return False
            if cancel.wait(min(retry_ms / 1000.0, remaining)):
                break
        logger.info(f"Lock {key} wait cancelled")
        return False

    # Undo one hold; the key is deleted when the last hold goes
    def release(self, key: str, owner: str) -> bool:
        self._ensure_open()
        # renewal must not run while the record is being rewritten or deleted
        was_renewing = self.watchdog.stop()
        state = self.state
        cached_ttl = state.ttl_ms if state is not None and state.key == key else 0
        try:
            res = self.store.run_script(RELEASE_SCRIPT, keys=[key], args=[owner, cached_ttl])
        except redis.exceptions.RedisError as e:
            logger.error(f"Lock release failed for {key}: {e}")
            res = None
        if res == RELEASED:
            self._clear_state(key, owner)
            logger.debug(f"Lock {key} released by {owner}")
        elif res == NOT_HELD:
            logger.info(f"Lock {key} release by {owner}: not held")
        elif res == NOT_OWNER:
            logger.info(f"Lock {key} release by {owner}: held by another owner")
        state = self.state
        if was_renewing and state is not None:
            self.watchdog.start(state.ttl_ms, name=state.key)
        return res is not None and res >= 0

    def inspect(self, key: str) -> Optional[LockRecord]:
        self._ensure_open()
        value = self.store.get(key)
        if value is None:
            return None
        return LockRecord.parse(value, pttl_ms=self.store.pttl(key))

    @contextlib.contextmanager
    def locked(
        self,
        key: str,
        owner: Optional[str] = None,
        ttl_ms: Optional[int] = None,
        wait_ms: Optional[int] = None,
        retry_ms: Optional[int] = None,
    ) -> Iterator[str]:
        owner = owner or new_owner()
        if not self.acquire(key, owner, ttl_ms=ttl_ms, wait_ms=wait_ms, retry_ms=retry_ms):
            raise LockNotAcquired(f"could not acquire {key}")
        try:
            yield owner
        finally:
            self.release(key, owner)

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            self.watchdog.stop()
        except Exception as e:
            logger.warning(f"Watchdog stop failed on close: {e!r}")
        try:
            self.store.close()
        except Exception as e:
            logger.warning(f"Lock connection close failed: {e}")

    # Context manager helpers
    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc, tb):
        self.close()
        return False
