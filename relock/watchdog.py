"""Background lease renewal for a held lock.

One ``Watchdog`` belongs to one ``LockHandle``. While running it owns a
store connection separate from the handle's.
"""
from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING, Callable, Dict, Optional

import redis

from .store import RENEW_SCRIPT, RedisStore, StoreFactory

if TYPE_CHECKING:
    from .dist_lock import LockState

logger = logging.getLogger(__name__)

DEFAULT_FLOOR_MS = 100
STOP_JOIN_TIMEOUT_S = 1.0


def renew_period_ms(ttl_ms: int, floor_ms: int = DEFAULT_FLOOR_MS) -> int:
    return max(floor_ms, ttl_ms // 3)


class Watchdog:
    def __init__(
        self,
        store_factory: StoreFactory,
        state_getter: Callable[[], Optional["LockState"]],
        url: Optional[str] = None,
        floor_ms: int = DEFAULT_FLOOR_MS,
    ):
        self._store_factory = store_factory
        self._state_getter = state_getter
        self._url = url
        self.floor_ms = floor_ms
        self._guard = threading.Lock()
        self._thread: Optional[threading.Thread] = None
        self._stop = threading.Event()
        self._store: Optional[RedisStore] = None
        self.period_ms: Optional[int] = None
        self.metrics: Dict[str, int] = {
            "starts": 0,
            "ticks": 0,
            "renewed": 0,
            "lost": 0,
            "errors": 0,
        }

    @property
    def running(self) -> bool:
        t = self._thread
        return t is not None and t.is_alive()

    def start(self, ttl_ms: int, name: str = "lock") -> bool:
        """Start renewing every max(floor, ttl/3) ms. Returns False if already running."""
        with self._guard:
            if self._thread is not None:
                return False
            period_ms = renew_period_ms(ttl_ms, self.floor_ms)
            self._store = self._store_factory(self._url)
            self._stop = threading.Event()
            self.period_ms = period_ms
            self._thread = threading.Thread(
                target=self._loop,
                args=(self._stop, self._store, period_ms / 1000.0),
                name=f"relock-watchdog-{name}",
                daemon=True,
            )
            self._thread.start()
            self.metrics["starts"] += 1
            logger.debug(f"Watchdog started for {name} (period {period_ms}ms)")
            return True

    def stop(self) -> bool:
        """Cancel renewal and close the dedicated connection. Returns False if not running."""
        with self._guard:
            thread, store = self._thread, self._store
            if thread is None:
                return False
            self._thread = None
            self._store = None
            self._stop.set()
            # closing first interrupts a tick blocked on the network
            if store is not None:
                try:
                    store.close()
                except Exception as e:
                    logger.warning(f"Watchdog connection close failed: {e}")
            if thread is not threading.current_thread():
                thread.join(timeout=min(STOP_JOIN_TIMEOUT_S, (self.period_ms or 0) / 1000.0))
                if thread.is_alive():
                    logger.warning(f"Watchdog {thread.name} still finishing a tick after stop")
            logger.debug(f"Watchdog {thread.name} stopped")
            return True

    def _loop(self, stop: threading.Event, store: RedisStore, period_s: float) -> None:
        while not stop.wait(period_s):
            self.tick(store)

    def tick(self, store: RedisStore) -> Optional[bool]:
        """Renew once. None when there is nothing to renew or the store call failed."""
        state = self._state_getter()
        if state is None:
            return None
        self.metrics["ticks"] += 1
        try:
            res = store.run_script(RENEW_SCRIPT, keys=[state.key], args=[state.owner, state.ttl_ms])
        except redis.exceptions.RedisError as e:
            self.metrics["errors"] += 1
            logger.warning(f"Watchdog renew failed for {state.key}: {e}")
            return None
        except Exception as e:
            self.metrics["errors"] += 1
            logger.warning(f"Watchdog renew error for {state.key}: {e!r}")
            return None
        if res == 1:
            self.metrics["renewed"] += 1
            return True
        self.metrics["lost"] += 1
        logger.debug(f"Watchdog: {state.key} no longer held by {state.owner}")
        return False

