import threading
import typing as ty

import fakeredis
import pytest
import redis

from relock import LockHandle, RedisStore, Settings


class BrokenStore(RedisStore):
    """Store whose scripts always fail as if Redis were unreachable."""

    def run_script(self, name, keys, args):
        raise redis.exceptions.ConnectionError("connection refused")

    def close(self):
        pass


@pytest.fixture
def server() -> fakeredis.FakeServer:
    return fakeredis.FakeServer()


@pytest.fixture
def store_factory(server) -> ty.Callable[[ty.Optional[str]], RedisStore]:
    def factory(url: ty.Optional[str] = None) -> RedisStore:
        return RedisStore(fakeredis.FakeRedis(server=server, decode_responses=True))

    return factory


@pytest.fixture
def raw(store_factory) -> RedisStore:
    """A separate client for seeding and checking the store directly."""
    store = store_factory(None)
    yield store
    store.close()


@pytest.fixture
def settings() -> Settings:
    return Settings(
        LOCK_TTL_MS=5000,
        LOCK_WAIT_MS=1000,
        LOCK_RETRY_MS=20,
        WATCHDOG_FLOOR_MS=100,
        WATCHDOG_ENABLED=True,
    )


@pytest.fixture
def make_handle(store_factory, settings):
    handles: ty.List[LockHandle] = []

    def make(**kwargs) -> LockHandle:
        kwargs.setdefault("settings", settings)
        handle = LockHandle(store_factory=store_factory, **kwargs)
        handles.append(handle)
        return handle

    yield make
    for h in handles:
        h.close()


class SlowStore(RedisStore):
    """Store whose scripts hang like a partitioned socket until the connection is closed."""

    def __init__(self, hang_s: float = 3.0):
        super().__init__(None)
        self.hang_s = hang_s
        self.closed = threading.Event()
        self.entered = threading.Event()

    def run_script(self, name, keys, args):
        self.entered.set()
        if self.closed.wait(self.hang_s):
            raise redis.exceptions.ConnectionError("connection closed")
        return 1

    def close(self):
        self.closed.set()
