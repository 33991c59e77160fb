"""Thin adapter over a Redis client: plain commands plus the lock's Lua scripts."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Callable, Dict, Optional, Sequence

import redis
from redis.commands.core import Script

from ._common import get_redis_client

logger = logging.getLogger(__name__)

LUA_DIR = Path(__file__).with_name("lua")

ACQUIRE_SCRIPT = "acquire_reentrant"
RELEASE_SCRIPT = "release_reentrant"
RENEW_SCRIPT = "pexpire_if_owner"


def load_lua(name: str) -> str:
    return (LUA_DIR / f"{name}.lua").read_text(encoding="utf-8")


class RedisStore:
    def __init__(self, client: redis.Redis):
        self.r = client
        self._scripts: Dict[str, Script] = {}

    @classmethod
    def from_url(cls, url: Optional[str] = None) -> "RedisStore":
        return cls(get_redis_client(url))

    def get(self, key: str) -> Optional[str]:
        return self.r.get(key)

    def pttl(self, key: str) -> Optional[int]:
        """Remaining expiry in ms; None when the key is absent or has no expiry."""
        ms = self.r.pttl(key)
        return ms if ms is not None and ms >= 0 else None

    def set_if_absent(self, key: str, value: str, ttl_ms: int) -> bool:
        return bool(self.r.set(key, value, nx=True, px=ttl_ms))

    def set_with_expiry(self, key: str, value: str, ttl_ms: int) -> bool:
        return bool(self.r.set(key, value, px=ttl_ms))

    def delete(self, key: str) -> bool:
        return self.r.delete(key) > 0

    def script(self, name: str) -> Script:
        # register once per connection; Script falls back from EVALSHA to EVAL by itself
        if name not in self._scripts:
            self._scripts[name] = self.r.register_script(load_lua(name))
        return self._scripts[name]

    def run_script(self, name: str, keys: Sequence[str], args: Sequence[object]) -> int:
        res = self.script(name)(keys=list(keys), args=[str(a) for a in args])
        return int(res)

    def close(self) -> None:
        self.r.close()


StoreFactory = Callable[[Optional[str]], RedisStore]
