from __future__ import annotations

from typing import Optional

import redis

from .config import get_settings


def get_redis_client(url: Optional[str] = None) -> redis.Redis:
    # a new client per call: handles and watchdogs never share a connection
    url = url or get_settings().REDIS_URL
    if url:
        return redis.Redis.from_url(url, decode_responses=True)
    return redis.Redis(host="127.0.0.1", port=6379, db=0, decode_responses=True)
