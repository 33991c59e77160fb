from __future__ import annotations

import argparse
import logging
import sys
import time
from typing import Optional, Sequence

from .config import get_settings
from .dist_lock import LockHandle
from .owner import new_owner


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    s = get_settings()
    p = argparse.ArgumentParser(prog="relock", description="Reentrant Redis lock tool")
    p.add_argument("--url", default=None, help="Redis URL (default: REDIS_URL)")
    p.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = p.add_subparsers(dest="command", required=True)

    h = sub.add_parser("hold", help="Acquire a lock, hold it for a while, release")
    h.add_argument("--resource", required=True, help="Resource name")
    h.add_argument("--ttl-ms", type=int, default=s.LOCK_TTL_MS, help=f"Lock TTL in ms (default: {s.LOCK_TTL_MS})")
    h.add_argument("--wait-ms", type=int, default=s.LOCK_WAIT_MS, help=f"Max wait ms (default: {s.LOCK_WAIT_MS})")
    h.add_argument("--retry-ms", type=int, default=s.LOCK_RETRY_MS, help=f"Retry interval ms (default: {s.LOCK_RETRY_MS})")
    h.add_argument("--work-ms", type=int, default=2000, help="Simulated work time in ms (default: 2000)")
    h.add_argument("--owner", default=None, help="Owner token (default: this process and thread)")
    h.add_argument("--no-watchdog", action="store_true", help="Do not renew the lease while holding")

    i = sub.add_parser("inspect", help="Show who holds a lock")
    i.add_argument("--resource", required=True, help="Resource name")
    return p.parse_args(argv)


def lock_key(resource: str) -> str:
    return f"{get_settings().LOCK_KEY_PREFIX}{resource}"


def cmd_hold(a: argparse.Namespace, handle: LockHandle) -> int:
    key = lock_key(a.resource)
    owner = a.owner or new_owner()
    handle.watchdog_enabled = not a.no_watchdog
    if not handle.acquire(key, owner, ttl_ms=a.ttl_ms, wait_ms=a.wait_ms, retry_ms=a.retry_ms):
        print(f"[lock] acquire timed out key={key}")
        return 1
    print(f"[lock] acquired key={key} owner={owner} ttl_ms={a.ttl_ms}")
    try:
        time.sleep(a.work_ms / 1000.0)
    finally:
        released = handle.release(key, owner)
        print(f"[lock] released={released}")
    return 0


def cmd_inspect(a: argparse.Namespace, handle: LockHandle) -> int:
    key = lock_key(a.resource)
    rec = handle.inspect(key)
    if rec is None:
        print(f"[lock] key={key} free")
        return 0
    legacy = " legacy" if rec.legacy else ""
    print(f"[lock] key={key} owner={rec.owner} count={rec.count} pttl_ms={rec.pttl_ms}{legacy}")
    return 0


COMMANDS = {"hold": cmd_hold, "inspect": cmd_inspect}


def main(argv: Optional[Sequence[str]] = None, handle: Optional[LockHandle] = None) -> int:
    a = parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if a.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    handle = handle or LockHandle.open(a.url)
    with handle:
        return COMMANDS[a.command](a, handle)


if __name__ == "__main__":
    try:
        sys.exit(main())
    except KeyboardInterrupt:
        sys.exit(130)
