"""Reentrant distributed lock on Redis with watchdog lease renewal."""
from .config import Settings, get_settings
from .dist_lock import LockHandle, LockNotAcquired, LockState
from .owner import new_owner
from .record import LockRecord
from .store import RedisStore
from .watchdog import Watchdog

__version__ = "0.1.0"

__all__ = [
    "LockHandle",
    "LockNotAcquired",
    "LockRecord",
    "LockState",
    "RedisStore",
    "Settings",
    "Watchdog",
    "get_settings",
    "new_owner",
]
