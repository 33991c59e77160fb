"""Python-side view of the value stored under a lock key.

The Lua scripts are the only writers; this module mirrors their parsing so
callers can inspect a key without running a script.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Optional

SEPARATOR = ":"

# greedy owner: only the last ":<digits>" is the counter
_VALUE_RE = re.compile(r"^(.*):(\d+)$", re.DOTALL)


@dataclass(frozen=True)
class LockRecord:
    owner: str
    count: int = 1
    pttl_ms: Optional[int] = None
    legacy: bool = False

    @classmethod
    def parse(cls, value: str, pttl_ms: Optional[int] = None) -> "LockRecord":
        m = _VALUE_RE.match(value)
        if not m:
            # bare value written by an older client: one hold
            return cls(owner=value, count=1, pttl_ms=pttl_ms, legacy=True)
        return cls(owner=m.group(1), count=int(m.group(2)), pttl_ms=pttl_ms)

    def encode(self) -> str:
        return f"{self.owner}{SEPARATOR}{self.count}"

    def owned_by(self, owner: str) -> bool:
        return self.owner == owner
