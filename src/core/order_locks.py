"""Per-order advisory locks for the payment workflow.

Webhooks, status checks and admin actions for the same order each do a
read-then-write on the order's payment row. Running them under a lock keyed
by order serializes those writes inside this process.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass
class _LockEntry:
    lock: asyncio.Lock = field(default_factory=asyncio.Lock)
    holders: int = 0


class OrderLockRegistry:
    """One asyncio.Lock per key, dropped again once nobody holds or waits on it."""

    def __init__(self) -> None:
        self._entries: dict[str, _LockEntry] = {}

    def __len__(self) -> int:
        return len(self._entries)

    @asynccontextmanager
    async def lock(self, key: str) -> AsyncIterator[None]:
        """Hold the lock for key for the duration of the block."""
        entry = self._entries.get(key)
        if entry is None:
            entry = _LockEntry()
            self._entries[key] = entry
        entry.holders += 1
        try:
            async with entry.lock:
                yield
        finally:
            entry.holders -= 1
            if entry.holders == 0:
                self._entries.pop(key, None)


_registry: OrderLockRegistry | None = None


def get_order_locks() -> OrderLockRegistry:
    """Get or create the process-wide lock registry."""
    global _registry
    if _registry is None:
        _registry = OrderLockRegistry()
    return _registry
