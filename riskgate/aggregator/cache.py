"""Async-safe TTL cache keyed by ``(fact, contract)``.

Reads take no lock; writes are last-writer-wins under a single asyncio.Lock.
The clock is injectable so tests can expire entries without sleeping.
"""

from __future__ import annotations

import asyncio
import time
from dataclasses import dataclass
from typing import Any, Callable, Optional

from riskgate.constants import FACT_CACHE_TTL_S


@dataclass
class _Entry:
    value: Any
    expires_at: float


class FactCache:
    def __init__(
        self,
        ttl_s: float = FACT_CACHE_TTL_S,
        clock: Callable[[], float] = time.monotonic,
        sweep_at: int = 10_000,
    ) -> None:
        self._ttl_s = ttl_s
        self._sweep_at = sweep_at
        self._clock = clock
        self._entries: dict[tuple[str, str], _Entry] = {}
        self._lock = asyncio.Lock()

    @staticmethod
    def _key(fact: str, contract: str) -> tuple[str, str]:
        return fact, contract.lower()

    def lookup(self, fact: str, contract: str) -> tuple[bool, Any]:
        """Return ``(hit, value)``. Expired entries count as misses."""
        entry = self._entries.get(self._key(fact, contract))
        if entry is None or entry.expires_at <= self._clock():
            return False, None
        return True, entry.value

    def get(self, fact: str, contract: str) -> Any:
        return self.lookup(fact, contract)[1]

    async def set(self, fact: str, contract: str, value: Any, ttl_s: Optional[float] = None) -> None:
        """Store ``value``. Once the map reaches ``sweep_at`` entries, expired ones are dropped first."""
        ttl = self._ttl_s if ttl_s is None else ttl_s
        async with self._lock:
            if len(self._entries) >= self._sweep_at:
                self._drop_expired()
            self._entries[self._key(fact, contract)] = _Entry(value, self._clock() + ttl)

    async def purge_expired(self) -> int:
        async with self._lock:
            return self._drop_expired()

    def _drop_expired(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.expires_at <= now]
        for key in expired:
            del self._entries[key]
        return len(expired)

    def __len__(self) -> int:
        return len(self._entries)
