"""TTL cache of fetched price histories.

Lets one scan run several signal configurations against the same data
without refetching. Keys are ``(ticker, as_of)``; an entry older than the TTL
is evicted on read. The cache is handed to the scan loop explicitly; the
signal engine never touches it.
"""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from datetime import date
from typing import Callable, Optional

from .config import CacheConfig
from .data_provider import OhlcvFrame

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheEntry:
    frame: OhlcvFrame
    fetched_at: float


class PriceCache:
    """In-process cache keyed by (ticker, as-of date)."""

    def __init__(self, config: CacheConfig = CacheConfig(), clock: Callable[[], float] = time.monotonic):
        self.config = config
        self._clock = clock
        self._entries: dict[tuple[str, date], CacheEntry] = {}
        self.hits = 0
        self.misses = 0
        self.evictions = 0

    @staticmethod
    def _key(ticker: str, as_of: date) -> tuple[str, date]:
        return ticker.strip().upper(), as_of

    def get(self, ticker: str, as_of: date) -> Optional[OhlcvFrame]:
        """Cached frame, or None when missing or stale."""
        key = self._key(ticker, as_of)
        entry = self._entries.get(key)
        if entry is None:
            self.misses += 1
            return None

        age = self._clock() - entry.fetched_at
        if age > self.config.ttl_seconds:
            del self._entries[key]
            self.evictions += 1
            self.misses += 1
            logger.debug("Evicted stale %s@%s (age %.1fs)", key[0], as_of, age)
            return None

        self.hits += 1
        return entry.frame

    def set(self, ticker: str, as_of: date, frame: OhlcvFrame) -> None:
        self._entries[self._key(ticker, as_of)] = CacheEntry(frame=frame, fetched_at=self._clock())
        logger.debug("Cached %s@%s: %d bars", ticker, as_of, len(frame))

    def has(self, ticker: str, as_of: date) -> bool:
        entry = self._entries.get(self._key(ticker, as_of))
        return entry is not None and self._clock() - entry.fetched_at <= self.config.ttl_seconds

    def invalidate(self, ticker: str, as_of: date) -> bool:
        return self._entries.pop(self._key(ticker, as_of), None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def __len__(self) -> int:
        return len(self._entries)

    def stats(self) -> dict:
        now = self._clock()
        return {
            "size": len(self._entries),
            "hits": self.hits,
            "misses": self.misses,
            "evictions": self.evictions,
            "details": [
                {"ticker": t, "as_of": d.isoformat(), "bars": len(e.frame), "age": now - e.fetched_at}
                for (t, d), e in self._entries.items()
            ],
        }
