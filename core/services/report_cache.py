from __future__ import annotations

import logging
from datetime import date, datetime, timedelta, timezone
from typing import Callable, Optional

from core.entities import DiscrepancyResult

logger = logging.getLogger(__name__)

CacheKey = tuple[date, date, Optional[str]]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ReportCache:
    """
    Recently computed report windows, keyed by (start_date, end_date, branch_filter).

    Owned by the caller (the Streamlit session keeps one); entries older than
    ``max_age`` are dropped on every access.
    """

    def __init__(self, max_age: timedelta = timedelta(days=7), clock: Callable[[], datetime] = _utcnow):
        self.max_age = max_age
        self._clock = clock
        self._entries: dict[CacheKey, tuple[datetime, tuple[DiscrepancyResult, ...]]] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CacheKey) -> bool:
        self.evict_expired()
        return key in self._entries

    def evict_expired(self) -> int:
        cutoff = self._clock() - self.max_age
        stale = [k for k, (stored_at, _) in self._entries.items() if stored_at < cutoff]
        for k in stale:
            del self._entries[k]
        if stale:
            logger.debug("Evicted %d expired report window(s)", len(stale))
        return len(stale)

    def get(self, key: CacheKey) -> Optional[list[DiscrepancyResult]]:
        self.evict_expired()
        entry = self._entries.get(key)
        if entry is None:
            return None
        return list(entry[1])

    def put(self, key: CacheKey, results: list[DiscrepancyResult]) -> None:
        self.evict_expired()
        self._entries[key] = (self._clock(), tuple(results))

    def invalidate(self, key: CacheKey) -> None:
        self._entries.pop(key, None)

    def clear(self) -> None:
        self._entries.clear()
