# propstats/services/cache.py
from __future__ import annotations

import asyncio
import fnmatch
import inspect
import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from propstats.core import config
from propstats.models.projections import ProjectionType
from propstats.models.types import FilterSpec

logger = logging.getLogger("propstats.cache")

MISSING = object()

# last-known-good copies sit beside the memo keys, outside every player namespace
LAST_GOOD_PREFIX = "last-good:"

# every key namespace whose second segment is a player id
PLAYER_KEY_NAMESPACES = (
    "prop-analysis",
    "game-outcomes",
    "advanced-metrics",
    "player-stats",
    "teammates",
    "season-comparison",
)


@dataclass
class CacheEntry:
    key: str
    payload: Any
    created_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.created_at > self.ttl


@dataclass
class CacheStats:
    hits: int = 0
    misses: int = 0
    sets: int = 0
    deletes: int = 0
    evictions: int = 0
    size: int = 0

    @property
    def hit_rate(self) -> float:
        total = self.hits + self.misses
        return self.hits / total * 100.0 if total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "hits": self.hits,
            "misses": self.misses,
            "sets": self.sets,
            "deletes": self.deletes,
            "evictions": self.evictions,
            "size": self.size,
            "hitRate": self.hit_rate,
        }


class TTLCache:
    """
    In-process key/value store with per-entry TTL (seconds).

    Expired entries are dropped lazily on read and by a periodic sweep whose
    interval is independent of any entry's TTL. A single lock serializes
    writers; it is never held across an await, so concurrent callers of
    get_or_compute may each compute and overwrite the same key.
    """

    def __init__(
        self,
        default_ttl: float = config.CACHE_DEFAULT_TTL,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.default_ttl = default_ttl
        self._clock = clock
        self._entries: Dict[str, CacheEntry] = {}
        self._lock = threading.Lock()
        self._stats = CacheStats()
        self._sweeper: Optional[asyncio.Task] = None

    # -----------------------------
    # Core operations
    # -----------------------------

    def _lookup(self, key: str) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None:
                self._stats.misses += 1
                return MISSING
            if entry.is_expired(now):
                del self._entries[key]
                self._stats.evictions += 1
                self._stats.misses += 1
                return MISSING
            self._stats.hits += 1
            return entry.payload

    def get(self, key: str, default: Any = None) -> Any:
        value = self._lookup(key)
        return default if value is MISSING else value

    def set(self, key: str, value: Any, ttl: Optional[float] = None) -> None:
        entry = CacheEntry(
            key=key,
            payload=value,
            created_at=self._clock(),
            ttl=self.default_ttl if ttl is None else ttl,
        )
        with self._lock:
            self._entries[key] = entry
            self._stats.sets += 1

    def has(self, key: str) -> bool:
        return self._lookup(key) is not MISSING

    def delete(self, key: str) -> bool:
        with self._lock:
            removed = self._entries.pop(key, None) is not None
            if removed:
                self._stats.deletes += 1
        return removed

    def clear(self) -> None:
        with self._lock:
            self._entries.clear()
            self._stats = CacheStats()

    def invalidate_by_pattern(self, pattern: str) -> int:
        """Drop every key matching a glob (`*`, `?`, `[...]`)."""
        with self._lock:
            doomed = [k for k in self._entries if fnmatch.fnmatchcase(k, pattern)]
            for k in doomed:
                del self._entries[k]
            self._stats.deletes += len(doomed)
        if doomed:
            logger.info("CACHE invalidate pattern=%s -> %d keys", pattern, len(doomed))
        return len(doomed)

    def invalidate_player(self, player_id: int) -> int:
        return sum(
            self.invalidate_by_pattern(f"{ns}:{player_id}:*") for ns in PLAYER_KEY_NAMESPACES
        )

    async def get_or_compute(
        self,
        key: str,
        compute_fn: Callable[[], Union[Any, Awaitable[Any]]],
        ttl: Optional[float] = None,
    ) -> Any:
        """
        Preferred entry point: return the cached value, or compute, store and
        return it. Exceptions from compute_fn propagate and nothing is stored.
        """
        cached = self._lookup(key)
        if cached is not MISSING:
            return cached

        value = compute_fn()
        if inspect.isawaitable(value):
            value = await value
        self.set(key, value, ttl)
        return value

    # -----------------------------
    # Expiry sweep
    # -----------------------------

    def sweep(self) -> int:
        now = self._clock()
        with self._lock:
            expired = [k for k, e in self._entries.items() if e.is_expired(now)]
            for k in expired:
                del self._entries[k]
            self._stats.evictions += len(expired)
        if expired:
            logger.info("CACHE sweep removed %d expired entries", len(expired))
        return len(expired)

    async def _sweep_loop(self, interval: float) -> None:
        while True:
            await asyncio.sleep(interval)
            try:
                self.sweep()
            except Exception:
                logger.exception("CACHE sweep failed")

    def start_sweeper(self, interval: float = config.CACHE_SWEEP_INTERVAL) -> asyncio.Task:
        if self._sweeper is None or self._sweeper.done():
            self._sweeper = asyncio.get_running_loop().create_task(self._sweep_loop(interval))
            logger.info("CACHE sweeper started every %.0fs", interval)
        return self._sweeper

    async def stop_sweeper(self) -> None:
        task, self._sweeper = self._sweeper, None
        if task is None:
            return
        task.cancel()
        try:
            await task
        except asyncio.CancelledError:
            pass

    # -----------------------------
    # Introspection
    # -----------------------------

    def stats(self) -> CacheStats:
        with self._lock:
            return CacheStats(
                hits=self._stats.hits,
                misses=self._stats.misses,
                sets=self._stats.sets,
                deletes=self._stats.deletes,
                evictions=self._stats.evictions,
                size=len(self._entries),
            )

    def __len__(self) -> int:
        return len(self._entries)


# -----------------------------
# Key builders
# -----------------------------

def _line_token(line: float) -> str:
    return repr(float(line))


def _filters_token(filters: Optional[FilterSpec]) -> str:
    return (filters or FilterSpec()).cache_token()


def prop_analysis_key(
    player_id: int,
    projection: ProjectionType,
    line: float,
    filters: Optional[FilterSpec] = None,
) -> str:
    return f"prop-analysis:{player_id}:{projection.key}:{_line_token(line)}:{_filters_token(filters)}"


def game_outcomes_key(
    player_id: int,
    projection: ProjectionType,
    line: float,
    filters: Optional[FilterSpec] = None,
) -> str:
    return f"game-outcomes:{player_id}:{projection.key}:{_line_token(line)}:{_filters_token(filters)}"


def advanced_metrics_key(player_id: int, projection: ProjectionType, season: str) -> str:
    return f"advanced-metrics:{player_id}:{projection.key}:{season}"


def player_stats_key(player_id: int, start_date=None, end_date=None) -> str:
    start = start_date.isoformat() if start_date else "-"
    end = end_date.isoformat() if end_date else "-"
    return f"player-stats:{player_id}:{start}:{end}"


def teammates_key(player_id: int, teammate_ids, start_date=None, end_date=None) -> str:
    ids = ",".join(str(i) for i in sorted(teammate_ids))
    start = start_date.isoformat() if start_date else "-"
    end = end_date.isoformat() if end_date else "-"
    return f"teammates:{player_id}:{ids}:{start}:{end}"


def league_stats_key(start_date, end_date) -> str:
    return f"league-stats:{start_date.isoformat()}:{end_date.isoformat()}"


def opponent_trends_key(projection: ProjectionType, season: str) -> str:
    return f"opponent-trends:{projection.key}:{season}"


def season_comparison_key(player_id: int, projection: ProjectionType, season: str) -> str:
    return f"season-comparison:{player_id}:{projection.key}:{season}"
