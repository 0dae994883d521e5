# propstats/services/fallback.py
from __future__ import annotations

import logging
import time
from dataclasses import dataclass, replace
from typing import Any, Awaitable, Callable, Optional, TypeVar

from propstats.core import config
from propstats.core.errors import DataAccessFailure
from propstats.services.cache import MISSING, TTLCache

logger = logging.getLogger("propstats.fallback")

T = TypeVar("T")


@dataclass
class FallbackState:
    is_fallback_mode: bool = False
    last_error: Optional[str] = None
    last_error_time: Optional[float] = None
    retry_count: int = 0

    def to_dict(self) -> dict:
        return {
            "isFallbackMode": self.is_fallback_mode,
            "lastError": self.last_error,
            "lastErrorTime": self.last_error_time,
            "retryCount": self.retry_count,
        }


class FallbackService:
    """
    Wraps every call into the game-log store.

    State machine: normal -> fallback on any exception from a wrapped
    operation, fallback -> normal on the next successful read or write.
    Reads that fail are answered from the last-known-good copy in the cache,
    then from a caller default, and only then raise DataAccessFailure.
    The backoff clock is shared by all operations in the process.
    """

    def __init__(
        self,
        cache: TTLCache,
        probe: Optional[Callable[[], Awaitable[Any]]] = None,
        base_interval: float = config.FALLBACK_BASE_INTERVAL,
        max_interval: float = config.FALLBACK_MAX_INTERVAL,
        cache_ttl: float = config.FALLBACK_CACHE_TTL,
        clock: Callable[[], float] = time.time,
    ):
        self.cache = cache
        self.probe = probe
        self.base_interval = base_interval
        self.max_interval = max_interval
        self.cache_ttl = cache_ttl
        self._clock = clock
        self._state = FallbackState()

    # -----------------------------
    # State
    # -----------------------------

    def state(self) -> FallbackState:
        return replace(self._state)

    @property
    def is_fallback_mode(self) -> bool:
        return self._state.is_fallback_mode

    def reset(self) -> None:
        self._state = FallbackState()

    def _record_failure(self, exc: BaseException, message: Optional[str] = None) -> None:
        st = self._state
        st.is_fallback_mode = True
        detail = str(exc) or exc.__class__.__name__
        st.last_error = f"{message}: {detail}" if message else detail
        st.last_error_time = self._clock()
        st.retry_count += 1

    def _record_success(self, what: str) -> None:
        if self._state.is_fallback_mode:
            logger.info("FALLBACK data store restored during %s", what)
            self.reset()

    def backoff_interval(self) -> float:
        """base * 2^(failures-1), capped at max_interval."""
        failures = max(self._state.retry_count, 1)
        return min(self.base_interval * (2 ** (failures - 1)), self.max_interval)

    def should_retry(self) -> bool:
        st = self._state
        if not st.is_fallback_mode:
            return False
        if st.last_error_time is None:
            return True
        return self._clock() - st.last_error_time > self.backoff_interval()

    def seconds_until_retry(self) -> float:
        if not self._state.is_fallback_mode or self._state.last_error_time is None:
            return 0.0
        elapsed = self._clock() - self._state.last_error_time
        return max(self.backoff_interval() - elapsed, 0.0)

    # -----------------------------
    # Wrapped operations
    # -----------------------------

    async def execute_with_fallback(
        self,
        operation: Callable[[], Awaitable[T]],
        cache_key: str,
        default: Any = MISSING,
        ttl: Optional[float] = None,
    ) -> T:
        # inside the backoff window, serve the last-known-good copy untouched
        if self._state.is_fallback_mode and not self.should_retry():
            cached = self.cache.get(cache_key, MISSING)
            if cached is not MISSING:
                logger.info("FALLBACK serving cached %s (retry in %.0fs)", cache_key, self.seconds_until_retry())
                return cached

        try:
            result = await operation()
        except Exception as exc:
            self._record_failure(exc)
            logger.error(
                "FALLBACK data store error for %s (failures=%d): %r",
                cache_key,
                self._state.retry_count,
                exc,
            )

            cached = self.cache.get(cache_key, MISSING)
            if cached is not MISSING:
                logger.warning("FALLBACK loaded cached data for %s", cache_key)
                return cached
            if default is not MISSING:
                logger.warning("FALLBACK using provided default for %s", cache_key)
                return default
            raise DataAccessFailure(f"data store unavailable: {exc}", cache_key=cache_key) from exc

        self.cache.set(cache_key, result, self.cache_ttl if ttl is None else ttl)
        self._record_success("read")
        return result

    async def safe_write(
        self,
        operation: Callable[[], Awaitable[T]],
        error_message: str = "write operation failed",
    ) -> Optional[T]:
        """Writes are never answered from cache; failure returns None."""
        try:
            result = await operation()
        except Exception as exc:
            self._record_failure(exc, error_message)
            logger.error("FALLBACK %s (failures=%d): %r", error_message, self._state.retry_count, exc)
            return None
        self._record_success("write")
        return result

    async def force_retry(self) -> bool:
        """Skip the backoff window and probe the store directly."""
        if self.probe is None:
            logger.warning("FALLBACK force_retry without a probe configured")
            return False
        try:
            await self.probe()
        except Exception as exc:
            logger.error("FALLBACK connection test failed: %r", exc)
            return False
        self.reset()
        logger.info("FALLBACK connection test successful")
        return True
