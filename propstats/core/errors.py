# propstats/core/errors.py


class PropStatsError(Exception):
    """Base class for engine errors."""


class DataAccessFailure(PropStatsError):
    """
    The game-log store could not be reached and nothing usable was cached.
    The underlying store error is chained as __cause__.
    """

    def __init__(self, message: str, cache_key: str | None = None):
        super().__init__(message)
        self.cache_key = cache_key


class InvalidProjectionType(PropStatsError, ValueError):
    def __init__(self, key: str):
        super().__init__(f"Unknown projection type: {key!r}")
        self.key = key


class EmptyInputToAdvancedMetrics(PropStatsError):
    """Advanced metrics need at least one game."""
