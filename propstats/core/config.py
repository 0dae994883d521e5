# propstats/core/config.py
import os


def _float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return float(raw)
    except ValueError:
        return default


DATABASE_URL = os.getenv("DATABASE_URL")
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO").upper()

# ------------ Cache (seconds) ------------
CACHE_SWEEP_INTERVAL = _float_env("CACHE_SWEEP_INTERVAL", 5 * 60)
CACHE_DEFAULT_TTL = _float_env("CACHE_DEFAULT_TTL", 5 * 60)
ANALYSIS_TTL = _float_env("ANALYSIS_TTL", 5 * 60)
STATS_TTL = _float_env("STATS_TTL", 15 * 60)
ADVANCED_TTL = _float_env("ADVANCED_TTL", 15 * 60)

# ------------ Fallback (seconds) ------------
FALLBACK_BASE_INTERVAL = _float_env("FALLBACK_BASE_INTERVAL", 30)
FALLBACK_MAX_INTERVAL = _float_env("FALLBACK_MAX_INTERVAL", 5 * 60)
# last-known-good copies outlive the regular TTLs
FALLBACK_CACHE_TTL = _float_env("FALLBACK_CACHE_TTL", 24 * 60 * 60)

# ------------ Filters ------------
ROSTER_LOOKUP_CONCURRENCY = int(_float_env("ROSTER_LOOKUP_CONCURRENCY", 6))

# ------------ Rolling splits ------------
TRACKED_PLAYER_DAYS = int(_float_env("TRACKED_PLAYER_DAYS", 60))
# history read per player; covers the largest window across an off-season
ROLLING_HISTORY_DAYS = int(_float_env("ROLLING_HISTORY_DAYS", 365))
CRON_SECRET = os.getenv("CRON_SECRET")
