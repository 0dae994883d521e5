# propstats/services/rolling_splits.py
"""
Rolling splits precomputation.

For every tracked player, materialize windowed averages and hit rates at a
few canonical lines, one row per (player, prop, window). Rows are upserted,
so the job can be re-run or restarted at any point.

Usage:
    propstats-rolling-splits [--days 60]
"""
from __future__ import annotations

import argparse
import asyncio
import logging
import sys
import time
from datetime import date, datetime, timedelta
from typing import Any, Callable, Dict, List, Optional, Sequence
from zoneinfo import ZoneInfo

from propstats.core import config
from propstats.core.db import close_engine, init_engine
from propstats.core.persist import ensure_schema
from propstats.models.projections import ROLLING_PROJECTIONS, ProjectionType
from propstats.models.types import GameRecord, RollingSplitRow
from propstats.services.cache import LAST_GOOD_PREFIX, TTLCache, player_stats_key
from propstats.services.fallback import FallbackService
from propstats.services.game_logs import GameLogSource, SqlGameLogSource
from propstats.services.prop_metrics import analyze

logger = logging.getLogger("propstats.rolling_splits")

NY = ZoneInfo("America/New_York")

WINDOWS = (5, 10, 15, 20, 30)
CANONICAL_LINES = (1.5, 2.5, 3.5)


def today_ny() -> date:
    return datetime.now(NY).date()


def compute_rolling_splits(
    player_id: int,
    records: Sequence[GameRecord],
    projections: Sequence[ProjectionType] = ROLLING_PROJECTIONS,
    windows: Sequence[int] = WINDOWS,
    lines: Sequence[float] = CANONICAL_LINES,
) -> List[RollingSplitRow]:
    """
    `records` is the player's unfiltered, date-descending history. Each
    window reuses analyze() over the first N games so the stored numbers
    match an on-demand analysis with last_n_games=N.
    """
    rows: List[RollingSplitRow] = []
    if not records:
        return rows

    for proj in projections:
        for window in windows:
            window_records = records[:window]
            by_line = {line: analyze(window_records, proj, line) for line in lines}
            first = next(iter(by_line.values()))
            rows.append(
                RollingSplitRow(
                    player_id=player_id,
                    prop_type=proj.key,
                    games_count=window,
                    games_played=first.total_games,
                    average=first.average,
                    hit_rates={line: res.hit_rate for line, res in by_line.items()},
                )
            )
    return rows


class RollingSplitsJob:
    def __init__(
        self,
        source: GameLogSource,
        fallback: FallbackService,
        projections: Sequence[ProjectionType] = ROLLING_PROJECTIONS,
        windows: Sequence[int] = WINDOWS,
        tracked_days: int = config.TRACKED_PLAYER_DAYS,
        history_days: int = config.ROLLING_HISTORY_DAYS,
        today: Callable[[], date] = today_ny,
    ):
        self.source = source
        self.fallback = fallback
        self.projections = tuple(projections)
        self.windows = tuple(windows)
        self.tracked_days = tracked_days
        self.history_days = history_days
        self._today = today

    async def refresh_player(self, player_id: int) -> Optional[int]:
        """Rows written for one player, or None if the upsert failed."""
        start = self._today() - timedelta(days=self.history_days)
        # the prefix keeps this copy out of the engine's short-lived memo keys
        records = await self.fallback.execute_with_fallback(
            lambda: self.source.fetch_game_logs(player_id, start),
            LAST_GOOD_PREFIX + player_stats_key(player_id, start),
        )
        rows = compute_rolling_splits(player_id, records, self.projections, self.windows)
        if not rows:
            return 0
        return await self.fallback.safe_write(
            lambda: self.source.upsert_rolling_splits(rows),
            f"rolling splits upsert failed for player {player_id}",
        )

    async def run(self) -> Dict[str, Any]:
        since = self._today() - timedelta(days=self.tracked_days)
        logger.info("ROLLING starting computation for players active since %s", since)

        players = await self.fallback.execute_with_fallback(
            lambda: self.source.list_tracked_players(since),
            f"tracked-players:{since.isoformat()}",
        )
        logger.info("ROLLING found %d active players to process", len(players))

        processed = errors = rows_written = 0
        for player_id in players:
            try:
                written = await self.refresh_player(player_id)
            except Exception as exc:
                errors += 1
                logger.error("ROLLING failed to process player %s: %r", player_id, exc)
                continue
            if written is None:
                errors += 1
                continue
            processed += 1
            rows_written += written
            if processed % 50 == 0:
                logger.info("ROLLING processed %d/%d players", processed, len(players))

        summary = {
            "processed": processed,
            "errors": errors,
            "total": len(players),
            "rows": rows_written,
        }
        logger.info("ROLLING completed: %s", summary)
        return summary


# -----------------------------
# CLI
# -----------------------------

async def _run_once(days: int) -> Dict[str, Any]:
    engine = await init_engine()
    if engine is None:
        raise RuntimeError("DATABASE_URL is required for the rolling splits job")
    try:
        await ensure_schema(engine)
        source = SqlGameLogSource(engine)
        fallback = FallbackService(TTLCache(), probe=source.ping)
        return await RollingSplitsJob(source, fallback, tracked_days=days).run()
    finally:
        await close_engine()


def main(argv: Optional[List[str]] = None) -> int:
    parser = argparse.ArgumentParser(description="Recompute rolling splits for all active players")
    parser.add_argument(
        "--days",
        type=int,
        default=config.TRACKED_PLAYER_DAYS,
        help="players with a game in the last N days are processed",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=config.LOG_LEVEL)
    t0 = time.perf_counter()
    try:
        summary = asyncio.run(_run_once(args.days))
    except Exception:
        logger.exception("ROLLING sync failed")
        return 1
    logger.info("ROLLING sync finished in %.1fs: %s", time.perf_counter() - t0, summary)
    return 0


if __name__ == "__main__":
    sys.exit(main())
