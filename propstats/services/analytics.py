# propstats/services/analytics.py
from __future__ import annotations

import logging
import re
from datetime import date
from typing import Any, Awaitable, Callable, FrozenSet, List, Optional, Tuple

from propstats.core import config
from propstats.models.projections import ProjectionType
from propstats.models.types import (
    NO_FILTERS,
    AdvancedMetrics,
    AnalysisResult,
    FilterSpec,
    GameOutcome,
    GameRecord,
    OpponentTrend,
    SeasonComparison,
)
from propstats.services import advanced_metrics, league_metrics, prop_metrics
from propstats.services.cache import (
    LAST_GOOD_PREFIX,
    TTLCache,
    advanced_metrics_key,
    game_outcomes_key,
    league_stats_key,
    opponent_trends_key,
    player_stats_key,
    prop_analysis_key,
    season_comparison_key,
    teammates_key,
)
from propstats.services.fallback import FallbackService
from propstats.services.filters import apply_filters, games_with_teammates, without_last_n
from propstats.services.game_logs import GameLogSource

logger = logging.getLogger("propstats.analytics")

_SEASON_RE = re.compile(r"^(\d{4})-(\d{2}|\d{4})$")


def season_date_range(season: str) -> Tuple[date, date]:
    """
    '2023-24' -> (2023-10-01, 2024-06-30): regular season through the Finals.
    """
    m = _SEASON_RE.match((season or "").strip())
    if not m:
        raise ValueError(f"season must look like '2023-24', got {season!r}")
    start_year = int(m.group(1))
    end_part = m.group(2)
    end_year = start_year + 1
    # a two-digit suffix only names the last two digits, so '1999-00' ends in 2000
    expected = str(end_year) if len(end_part) == 4 else f"{end_year % 100:02d}"
    if end_part != expected:
        raise ValueError(f"season {season!r} must span consecutive years")
    return date(start_year, 10, 1), date(end_year, 6, 30)


class PlayerAnalyticsEngine:
    """
    Caller-facing entry points. Every read of the game-log store goes through
    the fallback service; computed results are memoized in the cache.

    "No qualifying games" comes back as an AnalysisResult with
    no_data_available set; "store unreachable and nothing cached" raises
    DataAccessFailure.
    """

    def __init__(
        self,
        source: GameLogSource,
        cache: TTLCache,
        fallback: FallbackService,
        analysis_ttl: float = config.ANALYSIS_TTL,
        stats_ttl: float = config.STATS_TTL,
        advanced_ttl: float = config.ADVANCED_TTL,
    ):
        self.source = source
        self.cache = cache
        self.fallback = fallback
        self.analysis_ttl = analysis_ttl
        self.stats_ttl = stats_ttl
        self.advanced_ttl = advanced_ttl

    # -----------------------------
    # Record loading
    # -----------------------------

    async def _read(self, key: str, operation: Callable[[], Awaitable[Any]]) -> Any:
        # short-lived memo under `key`; the fallback copy lives under its own
        # prefix so invalidate_player() leaves it alone
        return await self.cache.get_or_compute(
            key,
            lambda: self.fallback.execute_with_fallback(operation, LAST_GOOD_PREFIX + key),
            self.stats_ttl,
        )

    async def load_records(
        self,
        player_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[GameRecord]:
        return await self._read(
            player_stats_key(player_id, start_date, end_date),
            lambda: self.source.fetch_game_logs(player_id, start_date, end_date),
        )

    async def _teammate_games(
        self, player_id: int, records: List[GameRecord], spec: FilterSpec
    ) -> FrozenSet[int]:
        if not spec.exclude_teammates:
            return frozenset()
        return await self._read(
            teammates_key(player_id, spec.exclude_teammates, spec.start_date, spec.end_date),
            lambda: games_with_teammates(records, spec.exclude_teammates, self.source.fetch_team_game_rows),
        )

    async def filtered_records(self, player_id: int, filters: Optional[FilterSpec] = None) -> List[GameRecord]:
        spec = filters or NO_FILTERS
        records = await self.load_records(player_id, spec.start_date, spec.end_date)

        # predicates first, then teammate exclusion, then the last-N cap
        base = apply_filters(records, without_last_n(spec))
        excluded = await self._teammate_games(player_id, records, spec)
        return apply_filters(base, spec, excluded)

    # -----------------------------
    # Public operations
    # -----------------------------

    async def analyze(
        self,
        player_id: int,
        projection: ProjectionType | str,
        line: float,
        filters: Optional[FilterSpec] = None,
    ) -> AnalysisResult:
        proj = ProjectionType.parse(projection)
        key = prop_analysis_key(player_id, proj, line, filters)

        async def _compute() -> AnalysisResult:
            records = await self.filtered_records(player_id, filters)
            result = prop_metrics.analyze(records, proj, line)
            if result.no_data_available:
                logger.info("ANALYZE player=%s prop=%s line=%s -> no qualifying games", player_id, proj, line)
            return result

        return await self.cache.get_or_compute(key, _compute, self.analysis_ttl)

    async def game_outcomes(
        self,
        player_id: int,
        projection: ProjectionType | str,
        line: float,
        filters: Optional[FilterSpec] = None,
    ) -> List[GameOutcome]:
        proj = ProjectionType.parse(projection)
        key = game_outcomes_key(player_id, proj, line, filters)

        async def _compute() -> List[GameOutcome]:
            records = await self.filtered_records(player_id, filters)
            return prop_metrics.game_outcomes(records, proj, line)

        return await self.cache.get_or_compute(key, _compute, self.analysis_ttl)

    async def advanced_metrics(
        self,
        player_id: int,
        projection: ProjectionType | str,
        season: str,
    ) -> AdvancedMetrics:
        proj = ProjectionType.parse(projection)
        start, end = season_date_range(season)
        key = advanced_metrics_key(player_id, proj, season)

        async def _compute() -> AdvancedMetrics:
            records = await self.filtered_records(player_id, FilterSpec(start_date=start, end_date=end))
            return advanced_metrics.compute(records, proj)

        return await self.cache.get_or_compute(key, _compute, self.advanced_ttl)

    async def _season_records(self, start: date, end: date) -> List[GameRecord]:
        records = await self._read(
            league_stats_key(start, end),
            lambda: self.source.fetch_season_game_logs(start, end),
        )
        return apply_filters(records, FilterSpec(start_date=start, end_date=end))

    async def opponent_trends(
        self,
        projection: ProjectionType | str,
        season: str,
    ) -> List[OpponentTrend]:
        proj = ProjectionType.parse(projection)
        start, end = season_date_range(season)

        async def _compute() -> List[OpponentTrend]:
            records = await self._season_records(start, end)
            return league_metrics.opponent_trends(records, proj)

        return await self.cache.get_or_compute(opponent_trends_key(proj, season), _compute, self.advanced_ttl)

    async def season_comparison(
        self,
        player_id: int,
        projection: ProjectionType | str,
        season: str,
    ) -> SeasonComparison:
        """A player's season average and trend, ranked against every qualified player."""
        proj = ProjectionType.parse(projection)
        start, end = season_date_range(season)
        key = season_comparison_key(player_id, proj, season)

        async def _compute() -> SeasonComparison:
            records = await self._season_records(start, end)
            return league_metrics.season_comparison(player_id, records, proj)

        return await self.cache.get_or_compute(key, _compute, self.advanced_ttl)

    def invalidate_player(self, player_id: int) -> int:
        removed = self.cache.invalidate_player(player_id)
        logger.info("ANALYTICS invalidated %d cache entries for player=%s", removed, player_id)
        return removed
