# propstats/services/league_metrics.py
"""
Comparisons across the whole league for one season: what each opponent
gives up for a prop, and where a player's season average ranks.

Both take date-descending stat lines for every player in the season window.
"""
from __future__ import annotations

from collections import defaultdict
from typing import Dict, List, Optional, Sequence

from propstats.models.projections import ProjectionType
from propstats.models.types import GameRecord, OpponentTrend, SeasonComparison
from propstats.services.advanced_metrics import season_trend
from propstats.services.extractor import extract, extract_all

# stat lines an opponent (or a player) needs before it is ranked
MIN_GAMES = 10


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def opponent_trends(
    records: Sequence[GameRecord],
    projection: ProjectionType | str,
    min_games: int = MIN_GAMES,
) -> List[OpponentTrend]:
    """
    Average prop value allowed per player stat line, grouped by the team each
    line was recorded against. Rank 1 gives up the most (easiest matchup).
    """
    proj = ProjectionType.parse(projection)
    values: Dict[int, List[float]] = defaultdict(list)
    names: Dict[int, Optional[str]] = {}
    for r in records:
        opp = r.opponent_team_id
        values[opp].append(extract(r, proj))
        if names.get(opp) is None:
            names[opp] = r.opponent_name

    qualified = [
        (opp, _mean(vals), len(vals))
        for opp, vals in values.items()
        if len(vals) >= min_games
    ]
    qualified.sort(key=lambda t: (-t[1], t[0]))

    return [
        OpponentTrend(
            opponent_team_id=opp,
            opponent_name=names.get(opp),
            games_played=n,
            average_allowed=avg,
            rank=i + 1,
        )
        for i, (opp, avg, n) in enumerate(qualified)
    ]


def season_comparison(
    player_id: int,
    records: Sequence[GameRecord],
    projection: ProjectionType | str,
    min_games: int = MIN_GAMES,
) -> SeasonComparison:
    proj = ProjectionType.parse(projection)
    by_player: Dict[int, List[GameRecord]] = defaultdict(list)
    for r in records:
        by_player[r.player_id].append(r)

    own = extract_all(by_player.get(player_id, []), proj)
    average = _mean(own)

    averages = [
        _mean(extract_all(rows, proj))
        for rows in by_player.values()
        if len(rows) >= min_games
    ]

    # tied averages share the best rank
    rank: Optional[int] = None
    percentile = 0
    if len(own) >= min_games:
        rank = 1 + sum(1 for a in averages if a > average)
        percentile = round((1 - (rank - 1) / len(averages)) * 100)

    return SeasonComparison(
        projection=proj,
        average=average,
        games=len(own),
        trend=season_trend(own) if own else "stable",
        percentile_rank=percentile,
        rank=rank,
        qualified_players=len(averages),
    )
