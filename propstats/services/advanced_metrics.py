# propstats/services/advanced_metrics.py
from __future__ import annotations

import math
from typing import Dict, List, Sequence, Tuple

from propstats.core.errors import EmptyInputToAdvancedMetrics
from propstats.models.projections import ProjectionType
from propstats.models.types import AdvancedMetrics, GameRecord, PeriodStats, Streak
from propstats.services.extractor import extract_all

# Season phases, counted from the first game of the supplied set
EARLY_SEASON_GAMES = 20
LATE_SEASON_GAMES = 22

# momentum flag: at least this many of the last 5 strictly above/below average
HOT_COLD_THRESHOLD = 4

SEASON_TREND_WINDOW = 10
SEASON_TREND_BAND = 0.10


def _mean(values: Sequence[float]) -> float:
    return sum(values) / len(values) if values else 0.0


def trend_slope(newest_first: Sequence[float]) -> float:
    """
    Ordinary least-squares slope of value against game position.

    Positions run oldest-first (x=0 is the oldest game in the window), so a
    positive slope means the stat has been rising.
    """
    ys = list(reversed(newest_first))
    n = len(ys)
    if n < 2:
        return 0.0
    mx = (n - 1) / 2.0
    my = _mean(ys)
    sxx = sum((x - mx) ** 2 for x in range(n))
    sxy = sum((x - mx) * (y - my) for x, y in enumerate(ys))
    return sxy / sxx


def classify(values: Sequence[float], average: float) -> List[str]:
    return ["over" if v > average else "under" for v in values]


def streaks(newest_first: Sequence[float], average: float) -> Tuple[Streak, int, int]:
    """
    (current streak, longest over run, longest under run), with every game
    classified against the set's own average rather than a betting line.
    """
    labels = classify(newest_first, average)

    current = Streak(direction=labels[0], count=0) if labels else Streak("under", 0)
    for label in labels:
        if label != current.direction:
            break
        current = Streak(direction=current.direction, count=current.count + 1)

    longest = {"over": 0, "under": 0}
    run_label, run = None, 0
    for label in labels:
        run = run + 1 if label == run_label else 1
        run_label = label
        longest[label] = max(longest[label], run)

    return current, longest["over"], longest["under"]


def time_of_season(newest_first: Sequence[float]) -> Dict[str, PeriodStats]:
    chron = list(reversed(newest_first))
    early = chron[:EARLY_SEASON_GAMES]
    rest = chron[EARLY_SEASON_GAMES:]
    late = rest[-LATE_SEASON_GAMES:] if rest else []
    mid = rest[: len(rest) - len(late)]

    def _period(vals: List[float]) -> PeriodStats:
        return PeriodStats(average=_mean(vals), games=len(vals))

    return {"early": _period(early), "mid": _period(mid), "late": _period(late)}


def season_trend(newest_first: Sequence[float]) -> str:
    recent = _mean(newest_first[:SEASON_TREND_WINDOW])
    early = _mean(newest_first[-SEASON_TREND_WINDOW:])
    if recent > early * (1 + SEASON_TREND_BAND):
        return "improving"
    if recent < early * (1 - SEASON_TREND_BAND):
        return "declining"
    return "stable"


def compute(records: Sequence[GameRecord], projection: ProjectionType | str) -> AdvancedMetrics:
    """
    Consistency, streak and momentum metrics over an already filtered,
    date-descending game list. Needs at least one game.
    """
    proj = ProjectionType.parse(projection)
    if not records:
        raise EmptyInputToAdvancedMetrics(
            f"advanced metrics for {proj.key} need at least one game"
        )

    values = extract_all(records, proj)
    n = len(values)
    average = _mean(values)
    variance = sum((v - average) ** 2 for v in values) / n
    std = math.sqrt(variance)
    cv = std / average * 100.0 if average > 0 else 0.0

    current, longest_over, longest_under = streaks(values, average)

    last5 = values[:5]
    above = sum(1 for v in last5 if v > average)
    below = sum(1 for v in last5 if v < average)

    return AdvancedMetrics(
        projection=proj,
        games=n,
        average=average,
        standard_deviation=std,
        coefficient_of_variation=cv,
        current_streak=current,
        longest_over_streak=longest_over,
        longest_under_streak=longest_under,
        last5_trend=trend_slope(values[:5]),
        last10_trend=trend_slope(values[:10]),
        hot_streak=above >= HOT_COLD_THRESHOLD,
        cold_streak=below >= HOT_COLD_THRESHOLD,
        time_of_season=time_of_season(values),
        season_trend=season_trend(values),
    )
