# propstats/services/prop_metrics.py
from __future__ import annotations

from typing import Dict, List, Sequence

from propstats.models.projections import ProjectionType
from propstats.models.types import AnalysisResult, GameOutcome, GameRecord, Split
from propstats.services.extractor import extract, extract_all

RECENT_WINDOWS = (5, 10, 20)


def is_over(value: float, line: float) -> bool:
    # a push (value == line) is not a hit
    return value > line


def split_for(values: Sequence[float], line: float) -> Split:
    n = len(values)
    if n == 0:
        return Split()
    overs = sum(1 for v in values if is_over(v, line))
    return Split(hit_rate=overs / n * 100.0, average=sum(values) / n, games=n)


def empty_analysis(projection: ProjectionType, line: float) -> AnalysisResult:
    return AnalysisResult(
        projection=projection,
        line=line,
        hit_rate=0.0,
        average=0.0,
        over_count=0,
        under_count=0,
        total_games=0,
        recent_form={f"last{k}": Split() for k in RECENT_WINDOWS},
        home_away={"home": Split(), "away": Split()},
        no_data_available=True,
    )


def analyze(
    records: Sequence[GameRecord],
    projection: ProjectionType | str,
    line: float,
) -> AnalysisResult:
    """
    Hit rate, average and splits of an already filtered, date-descending
    game list against `line`.

    Zero games is a normal result flagged with `no_data_available`.
    """
    proj = ProjectionType.parse(projection)
    line = float(line)
    if not records:
        return empty_analysis(proj, line)

    values = extract_all(records, proj)
    total = len(values)
    overs = sum(1 for v in values if is_over(v, line))

    recent_form: Dict[str, Split] = {
        f"last{k}": split_for(values[:k], line) for k in RECENT_WINDOWS
    }

    home_vals = [v for r, v in zip(records, values) if r.is_home]
    away_vals = [v for r, v in zip(records, values) if not r.is_home]

    return AnalysisResult(
        projection=proj,
        line=line,
        hit_rate=overs / total * 100.0,
        average=sum(values) / total,
        over_count=overs,
        under_count=total - overs,
        total_games=total,
        recent_form=recent_form,
        home_away={
            "home": split_for(home_vals, line),
            "away": split_for(away_vals, line),
        },
        no_data_available=False,
    )


def game_outcomes(
    records: Sequence[GameRecord],
    projection: ProjectionType | str,
    line: float,
) -> List[GameOutcome]:
    """Per-game over/under rows for charting, newest first."""
    proj = ProjectionType.parse(projection)
    line = float(line)
    out: List[GameOutcome] = []
    for r in records:
        value = extract(r, proj)
        out.append(
            GameOutcome(
                game_id=r.game_id,
                date=r.date,
                opponent_team_id=r.opponent_team_id,
                opponent=r.opponent_name,
                is_home=r.is_home,
                actual_value=value,
                result="over" if is_over(value, line) else "under",
                minutes=r.minutes,
            )
        )
    return out
