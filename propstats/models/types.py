# propstats/models/types.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date
from typing import Dict, FrozenSet, Optional

from typing_extensions import Literal, TypedDict

from propstats.models.projections import ProjectionType

HomeAway = Literal["home", "away"]
Direction = Literal["over", "under"]
SeasonTrend = Literal["improving", "declining", "stable"]


def parse_minutes(value: str | float | int | None) -> float:
    """
    Box scores report minutes as "MM:SS" or a decimal string ("34.5").
    Anything empty or unparsable counts as 0 minutes.
    """
    if value is None:
        return 0.0
    if isinstance(value, (int, float)):
        return float(value)
    s = value.strip()
    if not s:
        return 0.0
    parts = s.split(":")
    try:
        if len(parts) == 2:
            return int(parts[0] or 0) + int(parts[1] or 0) / 60.0
        return float(s)
    except ValueError:
        return 0.0


# -----------------------------
# Box-score rows
# -----------------------------

@dataclass(frozen=True)
class GameRecord:
    game_id: int
    date: date
    player_id: int
    team_id: int
    home_team_id: int
    visitor_team_id: int
    opponent_name: Optional[str] = None
    minutes: Optional[str] = None
    pts: Optional[int] = None
    reb: Optional[int] = None
    ast: Optional[int] = None
    stl: Optional[int] = None
    blk: Optional[int] = None
    turnover: Optional[int] = None
    fgm: Optional[int] = None
    fga: Optional[int] = None
    fg3m: Optional[int] = None
    fg3a: Optional[int] = None
    ftm: Optional[int] = None
    fta: Optional[int] = None

    @property
    def is_home(self) -> bool:
        return self.team_id == self.home_team_id

    @property
    def opponent_team_id(self) -> int:
        return self.visitor_team_id if self.is_home else self.home_team_id

    @property
    def minutes_played(self) -> float:
        return parse_minutes(self.minutes)


# -----------------------------
# Filters
# -----------------------------

@dataclass(frozen=True)
class FilterSpec:
    """AND-combined predicates; every field is optional."""

    home_away: Optional[HomeAway] = None
    min_minutes: Optional[float] = None
    last_n_games: Optional[int] = None
    opponent_team_id: Optional[int] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    exclude_teammates: FrozenSet[int] = frozenset()

    def __post_init__(self):
        if self.home_away not in (None, "home", "away"):
            raise ValueError(f"home_away must be 'home' or 'away', got {self.home_away!r}")
        if self.last_n_games is not None and self.last_n_games < 1:
            raise ValueError("last_n_games must be >= 1")
        if not isinstance(self.exclude_teammates, frozenset):
            object.__setattr__(self, "exclude_teammates", frozenset(self.exclude_teammates or ()))

    def cache_token(self) -> str:
        payload = {
            "homeAway": self.home_away,
            "minMinutes": float(self.min_minutes) if self.min_minutes is not None else None,
            "lastNGames": self.last_n_games,
            "opponentTeamId": self.opponent_team_id,
            "startDate": self.start_date.isoformat() if self.start_date else None,
            "endDate": self.end_date.isoformat() if self.end_date else None,
            "excludeTeammates": sorted(self.exclude_teammates),
        }
        return json.dumps(payload, sort_keys=True, separators=(",", ":"))


NO_FILTERS = FilterSpec()


# -----------------------------
# Response shapes
# -----------------------------

class SplitPayload(TypedDict):
    hitRate: float
    average: float
    games: int


class AnalysisPayload(TypedDict):
    propType: str
    propLine: float
    hitRate: float
    average: float
    overCount: int
    underCount: int
    totalGames: int
    recentForm: Dict[str, SplitPayload]
    homeAwayStats: Dict[str, SplitPayload]
    noDataAvailable: bool


class OutcomePayload(TypedDict):
    gameId: int
    date: str
    opponentTeamId: int
    opponent: Optional[str]
    isHome: bool
    actualValue: float
    result: Direction
    minutes: Optional[str]


@dataclass(frozen=True)
class Split:
    hit_rate: float = 0.0
    average: float = 0.0
    games: int = 0

    def to_dict(self) -> SplitPayload:
        return {"hitRate": self.hit_rate, "average": self.average, "games": self.games}


@dataclass(frozen=True)
class AnalysisResult:
    projection: ProjectionType
    line: float
    hit_rate: float
    average: float
    over_count: int
    under_count: int
    total_games: int
    recent_form: Dict[str, Split]
    home_away: Dict[str, Split]
    no_data_available: bool = False

    def to_dict(self) -> AnalysisPayload:
        return {
            "propType": self.projection.key,
            "propLine": self.line,
            "hitRate": self.hit_rate,
            "average": self.average,
            "overCount": self.over_count,
            "underCount": self.under_count,
            "totalGames": self.total_games,
            "recentForm": {k: v.to_dict() for k, v in self.recent_form.items()},
            "homeAwayStats": {k: v.to_dict() for k, v in self.home_away.items()},
            "noDataAvailable": self.no_data_available,
        }


@dataclass(frozen=True)
class GameOutcome:
    game_id: int
    date: date
    opponent_team_id: int
    opponent: Optional[str]
    is_home: bool
    actual_value: float
    result: Direction
    minutes: Optional[str] = None

    def to_dict(self) -> OutcomePayload:
        return {
            "gameId": self.game_id,
            "date": self.date.isoformat(),
            "opponentTeamId": self.opponent_team_id,
            "opponent": self.opponent,
            "isHome": self.is_home,
            "actualValue": self.actual_value,
            "result": self.result,
            "minutes": self.minutes,
        }


@dataclass(frozen=True)
class Streak:
    direction: Direction
    count: int


@dataclass(frozen=True)
class PeriodStats:
    average: float = 0.0
    games: int = 0


@dataclass(frozen=True)
class AdvancedMetrics:
    projection: ProjectionType
    games: int
    average: float
    standard_deviation: float
    coefficient_of_variation: float
    current_streak: Streak
    longest_over_streak: int
    longest_under_streak: int
    last5_trend: float
    last10_trend: float
    hot_streak: bool
    cold_streak: bool
    time_of_season: Dict[str, PeriodStats] = field(default_factory=dict)
    season_trend: SeasonTrend = "stable"

    def to_dict(self) -> dict:
        return {
            "propType": self.projection.key,
            "games": self.games,
            "average": self.average,
            "consistency": {
                "standardDeviation": self.standard_deviation,
                "coefficientOfVariation": self.coefficient_of_variation,
                "streaks": {
                    "currentStreak": {
                        "type": self.current_streak.direction,
                        "count": self.current_streak.count,
                    },
                    "longestOverStreak": self.longest_over_streak,
                    "longestUnderStreak": self.longest_under_streak,
                },
            },
            "situational": {
                "timeOfSeason": {
                    k: {"average": v.average, "games": v.games}
                    for k, v in self.time_of_season.items()
                },
                "seasonTrend": self.season_trend,
            },
            "momentum": {
                "last5Trend": self.last5_trend,
                "last10Trend": self.last10_trend,
                "hotStreak": self.hot_streak,
                "coldStreak": self.cold_streak,
            },
        }


@dataclass(frozen=True)
class RollingSplitRow:
    player_id: int
    prop_type: str
    games_count: int
    games_played: int
    average: float
    hit_rates: Dict[float, float]

    def to_params(self) -> dict:
        """Bind parameters for the rolling_splits upsert."""
        return {
            "player_id": self.player_id,
            "prop_type": self.prop_type,
            "games_count": self.games_count,
            "games_played": self.games_played,
            "average": self.average,
            "hit_rate_15": self.hit_rates.get(1.5),
            "hit_rate_25": self.hit_rates.get(2.5),
            "hit_rate_35": self.hit_rates.get(3.5),
        }


# -----------------------------
# League-wide comparisons
# -----------------------------

@dataclass(frozen=True)
class OpponentTrend:
    """How much of a prop one opponent gives up, per player stat line."""

    opponent_team_id: int
    opponent_name: Optional[str]
    games_played: int
    average_allowed: float
    rank: int

    def to_dict(self) -> dict:
        return {
            "opponentTeamId": self.opponent_team_id,
            "opponentName": self.opponent_name,
            "gamesPlayed": self.games_played,
            "averageAllowed": self.average_allowed,
            "rank": self.rank,
        }


@dataclass(frozen=True)
class SeasonComparison:
    projection: ProjectionType
    average: float
    games: int
    trend: SeasonTrend
    percentile_rank: int
    rank: Optional[int]
    qualified_players: int

    def to_dict(self) -> dict:
        return {
            "propType": self.projection.key,
            "currentSeason": {
                "average": self.average,
                "games": self.games,
                "trend": self.trend,
            },
            "percentileRank": self.percentile_rank,
            "rank": self.rank,
            "qualifiedPlayers": self.qualified_players,
        }
