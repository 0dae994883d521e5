# propstats/models/projections.py
from __future__ import annotations

from enum import Enum
from typing import Tuple

from propstats.core.errors import InvalidProjectionType


class ProjectionType(Enum):
    """
    Closed set of props the engine can evaluate.

    Each member carries the box-score fields it sums, so extraction never
    dispatches on strings.
    """

    PTS = ("pts", ("pts",), "Points")
    REB = ("reb", ("reb",), "Rebounds")
    AST = ("ast", ("ast",), "Assists")
    STL = ("stl", ("stl",), "Steals")
    BLK = ("blk", ("blk",), "Blocks")
    TURNOVER = ("turnover", ("turnover",), "Turnovers")
    FG3M = ("fg3m", ("fg3m",), "3-Pointers Made")
    FGM = ("fgm", ("fgm",), "Field Goals Made")
    FTM = ("ftm", ("ftm",), "Free Throws Made")
    PR = ("pr", ("pts", "reb"), "Points + Rebounds")
    PA = ("pa", ("pts", "ast"), "Points + Assists")
    RA = ("ra", ("reb", "ast"), "Rebounds + Assists")
    PRA = ("pra", ("pts", "reb", "ast"), "Points + Rebounds + Assists")

    def __init__(self, key: str, fields: Tuple[str, ...], label: str):
        self.key = key
        self.fields = fields
        self.label = label

    @property
    def kind(self) -> str:
        return {1: "single", 2: "sum2", 3: "sum3"}[len(self.fields)]

    @classmethod
    def parse(cls, value: "ProjectionType | str") -> "ProjectionType":
        if isinstance(value, cls):
            return value
        key = (value or "").strip().lower() if isinstance(value, str) else value
        for member in cls:
            if member.key == key:
                return member
        raise InvalidProjectionType(str(value))

    def __str__(self) -> str:
        return self.key


# Props the nightly rolling-splits job materializes
ROLLING_PROJECTIONS = (
    ProjectionType.PTS,
    ProjectionType.REB,
    ProjectionType.AST,
    ProjectionType.STL,
    ProjectionType.BLK,
    ProjectionType.TURNOVER,
    ProjectionType.PRA,
)
