# propstats/services/extractor.py
from __future__ import annotations

from typing import Iterable, List

from propstats.models.projections import ProjectionType
from propstats.models.types import GameRecord, parse_minutes


def extract(record: GameRecord, projection: ProjectionType | str) -> float:
    """
    Scalar value of `projection` for one game.

    Single-stat props pass the field through, composites (pr, pa, ra, pra)
    sum their fields. Missing counting stats count as 0. An unknown string
    key raises InvalidProjectionType.
    """
    proj = ProjectionType.parse(projection)
    return float(sum(getattr(record, f) or 0 for f in proj.fields))


def extract_all(records: Iterable[GameRecord], projection: ProjectionType | str) -> List[float]:
    proj = ProjectionType.parse(projection)
    return [extract(r, proj) for r in records]


__all__ = ["extract", "extract_all", "parse_minutes"]
