# propstats/services/filters.py
from __future__ import annotations

import asyncio
import logging
from dataclasses import replace
from typing import Awaitable, Callable, Collection, FrozenSet, Iterable, List, Sequence

from propstats.core import config
from propstats.models.types import FilterSpec, GameRecord

logger = logging.getLogger("propstats.filters")

# (game_id, team_id) -> player ids with a stat row for that game + team
RosterLookup = Callable[[int, int], Awaitable[Iterable[int]]]


def _matches(record: GameRecord, spec: FilterSpec) -> bool:
    if spec.home_away == "home" and not record.is_home:
        return False
    if spec.home_away == "away" and record.is_home:
        return False
    if spec.min_minutes is not None and record.minutes_played < spec.min_minutes:
        return False
    if spec.opponent_team_id is not None and record.opponent_team_id != spec.opponent_team_id:
        return False
    if spec.start_date is not None and record.date < spec.start_date:
        return False
    if spec.end_date is not None and record.date > spec.end_date:
        return False
    return True


def apply_filters(
    records: Sequence[GameRecord],
    spec: FilterSpec | None,
    excluded_game_ids: Collection[int] = (),
) -> List[GameRecord]:
    """
    Filter a date-descending sequence, preserving order.

    The last-N cap is a prefix slice taken after every other predicate, so
    `last_n_games=10` means "the 10 most recent games that qualify", not
    "whichever of the 10 most recent games qualify".
    """
    if spec is None:
        return list(records)

    excluded = frozenset(excluded_game_ids)
    out = [r for r in records if r.game_id not in excluded and _matches(r, spec)]

    if spec.last_n_games is not None:
        out = out[: spec.last_n_games]
    return out


def without_last_n(spec: FilterSpec | None) -> FilterSpec | None:
    if spec is None or spec.last_n_games is None:
        return spec
    return replace(spec, last_n_games=None)


async def games_with_teammates(
    records: Iterable[GameRecord],
    teammate_ids: Collection[int],
    roster_lookup: RosterLookup,
    concurrency: int = config.ROSTER_LOOKUP_CONCURRENCY,
) -> FrozenSet[int]:
    """
    Game ids where any of `teammate_ids` also logged a row for the player's
    team in that game. Lookups run concurrently, at most `concurrency` at once.
    """
    wanted = frozenset(teammate_ids)
    if not wanted:
        return frozenset()

    sem = asyncio.Semaphore(max(1, concurrency))

    async def shares_floor(r: GameRecord) -> bool:
        async with sem:
            roster = await roster_lookup(r.game_id, r.team_id)
        return bool({pid for pid in roster if pid != r.player_id} & wanted)

    records = list(records)
    flags = await asyncio.gather(*(shares_floor(r) for r in records))
    hits = {r.game_id for r, hit in zip(records, flags) if hit}

    logger.info(
        "FILTER teammates=%s -> %d games excluded",
        sorted(wanted),
        len(hits),
    )
    return frozenset(hits)
