# propstats/services/game_logs.py
from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from datetime import date, datetime, timedelta
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncEngine

from propstats.core import persist
from propstats.core.db import fetch_all, ping
from propstats.models.types import GameRecord, RollingSplitRow

logger = logging.getLogger("propstats.game_logs")


class GameLogSource(ABC):
    """Data access the engine consumes. Every call may raise on store failure."""

    @abstractmethod
    async def fetch_game_logs(
        self,
        player_id: int,
        start_date: Optional[date] = None,
        end_date: Optional[date] = None,
    ) -> List[GameRecord]:
        """A player's games, most recent first."""

    @abstractmethod
    async def fetch_season_game_logs(self, start_date: date, end_date: date) -> List[GameRecord]:
        """Every player's games in the window, most recent first."""

    @abstractmethod
    async def fetch_team_game_rows(self, game_id: int, team_id: int) -> List[int]:
        """Player ids with a stat row for this game and team."""

    @abstractmethod
    async def list_tracked_players(self, since: date) -> List[int]:
        """Players with at least one game on or after `since`."""

    @abstractmethod
    async def upsert_rolling_splits(self, rows: Sequence[RollingSplitRow]) -> int:
        ...

    @abstractmethod
    async def ping(self) -> None:
        ...


GAME_LOG_SQL = """
SELECT
  ps.game_id,
  g.date AS game_date,
  ps.player_id,
  ps.team_id,
  g.home_team_id,
  g.visitor_team_id,
  opp.name AS opponent_name,
  ps.min,
  ps.pts, ps.reb, ps.ast, ps.stl, ps.blk, ps.turnover,
  ps.fgm, ps.fga, ps.fg3m, ps.fg3a, ps.ftm, ps.fta
FROM player_stats ps
JOIN games g ON g.id = ps.game_id
LEFT JOIN teams opp ON opp.id = CASE
  WHEN g.home_team_id = ps.team_id THEN g.visitor_team_id
  ELSE g.home_team_id
END
WHERE {where}
ORDER BY g.date DESC, ps.game_id DESC
"""

_ONE_DAY = timedelta(days=1)

_STAT_COLUMNS = (
    "pts", "reb", "ast", "stl", "blk", "turnover",
    "fgm", "fga", "fg3m", "fg3a", "ftm", "fta",
)


def _to_date(value: Any) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.fromisoformat(str(value).replace("Z", "+00:00")).date()


def _start_of(day: date) -> datetime:
    # games.date is a timestamp column; asyncpg will not coerce a bare date
    return datetime.combine(day, datetime.min.time())


def row_to_record(row: Dict[str, Any]) -> GameRecord:
    return GameRecord(
        game_id=row["game_id"],
        date=_to_date(row["game_date"]),
        player_id=row["player_id"],
        team_id=row["team_id"],
        home_team_id=row["home_team_id"],
        visitor_team_id=row["visitor_team_id"],
        opponent_name=row.get("opponent_name"),
        minutes=row.get("min"),
        **{c: row.get(c) for c in _STAT_COLUMNS},
    )


class SqlGameLogSource(GameLogSource):
    """PostgreSQL-backed source over the ingestion tables (games, player_stats, teams)."""

    def __init__(self, engine: AsyncEngine | None):
        self.engine = engine

    async def fetch_game_logs(self, player_id, start_date=None, end_date=None):
        where = ["ps.player_id = :player_id"]
        params: Dict[str, Any] = {"player_id": player_id}
        # date bounds are pushed down only to shrink the scan; the filter
        # engine applies them again
        if start_date is not None:
            where.append("g.date >= :start_date")
            params["start_date"] = _start_of(start_date)
        if end_date is not None:
            where.append("g.date < :end_before")
            params["end_before"] = _start_of(end_date) + _ONE_DAY
        rows = await fetch_all(self.engine, GAME_LOG_SQL.format(where=" AND ".join(where)), params)
        logger.info("GAMELOGS player=%s -> %d rows", player_id, len(rows))
        return [row_to_record(r) for r in rows]

    async def fetch_season_game_logs(self, start_date, end_date):
        rows = await fetch_all(
            self.engine,
            GAME_LOG_SQL.format(where="g.date >= :start_date AND g.date < :end_before"),
            {"start_date": _start_of(start_date), "end_before": _start_of(end_date) + _ONE_DAY},
        )
        logger.info("GAMELOGS season %s..%s -> %d rows", start_date, end_date, len(rows))
        return [row_to_record(r) for r in rows]

    async def fetch_team_game_rows(self, game_id, team_id):
        rows = await fetch_all(
            self.engine,
            "SELECT player_id FROM player_stats WHERE game_id = :game_id AND team_id = :team_id",
            {"game_id": game_id, "team_id": team_id},
        )
        return [r["player_id"] for r in rows]

    async def list_tracked_players(self, since):
        rows = await fetch_all(
            self.engine,
            """
            SELECT DISTINCT ps.player_id
            FROM player_stats ps
            JOIN games g ON g.id = ps.game_id
            WHERE g.date >= :since
            ORDER BY ps.player_id
            """,
            {"since": _start_of(since)},
        )
        return [r["player_id"] for r in rows]

    async def upsert_rolling_splits(self, rows):
        return await persist.upsert_rolling_splits(self.engine, rows)

    async def ping(self):
        await ping(self.engine)

