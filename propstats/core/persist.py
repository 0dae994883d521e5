# propstats/core/persist.py
from pathlib import Path
from typing import Iterable

from sqlalchemy.ext.asyncio import AsyncEngine

from propstats.core.db import exec_many, exec_sql
from propstats.models.types import RollingSplitRow

SCHEMA_PATH = Path(__file__).with_name("schema.sql")

UPSERT_ROLLING_SPLITS_SQL = """
INSERT INTO rolling_splits
  (player_id, prop_type, games_count, games_played, average,
   hit_rate_15, hit_rate_25, hit_rate_35, last_updated)
VALUES
  (:player_id, :prop_type, :games_count, :games_played, :average,
   :hit_rate_15, :hit_rate_25, :hit_rate_35, now())
ON CONFLICT (player_id, prop_type, games_count) DO UPDATE SET
  games_played = EXCLUDED.games_played,
  average = EXCLUDED.average,
  hit_rate_15 = EXCLUDED.hit_rate_15,
  hit_rate_25 = EXCLUDED.hit_rate_25,
  hit_rate_35 = EXCLUDED.hit_rate_35,
  last_updated = now()
"""


async def upsert_rolling_splits(engine: AsyncEngine | None, rows: Iterable[RollingSplitRow]) -> int:
    payload = [r.to_params() for r in rows]
    await exec_many(engine, UPSERT_ROLLING_SPLITS_SQL, payload)
    return len(payload)


async def ensure_schema(engine: AsyncEngine | None):
    # engine-owned tables only; ingestion owns games/player_stats
    for statement in SCHEMA_PATH.read_text(encoding="utf-8").split(";"):
        if statement.strip():
            await exec_sql(engine, statement)
