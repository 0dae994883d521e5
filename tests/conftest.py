"""Shared fixtures: box-score record factories and an in-memory game-log source."""

from collections import Counter
from datetime import date, timedelta

import pytest

from propstats.models.types import GameRecord
from propstats.services.game_logs import GameLogSource

PLAYER_ID = 7
TEAM_ID = 1
OPPONENT_ID = 2
LATEST = date(2024, 3, 31)


def make_record(
    game_id,
    days_ago=0,
    pts=0,
    reb=0,
    ast=0,
    home=True,
    team_id=TEAM_ID,
    opponent_id=OPPONENT_ID,
    minutes="30:00",
    player_id=PLAYER_ID,
    **stats,
):
    return GameRecord(
        game_id=game_id,
        date=LATEST - timedelta(days=days_ago),
        player_id=player_id,
        team_id=team_id,
        home_team_id=team_id if home else opponent_id,
        visitor_team_id=opponent_id if home else team_id,
        opponent_name=f"Team {opponent_id}",
        minutes=minutes,
        pts=pts,
        reb=reb,
        ast=ast,
        **stats,
    )


def points_series(values, **kwargs):
    """Newest-first records whose pts follow `values`, one game every 2 days."""
    return [
        make_record(game_id=1000 - i, days_ago=2 * i, pts=v, **kwargs)
        for i, v in enumerate(values)
    ]


class FakeSource(GameLogSource):
    def __init__(self, logs=None, rosters=None):
        self.logs = dict(logs or {})
        self.rosters = dict(rosters or {})
        self.calls = Counter()
        self.fail_reads = False
        self.fail_writes = False
        self.upserted = []
        self.fetch_args = []

    def _read(self, name):
        self.calls[name] += 1
        if self.fail_reads:
            raise ConnectionError("connection refused")

    async def fetch_game_logs(self, player_id, start_date=None, end_date=None):
        self._read("fetch_game_logs")
        self.fetch_args.append((player_id, start_date, end_date))
        return list(self.logs.get(player_id, []))

    async def fetch_season_game_logs(self, start_date, end_date):
        # date bounds ignored, like fetch_game_logs
        self._read("fetch_season_game_logs")
        rows = [r for records in self.logs.values() for r in records]
        return sorted(rows, key=lambda r: (r.date, r.game_id), reverse=True)

    async def fetch_team_game_rows(self, game_id, team_id):
        self._read("fetch_team_game_rows")
        return list(self.rosters.get((game_id, team_id), []))

    async def list_tracked_players(self, since):
        self._read("list_tracked_players")
        return sorted(self.logs)

    async def upsert_rolling_splits(self, rows):
        self.calls["upsert_rolling_splits"] += 1
        if self.fail_writes:
            raise ConnectionError("write timeout")
        self.upserted.extend(rows)
        return len(rows)

    async def ping(self):
        self._read("ping")


class FakeClock:
    def __init__(self, start=1000.0):
        self.now = start

    def __call__(self):
        return self.now

    def advance(self, seconds):
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def source():
    return FakeSource()
