"""Tests for opponent trends and season-over-league comparisons."""

import pytest

from conftest import make_record, points_series
from propstats.services.league_metrics import MIN_GAMES, opponent_trends, season_comparison


def _lines_against(opponent_id, pts, count, start_id=0, home=True):
    return [
        make_record(start_id + i, days_ago=i, pts=pts, opponent_id=opponent_id, home=home)
        for i in range(count)
    ]


def _league(**averages):
    """One constant-valued player per keyword, e.g. p3=(30, 10) -> player 3, ten games of 30."""
    records = []
    for name, (pts, games) in averages.items():
        records += points_series([pts] * games, player_id=int(name[1:]))
    return records


class TestOpponentTrends:
    def test_ranked_by_average_allowed(self):
        records = (
            _lines_against(2, 20, 10)
            + _lines_against(3, 25, 5, start_id=100, home=True)
            + _lines_against(3, 35, 5, start_id=200, home=False)
        )
        trends = opponent_trends(records, "pts")
        assert [(t.opponent_team_id, t.rank) for t in trends] == [(3, 1), (2, 2)]
        assert trends[0].average_allowed == pytest.approx(30.0)
        assert trends[0].games_played == 10
        assert trends[0].opponent_name == "Team 3"

    def test_games_floor(self):
        records = _lines_against(2, 20, MIN_GAMES) + _lines_against(4, 50, MIN_GAMES - 1, start_id=100)
        assert [t.opponent_team_id for t in opponent_trends(records, "pts")] == [2]
        assert [t.opponent_team_id for t in opponent_trends(records, "pts", min_games=1)] == [4, 2]

    def test_composite_projection(self):
        records = [make_record(i, pts=10, reb=5, ast=5) for i in range(MIN_GAMES)]
        (trend,) = opponent_trends(records, "pra")
        assert trend.average_allowed == pytest.approx(20.0)

    def test_equal_averages_order_by_team_id(self):
        records = _lines_against(9, 20, 10) + _lines_against(4, 20, 10, start_id=100)
        assert [t.opponent_team_id for t in opponent_trends(records, "pts")] == [4, 9]

    def test_no_records(self):
        assert opponent_trends([], "pts") == []

    def test_payload(self):
        (trend,) = opponent_trends(_lines_against(2, 20, 10), "pts")
        assert trend.to_dict() == {
            "opponentTeamId": 2,
            "opponentName": "Team 2",
            "gamesPlayed": 10,
            "averageAllowed": 20.0,
            "rank": 1,
        }


class TestSeasonComparison:
    def test_percentile_among_qualified_players(self):
        records = _league(p1=(10, 10), p2=(20, 10), p3=(30, 10), p4=(40, 10), p5=(100, 5))
        result = season_comparison(3, records, "pts")
        assert result.average == pytest.approx(30.0)
        assert result.games == 10
        assert result.rank == 2
        assert result.qualified_players == 4
        assert result.percentile_rank == 75

    def test_leader_and_last_place(self):
        records = _league(p1=(10, 10), p2=(20, 10), p3=(30, 10), p4=(40, 10))
        assert season_comparison(4, records, "pts").percentile_rank == 100
        assert season_comparison(1, records, "pts").percentile_rank == 25

    def test_tied_averages_share_a_rank(self):
        records = _league(p1=(40, 10), p2=(40, 12), p3=(10, 10))
        assert season_comparison(1, records, "pts").rank == 1
        assert season_comparison(2, records, "pts").rank == 1
        assert season_comparison(3, records, "pts").rank == 3

    def test_unqualified_player_has_no_rank(self):
        records = _league(p1=(10, 10), p5=(100, 5))
        result = season_comparison(5, records, "pts")
        assert result.games == 5
        assert result.average == pytest.approx(100.0)
        assert result.rank is None
        assert result.percentile_rank == 0

    def test_player_without_games(self):
        result = season_comparison(99, _league(p1=(10, 10)), "pts")
        assert (result.games, result.average, result.trend) == (0, 0.0, "stable")
        assert result.percentile_rank == 0

    def test_trend_compares_recent_and_early_games(self):
        records = points_series([30] * 10 + [20] * 10)
        assert season_comparison(7, records, "pts").trend == "improving"

    def test_payload(self):
        payload = season_comparison(1, _league(p1=(10, 10)), "reb").to_dict()
        assert payload["propType"] == "reb"
        assert set(payload["currentSeason"]) == {"average", "games", "trend"}
        assert payload["qualifiedPlayers"] == 1
