"""Tests for the caller-facing analytics engine: caching, filters and outages."""

import asyncio
from datetime import date

import pytest

from conftest import PLAYER_ID, FakeSource, make_record, points_series
from propstats.core.errors import DataAccessFailure, EmptyInputToAdvancedMetrics, InvalidProjectionType
from propstats.models.types import FilterSpec
from propstats.services.analytics import PlayerAnalyticsEngine, season_date_range
from propstats.services.cache import TTLCache
from propstats.services.fallback import FallbackService


def _engine(source, clock):
    cache = TTLCache(clock=clock)
    fallback = FallbackService(cache, probe=source.ping, clock=clock)
    return PlayerAnalyticsEngine(source, cache, fallback, analysis_ttl=300, stats_ttl=900, advanced_ttl=900)


def _run(coro):
    return asyncio.run(coro)


class TestSeasonRange:
    def test_short_form(self):
        assert season_date_range("2023-24") == (date(2023, 10, 1), date(2024, 6, 30))

    def test_century_rollover(self):
        assert season_date_range("1999-00") == (date(1999, 10, 1), date(2000, 6, 30))
        assert season_date_range("1999-2000") == (date(1999, 10, 1), date(2000, 6, 30))

    def test_long_form(self):
        assert season_date_range("2023-2024") == (date(2023, 10, 1), date(2024, 6, 30))

    @pytest.mark.parametrize("bad", ["2023", "23-24", "2023-25", "1999-01", "1999-2001", "", "season"])
    def test_rejects_malformed(self, bad):
        with pytest.raises(ValueError):
            season_date_range(bad)


class TestAnalyze:
    def test_analyze_uses_all_games_by_default(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 20, 25])})
        result = _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 20))
        assert (result.over_count, result.under_count) == (1, 2)

    def test_results_are_memoized(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 25])})
        engine = _engine(source, clock)
        first = _run(engine.analyze(PLAYER_ID, "pts", 20.5))
        second = _run(engine.analyze(PLAYER_ID, "pts", 20.5))
        assert first == second
        assert source.calls["fetch_game_logs"] == 1

    def test_different_filters_share_the_record_read(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 25, 30])})
        engine = _engine(source, clock)
        _run(engine.analyze(PLAYER_ID, "pts", 20.5))
        _run(engine.analyze(PLAYER_ID, "pts", 20.5, FilterSpec(home_away="home")))
        assert source.calls["fetch_game_logs"] == 1

    def test_unknown_projection(self, clock):
        engine = _engine(FakeSource({PLAYER_ID: points_series([10])}), clock)
        with pytest.raises(InvalidProjectionType):
            _run(engine.analyze(PLAYER_ID, "dunks", 1.5))

    def test_no_qualifying_games(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 25], home=False)})
        result = _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 20, FilterSpec(home_away="home")))
        assert result.no_data_available is True
        assert result.total_games == 0

    def test_last_n_after_other_filters(self, clock):
        records = [
            make_record(10, days_ago=0, pts=40, home=True),
            make_record(9, days_ago=2, pts=10, home=False),
            make_record(8, days_ago=4, pts=12, home=False),
            make_record(7, days_ago=6, pts=30, home=True),
        ]
        source = FakeSource({PLAYER_ID: records})
        spec = FilterSpec(home_away="away", last_n_games=2)
        result = _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 20, spec))
        assert result.total_games == 2
        assert result.average == pytest.approx(11.0)

    def test_date_bounds_are_enforced_in_memory(self, clock):
        # the fake store ignores date bounds; the engine must still honor them
        source = FakeSource({PLAYER_ID: points_series([10, 20, 30, 40])})
        spec = FilterSpec(start_date=date(2024, 3, 27), end_date=date(2024, 3, 29))
        result = _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 25, spec))
        assert result.total_games == 2
        assert result.average == pytest.approx(25.0)

    def test_exclude_teammates(self, clock):
        records = points_series([30, 10, 28])
        rosters = {
            (records[0].game_id, 1): [PLAYER_ID, 44],
            (records[1].game_id, 1): [PLAYER_ID],
            (records[2].game_id, 1): [PLAYER_ID, 44, 45],
        }
        source = FakeSource({PLAYER_ID: records}, rosters)
        spec = FilterSpec(exclude_teammates=[44])
        result = _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 20, spec))
        assert result.total_games == 1
        assert result.average == pytest.approx(10.0)

    def test_exclude_teammates_before_last_n(self, clock):
        records = points_series([30, 10, 28, 12])
        rosters = {(records[0].game_id, 1): [PLAYER_ID, 44]}
        source = FakeSource({PLAYER_ID: records}, rosters)
        spec = FilterSpec(exclude_teammates=[44], last_n_games=2)
        outcomes = _run(_engine(source, clock).game_outcomes(PLAYER_ID, "pts", 20, spec))
        assert [o.actual_value for o in outcomes] == [10.0, 28.0]


class TestOutages:
    def test_store_down_with_nothing_cached_raises(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20])})
        source.fail_reads = True
        with pytest.raises(DataAccessFailure):
            _run(_engine(source, clock).analyze(PLAYER_ID, "pts", 20))

    def test_store_down_serves_last_known_good(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 30])})
        engine = _engine(source, clock)
        healthy = _run(engine.analyze(PLAYER_ID, "pts", 25))

        clock.advance(1000)  # past the analysis and record memo TTLs
        source.fail_reads = True
        degraded = _run(engine.analyze(PLAYER_ID, "pts", 25))
        assert degraded == healthy
        assert engine.fallback.is_fallback_mode is True

    def test_no_data_and_outage_are_distinguishable(self, clock):
        empty = FakeSource({PLAYER_ID: []})
        result = _run(_engine(empty, clock).analyze(PLAYER_ID, "pts", 20))
        assert result.no_data_available is True

        down = FakeSource()
        down.fail_reads = True
        with pytest.raises(DataAccessFailure):
            _run(_engine(down, clock).analyze(PLAYER_ID, "pts", 20))

    def test_failures_are_not_memoized(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20, 30])})
        source.fail_reads = True
        engine = _engine(source, clock)
        with pytest.raises(DataAccessFailure):
            _run(engine.analyze(PLAYER_ID, "pts", 25))

        source.fail_reads = False
        clock.advance(31)
        result = _run(engine.analyze(PLAYER_ID, "pts", 25))
        assert result.total_games == 2


class TestAdvanced:
    def test_season_window(self, clock):
        in_season = points_series([22, 18, 19, 15, 30])
        off_season = [make_record(1, days_ago=400, pts=99)]
        source = FakeSource({PLAYER_ID: in_season + off_season})
        metrics = _run(_engine(source, clock).advanced_metrics(PLAYER_ID, "pts", "2023-24"))
        assert metrics.games == 5
        assert metrics.average == pytest.approx(20.8)
        assert metrics.longest_under_streak == 3

    def test_empty_season(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20])})
        with pytest.raises(EmptyInputToAdvancedMetrics):
            _run(_engine(source, clock).advanced_metrics(PLAYER_ID, "pts", "2019-20"))


class TestInvalidate:
    def test_invalidate_forces_a_fresh_read(self, clock):
        source = FakeSource({PLAYER_ID: points_series([20])})
        engine = _engine(source, clock)
        _run(engine.analyze(PLAYER_ID, "pts", 19.5))
        source.logs[PLAYER_ID] = points_series([10, 10])

        assert engine.invalidate_player(PLAYER_ID) >= 2
        result = _run(engine.analyze(PLAYER_ID, "pts", 19.5))
        assert result.total_games == 2
        assert source.calls["fetch_game_logs"] == 2


class TestLeagueComparisons:
    def _source(self):
        in_season = points_series([20] * 10) + points_series([30] * 10, player_id=8)
        off_season = [make_record(1, days_ago=400, pts=99, opponent_id=5)]
        return FakeSource({PLAYER_ID: in_season[:10] + off_season, 8: in_season[10:]})

    def test_opponent_trends_for_a_season(self, clock):
        trends = _run(_engine(self._source(), clock).opponent_trends("pts", "2023-24"))
        assert [t.opponent_team_id for t in trends] == [2]
        assert trends[0].games_played == 20
        assert trends[0].average_allowed == pytest.approx(25.0)

    def test_season_comparison_ignores_other_seasons(self, clock):
        result = _run(_engine(self._source(), clock).season_comparison(PLAYER_ID, "pts", "2023-24"))
        assert result.games == 10
        assert result.average == pytest.approx(20.0)
        assert result.rank == 2
        assert result.percentile_rank == 50

    def test_league_read_is_shared_and_memoized(self, clock):
        source = self._source()
        engine = _engine(source, clock)
        _run(engine.opponent_trends("pts", "2023-24"))
        _run(engine.season_comparison(PLAYER_ID, "pts", "2023-24"))
        _run(engine.season_comparison(8, "reb", "2023-24"))
        assert source.calls["fetch_season_game_logs"] == 1

    def test_invalidate_drops_season_comparison(self, clock):
        source = self._source()
        engine = _engine(source, clock)
        _run(engine.season_comparison(PLAYER_ID, "pts", "2023-24"))
        assert engine.invalidate_player(PLAYER_ID) == 1

    def test_bad_season(self, clock):
        with pytest.raises(ValueError):
            _run(_engine(self._source(), clock).opponent_trends("pts", "2023-25"))

    def test_store_down_with_nothing_cached_raises(self, clock):
        source = self._source()
        source.fail_reads = True
        with pytest.raises(DataAccessFailure):
            _run(_engine(source, clock).season_comparison(PLAYER_ID, "pts", "2023-24"))
