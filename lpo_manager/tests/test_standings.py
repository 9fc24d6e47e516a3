"""
Tests for league standings: points, ranks and full recalculation.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import InvalidStateError, NotFoundError, ValidationError
from lpo_manager.models import MatchStatus, MatchType
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    StandingRepository,
    TeamRepository,
)
from lpo_manager.services.results import record_match_result
from lpo_manager.services.standings import StandingsUpdater, standings_table

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "standings_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def league(db_conn):
    """One league with three teams in its table."""
    league = LeagueRepository().create(db_conn, "Test League", "SOUTH", "FIRST", 1, 12)
    team_ids = []
    for name in ("Alpha", "Bravo", "Charlie"):
        team = TeamRepository().create(db_conn, name, "SOUTH", division="FIRST")
        StandingRepository().reset(db_conn, league.id, team.id)
        team_ids.append(team.id)
    return league, team_ids


def _regular(db_conn, league_id, home, away, offset_hours=0):
    return MatchRepository().create(
        db_conn, MatchType.REGULAR, NOW + timedelta(hours=offset_hours), home, away, league_id=league_id,
    )


def test_win_gives_three_points(db_conn, league):
    lg, (a, b, _) = league
    StandingsUpdater().record_result(db_conn, lg.id, a, b, 2, 1)
    repo = StandingRepository()
    home, away = repo.get(db_conn, lg.id, a), repo.get(db_conn, lg.id, b)
    assert (home.wins, home.points, home.goal_difference) == (1, 3, 1)
    assert (away.losses, away.points, away.goal_difference) == (1, 0, -1)
    assert home.rank == 1


def test_draw_gives_one_point_each(db_conn, league):
    lg, (a, b, _) = league
    StandingsUpdater().record_result(db_conn, lg.id, a, b, 1, 1)
    repo = StandingRepository()
    for team_id in (a, b):
        row = repo.get(db_conn, lg.id, team_id)
        assert (row.draws, row.points) == (1, 1)


def test_points_always_three_per_win_plus_draws(db_conn, league):
    lg, (a, b, c) = league
    updater = StandingsUpdater()
    updater.record_result(db_conn, lg.id, a, b, 2, 0)
    updater.record_result(db_conn, lg.id, b, c, 1, 1)
    updater.record_result(db_conn, lg.id, c, a, 2, 1)
    for row in standings_table(db_conn, lg.id):
        assert row["points"] == 3 * row["wins"] + row["draws"]


def test_table_ordered_by_points_then_goal_difference(db_conn, league):
    lg, (a, b, c) = league
    updater = StandingsUpdater()
    updater.record_result(db_conn, lg.id, a, c, 2, 0)
    updater.record_result(db_conn, lg.id, b, c, 2, 1)
    table = standings_table(db_conn, lg.id)
    assert [r["team_id"] for r in table] == [a, b, c]
    assert [r["rank"] for r in table] == [1, 2, 3]


def test_team_outside_league_raises(db_conn, league):
    lg, (a, _, _) = league
    outsider = TeamRepository().create(db_conn, "Outsider", "SOUTH")
    with pytest.raises(NotFoundError):
        StandingsUpdater().record_result(db_conn, lg.id, a, outsider.id, 2, 0)


def test_record_match_result_updates_table(db_conn, league):
    lg, (a, b, _) = league
    match = _regular(db_conn, lg.id, a, b)
    finished = record_match_result(db_conn, match, 0, 2, NOW)
    assert finished.status == MatchStatus.FINISHED
    assert finished.winner_team_id == b
    assert StandingRepository().get(db_conn, lg.id, b).points == 3


def test_finished_match_is_immutable(db_conn, league):
    lg, (a, b, _) = league
    match = _regular(db_conn, lg.id, a, b)
    finished = record_match_result(db_conn, match, 2, 0, NOW)
    with pytest.raises(InvalidStateError):
        record_match_result(db_conn, finished, 0, 2, NOW)
    assert StandingRepository().get(db_conn, lg.id, a).points == 3


def test_invalid_scores_rejected(db_conn, league):
    lg, (a, b, _) = league
    match = _regular(db_conn, lg.id, a, b)
    with pytest.raises(ValidationError):
        record_match_result(db_conn, match, 3, 0, NOW)
    with pytest.raises(ValidationError):
        record_match_result(db_conn, match, -1, 2, NOW)


def test_recalculate_rebuilds_from_finished_matches(db_conn, league):
    lg, (a, b, c) = league
    record_match_result(db_conn, _regular(db_conn, lg.id, a, b, 0), 2, 1, NOW)
    record_match_result(db_conn, _regular(db_conn, lg.id, b, c, 1), 1, 1, NOW)
    _regular(db_conn, lg.id, c, a, 2)  # unplayed
    before = standings_table(db_conn, lg.id)

    # Corrupt the counters, then rebuild
    StandingRepository().apply_delta(db_conn, lg.id, c, wins=5, points=15)
    after = StandingsUpdater().recalculate(db_conn, lg.id)
    assert after == before


def test_recalculate_unknown_league(db_conn):
    with pytest.raises(NotFoundError):
        StandingsUpdater().recalculate(db_conn, "missing")
