"""
Tests for the league service: status transitions, season setup, team
distribution, schedule generation and season reset.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import (
    InvalidStateError,
    LeagueTransitionError,
    NotFoundError,
    ValidationError,
)
from lpo_manager.models import Division, LeagueStatus, MatchType, Region
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    StandingRepository,
    TeamRepository,
)
from lpo_manager.services.league_service import LeagueService, league_name

PROJECT_ROOT = Path(__file__).resolve().parent.parent.parent
START = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_conn(tmp_path):
    """Temporary DB seeded with the pro rosters (10 SOUTH and 10 NORTH teams)."""
    db_path = tmp_path / "league_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path, roster_path=PROJECT_ROOT / "data" / "pro_rosters.json")
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def league_service():
    return LeagueService()


@pytest.fixture
def season_one(db_conn, league_service):
    league_service.initialize_season(db_conn, 1)
    league_service.distribute_teams(db_conn, 1)
    return {
        (region, division): LeagueRepository().find(db_conn, 1, region, division)
        for region in (Region.SOUTH, Region.NORTH)
        for division in (Division.FIRST, Division.SECOND)
    }


def test_league_name():
    assert league_name("SOUTH", "FIRST", 3) == "LPO South 1st Division S3"
    assert league_name(Region.NORTH, Division.SECOND, 1) == "LPO North 2nd Division S1"


def test_initialize_season_creates_four_pending_leagues(db_conn, league_service):
    leagues = league_service.initialize_season(db_conn, 1)
    assert len(leagues) == 4
    assert {(lg["region"], lg["division"]) for lg in leagues} == {
        ("SOUTH", "FIRST"), ("SOUTH", "SECOND"), ("NORTH", "FIRST"), ("NORTH", "SECOND"),
    }
    assert all(lg["status"] == LeagueStatus.PENDING.value for lg in leagues)
    assert {lg["max_teams"] for lg in leagues if lg["division"] == "FIRST"} == {12}
    assert {lg["max_teams"] for lg in leagues if lg["division"] == "SECOND"} == {20}


def test_initialize_same_season_twice_rejected(db_conn, league_service):
    league_service.initialize_season(db_conn, 1)
    with pytest.raises(InvalidStateError):
        league_service.initialize_season(db_conn, 1)


def test_new_season_finishes_previous_leagues(db_conn, league_service):
    league_service.initialize_season(db_conn, 1)
    league_service.initialize_season(db_conn, 2)
    old = LeagueRepository().list(db_conn, season=1)
    assert all(lg.status == LeagueStatus.FINISHED for lg in old)


def test_transition_pending_to_active(db_conn, league_service):
    league = LeagueRepository().create(db_conn, "L", "SOUTH", "FIRST", 1, 12)
    league_service.transition_league_status(db_conn, league.id, LeagueStatus.ACTIVE)
    assert LeagueRepository().get(db_conn, league.id).status == LeagueStatus.ACTIVE


def test_transition_active_to_playoff_to_finished(db_conn, league_service):
    league = LeagueRepository().create(db_conn, "L", "SOUTH", "FIRST", 1, 12)
    for status in (LeagueStatus.ACTIVE, LeagueStatus.PLAYOFF, LeagueStatus.FINISHED):
        league_service.transition_league_status(db_conn, league.id, status)
    assert LeagueRepository().get(db_conn, league.id).status == LeagueStatus.FINISHED


def test_invalid_transitions_rejected(db_conn, league_service):
    league = LeagueRepository().create(db_conn, "L", "SOUTH", "FIRST", 1, 12)
    with pytest.raises(LeagueTransitionError):
        league_service.transition_league_status(db_conn, league.id, LeagueStatus.PLAYOFF)
    league_service.transition_league_status(db_conn, league.id, LeagueStatus.FINISHED)
    with pytest.raises(LeagueTransitionError):
        league_service.transition_league_status(db_conn, league.id, LeagueStatus.ACTIVE)


def test_transition_unknown_league(db_conn, league_service):
    with pytest.raises(NotFoundError):
        league_service.transition_league_status(db_conn, "missing", LeagueStatus.ACTIVE)


def test_distribute_fills_first_division_first(db_conn, season_one):
    standing_repo = StandingRepository()
    assert standing_repo.count(db_conn, season_one[(Region.SOUTH, Division.FIRST)].id) == 10
    assert standing_repo.count(db_conn, season_one[(Region.SOUTH, Division.SECOND)].id) == 0
    assert standing_repo.count(db_conn, season_one[(Region.NORTH, Division.FIRST)].id) == 10
    teams = TeamRepository().list_by_region_for_distribution(db_conn, Region.SOUTH)
    assert all(t.division == Division.FIRST.value for t in teams)


def test_distribute_overflows_into_second_division(db_conn, league_service):
    team_repo = TeamRepository()
    pros = {t.id for t in team_repo.list_by_region_for_distribution(db_conn, Region.SOUTH)}
    for i in range(15):
        team_repo.create(db_conn, f"Rookies {i:02d}", "SOUTH")
    league_service.initialize_season(db_conn, 1)
    league_service.distribute_teams(db_conn, 1)
    first = LeagueRepository().find(db_conn, 1, Region.SOUTH, Division.FIRST)
    second = LeagueRepository().find(db_conn, 1, Region.SOUTH, Division.SECOND)
    standing_repo = StandingRepository()
    assert standing_repo.count(db_conn, first.id) == 12
    assert standing_repo.count(db_conn, second.id) == 13
    # Pro teams have far more fans than fresh sides, so all ten stay up
    assert len(pros) == 10
    assert pros <= set(standing_repo.team_ids(db_conn, first.id))


def test_distribute_requires_initialized_season(db_conn, league_service):
    with pytest.raises(NotFoundError):
        league_service.distribute_teams(db_conn, 5)


def test_generate_schedule_double_round_robin(db_conn, league_service, season_one):
    league = season_one[(Region.SOUTH, Division.FIRST)]
    created = league_service.generate_schedule(db_conn, league.id, start=START, spacing=timedelta(hours=6))
    assert created == 10 * 9
    assert LeagueRepository().get(db_conn, league.id).status == LeagueStatus.ACTIVE
    matches = MatchRepository().list(db_conn, league_id=league.id, limit=1000)
    assert len(matches) == 90
    assert all(m.match_type == MatchType.REGULAR for m in matches)
    assert len({(m.home_team_id, m.away_team_id) for m in matches}) == 90
    times = [m.scheduled_at for m in sorted(matches, key=lambda m: m.match_number)]
    assert times[0] == START
    assert all(a < b for a, b in zip(times, times[1:]))


def test_generate_schedule_only_once(db_conn, league_service, season_one):
    league = season_one[(Region.NORTH, Division.FIRST)]
    league_service.generate_schedule(db_conn, league.id, start=START)
    with pytest.raises(LeagueTransitionError):
        league_service.generate_schedule(db_conn, league.id, start=START)


def test_generate_schedule_needs_two_teams(db_conn, league_service, season_one):
    empty = season_one[(Region.SOUTH, Division.SECOND)]
    with pytest.raises(InvalidStateError):
        league_service.generate_schedule(db_conn, empty.id, start=START)


def test_add_team_to_pending_league(db_conn, league_service, season_one):
    team = TeamRepository().create(db_conn, "Late Entry", "SOUTH")
    league = season_one[(Region.SOUTH, Division.SECOND)]
    row = league_service.add_team(db_conn, league.id, team.id)
    assert row["team_id"] == team.id
    assert TeamRepository().get(db_conn, team.id).division == Division.SECOND.value


def test_add_team_guards(db_conn, league_service, season_one):
    north_team = TeamRepository().create(db_conn, "Wrong Region", "NORTH")
    south_second = season_one[(Region.SOUTH, Division.SECOND)]
    with pytest.raises(ValidationError):
        league_service.add_team(db_conn, south_second.id, north_team.id)

    south_first = season_one[(Region.SOUTH, Division.FIRST)]
    already_in = StandingRepository().team_ids(db_conn, south_first.id)[0]
    with pytest.raises(InvalidStateError):
        league_service.add_team(db_conn, south_second.id, already_in)

    league_service.generate_schedule(db_conn, south_first.id, start=START)
    newcomer = TeamRepository().create(db_conn, "Too Late", "SOUTH")
    with pytest.raises(InvalidStateError):
        league_service.add_team(db_conn, south_first.id, newcomer.id)


def test_reset_season_builds_next_season(db_conn, league_service, season_one):
    league = season_one[(Region.SOUTH, Division.FIRST)]
    league_service.generate_schedule(db_conn, league.id, start=START)
    result = league_service.reset_season(db_conn, start=START)
    assert result["season"] == 2
    assert result["deleted_matches"] == 90
    assert len(result["scheduled"]) == 2  # both first divisions; second divisions are empty
    assert all(lg.status == LeagueStatus.FINISHED for lg in LeagueRepository().list(db_conn, season=1))
    new_league = LeagueRepository().find(db_conn, 2, Region.SOUTH, Division.FIRST)
    assert new_league.status == LeagueStatus.ACTIVE
    assert result["scheduled"][new_league.id] == 90


def test_league_detail_and_season_standings(db_conn, league_service, season_one):
    league = season_one[(Region.SOUTH, Division.FIRST)]
    league_service.generate_schedule(db_conn, league.id, start=START)
    detail = league_service.league_detail(db_conn, league.id)
    assert len(detail["standings"]) == 10
    assert len(detail["upcoming_matches"]) == 10
    table = league_service.season_standings(db_conn, 1, "SOUTH")
    assert table["first"]["league"]["id"] == league.id
    assert table["second"]["standings"] == []
