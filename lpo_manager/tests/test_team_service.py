"""
Tests for registration, team summaries, lineups and friendly matches.
"""
from __future__ import annotations

from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import InvalidStateError, NotFoundError, ValidationError
from lpo_manager.models import MatchStatus, MatchType, Position
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import MatchRepository, PlayerRepository
from lpo_manager.services.friendly_service import create_friendly
from lpo_manager.services.team_service import STARTING_DIAMOND, STARTING_GOLD, TeamService
from lpo_manager.simulation.rng import SeededRNG

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "team_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def team_service():
    return TeamService()


def test_register_creates_funded_team_with_five_starters(db_conn, team_service):
    user, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "NORTH", SeededRNG(1))
    assert team.user_id == user.id
    assert (team.gold, team.diamond) == (STARTING_GOLD, STARTING_DIAMOND)
    assert team.region == "NORTH"
    summary = team_service.team_summary(db_conn, team.id)
    assert summary["starter_count"] == 5
    assert {p["position"] for p in summary["players"]} == {p.value for p in Position}
    for p in summary["players"]:
        assert all(40 <= p[stat] <= 60 for stat in ("mental", "teamfight", "focus", "laning"))
    expected = sum(p["mental"] + p["teamfight"] + p["focus"] + p["laning"] for p in summary["players"])
    assert summary["power"] == expected


def test_register_guards(db_conn, team_service):
    team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH")
    with pytest.raises(InvalidStateError):
        team_service.register(db_conn, "alice", "hash", "Other FC", "SOUTH")
    with pytest.raises(InvalidStateError):
        team_service.register(db_conn, "bob", "hash", "Alice FC", "SOUTH")
    with pytest.raises(ValidationError):
        team_service.register(db_conn, "carol", "hash", "Carol FC", "EAST")


def test_set_starters(db_conn, team_service):
    _, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH", SeededRNG(2))
    players = PlayerRepository().list_by_team(db_conn, team.id)
    summary = team_service.set_starters(db_conn, team.id, [players[0].id, players[1].id])
    assert summary["starter_count"] == 2
    expected = players[0].stat_total + players[1].stat_total
    assert summary["power"] == expected


def test_set_starters_guards(db_conn, team_service):
    _, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH")
    _, other = team_service.register(db_conn, "bob", "hash", "Bob FC", "SOUTH")
    mine = PlayerRepository().list_by_team(db_conn, team.id)
    theirs = PlayerRepository().list_by_team(db_conn, other.id)
    with pytest.raises(ValidationError):
        team_service.set_starters(db_conn, team.id, [mine[0].id, mine[0].id])
    with pytest.raises(NotFoundError):
        team_service.set_starters(db_conn, team.id, [theirs[0].id])
    spare = PlayerRepository().create(
        db_conn, "Spare Top", mine[0].position, 50, 50, 50, 50, 50, team_id=team.id,
    )
    with pytest.raises(ValidationError):
        team_service.set_starters(db_conn, team.id, [mine[0].id, spare.id])


def test_available_opponents_excludes_own_team(db_conn, team_service):
    _, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH")
    _, other = team_service.register(db_conn, "bob", "hash", "Bob FC", "NORTH")
    opponents = team_service.available_opponents(db_conn, team.id)
    assert [o["id"] for o in opponents] == [other.id]
    assert opponents[0]["player_count"] == 5
    assert opponents[0]["is_ai"] is False


def test_friendly_scheduled_five_minutes_out(db_conn, team_service):
    _, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH")
    _, other = team_service.register(db_conn, "bob", "hash", "Bob FC", "NORTH")
    match = create_friendly(db_conn, team.id, other.id, NOW)
    assert match["match_type"] == MatchType.FRIENDLY.value
    assert match["status"] == MatchStatus.SCHEDULED.value
    assert match["league_id"] is None
    assert match["scheduled_at"] == (NOW + timedelta(minutes=5)).isoformat()
    assert MatchRepository().get(db_conn, match["id"]).home_team_id == team.id


def test_friendly_guards(db_conn, team_service):
    _, team = team_service.register(db_conn, "alice", "hash", "Alice FC", "SOUTH")
    with pytest.raises(ValidationError, match="Opponent team is required"):
        create_friendly(db_conn, team.id, None, NOW)
    with pytest.raises(ValidationError, match="yourself"):
        create_friendly(db_conn, team.id, team.id, NOW)
    with pytest.raises(NotFoundError):
        create_friendly(db_conn, team.id, "ghost-team", NOW)
