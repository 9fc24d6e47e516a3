"""
Tests for team power aggregation over the starting lineup.
"""
from __future__ import annotations

from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import NotFoundError
from lpo_manager.models import Position
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import PlayerRepository, TeamRepository
from lpo_manager.simulation.power import DEFAULT_TEAM_POWER, player_overall, team_power


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "power_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def _team_with_lineup(conn, name: str, stats: tuple[int, int, int, int], starters: int) -> str:
    team = TeamRepository().create(conn, name, "SOUTH")
    for i, position in enumerate(Position):
        PlayerRepository().create(
            conn, f"{name} {position.value}", position, *stats,
            overall=player_overall(*stats), team_id=team.id, is_starter=i < starters,
        )
    return team.id


def test_player_overall_is_rounded_mean():
    assert player_overall(50, 60, 70, 80) == 65
    assert player_overall(1, 1, 1, 2) == 1


def test_full_lineup_sums_all_four_stats(db_conn):
    team_id = _team_with_lineup(db_conn, "Full", (50, 60, 70, 80), starters=5)
    assert team_power(db_conn, team_id) == 5 * (50 + 60 + 70 + 80)


def test_bench_players_do_not_count(db_conn):
    team_id = _team_with_lineup(db_conn, "Partial", (40, 40, 40, 40), starters=3)
    assert team_power(db_conn, team_id) == 3 * 160


def test_no_starters_gives_default_power(db_conn):
    team_id = _team_with_lineup(db_conn, "Bench", (90, 90, 90, 90), starters=0)
    assert team_power(db_conn, team_id) == DEFAULT_TEAM_POWER


def test_team_without_players_gives_default_power(db_conn):
    team = TeamRepository().create(db_conn, "Empty", "NORTH")
    assert team_power(db_conn, team.id) == DEFAULT_TEAM_POWER


def test_unknown_team_raises(db_conn):
    with pytest.raises(NotFoundError):
        team_power(db_conn, "no-such-team")


def test_all_zero_lineup_gives_default_power(db_conn):
    team_id = _team_with_lineup(db_conn, "Zeros", (0, 0, 0, 0), starters=5)
    assert team_power(db_conn, team_id) == DEFAULT_TEAM_POWER
