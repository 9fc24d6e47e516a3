"""
Tests for the match scheduler: due matches get resolved, failures stay
isolated to their own match, stuck matches can be restarted, and the async
loop pushes live events to subscribers.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from lpo_manager.errors import InvalidStateError
from lpo_manager.models import MatchStatus, MatchType, Position
from lpo_manager.persistence.db import get_connection, init_db, set_db_path
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    PlayerRepository,
    StandingRepository,
    TeamRepository,
)
from lpo_manager.realtime import MatchBroadcaster
from lpo_manager.services import match_scheduler as scheduler_module
from lpo_manager.services.match_scheduler import MatchScheduler, restart_match
from lpo_manager.simulation.rng import SeededRNG

NOW = datetime(2026, 3, 2, 12, 0, tzinfo=timezone.utc)
VALID_SCORES = {(2, 0), (2, 1), (1, 2), (0, 2)}


@pytest.fixture
def db_conn(tmp_path):
    db_path = tmp_path / "scheduler_test.db"
    set_db_path(db_path)
    init_db(db_path=db_path)
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


@pytest.fixture
def teams(db_conn):
    """Four teams with full lineups of increasing strength."""
    team_ids = []
    for i, name in enumerate(("Ants", "Bees", "Crows", "Doves")):
        team = TeamRepository().create(db_conn, name, "SOUTH")
        stat = 40 + 10 * i
        for position in Position:
            PlayerRepository().create(
                db_conn, f"{name} {position.value}", position, stat, stat, stat, stat, stat,
                team_id=team.id, is_starter=True,
            )
        team_ids.append(team.id)
    return team_ids


def _scheduler(**kwargs) -> MatchScheduler:
    return MatchScheduler(get_connection, clock=lambda: NOW, rng=SeededRNG(1), **kwargs)


def _friendly(db_conn, home, away, when):
    return MatchRepository().create(db_conn, MatchType.FRIENDLY, when, home, away)


def test_due_match_is_finished(db_conn, teams):
    match = _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=1))
    resolved = _scheduler().poll_once()
    assert [r.match_id for r in resolved] == [match.id]
    done = MatchRepository().get(db_conn, match.id)
    assert done.status == MatchStatus.FINISHED
    assert (done.home_score, done.away_score) in VALID_SCORES
    assert done.finished_at == NOW
    assert done.started_at == NOW
    assert done.winner_team_id in (teams[0], teams[1])
    assert resolved[0].home_power == 5 * 160
    assert resolved[0].away_power == 5 * 200


def test_future_match_is_left_alone(db_conn, teams):
    match = _friendly(db_conn, teams[0], teams[1], NOW + timedelta(minutes=1))
    assert _scheduler().poll_once() == []
    assert MatchRepository().get(db_conn, match.id).status == MatchStatus.SCHEDULED


def test_bracket_slot_without_teams_is_not_due(db_conn, teams):
    slot = MatchRepository().create(
        db_conn, MatchType.CUP, NOW - timedelta(hours=1), None, None, status=MatchStatus.PENDING,
    )
    assert _scheduler().poll_once() == []
    assert MatchRepository().get(db_conn, slot.id).status == MatchStatus.PENDING


def test_batch_size_limits_one_tick(db_conn, teams):
    for minutes in (30, 20, 10):
        _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=minutes))
    scheduler = _scheduler(batch_size=2)
    assert len(scheduler.poll_once()) == 2
    assert len(scheduler.poll_once()) == 1
    assert scheduler.poll_once() == []


def test_oldest_match_resolved_first(db_conn, teams):
    late = _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=5))
    early = _friendly(db_conn, teams[2], teams[3], NOW - timedelta(minutes=50))
    resolved = _scheduler(batch_size=1).poll_once()
    assert [r.match_id for r in resolved] == [early.id]
    assert MatchRepository().get(db_conn, late.id).status == MatchStatus.SCHEDULED


def test_regular_match_updates_standings(db_conn, teams):
    league = LeagueRepository().create(db_conn, "L", "SOUTH", "FIRST", 1, 12)
    for team_id in teams[:2]:
        StandingRepository().reset(db_conn, league.id, team_id)
    match = MatchRepository().create(
        db_conn, MatchType.REGULAR, NOW - timedelta(minutes=1), teams[0], teams[1], league_id=league.id,
    )
    _scheduler().poll_once()
    done = MatchRepository().get(db_conn, match.id)
    winner = StandingRepository().get(db_conn, league.id, done.winner_team_id)
    loser = StandingRepository().get(db_conn, league.id, done.loser_team_id)
    assert (winner.wins, winner.points) == (1, 3)
    assert (loser.losses, loser.points) == (1, 0)


def test_failure_leaves_match_in_progress_and_batch_continues(db_conn, teams, monkeypatch):
    broken = _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=10))
    healthy = _friendly(db_conn, teams[2], teams[3], NOW - timedelta(minutes=5))
    real_power = scheduler_module.team_power

    def flaky_power(conn, team_id):
        if team_id == teams[0]:
            raise RuntimeError("lineup unavailable")
        return real_power(conn, team_id)

    monkeypatch.setattr(scheduler_module, "team_power", flaky_power)
    resolved = _scheduler().poll_once()

    assert [r.match_id for r in resolved] == [healthy.id]
    assert MatchRepository().get(db_conn, broken.id).status == MatchStatus.IN_PROGRESS
    assert MatchRepository().get(db_conn, healthy.id).status == MatchStatus.FINISHED

    # Stuck match is not picked up again until restarted
    monkeypatch.setattr(scheduler_module, "team_power", real_power)
    assert _scheduler().poll_once() == []
    restarted = restart_match(db_conn, broken.id)
    assert restarted.status == MatchStatus.SCHEDULED
    assert restarted.started_at is None
    assert [r.match_id for r in _scheduler().poll_once()] == [broken.id]


def test_restart_finished_match_rejected(db_conn, teams):
    match = _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=1))
    _scheduler().poll_once()
    with pytest.raises(InvalidStateError):
        restart_match(db_conn, match.id)


class FakeSocket:
    def __init__(self) -> None:
        self.sent: list[dict] = []

    async def send_json(self, data: dict) -> None:
        self.sent.append(data)


class DeadSocket:
    async def send_json(self, data: dict) -> None:
        raise ConnectionError("gone")


def test_run_loop_publishes_live_events(db_conn, teams):
    match = _friendly(db_conn, teams[0], teams[1], NOW - timedelta(minutes=1))
    broadcaster = MatchBroadcaster()
    live, dead = FakeSocket(), DeadSocket()
    broadcaster.subscribe(match.id, live)
    broadcaster.subscribe(match.id, dead)

    async def run_briefly():
        scheduler = _scheduler(interval_seconds=0.05, broadcaster=broadcaster)
        scheduler.start()
        assert scheduler.running
        await asyncio.sleep(0.3)
        await scheduler.stop()
        assert not scheduler.running

    asyncio.run(run_briefly())

    types = [event["type"] for event in live.sent]
    assert types[0] == "match_started"
    assert types[-1] == "match_finished"
    assert 2 <= types.count("match_update") <= 3
    final = live.sent[-1]
    assert (final["home_score"], final["away_score"]) in VALID_SCORES
    assert broadcaster.subscriber_count(match.id) == 1
    assert MatchRepository().get(db_conn, match.id).status == MatchStatus.FINISHED


def test_single_tick_publishes_live_events(db_conn, teams):
    match = _friendly(db_conn, teams[2], teams[3], NOW - timedelta(minutes=1))
    broadcaster = MatchBroadcaster()
    live = FakeSocket()
    broadcaster.subscribe(match.id, live)

    results = asyncio.run(_scheduler(broadcaster=broadcaster).tick())

    assert [r.match_id for r in results] == [match.id]
    types = [event["type"] for event in live.sent]
    assert types[0] == "match_started"
    assert types[-1] == "match_finished"
    assert MatchRepository().get(db_conn, match.id).status == MatchStatus.FINISHED
