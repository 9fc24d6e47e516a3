"""
Deterministic round-robin schedule generation for leagues.

A league season is a double round robin: every team hosts every other team
once, so N teams play N*(N-1) fixtures. Leg one comes from the circle method
(fix the first slot, rotate the others each round); leg two repeats it with
home and away swapped. With an odd number of teams a virtual BYE fills the
last slot and its pairings are dropped, so byes never become fixtures.

Fixtures are laid out one at a time from a start instant at a fixed spacing,
which gives strictly increasing kickoff times. Same team list ordering yields
the same schedule.
"""
from __future__ import annotations

from datetime import datetime, timedelta
from typing import Any

# Sentinel for bye when number of teams is odd
BYE = "BYE"

DEFAULT_START_OFFSET = timedelta(hours=1)
DEFAULT_SPACING = timedelta(hours=6)


def round_robin_pairings(team_ids: list[str]) -> list[tuple[int, str, str | None]]:
    """
    Generate single round-robin pairings: (round_number, home_team_id, away_team_id).
    away_team_id is None when home_team_id has a bye (odd number of teams).
    """
    if not team_ids:
        return []
    ids = list(team_ids)
    if len(ids) % 2 == 1:
        ids.append(BYE)
    n = len(ids)
    result: list[tuple[int, str, str | None]] = []
    order = list(range(n))
    for rnd in range(n - 1):
        # Pair order[0] with order[n-1], order[1] with order[n-2], ...
        for i in range(n // 2):
            home_id, away_id = ids[order[i]], ids[order[n - 1 - i]]
            if home_id == BYE:
                home_id, away_id = away_id, None
            elif away_id == BYE:
                away_id = None
            result.append((rnd + 1, home_id, away_id))
        # Rotate: keep slot 0, last slot moves to position 1
        order = [order[0]] + [order[n - 1]] + order[1 : n - 1]
    return result


def double_round_robin(team_ids: list[str]) -> list[tuple[int, str, str]]:
    """
    Home-and-away round robin without byes: (round_number, home, away).
    Leg two mirrors leg one with rounds numbered after it.
    """
    first_leg = [(r, h, a) for r, h, a in round_robin_pairings(team_ids) if a is not None]
    if not first_leg:
        return []
    leg_rounds = max(r for r, _, _ in first_leg)
    second_leg = [(r + leg_rounds, a, h) for r, h, a in first_leg]
    return first_leg + second_leg


def schedule_times(count: int, start: datetime, spacing: timedelta) -> list[datetime]:
    return [start + spacing * k for k in range(count)]


def generate_league_schedule(
    team_ids: list[str],
    start: datetime,
    spacing: timedelta = DEFAULT_SPACING,
) -> list[dict[str, Any]]:
    """
    Return fixtures { "round", "match_number", "home_team_id", "away_team_id",
    "scheduled_at" } for a double round robin. scheduled_at is start + k*spacing.
    """
    pairings = double_round_robin(team_ids)
    times = schedule_times(len(pairings), start, spacing)
    return [
        {
            "round": r,
            "match_number": k + 1,
            "home_team_id": h,
            "away_team_id": a,
            "scheduled_at": times[k],
        }
        for k, (r, h, a) in enumerate(pairings)
    ]


def next_weekday(after: datetime, weekday: int, hour: int, minute: int = 0) -> datetime:
    """
    The next date strictly after `after`'s day that falls on `weekday`
    (Monday=0) at hour:minute, same tzinfo.
    """
    days_ahead = (weekday - after.weekday()) % 7
    if days_ahead == 0:
        days_ahead = 7
    target = after + timedelta(days=days_ahead)
    return target.replace(hour=hour, minute=minute, second=0, microsecond=0)
