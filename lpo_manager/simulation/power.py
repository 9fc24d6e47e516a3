"""
Team power: the single number a team brings into a match.
Sum of mental + teamfight + focus + laning over the starting lineup.
"""
from __future__ import annotations

import sqlite3

from lpo_manager.errors import NotFoundError
from lpo_manager.persistence.repositories import PlayerRepository, TeamRepository

# Power of a team with no starters (or an all-zero lineup)
DEFAULT_TEAM_POWER = 100


def player_overall(mental: int, teamfight: int, focus: int, laning: int) -> int:
    """Cached overall rating: rounded mean of the four stats."""
    return round((mental + teamfight + focus + laning) / 4)


def team_power(conn: sqlite3.Connection, team_id: str) -> int:
    """
    Sum of the four stats over the team's starters. A partial lineup sums
    whatever starters exist. No starters, or starters whose stats sum to 0,
    gives DEFAULT_TEAM_POWER.
    """
    if not TeamRepository().exists(conn, team_id):
        raise NotFoundError(f"Team not found: {team_id}")
    _, total = PlayerRepository().sum_starter_stats(conn, team_id)
    return total or DEFAULT_TEAM_POWER
