"""
Friendly matches: scheduled five minutes out, no league, no standings effect.
The scheduler resolves them like any other fixture.
"""
from __future__ import annotations

import sqlite3
from datetime import datetime, timedelta
from typing import Any

from lpo_manager.errors import NotFoundError, ValidationError
from lpo_manager.models import MatchType
from lpo_manager.persistence.repositories import MatchRepository, TeamRepository

FRIENDLY_DELAY = timedelta(minutes=5)


def create_friendly(
    conn: sqlite3.Connection, team_id: str, opponent_team_id: str | None, now: datetime
) -> dict[str, Any]:
    if not opponent_team_id:
        raise ValidationError("Opponent team is required")
    if opponent_team_id == team_id:
        raise ValidationError("Cannot play against yourself")
    team_repo = TeamRepository()
    if not team_repo.exists(conn, team_id):
        raise NotFoundError(f"Team not found: {team_id}")
    if not team_repo.exists(conn, opponent_team_id):
        raise NotFoundError("Opponent team not found")
    match = MatchRepository().create(
        conn, MatchType.FRIENDLY, now + FRIENDLY_DELAY, team_id, opponent_team_id,
    )
    return match.to_dict()
