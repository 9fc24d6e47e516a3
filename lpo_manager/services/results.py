"""
Recording a finished match: one place for the scheduler and for manual
(admin) result entry, so both apply the same follow-up effects.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime

from lpo_manager.errors import InvalidStateError, ValidationError
from lpo_manager.models import Match, MatchStatus, MatchType
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import MatchRepository
from lpo_manager.services.standings import StandingsUpdater
from lpo_manager.services.tournament_service import TournamentService

logger = logging.getLogger(__name__)

_KNOCKOUT_TYPES = {MatchType.CUP, MatchType.WORLDS, MatchType.PLAYOFF, MatchType.PROMOTION}


def validate_score(match: Match, home_score: int, away_score: int) -> None:
    """Scores are sets won. Knockout matches must have a winner; nobody exceeds two sets."""
    if home_score < 0 or away_score < 0:
        raise ValidationError("Scores cannot be negative")
    if home_score > 2 or away_score > 2:
        raise ValidationError("A best-of-three score cannot exceed 2 sets")
    if match.match_type in _KNOCKOUT_TYPES and home_score == away_score:
        raise ValidationError("Knockout matches cannot end in a draw")


def record_match_result(
    conn: sqlite3.Connection,
    match: Match,
    home_score: int,
    away_score: int,
    finished_at: datetime,
) -> Match:
    """
    Write the score, winner and FINISHED status, then update the league table
    (REGULAR) or the bracket (tournament matches), all in one transaction.
    """
    if match.status not in (MatchStatus.SCHEDULED, MatchStatus.IN_PROGRESS):
        raise InvalidStateError(f"Match {match.id} cannot take a result (status {match.status})")
    if match.home_team_id is None or match.away_team_id is None:
        raise InvalidStateError(f"Match {match.id} has no opponents yet")
    validate_score(match, home_score, away_score)
    if home_score > away_score:
        winner = match.home_team_id
    elif away_score > home_score:
        winner = match.away_team_id
    else:
        winner = None
    match_repo = MatchRepository()
    with transaction(conn):
        if not match_repo.finish(conn, match.id, home_score, away_score, winner, finished_at):
            raise InvalidStateError(f"Match {match.id} was finished concurrently")
        if match.match_type == MatchType.REGULAR and match.league_id:
            StandingsUpdater().record_result(
                conn, match.league_id, match.home_team_id, match.away_team_id, home_score, away_score
            )
        elif match.tournament_id and winner is not None:
            loser = match.away_team_id if winner == match.home_team_id else match.home_team_id
            TournamentService().record_result(conn, match, winner, loser)
    return match_repo.get(conn, match.id)
