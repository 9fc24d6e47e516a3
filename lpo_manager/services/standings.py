"""
League standings: incremental updates after each finished regular-season
match, and a full rebuild from match history.

Scoring: win 3 points, draw 1 point each, loss 0. goal_difference is the set
difference. Rank orders by points, then goal difference, then wins.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any

from lpo_manager.errors import NotFoundError
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    StandingRepository,
)

logger = logging.getLogger(__name__)

WIN_POINTS = 3
DRAW_POINTS = 1


class StandingsUpdater:
    """Applies match results to league_standings. Callers own the transaction."""

    def __init__(self) -> None:
        self._standing_repo = StandingRepository()
        self._match_repo = MatchRepository()
        self._league_repo = LeagueRepository()

    def record_result(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        home_team_id: str,
        away_team_id: str,
        home_score: int,
        away_score: int,
    ) -> None:
        for team_id in (home_team_id, away_team_id):
            if self._standing_repo.get(conn, league_id, team_id) is None:
                # Both sides must already be in the league table
                raise NotFoundError(f"No standings row for team {team_id} in league {league_id}")
        if home_score > away_score:
            self._standing_repo.apply_delta(
                conn, league_id, home_team_id, wins=1, points=WIN_POINTS,
                goal_difference=home_score - away_score,
            )
            self._standing_repo.apply_delta(
                conn, league_id, away_team_id, losses=1, goal_difference=away_score - home_score,
            )
        elif away_score > home_score:
            self._standing_repo.apply_delta(
                conn, league_id, away_team_id, wins=1, points=WIN_POINTS,
                goal_difference=away_score - home_score,
            )
            self._standing_repo.apply_delta(
                conn, league_id, home_team_id, losses=1, goal_difference=home_score - away_score,
            )
        else:
            for team_id in (home_team_id, away_team_id):
                self._standing_repo.apply_delta(conn, league_id, team_id, draws=1, points=DRAW_POINTS)
        self._standing_repo.update_ranks(conn, league_id)

    def recalculate(self, conn: sqlite3.Connection, league_id: str) -> list[dict[str, Any]]:
        """
        Rebuild the whole table from finished REGULAR matches. Repairs counters
        left behind by a crash between finishing a match and updating standings.
        """
        if self._league_repo.get(conn, league_id) is None:
            raise NotFoundError(f"League not found: {league_id}")
        with transaction(conn):
            for team_id in self._standing_repo.team_ids(conn, league_id):
                self._standing_repo.reset(conn, league_id, team_id)
            matches = self._match_repo.list_finished_regular(conn, league_id)
            for m in matches:
                self.record_result(
                    conn, league_id, m.home_team_id, m.away_team_id, m.home_score, m.away_score
                )
            self._standing_repo.update_ranks(conn, league_id)
        logger.info("Recalculated standings for league %s from %d matches", league_id, len(matches))
        return standings_table(conn, league_id)


def standings_table(conn: sqlite3.Connection, league_id: str) -> list[dict[str, Any]]:
    """Ordered table rows with team names."""
    return [s.to_dict() for s in StandingRepository().list_by_league(conn, league_id)]
