"""
Teams and rosters: registration (user + team + rookie lineup), team summary
with power, and starting lineup changes.
"""
from __future__ import annotations

import logging
import sqlite3
from typing import Any

from lpo_manager.errors import InvalidStateError, NotFoundError, ValidationError
from lpo_manager.models import Position, Region, Team, User
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import PlayerRepository, TeamRepository, UserRepository
from lpo_manager.simulation.power import player_overall, team_power
from lpo_manager.simulation.rng import SeededRNG

logger = logging.getLogger(__name__)

STARTING_GOLD = 100_000
STARTING_DIAMOND = 100
MAX_STARTERS = 5
ROOKIE_STAT_RANGE = (40, 60)


class TeamService:
    def __init__(self) -> None:
        self._user_repo = UserRepository()
        self._team_repo = TeamRepository()
        self._player_repo = PlayerRepository()

    def register(
        self,
        conn: sqlite3.Connection,
        username: str,
        password_hash: str,
        team_name: str,
        region: str,
        rng: SeededRNG | None = None,
    ) -> tuple[User, Team]:
        """
        Create the account and its team with starting funds and five rookie
        starters, one per position.
        """
        try:
            region = Region(region).value
        except ValueError:
            raise ValidationError(f"Unknown region: {region}") from None
        if self._user_repo.get_by_username(conn, username):
            raise InvalidStateError("Username already taken")
        if self._team_repo.get_by_name(conn, team_name):
            raise InvalidStateError("Team name already taken")
        rng = rng or SeededRNG()
        lo, hi = ROOKIE_STAT_RANGE
        with transaction(conn):
            user = self._user_repo.create(conn, username, password_hash)
            team = self._team_repo.create(
                conn, team_name, region, user_id=user.id,
                gold=STARTING_GOLD, diamond=STARTING_DIAMOND,
            )
            for position in Position:
                stats = [rng.randint(lo, hi) for _ in range(4)]
                self._player_repo.create(
                    conn,
                    name=f"{team_name} {position.value.title()}",
                    position=position,
                    mental=stats[0],
                    teamfight=stats[1],
                    focus=stats[2],
                    laning=stats[3],
                    overall=player_overall(*stats),
                    team_id=team.id,
                    is_starter=True,
                )
        logger.info("Registered user %s with team %s (%s)", user.id, team.id, region)
        return user, team

    def team_summary(self, conn: sqlite3.Connection, team_id: str) -> dict[str, Any]:
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        players = self._player_repo.list_by_team(conn, team_id)
        return {
            "team": team.to_dict(),
            "players": [p.to_dict() for p in players],
            "starter_count": sum(1 for p in players if p.is_starter),
            "power": team_power(conn, team_id),
        }

    def set_starters(self, conn: sqlite3.Connection, team_id: str, player_ids: list[str]) -> dict[str, Any]:
        """Replace the starting lineup: at most five owned players, one per position."""
        if len(player_ids) > MAX_STARTERS:
            raise ValidationError(f"At most {MAX_STARTERS} starters allowed")
        if len(set(player_ids)) != len(player_ids):
            raise ValidationError("Duplicate player in lineup")
        owned = {p.id: p for p in self._player_repo.list_by_team(conn, team_id)}
        missing = [pid for pid in player_ids if pid not in owned]
        if missing:
            raise NotFoundError(f"Players not on this team: {', '.join(missing)}")
        positions = [owned[pid].position for pid in player_ids]
        if len(set(positions)) != len(positions):
            raise ValidationError("Starters must play distinct positions")
        with transaction(conn):
            self._player_repo.set_starters(conn, team_id, player_ids)
        return self.team_summary(conn, team_id)

    def available_opponents(self, conn: sqlite3.Connection, team_id: str) -> list[dict[str, Any]]:
        return self._team_repo.list_other_with_player_counts(conn, team_id, limit=50)
