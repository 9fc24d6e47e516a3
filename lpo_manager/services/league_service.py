"""
League structure service: status state machine, season initialization,
team distribution into divisions, regular-season scheduling and season reset.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any

from lpo_manager.errors import (
    InvalidStateError,
    LeagueTransitionError,
    NotFoundError,
    ValidationError,
)
from lpo_manager.models import Division, LeagueStatus, MatchType, Region
from lpo_manager.persistence.db import transaction, utcnow
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    StandingRepository,
    TeamRepository,
)
from lpo_manager.services.scheduling import (
    DEFAULT_SPACING,
    DEFAULT_START_OFFSET,
    generate_league_schedule,
)
from lpo_manager.services.standings import standings_table

logger = logging.getLogger(__name__)

# ---------- Structure ----------

DIVISION_SIZES: dict[str, int] = {
    Division.FIRST.value: 12,
    Division.SECOND.value: 20,
}

_DIVISION_LABELS = {Division.FIRST.value: "1st Division", Division.SECOND.value: "2nd Division"}


# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[str, set[str]] = {
    LeagueStatus.PENDING: {LeagueStatus.ACTIVE, LeagueStatus.FINISHED},
    LeagueStatus.ACTIVE: {LeagueStatus.PLAYOFF, LeagueStatus.FINISHED},
    LeagueStatus.PLAYOFF: {LeagueStatus.FINISHED},
    LeagueStatus.FINISHED: set(),
}


def league_name(region: str, division: str, season: int) -> str:
    return f"LPO {Region(region).value.title()} {_DIVISION_LABELS[Division(division).value]} S{season}"


# ---------- LeagueService ----------


class LeagueService:
    """
    Domain logic for leagues: status transitions, season structure, scheduling.
    Persistence is delegated to repositories.
    """

    def __init__(self) -> None:
        self._league_repo = LeagueRepository()
        self._standing_repo = StandingRepository()
        self._match_repo = MatchRepository()
        self._team_repo = TeamRepository()

    def transition_league_status(self, conn: sqlite3.Connection, league_id: str, new_status: str) -> None:
        """
        Transition league to new_status if valid.
        Valid: PENDING -> ACTIVE -> PLAYOFF -> FINISHED, and any unfinished status -> FINISHED.
        """
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        current = LeagueStatus(league.status)
        target = LeagueStatus(new_status)
        allowed = _VALID_TRANSITIONS.get(current, set())
        if target not in allowed:
            raise LeagueTransitionError(
                f"Invalid transition: {current.value} -> {target.value}. "
                f"Allowed from {current.value}: {sorted(s.value for s in allowed)}"
            )
        self._league_repo.update_status(conn, league_id, target)

    # ---------- Season structure ----------

    def initialize_season(self, conn: sqlite3.Connection, season: int) -> list[dict[str, Any]]:
        """
        Finish every unfinished league, then create the four leagues of the new
        season (SOUTH/NORTH x 1st/2nd division), all PENDING.
        """
        if self._league_repo.list(conn, season=season):
            raise InvalidStateError(f"Season {season} already initialized")
        with transaction(conn):
            for league in self._league_repo.list_unfinished(conn):
                self.transition_league_status(conn, league.id, LeagueStatus.FINISHED)
            created = [
                self._league_repo.create(
                    conn, league_name(region, division, season), region, division, season, max_teams
                )
                for region in (Region.SOUTH, Region.NORTH)
                for division, max_teams in DIVISION_SIZES.items()
            ]
        logger.info("Initialized season %d with %d leagues", season, len(created))
        return [league.to_dict() for league in created]

    def distribute_teams(self, conn: sqlite3.Connection, season: int) -> dict[str, Any]:
        """
        Per region, rank teams by current division (1st, 2nd, unassigned) then
        fan count; fill the 1st division, then the 2nd. Standings start at zero.
        """
        summary: dict[str, Any] = {}
        with transaction(conn):
            for region in (Region.SOUTH, Region.NORTH):
                first = self._league_repo.find(conn, season, region, Division.FIRST)
                second = self._league_repo.find(conn, season, region, Division.SECOND)
                if first is None or second is None:
                    raise NotFoundError(f"Season {season} has no leagues for {region.value}; initialize it first")
                for league in (first, second):
                    if league.status != LeagueStatus.PENDING:
                        raise InvalidStateError(
                            f"Teams can only be distributed into PENDING leagues ({league.name} is {league.status})"
                        )
                self._standing_repo.delete_by_leagues(conn, [first.id, second.id])
                teams = self._team_repo.list_by_region_for_distribution(conn, region)
                first_teams = teams[: first.max_teams]
                second_teams = teams[first.max_teams : first.max_teams + second.max_teams]
                for team in teams[first.max_teams + second.max_teams :]:
                    self._team_repo.set_division(conn, team.id, None)
                    logger.warning("No league slot for team %s in %s", team.id, region.value)
                for league, members in ((first, first_teams), (second, second_teams)):
                    for team in members:
                        self._standing_repo.reset(conn, league.id, team.id)
                        self._team_repo.set_division(conn, team.id, league.division)
                    self._standing_repo.update_ranks(conn, league.id)
                    summary[league.id] = {"name": league.name, "teams": len(members)}
        logger.info("Distributed teams for season %d: %s", season, summary)
        return summary

    def add_team(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> dict[str, Any]:
        """Admin assignment of one team to a PENDING league."""
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        team = self._team_repo.get(conn, team_id)
        if team is None:
            raise NotFoundError(f"Team not found: {team_id}")
        if league.status != LeagueStatus.PENDING:
            raise InvalidStateError(f"Teams can only join PENDING leagues (current: {league.status})")
        if team.region != league.region:
            raise ValidationError(f"Team region {team.region} does not match league region {league.region}")
        current = self._league_repo.find_active_for_team(conn, team_id)
        if current is not None:
            raise InvalidStateError(f"Team already plays in {current.name}")
        if self._standing_repo.count(conn, league_id) >= league.max_teams:
            raise InvalidStateError("League is full")
        with transaction(conn):
            self._standing_repo.reset(conn, league_id, team_id)
            self._team_repo.set_division(conn, team_id, league.division)
            self._standing_repo.update_ranks(conn, league_id)
        return self._standing_repo.get(conn, league_id, team_id).to_dict()

    # ---------- Scheduling ----------

    def generate_schedule(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        start: datetime | None = None,
        spacing: timedelta | None = None,
    ) -> int:
        """
        Double round robin for the league's teams, first kickoff at start
        (default one hour from now), fixtures `spacing` apart. PENDING -> ACTIVE.
        Returns the number of fixtures created.
        """
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        if league.status != LeagueStatus.PENDING:
            raise LeagueTransitionError(f"League must be PENDING to schedule (current: {league.status})")
        if self._match_repo.count_regular(conn, league_id) > 0:
            raise InvalidStateError("Regular season schedule already generated")
        team_ids = self._standing_repo.team_ids(conn, league_id)
        if len(team_ids) < 2:
            raise InvalidStateError("Need at least 2 teams to generate a schedule")
        fixtures = generate_league_schedule(
            team_ids,
            start or utcnow() + DEFAULT_START_OFFSET,
            spacing or DEFAULT_SPACING,
        )
        with transaction(conn):
            for f in fixtures:
                self._match_repo.create(
                    conn, MatchType.REGULAR, f["scheduled_at"], f["home_team_id"], f["away_team_id"],
                    league_id=league_id, season=league.season, region=league.region,
                    round=str(f["round"]), match_number=f["match_number"],
                )
            self.transition_league_status(conn, league_id, LeagueStatus.ACTIVE)
        logger.info("Scheduled %d fixtures for league %s", len(fixtures), league_id)
        return len(fixtures)

    def reset_season(
        self,
        conn: sqlite3.Connection,
        season: int | None = None,
        start: datetime | None = None,
        spacing: timedelta | None = None,
    ) -> dict[str, Any]:
        """
        Drop unplayed league and friendly fixtures and the tables of unfinished
        leagues (tournament brackets keep their fixtures), then
        initialize, distribute and schedule a fresh season (default: latest + 1).
        """
        latest = self._league_repo.latest_season(conn)
        season = season if season is not None else (latest or 0) + 1
        with transaction(conn):
            deleted = self._match_repo.delete_unfinished(conn)
            unfinished = [league.id for league in self._league_repo.list_unfinished(conn)]
            self._standing_repo.delete_by_leagues(conn, unfinished)
            leagues = self.initialize_season(conn, season)
            self.distribute_teams(conn, season)
            scheduled: dict[str, int] = {}
            for league in leagues:
                if self._standing_repo.count(conn, league["id"]) < 2:
                    continue
                scheduled[league["id"]] = self.generate_schedule(conn, league["id"], start, spacing)
        logger.info(
            "Reset to season %d: %d unplayed matches dropped, %d leagues scheduled",
            season, deleted, len(scheduled),
        )
        return {"season": season, "deleted_matches": deleted, "scheduled": scheduled}

    # ---------- Queries ----------

    def list_leagues(
        self, conn: sqlite3.Connection, season: int | None = None, region: str | None = None
    ) -> list[dict[str, Any]]:
        return [league.to_dict() for league in self._league_repo.list(conn, season=season, region=region)]

    def league_detail(self, conn: sqlite3.Connection, league_id: str) -> dict[str, Any]:
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        return {
            "league": league.to_dict(),
            "standings": standings_table(conn, league_id),
            "upcoming_matches": [m.to_dict() for m in self._match_repo.list_upcoming(conn, league_id, 10)],
        }

    def season_standings(self, conn: sqlite3.Connection, season: int, region: str) -> dict[str, Any]:
        """Both division tables of one region."""
        result: dict[str, Any] = {"season": season, "region": Region(region).value}
        for division in (Division.FIRST, Division.SECOND):
            league = self._league_repo.find(conn, season, region, division)
            result[division.value.lower()] = (
                {"league": league.to_dict(), "standings": standings_table(conn, league.id)}
                if league
                else None
            )
        return result

    def my_standing(self, conn: sqlite3.Connection, team_id: str) -> dict[str, Any] | None:
        standing = self._standing_repo.find_latest_for_team(conn, team_id)
        if standing is None:
            return None
        league = self._league_repo.get(conn, standing.league_id)
        return {"league": league.to_dict(), "standing": standing.to_dict()}

    def league_winners(self, conn: sqlite3.Connection) -> list[dict[str, Any]]:
        """Table toppers of every finished league, newest season first."""
        winners = []
        for league in self._league_repo.list(conn, status=LeagueStatus.FINISHED):
            table = self._standing_repo.list_by_league(conn, league.id)
            if table:
                winners.append({
                    "league_id": league.id,
                    "league_name": league.name,
                    "season": league.season,
                    "team_id": table[0].team_id,
                    "team_name": table[0].team_name,
                    "points": table[0].points,
                })
        return winners
