"""
Knockout competitions: Worlds, the LPO Cup, league playoffs and the
promotion matches between divisions.

Worlds and playoffs are created with the whole bracket up front; later rounds
are TBD slots (status PENDING) filled in bracket order when a round is
advanced. The cup draws each later round afresh from the winners. A finished
FINAL crowns the champion and pays the prize.
"""
from __future__ import annotations

import logging
import sqlite3
from datetime import datetime, timedelta
from typing import Any

from lpo_manager.errors import InvalidStateError, NotFoundError
from lpo_manager.models import (
    Division,
    LeagueStatus,
    Match,
    MatchStatus,
    MatchType,
    Region,
    Tournament,
    TournamentKind,
    TOURNAMENT_COMPLETED,
)
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import (
    LeagueRepository,
    MatchRepository,
    StandingRepository,
    TeamRepository,
    TournamentRepository,
)
from lpo_manager.services.brackets import (
    bracket_size_for,
    crossover_quarterfinals,
    draw_pairings,
    feeder_pairs,
    next_round,
    round_for_size,
    seeded_pairings,
)
from lpo_manager.services.league_service import LeagueService
from lpo_manager.services.scheduling import next_weekday
from lpo_manager.simulation.rng import SeededRNG

logger = logging.getLogger(__name__)

WORLDS_PRIZE_POOL = 2_500_000_000
CUP_PRIZE = 550_000_000
PLAYOFF_PRIZES = {Division.FIRST.value: 500_000_000, Division.SECOND.value: 250_000_000}
WORLDS_QUALIFIERS_PER_REGION = 4
PLAYOFF_TEAMS = 8
PROMOTION_SLOTS = 2

WEDNESDAY, SATURDAY = 2, 5

# Cup rounds: (days after the opening Wednesday, hour UTC)
_CUP_ROUND_TIMES = {
    "ROUND_32": (0, 8),
    "ROUND_16": (0, 10),
    "QUARTER": (0, 12),
    "SEMI": (3, 8),
    "FINAL": (3, 10),
}
_CUP_MATCH_SPACING = timedelta(minutes=30)

_MATCH_TYPE_BY_KIND = {
    TournamentKind.CUP.value: MatchType.CUP,
    TournamentKind.WORLDS.value: MatchType.WORLDS,
    TournamentKind.PLAYOFF.value: MatchType.PLAYOFF,
}


class TournamentService:
    """Creates brackets, advances rounds and applies knockout results."""

    def __init__(self) -> None:
        self._tournament_repo = TournamentRepository()
        self._match_repo = MatchRepository()
        self._league_repo = LeagueRepository()
        self._standing_repo = StandingRepository()
        self._team_repo = TeamRepository()

    # ---------- Creation ----------

    def create_worlds(self, conn: sqlite3.Connection, season: int, now: datetime) -> dict[str, Any]:
        """
        Top four of each region's first division, crossover quarterfinals on the
        next Saturday from 14:00 UTC three hours apart; semis Sunday 14:00/18:00,
        final Monday 18:00.
        """
        if self._tournament_repo.find(conn, TournamentKind.WORLDS, season=season):
            raise InvalidStateError(f"Worlds already exists for season {season}")
        qualified: dict[str, list[str]] = {}
        for region in (Region.SOUTH, Region.NORTH):
            league = self._league_repo.find(conn, season, region, Division.FIRST)
            if league is None:
                raise NotFoundError(f"No first division league for {region.value} season {season}")
            table = self._standing_repo.list_by_league(conn, league.id)
            qualified[region.value] = [s.team_id for s in table[:WORLDS_QUALIFIERS_PER_REGION]]
        pairings = crossover_quarterfinals(qualified[Region.SOUTH.value], qualified[Region.NORTH.value])

        quarter_start = next_weekday(now, SATURDAY, 14)
        sunday = quarter_start + timedelta(days=1)
        monday = (quarter_start + timedelta(days=2)).replace(hour=18)
        with transaction(conn):
            tournament = self._tournament_repo.create(
                conn, TournamentKind.WORLDS, f"LPO Worlds {season}", season,
                status="QUARTER", prize_pool=WORLDS_PRIZE_POOL,
            )
            for region, team_ids in qualified.items():
                for seed, team_id in enumerate(team_ids, start=1):
                    self._tournament_repo.add_participant(conn, tournament.id, team_id, seed, region)
            self._create_round(
                conn, tournament, MatchType.WORLDS, "QUARTER", pairings,
                [quarter_start + timedelta(hours=3 * i) for i in range(len(pairings))],
            )
            self._create_slots(conn, tournament, MatchType.WORLDS, "SEMI", [sunday, sunday + timedelta(hours=4)])
            self._create_slots(conn, tournament, MatchType.WORLDS, "FINAL", [monday])
        logger.info("Created Worlds %s for season %d", tournament.id, season)
        return self.tournament_detail(conn, tournament.id)

    def create_cup(self, conn: sqlite3.Connection, season: int, now: datetime) -> dict[str, Any]:
        """
        Seeded knockout for up to 32 teams: first division entrants ahead of
        second division, each ordered by table position across both regions.
        Opening round on the next Wednesday 08:00 UTC, 30 minutes apart.
        """
        if self._tournament_repo.find(conn, TournamentKind.CUP, season=season):
            raise InvalidStateError(f"Cup already exists for season {season}")
        entrants: list[str] = []
        for division in (Division.FIRST, Division.SECOND):
            rows = []
            for region in (Region.SOUTH, Region.NORTH):
                league = self._league_repo.find(conn, season, region, division)
                if league is not None:
                    rows.extend(self._standing_repo.list_by_league(conn, league.id))
            rows.sort(key=lambda s: (-s.points, -s.goal_difference, -s.wins, s.team_name or ""))
            entrants.extend(s.team_id for s in rows)
        size = bracket_size_for(len(entrants))
        seeded = entrants[:size]
        first_round = round_for_size(size)
        pairings = seeded_pairings(seeded)
        opening = next_weekday(now, WEDNESDAY, 8)
        with transaction(conn):
            tournament = self._tournament_repo.create(
                conn, TournamentKind.CUP, f"LPO Cup {season}", season,
                status=first_round, prize_pool=CUP_PRIZE,
            )
            for seed, team_id in enumerate(seeded, start=1):
                self._tournament_repo.add_participant(conn, tournament.id, team_id, seed)
            self._create_round(
                conn, tournament, MatchType.CUP, first_round, pairings,
                [opening + _CUP_MATCH_SPACING * i for i in range(len(pairings))],
            )
        logger.info("Created cup %s with %d teams (season %d)", tournament.id, size, season)
        return self.tournament_detail(conn, tournament.id)

    def create_playoff(self, conn: sqlite3.Connection, league_id: str, now: datetime) -> dict[str, Any]:
        """
        Top eight of a finished regular season: 1v8, 2v7, 3v6, 4v5 on the next
        Saturday from 08:00 UTC an hour apart. League moves ACTIVE -> PLAYOFF.
        """
        league = self._league_repo.get(conn, league_id)
        if league is None:
            raise NotFoundError(f"League not found: {league_id}")
        if league.status != LeagueStatus.ACTIVE:
            raise InvalidStateError(f"Playoffs need an ACTIVE league (current: {league.status})")
        unplayed = [
            m for m in self._match_repo.list(conn, league_id=league_id, match_type=MatchType.REGULAR, limit=10000)
            if m.status != MatchStatus.FINISHED
        ]
        if unplayed:
            raise InvalidStateError(f"Regular season has {len(unplayed)} unfinished matches")
        table = self._standing_repo.list_by_league(conn, league_id)
        if len(table) < PLAYOFF_TEAMS:
            raise InvalidStateError(f"Playoffs need {PLAYOFF_TEAMS} teams, league has {len(table)}")
        seeded = [s.team_id for s in table[:PLAYOFF_TEAMS]]
        pairings = seeded_pairings(seeded)
        quarter_start = next_weekday(now, SATURDAY, 8)
        sunday = quarter_start + timedelta(days=1)
        with transaction(conn):
            tournament = self._tournament_repo.create(
                conn, TournamentKind.PLAYOFF, f"{league.name} Playoffs", league.season,
                status="QUARTER", prize_pool=PLAYOFF_PRIZES.get(league.division, 100_000_000),
                league_id=league_id,
            )
            for seed, team_id in enumerate(seeded, start=1):
                self._tournament_repo.add_participant(conn, tournament.id, team_id, seed, league.region)
            self._create_round(
                conn, tournament, MatchType.PLAYOFF, "QUARTER", pairings,
                [quarter_start + timedelta(hours=i) for i in range(len(pairings))],
                league_id=league_id, region=league.region,
            )
            self._create_slots(
                conn, tournament, MatchType.PLAYOFF, "SEMI", [sunday, sunday + timedelta(hours=1)],
                league_id=league_id, region=league.region,
            )
            self._create_slots(
                conn, tournament, MatchType.PLAYOFF, "FINAL", [sunday + timedelta(hours=4)],
                league_id=league_id, region=league.region,
            )
            LeagueService().transition_league_status(conn, league_id, LeagueStatus.PLAYOFF)
        logger.info("Created playoffs %s for league %s", tournament.id, league_id)
        return self.tournament_detail(conn, tournament.id)

    def _create_round(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        match_type: MatchType,
        round_name: str,
        pairings: list[tuple[str, str]],
        times: list[datetime],
        league_id: str | None = None,
        region: str | None = None,
    ) -> list[Match]:
        return [
            self._match_repo.create(
                conn, match_type, times[i], home, away,
                league_id=league_id, tournament_id=tournament.id, season=tournament.season,
                region=region, round=round_name, match_number=i + 1,
            )
            for i, (home, away) in enumerate(pairings)
        ]

    def _create_slots(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        match_type: MatchType,
        round_name: str,
        times: list[datetime],
        league_id: str | None = None,
        region: str | None = None,
    ) -> None:
        for i, when in enumerate(times):
            self._match_repo.create(
                conn, match_type, when, None, None,
                league_id=league_id, tournament_id=tournament.id, season=tournament.season,
                region=region, round=round_name, match_number=i + 1, status=MatchStatus.PENDING,
            )

    # ---------- Progression ----------

    def advance_round(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        now: datetime,
        rng: SeededRNG | None = None,
    ) -> dict[str, Any]:
        """Move winners of a completed round into the next one."""
        tournament = self._tournament_repo.get(conn, tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament not found: {tournament_id}")
        if tournament.status == TOURNAMENT_COMPLETED:
            raise InvalidStateError("Tournament already completed")
        current = tournament.status
        nxt = next_round(current)
        if nxt is None:
            raise InvalidStateError("The final cannot be advanced; it completes when played")
        matches = self._match_repo.list_by_tournament(conn, tournament_id, round=current)
        unfinished = [m for m in matches if m.status != MatchStatus.FINISHED]
        if not matches or unfinished:
            raise InvalidStateError(
                f"Round {current} not finished ({len(matches) - len(unfinished)}/{len(matches)} played)"
            )
        matches.sort(key=lambda m: m.match_number or 0)
        winners = [m.winner_team_id for m in matches]
        match_type = _MATCH_TYPE_BY_KIND[tournament.kind]
        with transaction(conn):
            if tournament.kind == TournamentKind.CUP:
                pairings = draw_pairings(winners, rng or SeededRNG())
                self._create_round(
                    conn, tournament, match_type, nxt, pairings,
                    self._cup_round_times(conn, tournament, nxt, len(pairings), now),
                )
            else:
                pairings = feeder_pairs(winners)
                slots = self._match_repo.list_by_tournament(conn, tournament_id, round=nxt)
                slots.sort(key=lambda m: m.match_number or 0)
                if len(slots) != len(pairings):
                    raise InvalidStateError(
                        f"Round {nxt} has {len(slots)} slots for {len(pairings)} pairings"
                    )
                for slot, (home, away) in zip(slots, pairings):
                    if not self._match_repo.set_teams(conn, slot.id, home, away):
                        raise InvalidStateError(f"Slot {slot.id} is already filled")
            self._tournament_repo.update_status(conn, tournament_id, nxt)
        logger.info("Tournament %s advanced %s -> %s", tournament_id, current, nxt)
        return self.tournament_detail(conn, tournament_id)

    def _cup_round_times(
        self,
        conn: sqlite3.Connection,
        tournament: Tournament,
        round_name: str,
        count: int,
        now: datetime,
    ) -> list[datetime]:
        first = min(
            (m.scheduled_at for m in self._match_repo.list_by_tournament(conn, tournament.id)),
            default=now,
        )
        days, hour = _CUP_ROUND_TIMES[round_name]
        start = (first + timedelta(days=days)).replace(hour=hour, minute=0, second=0)
        return [start + _CUP_MATCH_SPACING * i for i in range(count)]

    def record_result(self, conn: sqlite3.Connection, match: Match, winner_id: str, loser_id: str) -> None:
        """
        Knockout result hook, run inside the result transaction: eliminate the
        loser; a FINAL crowns the champion and pays the prize pool.
        """
        tournament = self._tournament_repo.get(conn, match.tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament not found: {match.tournament_id}")
        self._tournament_repo.eliminate(conn, tournament.id, loser_id)
        if match.round != "FINAL":
            return
        self._tournament_repo.set_winner(conn, tournament.id, winner_id, TOURNAMENT_COMPLETED)
        if tournament.prize_pool > 0:
            self._team_repo.adjust_currency(conn, winner_id, gold=tournament.prize_pool)
        if tournament.kind == TournamentKind.PLAYOFF and tournament.league_id:
            league = self._league_repo.get(conn, tournament.league_id)
            # initialize_season may already have closed the league
            if league is not None and league.status == LeagueStatus.PLAYOFF:
                LeagueService().transition_league_status(conn, league.id, LeagueStatus.FINISHED)
        logger.info(
            "%s %s won by %s (prize %d gold)", tournament.kind, tournament.id, winner_id, tournament.prize_pool
        )

    # ---------- Promotion ----------

    def create_promotion_matches(
        self, conn: sqlite3.Connection, season: int, region: str, now: datetime
    ) -> list[dict[str, Any]]:
        """
        First division bottom two host the second division top two a week
        from now, three hours apart: last place vs runner-up, then second to
        last vs winner.
        """
        region = Region(region).value
        first = self._league_repo.find(conn, season, region, Division.FIRST)
        second = self._league_repo.find(conn, season, region, Division.SECOND)
        if first is None or second is None:
            raise NotFoundError(f"Both divisions must exist for {region} season {season}")
        if self._match_repo.list_promotion(conn, season, region):
            raise InvalidStateError(f"Promotion matches already exist for {region} season {season}")
        first_table = self._standing_repo.list_by_league(conn, first.id)
        second_table = self._standing_repo.list_by_league(conn, second.id)
        if len(first_table) < PROMOTION_SLOTS or len(second_table) < PROMOTION_SLOTS:
            raise InvalidStateError("Each division needs at least two teams for promotion matches")
        bottom = [s.team_id for s in reversed(first_table[-PROMOTION_SLOTS:])]  # worst first
        top = [s.team_id for s in second_table[:PROMOTION_SLOTS]]
        pairings = [(bottom[0], top[1]), (bottom[1], top[0])]
        start = now + timedelta(days=7)
        with transaction(conn):
            created = [
                self._match_repo.create(
                    conn, MatchType.PROMOTION, start + timedelta(hours=3 * i), home, away,
                    season=season, region=region, round="PROMOTION", match_number=i + 1,
                )
                for i, (home, away) in enumerate(pairings)
            ]
        logger.info("Created %d promotion matches for %s season %d", len(created), region, season)
        return [m.to_dict() for m in created]

    def apply_promotion(self, conn: sqlite3.Connection, season: int, region: str) -> list[dict[str, Any]]:
        """Second division winners swap divisions with the first division team they beat."""
        region = Region(region).value
        matches = self._match_repo.list_promotion(conn, season, region)
        if not matches:
            raise NotFoundError(f"No promotion matches for {region} season {season}")
        if any(m.status != MatchStatus.FINISHED for m in matches):
            raise InvalidStateError("Promotion matches are not all finished")
        swaps: list[dict[str, Any]] = []
        with transaction(conn):
            for m in matches:
                # Home is always the first division side
                if m.winner_team_id == m.away_team_id:
                    self._team_repo.set_division(conn, m.away_team_id, Division.FIRST)
                    self._team_repo.set_division(conn, m.home_team_id, Division.SECOND)
                    swaps.append({"promoted": m.away_team_id, "relegated": m.home_team_id})
        logger.info("Applied promotion for %s season %d: %d swaps", region, season, len(swaps))
        return swaps

    # ---------- Queries ----------

    def tournament_detail(self, conn: sqlite3.Connection, tournament_id: str) -> dict[str, Any]:
        tournament = self._tournament_repo.get(conn, tournament_id)
        if tournament is None:
            raise NotFoundError(f"Tournament not found: {tournament_id}")
        matches = self._match_repo.list_by_tournament(conn, tournament_id)
        rounds: dict[str, list[dict[str, Any]]] = {}
        for m in matches:
            rounds.setdefault(m.round or "", []).append(m.to_dict())
        return {
            "tournament": tournament.to_dict(),
            "participants": [p.to_dict() for p in self._tournament_repo.list_participants(conn, tournament_id)],
            "rounds": rounds,
        }

    def find_tournament(
        self, conn: sqlite3.Connection, kind: str, season: int | None = None
    ) -> dict[str, Any]:
        tournament = self._tournament_repo.find(conn, kind, season=season)
        if tournament is None:
            label = f" for season {season}" if season is not None else ""
            raise NotFoundError(f"No {TournamentKind(kind).value.lower()} tournament{label}")
        return self.tournament_detail(conn, tournament.id)

    def list_champions(self, conn: sqlite3.Connection, kind: str) -> list[dict[str, Any]]:
        return self._tournament_repo.list_champions(conn, kind)

    def promotion_matches(self, conn: sqlite3.Connection, season: int, region: str) -> list[dict[str, Any]]:
        return [m.to_dict() for m in self._match_repo.list_promotion(conn, season, region)]
