"""
Data models for the LPO manager backend.
Domain objects only, no persistence or API logic.

Seasons are made of leagues (region x division); every fixture, whether
regular season, friendly or tournament, is one Match row distinguished by
match_type and resolved by the scheduler once its kickoff time has passed.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any


def _iso(dt: datetime | None) -> str | None:
    return dt.isoformat() if dt is not None else None


# ---------- Enums ----------
class Region(str, Enum):
    SOUTH = "SOUTH"
    NORTH = "NORTH"


class Division(str, Enum):
    FIRST = "FIRST"
    SECOND = "SECOND"


class Position(str, Enum):
    TOP = "TOP"
    JUNGLE = "JUNGLE"
    MID = "MID"
    ADC = "ADC"
    SUPPORT = "SUPPORT"


class LeagueStatus(str, Enum):
    """League lifecycle: PENDING -> ACTIVE -> (PLAYOFF ->) FINISHED."""
    PENDING = "PENDING"    # Created, teams being distributed
    ACTIVE = "ACTIVE"      # Regular season scheduled / running
    PLAYOFF = "PLAYOFF"    # Playoff bracket running
    FINISHED = "FINISHED"


class MatchStatus(str, Enum):
    PENDING = "PENDING"          # Bracket slot waiting for its teams
    SCHEDULED = "SCHEDULED"
    IN_PROGRESS = "IN_PROGRESS"
    FINISHED = "FINISHED"
    CANCELLED = "CANCELLED"


class MatchType(str, Enum):
    REGULAR = "REGULAR"
    FRIENDLY = "FRIENDLY"
    CUP = "CUP"
    WORLDS = "WORLDS"
    PLAYOFF = "PLAYOFF"
    PROMOTION = "PROMOTION"


class TournamentKind(str, Enum):
    CUP = "CUP"
    WORLDS = "WORLDS"
    PLAYOFF = "PLAYOFF"


class TradeStatus(str, Enum):
    LISTED = "LISTED"
    SOLD = "SOLD"
    CANCELLED = "CANCELLED"


class ExchangeType(str, Enum):
    GOLD_TO_DIAMOND = "GOLD_TO_DIAMOND"
    DIAMOND_TO_GOLD = "DIAMOND_TO_GOLD"


# Tournament status is the current round name until the final is played.
TOURNAMENT_COMPLETED = "COMPLETED"


# ---------- User ----------
@dataclass
class User:
    id: str
    username: str
    password_hash: str
    is_admin: bool
    created_at: datetime
    last_login: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "username": self.username,
            "is_admin": self.is_admin,
            "created_at": self.created_at.isoformat(),
            "last_login": _iso(self.last_login),
        }


# ---------- Team ----------
@dataclass
class Team:
    """
    A club. user_id is None for AI-controlled pro teams.
    division is None until the team is distributed into a league.
    """
    id: str
    user_id: str | None
    name: str
    region: str
    division: str | None
    gold: int
    diamond: int
    male_fans: int
    female_fans: int
    morale: int
    created_at: datetime

    @property
    def fan_count(self) -> int:
        return self.male_fans + self.female_fans

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "name": self.name,
            "region": self.region,
            "division": self.division,
            "gold": self.gold,
            "diamond": self.diamond,
            "male_fans": self.male_fans,
            "female_fans": self.female_fans,
            "fan_count": self.fan_count,
            "morale": self.morale,
            "created_at": self.created_at.isoformat(),
        }


# ---------- Player ----------
@dataclass
class Player:
    """
    Player with four 1-100 stats. overall is the cached mean of the stats;
    team power uses the raw stats of starters.
    """
    id: str
    name: str
    position: str
    nationality: str
    team_id: str | None
    is_starter: bool
    mental: int
    teamfight: int
    focus: int
    laning: int
    overall: int
    created_at: datetime

    @property
    def stat_total(self) -> int:
        return self.mental + self.teamfight + self.focus + self.laning

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "position": self.position,
            "nationality": self.nationality,
            "team_id": self.team_id,
            "is_starter": self.is_starter,
            "mental": self.mental,
            "teamfight": self.teamfight,
            "focus": self.focus,
            "laning": self.laning,
            "overall": self.overall,
        }


# ---------- League ----------
@dataclass
class League:
    id: str
    name: str
    region: str
    division: str
    season: int
    status: str  # LeagueStatus value
    max_teams: int
    created_at: datetime

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "region": self.region,
            "division": self.division,
            "season": self.season,
            "status": self.status,
            "max_teams": self.max_teams,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class Standing:
    """One team's row in a league table."""
    league_id: str
    team_id: str
    wins: int = 0
    losses: int = 0
    draws: int = 0
    points: int = 0
    goal_difference: int = 0
    rank: int | None = None
    team_name: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "league_id": self.league_id,
            "team_id": self.team_id,
            "wins": self.wins,
            "losses": self.losses,
            "draws": self.draws,
            "points": self.points,
            "goal_difference": self.goal_difference,
            "rank": self.rank,
        }
        if self.team_name is not None:
            d["team_name"] = self.team_name
        return d


# ---------- Match ----------
@dataclass
class Match:
    """
    Any fixture. home/away may be None for a bracket slot that is still TBD
    (status PENDING). Immutable once FINISHED.
    """
    id: str
    match_type: str
    status: str
    home_team_id: str | None
    away_team_id: str | None
    scheduled_at: datetime
    created_at: datetime
    league_id: str | None = None
    tournament_id: str | None = None
    season: int | None = None
    region: str | None = None
    round: str | None = None
    match_number: int | None = None
    home_score: int = 0
    away_score: int = 0
    winner_team_id: str | None = None
    started_at: datetime | None = None
    finished_at: datetime | None = None

    @property
    def loser_team_id(self) -> str | None:
        if self.winner_team_id is None:
            return None
        return self.away_team_id if self.winner_team_id == self.home_team_id else self.home_team_id

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "match_type": self.match_type,
            "status": self.status,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "league_id": self.league_id,
            "tournament_id": self.tournament_id,
            "season": self.season,
            "region": self.region,
            "round": self.round,
            "match_number": self.match_number,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner_team_id": self.winner_team_id,
            "scheduled_at": self.scheduled_at.isoformat(),
            "started_at": _iso(self.started_at),
            "finished_at": _iso(self.finished_at),
        }


# ---------- Tournament ----------
@dataclass
class Tournament:
    """Cup, Worlds or league playoff bracket. status is the current round or COMPLETED."""
    id: str
    kind: str
    name: str
    season: int
    status: str
    prize_pool: int
    created_at: datetime
    league_id: str | None = None
    winner_team_id: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "kind": self.kind,
            "name": self.name,
            "season": self.season,
            "status": self.status,
            "prize_pool": self.prize_pool,
            "league_id": self.league_id,
            "winner_team_id": self.winner_team_id,
            "created_at": self.created_at.isoformat(),
        }


@dataclass
class TournamentParticipant:
    tournament_id: str
    team_id: str
    region: str | None
    seed: int
    eliminated: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "tournament_id": self.tournament_id,
            "team_id": self.team_id,
            "region": self.region,
            "seed": self.seed,
            "eliminated": self.eliminated,
        }


# ---------- Trade ----------
@dataclass
class Trade:
    id: str
    player_id: str
    seller_team_id: str
    status: str
    price_gold: int
    price_diamond: int
    listed_at: datetime
    buyer_team_id: str | None = None
    sold_at: datetime | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "player_id": self.player_id,
            "seller_team_id": self.seller_team_id,
            "buyer_team_id": self.buyer_team_id,
            "status": self.status,
            "price_gold": self.price_gold,
            "price_diamond": self.price_diamond,
            "listed_at": self.listed_at.isoformat(),
            "sold_at": _iso(self.sold_at),
        }
