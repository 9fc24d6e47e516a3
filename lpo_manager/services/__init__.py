"""
Service layer: domain logic, state machines, the match scheduler.
Services orchestrate repositories and own transaction boundaries.
"""
from .league_service import LeagueService
from .standings import StandingsUpdater, standings_table
from .tournament_service import TournamentService
from .results import record_match_result
from .match_scheduler import MatchScheduler, ResolvedMatch, restart_match
from .team_service import TeamService
from .market_service import MarketService
from .friendly_service import create_friendly

__all__ = [
    "LeagueService",
    "StandingsUpdater",
    "standings_table",
    "TournamentService",
    "record_match_result",
    "MatchScheduler",
    "ResolvedMatch",
    "restart_match",
    "TeamService",
    "MarketService",
    "create_friendly",
]
