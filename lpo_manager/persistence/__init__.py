"""
Persistence layer for LPO data.
No business logic, no simulation, only read/write interfaces.
"""
from .db import get_connection, init_db, transaction
from .repositories import (
    UserRepository,
    TeamRepository,
    PlayerRepository,
    LeagueRepository,
    StandingRepository,
    MatchRepository,
    TournamentRepository,
    TradeRepository,
    CurrencyExchangeRepository,
)

__all__ = [
    "get_connection",
    "init_db",
    "transaction",
    "UserRepository",
    "TeamRepository",
    "PlayerRepository",
    "LeagueRepository",
    "StandingRepository",
    "MatchRepository",
    "TournamentRepository",
    "TradeRepository",
    "CurrencyExchangeRepository",
]
