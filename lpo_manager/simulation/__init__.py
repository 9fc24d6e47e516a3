"""
Match simulation: team power aggregation and the best-of-three resolver.
Pure functions plus one read-only power query; no result persistence here.
"""
from .power import DEFAULT_TEAM_POWER, player_overall, team_power
from .resolver import MatchOutcome, resolve_best_of_three
from .rng import SeededRNG

__all__ = [
    "DEFAULT_TEAM_POWER",
    "player_overall",
    "team_power",
    "MatchOutcome",
    "resolve_best_of_three",
    "SeededRNG",
]
