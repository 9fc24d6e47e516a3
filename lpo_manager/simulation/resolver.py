"""
Best-of-three outcome resolver.

Each set both sides draw uniformly from [0, power]; the home side draws from
[0, power + home_advantage]. Home takes the set only on a strictly greater
draw. First to two sets wins, so the result is always 2-0, 2-1, 1-2 or 0-2.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from lpo_manager.simulation.rng import SeededRNG

SETS_TO_WIN = 2
HOME_ADVANTAGE = 5


@dataclass
class MatchOutcome:
    home_score: int
    away_score: int
    # One entry per set played: "home" or "away"
    sets: list[str] = field(default_factory=list)

    @property
    def home_won(self) -> bool:
        return self.home_score > self.away_score

    def to_dict(self) -> dict[str, Any]:
        return {"home_score": self.home_score, "away_score": self.away_score, "sets": list(self.sets)}


def resolve_best_of_three(
    home_power: float,
    away_power: float,
    rng: SeededRNG | None = None,
    home_advantage: float = HOME_ADVANTAGE,
) -> MatchOutcome:
    """Draw a best-of-three result. Negative powers are treated as 0."""
    rng = rng or SeededRNG()
    home_ceiling = max(0.0, home_power) + home_advantage
    away_ceiling = max(0.0, away_power)
    outcome = MatchOutcome(home_score=0, away_score=0)
    while outcome.home_score < SETS_TO_WIN and outcome.away_score < SETS_TO_WIN:
        home_roll = rng.uniform(0, home_ceiling)
        away_roll = rng.uniform(0, away_ceiling)
        if home_roll > away_roll:
            outcome.home_score += 1
            outcome.sets.append("home")
        else:
            outcome.away_score += 1
            outcome.sets.append("away")
    return outcome
