"""
Knockout bracket helpers: round names, seeded first-round pairings, the
Worlds crossover, and how winners feed the next round.
Pure functions over team id lists; persistence happens in tournament_service.
"""
from __future__ import annotations

from lpo_manager.errors import InvalidStateError, ValidationError
from lpo_manager.simulation.rng import SeededRNG

ROUND_ORDER = ["ROUND_32", "ROUND_16", "QUARTER", "SEMI", "FINAL"]

_ROUND_BY_SIZE = {32: "ROUND_32", 16: "ROUND_16", 8: "QUARTER", 4: "SEMI", 2: "FINAL"}


def next_round(current: str) -> str | None:
    """Round after `current`, or None after the final."""
    idx = ROUND_ORDER.index(current)
    return ROUND_ORDER[idx + 1] if idx + 1 < len(ROUND_ORDER) else None


def round_for_size(bracket_size: int) -> str:
    """First round name for a bracket of 2..32 teams (power of two)."""
    if bracket_size not in _ROUND_BY_SIZE:
        raise ValidationError(f"Bracket size must be a power of two between 2 and 32, got {bracket_size}")
    return _ROUND_BY_SIZE[bracket_size]


def bracket_size_for(entrants: int, maximum: int = 32) -> int:
    """Largest power of two <= entrants, capped at maximum."""
    if entrants < 2:
        raise InvalidStateError(f"Need at least 2 teams for a bracket, got {entrants}")
    size = 2
    while size * 2 <= min(entrants, maximum):
        size *= 2
    return size


def seeded_pairings(seeded_team_ids: list[str]) -> list[tuple[str, str]]:
    """1 vs N, 2 vs N-1, ... for a list already ordered by seed. Higher seed hosts."""
    n = len(seeded_team_ids)
    if n < 2 or n % 2:
        raise ValidationError(f"Seeded pairings need an even number of teams, got {n}")
    return [(seeded_team_ids[i], seeded_team_ids[n - 1 - i]) for i in range(n // 2)]


def crossover_quarterfinals(south: list[str], north: list[str]) -> list[tuple[str, str]]:
    """
    Worlds quarterfinals from each region's top four (seed order):
    S1-N4, N1-S4, S2-N3, N2-S3.
    """
    if len(south) < 4 or len(north) < 4:
        raise InvalidStateError(
            f"Worlds needs 4 qualified teams per region (SOUTH={len(south)}, NORTH={len(north)})"
        )
    return [
        (south[0], north[3]),
        (north[0], south[3]),
        (south[1], north[2]),
        (north[1], south[2]),
    ]


def feeder_pairs(winners_in_bracket_order: list[str]) -> list[tuple[str, str]]:
    """Slot k of the next round is fed by the winners of slots 2k-1 and 2k."""
    w = winners_in_bracket_order
    if len(w) < 2 or len(w) % 2:
        raise InvalidStateError(f"Cannot pair {len(w)} winners")
    return [(w[i], w[i + 1]) for i in range(0, len(w), 2)]


def draw_pairings(winners: list[str], rng: SeededRNG) -> list[tuple[str, str]]:
    """Open draw: shuffle the winners, then pair neighbours."""
    pool = list(winners)
    rng.shuffle(pool)
    return feeder_pairs(pool)
