"""
Pro roster loader: seeds AI-controlled teams and their players from the bundled
roster JSON (one base overall per player). LCK clubs play in the SOUTH
region, LEC clubs in the NORTH.
"""
from __future__ import annotations

import json
import logging
import sqlite3
from collections import OrderedDict
from pathlib import Path
from typing import Any

from lpo_manager.models import Position
from lpo_manager.persistence.db import transaction
from lpo_manager.persistence.repositories import PlayerRepository, TeamRepository
from lpo_manager.simulation.power import player_overall

logger = logging.getLogger(__name__)

# Per-position stat shape around base_ovr: (mental, teamfight, focus, laning).
_POSITION_PROFILE: dict[str, tuple[int, int, int, int]] = {
    Position.TOP.value: (0, 1, -3, 2),
    Position.JUNGLE.value: (2, 1, 0, -3),
    Position.MID.value: (0, -1, -1, 2),
    Position.ADC.value: (-2, 2, 1, -1),
    Position.SUPPORT.value: (3, 1, -1, -3),
}

# Fans per point of average roster overall
_FANS_PER_OVR_MALE = 1000
_FANS_PER_OVR_FEMALE = 800


def _clamp(v: int) -> int:
    return max(1, min(100, v))


def stats_from_base(position: str, base_ovr: int) -> tuple[int, int, int, int]:
    offsets = _POSITION_PROFILE.get(position, (0, 0, 0, 0))
    return tuple(_clamp(base_ovr + o) for o in offsets)  # type: ignore[return-value]


def read_rosters(path: Path) -> tuple[dict[str, str], "OrderedDict[str, list[dict[str, Any]]]"]:
    """Return (league -> region, team -> players in file order)."""
    with open(path, encoding="utf-8") as f:
        data = json.load(f)
    regions: dict[str, str] = data["leagues"]
    teams: OrderedDict[str, list[dict[str, Any]]] = OrderedDict()
    for p in data["players"]:
        if p["league"] not in regions:
            continue
        teams.setdefault(p["team"], []).append(p)
    return regions, teams


def load_rosters_into_db(conn: sqlite3.Connection, path: Path) -> int:
    """
    Create one AI team per roster club with its players. The first player
    listed at each position starts. No-op (returns 0) if AI teams already exist.
    """
    team_repo = TeamRepository()
    player_repo = PlayerRepository()
    if team_repo.count(conn, ai_only=True) > 0:
        return 0
    regions, teams = read_rosters(path)
    created = 0
    with transaction(conn):
        for team_name, players in teams.items():
            avg_ovr = round(sum(p["base_ovr"] for p in players) / len(players))
            team = team_repo.create(
                conn,
                name=team_name,
                region=regions[players[0]["league"]],
                user_id=None,
                male_fans=avg_ovr * _FANS_PER_OVR_MALE,
                female_fans=avg_ovr * _FANS_PER_OVR_FEMALE,
                morale=70,
            )
            seen_positions: set[str] = set()
            for p in players:
                mental, teamfight, focus, laning = stats_from_base(p["position"], p["base_ovr"])
                starter = p["position"] not in seen_positions
                seen_positions.add(p["position"])
                player_repo.create(
                    conn,
                    name=p["name"],
                    position=p["position"],
                    mental=mental,
                    teamfight=teamfight,
                    focus=focus,
                    laning=laning,
                    overall=player_overall(mental, teamfight, focus, laning),
                    team_id=team.id,
                    is_starter=starter,
                    nationality=p.get("nationality", "KR"),
                )
            created += 1
    logger.debug("Loaded %d roster teams from %s", created, path)
    return created
