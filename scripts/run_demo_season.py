#!/usr/bin/env python3
"""
Demo season: Seed pro teams → Schedule season → Scheduler resolves every fixture → Playoffs.
Run from project root: python3 scripts/run_demo_season.py
"""
from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

# Ensure project root on path
PROJECT_ROOT = Path(__file__).resolve().parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from lpo_manager.config import configure_logging, roster_data_path
from lpo_manager.models import Division, Region
from lpo_manager.persistence import LeagueRepository, get_connection, init_db
from lpo_manager.persistence.db import set_db_path, utcnow
from lpo_manager.services import LeagueService, MatchScheduler, TournamentService, standings_table
from lpo_manager.simulation.rng import SeededRNG


def _drain(scheduler: MatchScheduler) -> int:
    """Poll until nothing is due; returns matches resolved."""
    total = 0
    while True:
        resolved = scheduler.poll_once()
        if not resolved:
            return total
        total += len(resolved)


def main() -> None:
    configure_logging("WARNING")
    # Use data/demo_season.db for the demo (distinct from lpo.db)
    db_path = PROJECT_ROOT / "data" / "demo_season.db"
    set_db_path(db_path)
    init_db(db_path=db_path, roster_path=roster_data_path())

    now = utcnow()
    conn = get_connection()
    try:
        # 1. Fresh season, every fixture already in the past
        result = LeagueService().reset_season(conn, start=now - timedelta(days=60), spacing=timedelta(hours=1))
        season = result["season"]
        print(f"Season {season}: {sum(result['scheduled'].values())} fixtures in {len(result['scheduled'])} leagues")

        # 2. Scheduler plays the regular season
        scheduler = MatchScheduler(get_connection, rng=SeededRNG(2024), batch_size=50)
        print(f"Regular season: {_drain(scheduler)} matches resolved")

        league = LeagueRepository().find(conn, season, Region.SOUTH, Division.FIRST)
        print(f"\n{league.name}")
        for row in standings_table(conn, league.id):
            print(
                f"  {row['rank']:>2}. {row['team_name']:<14} {row['points']:>3} pts "
                f"({row['wins']}-{row['draws']}-{row['losses']}, GD {row['goal_difference']:+d})"
            )

        # 3. Playoffs, resolved with the clock moved past the final
        tournaments = TournamentService()
        tid = tournaments.create_playoff(conn, league.id, now)["tournament"]["id"]
        later = MatchScheduler(
            get_connection, clock=lambda: now + timedelta(days=14), rng=SeededRNG(7), batch_size=50,
        )
        for round_name in ("QUARTER", "SEMI", "FINAL"):
            _drain(later)
            if round_name != "FINAL":
                tournaments.advance_round(conn, tid, now)
        detail = tournaments.tournament_detail(conn, tid)
        final = detail["rounds"]["FINAL"][0]
        print(f"\nPlayoff final: {final['home_score']}-{final['away_score']}")
        print(f"Champion: {detail['tournament']['winner_team_id']} (league now {LeagueRepository().get(conn, league.id).status})")

        print("\nDemo season complete.")
    finally:
        conn.close()


if __name__ == "__main__":
    main()
