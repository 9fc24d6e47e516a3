"""
Match scheduler: polls for fixtures whose kickoff time has passed and
resolves them.

Each tick selects up to batch_size SCHEDULED matches (both teams known,
scheduled_at <= now, oldest first) and for each one:
  1. claims it (SCHEDULED -> IN_PROGRESS, committed on its own),
  2. computes both team powers and draws a best-of-three outcome,
  3. records the result, standings or bracket effects in one transaction.
A failure after the claim is logged and leaves that match IN_PROGRESS; the
rest of the batch still runs. restart_match() puts a stuck match back.

The async loop runs one tick immediately, then one every interval_seconds,
executing poll_once in a worker thread. Single process only: the claim is a
conditional UPDATE, not a distributed lock.
"""
from __future__ import annotations

import asyncio
import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING, Any, Callable

from lpo_manager.errors import InvalidStateError, NotFoundError
from lpo_manager.models import Match
from lpo_manager.persistence.db import get_connection, utcnow
from lpo_manager.persistence.repositories import MatchRepository
from lpo_manager.services.results import record_match_result
from lpo_manager.simulation.power import team_power
from lpo_manager.simulation.resolver import HOME_ADVANTAGE, resolve_best_of_three
from lpo_manager.simulation.rng import SeededRNG

if TYPE_CHECKING:
    from lpo_manager.realtime import MatchBroadcaster

logger = logging.getLogger(__name__)

DEFAULT_INTERVAL_SECONDS = 60.0
DEFAULT_BATCH_SIZE = 5


@dataclass
class ResolvedMatch:
    match_id: str
    match_type: str
    home_team_id: str
    away_team_id: str
    home_power: int
    away_power: int
    home_score: int
    away_score: int
    winner_team_id: str | None
    sets: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "match_id": self.match_id,
            "match_type": self.match_type,
            "home_team_id": self.home_team_id,
            "away_team_id": self.away_team_id,
            "home_power": self.home_power,
            "away_power": self.away_power,
            "home_score": self.home_score,
            "away_score": self.away_score,
            "winner_team_id": self.winner_team_id,
            "sets": list(self.sets),
        }


class MatchScheduler:
    """Owns the polling loop; no module-level timer state."""

    def __init__(
        self,
        connect: Callable[[], sqlite3.Connection] = get_connection,
        *,
        clock: Callable[[], datetime] = utcnow,
        rng: SeededRNG | None = None,
        interval_seconds: float = DEFAULT_INTERVAL_SECONDS,
        batch_size: int = DEFAULT_BATCH_SIZE,
        home_advantage: float = HOME_ADVANTAGE,
        broadcaster: MatchBroadcaster | None = None,
    ) -> None:
        self._connect = connect
        self._clock = clock
        self._rng = rng or SeededRNG()
        self._interval = interval_seconds
        self._batch_size = batch_size
        self._home_advantage = home_advantage
        self._broadcaster = broadcaster
        self._match_repo = MatchRepository()
        self._task: asyncio.Task | None = None
        self._stopping: asyncio.Event | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    # ---------- One tick ----------

    def poll_once(self) -> list[ResolvedMatch]:
        """Resolve every due match in one batch. Returns the matches finished in this tick."""
        now = self._clock()
        conn = self._connect()
        try:
            due = self._match_repo.list_due(conn, now, self._batch_size)
            resolved: list[ResolvedMatch] = []
            for match in due:
                try:
                    result = self._resolve(conn, match)
                except Exception:
                    logger.exception("Failed to resolve match %s; left IN_PROGRESS", match.id)
                    continue
                if result is not None:
                    resolved.append(result)
            if due:
                logger.info("Scheduler tick: %d due, %d resolved", len(due), len(resolved))
            return resolved
        finally:
            conn.close()

    def _resolve(self, conn: sqlite3.Connection, match: Match) -> ResolvedMatch | None:
        if not self._match_repo.mark_in_progress(conn, match.id, self._clock()):
            logger.debug("Match %s already claimed", match.id)
            return None
        home_power = team_power(conn, match.home_team_id)
        away_power = team_power(conn, match.away_team_id)
        outcome = resolve_best_of_three(home_power, away_power, self._rng, self._home_advantage)
        finished = record_match_result(conn, match, outcome.home_score, outcome.away_score, self._clock())
        logger.info(
            "Match %s (%s) finished %d-%d (power %d vs %d)",
            match.id, match.match_type, outcome.home_score, outcome.away_score, home_power, away_power,
        )
        return ResolvedMatch(
            match_id=match.id,
            match_type=match.match_type,
            home_team_id=match.home_team_id,
            away_team_id=match.away_team_id,
            home_power=home_power,
            away_power=away_power,
            home_score=finished.home_score,
            away_score=finished.away_score,
            winner_team_id=finished.winner_team_id,
            sets=outcome.sets,
        )

    # ---------- Async loop ----------

    def start(self) -> None:
        """Schedule run() on the running event loop. No-op if already running."""
        if self.running:
            return
        self._stopping = asyncio.Event()
        self._task = asyncio.get_running_loop().create_task(self.run())
        logger.info(
            "Match scheduler started (every %.0fs, batch %d)", self._interval, self._batch_size
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        if self._stopping is not None:
            self._stopping.set()
        await self._task
        self._task = None
        logger.info("Match scheduler stopped")

    async def tick(self) -> list[ResolvedMatch]:
        """Run poll_once in a worker thread and publish the resolved matches."""
        loop = asyncio.get_running_loop()
        results = await loop.run_in_executor(None, self.poll_once)
        await self._publish(results)
        return results

    async def run(self) -> None:
        stopping = self._stopping or asyncio.Event()
        while not stopping.is_set():
            try:
                await self.tick()
            except Exception:
                logger.exception("Scheduler tick failed")
            try:
                await asyncio.wait_for(stopping.wait(), timeout=self._interval)
            except asyncio.TimeoutError:
                pass

    async def _publish(self, results: list[ResolvedMatch]) -> None:
        if self._broadcaster is None:
            return
        for r in results:
            await self._broadcaster.publish(r.match_id, "match_started", {
                "match_id": r.match_id,
                "home_team_id": r.home_team_id,
                "away_team_id": r.away_team_id,
            })
            home = away = 0
            for set_number, side in enumerate(r.sets, start=1):
                if side == "home":
                    home += 1
                else:
                    away += 1
                await self._broadcaster.publish(r.match_id, "match_update", {
                    "match_id": r.match_id, "set": set_number, "home_score": home, "away_score": away,
                })
            await self._broadcaster.publish(r.match_id, "match_finished", r.to_dict())


def restart_match(conn: sqlite3.Connection, match_id: str) -> Match:
    """Put an IN_PROGRESS or CANCELLED match back to SCHEDULED so the next tick picks it up."""
    repo = MatchRepository()
    match = repo.get(conn, match_id)
    if match is None:
        raise NotFoundError(f"Match not found: {match_id}")
    if not repo.reset_to_scheduled(conn, match_id):
        raise InvalidStateError(f"Only IN_PROGRESS or CANCELLED matches can be restarted (current: {match.status})")
    logger.info("Match %s reset to SCHEDULED", match_id)
    return repo.get(conn, match_id)
