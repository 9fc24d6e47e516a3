"""
Repository interfaces for LPO data.
No business logic, only read/write operations. Repositories never commit:
callers decide the transaction boundary (see persistence.db.transaction).
"""
from __future__ import annotations

import sqlite3
import uuid
from datetime import datetime
from enum import Enum
from typing import Any, Iterable

from lpo_manager.models import (
    League,
    LeagueStatus,
    Match,
    MatchStatus,
    MatchType,
    Player,
    Standing,
    Team,
    Tournament,
    TournamentParticipant,
    Trade,
    TradeStatus,
    User,
)
from lpo_manager.persistence.db import from_db_time, to_db_time, utcnow


def _val(v: Any) -> Any:
    """Enum members are stored by value."""
    return v.value if isinstance(v, Enum) else v


def _placeholders(items: Iterable[Any]) -> str:
    return ", ".join("?" for _ in items)


# ---------- UserRepository ----------


def _row_to_user(r: sqlite3.Row) -> User:
    return User(
        id=r["id"],
        username=r["username"],
        password_hash=r["password_hash"],
        is_admin=bool(r["is_admin"]),
        created_at=from_db_time(r["created_at"]),
        last_login=from_db_time(r["last_login"]),
    )


class UserRepository:
    """CRUD for users."""

    def create(
        self, conn: sqlite3.Connection, username: str, password_hash: str, is_admin: bool = False
    ) -> User:
        uid = str(uuid.uuid4())
        now = to_db_time(utcnow())
        conn.execute(
            "INSERT INTO users (id, username, password_hash, is_admin, created_at) VALUES (?, ?, ?, ?, ?)",
            (uid, username, password_hash, int(is_admin), now),
        )
        return self.get(conn, uid)

    def get(self, conn: sqlite3.Connection, user_id: str) -> User | None:
        row = conn.execute("SELECT * FROM users WHERE id = ?", (user_id,)).fetchone()
        return _row_to_user(row) if row else None

    def get_by_username(self, conn: sqlite3.Connection, username: str) -> User | None:
        row = conn.execute("SELECT * FROM users WHERE username = ?", (username,)).fetchone()
        return _row_to_user(row) if row else None

    def any_admin(self, conn: sqlite3.Connection) -> bool:
        return conn.execute("SELECT 1 FROM users WHERE is_admin = 1 LIMIT 1").fetchone() is not None

    def set_admin(self, conn: sqlite3.Connection, user_id: str, is_admin: bool = True) -> None:
        conn.execute("UPDATE users SET is_admin = ? WHERE id = ?", (int(is_admin), user_id))

    def touch_login(self, conn: sqlite3.Connection, user_id: str, when: datetime) -> None:
        conn.execute("UPDATE users SET last_login = ? WHERE id = ?", (to_db_time(when), user_id))


# ---------- TeamRepository ----------


def _row_to_team(r: sqlite3.Row) -> Team:
    return Team(
        id=r["id"],
        user_id=r["user_id"],
        name=r["name"],
        region=r["region"],
        division=r["division"],
        gold=r["gold"],
        diamond=r["diamond"],
        male_fans=r["male_fans"],
        female_fans=r["female_fans"],
        morale=r["morale"],
        created_at=from_db_time(r["created_at"]),
    )


class TeamRepository:
    """CRUD for teams and guarded balance updates."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        region: str,
        user_id: str | None = None,
        gold: int = 100000,
        diamond: int = 100,
        male_fans: int = 1000,
        female_fans: int = 1000,
        morale: int = 50,
        division: str | None = None,
    ) -> Team:
        tid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO teams (id, user_id, name, region, division, gold, diamond,
                   male_fans, female_fans, morale, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                tid, user_id, name, _val(region), _val(division), gold, diamond,
                male_fans, female_fans, morale, to_db_time(utcnow()),
            ),
        )
        return self.get(conn, tid)

    def get(self, conn: sqlite3.Connection, team_id: str) -> Team | None:
        row = conn.execute("SELECT * FROM teams WHERE id = ?", (team_id,)).fetchone()
        return _row_to_team(row) if row else None

    def get_by_user(self, conn: sqlite3.Connection, user_id: str) -> Team | None:
        row = conn.execute("SELECT * FROM teams WHERE user_id = ?", (user_id,)).fetchone()
        return _row_to_team(row) if row else None

    def get_by_name(self, conn: sqlite3.Connection, name: str) -> Team | None:
        row = conn.execute("SELECT * FROM teams WHERE name = ?", (name,)).fetchone()
        return _row_to_team(row) if row else None

    def exists(self, conn: sqlite3.Connection, team_id: str) -> bool:
        return conn.execute("SELECT 1 FROM teams WHERE id = ?", (team_id,)).fetchone() is not None

    def count(self, conn: sqlite3.Connection, ai_only: bool = False) -> int:
        sql = "SELECT COUNT(*) FROM teams"
        if ai_only:
            sql += " WHERE user_id IS NULL"
        return conn.execute(sql).fetchone()[0]

    def list_by_region_for_distribution(self, conn: sqlite3.Connection, region: str) -> list[Team]:
        """Current first division first, then second, then unassigned; fans desc within each."""
        rows = conn.execute(
            """SELECT * FROM teams WHERE region = ?
               ORDER BY CASE division WHEN 'FIRST' THEN 0 WHEN 'SECOND' THEN 1 ELSE 2 END,
                        male_fans + female_fans DESC, created_at, id""",
            (_val(region),),
        ).fetchall()
        return [_row_to_team(r) for r in rows]

    def list_other_with_player_counts(
        self, conn: sqlite3.Connection, team_id: str, limit: int = 50
    ) -> list[dict[str, Any]]:
        rows = conn.execute(
            """SELECT t.id, t.name, t.region, t.division, t.user_id,
                      COUNT(p.id) AS player_count
               FROM teams t LEFT JOIN players p ON p.team_id = t.id
               WHERE t.id != ?
               GROUP BY t.id
               ORDER BY t.name
               LIMIT ?""",
            (team_id, limit),
        ).fetchall()
        return [
            {
                "id": r["id"],
                "name": r["name"],
                "region": r["region"],
                "division": r["division"],
                "is_ai": r["user_id"] is None,
                "player_count": r["player_count"],
            }
            for r in rows
        ]

    def adjust_currency(
        self, conn: sqlite3.Connection, team_id: str, gold: int = 0, diamond: int = 0
    ) -> bool:
        """Add (or subtract) gold/diamond. Returns False, changing nothing, if a balance would go negative."""
        cur = conn.execute(
            """UPDATE teams SET gold = gold + ?, diamond = diamond + ?
               WHERE id = ? AND gold + ? >= 0 AND diamond + ? >= 0""",
            (gold, diamond, team_id, gold, diamond),
        )
        return cur.rowcount == 1

    def set_division(self, conn: sqlite3.Connection, team_id: str, division: str | None) -> None:
        conn.execute("UPDATE teams SET division = ? WHERE id = ?", (_val(division), team_id))


# ---------- PlayerRepository ----------


def _row_to_player(r: sqlite3.Row) -> Player:
    return Player(
        id=r["id"],
        name=r["name"],
        position=r["position"],
        nationality=r["nationality"],
        team_id=r["team_id"],
        is_starter=bool(r["is_starter"]),
        mental=r["mental"],
        teamfight=r["teamfight"],
        focus=r["focus"],
        laning=r["laning"],
        overall=r["overall"],
        created_at=from_db_time(r["created_at"]),
    )


class PlayerRepository:
    """CRUD for players. Ownership and the starting lineup live on the player row."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        position: str,
        mental: int,
        teamfight: int,
        focus: int,
        laning: int,
        overall: int,
        team_id: str | None = None,
        is_starter: bool = False,
        nationality: str = "KR",
    ) -> Player:
        pid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO players (id, name, position, nationality, team_id, is_starter,
                   mental, teamfight, focus, laning, overall, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                pid, name, _val(position), nationality, team_id, int(is_starter),
                mental, teamfight, focus, laning, overall, to_db_time(utcnow()),
            ),
        )
        return self.get(conn, pid)

    def get(self, conn: sqlite3.Connection, player_id: str) -> Player | None:
        row = conn.execute("SELECT * FROM players WHERE id = ?", (player_id,)).fetchone()
        return _row_to_player(row) if row else None

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[Player]:
        rows = conn.execute(
            """SELECT * FROM players WHERE team_id = ?
               ORDER BY is_starter DESC,
                        CASE position WHEN 'TOP' THEN 0 WHEN 'JUNGLE' THEN 1 WHEN 'MID' THEN 2
                                      WHEN 'ADC' THEN 3 ELSE 4 END,
                        overall DESC""",
            (team_id,),
        ).fetchall()
        return [_row_to_player(r) for r in rows]

    def count_by_team(self, conn: sqlite3.Connection, team_id: str) -> int:
        return conn.execute("SELECT COUNT(*) FROM players WHERE team_id = ?", (team_id,)).fetchone()[0]

    def sum_starter_stats(self, conn: sqlite3.Connection, team_id: str) -> tuple[int, int]:
        """(starter count, sum of mental+teamfight+focus+laning over starters)."""
        row = conn.execute(
            """SELECT COUNT(*) AS n,
                      COALESCE(SUM(mental + teamfight + focus + laning), 0) AS total
               FROM players WHERE team_id = ? AND is_starter = 1""",
            (team_id,),
        ).fetchone()
        return row["n"], row["total"]

    def transfer(self, conn: sqlite3.Connection, player_id: str, team_id: str | None) -> None:
        """Move a player to another team; a transferred player starts on the bench."""
        conn.execute(
            "UPDATE players SET team_id = ?, is_starter = 0 WHERE id = ?", (team_id, player_id)
        )

    def set_starters(self, conn: sqlite3.Connection, team_id: str, player_ids: list[str]) -> None:
        conn.execute("UPDATE players SET is_starter = 0 WHERE team_id = ?", (team_id,))
        if player_ids:
            conn.execute(
                f"UPDATE players SET is_starter = 1 WHERE team_id = ? AND id IN ({_placeholders(player_ids)})",
                (team_id, *player_ids),
            )


# ---------- LeagueRepository ----------


def _row_to_league(r: sqlite3.Row) -> League:
    return League(
        id=r["id"],
        name=r["name"],
        region=r["region"],
        division=r["division"],
        season=r["season"],
        status=r["status"],
        max_teams=r["max_teams"],
        created_at=from_db_time(r["created_at"]),
    )


class LeagueRepository:
    """CRUD for leagues. No business logic."""

    def create(
        self,
        conn: sqlite3.Connection,
        name: str,
        region: str,
        division: str,
        season: int,
        max_teams: int,
    ) -> League:
        lid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO leagues (id, name, region, division, season, status, max_teams, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                lid, name, _val(region), _val(division), season,
                LeagueStatus.PENDING.value, max_teams, to_db_time(utcnow()),
            ),
        )
        return self.get(conn, lid)

    def get(self, conn: sqlite3.Connection, league_id: str) -> League | None:
        row = conn.execute("SELECT * FROM leagues WHERE id = ?", (league_id,)).fetchone()
        return _row_to_league(row) if row else None

    def find(
        self, conn: sqlite3.Connection, season: int, region: str, division: str
    ) -> League | None:
        row = conn.execute(
            """SELECT * FROM leagues WHERE season = ? AND region = ? AND division = ?
               ORDER BY created_at DESC LIMIT 1""",
            (season, _val(region), _val(division)),
        ).fetchone()
        return _row_to_league(row) if row else None

    def list(
        self,
        conn: sqlite3.Connection,
        season: int | None = None,
        region: str | None = None,
        status: str | None = None,
    ) -> list[League]:
        sql = "SELECT * FROM leagues WHERE 1 = 1"
        args: list[Any] = []
        if season is not None:
            sql += " AND season = ?"
            args.append(season)
        if region is not None:
            sql += " AND region = ?"
            args.append(_val(region))
        if status is not None:
            sql += " AND status = ?"
            args.append(_val(status))
        sql += " ORDER BY season DESC, region, division"
        return [_row_to_league(r) for r in conn.execute(sql, args).fetchall()]

    def list_unfinished(self, conn: sqlite3.Connection) -> list[League]:
        rows = conn.execute(
            "SELECT * FROM leagues WHERE status != ? ORDER BY season, region, division",
            (LeagueStatus.FINISHED.value,),
        ).fetchall()
        return [_row_to_league(r) for r in rows]

    def latest_season(self, conn: sqlite3.Connection) -> int | None:
        return conn.execute("SELECT MAX(season) FROM leagues").fetchone()[0]

    def update_status(self, conn: sqlite3.Connection, league_id: str, status: str) -> None:
        conn.execute("UPDATE leagues SET status = ? WHERE id = ?", (_val(status), league_id))

    def find_active_for_team(self, conn: sqlite3.Connection, team_id: str) -> League | None:
        """Most recent unfinished league the team has a standings row in."""
        row = conn.execute(
            """SELECT l.* FROM leagues l
               JOIN league_standings s ON s.league_id = l.id
               WHERE s.team_id = ? AND l.status != ?
               ORDER BY l.season DESC, l.created_at DESC LIMIT 1""",
            (team_id, LeagueStatus.FINISHED.value),
        ).fetchone()
        return _row_to_league(row) if row else None


# ---------- StandingRepository ----------


def _row_to_standing(r: sqlite3.Row) -> Standing:
    keys = r.keys()
    return Standing(
        league_id=r["league_id"],
        team_id=r["team_id"],
        wins=r["wins"],
        losses=r["losses"],
        draws=r["draws"],
        points=r["points"],
        goal_difference=r["goal_difference"],
        rank=r["rank"],
        team_name=r["team_name"] if "team_name" in keys else None,
    )


class StandingRepository:
    """League table rows."""

    def reset(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> None:
        """Insert a zeroed row, or zero an existing one."""
        conn.execute(
            """INSERT INTO league_standings (league_id, team_id, wins, losses, draws, points, goal_difference, rank)
               VALUES (?, ?, 0, 0, 0, 0, 0, NULL)
               ON CONFLICT (league_id, team_id) DO UPDATE SET
                   wins = 0, losses = 0, draws = 0, points = 0, goal_difference = 0, rank = NULL""",
            (league_id, team_id),
        )

    def get(self, conn: sqlite3.Connection, league_id: str, team_id: str) -> Standing | None:
        row = conn.execute(
            "SELECT * FROM league_standings WHERE league_id = ? AND team_id = ?",
            (league_id, team_id),
        ).fetchone()
        return _row_to_standing(row) if row else None

    def list_by_league(self, conn: sqlite3.Connection, league_id: str) -> list[Standing]:
        """Ordered by points, goal difference, wins."""
        rows = conn.execute(
            """SELECT s.*, t.name AS team_name FROM league_standings s
               JOIN teams t ON t.id = s.team_id
               WHERE s.league_id = ?
               ORDER BY s.points DESC, s.goal_difference DESC, s.wins DESC, t.name""",
            (league_id,),
        ).fetchall()
        return [_row_to_standing(r) for r in rows]

    def team_ids(self, conn: sqlite3.Connection, league_id: str) -> list[str]:
        rows = conn.execute(
            "SELECT team_id FROM league_standings WHERE league_id = ? ORDER BY rowid",
            (league_id,),
        ).fetchall()
        return [r["team_id"] for r in rows]

    def count(self, conn: sqlite3.Connection, league_id: str) -> int:
        return conn.execute(
            "SELECT COUNT(*) FROM league_standings WHERE league_id = ?", (league_id,)
        ).fetchone()[0]

    def apply_delta(
        self,
        conn: sqlite3.Connection,
        league_id: str,
        team_id: str,
        wins: int = 0,
        losses: int = 0,
        draws: int = 0,
        points: int = 0,
        goal_difference: int = 0,
    ) -> None:
        conn.execute(
            """UPDATE league_standings SET
                   wins = wins + ?, losses = losses + ?, draws = draws + ?,
                   points = points + ?, goal_difference = goal_difference + ?
               WHERE league_id = ? AND team_id = ?""",
            (wins, losses, draws, points, goal_difference, league_id, team_id),
        )

    def update_ranks(self, conn: sqlite3.Connection, league_id: str) -> None:
        """Rank = 1 + number of teams strictly ahead on (points, goal difference, wins)."""
        conn.execute(
            """UPDATE league_standings SET rank = (
                   SELECT COUNT(*) + 1 FROM league_standings s2
                   WHERE s2.league_id = league_standings.league_id
                     AND (s2.points > league_standings.points
                          OR (s2.points = league_standings.points
                              AND s2.goal_difference > league_standings.goal_difference)
                          OR (s2.points = league_standings.points
                              AND s2.goal_difference = league_standings.goal_difference
                              AND s2.wins > league_standings.wins))
               )
               WHERE league_id = ?""",
            (league_id,),
        )

    def delete_by_leagues(self, conn: sqlite3.Connection, league_ids: list[str]) -> int:
        if not league_ids:
            return 0
        cur = conn.execute(
            f"DELETE FROM league_standings WHERE league_id IN ({_placeholders(league_ids)})",
            league_ids,
        )
        return cur.rowcount

    def find_latest_for_team(self, conn: sqlite3.Connection, team_id: str) -> Standing | None:
        row = conn.execute(
            """SELECT s.* FROM league_standings s JOIN leagues l ON l.id = s.league_id
               WHERE s.team_id = ? ORDER BY l.season DESC, l.created_at DESC LIMIT 1""",
            (team_id,),
        ).fetchone()
        return _row_to_standing(row) if row else None


# ---------- MatchRepository ----------


def _row_to_match(r: sqlite3.Row) -> Match:
    return Match(
        id=r["id"],
        match_type=r["match_type"],
        status=r["status"],
        home_team_id=r["home_team_id"],
        away_team_id=r["away_team_id"],
        league_id=r["league_id"],
        tournament_id=r["tournament_id"],
        season=r["season"],
        region=r["region"],
        round=r["round"],
        match_number=r["match_number"],
        home_score=r["home_score"],
        away_score=r["away_score"],
        winner_team_id=r["winner_team_id"],
        scheduled_at=from_db_time(r["scheduled_at"]),
        started_at=from_db_time(r["started_at"]),
        finished_at=from_db_time(r["finished_at"]),
        created_at=from_db_time(r["created_at"]),
    )


class MatchRepository:
    """Fixtures of every type. Status changes are conditional on the current status."""

    def create(
        self,
        conn: sqlite3.Connection,
        match_type: str,
        scheduled_at: datetime,
        home_team_id: str | None,
        away_team_id: str | None,
        league_id: str | None = None,
        tournament_id: str | None = None,
        season: int | None = None,
        region: str | None = None,
        round: str | None = None,
        match_number: int | None = None,
        status: str = MatchStatus.SCHEDULED,
    ) -> Match:
        mid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO matches (id, match_type, status, home_team_id, away_team_id, league_id,
                   tournament_id, season, region, round, match_number, scheduled_at, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
            (
                mid, _val(match_type), _val(status), home_team_id, away_team_id, league_id,
                tournament_id, season, _val(region), _val(round), match_number,
                to_db_time(scheduled_at), to_db_time(utcnow()),
            ),
        )
        return self.get(conn, mid)

    def get(self, conn: sqlite3.Connection, match_id: str) -> Match | None:
        row = conn.execute("SELECT * FROM matches WHERE id = ?", (match_id,)).fetchone()
        return _row_to_match(row) if row else None

    def list_due(self, conn: sqlite3.Connection, now: datetime, limit: int) -> list[Match]:
        """SCHEDULED matches with both teams whose kickoff is at or before now, oldest first."""
        rows = conn.execute(
            """SELECT * FROM matches
               WHERE status = ? AND scheduled_at <= ?
                 AND home_team_id IS NOT NULL AND away_team_id IS NOT NULL
               ORDER BY scheduled_at, match_number, id
               LIMIT ?""",
            (MatchStatus.SCHEDULED.value, to_db_time(now), limit),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def mark_in_progress(self, conn: sqlite3.Connection, match_id: str, started_at: datetime) -> bool:
        """SCHEDULED -> IN_PROGRESS. False if another worker already claimed it."""
        cur = conn.execute(
            "UPDATE matches SET status = ?, started_at = ? WHERE id = ? AND status = ?",
            (MatchStatus.IN_PROGRESS.value, to_db_time(started_at), match_id, MatchStatus.SCHEDULED.value),
        )
        return cur.rowcount == 1

    def finish(
        self,
        conn: sqlite3.Connection,
        match_id: str,
        home_score: int,
        away_score: int,
        winner_team_id: str | None,
        finished_at: datetime,
    ) -> bool:
        """Write the result. A FINISHED or CANCELLED match is never overwritten."""
        cur = conn.execute(
            """UPDATE matches SET status = ?, home_score = ?, away_score = ?, winner_team_id = ?,
                   finished_at = ?, started_at = COALESCE(started_at, ?)
               WHERE id = ? AND status IN (?, ?)""",
            (
                MatchStatus.FINISHED.value, home_score, away_score, winner_team_id,
                to_db_time(finished_at), to_db_time(finished_at), match_id,
                MatchStatus.SCHEDULED.value, MatchStatus.IN_PROGRESS.value,
            ),
        )
        return cur.rowcount == 1

    def reset_to_scheduled(self, conn: sqlite3.Connection, match_id: str) -> bool:
        """IN_PROGRESS or CANCELLED -> SCHEDULED with scores cleared."""
        cur = conn.execute(
            """UPDATE matches SET status = ?, home_score = 0, away_score = 0, winner_team_id = NULL,
                   started_at = NULL, finished_at = NULL
               WHERE id = ? AND status IN (?, ?)""",
            (
                MatchStatus.SCHEDULED.value, match_id,
                MatchStatus.IN_PROGRESS.value, MatchStatus.CANCELLED.value,
            ),
        )
        return cur.rowcount == 1

    def set_teams(
        self, conn: sqlite3.Connection, match_id: str, home_team_id: str, away_team_id: str
    ) -> bool:
        """Fill a TBD bracket slot: PENDING -> SCHEDULED."""
        cur = conn.execute(
            "UPDATE matches SET home_team_id = ?, away_team_id = ?, status = ? WHERE id = ? AND status = ?",
            (home_team_id, away_team_id, MatchStatus.SCHEDULED.value, match_id, MatchStatus.PENDING.value),
        )
        return cur.rowcount == 1

    def list(
        self,
        conn: sqlite3.Connection,
        league_id: str | None = None,
        status: str | None = None,
        match_type: str | None = None,
        team_id: str | None = None,
        limit: int = 100,
    ) -> list[Match]:
        sql = "SELECT * FROM matches WHERE 1 = 1"
        args: list[Any] = []
        if league_id is not None:
            sql += " AND league_id = ?"
            args.append(league_id)
        if status is not None:
            sql += " AND status = ?"
            args.append(_val(status))
        if match_type is not None:
            sql += " AND match_type = ?"
            args.append(_val(match_type))
        if team_id is not None:
            sql += " AND (home_team_id = ? OR away_team_id = ?)"
            args.extend([team_id, team_id])
        sql += " ORDER BY scheduled_at, match_number LIMIT ?"
        args.append(limit)
        return [_row_to_match(r) for r in conn.execute(sql, args).fetchall()]

    def list_by_tournament(
        self, conn: sqlite3.Connection, tournament_id: str, round: str | None = None
    ) -> list[Match]:
        sql = "SELECT * FROM matches WHERE tournament_id = ?"
        args: list[Any] = [tournament_id]
        if round is not None:
            sql += " AND round = ?"
            args.append(_val(round))
        sql += " ORDER BY scheduled_at, match_number"
        return [_row_to_match(r) for r in conn.execute(sql, args).fetchall()]

    def list_finished_regular(self, conn: sqlite3.Connection, league_id: str) -> list[Match]:
        rows = conn.execute(
            """SELECT * FROM matches WHERE league_id = ? AND match_type = 'REGULAR' AND status = ?
               ORDER BY finished_at""",
            (league_id, MatchStatus.FINISHED.value),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def list_upcoming(self, conn: sqlite3.Connection, league_id: str, limit: int = 10) -> list[Match]:
        rows = conn.execute(
            """SELECT * FROM matches WHERE league_id = ? AND status = ?
               ORDER BY scheduled_at LIMIT ?""",
            (league_id, MatchStatus.SCHEDULED.value, limit),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def count_regular(self, conn: sqlite3.Connection, league_id: str) -> int:
        return conn.execute(
            "SELECT COUNT(*) FROM matches WHERE league_id = ? AND match_type = 'REGULAR'",
            (league_id,),
        ).fetchone()[0]

    def list_promotion(self, conn: sqlite3.Connection, season: int, region: str) -> list[Match]:
        rows = conn.execute(
            """SELECT * FROM matches WHERE match_type = 'PROMOTION' AND season = ? AND region = ?
               ORDER BY match_number""",
            (season, _val(region)),
        ).fetchall()
        return [_row_to_match(r) for r in rows]

    def delete_unfinished(self, conn: sqlite3.Connection) -> int:
        """
        Drop unplayed league and friendly fixtures (season reset). Tournament
        and promotion fixtures are kept so their brackets can still finish.
        """
        cur = conn.execute(
            """DELETE FROM matches WHERE status IN (?, ?, ?) AND match_type IN (?, ?)""",
            (
                MatchStatus.PENDING.value, MatchStatus.SCHEDULED.value, MatchStatus.IN_PROGRESS.value,
                MatchType.REGULAR.value, MatchType.FRIENDLY.value,
            ),
        )
        return cur.rowcount


# ---------- TournamentRepository ----------


def _row_to_tournament(r: sqlite3.Row) -> Tournament:
    return Tournament(
        id=r["id"],
        kind=r["kind"],
        name=r["name"],
        season=r["season"],
        status=r["status"],
        prize_pool=r["prize_pool"],
        league_id=r["league_id"],
        winner_team_id=r["winner_team_id"],
        created_at=from_db_time(r["created_at"]),
    )


class TournamentRepository:
    """Tournaments and their participants."""

    def create(
        self,
        conn: sqlite3.Connection,
        kind: str,
        name: str,
        season: int,
        status: str,
        prize_pool: int,
        league_id: str | None = None,
    ) -> Tournament:
        tid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO tournaments (id, kind, name, season, league_id, status, prize_pool, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
            (tid, _val(kind), name, season, league_id, _val(status), prize_pool, to_db_time(utcnow())),
        )
        return self.get(conn, tid)

    def get(self, conn: sqlite3.Connection, tournament_id: str) -> Tournament | None:
        row = conn.execute("SELECT * FROM tournaments WHERE id = ?", (tournament_id,)).fetchone()
        return _row_to_tournament(row) if row else None

    def find(
        self,
        conn: sqlite3.Connection,
        kind: str,
        season: int | None = None,
        league_id: str | None = None,
    ) -> Tournament | None:
        """Latest tournament of a kind, optionally for one season or league."""
        sql = "SELECT * FROM tournaments WHERE kind = ?"
        args: list[Any] = [_val(kind)]
        if season is not None:
            sql += " AND season = ?"
            args.append(season)
        if league_id is not None:
            sql += " AND league_id = ?"
            args.append(league_id)
        sql += " ORDER BY season DESC, created_at DESC LIMIT 1"
        row = conn.execute(sql, args).fetchone()
        return _row_to_tournament(row) if row else None

    def update_status(self, conn: sqlite3.Connection, tournament_id: str, status: str) -> None:
        conn.execute("UPDATE tournaments SET status = ? WHERE id = ?", (_val(status), tournament_id))

    def set_winner(
        self, conn: sqlite3.Connection, tournament_id: str, winner_team_id: str, status: str
    ) -> None:
        conn.execute(
            "UPDATE tournaments SET winner_team_id = ?, status = ? WHERE id = ?",
            (winner_team_id, _val(status), tournament_id),
        )

    def add_participant(
        self,
        conn: sqlite3.Connection,
        tournament_id: str,
        team_id: str,
        seed: int,
        region: str | None = None,
    ) -> None:
        conn.execute(
            """INSERT INTO tournament_participants (tournament_id, team_id, region, seed, eliminated)
               VALUES (?, ?, ?, ?, 0)""",
            (tournament_id, team_id, _val(region), seed),
        )

    def list_participants(self, conn: sqlite3.Connection, tournament_id: str) -> list[TournamentParticipant]:
        rows = conn.execute(
            """SELECT * FROM tournament_participants WHERE tournament_id = ?
               ORDER BY region, seed""",
            (tournament_id,),
        ).fetchall()
        return [
            TournamentParticipant(
                tournament_id=r["tournament_id"],
                team_id=r["team_id"],
                region=r["region"],
                seed=r["seed"],
                eliminated=bool(r["eliminated"]),
            )
            for r in rows
        ]

    def eliminate(self, conn: sqlite3.Connection, tournament_id: str, team_id: str) -> None:
        conn.execute(
            "UPDATE tournament_participants SET eliminated = 1 WHERE tournament_id = ? AND team_id = ?",
            (tournament_id, team_id),
        )

    def list_champions(self, conn: sqlite3.Connection, kind: str, limit: int = 50) -> list[dict[str, Any]]:
        rows = conn.execute(
            """SELECT tr.id, tr.name, tr.season, tr.prize_pool, tr.winner_team_id, t.name AS team_name
               FROM tournaments tr JOIN teams t ON t.id = tr.winner_team_id
               WHERE tr.kind = ? AND tr.winner_team_id IS NOT NULL
               ORDER BY tr.season DESC, tr.created_at DESC LIMIT ?""",
            (_val(kind), limit),
        ).fetchall()
        return [dict(r) for r in rows]


# ---------- TradeRepository ----------


def _row_to_trade(r: sqlite3.Row) -> Trade:
    return Trade(
        id=r["id"],
        player_id=r["player_id"],
        seller_team_id=r["seller_team_id"],
        buyer_team_id=r["buyer_team_id"],
        status=r["status"],
        price_gold=r["price_gold"],
        price_diamond=r["price_diamond"],
        listed_at=from_db_time(r["listed_at"]),
        sold_at=from_db_time(r["sold_at"]),
    )


_MARKET_SORTS = {
    "price_asc": "t.price_gold ASC, t.price_diamond ASC",
    "price_desc": "t.price_gold DESC, t.price_diamond DESC",
    "overall_desc": "p.overall DESC",
    "newest": "t.listed_at DESC",
}


class TradeRepository:
    """Transfer market listings."""

    def create(
        self,
        conn: sqlite3.Connection,
        player_id: str,
        seller_team_id: str,
        price_gold: int,
        price_diamond: int,
        listed_at: datetime,
    ) -> Trade:
        tid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO trades (id, player_id, seller_team_id, price_gold, price_diamond, status, listed_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (tid, player_id, seller_team_id, price_gold, price_diamond,
             TradeStatus.LISTED.value, to_db_time(listed_at)),
        )
        return self.get(conn, tid)

    def get(self, conn: sqlite3.Connection, trade_id: str) -> Trade | None:
        row = conn.execute("SELECT * FROM trades WHERE id = ?", (trade_id,)).fetchone()
        return _row_to_trade(row) if row else None

    def find_listed_for_player(self, conn: sqlite3.Connection, player_id: str) -> Trade | None:
        row = conn.execute(
            "SELECT * FROM trades WHERE player_id = ? AND status = ?",
            (player_id, TradeStatus.LISTED.value),
        ).fetchone()
        return _row_to_trade(row) if row else None

    def list_market(
        self,
        conn: sqlite3.Connection,
        position: str | None = None,
        min_overall: int | None = None,
        max_overall: int | None = None,
        sort_by: str = "newest",
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        sql = """SELECT t.*, p.name AS player_name, p.position, p.overall,
                        p.mental, p.teamfight, p.focus, p.laning,
                        s.name AS seller_team_name
                 FROM trades t
                 JOIN players p ON p.id = t.player_id
                 JOIN teams s ON s.id = t.seller_team_id
                 WHERE t.status = ?"""
        args: list[Any] = [TradeStatus.LISTED.value]
        if position is not None:
            sql += " AND p.position = ?"
            args.append(_val(position))
        if min_overall is not None:
            sql += " AND p.overall >= ?"
            args.append(min_overall)
        if max_overall is not None:
            sql += " AND p.overall <= ?"
            args.append(max_overall)
        sql += f" ORDER BY {_MARKET_SORTS.get(sort_by, _MARKET_SORTS['newest'])} LIMIT ?"
        args.append(limit)
        return [dict(r) for r in conn.execute(sql, args).fetchall()]

    def list_by_team(self, conn: sqlite3.Connection, team_id: str) -> list[dict[str, Any]]:
        rows = conn.execute(
            """SELECT t.*, p.name AS player_name, p.position, p.overall
               FROM trades t JOIN players p ON p.id = t.player_id
               WHERE t.seller_team_id = ? OR t.buyer_team_id = ?
               ORDER BY t.listed_at DESC""",
            (team_id, team_id),
        ).fetchall()
        return [dict(r) for r in rows]

    def mark_sold(
        self, conn: sqlite3.Connection, trade_id: str, buyer_team_id: str, sold_at: datetime
    ) -> bool:
        cur = conn.execute(
            "UPDATE trades SET status = ?, buyer_team_id = ?, sold_at = ? WHERE id = ? AND status = ?",
            (TradeStatus.SOLD.value, buyer_team_id, to_db_time(sold_at), trade_id, TradeStatus.LISTED.value),
        )
        return cur.rowcount == 1

    def cancel(self, conn: sqlite3.Connection, trade_id: str) -> bool:
        cur = conn.execute(
            "UPDATE trades SET status = ? WHERE id = ? AND status = ?",
            (TradeStatus.CANCELLED.value, trade_id, TradeStatus.LISTED.value),
        )
        return cur.rowcount == 1


# ---------- CurrencyExchangeRepository ----------


class CurrencyExchangeRepository:
    def create(
        self,
        conn: sqlite3.Connection,
        team_id: str,
        exchange_type: str,
        amount: int,
        rate: int,
        result_amount: int,
        created_at: datetime,
    ) -> dict[str, Any]:
        eid = str(uuid.uuid4())
        conn.execute(
            """INSERT INTO currency_exchanges (id, team_id, exchange_type, amount, rate, result_amount, created_at)
               VALUES (?, ?, ?, ?, ?, ?, ?)""",
            (eid, team_id, _val(exchange_type), amount, rate, result_amount, to_db_time(created_at)),
        )
        return {
            "id": eid,
            "team_id": team_id,
            "exchange_type": _val(exchange_type),
            "amount": amount,
            "rate": rate,
            "result_amount": result_amount,
        }
