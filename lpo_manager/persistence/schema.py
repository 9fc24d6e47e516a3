"""
SQLite schema for LPO entities.
Each table created with IF NOT EXISTS. Timestamps are UTC ISO-8601 text.
"""
from __future__ import annotations


def users_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS users (
        id TEXT PRIMARY KEY,
        username TEXT NOT NULL UNIQUE,
        password_hash TEXT NOT NULL,
        is_admin INTEGER NOT NULL DEFAULT 0,
        created_at TEXT NOT NULL,
        last_login TEXT
    );
    """


def teams_schema() -> str:
    """user_id NULL = AI pro team. Balances can never go negative."""
    return """
    CREATE TABLE IF NOT EXISTS teams (
        id TEXT PRIMARY KEY,
        user_id TEXT UNIQUE,
        name TEXT NOT NULL,
        region TEXT NOT NULL,
        division TEXT,
        gold INTEGER NOT NULL DEFAULT 100000 CHECK (gold >= 0),
        diamond INTEGER NOT NULL DEFAULT 100 CHECK (diamond >= 0),
        male_fans INTEGER NOT NULL DEFAULT 1000,
        female_fans INTEGER NOT NULL DEFAULT 1000,
        morale INTEGER NOT NULL DEFAULT 50,
        created_at TEXT NOT NULL,
        FOREIGN KEY (user_id) REFERENCES users(id)
    );
    CREATE INDEX IF NOT EXISTS ix_teams_region ON teams(region, division);
    """


def players_schema() -> str:
    """Single source of truth for ownership (team_id) and the starting lineup (is_starter)."""
    return """
    CREATE TABLE IF NOT EXISTS players (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        position TEXT NOT NULL,
        nationality TEXT NOT NULL DEFAULT 'KR',
        team_id TEXT,
        is_starter INTEGER NOT NULL DEFAULT 0,
        mental INTEGER NOT NULL,
        teamfight INTEGER NOT NULL,
        focus INTEGER NOT NULL,
        laning INTEGER NOT NULL,
        overall INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_players_team ON players(team_id, is_starter);
    """


def leagues_schema() -> str:
    """status: PENDING | ACTIVE | PLAYOFF | FINISHED."""
    return """
    CREATE TABLE IF NOT EXISTS leagues (
        id TEXT PRIMARY KEY,
        name TEXT NOT NULL,
        region TEXT NOT NULL,
        division TEXT NOT NULL,
        season INTEGER NOT NULL,
        status TEXT NOT NULL DEFAULT 'PENDING',
        max_teams INTEGER NOT NULL,
        created_at TEXT NOT NULL
    );
    CREATE INDEX IF NOT EXISTS ix_leagues_season ON leagues(season, region, division);
    CREATE INDEX IF NOT EXISTS ix_leagues_status ON leagues(status);
    """


def league_standings_schema() -> str:
    return """
    CREATE TABLE IF NOT EXISTS league_standings (
        league_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        wins INTEGER NOT NULL DEFAULT 0,
        losses INTEGER NOT NULL DEFAULT 0,
        draws INTEGER NOT NULL DEFAULT 0,
        points INTEGER NOT NULL DEFAULT 0,
        goal_difference INTEGER NOT NULL DEFAULT 0,
        rank INTEGER,
        PRIMARY KEY (league_id, team_id),
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_standings_team ON league_standings(team_id);
    """


def matches_schema() -> str:
    """
    Every fixture variant in one table. home/away NULL = TBD bracket slot.
    The scheduler index covers (status, scheduled_at).
    """
    return """
    CREATE TABLE IF NOT EXISTS matches (
        id TEXT PRIMARY KEY,
        match_type TEXT NOT NULL,
        status TEXT NOT NULL DEFAULT 'SCHEDULED',
        home_team_id TEXT,
        away_team_id TEXT,
        league_id TEXT,
        tournament_id TEXT,
        season INTEGER,
        region TEXT,
        round TEXT,
        match_number INTEGER,
        home_score INTEGER NOT NULL DEFAULT 0,
        away_score INTEGER NOT NULL DEFAULT 0,
        winner_team_id TEXT,
        scheduled_at TEXT NOT NULL,
        started_at TEXT,
        finished_at TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (home_team_id) REFERENCES teams(id),
        FOREIGN KEY (away_team_id) REFERENCES teams(id),
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (tournament_id) REFERENCES tournaments(id)
    );
    CREATE INDEX IF NOT EXISTS ix_matches_due ON matches(status, scheduled_at);
    CREATE INDEX IF NOT EXISTS ix_matches_league ON matches(league_id, match_type);
    CREATE INDEX IF NOT EXISTS ix_matches_tournament ON matches(tournament_id, round);
    """


def tournaments_schema() -> str:
    """kind: CUP | WORLDS | PLAYOFF. status: current round name or COMPLETED."""
    return """
    CREATE TABLE IF NOT EXISTS tournaments (
        id TEXT PRIMARY KEY,
        kind TEXT NOT NULL,
        name TEXT NOT NULL,
        season INTEGER NOT NULL,
        league_id TEXT,
        status TEXT NOT NULL,
        prize_pool INTEGER NOT NULL DEFAULT 0,
        winner_team_id TEXT,
        created_at TEXT NOT NULL,
        FOREIGN KEY (league_id) REFERENCES leagues(id),
        FOREIGN KEY (winner_team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_tournaments_kind ON tournaments(kind, season);

    CREATE TABLE IF NOT EXISTS tournament_participants (
        tournament_id TEXT NOT NULL,
        team_id TEXT NOT NULL,
        region TEXT,
        seed INTEGER NOT NULL,
        eliminated INTEGER NOT NULL DEFAULT 0,
        PRIMARY KEY (tournament_id, team_id),
        FOREIGN KEY (tournament_id) REFERENCES tournaments(id),
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    """


def trades_schema() -> str:
    """status: LISTED | SOLD | CANCELLED."""
    return """
    CREATE TABLE IF NOT EXISTS trades (
        id TEXT PRIMARY KEY,
        player_id TEXT NOT NULL,
        seller_team_id TEXT NOT NULL,
        buyer_team_id TEXT,
        price_gold INTEGER NOT NULL DEFAULT 0,
        price_diamond INTEGER NOT NULL DEFAULT 0,
        status TEXT NOT NULL DEFAULT 'LISTED',
        listed_at TEXT NOT NULL,
        sold_at TEXT,
        FOREIGN KEY (player_id) REFERENCES players(id),
        FOREIGN KEY (seller_team_id) REFERENCES teams(id),
        FOREIGN KEY (buyer_team_id) REFERENCES teams(id)
    );
    CREATE INDEX IF NOT EXISTS ix_trades_status ON trades(status);

    CREATE TABLE IF NOT EXISTS currency_exchanges (
        id TEXT PRIMARY KEY,
        team_id TEXT NOT NULL,
        exchange_type TEXT NOT NULL,
        amount INTEGER NOT NULL,
        rate INTEGER NOT NULL,
        result_amount INTEGER NOT NULL,
        created_at TEXT NOT NULL,
        FOREIGN KEY (team_id) REFERENCES teams(id)
    );
    """


def all_schema_sql() -> str:
    """Full schema in dependency order."""
    return (
        users_schema()
        + teams_schema()
        + players_schema()
        + leagues_schema()
        + league_standings_schema()
        + tournaments_schema()
        + matches_schema()
        + trades_schema()
    )
