"""
Runtime configuration from environment variables.
"""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from pathlib import Path

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def _project_root() -> Path:
    return Path(__file__).resolve().parent.parent


def _env_bool(name: str, default: bool) -> bool:
    raw = os.environ.get(name)
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class Settings:
    db_path: Path | None = None  # None: persistence.db default
    scheduler_enabled: bool = True
    poll_interval_seconds: float = 60.0
    poll_batch_size: int = 5
    home_advantage: int = 5
    fixture_spacing_hours: int = 6
    seed_pro_teams: bool = True
    client_url: str = "http://localhost:3000"
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        db_path = os.environ.get("LPO_DB_PATH")
        return cls(
            db_path=Path(db_path) if db_path else None,
            scheduler_enabled=_env_bool("LPO_SCHEDULER_ENABLED", True),
            poll_interval_seconds=float(os.environ.get("LPO_POLL_INTERVAL_SECONDS", "60")),
            poll_batch_size=int(os.environ.get("LPO_POLL_BATCH_SIZE", "5")),
            home_advantage=int(os.environ.get("LPO_HOME_ADVANTAGE", "5")),
            fixture_spacing_hours=int(os.environ.get("LPO_FIXTURE_SPACING_HOURS", "6")),
            seed_pro_teams=_env_bool("LPO_SEED_PRO_TEAMS", True),
            client_url=os.environ.get("LPO_CLIENT_URL", "http://localhost:3000"),
            log_level=os.environ.get("LPO_LOG_LEVEL", "INFO"),
        )


def roster_data_path() -> Path:
    """Bundled pro roster (LCK -> SOUTH, LEC -> NORTH)."""
    return _project_root() / "data" / "pro_rosters.json"


def configure_logging(level: str = "INFO") -> None:
    """Install one stream handler on the root logger. Safe to call more than once."""
    root = logging.getLogger()
    if not any(getattr(h, "_lpo_handler", False) for h in root.handlers):
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        handler._lpo_handler = True  # type: ignore[attr-defined]
        root.addHandler(handler)
    root.setLevel(level.upper())
