"""
REST API for the LPO manager backend.
Thin wrappers around services and persistence. Every error body is {"error": message}.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from datetime import datetime, timedelta
from typing import Any, AsyncGenerator, Generator

from fastapi import Depends, FastAPI, HTTPException, Query, Request, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from pydantic import BaseModel, Field
from starlette.exceptions import HTTPException as StarletteHTTPException

from lpo_manager.auth import create_access_token, decode_token, hash_password, verify_password
from lpo_manager.config import Settings, configure_logging, roster_data_path
from lpo_manager.errors import LpoError, NotFoundError
from lpo_manager.models import MatchStatus, MatchType, Region, TournamentKind
from lpo_manager.persistence import (
    MatchRepository,
    TeamRepository,
    UserRepository,
    get_connection,
    init_db,
)
from lpo_manager.persistence.db import get_db_path, set_db_path, utcnow
from lpo_manager.realtime import MatchBroadcaster
from lpo_manager.services import (
    LeagueService,
    MarketService,
    MatchScheduler,
    StandingsUpdater,
    TeamService,
    TournamentService,
    create_friendly,
    record_match_result,
    restart_match,
    standings_table,
)
from lpo_manager.simulation.rng import SeededRNG

logger = logging.getLogger(__name__)

settings = Settings.from_env()
broadcaster = MatchBroadcaster()
_scheduler: MatchScheduler | None = None


@contextmanager
def db_conn() -> Generator:
    """Yield a DB connection, ensure close on exit."""
    conn = get_connection()
    try:
        yield conn
    finally:
        conn.close()


def _new_scheduler() -> MatchScheduler:
    return MatchScheduler(
        get_connection,
        interval_seconds=settings.poll_interval_seconds,
        batch_size=settings.poll_batch_size,
        home_advantage=settings.home_advantage,
        broadcaster=broadcaster,
    )


# ---------- Startup: ensure DB and pro rosters ----------
def _ensure_db() -> None:
    if settings.db_path is not None:
        set_db_path(settings.db_path)
    init_db(
        db_path=get_db_path(),
        roster_path=roster_data_path() if settings.seed_pro_teams else None,
    )


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    global _scheduler
    configure_logging(settings.log_level)
    _ensure_db()
    if settings.scheduler_enabled:
        _scheduler = _new_scheduler()
        _scheduler.start()
    logger.info("LPO API started (db=%s)", get_db_path())
    try:
        yield
    finally:
        if _scheduler is not None:
            await _scheduler.stop()
            _scheduler = None


# ---------- FastAPI app ----------
app = FastAPI(
    title="LPO Manager API",
    description="Team management, league seasons, tournaments and scheduled match resolution",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=[settings.client_url],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Error handling ----------


@app.exception_handler(StarletteHTTPException)
async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    return JSONResponse({"error": exc.detail}, status_code=exc.status_code, headers=getattr(exc, "headers", None))


@app.exception_handler(LpoError)
async def domain_error_handler(request: Request, exc: LpoError) -> JSONResponse:
    return JSONResponse({"error": str(exc)}, status_code=exc.status_code)


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    return JSONResponse(
        {"error": "Invalid request", "details": jsonable_encoder(exc.errors())}, status_code=400
    )


@app.exception_handler(Exception)
async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("Unhandled error on %s %s", request.method, request.url.path)
    return JSONResponse({"error": "Internal server error"}, status_code=500)


# ---------- Request models ----------

security = HTTPBearer(auto_error=False)


class RegisterRequest(BaseModel):
    username: str = Field(..., min_length=3, max_length=50)
    password: str = Field(..., min_length=6)
    team_name: str = Field(..., min_length=1, max_length=50)
    region: Region = Region.SOUTH


class LoginRequest(BaseModel):
    username: str
    password: str


class StartersRequest(BaseModel):
    player_ids: list[str] = Field(..., max_length=5)


class FriendlyRequest(BaseModel):
    opponent_team_id: str | None = None


class SellRequest(BaseModel):
    player_id: str
    price_gold: int = Field(0, ge=0)
    price_diamond: int = Field(0, ge=0)


class ExchangeRequest(BaseModel):
    exchange_type: str = Field(..., description="GOLD_TO_DIAMOND or DIAMOND_TO_GOLD")
    amount: int = Field(..., gt=0)


class SeasonRequest(BaseModel):
    season: int = Field(..., ge=1)


class ResetSeasonRequest(BaseModel):
    season: int | None = Field(None, ge=1)
    start_at: datetime | None = None


class ScheduleRequest(BaseModel):
    league_id: str
    start_at: datetime | None = Field(None, description="First kickoff; default one hour from now")
    spacing_hours: float | None = Field(None, gt=0)


class AddTeamRequest(BaseModel):
    team_id: str


class PlayoffRequest(BaseModel):
    league_id: str


class PromotionRequest(BaseModel):
    season: int = Field(..., ge=1)
    region: Region


class AdvanceRequest(BaseModel):
    seed: int | None = Field(None, description="RNG seed for the cup draw")


class MatchResultRequest(BaseModel):
    home_score: int = Field(..., ge=0, le=2)
    away_score: int = Field(..., ge=0, le=2)


# ---------- Auth dependencies ----------


def _get_claims(credentials: HTTPAuthorizationCredentials | None = Depends(security)) -> dict[str, Any] | None:
    """Token claims {user_id, team_id} or None if no/invalid token."""
    if credentials is None:
        return None
    return decode_token(credentials.credentials)


def require_user(claims: dict[str, Any] | None = Depends(_get_claims)) -> dict[str, Any]:
    if claims is None:
        raise HTTPException(status_code=401, detail="Authentication required")
    return claims


def require_team(claims: dict[str, Any] = Depends(require_user)) -> str:
    team_id = claims.get("team_id")
    if not team_id:
        with db_conn() as conn:
            team = TeamRepository().get_by_user(conn, claims["user_id"])
        if team is None:
            raise HTTPException(status_code=403, detail="No team for this account")
        team_id = team.id
    return team_id


def require_admin(claims: dict[str, Any] = Depends(require_user)) -> dict[str, Any]:
    with db_conn() as conn:
        user = UserRepository().get(conn, claims["user_id"])
    if user is None or not user.is_admin:
        raise HTTPException(status_code=403, detail="Admin access required")
    return claims


# ---------- Auth ----------


@app.post("/api/auth/register")
def register(req: RegisterRequest) -> dict[str, Any]:
    """Create account and team (100,000 gold, 100 diamond, five rookie starters)."""
    with db_conn() as conn:
        user, team = TeamService().register(
            conn, req.username, hash_password(req.password), req.team_name, req.region.value
        )
        return {
            "token": create_access_token(user.id, team.id),
            "user": user.to_dict(),
            "team": team.to_dict(),
        }


@app.post("/api/auth/login")
def login(req: LoginRequest) -> dict[str, Any]:
    with db_conn() as conn:
        user_repo = UserRepository()
        user = user_repo.get_by_username(conn, req.username)
        if user is None or not verify_password(req.password, user.password_hash):
            raise HTTPException(status_code=401, detail="Invalid username or password")
        user_repo.touch_login(conn, user.id, utcnow())
        team = TeamRepository().get_by_user(conn, user.id)
        return {
            "token": create_access_token(user.id, team.id if team else None),
            "user": user.to_dict(),
            "team": team.to_dict() if team else None,
        }


@app.get("/api/auth/me")
def me(claims: dict[str, Any] = Depends(require_user)) -> dict[str, Any]:
    with db_conn() as conn:
        user = UserRepository().get(conn, claims["user_id"])
        if user is None:
            raise HTTPException(status_code=404, detail="User not found")
        team = TeamRepository().get_by_user(conn, user.id)
        return {"user": user.to_dict(), "team": team.to_dict() if team else None}


# ---------- Teams ----------


@app.get("/api/teams/me")
def my_team(team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return TeamService().team_summary(conn, team_id)


@app.post("/api/teams/me/starters")
def set_starters(req: StartersRequest, team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return TeamService().set_starters(conn, team_id, req.player_ids)


@app.get("/api/teams/{team_id}")
def get_team(team_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return TeamService().team_summary(conn, team_id)


# ---------- Leagues ----------


@app.get("/api/leagues")
def list_leagues(
    season: int | None = Query(None, ge=1),
    region: Region | None = Query(None),
) -> dict[str, Any]:
    with db_conn() as conn:
        leagues = LeagueService().list_leagues(conn, season=season, region=region.value if region else None)
        return {"leagues": leagues}


@app.get("/api/leagues/my-standing")
def my_standing(team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        standing = LeagueService().my_standing(conn, team_id)
        if standing is None:
            raise HTTPException(status_code=404, detail="Team is not in a league")
        return standing


@app.get("/api/leagues/{league_id}")
def get_league(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return LeagueService().league_detail(conn, league_id)


@app.get("/api/leagues/{league_id}/standings")
def get_league_standings(league_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        detail = LeagueService().league_detail(conn, league_id)
        return {"league_id": league_id, "standings": detail["standings"]}


# ---------- Matches ----------


@app.get("/api/matches")
def list_matches(
    league_id: str | None = None,
    status: MatchStatus | None = None,
    match_type: MatchType | None = None,
    team_id: str | None = None,
    limit: int = Query(100, ge=1, le=100),
) -> dict[str, Any]:
    with db_conn() as conn:
        matches = MatchRepository().list(
            conn, league_id=league_id, status=status, match_type=match_type, team_id=team_id, limit=limit
        )
        return {"matches": [m.to_dict() for m in matches]}


@app.get("/api/matches/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        match = MatchRepository().get(conn, match_id)
        if match is None:
            raise HTTPException(status_code=404, detail="Match not found")
        return match.to_dict()


# ---------- Friendly matches ----------


@app.post("/api/friendly-matches/create")
def create_friendly_match(req: FriendlyRequest, team_id: str = Depends(require_team)) -> dict[str, Any]:
    """Friendly against another team, kicks off in five minutes."""
    with db_conn() as conn:
        return create_friendly(conn, team_id, req.opponent_team_id, utcnow())


@app.get("/api/friendly-matches/available-teams")
def available_teams(team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"teams": TeamService().available_opponents(conn, team_id)}


# ---------- Transfer market ----------


@app.get("/api/trades/market")
def market(
    position: str | None = None,
    min_overall: int | None = Query(None, ge=0, le=100),
    max_overall: int | None = Query(None, ge=0, le=100),
    sort_by: str = Query("newest", description="price_asc | price_desc | overall_desc | newest"),
) -> dict[str, Any]:
    with db_conn() as conn:
        trades = MarketService().list_market(conn, position, min_overall, max_overall, sort_by)
        return {"trades": trades}


@app.get("/api/trades/my")
def my_trades(team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"trades": MarketService().my_trades(conn, team_id)}


@app.post("/api/trades/sell")
def sell_player(req: SellRequest, team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return MarketService().list_player(
            conn, team_id, req.player_id, req.price_gold, req.price_diamond, utcnow()
        )


@app.post("/api/trades/buy/{trade_id}")
def buy_player(trade_id: str, team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return MarketService().buy(conn, team_id, trade_id, utcnow())


@app.post("/api/trades/cancel/{trade_id}")
def cancel_trade(trade_id: str, team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return MarketService().cancel(conn, team_id, trade_id)


@app.post("/api/trades/exchange")
def exchange_currency(req: ExchangeRequest, team_id: str = Depends(require_team)) -> dict[str, Any]:
    with db_conn() as conn:
        return MarketService().exchange(conn, team_id, req.exchange_type, req.amount, utcnow())


# ---------- League structure, cup and worlds (read) ----------


@app.get("/api/league-structure/worlds/{season}")
def get_worlds(season: int) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().find_tournament(conn, TournamentKind.WORLDS, season)


@app.get("/api/league-structure/promotion/{season}/{region}")
def get_promotion(season: int, region: Region) -> dict[str, Any]:
    with db_conn() as conn:
        return {"matches": TournamentService().promotion_matches(conn, season, region.value)}


@app.get("/api/league-structure/standings/{season}/{region}")
def get_season_standings(season: int, region: Region) -> dict[str, Any]:
    with db_conn() as conn:
        return LeagueService().season_standings(conn, season, region.value)


@app.get("/api/cup/current")
def current_cup(season: int | None = Query(None, ge=1)) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().find_tournament(conn, TournamentKind.CUP, season)


@app.get("/api/cup/history/winners")
def cup_winners() -> dict[str, Any]:
    with db_conn() as conn:
        return {"winners": TournamentService().list_champions(conn, TournamentKind.CUP)}


@app.get("/api/cup/history/league-winners")
def league_winners() -> dict[str, Any]:
    with db_conn() as conn:
        return {"winners": LeagueService().league_winners(conn)}


@app.get("/api/cup/{tournament_id}")
def get_tournament(tournament_id: str) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().tournament_detail(conn, tournament_id)


# ---------- Admin ----------


@app.post("/api/admin/create-admin")
def create_admin(claims: dict[str, Any] = Depends(require_user)) -> dict[str, Any]:
    """Bootstrap: promote the caller to admin, only while no admin exists."""
    with db_conn() as conn:
        user_repo = UserRepository()
        if user_repo.any_admin(conn):
            raise HTTPException(status_code=403, detail="An admin already exists")
        user_repo.set_admin(conn, claims["user_id"])
        logger.info("User %s promoted to admin", claims["user_id"])
        return {"user_id": claims["user_id"], "is_admin": True}


@app.post("/api/admin/initialize-season")
def admin_initialize_season(req: SeasonRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"leagues": LeagueService().initialize_season(conn, req.season)}


@app.post("/api/admin/distribute-teams")
def admin_distribute_teams(req: SeasonRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"leagues": LeagueService().distribute_teams(conn, req.season)}


@app.post("/api/admin/generate-schedule")
def admin_generate_schedule(req: ScheduleRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    hours = req.spacing_hours if req.spacing_hours is not None else settings.fixture_spacing_hours
    with db_conn() as conn:
        count = LeagueService().generate_schedule(
            conn, req.league_id, start=req.start_at, spacing=timedelta(hours=hours)
        )
        return {"league_id": req.league_id, "matches_created": count}


@app.post("/api/admin/reset-season")
def admin_reset_season(req: ResetSeasonRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return LeagueService().reset_season(
            conn, req.season, start=req.start_at,
            spacing=timedelta(hours=settings.fixture_spacing_hours),
        )


@app.post("/api/admin/leagues/{league_id}/add-team")
def admin_add_team(league_id: str, req: AddTeamRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return LeagueService().add_team(conn, league_id, req.team_id)


@app.post("/api/admin/leagues/{league_id}/recalculate-standings")
def admin_recalculate_standings(league_id: str, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"league_id": league_id, "standings": StandingsUpdater().recalculate(conn, league_id)}


@app.post("/api/admin/create-worlds")
def admin_create_worlds(req: SeasonRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().create_worlds(conn, req.season, utcnow())


@app.post("/api/admin/create-cup")
def admin_create_cup(req: SeasonRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().create_cup(conn, req.season, utcnow())


@app.post("/api/admin/create-playoff")
def admin_create_playoff(req: PlayoffRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return TournamentService().create_playoff(conn, req.league_id, utcnow())


@app.post("/api/admin/create-promotion")
def admin_create_promotion(req: PromotionRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        matches = TournamentService().create_promotion_matches(conn, req.season, req.region.value, utcnow())
        return {"matches": matches}


@app.post("/api/admin/apply-promotion")
def admin_apply_promotion(req: PromotionRequest, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return {"swaps": TournamentService().apply_promotion(conn, req.season, req.region.value)}


@app.post("/api/admin/tournaments/{tournament_id}/advance")
def admin_advance_round(
    tournament_id: str, req: AdvanceRequest | None = None, _: dict = Depends(require_admin)
) -> dict[str, Any]:
    rng = SeededRNG(req.seed) if req and req.seed is not None else None
    with db_conn() as conn:
        return TournamentService().advance_round(conn, tournament_id, utcnow(), rng)


@app.post("/api/admin/matches/{match_id}/result")
def admin_match_result(
    match_id: str, req: MatchResultRequest, _: dict = Depends(require_admin)
) -> dict[str, Any]:
    """Manual result entry; applies the same standings/bracket effects as the scheduler."""
    with db_conn() as conn:
        match = MatchRepository().get(conn, match_id)
        if match is None:
            raise NotFoundError(f"Match not found: {match_id}")
        return record_match_result(conn, match, req.home_score, req.away_score, utcnow()).to_dict()


@app.post("/api/admin/matches/{match_id}/restart")
def admin_restart_match(match_id: str, _: dict = Depends(require_admin)) -> dict[str, Any]:
    with db_conn() as conn:
        return restart_match(conn, match_id).to_dict()


@app.post("/api/admin/scheduler/tick")
async def admin_scheduler_tick(_: dict = Depends(require_admin)) -> dict[str, Any]:
    """Run one scheduler tick now instead of waiting for the next interval; subscribers get the live events."""
    results = await _new_scheduler().tick()
    return {"resolved": [r.to_dict() for r in results]}


# ---------- WebSocket ----------


@app.websocket("/ws/matches/{match_id}")
async def websocket_match(websocket: WebSocket, match_id: str):
    """
    Join room match_<id>. On connect the current match row is sent as
    { type: "match_state", ... }; then match_started / match_update /
    match_finished are pushed when the scheduler resolves it.
    """
    await websocket.accept()
    broadcaster.subscribe(match_id, websocket)
    try:
        with db_conn() as conn:
            match = MatchRepository().get(conn, match_id)
        if match is not None:
            await websocket.send_json({"type": "match_state", **match.to_dict()})
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.unsubscribe(match_id, websocket)


# ---------- Run with: uvicorn lpo_manager.api:app --reload ----------
