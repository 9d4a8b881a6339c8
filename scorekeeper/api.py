"""
Local command API for the scorekeeper desktop app.
Thin wrappers around the match controller and the in-memory repositories:
resolve identifiers, run one command, return the updated match.
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager, contextmanager
from dataclasses import dataclass
from typing import Any, AsyncGenerator, Generator, Iterable

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field

from scorekeeper.config import get_settings
from scorekeeper.engine import IntegrityError, PlayerSlot, RuleSet, ScorekeeperError, ServeType
from scorekeeper.models import GameMode, Match, Player
from scorekeeper.persistence import GameModeRepository, MatchRepository, PlayerRepository, match_from_record
from scorekeeper.services import (
    MatchAlreadyStarted,
    MatchCancelled,
    MatchController,
    MatchNotInProgress,
    StatisticsAggregator,
)

logger = logging.getLogger(__name__)


# ---------- Application state ----------


@dataclass
class AppState:
    players: PlayerRepository
    game_modes: GameModeRepository
    matches: MatchRepository
    controller: MatchController


def create_state(seed_game_modes: bool = True) -> AppState:
    game_modes = GameModeRepository()
    if seed_game_modes:
        added = game_modes.seed_defaults()
        if added:
            logger.info("Seeded %d default game modes", added)
    return AppState(
        players=PlayerRepository(),
        game_modes=game_modes,
        matches=MatchRepository(),
        controller=MatchController(StatisticsAggregator()),
    )


_state: AppState | None = None


def get_state() -> AppState:
    global _state
    if _state is None:
        _state = create_state(get_settings().seed_game_modes)
    return _state


def reset_state(seed_game_modes: bool | None = None) -> AppState:
    """Drop all in-memory data (used at startup and by tests)."""
    global _state
    if seed_game_modes is None:
        seed_game_modes = get_settings().seed_game_modes
    _state = create_state(seed_game_modes)
    return _state


def load_matches(state: AppState, records: Iterable[dict[str, Any]]) -> list[Match]:
    """Rebuild stored matches into the state; finished ones are counted in the statistics."""
    loaded = []
    for record in records:
        match = state.controller.restore(match_from_record(record))
        state.matches.add(match)
        loaded.append(match)
    logger.info("Loaded %d stored matches", len(loaded))
    return loaded


# ---------- Lifespan ----------
@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    get_state()
    yield


# ---------- FastAPI app ----------
app = FastAPI(
    title=get_settings().api_title,
    description="Local scorekeeping for head-to-head table tennis",
    version="0.1.0",
    lifespan=lifespan,
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=list(get_settings().cors_origins),
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


# ---------- Request models ----------


class CreateUserRequest(BaseModel):
    name: str = Field("Player", min_length=1, max_length=100)
    nickname: str = Field("", max_length=100)
    color: str = "blue"
    icon: str = "user"


class UpdateUserRequest(BaseModel):
    name: str | None = Field(None, min_length=1, max_length=100)
    color: str | None = None
    icon: str | None = None


class CreateGameModeRequest(BaseModel):
    name: str = Field(..., min_length=1, max_length=100)
    description: str = ""
    points_to_win: int = Field(11, ge=1)
    serves_before_change: int = Field(2, ge=1)
    deuce_enabled: bool = True
    serves_in_deuce: int = Field(1, ge=1)
    serve_type: ServeType = ServeType.FREE


class RuleOverrides(BaseModel):
    serves_in_deuce: int | None = Field(None, ge=1)
    serve_type: ServeType | None = None


class StartMatchRequest(BaseModel):
    player1_id: str
    player2_id: str
    game_mode_id: str
    first_server_id: str | None = Field(None, description="Player id of the first server; can be set later")
    overrides: RuleOverrides | None = None


class PlayerRef(BaseModel):
    player_id: str


# ---------- Helpers ----------


@contextmanager
def command_errors() -> Generator[None, None, None]:
    """Map scorekeeper errors to HTTP responses."""
    try:
        yield
    except IntegrityError as e:
        raise HTTPException(status_code=500, detail=str(e))
    except (MatchCancelled, MatchNotInProgress, MatchAlreadyStarted) as e:
        raise HTTPException(status_code=409, detail=str(e))
    except ScorekeeperError as e:
        raise HTTPException(status_code=400, detail=str(e))


def _player_or_404(state: AppState, player_id: str) -> Player:
    player = state.players.get(player_id)
    if player is None:
        raise HTTPException(status_code=404, detail=f"User not found: {player_id}")
    return player


def _match_or_404(state: AppState, match_id: str) -> Match:
    match = state.matches.get(match_id)
    if match is None:
        raise HTTPException(status_code=404, detail="Match not found")
    return match


def _slot_for(match: Match, player_id: str) -> PlayerSlot:
    with command_errors():
        return match.slot_of(player_id)


def _match_view(state: AppState, match: Match) -> dict[str, Any]:
    d = match.to_dict()
    p1 = state.players.get(match.player1_id)
    p2 = state.players.get(match.player2_id)
    d["player1"] = p1.to_dict() if p1 else None
    d["player2"] = p2.to_dict() if p2 else None
    return d


# ---------- Users ----------


@app.get("/users")
def list_users() -> dict[str, Any]:
    state = get_state()
    return {"users": [p.to_dict() for p in state.players.list_all()]}


@app.post("/users")
def create_user(req: CreateUserRequest) -> dict[str, Any]:
    state = get_state()
    player = state.players.create(req.name, nickname=req.nickname, color=req.color, icon=req.icon)
    return player.to_dict()


@app.put("/users/{user_id}")
def update_user(user_id: str, req: UpdateUserRequest) -> dict[str, Any]:
    state = get_state()
    player = state.players.update(user_id, name=req.name, color=req.color, icon=req.icon)
    if player is None:
        raise HTTPException(status_code=404, detail=f"User not found: {user_id}")
    return player.to_dict()


@app.get("/users/{user_id}/statistics")
def user_statistics(user_id: str) -> dict[str, Any]:
    state = get_state()
    _player_or_404(state, user_id)
    return state.controller.statistics.get(user_id).to_dict()


# ---------- Game modes ----------


@app.get("/game-modes")
def list_game_modes() -> dict[str, Any]:
    state = get_state()
    return {"game_modes": [m.to_dict() for m in state.game_modes.list_all()]}


@app.post("/game-modes")
def create_game_mode(req: CreateGameModeRequest) -> dict[str, Any]:
    state = get_state()
    with command_errors():
        rules = RuleSet(
            points_to_win=req.points_to_win,
            serves_before_change=req.serves_before_change,
            deuce_enabled=req.deuce_enabled,
            serves_in_deuce=req.serves_in_deuce,
            serve_type=req.serve_type,
        )
    mode: GameMode = state.game_modes.create(req.name, rules, req.description)
    return mode.to_dict()


@app.post("/game-modes/basic")
def ensure_basic_game_mode() -> dict[str, Any]:
    state = get_state()
    return state.game_modes.ensure_basic().to_dict()


# ---------- Matches ----------


@app.post("/match/start")
def start_match(req: StartMatchRequest) -> dict[str, Any]:
    state = get_state()
    _player_or_404(state, req.player1_id)
    _player_or_404(state, req.player2_id)
    mode = state.game_modes.get(req.game_mode_id)
    if mode is None:
        raise HTTPException(status_code=404, detail="GameMode not found")
    first_server: PlayerSlot | None = None
    if req.first_server_id is not None:
        if req.first_server_id == req.player1_id:
            first_server = PlayerSlot.P1
        elif req.first_server_id == req.player2_id:
            first_server = PlayerSlot.P2
        else:
            raise HTTPException(status_code=400, detail="First server is not in this match")
    overrides = req.overrides or RuleOverrides()
    with command_errors():
        match = state.controller.start_match(
            req.player1_id,
            req.player2_id,
            game_mode=mode,
            first_server=first_server,
            serves_in_deuce=overrides.serves_in_deuce,
            serve_type=overrides.serve_type,
        )
    state.matches.add(match)
    return _match_view(state, match)


@app.post("/match/{match_id}/point")
def add_point(match_id: str, req: PlayerRef) -> dict[str, Any]:
    state = get_state()
    match = _match_or_404(state, match_id)
    slot = _slot_for(match, req.player_id)
    with command_errors():
        state.controller.add_point(match, slot)
    return _match_view(state, match)


@app.post("/match/{match_id}/undo")
def undo_last_point(match_id: str) -> dict[str, Any]:
    state = get_state()
    match = _match_or_404(state, match_id)
    with command_errors():
        state.controller.undo_last_point(match)
    return _match_view(state, match)


@app.post("/match/{match_id}/server")
def set_first_server(match_id: str, req: PlayerRef) -> dict[str, Any]:
    state = get_state()
    match = _match_or_404(state, match_id)
    slot = _slot_for(match, req.player_id)
    with command_errors():
        state.controller.set_first_server(match, slot)
    return _match_view(state, match)


@app.post("/match/{match_id}/cancel")
def cancel_match(match_id: str) -> dict[str, Any]:
    state = get_state()
    match = _match_or_404(state, match_id)
    with command_errors():
        state.controller.cancel_match(match)
    return {"message": "Match cancelled", "match": _match_view(state, match)}


@app.get("/match/user/{user_id}")
def get_user_matches(user_id: str) -> dict[str, Any]:
    state = get_state()
    _player_or_404(state, user_id)
    return {"matches": [_match_view(state, m) for m in state.matches.list_for_player(user_id)]}


@app.get("/match/{match_id}")
def get_match(match_id: str) -> dict[str, Any]:
    state = get_state()
    match = _match_or_404(state, match_id)
    return _match_view(state, match)


def serve() -> None:
    """Run the API on the configured local host/port."""
    import uvicorn

    settings = get_settings()
    uvicorn.run("scorekeeper.api:app", host=settings.host, port=settings.port, log_level=settings.log_level.lower())


# ---------- Run with: python -m scorekeeper.api (or uvicorn scorekeeper.api:app) ----------
if __name__ == "__main__":
    serve()
