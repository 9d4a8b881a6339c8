"""
Data models for the scorekeeper.
Domain records only. No persistence or API logic.

A match is owned by the MatchController; its score/server/phase fields are a
cache of the event-log fold and are refreshed after every successful command.
"""
from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from scorekeeper.engine import DerivedMatchState, EventLog, MatchPhase, PlayerSlot, RuleSet, ScorekeeperError


class PlayerNotInMatch(ScorekeeperError):
    """Player id is neither player1 nor player2 of the match."""


# ---------- Match status (state machine) ----------
class MatchStatus(str, Enum):
    """Match lifecycle: in_progress ⇄ finished (undo), in_progress → cancelled."""
    IN_PROGRESS = "in_progress"
    FINISHED = "finished"
    CANCELLED = "cancelled"


# ---------- Player ----------
@dataclass
class Player:
    """A person who plays matches. Win/played counters live in the StatisticsAggregator."""
    id: str
    name: str
    created_at: datetime
    nickname: str = ""
    color: str = "blue"
    icon: str = "user"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "nickname": self.nickname,
            "color": self.color,
            "icon": self.icon,
            "created_at": self.created_at.isoformat(),
        }


# ---------- GameMode ----------
@dataclass
class GameMode:
    """Named, reusable rule set ("Standard 11", "Classic 21", ...)."""
    id: str
    name: str
    rule_set: RuleSet
    description: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            **self.rule_set.to_dict(),
        }


# ---------- PlayerStatistics ----------
@dataclass(frozen=True)
class PlayerStatistics:
    """Finished-match counters for one player. Cancelled matches never count."""
    player_id: str
    matches_played: int = 0
    wins: int = 0

    @property
    def losses(self) -> int:
        return self.matches_played - self.wins

    @property
    def win_rate(self) -> float:
        if self.matches_played == 0:
            return 0.0
        return self.wins / self.matches_played

    def to_dict(self) -> dict[str, Any]:
        return {
            "player_id": self.player_id,
            "matches_played": self.matches_played,
            "wins": self.wins,
            "losses": self.losses,
            "win_rate": round(self.win_rate, 4),
        }


# ---------- Match ----------
@dataclass
class Match:
    """
    One head-to-head game between two distinct players under a fixed rule set.
    event_log is the source of truth; score_p1/score_p2/server/phase/winner_id
    are derived and only written by the controller.
    """
    id: str
    player1_id: str
    player2_id: str
    rule_set: RuleSet
    start_time: datetime
    status: MatchStatus = MatchStatus.IN_PROGRESS
    event_log: EventLog = field(default_factory=EventLog)
    first_server: PlayerSlot | None = None
    game_mode_id: str | None = None
    game_mode_name: str | None = None
    end_time: datetime | None = None
    winner_id: str | None = None
    # Cache of the fold
    score_p1: int = 0
    score_p2: int = 0
    server: PlayerSlot | None = None
    phase: MatchPhase = MatchPhase.IN_PROGRESS

    def player_id_for(self, slot: PlayerSlot) -> str:
        return self.player1_id if PlayerSlot(slot) is PlayerSlot.P1 else self.player2_id

    def slot_of(self, player_id: str) -> PlayerSlot:
        if player_id == self.player1_id:
            return PlayerSlot.P1
        if player_id == self.player2_id:
            return PlayerSlot.P2
        raise PlayerNotInMatch(f"Player {player_id} is not in match {self.id}")

    def involves(self, player_id: str) -> bool:
        return player_id in (self.player1_id, self.player2_id)

    def apply_derived(self, state: DerivedMatchState) -> None:
        """Refresh the cached fields from a derived state."""
        self.score_p1 = state.score_p1
        self.score_p2 = state.score_p2
        self.server = state.server
        self.phase = state.phase
        self.winner_id = self.player_id_for(state.winner) if state.winner is not None else None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "id": self.id,
            "player1_id": self.player1_id,
            "player2_id": self.player2_id,
            "status": self.status.value,
            "rules": self.rule_set.to_dict(),
            "score": {"p1": self.score_p1, "p2": self.score_p2},
            "phase": self.phase.value,
            "is_deuce": self.phase is MatchPhase.DEUCE,
            "server": self.server.value if self.server else None,
            "server_id": self.player_id_for(self.server) if self.server else None,
            "first_server": self.first_server.value if self.first_server else None,
            "events": self.event_log.scorers(),
            "start_time": self.start_time.isoformat(),
            "end_time": self.end_time.isoformat() if self.end_time else None,
            "winner_id": self.winner_id,
        }
        if self.game_mode_id is not None:
            d["game_mode_id"] = self.game_mode_id
            d["game_mode_name"] = self.game_mode_name
        return d


def utcnow() -> datetime:
    return datetime.now(timezone.utc)
