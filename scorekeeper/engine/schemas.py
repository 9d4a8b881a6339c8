"""
Value types for the scoring engine: rule sets, scoring events and the
derived match state. Everything here is immutable.
"""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from .errors import InvalidRuleSet


class PlayerSlot(str, Enum):
    """Side of the table a player occupies in a match."""
    P1 = "p1"
    P2 = "p2"

    @property
    def other(self) -> PlayerSlot:
        return PlayerSlot.P2 if self is PlayerSlot.P1 else PlayerSlot.P1


class ServeType(str, Enum):
    """free: serve rotates by the rule set; fixed: the first server always serves."""
    FREE = "free"
    FIXED = "fixed"


class MatchPhase(str, Enum):
    IN_PROGRESS = "in_progress"
    DEUCE = "deuce"
    FINISHED = "finished"


# ---------- RuleSet ----------


@dataclass(frozen=True)
class RuleSet:
    """
    Win condition, serve rotation and deuce behaviour of a game mode.
    Immutable; a match keeps its own copy taken at start.
    """
    points_to_win: int = 11
    serves_before_change: int = 2
    deuce_enabled: bool = True
    serves_in_deuce: int = 1
    serve_type: ServeType = ServeType.FREE

    def __post_init__(self) -> None:
        for name in ("points_to_win", "serves_before_change", "serves_in_deuce"):
            value = getattr(self, name)
            if isinstance(value, bool) or not isinstance(value, int) or value < 1:
                raise InvalidRuleSet(f"{name} must be an integer >= 1 (got {value!r})")
        try:
            object.__setattr__(self, "serve_type", ServeType(self.serve_type))
        except ValueError:
            raise InvalidRuleSet(f"Unknown serve_type: {self.serve_type!r}") from None
        if not isinstance(self.deuce_enabled, bool):
            raise InvalidRuleSet(f"deuce_enabled must be a bool (got {self.deuce_enabled!r})")

    def with_overrides(
        self,
        serves_in_deuce: int | None = None,
        serve_type: ServeType | str | None = None,
    ) -> RuleSet:
        """Match-level overrides chosen at start; returns a new validated RuleSet."""
        changes: dict[str, Any] = {}
        if serves_in_deuce is not None:
            changes["serves_in_deuce"] = serves_in_deuce
        if serve_type is not None:
            changes["serve_type"] = serve_type
        return replace(self, **changes) if changes else self

    def to_dict(self) -> dict[str, Any]:
        return {
            "points_to_win": self.points_to_win,
            "serves_before_change": self.serves_before_change,
            "deuce_enabled": self.deuce_enabled,
            "serves_in_deuce": self.serves_in_deuce,
            "serve_type": self.serve_type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> RuleSet:
        try:
            return cls(
                points_to_win=data["points_to_win"],
                serves_before_change=data["serves_before_change"],
                deuce_enabled=data.get("deuce_enabled", True),
                serves_in_deuce=data.get("serves_in_deuce", 1),
                serve_type=data.get("serve_type", ServeType.FREE),
            )
        except KeyError as e:
            raise InvalidRuleSet(f"Missing rule field: {e.args[0]}") from None


# ---------- Events ----------


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class ScoringEvent:
    """One point won by `scorer`. Position in the log is its sequence index."""
    scorer: PlayerSlot
    recorded_at: datetime = field(default_factory=_utcnow, compare=False)


# ---------- Derived state ----------


@dataclass(frozen=True)
class DerivedMatchState:
    """
    Result of folding a rule set over an event log.
    winner is set iff phase is FINISHED; any other combination is rejected.
    server is None only before a first server is chosen (empty log).
    """
    score_p1: int = 0
    score_p2: int = 0
    server: PlayerSlot | None = None
    phase: MatchPhase = MatchPhase.IN_PROGRESS
    winner: PlayerSlot | None = None

    def __post_init__(self) -> None:
        if (self.phase is MatchPhase.FINISHED) != (self.winner is not None):
            raise ValueError(f"winner must be set iff phase is finished (phase={self.phase.value}, winner={self.winner})")
        if self.score_p1 < 0 or self.score_p2 < 0:
            raise ValueError("scores cannot be negative")

    @property
    def score(self) -> tuple[int, int]:
        return (self.score_p1, self.score_p2)

    @property
    def points_played(self) -> int:
        return self.score_p1 + self.score_p2

    @property
    def is_deuce(self) -> bool:
        return self.phase is MatchPhase.DEUCE

    @property
    def is_finished(self) -> bool:
        return self.phase is MatchPhase.FINISHED

    def to_dict(self) -> dict[str, Any]:
        return {
            "score": {"p1": self.score_p1, "p2": self.score_p2},
            "server": self.server.value if self.server else None,
            "phase": self.phase.value,
            "winner": self.winner.value if self.winner else None,
        }
