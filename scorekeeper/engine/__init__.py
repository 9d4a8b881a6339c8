"""
Scoring engine: rule sets, the per-match event log and the pure state deriver.
No I/O, no locking, no statistics.
"""
from .errors import (
    ScorekeeperError,
    IntegrityError,
    InvalidRuleSet,
    EmptyLog,
    CorruptLog,
)
from .schemas import (
    PlayerSlot,
    ServeType,
    MatchPhase,
    RuleSet,
    ScoringEvent,
    DerivedMatchState,
)
from .event_log import EventLog
from .deriver import derive, derive_timeline, is_deuce, game_winner

__all__ = [
    "ScorekeeperError",
    "IntegrityError",
    "InvalidRuleSet",
    "EmptyLog",
    "CorruptLog",
    "PlayerSlot",
    "ServeType",
    "MatchPhase",
    "RuleSet",
    "ScoringEvent",
    "DerivedMatchState",
    "EventLog",
    "derive",
    "derive_timeline",
    "is_deuce",
    "game_winner",
]
