"""
Service layer: match state machine and statistics.
No storage here; callers persist the match record after each command.
"""
from .statistics import StatisticsAggregator, StatisticsCorruption
from .match_controller import (
    MatchController,
    restore_match,
    InvalidMatchSetup,
    ServerNotSet,
    MatchAlreadyStarted,
    MatchNotInProgress,
    MatchCancelled,
    NothingToUndo,
)

__all__ = [
    "StatisticsAggregator",
    "StatisticsCorruption",
    "MatchController",
    "restore_match",
    "InvalidMatchSetup",
    "ServerNotSet",
    "MatchAlreadyStarted",
    "MatchNotInProgress",
    "MatchCancelled",
    "NothingToUndo",
]
