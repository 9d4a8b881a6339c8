"""
Persistence boundary for scorekeeper data.
No business logic. Record conversion and in-memory lookup only.
"""
from .records import match_to_record, match_from_record, event_to_dict, event_from_dict
from .repositories import (
    PlayerRepository,
    GameModeRepository,
    MatchRepository,
    DEFAULT_GAME_MODES,
)

__all__ = [
    "match_to_record",
    "match_from_record",
    "event_to_dict",
    "event_from_dict",
    "PlayerRepository",
    "GameModeRepository",
    "MatchRepository",
    "DEFAULT_GAME_MODES",
]
