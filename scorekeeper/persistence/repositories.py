"""
Repository interfaces for players, game modes and matches.
No business logic: lookup and registration only, held in process memory.
Durable storage is the host application's concern; it receives match
records via persistence.records.
"""
from __future__ import annotations

import threading
import uuid

from coolname import generate

from scorekeeper.engine import RuleSet, ServeType
from scorekeeper.models import GameMode, Match, Player, utcnow

DEFAULT_GAME_MODES: tuple[tuple[str, str, RuleSet], ...] = (
    ("Standard 11", "Classic game to 11 points (2 serves each)", RuleSet(11, 2, True, 1, ServeType.FREE)),
    ("Classic 21", "Old school game to 21 points (5 serves each)", RuleSet(21, 5, True, 1, ServeType.FREE)),
    ("Turbo 7", "Fast game to 7, switch serve every point, no deuce", RuleSet(7, 1, False, 1, ServeType.FREE)),
)


def fun_nickname() -> str:
    """Two capitalized words, e.g. "Brave Otter", for players created without one."""
    return " ".join(word.capitalize() for word in generate(2))


# ---------- PlayerRepository ----------


class PlayerRepository:
    """Register and look up players."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._players: dict[str, Player] = {}

    def create(
        self,
        name: str,
        nickname: str = "",
        color: str = "blue",
        icon: str = "user",
        id: str | None = None,
    ) -> Player:
        player = Player(
            id=id or str(uuid.uuid4()),
            name=name,
            created_at=utcnow(),
            nickname=nickname or fun_nickname(),
            color=color,
            icon=icon,
        )
        with self._lock:
            self._players[player.id] = player
        return player

    def get(self, player_id: str) -> Player | None:
        with self._lock:
            return self._players.get(player_id)

    def update(
        self,
        player_id: str,
        name: str | None = None,
        color: str | None = None,
        icon: str | None = None,
    ) -> Player | None:
        with self._lock:
            player = self._players.get(player_id)
            if player is None:
                return None
            if name is not None:
                player.name = name
            if color is not None:
                player.color = color
            if icon is not None:
                player.icon = icon
            return player

    def list_all(self) -> list[Player]:
        with self._lock:
            return sorted(self._players.values(), key=lambda p: p.created_at)


# ---------- GameModeRepository ----------


class GameModeRepository:
    """Named rule sets. seed_defaults() installs the built-in modes once."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._modes: dict[str, GameMode] = {}

    def create(self, name: str, rule_set: RuleSet, description: str = "", id: str | None = None) -> GameMode:
        mode = GameMode(id=id or str(uuid.uuid4()), name=name, rule_set=rule_set, description=description)
        with self._lock:
            self._modes[mode.id] = mode
        return mode

    def get(self, mode_id: str) -> GameMode | None:
        with self._lock:
            return self._modes.get(mode_id)

    def get_by_name(self, name: str) -> GameMode | None:
        with self._lock:
            for mode in self._modes.values():
                if mode.name.lower() == name.lower():
                    return mode
        return None

    def list_all(self) -> list[GameMode]:
        with self._lock:
            return list(self._modes.values())

    def seed_defaults(self) -> int:
        """Insert the default modes if none exist. Returns how many were added."""
        with self._lock:
            if self._modes:
                return 0
        for name, description, rules in DEFAULT_GAME_MODES:
            self.create(name, rules, description)
        return len(DEFAULT_GAME_MODES)

    def ensure_basic(self) -> GameMode:
        """Return the "Standard 11" mode, creating it if it was never seeded."""
        name, description, rules = DEFAULT_GAME_MODES[0]
        with self._lock:
            for mode in self._modes.values():
                if mode.name.lower() == name.lower():
                    return mode
            mode = GameMode(id=str(uuid.uuid4()), name=name, rule_set=rules, description=description)
            self._modes[mode.id] = mode
            return mode


# ---------- MatchRepository ----------


class MatchRepository:
    """Holds the live Match objects the controller operates on."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._matches: dict[str, Match] = {}

    def add(self, match: Match) -> Match:
        with self._lock:
            self._matches[match.id] = match
        return match

    def get(self, match_id: str) -> Match | None:
        with self._lock:
            return self._matches.get(match_id)

    def list_for_player(self, player_id: str) -> list[Match]:
        """Matches the player took part in, newest first."""
        with self._lock:
            matches = [m for m in self._matches.values() if m.involves(player_id)]
        return sorted(matches, key=lambda m: m.start_time, reverse=True)
