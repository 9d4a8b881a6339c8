"""
Statistics Aggregator: per-player matches_played / wins counters.
Only changed through the paired finish/unfinish hooks, exactly once per
match completion, so finish + unfinish always nets to zero.
"""
from __future__ import annotations

import logging
import threading
from typing import Iterable

from scorekeeper.engine import IntegrityError
from scorekeeper.models import Match, MatchStatus, PlayerStatistics

logger = logging.getLogger(__name__)


class StatisticsCorruption(IntegrityError):
    """Counters would go negative, or a hook was called out of pairing."""


class StatisticsAggregator:
    """
    Process-wide counters. Each hook validates everything before touching a
    counter, so a rejected call changes nothing.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._played: dict[str, int] = {}
        self._wins: dict[str, int] = {}
        self._counted: set[str] = set()  # match ids currently counted as finished

    def on_match_finished(self, match: Match) -> None:
        if match.winner_id is None or not match.involves(match.winner_id):
            raise StatisticsCorruption(f"Match {match.id} finished without a valid winner")
        with self._lock:
            if match.id in self._counted:
                raise StatisticsCorruption(f"Match {match.id} already counted as finished")
            for pid in (match.player1_id, match.player2_id):
                self._played[pid] = self._played.get(pid, 0) + 1
            self._wins[match.winner_id] = self._wins.get(match.winner_id, 0) + 1
            self._counted.add(match.id)
        logger.debug("Counted match %s (winner %s)", match.id, match.winner_id)

    def on_match_unfinished(self, match: Match) -> None:
        if match.status is not MatchStatus.FINISHED or match.winner_id is None:
            raise StatisticsCorruption(f"Match {match.id} is not finished; nothing to reverse")
        with self._lock:
            if match.id not in self._counted:
                raise StatisticsCorruption(f"Match {match.id} was never counted as finished")
            for pid in (match.player1_id, match.player2_id):
                if self._played.get(pid, 0) < 1:
                    raise StatisticsCorruption(f"matches_played for {pid} would go negative")
            if self._wins.get(match.winner_id, 0) < 1:
                raise StatisticsCorruption(f"wins for {match.winner_id} would go negative")
            for pid in (match.player1_id, match.player2_id):
                self._played[pid] -= 1
            self._wins[match.winner_id] -= 1
            self._counted.discard(match.id)
        logger.debug("Reversed match %s (winner was %s)", match.id, match.winner_id)

    def get(self, player_id: str) -> PlayerStatistics:
        with self._lock:
            return PlayerStatistics(
                player_id=player_id,
                matches_played=self._played.get(player_id, 0),
                wins=self._wins.get(player_id, 0),
            )

    def load(self, stats: PlayerStatistics, counted_match_ids: set[str] | None = None) -> None:
        """Seed counters restored from storage (e.g. at startup)."""
        if stats.matches_played < 0 or stats.wins < 0 or stats.wins > stats.matches_played:
            raise StatisticsCorruption(f"Invalid stored statistics for {stats.player_id}")
        with self._lock:
            self._played[stats.player_id] = stats.matches_played
            self._wins[stats.player_id] = stats.wins
            if counted_match_ids:
                self._counted.update(counted_match_ids)

    def rebuild(self, matches: Iterable[Match]) -> None:
        """
        Replace all counters with those implied by the given matches.
        Every finished match counts once; other statuses are ignored.
        """
        finished = [m for m in matches if m.status is MatchStatus.FINISHED]
        for m in finished:
            if m.winner_id is None or not m.involves(m.winner_id):
                raise StatisticsCorruption(f"Match {m.id} finished without a valid winner")
        played: dict[str, int] = {}
        wins: dict[str, int] = {}
        counted: set[str] = set()
        for m in finished:
            if m.id in counted:
                raise StatisticsCorruption(f"Match {m.id} appears twice")
            for pid in (m.player1_id, m.player2_id):
                played[pid] = played.get(pid, 0) + 1
            wins[m.winner_id] = wins.get(m.winner_id, 0) + 1
            counted.add(m.id)
        with self._lock:
            self._played = played
            self._wins = wins
            self._counted = counted
        logger.info("Rebuilt statistics from %d finished matches", len(counted))

    def is_counted(self, match_id: str) -> bool:
        with self._lock:
            return match_id in self._counted
