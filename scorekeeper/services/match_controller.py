"""
Match Controller: the only component that mutates a match's event log.
State machine, guards, and the terminal-transition statistics hooks.

Every command runs under the match's lock and either fully succeeds (log,
cached state and statistics consistent) or raises before mutating anything.
"""
from __future__ import annotations

import logging
import threading
import uuid
from contextlib import contextmanager
from dataclasses import replace
from typing import Iterator

from scorekeeper.engine import (
    CorruptLog,
    DerivedMatchState,
    IntegrityError,
    MatchPhase,
    PlayerSlot,
    RuleSet,
    ScorekeeperError,
    ServeType,
    derive,
)
from scorekeeper.models import GameMode, Match, MatchStatus, utcnow
from scorekeeper.services.statistics import StatisticsAggregator

logger = logging.getLogger(__name__)

# ---------- Exceptions ----------


class InvalidMatchSetup(ScorekeeperError):
    """Match cannot be created (e.g. a player against themselves)."""


class ServerNotSet(ScorekeeperError):
    """A point was added before the first server was chosen."""


class MatchAlreadyStarted(ScorekeeperError):
    """First server can only be chosen before the first point."""


class MatchNotInProgress(ScorekeeperError):
    """Command requires status in_progress."""


class MatchCancelled(ScorekeeperError):
    """Cancelled matches are frozen: no points, no undo."""


class NothingToUndo(ScorekeeperError):
    """Undo requested on an empty log."""


# ---------- Valid transitions ----------

_VALID_TRANSITIONS: dict[MatchStatus, set[MatchStatus]] = {
    MatchStatus.IN_PROGRESS: {MatchStatus.IN_PROGRESS, MatchStatus.FINISHED, MatchStatus.CANCELLED},
    MatchStatus.FINISHED: {MatchStatus.IN_PROGRESS},  # undo of the winning point only
    MatchStatus.CANCELLED: set(),
}


def _check_transition(match: Match, new_status: MatchStatus) -> None:
    if new_status not in _VALID_TRANSITIONS[match.status]:
        raise IntegrityError(
            f"Invalid transition for match {match.id}: {match.status.value} -> {new_status.value}"
        )


# ---------- MatchController ----------


class MatchController:
    """
    Orchestrates start, first server, point, undo and cancel for matches.
    Identifier lookup is the caller's job; commands receive resolved objects.
    """

    def __init__(self, statistics: StatisticsAggregator | None = None) -> None:
        self.statistics = statistics or StatisticsAggregator()
        self._registry_lock = threading.Lock()
        self._locks: dict[str, threading.Lock] = {}
        self._halted: dict[str, IntegrityError] = {}

    # ---------- Locking & integrity ----------

    def _lock_for(self, match_id: str) -> threading.Lock:
        with self._registry_lock:
            lock = self._locks.get(match_id)
            if lock is None:
                lock = self._locks[match_id] = threading.Lock()
            return lock

    @contextmanager
    def _exclusive(self, match: Match) -> Iterator[None]:
        """Hold the match lock; halt the match if an integrity error escapes."""
        with self._lock_for(match.id):
            halted = self._halted.get(match.id)
            if halted is not None:
                raise type(halted)(f"Match {match.id} is halted after an integrity failure: {halted}")
            try:
                yield
            except IntegrityError as e:
                self._halted[match.id] = e
                logger.error("Halting match %s: %s", match.id, e)
                raise

    def is_halted(self, match_id: str) -> bool:
        return match_id in self._halted

    def forget(self, match_id: str) -> None:
        """Drop the lock and halt record of a match the caller no longer holds."""
        with self._registry_lock:
            self._locks.pop(match_id, None)
            self._halted.pop(match_id, None)

    def _release_if_terminal(self, match: Match) -> None:
        # Cancelled matches never change again.
        if match.status is MatchStatus.CANCELLED and match.id not in self._halted:
            with self._registry_lock:
                self._locks.pop(match.id, None)

    # ---------- Read ----------

    def state(self, match: Match) -> DerivedMatchState:
        """Derived state from the full log (never from the cached fields)."""
        return derive(match.rule_set, match.first_server, match.event_log)

    def restore(self, match: Match) -> Match:
        """
        Take over a match loaded from storage: re-derive its cached fields and,
        if it is finished and not yet counted, register it with the statistics.
        """
        with self._exclusive(match):
            restore_match(match)
            if match.status is MatchStatus.FINISHED and not self.statistics.is_counted(match.id):
                self.statistics.on_match_finished(match)
            logger.info("Restored match %s (%s, %d points)", match.id, match.status.value, len(match.event_log))
        self._release_if_terminal(match)
        return match

    # ---------- Commands ----------

    def start_match(
        self,
        player1_id: str,
        player2_id: str,
        rule_set: RuleSet | None = None,
        first_server: PlayerSlot | str | None = None,
        game_mode: GameMode | None = None,
        serves_in_deuce: int | None = None,
        serve_type: ServeType | str | None = None,
        match_id: str | None = None,
    ) -> Match:
        """
        Create an in-progress match with an empty log.
        Rules come from rule_set, else game_mode; overrides apply on top.
        """
        if player1_id == player2_id:
            raise InvalidMatchSetup("A match needs two different players")
        if rule_set is None:
            if game_mode is None:
                raise InvalidMatchSetup("A rule set or game mode is required")
            rule_set = game_mode.rule_set
        rules = rule_set.with_overrides(serves_in_deuce=serves_in_deuce, serve_type=serve_type)
        slot = PlayerSlot(first_server) if first_server is not None else None
        match = Match(
            id=match_id or str(uuid.uuid4()),
            player1_id=player1_id,
            player2_id=player2_id,
            rule_set=rules,
            start_time=utcnow(),
            first_server=slot,
            game_mode_id=game_mode.id if game_mode else None,
            game_mode_name=game_mode.name if game_mode else None,
        )
        match.apply_derived(derive(rules, slot, ()))
        logger.info(
            "Started match %s: %s vs %s (to %d, first server %s)",
            match.id, player1_id, player2_id, rules.points_to_win, slot.value if slot else "unset",
        )
        return match

    def set_first_server(self, match: Match, player: PlayerSlot | str) -> Match:
        slot = PlayerSlot(player)
        with self._exclusive(match):
            if match.status is not MatchStatus.IN_PROGRESS or len(match.event_log) > 0:
                raise MatchAlreadyStarted(
                    f"First server can only be set before the first point (status {match.status.value}, "
                    f"{len(match.event_log)} points played)"
                )
            state = derive(match.rule_set, slot, ())
            match.first_server = slot
            match.apply_derived(state)
        return match

    def add_point(self, match: Match, scorer: PlayerSlot | str) -> Match:
        slot = PlayerSlot(scorer)
        with self._exclusive(match):
            if match.status is MatchStatus.CANCELLED:
                raise MatchCancelled(f"Match {match.id} is cancelled")
            if match.status is not MatchStatus.IN_PROGRESS:
                raise MatchNotInProgress(f"Match {match.id} is {match.status.value}")
            if match.first_server is None:
                raise ServerNotSet(f"Choose the first server of match {match.id} before scoring")

            staged = match.event_log.copy()
            staged.append(slot)
            state = derive(match.rule_set, match.first_server, staged)

            if state.phase is MatchPhase.FINISHED:
                _check_transition(match, MatchStatus.FINISHED)
                winner_id = match.player_id_for(state.winner)
                self.statistics.on_match_finished(
                    replace(match, status=MatchStatus.FINISHED, winner_id=winner_id)
                )
                match.event_log = staged
                match.apply_derived(state)
                match.status = MatchStatus.FINISHED
                match.end_time = utcnow()
                logger.info(
                    "Match %s finished %d-%d, winner %s",
                    match.id, state.score_p1, state.score_p2, winner_id,
                )
            else:
                match.event_log = staged
                match.apply_derived(state)
                logger.debug(
                    "Match %s point to %s: %d-%d (%s)",
                    match.id, slot.value, state.score_p1, state.score_p2, state.phase.value,
                )
        return match

    def undo_last_point(self, match: Match) -> Match:
        with self._exclusive(match):
            if match.status is MatchStatus.CANCELLED:
                raise MatchCancelled(f"Match {match.id} is cancelled")
            if len(match.event_log) == 0:
                raise NothingToUndo(f"Match {match.id} has no points to undo")

            staged = match.event_log.copy()
            staged.truncate_last()
            state = derive(match.rule_set, match.first_server, staged)

            if match.status is MatchStatus.FINISHED:
                if state.phase is MatchPhase.FINISHED:
                    raise CorruptLog(f"Match {match.id} still finished after removing the winning point")
                _check_transition(match, MatchStatus.IN_PROGRESS)
                self.statistics.on_match_unfinished(match)
                match.event_log = staged
                match.apply_derived(state)
                match.status = MatchStatus.IN_PROGRESS
                match.end_time = None
                logger.info("Match %s reopened by undo at %d-%d", match.id, state.score_p1, state.score_p2)
            else:
                match.event_log = staged
                match.apply_derived(state)
                logger.debug("Match %s undo: %d-%d", match.id, state.score_p1, state.score_p2)
        return match

    def cancel_match(self, match: Match) -> Match:
        with self._exclusive(match):
            if match.status is not MatchStatus.IN_PROGRESS:
                raise MatchNotInProgress(f"Only in-progress matches can be cancelled (status {match.status.value})")
            _check_transition(match, MatchStatus.CANCELLED)
            match.status = MatchStatus.CANCELLED
            match.end_time = utcnow()
            logger.info("Match %s cancelled at %d-%d", match.id, match.score_p1, match.score_p2)
        self._release_if_terminal(match)
        return match


def restore_match(match: Match) -> Match:
    """
    Re-derive the cached fields of a match loaded from storage.
    Raises CorruptLog if the stored status disagrees with the log.
    """
    state = derive(match.rule_set, match.first_server, match.event_log)
    if match.status is MatchStatus.FINISHED and state.phase is not MatchPhase.FINISHED:
        raise CorruptLog(f"Match {match.id} stored as finished but its log is not won")
    if match.status is MatchStatus.IN_PROGRESS and state.phase is MatchPhase.FINISHED:
        raise CorruptLog(f"Match {match.id} stored as in progress but its log is won")
    match.apply_derived(state)
    return match
