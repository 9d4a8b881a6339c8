"""
Match State Deriver: folds a rule set over an event log prefix into
score, server and phase. Pure and deterministic; undo is truncate + re-derive.

Rules per point:
  - deuce is active when deuce is enabled and both players have at least
    points_to_win - 1 (e.g. 10-10 in a game to 11);
  - free serve rotates after serves_before_change points, or serves_in_deuce
    points while deuce is active; fixed serve never rotates;
  - a game is won at points_to_win with a 2-point lead (deuce enabled) or at
    points_to_win outright (deuce disabled).
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable, Sequence

from .errors import CorruptLog
from .schemas import DerivedMatchState, MatchPhase, PlayerSlot, RuleSet, ScoringEvent, ServeType

WIN_MARGIN = 2


def is_deuce(rule_set: RuleSet, score_p1: int, score_p2: int) -> bool:
    return rule_set.deuce_enabled and min(score_p1, score_p2) >= rule_set.points_to_win - 1


def game_winner(rule_set: RuleSet, score_p1: int, score_p2: int) -> PlayerSlot | None:
    """Returns the slot that has won at this score, else None."""
    margin = WIN_MARGIN if rule_set.deuce_enabled else 1
    if score_p1 >= rule_set.points_to_win and score_p1 - score_p2 >= margin:
        return PlayerSlot.P1
    if score_p2 >= rule_set.points_to_win and score_p2 - score_p1 >= margin:
        return PlayerSlot.P2
    return None


@dataclass
class _Fold:
    """Mutable accumulator used while folding; never escapes derive()."""
    score_p1: int
    score_p2: int
    server: PlayerSlot | None
    points_since_rotation: int
    phase: MatchPhase
    winner: PlayerSlot | None = None

    def freeze(self) -> DerivedMatchState:
        return DerivedMatchState(
            score_p1=self.score_p1,
            score_p2=self.score_p2,
            server=self.server,
            phase=self.phase,
            winner=self.winner,
        )


def _initial(first_server: PlayerSlot | None) -> _Fold:
    return _Fold(
        score_p1=0,
        score_p2=0,
        server=PlayerSlot(first_server) if first_server is not None else None,
        points_since_rotation=0,
        phase=MatchPhase.IN_PROGRESS,
    )


def _apply(rule_set: RuleSet, acc: _Fold, event: ScoringEvent, index: int) -> None:
    if acc.phase is MatchPhase.FINISHED:
        raise CorruptLog(f"Event at index {index} recorded after the match was won")
    if acc.server is None:
        raise CorruptLog(f"Event at index {index} recorded before a first server was set")

    if event.scorer is PlayerSlot.P1:
        acc.score_p1 += 1
    else:
        acc.score_p2 += 1

    deuce = is_deuce(rule_set, acc.score_p1, acc.score_p2)

    if rule_set.serve_type is ServeType.FREE:
        acc.points_since_rotation += 1
        threshold = rule_set.serves_in_deuce if deuce else rule_set.serves_before_change
        if acc.points_since_rotation >= threshold:
            acc.server = acc.server.other
            acc.points_since_rotation = 0

    winner = game_winner(rule_set, acc.score_p1, acc.score_p2)
    if winner is not None:
        acc.phase = MatchPhase.FINISHED
        acc.winner = winner
    elif deuce:
        acc.phase = MatchPhase.DEUCE
    else:
        acc.phase = MatchPhase.IN_PROGRESS


def derive(
    rule_set: RuleSet,
    first_server: PlayerSlot | None,
    events: Iterable[ScoringEvent],
) -> DerivedMatchState:
    """Fold events from the empty state. Raises CorruptLog on a malformed log."""
    acc = _initial(first_server)
    for index, event in enumerate(events):
        _apply(rule_set, acc, event, index)
    return acc.freeze()


def derive_timeline(
    rule_set: RuleSet,
    first_server: PlayerSlot | None,
    events: Sequence[ScoringEvent],
) -> list[DerivedMatchState]:
    """State after each event, in one pass. timeline[i] == derive(..., events[: i + 1])."""
    acc = _initial(first_server)
    timeline: list[DerivedMatchState] = []
    for index, event in enumerate(events):
        _apply(rule_set, acc, event, index)
        timeline.append(acc.freeze())
    return timeline
