"""
Tests for the scoring engine: rule set validation, the event log and the
state deriver (win margin, serve rotation, deuce, fixed serve, replay).
"""
from __future__ import annotations

import random
from pathlib import Path

import pytest

import sys
sys.path.insert(0, str(Path(__file__).resolve().parent.parent.parent))

from scorekeeper.engine import (
    CorruptLog,
    DerivedMatchState,
    EmptyLog,
    EventLog,
    InvalidRuleSet,
    MatchPhase,
    PlayerSlot,
    RuleSet,
    ServeType,
    derive,
    derive_timeline,
)

P1, P2 = PlayerSlot.P1, PlayerSlot.P2
STANDARD = RuleSet(points_to_win=11, serves_before_change=2, deuce_enabled=True, serves_in_deuce=1)


def log_of(*scorers: str) -> EventLog:
    return EventLog.from_scorers(scorers)


def alternating(pairs: int) -> list[str]:
    return ["p1", "p2"] * pairs


# ---- RuleSet ----
class TestRuleSet:
    @pytest.mark.parametrize("field_name", ["points_to_win", "serves_before_change", "serves_in_deuce"])
    def test_rejects_values_below_one(self, field_name):
        with pytest.raises(InvalidRuleSet):
            RuleSet(**{field_name: 0})

    def test_rejects_bool_as_count(self):
        with pytest.raises(InvalidRuleSet):
            RuleSet(points_to_win=True)

    @pytest.mark.parametrize("value", ["false", 0, 1, None])
    def test_deuce_enabled_must_be_bool(self, value):
        with pytest.raises(InvalidRuleSet):
            RuleSet(deuce_enabled=value)

    def test_rejects_unknown_serve_type(self):
        with pytest.raises(InvalidRuleSet):
            RuleSet(serve_type="cross")

    def test_serve_type_string_is_normalized(self):
        assert RuleSet(serve_type="fixed").serve_type is ServeType.FIXED

    def test_is_immutable(self):
        rules = RuleSet()
        with pytest.raises(AttributeError):
            rules.points_to_win = 21

    def test_with_overrides_returns_new_rule_set(self):
        base = RuleSet(21, 5, True, 1, ServeType.FREE)
        changed = base.with_overrides(serves_in_deuce=2, serve_type="fixed")
        assert changed.serves_in_deuce == 2
        assert changed.serve_type is ServeType.FIXED
        assert changed.points_to_win == 21
        assert base.serves_in_deuce == 1
        assert base.with_overrides() is base

    def test_with_overrides_is_validated(self):
        with pytest.raises(InvalidRuleSet):
            RuleSet().with_overrides(serves_in_deuce=0)

    def test_dict_round_trip(self):
        rules = RuleSet(7, 1, False, 1, ServeType.FIXED)
        assert RuleSet.from_dict(rules.to_dict()) == rules

    def test_from_dict_missing_field(self):
        with pytest.raises(InvalidRuleSet):
            RuleSet.from_dict({"points_to_win": 11})


# ---- EventLog ----
class TestEventLog:
    def test_truncate_empty_log_raises(self):
        with pytest.raises(EmptyLog):
            EventLog().truncate_last()

    def test_append_and_truncate_last(self):
        log = EventLog()
        log.append(P1)
        log.append(P2)
        removed = log.truncate_last()
        assert removed.scorer is P2
        assert log.scorers() == ["p1"]
        assert len(log) == 1

    def test_prefix_is_read_only_copy(self):
        log = log_of("p1", "p2", "p2")
        first_two = log.prefix(2)
        assert [e.scorer for e in first_two] == [P1, P2]
        assert isinstance(first_two, tuple)
        assert len(log) == 3
        assert log.prefix(10) == log.events()
        assert log.prefix(0) == ()

    def test_copy_is_independent(self):
        log = log_of("p1")
        clone = log.copy()
        clone.append(P2)
        assert len(log) == 1
        assert len(clone) == 2


# ---- Derived state invariants ----
class TestDerivedMatchState:
    def test_finished_requires_winner(self):
        with pytest.raises(ValueError):
            DerivedMatchState(11, 0, P1, MatchPhase.FINISHED, None)

    def test_winner_requires_finished(self):
        with pytest.raises(ValueError):
            DerivedMatchState(5, 0, P1, MatchPhase.IN_PROGRESS, P1)

    def test_empty_log(self):
        state = derive(STANDARD, P2, ())
        assert state.score == (0, 0)
        assert state.server is P2
        assert state.phase is MatchPhase.IN_PROGRESS
        assert state.winner is None


# ---- Win condition ----
class TestWinMargin:
    def test_eleven_nine_finishes(self):
        state = derive(STANDARD, P1, log_of(*(["p2"] * 9 + ["p1"] * 11)))
        assert state.score == (11, 9)
        assert state.phase is MatchPhase.FINISHED
        assert state.winner is P1

    def test_eleven_ten_is_not_finished(self):
        state = derive(STANDARD, P1, log_of(*(alternating(10) + ["p1"])))
        assert state.score == (11, 10)
        assert state.phase is MatchPhase.DEUCE
        assert state.winner is None

    def test_twelve_ten_finishes(self):
        state = derive(STANDARD, P1, log_of(*(alternating(10) + ["p1", "p1"])))
        assert state.score == (12, 10)
        assert state.phase is MatchPhase.FINISHED
        assert state.winner is P1

    def test_long_deuce(self):
        state = derive(STANDARD, P1, log_of(*(alternating(15) + ["p2", "p2"])))
        assert state.score == (15, 17)
        assert state.winner is P2

    def test_no_deuce_first_to_points_wins(self):
        turbo = RuleSet(points_to_win=7, serves_before_change=1, deuce_enabled=False)
        tied = derive(turbo, P1, log_of(*alternating(6)))
        assert tied.score == (6, 6)
        assert tied.phase is MatchPhase.IN_PROGRESS
        state = derive(turbo, P1, log_of(*(alternating(6) + ["p1"])))
        assert state.score == (7, 6)
        assert state.winner is P1

    def test_single_point_game_with_deuce_needs_two_point_lead(self):
        rules = RuleSet(points_to_win=1, serves_before_change=1, deuce_enabled=True, serves_in_deuce=1)
        one_up = derive(rules, P1, log_of("p1"))
        assert one_up.phase is MatchPhase.DEUCE
        assert derive(rules, P1, log_of("p1", "p1")).winner is P1

    def test_ten_nine_is_not_deuce(self):
        state = derive(STANDARD, P1, log_of(*(alternating(9) + ["p1"])))
        assert state.score == (10, 9)
        assert state.phase is MatchPhase.IN_PROGRESS


# ---- Serve rotation ----
class TestServeRotation:
    def test_serve_changes_every_two_points_regardless_of_scorer(self):
        rules = RuleSet(points_to_win=11, serves_before_change=2)
        timeline = derive_timeline(rules, P1, log_of("p2", "p2", "p2", "p1", "p1").events())
        assert [s.server for s in timeline] == [P1, P2, P2, P1, P1]

    def test_serves_before_change_five(self):
        rules = RuleSet(points_to_win=21, serves_before_change=5)
        timeline = derive_timeline(rules, P2, log_of(*(["p1"] * 10)).events())
        assert [s.server for s in timeline] == [P2] * 4 + [P1] * 5 + [P2]

    def test_deuce_switches_rotation_to_every_point(self):
        events = log_of(*(alternating(11))).events()
        timeline = derive_timeline(STANDARD, P1, events)
        # 18 points (9-9): nine rotations, P2 serving
        assert timeline[17].server is P2
        # 10-9: not deuce yet, P2 still serving
        assert timeline[18].score == (10, 9)
        assert timeline[18].server is P2
        # 10-10: deuce, rotate every point from here
        assert timeline[19].score == (10, 10)
        assert timeline[19].phase is MatchPhase.DEUCE
        assert [s.server for s in timeline[19:]] == [P1, P2, P1]

    def test_deuce_rotation_granularity_two(self):
        rules = RuleSet(points_to_win=11, serves_before_change=2, serves_in_deuce=2)
        timeline = derive_timeline(rules, P1, log_of(*alternating(12)).events())
        assert [s.server for s in timeline[19:]] == [P1, P1, P2, P2, P1]

    def test_deuce_disabled_keeps_normal_rotation(self):
        rules = RuleSet(points_to_win=11, serves_before_change=2, deuce_enabled=False, serves_in_deuce=1)
        timeline = derive_timeline(rules, P1, log_of(*alternating(10)).events())
        assert timeline[-1].score == (10, 10)
        assert timeline[-1].phase is MatchPhase.IN_PROGRESS
        assert timeline[-1].server is P1

    def test_fixed_serve_never_changes(self):
        rules = RuleSet(points_to_win=11, serves_before_change=1, serve_type=ServeType.FIXED)
        timeline = derive_timeline(rules, P2, log_of(*alternating(15)).events())
        assert all(s.server is P2 for s in timeline)
        assert timeline[-1].phase is MatchPhase.DEUCE


# ---- Corrupt logs ----
class TestCorruptLog:
    def test_event_after_win_is_corrupt(self):
        with pytest.raises(CorruptLog):
            derive(STANDARD, P1, log_of(*(["p1"] * 11 + ["p2"])))

    def test_events_without_first_server_are_corrupt(self):
        with pytest.raises(CorruptLog):
            derive(STANDARD, None, log_of("p1"))


# ---- Determinism & replay ----
def _random_game(rng: random.Random, rules: RuleSet) -> EventLog:
    log = EventLog()
    while not derive(rules, P1, log).is_finished:
        log.append(rng.choice([P1, P2]))
    return log


def test_derive_is_deterministic():
    rng = random.Random(7)
    log = _random_game(rng, STANDARD)
    assert derive(STANDARD, P1, log) == derive(STANDARD, P1, log)


@pytest.mark.parametrize("seed", [1, 2, 3, 42])
def test_timeline_matches_derive_over_every_prefix(seed):
    rng = random.Random(seed)
    log = _random_game(rng, STANDARD)
    timeline = derive_timeline(STANDARD, P2, log.events())
    assert len(timeline) == len(log)
    for i, state in enumerate(timeline):
        assert state == derive(STANDARD, P2, log.prefix(i + 1))
    assert timeline[-1].is_finished
