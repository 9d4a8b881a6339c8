"""
Error hierarchy for the scoring engine.
Every rejected command raises a ScorekeeperError before anything is mutated.
"""
from __future__ import annotations


class ScorekeeperError(ValueError):
    """Base class for all scorekeeper errors."""


class IntegrityError(ScorekeeperError):
    """
    A stored invariant was found violated (a bug elsewhere, not bad input).
    The affected match must not be mutated further.
    """


# ---------- Engine errors ----------


class InvalidRuleSet(ScorekeeperError):
    """Rule set failed validation at construction."""


class EmptyLog(ScorekeeperError):
    """truncate_last() called on a log with no events."""


class CorruptLog(IntegrityError):
    """Log holds events past the winning point, or events with no first server."""
