"""
Append-only scoring event log for one match.
The only removal is truncate_last() (undo); events are never edited in place.
"""
from __future__ import annotations

from datetime import datetime
from typing import Iterable, Iterator

from .errors import EmptyLog
from .schemas import PlayerSlot, ScoringEvent


class EventLog:
    """Ordered sequence of ScoringEvents; index in the list is the sequence index."""

    def __init__(self) -> None:
        self._events: list[ScoringEvent] = []

    @classmethod
    def from_events(cls, events: Iterable[ScoringEvent]) -> EventLog:
        log = cls()
        log._events = list(events)
        return log

    @classmethod
    def from_scorers(cls, scorers: Iterable[PlayerSlot | str]) -> EventLog:
        return cls.from_events(ScoringEvent(PlayerSlot(s)) for s in scorers)

    def append(self, scorer: PlayerSlot, recorded_at: datetime | None = None) -> ScoringEvent:
        scorer = PlayerSlot(scorer)
        event = ScoringEvent(scorer) if recorded_at is None else ScoringEvent(scorer, recorded_at)
        self._events.append(event)
        return event

    def truncate_last(self) -> ScoringEvent:
        if not self._events:
            raise EmptyLog("Event log is empty")
        return self._events.pop()

    def prefix(self, n: int) -> tuple[ScoringEvent, ...]:
        """First n events, read-only. n is clamped to [0, len]."""
        n = max(0, min(n, len(self._events)))
        return tuple(self._events[:n])

    def events(self) -> tuple[ScoringEvent, ...]:
        return tuple(self._events)

    def scorers(self) -> list[str]:
        """Scorer tags in order, for storage."""
        return [e.scorer.value for e in self._events]

    def last(self) -> ScoringEvent | None:
        return self._events[-1] if self._events else None

    def copy(self) -> EventLog:
        return EventLog.from_events(self._events)

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[ScoringEvent]:
        return iter(tuple(self._events))

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, EventLog):
            return NotImplemented
        return self._events == other._events

    def __repr__(self) -> str:
        return f"EventLog({''.join('1' if e.scorer is PlayerSlot.P1 else '2' for e in self._events)!r})"
