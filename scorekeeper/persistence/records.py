"""
Match records for the storage hand-off: the JSON-serializable form written
after every successful command, and the loader that rebuilds a match from it.
The stored event log is authoritative; stored score/server are never trusted.
"""
from __future__ import annotations

from datetime import datetime
from typing import Any

from scorekeeper.engine import EventLog, PlayerSlot, RuleSet, ScoringEvent
from scorekeeper.models import Match, MatchStatus
from scorekeeper.services.match_controller import restore_match

RECORD_VERSION = 1


def _parse_datetime(s: str | None) -> datetime | None:
    if s is None:
        return None
    return datetime.fromisoformat(s.replace("Z", "+00:00"))


def event_to_dict(e: ScoringEvent) -> dict[str, Any]:
    """ScoringEvent to JSON-serializable dict."""
    return {"scorer": e.scorer.value, "recorded_at": e.recorded_at.isoformat()}


def event_from_dict(d: dict[str, Any] | str) -> ScoringEvent:
    # Bare scorer tags ("p1"/"p2") are accepted as well.
    if isinstance(d, str):
        return ScoringEvent(PlayerSlot(d))
    recorded_at = _parse_datetime(d.get("recorded_at"))
    if recorded_at is None:
        return ScoringEvent(PlayerSlot(d["scorer"]))
    return ScoringEvent(PlayerSlot(d["scorer"]), recorded_at)


def match_to_record(match: Match) -> dict[str, Any]:
    """Everything needed to rebuild the match after a restart."""
    return {
        "version": RECORD_VERSION,
        "id": match.id,
        "player1_id": match.player1_id,
        "player2_id": match.player2_id,
        "game_mode_id": match.game_mode_id,
        "game_mode_name": match.game_mode_name,
        "rules": match.rule_set.to_dict(),
        "status": match.status.value,
        "first_server": match.first_server.value if match.first_server else None,
        "events": [event_to_dict(e) for e in match.event_log],
        "score": {"p1": match.score_p1, "p2": match.score_p2},
        "server": match.server.value if match.server else None,
        "winner_id": match.winner_id,
        "start_time": match.start_time.isoformat(),
        "end_time": match.end_time.isoformat() if match.end_time else None,
    }


def match_from_record(record: dict[str, Any]) -> Match:
    """Rebuild a match and re-derive its cached fields. Raises CorruptLog on mismatch."""
    if record.get("version", RECORD_VERSION) != RECORD_VERSION:
        raise ValueError(f"Unsupported record version: {record.get('version')}")
    first_server = record.get("first_server")
    match = Match(
        id=record["id"],
        player1_id=record["player1_id"],
        player2_id=record["player2_id"],
        rule_set=RuleSet.from_dict(record["rules"]),
        start_time=_parse_datetime(record["start_time"]),
        status=MatchStatus(record.get("status", MatchStatus.IN_PROGRESS)),
        event_log=EventLog.from_events(event_from_dict(e) for e in record.get("events", [])),
        first_server=PlayerSlot(first_server) if first_server else None,
        game_mode_id=record.get("game_mode_id"),
        game_mode_name=record.get("game_mode_name"),
        end_time=_parse_datetime(record.get("end_time")),
    )
    return restore_match(match)
