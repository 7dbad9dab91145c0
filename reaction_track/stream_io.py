from __future__ import annotations

import json
from dataclasses import asdict
from pathlib import Path
from typing import Any, Iterable

from reaction_track.events import NO_ROUND, Event, EventType


class InputFormatError(ValueError):
    """Raised when a user-supplied JSON file fails validation."""


def read_json_file(path: Path) -> Any:
    """Read a JSON document, translating the usual failures into InputFormatError."""
    if not path.exists():
        raise InputFormatError(f"file not found: {path}")
    if not path.is_file():
        raise InputFormatError(f"not a file: {path}")

    try:
        return json.loads(path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise InputFormatError(
            f"invalid JSON: {e.msg} (line {e.lineno}, col {e.colno})"
        ) from e


def _int_field(item: dict[str, Any], name: str, where: str, minimum: int) -> int:
    value = item.get(name)
    if not isinstance(value, int) or isinstance(value, bool) or value < minimum:
        raise InputFormatError(f"{where}: {name!r} must be an integer >= {minimum}, got {value!r}")
    return value


def _event_from_json(position: int, item: object) -> Event:
    where = f"events[{position}]"
    if not isinstance(item, dict):
        raise InputFormatError(f"{where}: expected an object, got {type(item).__name__}")

    index = _int_field(item, "index", where, minimum=1)
    round_number = _int_field(item, "round_number", where, minimum=NO_ROUND)

    command = item.get("command", "")
    if not isinstance(command, str):
        raise InputFormatError(f"{where}: 'command' must be a string")

    try:
        event_type = EventType(item.get("type"))
    except ValueError as e:
        raise InputFormatError(f"{where}: unknown event type {item.get('type')!r}") from e

    combatant = item.get("combatant")
    if combatant is not None and (not isinstance(combatant, int) or isinstance(combatant, bool) or combatant < 1):
        raise InputFormatError(f"{where}: 'combatant' must be a positive id or null")

    data = item.get("data", {})
    if not isinstance(data, dict):
        raise InputFormatError(f"{where}: 'data' must be an object")

    return Event(
        index=index,
        command=command,
        round_number=round_number,
        type=event_type,
        combatant=combatant,
        data=data,
    )


def load_event_stream(path: Path) -> list[Event]:
    """
    Load a recorded event log from JSON.

    The root is an array of event objects. Indexes must run 1, 2, 3, ... with
    no gaps, as the recorder writes them, and a round number may only drop
    back on ENCOUNTER_STARTED, ENCOUNTER_RESET or an emptied track.
    """
    raw = read_json_file(path)
    if not isinstance(raw, list):
        raise InputFormatError("event stream must be a JSON array")

    events: list[Event] = []
    for position, item in enumerate(raw):
        event = _event_from_json(position, item)

        if event.index != position + 1:
            raise InputFormatError(
                f"events[{position}]: index {event.index} out of sequence, expected {position + 1}"
            )
        if events and event.round_number < events[-1].round_number and not _may_lower_round(event):
            raise InputFormatError(
                f"events[{position}]: round {event.round_number} after round "
                f"{events[-1].round_number} without a reset"
            )
        events.append(event)

    return events


def _may_lower_round(event: Event) -> bool:
    if event.type in (EventType.ENCOUNTER_STARTED, EventType.ENCOUNTER_RESET):
        return True
    return event.type == EventType.TRACK_REBUILT and event.round_number == NO_ROUND


def dump_event_stream(events: Iterable[Event]) -> list[dict[str, Any]]:
    """JSON-ready form of a recorded log; load_event_stream reads it back."""
    out: list[dict[str, Any]] = []
    for e in events:
        d = asdict(e)
        d["type"] = e.type.value
        out.append(d)
    return out
