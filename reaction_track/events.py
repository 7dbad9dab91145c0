from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any


class EventType(str, Enum):
    """What the tracker did. Values double as the JSON spelling."""

    ENCOUNTER_STARTED = "ENCOUNTER_STARTED"
    ENCOUNTER_RESET = "ENCOUNTER_RESET"
    TRACK_REBUILT = "TRACK_REBUILT"
    ROUND_STARTED = "ROUND_STARTED"
    ROLL_APPLIED = "ROLL_APPLIED"
    CURSOR_MOVED = "CURSOR_MOVED"
    ROUND_WRAPPED = "ROUND_WRAPPED"
    ELITE_FORCED = "ELITE_FORCED"


# Round number stamped on events recorded while no encounter is running.
NO_ROUND = 0


@dataclass(frozen=True, slots=True)
class Event:
    """
    One recorded tracker transition.

    - index: 1-based position in the log, gap-free
    - command: name of the sequencer call that caused it ("" outside any call)
    - round_number: the round in force when the event was recorded; a round
      start carries the new number, a wrap or forced elite the closing one
    """

    index: int
    command: str
    round_number: int
    type: EventType
    combatant: int | None = None
    data: dict[str, Any] = field(default_factory=dict)
