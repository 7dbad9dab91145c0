from __future__ import annotations

from typing import Any, Iterator

from reaction_track.events import Event, EventType


class EventRecorder:
    """
    Append-only log of tracker events.

    The sequencer names the command in progress with begin(); the tracker
    calls record() with its current round. Both are optional: a tracker with
    no recorder records nothing, and events recorded before any begin() carry
    an empty command name.
    """

    def __init__(self) -> None:
        self._events: list[Event] = []
        self._command = ""

    @property
    def events(self) -> list[Event]:
        return list(self._events)

    @property
    def command(self) -> str:
        return self._command

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def begin(self, command: str) -> None:
        self._command = command

    def record(
        self,
        event_type: EventType,
        round_number: int,
        combatant: int | None = None,
        **data: Any,
    ) -> Event:
        event = Event(
            index=len(self._events) + 1,
            command=self._command,
            round_number=round_number,
            type=event_type,
            combatant=combatant,
            data=dict(data),
        )
        self._events.append(event)
        return event

    def since(self, index: int) -> list[Event]:
        """Events recorded after the given index (0 returns everything)."""
        return self._events[max(0, index):]
