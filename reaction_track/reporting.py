from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable

from reaction_track.events import NO_ROUND, Event, EventType
from reaction_track.snapshots import SequencerSnapshot, combatant_columns


@dataclass(frozen=True, slots=True)
class RoundFrame:
    """
    Who acted in one round of one encounter.

    starter is None when the log begins mid-round (e.g. after a restore).
    completed means a later event of the same encounter carries a higher
    round number.
    """

    round_number: int
    starter: int | None
    landings: tuple[int, ...]
    forced_elite: int | None
    completed: bool

    @property
    def acted(self) -> tuple[int, ...]:
        head = (self.starter,) if self.starter is not None else ()
        forced = (self.forced_elite,) if self.forced_elite is not None else ()
        return (*head, *self.landings, *forced)


@dataclass
class _OpenFrame:
    round_number: int
    starter: int | None = None
    forced_elite: int | None = None
    landings: list[int] = field(default_factory=list)

    def close(self, completed: bool) -> RoundFrame:
        return RoundFrame(
            round_number=self.round_number,
            starter=self.starter,
            landings=tuple(self.landings),
            forced_elite=self.forced_elite,
            completed=completed,
        )


_ENCOUNTER_BOUNDARIES = (EventType.ENCOUNTER_STARTED, EventType.ENCOUNTER_RESET)


def group_events_into_rounds(events: Iterable[Event]) -> list[RoundFrame]:
    """
    Split a recorded log into RoundFrames using each event's round stamp.

    A change of round_number inside an encounter closes the open frame as
    completed. An encounter boundary, an event with no round, or the end of
    the log closes it as in progress.
    """
    frames: list[RoundFrame] = []
    current: _OpenFrame | None = None

    for e in events:
        if e.type in _ENCOUNTER_BOUNDARIES or e.round_number == NO_ROUND:
            if current is not None:
                frames.append(current.close(completed=False))
            current = None
            if e.type != EventType.ENCOUNTER_STARTED or e.round_number == NO_ROUND:
                continue

        if current is None or e.round_number != current.round_number:
            if current is not None:
                frames.append(current.close(completed=e.round_number > current.round_number))
            current = _OpenFrame(round_number=e.round_number)

        if e.type == EventType.ROUND_STARTED:
            current.starter = e.combatant
        elif e.type == EventType.CURSOR_MOVED and e.combatant is not None:
            current.landings.append(e.combatant)
        elif e.type == EventType.ELITE_FORCED:
            current.forced_elite = e.combatant

    if current is not None:
        frames.append(current.close(completed=False))
    return frames


def render_rounds_report(frames: Iterable[RoundFrame]) -> str:
    out: list[str] = []
    for f in frames:
        head = "#?" if f.starter is None else f"#{f.starter}"
        chain = " -> ".join([head, *(f"#{cid}" for cid in f.landings)])
        line = f"Round #{f.round_number}: {chain}"
        if f.forced_elite is not None:
            line += f" [forced #{f.forced_elite}]"
        if not f.completed:
            line += " (in progress)"
        out.append(line)

    if not out:
        return "(No rounds were recorded.)\n"
    return "\n".join(out) + "\n"


def render_track(snapshot: SequencerSnapshot) -> str:
    """Plain-text view: one row per combatant, the active slot in brackets."""
    if not snapshot.track:
        return "(No encounter. Set counts and run 'ready'.)\n"

    header = f"Round {snapshot.round_number} | Cursor {snapshot.cursor + 1}/{len(snapshot.track)}"
    if snapshot.pending_round_start:
        header += " | next roll starts a new round"
    out = [header]

    for col in combatant_columns(snapshot):
        cells = [f"[{i}]" if i == col.active_index else str(i) for i in col.slot_indices]
        mark = "*" if col.combatant_id in snapshot.touched else " "
        out.append(f"  {mark} #{col.combatant_id:<3d} S{col.strength}  {', '.join(cells)}")

    return "\n".join(out) + "\n"
