from __future__ import annotations

from dataclasses import dataclass

from reaction_track.models import Combatant, Slot
from reaction_track.round_tracker import Phase


@dataclass(frozen=True, slots=True)
class SequencerSnapshot:
    """Read-only view handed to collaborators after every command."""

    track: tuple[Slot, ...]
    cursor: int
    round_number: int
    pending_round_start: bool
    roster: tuple[Combatant, ...]
    touched: frozenset[int]
    phase: Phase

    @property
    def active_slot(self) -> Slot | None:
        if not self.track:
            return None
        return self.track[self.cursor]


@dataclass(frozen=True, slots=True)
class CombatantColumn:
    """
    One combatant as a display column: its slot indices in order, plus the
    index currently under the cursor (None when the cursor is elsewhere).
    """

    combatant_id: int
    strength: int
    slot_indices: tuple[int, ...]
    active_index: int | None


def combatant_columns(snapshot: SequencerSnapshot) -> list[CombatantColumn]:
    """Columns in track order (strength desc, id asc)."""
    active = snapshot.active_slot
    ordered = sorted(snapshot.roster, key=lambda c: (-c.strength, c.id))
    return [
        CombatantColumn(
            combatant_id=c.id,
            strength=c.strength,
            slot_indices=tuple(range(1, c.strength + 1)),
            active_index=(active.slot_index if active is not None and active.owner_id == c.id else None),
        )
        for c in ordered
    ]
