from __future__ import annotations

from typing import Iterable, Sequence

from reaction_track.models import Combatant, Slot


def build_track(combatants: Iterable[Combatant]) -> tuple[Slot, ...]:
    """
    Build the ordered slot sequence for a roster.

    Rules:
    - Owners are ordered by strength (descending), then id (ascending).
    - Each owner contributes `strength` consecutive slots, slot_index 1..strength.
    - Track length == sum of strengths; an empty roster gives an empty track.

    Pure and total: the input is never mutated.
    """
    ordered = sorted(combatants, key=lambda c: (-c.strength, c.id))
    slots: list[Slot] = []
    for c in ordered:
        for i in range(1, c.strength + 1):
            slots.append(Slot(owner_id=c.id, owner_strength=c.strength, slot_index=i))
    return tuple(slots)


def locate_first_slot(track: Sequence[Slot], combatant_id: int) -> int | None:
    """Index of the combatant's first slot, or None if it has no slots in this track."""
    for i, slot in enumerate(track):
        if slot.owner_id == combatant_id:
            return i
    return None
