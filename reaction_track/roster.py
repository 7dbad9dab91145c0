from __future__ import annotations

from typing import Mapping

from reaction_track.models import STRENGTHS, Combatant


class RosterStore:
    """
    Owns the current set of combatants and their id assignment.

    The roster itself is an immutable tuple that is replaced on every edit, so
    callers holding an older roster never see it change underneath them.

    Inputs are trusted: the sequencer validates strengths and counts first.
    """

    def __init__(self, combatants: tuple[Combatant, ...] = ()) -> None:
        self._combatants: tuple[Combatant, ...] = tuple(combatants)

    @property
    def combatants(self) -> tuple[Combatant, ...]:
        return self._combatants

    def __len__(self) -> int:
        return len(self._combatants)

    def __contains__(self, combatant_id: object) -> bool:
        return any(c.id == combatant_id for c in self._combatants)

    def initialize(self, counts: Mapping[int, int]) -> tuple[Combatant, ...]:
        """
        Replace the roster with fresh combatants, ids 1..N.

        Ids are handed out tier 4 first, then 3, 2, 1, matching the track order
        so that initial id order and slot order agree.
        """
        roster: list[Combatant] = []
        next_id = 1
        for strength in STRENGTHS:
            for _ in range(counts.get(strength, 0)):
                roster.append(Combatant(id=next_id, strength=strength))
                next_id += 1
        self._combatants = tuple(roster)
        return self._combatants

    def add(self, strength: int) -> tuple[Combatant, ...]:
        """Append a combatant with id max(existing) + 1 (1 for an empty roster)."""
        new_id = max((c.id for c in self._combatants), default=0) + 1
        self._combatants = self._combatants + (Combatant(id=new_id, strength=strength),)
        return self._combatants

    def remove(self, combatant_id: int) -> tuple[Combatant, ...]:
        self._combatants = tuple(c for c in self._combatants if c.id != combatant_id)
        return self._combatants

    def clear(self) -> tuple[Combatant, ...]:
        self._combatants = ()
        return self._combatants
