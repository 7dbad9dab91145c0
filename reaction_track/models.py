from __future__ import annotations

from dataclasses import dataclass

# Tier order used for id assignment and track ordering.
STRENGTHS: tuple[int, ...] = (4, 3, 2, 1)
ELITE_STRENGTH = 4


@dataclass(frozen=True, slots=True)
class Combatant:
    id: int
    # Strength tier in 1..4; also the number of slots the combatant occupies.
    strength: int


@dataclass(frozen=True, slots=True)
class Slot:
    owner_id: int
    owner_strength: int
    # 1-based position inside the owner's group.
    slot_index: int


def is_valid_strength(value: object) -> bool:
    return isinstance(value, int) and not isinstance(value, bool) and value in STRENGTHS


@dataclass(frozen=True)
class RawInputs:
    """
    Input fields exactly as a collaborator captured them (e.g. text boxes).
    Kept across resets; they are sanitized only when a command consumes them.
    """

    counts: dict[int, str]
    roll: str = ""

    @classmethod
    def blank(cls) -> RawInputs:
        return cls(counts={s: "" for s in STRENGTHS}, roll="")
