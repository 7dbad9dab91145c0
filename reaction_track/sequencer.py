from __future__ import annotations

import logging
import math
import re
from dataclasses import replace
from typing import Mapping

from reaction_track.models import STRENGTHS, RawInputs, is_valid_strength
from reaction_track.persistence import (
    KeyValueStore,
    PersistedState,
    load_persisted_state,
    save_persisted_state,
)
from reaction_track.random_source import RandomSource, SystemRandomSource
from reaction_track.recorder import EventRecorder
from reaction_track.roster import RosterStore
from reaction_track.round_tracker import Phase, RoundTracker
from reaction_track.snapshots import SequencerSnapshot

logger = logging.getLogger(__name__)

_LEADING_INT = re.compile(r"^\s*([+-]?\d+)")


def sanitize_count(raw: object) -> int:
    """
    Clamp a raw roster count to a non-negative int.

    Strings use their leading integer ("3", " 2 ", "4abc" -> 4); floats are
    floored. Negative, non-finite, unparsable or bool values -> 0.
    """
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, int(raw))
    if isinstance(raw, float):
        return max(0, math.floor(raw)) if math.isfinite(raw) else 0
    if isinstance(raw, str):
        m = _LEADING_INT.match(raw)
        return max(0, int(m.group(1))) if m else 0
    return 0


class Sequencer:
    """
    Command facade over RosterStore + TrackBuilder + RoundTracker.

    Every command validates its input, runs to completion, saves through the
    optional KeyValueStore (failures are logged, never raised) and returns a
    fresh SequencerSnapshot. One instance per session; nothing is shared.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        store: KeyValueStore | None = None,
        recorder: EventRecorder | None = None,
        restore: bool = True,
    ) -> None:
        self._rng = rng if rng is not None else SystemRandomSource()
        self._store = store
        self._recorder = recorder
        self._roster = RosterStore()
        self._tracker = RoundTracker(rng=self._rng, recorder=recorder)
        self._inputs = RawInputs.blank()

        if store is not None and restore:
            self._restore(load_persisted_state(store))

    # ----------------------------
    # Read side
    # ----------------------------

    @property
    def inputs(self) -> RawInputs:
        return self._inputs

    def snapshot(self) -> SequencerSnapshot:
        state = self._tracker.state
        return SequencerSnapshot(
            track=self._tracker.track,
            cursor=state.cursor,
            round_number=state.round_number,
            pending_round_start=state.pending_round_start,
            roster=self._roster.combatants,
            touched=state.touched,
            phase=self._tracker.phase,
        )

    # ----------------------------
    # Raw input fields (collaborator-owned, persisted)
    # ----------------------------

    def set_count_input(self, strength: int, text: str) -> None:
        if strength not in STRENGTHS:
            return
        counts = dict(self._inputs.counts)
        counts[strength] = str(text)
        self._inputs = replace(self._inputs, counts=counts)
        self._persist()

    def set_roll_input(self, text: str) -> None:
        self._inputs = replace(self._inputs, roll=str(text))
        self._persist()

    # ----------------------------
    # Commands
    # ----------------------------

    def ready(self, counts: Mapping[int | str, object] | None = None) -> SequencerSnapshot:
        """
        Start an encounter from per-tier counts (missing tiers count as 0).
        Without counts, the stored raw count inputs are used. A zero total resets.
        """
        self._begin_command("ready")
        if counts is not None:
            self._inputs = replace(
                self._inputs,
                counts={s: _as_input_text(_lookup_tier(counts, s)) for s in STRENGTHS},
            )

        sanitized = {s: sanitize_count(self._inputs.counts.get(s, "")) for s in STRENGTHS}
        roster = self._roster.initialize(sanitized)
        if not roster:
            logger.debug("ready with zero combatants; resetting")
            self._reset_board()
        else:
            self._tracker.start_encounter(roster)
        return self._finish()

    def add_combatant(self, strength: int) -> SequencerSnapshot:
        """Append a combatant of the given tier; anything outside 1..4 is ignored."""
        self._begin_command("add")
        if not is_valid_strength(strength):
            logger.warning("ignoring add_combatant with invalid strength %r", strength)
            return self.snapshot()

        roster = self._roster.add(strength)
        if self._tracker.phase is Phase.EMPTY:
            self._tracker.start_encounter(roster)
        else:
            self._tracker.rebuild_after_roster_change(roster)
        return self._finish()

    def remove_combatant(self, combatant_id: int) -> SequencerSnapshot:
        """
        Remove a combatant. The cursor moves to a random survivor; removing the
        last one resets. Unknown ids are ignored.
        """
        self._begin_command("remove")
        if combatant_id not in self._roster:
            logger.debug("remove_combatant: #%r not on roster; no-op", combatant_id)
            return self.snapshot()

        remaining = self._roster.remove(combatant_id)
        if not remaining:
            self._reset_board()
        else:
            preferred = self._rng.choice(list(remaining))
            self._tracker.rebuild_after_roster_change(remaining, preferred_id=preferred.id)
        return self._finish()

    def submit_roll(self, value: object = None) -> SequencerSnapshot:
        """
        Advance for one die result. None uses the stored raw roll input.
        No-op while no encounter is in progress.
        """
        self._begin_command("roll")
        if value is None:
            value = self._inputs.roll
        else:
            self._inputs = replace(self._inputs, roll=_as_input_text(value))

        if self._tracker.phase is Phase.EMPTY:
            return self._finish()

        self._tracker.step(self._roster.combatants, value)
        return self._finish()

    def reset(self) -> SequencerSnapshot:
        """Clear roster and round state. Raw input fields are kept."""
        self._begin_command("reset")
        self._reset_board()
        return self._finish()

    def reset_all(self) -> SequencerSnapshot:
        """reset() plus blank raw input fields."""
        self._begin_command("reset_all")
        self._reset_board()
        self._inputs = RawInputs.blank()
        return self._finish()

    # ----------------------------
    # Internals
    # ----------------------------

    def _begin_command(self, name: str) -> None:
        if self._recorder is not None:
            self._recorder.begin(name)

    def _finish(self) -> SequencerSnapshot:
        self._persist()
        return self.snapshot()

    def _reset_board(self) -> None:
        self._roster.clear()
        self._tracker.reset()

    def _restore(self, persisted: PersistedState) -> None:
        self._inputs = persisted.inputs
        self._roster = RosterStore(persisted.roster)
        self._tracker.restore(persisted.track, persisted.state)
        logger.debug(
            "restored %d combatants, round %d, cursor %d",
            len(self._roster),
            self._tracker.state.round_number,
            self._tracker.state.cursor,
        )

    def _persist(self) -> None:
        if self._store is None:
            return
        save_persisted_state(
            self._store,
            PersistedState(
                inputs=self._inputs,
                roster=self._roster.combatants,
                track=self._tracker.track,
                state=self._tracker.state,
            ),
        )


def _lookup_tier(counts: Mapping[int | str, object], strength: int) -> object:
    if strength in counts:
        return counts[strength]
    return counts.get(str(strength), "")


def _as_input_text(value: object) -> str:
    if value is None:
        return ""
    return str(value)
