from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any, Sequence

from reaction_track.events import EventType
from reaction_track.models import ELITE_STRENGTH, Combatant, Slot
from reaction_track.random_source import RandomSource, SystemRandomSource
from reaction_track.recorder import EventRecorder
from reaction_track.track import build_track, locate_first_slot

logger = logging.getLogger(__name__)


class Phase(str, Enum):
    EMPTY = "EMPTY"
    ACTIVE = "ACTIVE"
    # An elite was forced at round end; the next step starts the new round first.
    AWAITING_ROUND_START = "AWAITING_ROUND_START"


@dataclass(frozen=True, slots=True)
class RoundState:
    """
    Snapshot of the round bookkeeping. Replaced wholesale on every transition.

    - cursor indexes a valid slot whenever the track is non-empty (0 otherwise)
    - touched holds the ids that acted this round; reset to the starter each round
    - pending_round_start marks a cursor parked on a forced elite
    """

    cursor: int = 0
    round_number: int = 0
    touched: frozenset[int] = frozenset()
    pending_round_start: bool = False


EMPTY_STATE = RoundState()


def sanitize_roll(raw: object) -> int:
    """
    Clamp a raw die input to a non-negative int.

    - ints are used as-is
    - floats must be finite, then are floored
    - strings are stripped and parsed as a number ("" -> 0)
    - anything unparsable, non-finite or negative -> 0
    - bools are not dice results -> 0
    """
    if isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return max(0, int(raw))

    if isinstance(raw, float):
        value = raw
    elif isinstance(raw, str):
        text = raw.strip()
        if not text:
            return 0
        try:
            value = float(text)
        except ValueError:
            return 0
    else:
        return 0

    if not math.isfinite(value):
        return 0
    return max(0, math.floor(value))


class RoundTracker:
    """
    Turn-sequencing state machine: owns the track, the cursor and the round state.

    States (see Phase): EMPTY -> ACTIVE <-> AWAITING_ROUND_START, back to EMPTY
    only when the roster empties or the encounter is reset.

    Roster-dependent operations take the current roster as an argument; the
    tracker never edits it.
    """

    def __init__(
        self,
        rng: RandomSource | None = None,
        recorder: EventRecorder | None = None,
    ) -> None:
        self._rng = rng if rng is not None else SystemRandomSource()
        self._recorder = recorder
        self._track: tuple[Slot, ...] = ()
        self._state: RoundState = EMPTY_STATE

    @property
    def track(self) -> tuple[Slot, ...]:
        return self._track

    @property
    def state(self) -> RoundState:
        return self._state

    @property
    def phase(self) -> Phase:
        if not self._track:
            return Phase.EMPTY
        if self._state.pending_round_start:
            return Phase.AWAITING_ROUND_START
        return Phase.ACTIVE

    @property
    def current_slot(self) -> Slot | None:
        if not self._track:
            return None
        return self._track[self._state.cursor]

    def restore(self, track: tuple[Slot, ...], state: RoundState) -> None:
        """Install a previously saved track/state pair (already validated by the caller)."""
        self._track = tuple(track)
        self._state = state if self._track else EMPTY_STATE

    # ----------------------------
    # Transitions
    # ----------------------------

    def start_encounter(self, roster: Sequence[Combatant]) -> RoundState:
        """
        Build the track and begin round 1 at a random combatant's first slot.
        An empty roster resets instead.
        """
        if not roster:
            return self.reset()

        self._track = build_track(roster)
        starter = self._rng.choice(list(roster))
        pos = locate_first_slot(self._track, starter.id)
        self._state = RoundState(
            cursor=pos if pos is not None else 0,
            round_number=1,
            touched=frozenset({starter.id}),
            pending_round_start=False,
        )

        logger.debug("encounter started: %d slots, starter=#%d", len(self._track), starter.id)
        self._record(EventType.ENCOUNTER_STARTED, track_length=len(self._track))
        self._record(
            EventType.ROUND_STARTED,
            combatant=starter.id,
            cursor=self._state.cursor,
        )
        return self._state

    def rebuild_after_roster_change(
        self,
        roster: Sequence[Combatant],
        preferred_id: int | None = None,
    ) -> RoundState:
        """
        Rebuild the track after an add/remove and re-seat the cursor.

        Cursor policy, first match wins:
          1) preferred_id, if it has slots in the new track
          2) the combatant under the cursor before the rebuild
          3) the first slot of the new track
        touched is reset to the chosen combatant alone. round_number and
        pending_round_start are left as they were.
        """
        previous = self.current_slot
        self._track = build_track(roster)

        if not self._track:
            self._state = EMPTY_STATE
            logger.debug("track rebuilt empty; tracker reset")
            self._record(EventType.TRACK_REBUILT, track_length=0, policy="empty")
            return self._state

        target: int | None = None
        pos: int | None = None
        policy = "first"

        if preferred_id is not None:
            pos = locate_first_slot(self._track, preferred_id)
            if pos is not None:
                target, policy = preferred_id, "preferred"

        if pos is None and previous is not None:
            pos = locate_first_slot(self._track, previous.owner_id)
            if pos is not None:
                target, policy = previous.owner_id, "previous"

        if pos is None or target is None:
            pos, target = 0, self._track[0].owner_id

        self._state = replace(self._state, cursor=pos, touched=frozenset({target}))

        logger.debug("track rebuilt: %d slots, cursor=%d (#%d, %s)", len(self._track), pos, target, policy)
        self._record(
            EventType.TRACK_REBUILT,
            combatant=target,
            cursor=pos,
            track_length=len(self._track),
            policy=policy,
        )
        return self._state

    def step(self, roster: Sequence[Combatant], raw_roll: object) -> RoundState:
        """
        Advance the cursor for one die roll.

        Rules:
        - A pending round start is performed first, before any movement.
        - The cursor advances roll + 1 slots (every roll moves at least one slot).
        - Without wraparound, the landing slot's owner joins touched.
        - On wraparound the cursor lands on dest without touching its owner, then:
            * elites exist and none acted this round -> park on a random elite's
              first slot, mark it touched, and defer the new round to the next step
            * otherwise -> start the next round immediately
        - An empty track is a no-op.
        """
        if not self._track:
            return self._state

        roll = sanitize_roll(raw_roll)

        if self._state.pending_round_start:
            self._state = self._begin_round(roster)

        length = len(self._track)
        advance = roll + 1
        reach = self._state.cursor + advance
        dest = reach % length
        wrapped = reach > length - 1

        self._record(EventType.ROLL_APPLIED, roll=roll, advance=advance, wrapped=wrapped)

        if not wrapped:
            owner = self._track[dest].owner_id
            self._state = replace(self._state, cursor=dest, touched=self._state.touched | {owner})
            self._record(
                EventType.CURSOR_MOVED,
                combatant=owner,
                cursor=dest,
                slot_index=self._track[dest].slot_index,
            )
            return self._state

        # Round boundary: dest belongs to the next cycle and is not an action.
        self._state = replace(self._state, cursor=dest)
        self._record(
            EventType.ROUND_WRAPPED,
            combatant=self._track[dest].owner_id,
            cursor=dest,
        )

        elites = [c for c in roster if c.strength == ELITE_STRENGTH]
        elite_acted = any(c.id in self._state.touched for c in elites)

        if elites and not elite_acted:
            # Runs even when dest itself belongs to an elite that has not acted.
            forced = self._rng.choice(elites)
            pos = locate_first_slot(self._track, forced.id)
            if pos is not None:
                self._state = replace(
                    self._state,
                    cursor=pos,
                    touched=self._state.touched | {forced.id},
                )
            self._state = replace(self._state, pending_round_start=True)

            logger.debug("round %d: no elite acted, forcing #%d", self._state.round_number, forced.id)
            self._record(
                EventType.ELITE_FORCED,
                combatant=forced.id,
                cursor=self._state.cursor,
            )
            return self._state

        self._state = self._begin_round(roster)
        return self._state

    def reset(self) -> RoundState:
        self._track = ()
        self._state = EMPTY_STATE
        logger.debug("tracker reset")
        self._record(EventType.ENCOUNTER_RESET)
        return self._state

    # ----------------------------
    # Internals
    # ----------------------------

    def _begin_round(self, roster: Sequence[Combatant]) -> RoundState:
        """Random starter from the full roster; touched resets; round_number + 1."""
        starter = self._rng.choice(list(roster))
        pos = locate_first_slot(self._track, starter.id)
        state = RoundState(
            cursor=pos if pos is not None else self._state.cursor,
            round_number=self._state.round_number + 1,
            touched=frozenset({starter.id}),
            pending_round_start=False,
        )

        logger.debug("round %d started at #%d", state.round_number, starter.id)
        self._record(
            EventType.ROUND_STARTED,
            combatant=starter.id,
            round_number=state.round_number,
            cursor=state.cursor,
        )
        return state

    def _record(
        self,
        event_type: EventType,
        combatant: int | None = None,
        round_number: int | None = None,
        **data: Any,
    ) -> None:
        # Stamped with the round in force unless the caller is mid-transition.
        if self._recorder is None:
            return
        if round_number is None:
            round_number = self._state.round_number
        self._recorder.record(event_type, round_number, combatant=combatant, **data)
