from __future__ import annotations

import json
import logging
import os
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from reaction_track.models import STRENGTHS, Combatant, RawInputs, Slot, is_valid_strength
from reaction_track.round_tracker import RoundState
from reaction_track.stream_io import InputFormatError, read_json_file
from reaction_track.track import build_track, locate_first_slot

logger = logging.getLogger(__name__)

KEY_COUNTS = "counts"
KEY_ROLL = "roll"
KEY_ROSTER = "roster"
KEY_TRACK = "track"
KEY_CURSOR = "cursor"
KEY_ROUND_NUMBER = "round_number"
KEY_PENDING_ROUND_START = "pending_round_start"
KEY_TOUCHED = "touched"

DEFAULT_ROUND_NUMBER = 1


class KeyValueStore(ABC):
    """
    Minimal JSON key-value adapter used to save/restore a sequencer.
    Implementations may raise; callers in this module swallow and log.
    """

    @abstractmethod
    def get(self, key: str) -> Any | None: ...

    @abstractmethod
    def set(self, key: str, value: Any) -> None: ...

    def set_many(self, values: Mapping[str, Any]) -> None:
        """Write several keys. Stores that can do it in one write override this."""
        for key, value in values.items():
            self.set(key, value)


@dataclass
class InMemoryKeyValueStore(KeyValueStore):
    """
    Simple store for tests/demos.
    Values are kept as JSON text so they behave like a real store (copies, JSON types only).
    """

    data: dict[str, str] = field(default_factory=dict)

    def get(self, key: str) -> Any | None:
        raw = self.data.get(key)
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any) -> None:
        self.data[key] = json.dumps(value)


class JsonFileKeyValueStore(KeyValueStore):
    """All keys live in one JSON object on disk, replaced atomically on write."""

    def __init__(self, path: Path) -> None:
        self.path = Path(path)

    def _read_all(self) -> dict[str, Any]:
        if not self.path.exists():
            return {}
        raw = read_json_file(self.path)
        if not isinstance(raw, dict):
            raise InputFormatError(f"state file root must be a JSON object: {self.path}")
        return raw

    def _write_all(self, data: dict[str, Any]) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_name(self.path.name + ".tmp")
        tmp.write_text(json.dumps(data, indent=2, sort_keys=True), encoding="utf-8")
        os.replace(tmp, self.path)

    def get(self, key: str) -> Any | None:
        return self._read_all().get(key)

    def set(self, key: str, value: Any) -> None:
        self.set_many({key: value})

    def set_many(self, values: Mapping[str, Any]) -> None:
        try:
            current = self._read_all()
        except InputFormatError:
            logger.warning("state file %s is corrupt; starting a fresh one", self.path)
            current = {}
        current.update(values)
        self._write_all(current)


@dataclass(frozen=True)
class PersistedState:
    inputs: RawInputs
    roster: tuple[Combatant, ...]
    track: tuple[Slot, ...]
    state: RoundState


def default_persisted_state() -> PersistedState:
    return PersistedState(
        inputs=RawInputs.blank(),
        roster=(),
        track=(),
        state=RoundState(round_number=DEFAULT_ROUND_NUMBER),
    )


# ----------------------------
# Save
# ----------------------------

def encode_persisted_state(persisted: PersistedState) -> dict[str, Any]:
    s = persisted.state
    return {
        KEY_COUNTS: {str(k): v for k, v in persisted.inputs.counts.items()},
        KEY_ROLL: persisted.inputs.roll,
        KEY_ROSTER: [{"id": c.id, "strength": c.strength} for c in persisted.roster],
        KEY_TRACK: [
            {"owner_id": t.owner_id, "owner_strength": t.owner_strength, "slot_index": t.slot_index}
            for t in persisted.track
        ],
        KEY_CURSOR: s.cursor,
        KEY_ROUND_NUMBER: s.round_number,
        KEY_PENDING_ROUND_START: s.pending_round_start,
        KEY_TOUCHED: sorted(s.touched),
    }


def save_persisted_state(store: KeyValueStore, persisted: PersistedState) -> bool:
    """
    Write every key in one batch. If the batch fails, retry key by key so one
    bad key does not stop the others. Failures are logged and swallowed.
    Returns True when every key ended up written.
    """
    encoded = encode_persisted_state(persisted)
    try:
        store.set_many(encoded)
        return True
    except Exception as e:
        logger.warning("batched save failed, retrying key by key: %s", e)

    ok = True
    for key, value in encoded.items():
        try:
            store.set(key, value)
        except Exception as e:
            ok = False
            logger.warning("failed to persist %r: %s", key, e)
    return ok


# ----------------------------
# Load
# ----------------------------

def _safe_get(store: KeyValueStore, key: str) -> Any | None:
    try:
        return store.get(key)
    except Exception as e:
        logger.warning("failed to load %r, using default: %s", key, e)
        return None


def _is_int(v: object) -> bool:
    return isinstance(v, int) and not isinstance(v, bool)


def _decode_counts(raw: object) -> dict[int, str]:
    counts = RawInputs.blank().counts
    if not isinstance(raw, dict):
        return counts
    for k, v in raw.items():
        try:
            strength = int(k)
        except (TypeError, ValueError):
            continue
        if strength not in STRENGTHS:
            continue
        if isinstance(v, str):
            counts[strength] = v
        elif _is_int(v) or isinstance(v, float):
            counts[strength] = str(v)
    return counts


def _decode_roll(raw: object) -> str:
    if isinstance(raw, str):
        return raw
    if _is_int(raw) or isinstance(raw, float):
        return str(raw)
    return ""


def _decode_roster(raw: object) -> tuple[Combatant, ...] | None:
    if not isinstance(raw, list):
        return None
    roster: list[Combatant] = []
    seen: set[int] = set()
    for item in raw:
        if not isinstance(item, dict):
            return None
        cid = item.get("id")
        strength = item.get("strength")
        if not _is_int(cid) or cid < 1 or cid in seen or not is_valid_strength(strength):
            return None
        seen.add(cid)
        roster.append(Combatant(id=cid, strength=strength))
    return tuple(roster)


def _decode_track(raw: object) -> tuple[Slot, ...] | None:
    if not isinstance(raw, list):
        return None
    slots: list[Slot] = []
    for item in raw:
        if not isinstance(item, dict):
            return None
        values = (item.get("owner_id"), item.get("owner_strength"), item.get("slot_index"))
        if not all(_is_int(v) for v in values):
            return None
        slots.append(Slot(owner_id=values[0], owner_strength=values[1], slot_index=values[2]))
    return tuple(slots)


def _decode_touched(raw: object) -> frozenset[int]:
    if not isinstance(raw, list) or not all(_is_int(v) for v in raw):
        return frozenset()
    return frozenset(raw)


def _reseat_cursor(
    raw: object,
    stored_track: tuple[Slot, ...] | None,
    track: tuple[Slot, ...],
) -> int:
    if not _is_int(raw) or not track:
        return 0
    if stored_track is None or stored_track == track:
        return raw if 0 <= raw < len(track) else 0

    if not 0 <= raw < len(stored_track):
        return 0
    owner = stored_track[raw].owner_id
    pos = locate_first_slot(track, owner)
    logger.debug("stored track differs from roster; cursor follows #%d to %s", owner, pos)
    return pos if pos is not None else 0


def load_persisted_state(store: KeyValueStore) -> PersistedState:
    """
    Restore a saved sequencer, key by key.

    Missing or malformed values fall back to defaults (blank inputs, empty
    roster, cursor 0, round 1, not pending). The result is then made
    consistent: the track is rebuilt from the roster, and touched only keeps
    ids that are still on the roster. The stored cursor is kept when the
    stored track matches the rebuilt one (or was not saved); otherwise it is
    moved to the first slot of the combatant it pointed at, or to 0 when that
    combatant is gone.
    """
    defaults = default_persisted_state()

    inputs = RawInputs(
        counts=_decode_counts(_safe_get(store, KEY_COUNTS)),
        roll=_decode_roll(_safe_get(store, KEY_ROLL)),
    )

    roster = _decode_roster(_safe_get(store, KEY_ROSTER))
    if roster is None:
        roster = defaults.roster

    track = build_track(roster)
    stored_track = _decode_track(_safe_get(store, KEY_TRACK))
    cursor = _reseat_cursor(_safe_get(store, KEY_CURSOR), stored_track, track)

    round_number = _safe_get(store, KEY_ROUND_NUMBER)
    if not _is_int(round_number) or round_number < 0:
        round_number = defaults.state.round_number

    pending = _safe_get(store, KEY_PENDING_ROUND_START)
    if not isinstance(pending, bool) or not track:
        pending = False

    roster_ids = {c.id for c in roster}
    touched = _decode_touched(_safe_get(store, KEY_TOUCHED)) & roster_ids
    if track and not touched:
        touched = frozenset({track[cursor].owner_id})

    return PersistedState(
        inputs=inputs,
        roster=roster,
        track=track,
        state=RoundState(
            cursor=cursor,
            round_number=round_number,
            touched=touched,
            pending_round_start=pending,
        ),
    )
