from __future__ import annotations

import json
from pathlib import Path

import pytest

from reaction_track.models import Combatant, RawInputs
from reaction_track.persistence import (
    InMemoryKeyValueStore,
    JsonFileKeyValueStore,
    KeyValueStore,
    PersistedState,
    load_persisted_state,
    save_persisted_state,
)
from reaction_track.round_tracker import RoundState
from reaction_track.stream_io import InputFormatError
from reaction_track.track import build_track


class PartiallyFailingStore(InMemoryKeyValueStore):
    def set(self, key, value):
        if key == "track":
            raise OSError("quota exceeded")
        super().set(key, value)


class ExplodingStore(KeyValueStore):
    def get(self, key):
        raise RuntimeError("boom")

    def set(self, key, value):
        raise RuntimeError("boom")


def test_empty_store_loads_defaults():
    loaded = load_persisted_state(InMemoryKeyValueStore())

    assert loaded.inputs == RawInputs.blank()
    assert loaded.roster == ()
    assert loaded.track == ()
    assert loaded.state == RoundState(cursor=0, round_number=1, touched=frozenset(), pending_round_start=False)


def test_failing_get_loads_defaults():
    loaded = load_persisted_state(ExplodingStore())
    assert loaded.roster == ()
    assert loaded.state.round_number == 1


def test_malformed_values_fall_back_per_key():
    store = InMemoryKeyValueStore()
    store.set("counts", ["not", "a", "dict"])
    store.set("roll", {"x": 1})
    store.set("roster", "junk")
    store.set("cursor", "x")
    store.set("round_number", -3)
    store.set("pending_round_start", "yes")
    store.set("touched", [1, "a"])

    loaded = load_persisted_state(store)

    assert loaded.inputs == RawInputs.blank()
    assert loaded.roster == ()
    assert loaded.state.cursor == 0
    assert loaded.state.round_number == 1
    assert loaded.state.pending_round_start is False
    assert loaded.state.touched == frozenset()


def test_roster_with_bad_entry_is_dropped_whole():
    store = InMemoryKeyValueStore()
    store.set("roster", [{"id": 1, "strength": 4}, {"id": 2, "strength": 9}])
    assert load_persisted_state(store).roster == ()

    store.set("roster", [{"id": 1, "strength": 4}, {"id": 1, "strength": 2}])
    assert load_persisted_state(store).roster == ()


def test_loaded_state_is_repaired_against_roster():
    store = InMemoryKeyValueStore()
    store.set("roster", [{"id": 1, "strength": 4}, {"id": 2, "strength": 1}])
    store.set("track", [{"owner_id": 9, "owner_strength": 1, "slot_index": 1}])
    store.set("cursor", 99)
    store.set("round_number", 4)
    store.set("pending_round_start", True)
    store.set("touched", [1, 7])
    store.set("counts", {"4": 1, "1": "1", "9": "3"})
    store.set("roll", 6)

    loaded = load_persisted_state(store)

    assert loaded.roster == (Combatant(id=1, strength=4), Combatant(id=2, strength=1))
    assert loaded.track == build_track(loaded.roster)
    assert loaded.state.cursor == 0
    assert loaded.state.round_number == 4
    assert loaded.state.pending_round_start is True
    assert loaded.state.touched == frozenset({1})
    assert loaded.inputs.counts == {4: "1", 3: "", 2: "", 1: "1"}
    assert loaded.inputs.roll == "6"


def test_empty_touched_is_reseeded_from_cursor_owner():
    store = InMemoryKeyValueStore()
    store.set("roster", [{"id": 1, "strength": 4}, {"id": 2, "strength": 1}])
    store.set("cursor", 4)
    store.set("touched", [])

    assert load_persisted_state(store).state.touched == frozenset({2})


def _store_for_edited_roster(cursor: int) -> InMemoryKeyValueStore:
    """Track saved with #3 on it; the roster no longer has #3."""
    saved_with = (
        Combatant(id=1, strength=4),
        Combatant(id=2, strength=1),
        Combatant(id=3, strength=4),
    )  # track [1, 1, 1, 1, 3, 3, 3, 3, 2]
    store = InMemoryKeyValueStore()
    save_persisted_state(
        store,
        PersistedState(
            inputs=RawInputs.blank(),
            roster=saved_with,
            track=build_track(saved_with),
            state=RoundState(cursor=cursor, round_number=2, touched=frozenset({1, 2, 3})),
        ),
    )
    store.set("roster", [{"id": 1, "strength": 4}, {"id": 2, "strength": 1}])
    return store


def test_cursor_follows_its_owner_when_stored_track_differs():
    loaded = load_persisted_state(_store_for_edited_roster(cursor=8))

    assert loaded.track == build_track(loaded.roster)  # [1, 1, 1, 1, 2]
    assert loaded.state.cursor == 4
    assert loaded.track[loaded.state.cursor].owner_id == 2
    assert loaded.state.touched == frozenset({1, 2})


def test_cursor_resets_when_its_owner_left_the_track():
    # index 4 is in range of the new track, but it pointed at #3
    loaded = load_persisted_state(_store_for_edited_roster(cursor=4))
    assert loaded.state.cursor == 0


class CountingFileStore(JsonFileKeyValueStore):
    def __init__(self, path):
        super().__init__(path)
        self.reads = 0
        self.writes = 0

    def _read_all(self):
        self.reads += 1
        return super()._read_all()

    def _write_all(self, data):
        self.writes += 1
        super()._write_all(data)


def test_file_store_saves_all_keys_in_one_write(tmp_path: Path):
    store = CountingFileStore(tmp_path / "state.json")
    roster = (Combatant(id=1, strength=3),)
    persisted = PersistedState(
        inputs=RawInputs.blank(),
        roster=roster,
        track=build_track(roster),
        state=RoundState(cursor=2, round_number=1, touched=frozenset({1})),
    )

    assert save_persisted_state(store, persisted) is True
    assert (store.reads, store.writes) == (1, 1)

    on_disk = json.loads((tmp_path / "state.json").read_text(encoding="utf-8"))
    assert set(on_disk) == {
        "counts",
        "roll",
        "roster",
        "track",
        "cursor",
        "round_number",
        "pending_round_start",
        "touched",
    }
    assert load_persisted_state(store) == persisted


def test_save_continues_past_a_failing_key():
    store = PartiallyFailingStore()
    roster = (Combatant(id=1, strength=2),)
    persisted = PersistedState(
        inputs=RawInputs(counts={4: "", 3: "", 2: "1", 1: ""}, roll="2"),
        roster=roster,
        track=build_track(roster),
        state=RoundState(cursor=1, round_number=1, touched=frozenset({1})),
    )

    assert save_persisted_state(store, persisted) is False
    assert store.get("track") is None
    assert store.get("cursor") == 1
    assert store.get("touched") == [1]
    assert store.get("roster") == [{"id": 1, "strength": 2}]


def test_save_then_load_round_trip():
    store = InMemoryKeyValueStore()
    roster = (Combatant(id=1, strength=4), Combatant(id=3, strength=2))
    persisted = PersistedState(
        inputs=RawInputs(counts={4: "1", 3: "", 2: "1", 1: ""}, roll="5"),
        roster=roster,
        track=build_track(roster),
        state=RoundState(cursor=5, round_number=3, touched=frozenset({1, 3}), pending_round_start=True),
    )

    assert save_persisted_state(store, persisted) is True
    assert load_persisted_state(store) == persisted


def test_json_file_store_round_trip(tmp_path: Path):
    path = tmp_path / "nested" / "state.json"
    store = JsonFileKeyValueStore(path)

    assert store.get("cursor") is None
    store.set("cursor", 3)
    store.set("touched", [1, 2])

    assert store.get("cursor") == 3
    assert json.loads(path.read_text(encoding="utf-8")) == {"cursor": 3, "touched": [1, 2]}


def test_json_file_store_corrupt_file(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("{not json", encoding="utf-8")
    store = JsonFileKeyValueStore(path)

    with pytest.raises(InputFormatError):
        store.get("cursor")

    loaded = load_persisted_state(store)
    assert loaded.roster == ()

    store.set("cursor", 0)
    assert store.get("cursor") == 0


def test_json_file_store_rejects_non_object_root(tmp_path: Path):
    path = tmp_path / "state.json"
    path.write_text("[1, 2]", encoding="utf-8")

    with pytest.raises(InputFormatError):
        JsonFileKeyValueStore(path).get("roster")
