from reaction_track.events import EventType
from reaction_track.random_source import ScriptedRandomSource
from reaction_track.recorder import EventRecorder
from reaction_track.roster import RosterStore
from reaction_track.round_tracker import RoundTracker
from reaction_track.sequencer import Sequencer


def test_record_numbers_events_across_commands():
    recorder = EventRecorder()
    recorder.record(EventType.ENCOUNTER_RESET, 0)
    recorder.begin("ready")
    recorder.record(EventType.ENCOUNTER_STARTED, 1, track_length=4)
    recorder.begin("roll")
    recorder.record(EventType.ROLL_APPLIED, 1, roll=0)

    assert [(e.index, e.command, e.round_number) for e in recorder] == [
        (1, "", 0),
        (2, "ready", 1),
        (3, "roll", 1),
    ]
    assert recorder.events[1].data == {"track_length": 4}
    assert len(recorder) == 3
    assert [e.index for e in recorder.since(2)] == [3]


def test_events_property_is_a_copy():
    recorder = EventRecorder()
    recorder.record(EventType.ENCOUNTER_RESET, 0)
    recorder.events.clear()
    assert len(recorder) == 1


def test_tracker_without_recorder_runs():
    roster = RosterStore().initialize({4: 1, 1: 1})
    tracker = RoundTracker(rng=ScriptedRandomSource(script=[1, 0, 0]))
    tracker.start_encounter(roster)
    assert tracker.step(roster, 0).pending_round_start is True


def test_sequencer_names_commands():
    recorder = EventRecorder()
    seq = Sequencer(rng=ScriptedRandomSource(), recorder=recorder)

    seq.ready({4: 1})
    seq.submit_roll(0)
    seq.add_combatant(2)
    seq.reset_all()

    by_command = [(e.command, e.type) for e in recorder]
    assert by_command == [
        ("ready", EventType.ENCOUNTER_STARTED),
        ("ready", EventType.ROUND_STARTED),
        ("roll", EventType.ROLL_APPLIED),
        ("roll", EventType.CURSOR_MOVED),
        ("add", EventType.TRACK_REBUILT),
        ("reset_all", EventType.ENCOUNTER_RESET),
    ]


def test_round_stamps_on_forced_elite_step():
    """
    The step that forces an elite is stamped with the closing round:
      ROLL_APPLIED, ROUND_WRAPPED, ELITE_FORCED -> round 1
    The next step starts round 2 before moving, so all of it carries round 2:
      ROUND_STARTED, ROLL_APPLIED, CURSOR_MOVED -> round 2
    """
    recorder = EventRecorder()
    seq = Sequencer(rng=ScriptedRandomSource(script=[1, 0, 0]), recorder=recorder)
    seq.ready({4: 1, 1: 1})

    mark = len(recorder)
    seq.submit_roll(0)
    forced_step = recorder.since(mark)
    assert [(e.type, e.round_number) for e in forced_step] == [
        (EventType.ROLL_APPLIED, 1),
        (EventType.ROUND_WRAPPED, 1),
        (EventType.ELITE_FORCED, 1),
    ]
    assert forced_step[1].combatant == 1  # wrap destination is the elite's slot 1
    assert forced_step[2].combatant == 1

    mark = len(recorder)
    seq.submit_roll(0)
    assert [(e.type, e.round_number) for e in recorder.since(mark)] == [
        (EventType.ROUND_STARTED, 2),
        (EventType.ROLL_APPLIED, 2),
        (EventType.CURSOR_MOVED, 2),
    ]


def test_reset_and_emptied_track_record_no_round():
    recorder = EventRecorder()
    seq = Sequencer(rng=ScriptedRandomSource(), recorder=recorder)
    seq.ready({3: 1})
    seq.remove_combatant(1)

    tail = [(e.type, e.round_number) for e in recorder.since(2)]
    assert tail == [(EventType.ENCOUNTER_RESET, 0)]
