from __future__ import annotations

from reaction_track.random_source import SystemRandomSource
from reaction_track.recorder import EventRecorder
from reaction_track.reporting import group_events_into_rounds, render_rounds_report, render_track
from reaction_track.sequencer import Sequencer


def main() -> None:
    recorder = EventRecorder()
    seq = Sequencer(rng=SystemRandomSource(seed=7), recorder=recorder)

    snap = seq.ready({4: 1, 3: 1, 2: 2, 1: 3})
    print("Ready")
    print(render_track(snap))

    for roll in [2, 0, 5, 1, 3, 0, 4, 2, 6, 1]:
        snap = seq.submit_roll(roll)
        print(f"Roll {roll} (advance {roll + 1})")
        print(render_track(snap))

    print(render_rounds_report(group_events_into_rounds(recorder.events)))


if __name__ == "__main__":
    main()
