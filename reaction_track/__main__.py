from __future__ import annotations

import argparse
import json
import sys
from pathlib import Path

from reaction_track.config import configure_logging, load_settings
from reaction_track.models import STRENGTHS
from reaction_track.persistence import JsonFileKeyValueStore
from reaction_track.random_source import SystemRandomSource
from reaction_track.recorder import EventRecorder
from reaction_track.reporting import group_events_into_rounds, render_rounds_report, render_track
from reaction_track.sequencer import Sequencer
from reaction_track.stream_io import InputFormatError, dump_event_stream, load_event_stream


def _counts_from_args(args: argparse.Namespace) -> dict[int, str] | None:
    """Per-tier counts given on the command line, or None when no tier flag was passed."""
    given = {s: getattr(args, f"s{s}") for s in STRENGTHS}
    if all(v is None for v in given.values()):
        return None
    return {s: (v if v is not None else "") for s, v in given.items()}


def _open_sequencer(args: argparse.Namespace) -> Sequencer:
    return Sequencer(
        rng=SystemRandomSource(seed=args.seed),
        store=JsonFileKeyValueStore(Path(str(args.state))),
    )


def _cmd_ready(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    sys.stdout.write(render_track(seq.ready(_counts_from_args(args))))
    return 0


def _cmd_add(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    sys.stdout.write(render_track(seq.add_combatant(int(args.strength))))
    return 0


def _cmd_remove(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    sys.stdout.write(render_track(seq.remove_combatant(int(args.id))))
    return 0


def _cmd_roll(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    sys.stdout.write(render_track(seq.submit_roll(args.value)))
    return 0


def _cmd_reset(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    snap = seq.reset_all() if args.all else seq.reset()
    sys.stdout.write(render_track(snap))
    return 0


def _cmd_show(args: argparse.Namespace) -> int:
    seq = _open_sequencer(args)
    sys.stdout.write(render_track(seq.snapshot()))
    return 0


def _cmd_simulate(args: argparse.Namespace) -> int:
    counts = _counts_from_args(args)
    if counts is None:
        print("ERROR: give at least one of --s4, --s3, --s2, --s1.", file=sys.stderr)
        return 2

    recorder = EventRecorder()
    seq = Sequencer(rng=SystemRandomSource(seed=args.seed), recorder=recorder)

    snap = seq.ready(counts)
    if not snap.track:
        print("ERROR: the roster is empty; nothing to simulate.", file=sys.stderr)
        return 2

    for value in args.rolls:
        snap = seq.submit_roll(value)

    if args.events_out:
        try:
            Path(str(args.events_out)).write_text(
                json.dumps(dump_event_stream(recorder.events), indent=2),
                encoding="utf-8",
            )
        except OSError as e:
            print(f"ERROR: cannot write events: {e}", file=sys.stderr)
            return 2

    sys.stdout.write(render_rounds_report(group_events_into_rounds(recorder.events)))
    sys.stdout.write("\n")
    sys.stdout.write(render_track(snap))
    return 0


def _cmd_report(args: argparse.Namespace) -> int:
    try:
        events = load_event_stream(Path(str(args.input)))
    except InputFormatError as e:
        print(f"ERROR: invalid event stream: {e}", file=sys.stderr)
        return 2
    sys.stdout.write(render_rounds_report(group_events_into_rounds(events)))
    return 0


def _add_count_flags(p: argparse.ArgumentParser) -> None:
    p.add_argument("--s4", type=str, default=None, help="Number of powerful (tier 4) combatants.")
    p.add_argument("--s3", type=str, default=None, help="Number of strong (tier 3) combatants.")
    p.add_argument("--s2", type=str, default=None, help="Number of regular (tier 2) combatants.")
    p.add_argument("--s1", type=str, default=None, help="Number of easy (tier 1) combatants.")


def build_parser() -> argparse.ArgumentParser:
    settings = load_settings()

    parser: argparse.ArgumentParser = argparse.ArgumentParser(
        prog="reaction_track",
        description=(
            "Reaction Track: which combatant reacts next.\n"
            "\n"
            "Each roll moves the cursor (result + 1) slots along the track.\n"
            "Every round guarantees at least one tier-4 combatant acts."
        ),
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    parser.add_argument(
        "--state",
        type=str,
        default=str(settings.state_file),
        help="JSON file holding the encounter between invocations.",
    )
    parser.add_argument("--seed", type=int, default=settings.seed, help="Seed for random picks.")
    parser.add_argument("--log-level", type=str, default=settings.log_level, help="Logging level.")

    sub = parser.add_subparsers(dest="command", required=True)

    ready = sub.add_parser("ready", help="Start an encounter from per-tier counts.")
    _add_count_flags(ready)
    ready.set_defaults(func=_cmd_ready)

    add = sub.add_parser("add", help="Add one combatant to the running encounter.")
    add.add_argument("strength", type=int, choices=list(STRENGTHS), help="Tier of the new combatant.")
    add.set_defaults(func=_cmd_add)

    remove = sub.add_parser("remove", help="Remove a combatant by id.")
    remove.add_argument("id", type=int, help="Combatant id.")
    remove.set_defaults(func=_cmd_remove)

    roll = sub.add_parser("roll", help="Apply a die result and advance the cursor.")
    roll.add_argument(
        "value",
        nargs="?",
        default=None,
        help="Die result; omitted means the last stored roll input.",
    )
    roll.set_defaults(func=_cmd_roll)

    reset = sub.add_parser("reset", help="Clear the encounter.")
    reset.add_argument("--all", action="store_true", help="Also clear the stored count and roll inputs.")
    reset.set_defaults(func=_cmd_reset)

    show = sub.add_parser("show", help="Print the current track.")
    show.set_defaults(func=_cmd_show)

    simulate = sub.add_parser("simulate", help="Run an in-memory encounter over a list of rolls.")
    _add_count_flags(simulate)
    simulate.add_argument("--rolls", nargs="*", default=[], help="Die results, applied in order.")
    simulate.add_argument("--events-out", type=str, default=None, help="Write the event stream JSON here.")
    simulate.set_defaults(func=_cmd_simulate)

    report = sub.add_parser("report", help="Print round frames from an event stream JSON.")
    report.add_argument("--input", type=str, required=True, help="Event stream JSON file.")
    report.set_defaults(func=_cmd_report)

    return parser


def main(argv: list[str] | None = None) -> int:
    argv = argv if argv is not None else sys.argv[1:]
    parser = build_parser()
    args = parser.parse_args(argv)
    configure_logging(str(args.log_level))
    return int(args.func(args))


if __name__ == "__main__":
    raise SystemExit(main())
