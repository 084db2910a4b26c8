"""Command-line interface for sleigh_tracker.

Run:
    python -m sleigh_tracker status --schedule schedule.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from time import sleep

from sleigh_tracker.models import DEFAULT_SCHEDULE_PATH, DEFAULT_STORE_PATH, TrackerConfig
from sleigh_tracker.playback import FrameQueue, PlaybackFrame
from sleigh_tracker.schedule import load_schedule
from sleigh_tracker.timeutils import (
    dt_from_epoch_ms,
    epoch_ms_from_dt,
    now_ms,
    parse_bedtime,
    parse_dt,
    pretty_tz,
)
from sleigh_tracker.tracker import InvalidStopError, SleighTracker
from sleigh_tracker.waypoints import UserStopStore


def _instant(args: argparse.Namespace) -> int:
    if getattr(args, "at", None):
        return epoch_ms_from_dt(parse_dt(args.at, args.tz))
    return now_ms()


def _open_tracker(args: argparse.Namespace, instant: int, clock=now_ms) -> SleighTracker:
    hour, minute = parse_bedtime(args.bedtime)
    config = TrackerConfig(bedtime_hour=hour, bedtime_minute=minute, tz_name=args.tz, viewer_zone=args.zone)
    tracker = SleighTracker(
        schedule=load_schedule(args.schedule),
        store=UserStopStore(args.store),
        config=config,
        clock=clock,
        anchor_ms=instant,
    )
    if getattr(args, "anchor", None):
        tracker.reanchor(epoch_ms_from_dt(parse_dt(args.anchor, args.tz)))
    else:
        tracker.anchor_to_flight(instant)
    return tracker


def _fmt_local(epoch_ms: int, tz_name: str | None) -> str:
    return dt_from_epoch_ms(epoch_ms, tz_name).strftime("%Y-%m-%d %H:%M:%S")


def _print_frame(frame: PlaybackFrame) -> None:
    print(f"### {frame.headline}")
    print(frame.subtext)
    print(f"position=({frame.position.lat:.5f}, {frame.position.lng:.5f}) phase={frame.phase}")


def _cmd_timeline(args: argparse.Namespace) -> int:
    now = _instant(args)
    tracker = _open_tracker(args, now)
    timeline = tracker.viewer_timeline()
    delta = tracker.delta_ms()
    own = tracker.own_stop_keys()

    print(f"### Viewer timeline ({pretty_tz(args.tz)}), shift={delta / 3_600_000:+.2f}h")
    for i, s in enumerate(timeline, 1):
        mark = "*" if (s.zone_key, s.city) in own else " "
        print(f"{i:3d}.{mark} {_fmt_local(s.arrival_ms, args.tz)}  {s.zone_key:<24s} {s.city}")
    if not timeline:
        print("(empty schedule)")
    return 0


def _cmd_status(args: argparse.Namespace) -> int:
    now = _instant(args)
    tracker = _open_tracker(args, now)
    engine = tracker.new_engine()
    frame = engine.sample(now)
    _print_frame(frame)
    for message in frame.arrivals:
        print(f"[arrival] {message}")

    zone = tracker.viewer_zone(now)
    passed = tracker.passed_viewer_zone(now)
    print(f"viewer_zone={zone} passed={'yes' if passed else 'no'}")

    if args.json:
        payload = {
            "phase": frame.phase,
            "position": frame.position.as_dict(),
            "headline": frame.headline,
            "subtext": frame.subtext,
            "next_city": frame.next_city,
            "eta_ms": frame.eta_ms,
            "viewer_zone": zone,
            "passed_viewer_zone": passed,
        }
        print(json.dumps(payload, ensure_ascii=False, indent=2))
    return 0


def _cmd_watch(args: argparse.Namespace) -> int:
    start_real = now_ms()
    start_virtual = _instant(args)
    speed = float(args.speed)

    def clock() -> int:
        return start_virtual + int((now_ms() - start_real) * speed)

    tracker = _open_tracker(args, start_virtual, clock=clock)
    queue = FrameQueue()

    def on_frame(frame: PlaybackFrame) -> None:
        line = f"\r{frame.headline} | {frame.subtext} | ({frame.position.lat:.4f}, {frame.position.lng:.4f})"
        print(f"{line:<140s}", end="", flush=True)

    def on_arrival(message: str) -> None:
        print(f"\n[arrival] {message}", flush=True)

    engine = tracker.new_engine(on_arrival=on_arrival, on_frame=on_frame)
    engine.start(queue)
    frames = 0
    try:
        while queue and (args.frames is None or frames < args.frames):
            queue.run_pending()
            frames += 1
            sleep(max(0.0, float(args.interval)))
    except KeyboardInterrupt:
        pass
    finally:
        engine.close()
        print()
    return 0


def _cmd_add_stop(args: argparse.Namespace) -> int:
    now = _instant(args)
    tracker = _open_tracker(args, now)
    try:
        stop = tracker.add_stop(args.name, args.lat, args.lng, msg=args.msg, now=now)
    except InvalidStopError as exc:
        print(str(exc), file=sys.stderr)
        return 2
    print(f"Added your location to the route: {stop.city} ({stop.zone_key}) id={stop.id}")
    print(f"base_arrival={stop.arrival_time_utc}")
    return 0


def _cmd_list_stops(args: argparse.Namespace) -> int:
    stops = UserStopStore(args.store).load()
    for s in stops:
        print(
            f"{s.id}  {s.zone_key:<24s} {s.city}  "
            f"({s.coordinates.lat:.6f}, {s.coordinates.lng:.6f})  {s.arrival_time_utc}"
        )
    if not stops:
        print("(no waypoints)")
    return 0


def _cmd_remove_stop(args: argparse.Namespace) -> int:
    tracker = _open_tracker(args, now_ms())
    if not tracker.remove_stop(args.id):
        print(f"No waypoint with id {args.id!r}", file=sys.stderr)
        return 1
    print(f"Removed: {args.id}")
    return 0


def _add_session_args(p: argparse.ArgumentParser) -> None:
    p.add_argument("--schedule", type=str, default=DEFAULT_SCHEDULE_PATH, help="Schedule JSON path")
    p.add_argument("--store", type=str, default=DEFAULT_STORE_PATH, help="Waypoint store JSON path")
    p.add_argument("--bedtime", type=str, default="22:00", help="Local bedtime HH:MM (first stop starts then)")
    p.add_argument("--tz", type=str, default=None, help="Viewer time zone (IANA); default: system local")
    p.add_argument("--zone", type=str, default=None, help="Viewer zone key; default: matched from UTC offset")
    p.add_argument(
        "--anchor",
        type=str,
        default=None,
        help="Session start; bedtime is the next one after this (default: the flight in progress, else tonight's)",
    )


def build_parser() -> argparse.ArgumentParser:
    """Build CLI parser."""

    p = argparse.ArgumentParser(prog="sleigh_tracker")
    p.add_argument("--log-level", type=str, default="WARNING", help="Logging level (DEBUG/INFO/WARNING)")
    sub = p.add_subparsers(dest="cmd", required=True)

    p_tl = sub.add_parser("timeline", help="Print tonight's timeline in the viewer's local time")
    _add_session_args(p_tl)
    p_tl.add_argument("--at", type=str, default=None, help="Pretend the current time is this (e.g. 2025-12-24 21:00)")
    p_tl.set_defaults(func=_cmd_timeline)

    p_st = sub.add_parser("status", help="Where is the sleigh right now")
    _add_session_args(p_st)
    p_st.add_argument("--at", type=str, default=None, help="Sample at this time instead of now")
    p_st.add_argument("--json", action="store_true", help="Also print JSON")
    p_st.set_defaults(func=_cmd_status)

    p_w = sub.add_parser("watch", help="Follow the sleigh live in the terminal")
    _add_session_args(p_w)
    p_w.add_argument("--at", type=str, default=None, help="Start the virtual clock at this time")
    p_w.add_argument("--speed", type=float, default=1.0, help="Virtual clock speed multiplier")
    p_w.add_argument("--interval", type=float, default=0.5, help="Seconds between frames")
    p_w.add_argument("--frames", type=int, default=None, help="Stop after N frames (default: run until Ctrl+C)")
    p_w.set_defaults(func=_cmd_watch)

    p_add = sub.add_parser("add-stop", help="Add your own stop to your zone")
    _add_session_args(p_add)
    p_add.add_argument("--name", type=str, required=True, help="Location name")
    p_add.add_argument("--lat", type=str, required=True, help="Latitude -90..90")
    p_add.add_argument("--lng", type=str, required=True, help="Longitude -180..180")
    p_add.add_argument("--msg", type=str, default=None, help="Message shown on arrival")
    p_add.add_argument("--at", type=str, default=None, help="Pretend the current time is this")
    p_add.set_defaults(func=_cmd_add_stop)

    p_ls = sub.add_parser("list-stops", help="List saved waypoints")
    p_ls.add_argument("--store", type=str, default=DEFAULT_STORE_PATH, help="Waypoint store JSON path")
    p_ls.set_defaults(func=_cmd_list_stops)

    p_rm = sub.add_parser("remove-stop", help="Remove a saved waypoint by id")
    _add_session_args(p_rm)
    p_rm.add_argument("id", type=str, help="Waypoint id (see list-stops)")
    p_rm.set_defaults(func=_cmd_remove_stop)

    return p


def main(argv: list[str] | None = None) -> int:
    """CLI entrypoint."""

    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(level=args.log_level.upper(), format="%(levelname)s %(name)s: %(message)s")
    if hasattr(args, "schedule") and not Path(args.schedule).exists():
        print(f"Schedule not found: {args.schedule!r}", file=sys.stderr)
        return 1
    try:
        return int(args.func(args))
    except ValueError as exc:
        # bad --bedtime / --tz / --at, or a schedule that is not a JSON object
        print(str(exc), file=sys.stderr)
        return 2


if __name__ == "__main__":
    raise SystemExit(main())
