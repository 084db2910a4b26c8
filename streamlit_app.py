from __future__ import annotations

from datetime import time, timedelta
from pathlib import Path

import streamlit as st
from streamlit_js_eval import get_geolocation

from sleigh_tracker.geo import coords_from_geolocation
from sleigh_tracker.models import DEFAULT_SCHEDULE_PATH, DEFAULT_STORE_PATH, TrackerConfig
from sleigh_tracker.playback import PlaybackEngine, PlaybackFrame
from sleigh_tracker.schedule import Schedule, load_schedule
from sleigh_tracker.timeutils import now_ms, pretty_local_time
from sleigh_tracker.toasts import ToastFeed
from sleigh_tracker.tracker import InvalidStopError, SleighTracker
from sleigh_tracker.waypoints import UserStopStore

ROUTE_COLOR = "#8fb3ff"
SLEIGH_COLOR = "#ff4b4b"


@st.cache_data(show_spinner=False)
def _load_schedule(schedule_path: str, mtime: float) -> Schedule:
    _ = mtime  # part of cache key so updated files reload automatically
    return load_schedule(schedule_path)


def _map_data(engine: PlaybackEngine, frame: PlaybackFrame) -> dict[str, list[object]]:
    lats: list[object] = [s.coords.lat for s in engine.timeline]
    lons: list[object] = [s.coords.lng for s in engine.timeline]
    sizes: list[object] = [8000] * len(lats)
    colors: list[object] = [ROUTE_COLOR] * len(lats)
    # The off-map sentinel is not drawn before launch.
    if frame.phase in ("en_route", "arrived"):
        lats.append(frame.position.lat)
        lons.append(frame.position.lng)
        sizes.append(60000)
        colors.append(SLEIGH_COLOR)
    return {"lat": lats, "lon": lons, "size": sizes, "color": colors}


@st.fragment(run_every=timedelta(seconds=1))
def _live_view() -> None:
    engine: PlaybackEngine | None = st.session_state.get("engine")
    if engine is None:
        return
    now = now_ms()
    frame = engine.sample(now)
    feed: ToastFeed = st.session_state.setdefault("toasts", ToastFeed())
    for message in feed.poll(now, frame.arrivals):
        st.toast(message)

    st.subheader(frame.headline)
    st.caption(frame.subtext)
    if engine.timeline:
        st.map(_map_data(engine, frame), latitude="lat", longitude="lon", size="size", color="color", zoom=2)


def _locate() -> None:
    if st.button("Use current location", use_container_width=True):
        st.session_state["locating"] = True
    if not st.session_state.get("locating"):
        return

    # None until the browser answers; the component reruns the script then.
    payload = get_geolocation()
    if payload is None:
        st.caption("Getting location…")
        return
    st.session_state["locating"] = False
    try:
        coords = coords_from_geolocation(payload)
    except ValueError as exc:
        st.warning(f"{exc} Enter coordinates manually.")
        return
    st.session_state["stop_lat"] = f"{coords.lat:.6f}"
    st.session_state["stop_lng"] = f"{coords.lng:.6f}"
    if not st.session_state.get("stop_name", "").strip():
        st.session_state["stop_name"] = "My Location"
    st.toast("Location filled in.")


def _stop_form(tracker: SleighTracker) -> None:
    passed = tracker.passed_viewer_zone()
    st.subheader("Add a location")
    st.caption(
        f"Your zone: **{tracker.viewer_zone()}**. "
        + ("Santa already passed your zone." if passed else "Santa has not passed yet.")
    )
    _locate()
    with st.form("add_stop", clear_on_submit=True):
        name = st.text_input("Location name", placeholder="e.g., My House", key="stop_name")
        lat = st.text_input("Latitude", placeholder="e.g., 44.650000", key="stop_lat")
        lng = st.text_input("Longitude", placeholder="e.g., -63.570000", key="stop_lng")
        msg = st.text_input("Message (optional)", placeholder="Merry Christmas ...")
        submitted = st.form_submit_button("Add", type="primary", use_container_width=True)

    if not submitted:
        return
    try:
        tracker.add_stop(name, lat, lng, msg=msg)
    except InvalidStopError as exc:
        st.toast(str(exc))
        st.warning(str(exc))
        return
    st.toast("Added your location to the route.")


def main() -> None:
    st.set_page_config(page_title="Santa Tracker", layout="wide")
    st.title("Santa Tracker")

    with st.sidebar:
        st.subheader("Schedule and viewer")
        schedule_path = st.text_input("Schedule JSON path", value=DEFAULT_SCHEDULE_PATH)
        store_path = st.text_input("Waypoint store path", value=DEFAULT_STORE_PATH)
        tz_name = st.text_input("Time zone (IANA, blank = system local)", value="").strip() or None
        bedtime = st.time_input("Bedtime (first stop starts then)", value=time(22, 0))

    p = Path(schedule_path)
    if not p.exists():
        st.error(f"Schedule not found: {schedule_path!r}. Run scripts/generate_sample_schedule.py to create one.")
        return

    try:
        schedule = _load_schedule(schedule_path, p.stat().st_mtime)
        config = TrackerConfig(bedtime_hour=bedtime.hour, bedtime_minute=bedtime.minute, tz_name=tz_name)
        tracker = SleighTracker(
            schedule=schedule,
            store=UserStopStore(store_path),
            config=config,
            anchor_ms=st.session_state.get("anchor_ms"),
        )
    except (OSError, ValueError) as exc:
        st.exception(exc)
        return

    with st.sidebar:
        _stop_form(tracker)

    # One engine per view; rebuilt (and the old one torn down) when any input changes.
    # The flight anchor is resolved again at that point and kept across reruns.
    signature = (
        schedule_path,
        p.stat().st_mtime,
        store_path,
        tuple(s.id for s in tracker.user_stops),
        bedtime.hour,
        bedtime.minute,
        tz_name,
    )
    if st.session_state.get("engine_signature") != signature:
        old: PlaybackEngine | None = st.session_state.get("engine")
        if old is not None:
            old.close()
        tracker.anchor_to_flight()
        st.session_state["anchor_ms"] = tracker.anchor_ms
        st.session_state["engine"] = tracker.new_engine()
        st.session_state["engine_signature"] = signature

    st.caption(f"Live sleigh telemetry • your zone ({tracker.viewer_zone()})")
    _live_view()

    if tracker.user_stops:
        with st.expander("Your locations", expanded=False):
            delta = tracker.delta_ms()
            rows = [
                {
                    "city": s.city,
                    "zone": s.zone_key,
                    "lat": s.coordinates.lat,
                    "lng": s.coordinates.lng,
                    "message": s.msg or "",
                    "id": s.id,
                }
                for s in tracker.user_stops
            ]
            st.dataframe(rows, use_container_width=True)
            st.caption(f"Tonight's shift: {delta / 3_600_000:+.2f}h • now {pretty_local_time(now_ms(), tz_name)}")


if __name__ == "__main__":
    main()
