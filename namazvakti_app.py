#!/usr/bin/env python3
"""
Namaz Vakti command line
Location-aware prayer times from the Diyanet awqatsalah service:
  - manual country / state / district selection with saved shortcuts
  - device location (IP fix) and coordinate picks
  - offline cache of the monthly schedule
  - watch mode that follows the device to new places
"""

import argparse
import datetime
import logging
import sys
import time

import pytz

from namazvakti.config import CONFIG_FILE, load_settings
from namazvakti.events import CurrentDayChanged, LocationChangeDetected, LocationResolved
from namazvakti.identity import is_same_location
from namazvakti.location import LocationError, LocationPermissionError
from namazvakti.mode_engine import SelectionStatus
from namazvakti.models import SelectedLocation
from namazvakti import notifier
from namazvakti.poller import PollOutcome
from namazvakti.prayer_api import PRAYER_DISPLAY, PRAYER_NAMES, get_next_prayer, seconds_until
from namazvakti.session import AppSession


def setup_logging(level: str) -> None:
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def fmt_countdown(seconds: int) -> str:
    if seconds < 0:
        return "00:00:00"
    h, rem = divmod(seconds, 3600)
    m, s = divmod(rem, 60)
    return f"{h:02d}:{m:02d}:{s:02d}"


def print_places(places) -> None:
    for place in places:
        print(f"{place.id:>6}  {place.name}")
    if not places:
        print("No places available (offline and nothing cached?)")


def print_selection_result(result) -> int:
    messages = {
        SelectionStatus.APPLIED: f"Location set to {result.label} ({len(result.series)} days cached)",
        SelectionStatus.SAME_LOCATION: f"{result.label} is already the active location",
        SelectionStatus.FAILED: f"Could not load prayer times: {result.error}",
        SelectionStatus.NOT_FOUND: "No prayer times found for that place",
        SelectionStatus.INCOMPLETE: "Country, state and district must all be valid",
    }
    print(messages[result.status])
    return 0 if result.status in (SelectionStatus.APPLIED, SelectionStatus.SAME_LOCATION) else 1


def build_selection(session, country_id: int, state_id: int, district_id: int) -> SelectedLocation:
    resolver = session.resolver
    country = resolver.find(resolver.countries(), country_id)
    city = resolver.find(resolver.states(country_id), state_id) if country else None
    district = resolver.find(resolver.districts(state_id), district_id) if city else None
    return SelectedLocation(country=country, city=city, district=district)


# commands

def cmd_status(session, args) -> int:
    state = session.active_state()
    if state.mode is None or not state.label:
        print("No location selected. Use 'select', 'locate' or 'pick'.")
        return 1
    print(f"Location : {state.label} ({state.mode.value})")
    print(f"Today    : {state.today}  [{state.timezone or 'local time'}]")
    day = state.current_day
    if day is None:
        print("No prayer times cached for today. Run 'refresh'.")
        return 1
    if day.gregorian_date_long or day.hijri_date_long:
        print(f"           {day.gregorian_date_long or ''}  {day.hijri_date_long or ''}".rstrip())
    for name in PRAYER_NAMES:
        print(f"  {PRAYER_DISPLAY[name]:<10} {getattr(day, name)}")

    tz = None
    if state.timezone:
        try:
            tz = pytz.timezone(state.timezone)
        except pytz.UnknownTimeZoneError:
            tz = None
    now = datetime.datetime.now(tz) if tz else datetime.datetime.now()
    name, prayer_dt = get_next_prayer(day, now, tz)
    if name:
        print(f"Next     : {PRAYER_DISPLAY[name]} in {fmt_countdown(seconds_until(prayer_dt, now))}")

    if args.husna:
        husna = session.esmaul_husna()
        if husna:
            print(f"Name of the day: {husna.get('name', '')} {husna.get('meaning', '')}".rstrip())
    return 0


def cmd_countries(session, args) -> int:
    print_places(session.resolver.countries())
    return 0


def cmd_states(session, args) -> int:
    print_places(session.resolver.states(args.country_id))
    return 0


def cmd_districts(session, args) -> int:
    print_places(session.resolver.districts(args.state_id))
    return 0


def cmd_select(session, args) -> int:
    snapshot = session.engine.begin_selection()
    selection = build_selection(session, args.country_id, args.state_id, args.district_id)
    return print_selection_result(session.engine.select_manual(selection, snapshot, save=not args.no_save))


def cmd_locate(session, args) -> int:
    if args.grant:
        session.provider.grant_permission()
    try:
        result = session.engine.locate()
    except LocationPermissionError:
        print("Location access is off. Run 'locate --grant' to allow it.")
        return 1
    except LocationError as e:
        print(f"Could not determine your position: {e}")
        return 1
    return print_selection_result(result)


def cmd_pick(session, args) -> int:
    return print_selection_result(session.engine.select_map(args.lat, args.lon))


def cmd_refresh(session, args) -> int:
    result = session.refresh(force=args.force)
    if result is None:
        print("No location selected.")
        return 1
    if result.fetched:
        print(f"Downloaded {len(result.series)} days of prayer times")
    elif result.error:
        print(f"Using cached prayer times ({result.error})")
    else:
        print("Cached prayer times are up to date")
    return 0 if result.series else 1


def cmd_saved(session, args) -> int:
    saved = session.saved
    try:
        if args.saved_cmd == "add":
            selection = build_selection(session, args.country_id, args.state_id, args.district_id)
            if not selection.is_complete:
                print("Country, state and district must all be valid")
                return 1
            if not saved.add(selection):
                print("Not added (already saved or list full)")
                return 1
        elif args.saved_cmd == "remove":
            result = session.engine.remove_saved(args.index)
            if result is not None:
                print_selection_result(result)
        elif args.saved_cmd == "primary":
            saved.make_primary(args.index)
        elif args.saved_cmd == "use":
            return print_selection_result(session.engine.use_saved(args.index))
    except (IndexError, ValueError) as e:
        print(e)
        return 1

    _, active = session.engine.active_location()
    for index, location in enumerate(saved.list()):
        marker = "*" if index == 0 else " "
        current = " <" if active is not None and is_same_location(location, active) else ""
        print(f"{marker}{index:>2}  {location.label}, {location.country.name if location.country else ''}{current}")
    return 0


def cmd_check(session, args) -> int:
    outcome = session.poller.check()
    print(f"Location check: {outcome.value}")
    if outcome is not PollOutcome.PROMPTED:
        return 0
    detail, _ = session.poller.pending
    answer = args.answer
    if answer is None:
        answer = input(f"Switch to {detail.display_name}? [y/N] ").strip().lower()
    if answer in ("y", "yes"):
        return print_selection_result(session.poller.accept(remember=args.remember))
    session.poller.decline(remember=args.remember)
    return 0


def cmd_auto_update(session, args) -> int:
    if args.state is not None:
        session.store.save_auto_location_update(args.state == "on")
    print(f"Automatic location updates: {'on' if session.store.load_auto_location_update() else 'off'}")
    return 0


def cmd_watch(session, args) -> int:
    bus = session.events
    bus.subscribe(lambda e: print(f"Location: {e.label} ({e.source})"), LocationResolved)
    bus.subscribe(lambda e: print(f"You seem to be in {e.display_name}. Run 'check' to switch."),
                  LocationChangeDetected)
    bus.subscribe(lambda e: print(f"{e.today}: {'times ready' if e.prayer_time else 'no times cached'}"),
                  CurrentDayChanged)
    session.start()
    try:
        while True:
            time.sleep(args.foreground_every)
            session.on_foreground()
    except KeyboardInterrupt:
        print("Stopping.")
    finally:
        session.stop()
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Location-aware prayer times")
    parser.add_argument("--config", help=f"Path to config file (default: {CONFIG_FILE})")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    p = sub.add_parser("status", help="Show today's prayer times")
    p.add_argument("--husna", action="store_true", help="Also show the name of the day")
    p.set_defaults(func=cmd_status)

    sub.add_parser("countries", help="List countries").set_defaults(func=cmd_countries)

    p = sub.add_parser("states", help="List states of a country")
    p.add_argument("country_id", type=int)
    p.set_defaults(func=cmd_states)

    p = sub.add_parser("districts", help="List districts of a state")
    p.add_argument("state_id", type=int)
    p.set_defaults(func=cmd_districts)

    p = sub.add_parser("select", help="Select a location manually")
    p.add_argument("country_id", type=int)
    p.add_argument("state_id", type=int)
    p.add_argument("district_id", type=int)
    p.add_argument("--no-save", action="store_true", help="Do not add it to saved locations")
    p.set_defaults(func=cmd_select)

    p = sub.add_parser("locate", help="Use the device position")
    p.add_argument("--grant", action="store_true", help="Allow location lookups first")
    p.set_defaults(func=cmd_locate)

    p = sub.add_parser("pick", help="Use the place at a coordinate")
    p.add_argument("lat", type=float)
    p.add_argument("lon", type=float)
    p.set_defaults(func=cmd_pick)

    p = sub.add_parser("refresh", help="Update the prayer-time cache")
    p.add_argument("--force", action="store_true", help="Download even if the cache is fresh")
    p.set_defaults(func=cmd_refresh)

    p = sub.add_parser("saved", help="Manage saved locations")
    saved_sub = p.add_subparsers(dest="saved_cmd")
    saved_sub.add_parser("list")
    sp = saved_sub.add_parser("add")
    sp.add_argument("country_id", type=int)
    sp.add_argument("state_id", type=int)
    sp.add_argument("district_id", type=int)
    for name in ("remove", "primary", "use"):
        saved_sub.add_parser(name).add_argument("index", type=int)
    p.set_defaults(func=cmd_saved, saved_cmd="list")

    p = sub.add_parser("check", help="Check whether the device has moved")
    p.add_argument("--answer", choices=["y", "n"], help="Answer the switch prompt non-interactively")
    p.add_argument("--remember", action="store_true", help="Apply future changes automatically")
    p.set_defaults(func=cmd_check)

    p = sub.add_parser("auto-update", help="Show or set automatic location updates")
    p.add_argument("state", nargs="?", choices=["on", "off"])
    p.set_defaults(func=cmd_auto_update)

    p = sub.add_parser("watch", help="Keep running and follow location changes")
    p.add_argument("--foreground-every", type=float, default=300.0, metavar="SECONDS")
    p.set_defaults(func=cmd_watch)
    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.config)
    setup_logging("DEBUG" if args.verbose else settings.log_level)

    session = AppSession(settings)
    if settings.notifications and args.command == "watch":
        notifier.attach(session.events)
    try:
        return args.func(session, args)
    finally:
        if args.command != "watch":
            session.flush()
            session.client.close()


if __name__ == "__main__":
    sys.exit(main())
