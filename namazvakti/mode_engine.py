"""
GPS / manual location state machine.

``switch_mode`` is the only writer of the mode flag. It writes the new
mode's place, series and fetch time and clears the other mode's data in a
single store batch, so exactly one mode's data is ever persisted.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from namazvakti.api_client import DiyanetApiError
from namazvakti.events import FetchFailed, LocationResolved, ModeSwitched, SameLocation
from namazvakti.identity import is_same_location
from namazvakti.location import LocationPermissionError
from namazvakti.models import Coordinates, GPSCityInfo, LocationMode, SelectedLocation

logger = logging.getLogger(__name__)


class SelectionStatus(str, Enum):
    APPLIED = "applied"
    SAME_LOCATION = "same_location"
    FAILED = "failed"
    NOT_FOUND = "not_found"
    INCOMPLETE = "incomplete"


@dataclass
class SelectionResult:
    status: SelectionStatus
    series: list = field(default_factory=list)
    mode: LocationMode | None = None
    label: str = ""
    error: str | None = None


@dataclass(frozen=True)
class ModePayload:
    """Fully resolved data for a mode: its place and its prayer-time series."""

    place: SelectedLocation | GPSCityInfo
    series: list


@dataclass(frozen=True)
class SelectionSnapshot:
    """Active places and their cached series, captured when a selection flow begins."""

    manual: SelectedLocation | None = None
    gps: GPSCityInfo | None = None
    manual_series: list = field(default_factory=list)
    gps_series: list = field(default_factory=list)


class LocationModeEngine:
    def __init__(self, store, cache, resolver, provider, saved, events, location_timeout: float = 15.0):
        self.store = store
        self.cache = cache
        self.resolver = resolver
        self.provider = provider
        self.saved = saved
        self.events = events
        self.location_timeout = location_timeout

    # state

    def active_location(self) -> tuple:
        """Return ``(mode, place)`` for the persisted active location."""
        mode = self.store.load_location_mode()
        if mode is LocationMode.GPS:
            return mode, self.store.load_gps_city_info()
        selection = self.store.load_selected_location()
        if selection is None or not selection.is_complete:
            selection = None
        return mode or (LocationMode.MANUAL if selection else None), selection

    def begin_selection(self) -> SelectionSnapshot:
        manual = self.store.load_selected_location()
        gps = self.store.load_gps_city_info()
        return SelectionSnapshot(
            manual=manual if manual and manual.is_complete else None,
            gps=gps,
            manual_series=self.store.load_prayer_times(LocationMode.MANUAL),
            gps_series=self.store.load_prayer_times(LocationMode.GPS),
        )

    # transitions

    def switch_mode(self, new_mode: LocationMode, payload: ModePayload | None) -> bool:
        if payload is None or not payload.series:
            logger.warning(f"Refusing to switch to {new_mode.value} mode without prayer times")
            return False
        place = payload.place
        if new_mode is LocationMode.MANUAL and not (isinstance(place, SelectedLocation) and place.is_complete):
            logger.warning("Refusing to switch to manual mode without a complete selection")
            return False
        if new_mode is LocationMode.GPS and not (isinstance(place, GPSCityInfo) and place.id):
            logger.warning("Refusing to switch to gps mode without a place id")
            return False

        previous = self.store.load_location_mode()
        with self.store.batch() as txn:
            self.store.save_location_mode(new_mode)
            if new_mode is LocationMode.MANUAL:
                self.store.save_selected_location(place)
                self.store.save_last_location_id(place.district.id)
            else:
                self.store.save_gps_city_info(place)
            self.store.save_prayer_times(new_mode, payload.series)
            self.store.save_last_fetch(new_mode, self.cache.clock())
            if new_mode is LocationMode.MANUAL:
                self.store.clear_gps_data()
            else:
                self.store.clear_manual_data()
        if not txn["committed"]:
            logger.error(f"Could not persist switch to {new_mode.value} mode")
            return False

        logger.info(f"Location mode: {previous.value if previous else 'none'} -> {new_mode.value}")
        self.events.emit(ModeSwitched(previous, new_mode))
        return True

    def _short_circuit(self, place, snapshot: SelectionSnapshot) -> SelectionResult | None:
        candidates = (
            (LocationMode.MANUAL, snapshot.manual, snapshot.manual_series),
            (LocationMode.GPS, snapshot.gps, snapshot.gps_series),
        )
        for mode, active, series in candidates:
            if active is not None and series and is_same_location(place, active):
                logger.info(f"{active.label} is already the active location, reusing cached prayer times")
                self.events.emit(SameLocation(mode, active.label))
                return SelectionResult(SelectionStatus.SAME_LOCATION, series, mode, active.label)
        return None

    def _fetch(self, mode: LocationMode, place_id: str, label: str):
        """Return ``(series, failure)``; exactly one of them is set."""
        try:
            series = self.cache.fetch_series(place_id)
        except (DiyanetApiError, ValueError) as e:
            logger.error(f"Error fetching prayer times for {label}: {e}")
            self.events.emit(FetchFailed(mode, place_id, str(e)))
            return None, SelectionResult(SelectionStatus.FAILED, mode=mode, label=label, error=str(e))
        if not series:
            logger.warning(f"No prayer times found for {label}")
            return None, SelectionResult(SelectionStatus.NOT_FOUND, mode=mode, label=label)
        return series, None

    def _apply(self, mode: LocationMode, place, series, source: str) -> SelectionResult:
        if not self.switch_mode(mode, ModePayload(place, series)):
            return SelectionResult(SelectionStatus.FAILED, mode=mode, label=place.label,
                                   error="could not persist location")
        self.events.emit(LocationResolved(mode, place.label, source))
        return SelectionResult(SelectionStatus.APPLIED, series, mode, place.label)

    # selection flows

    def select_manual(self, selection: SelectedLocation | None, snapshot: SelectionSnapshot | None = None,
                      save: bool = True) -> SelectionResult:
        """Make a picker selection the active location, saving it as a shortcut."""
        if snapshot is None:
            snapshot = self.begin_selection()
        if selection is None or not selection.is_complete:
            return SelectionResult(SelectionStatus.INCOMPLETE, mode=LocationMode.MANUAL)

        same = self._short_circuit(selection, snapshot)
        if same:
            return same
        series, failure = self._fetch(LocationMode.MANUAL, str(selection.district.id), selection.label)
        if failure:
            return failure
        result = self._apply(LocationMode.MANUAL, selection, series, "manual")
        if save and result.status is SelectionStatus.APPLIED and not self.saved.contains(selection):
            self.saved.add(selection)
        return result

    def select_gps(self, detail, snapshot: SelectionSnapshot | None = None,
                   coords: Coordinates | None = None, source: str = "gps") -> SelectionResult:
        if snapshot is None:
            snapshot = self.begin_selection()
        if detail is None or not detail.id:
            return SelectionResult(SelectionStatus.NOT_FOUND, mode=LocationMode.GPS)

        same = self._short_circuit(detail, snapshot)
        if same:
            return same
        info = GPSCityInfo.from_city_detail(detail, coords)
        series, failure = self._fetch(LocationMode.GPS, info.id, info.label)
        if failure:
            return failure
        return self._apply(LocationMode.GPS, info, series, source)

    def select_map(self, lat: float, lon: float) -> SelectionResult:
        """Reverse geocode a picked coordinate and select the place found there."""
        snapshot = self.begin_selection()
        try:
            detail = self.resolver.reverse_geocode(lat, lon)
        except DiyanetApiError as e:
            logger.error(f"Reverse geocoding {lat:.4f}, {lon:.4f} failed: {e}")
            return SelectionResult(SelectionStatus.FAILED, mode=LocationMode.GPS, error=str(e))
        return self.select_gps(detail, snapshot, Coordinates(lat, lon), source="map")

    def locate(self) -> SelectionResult:
        """
        Take a fresh device fix and select the place there.

        Raises LocationPermissionError when location access is not granted
        and LocationError when no fix can be obtained.
        """
        snapshot = self.begin_selection()
        if not self.provider.has_permission():
            raise LocationPermissionError("Location permission has not been granted")
        coords = self.provider.current_position(timeout=self.location_timeout, max_age=0)
        try:
            detail = self.resolver.reverse_geocode(coords.lat, coords.lon)
        except DiyanetApiError as e:
            logger.error(f"Reverse geocoding the device position failed: {e}")
            return SelectionResult(SelectionStatus.FAILED, mode=LocationMode.GPS, error=str(e))
        return self.select_gps(detail, snapshot, coords, source="gps")

    def apply_detected(self, detail, coords: Coordinates | None = None) -> SelectionResult:
        """Move to a place found by the poller: always a fresh fetch, never saved."""
        info = GPSCityInfo.from_city_detail(detail, coords)
        series, failure = self._fetch(LocationMode.GPS, info.id, info.label)
        if failure:
            return failure
        return self._apply(LocationMode.GPS, info, series, "detected")

    # saved locations

    def use_saved(self, index: int) -> SelectionResult:
        saved = self.saved.list()
        if not 0 <= index < len(saved):
            raise IndexError(f"No saved location at index {index}")
        return self.select_manual(saved[index], save=False)

    def remove_saved(self, index: int) -> SelectionResult | None:
        """Remove a saved location; if it was active, fall back to the primary one."""
        _, active = self.active_location()
        removed = self.saved.remove(index)
        if active is None or not is_same_location(removed, active):
            return None
        remaining = self.saved.list()
        if not remaining:
            return None
        logger.info(f"Active location {removed.label} removed, selecting {remaining[0].label}")
        return self.select_manual(remaining[0], save=False)
