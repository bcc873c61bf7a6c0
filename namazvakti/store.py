"""Durable key-value storage for locations, prayer-time caches and preferences.

Everything lives in one JSON file. Single writes and batches are committed
with an atomic file replace; while a batch is open the store lock is held,
so readers see either the state before the batch or the state after it.
Read and write failures are logged and treated as "absent".
"""

import copy
import datetime
import json
import logging
import os
import threading
from contextlib import contextmanager

from namazvakti.models import (
    GPSCityInfo,
    LocationMode,
    PlaceItem,
    SelectedLocation,
    series_from_dicts,
    series_to_dicts,
)

logger = logging.getLogger(__name__)

LOCATION_MODE = "locationMode"
SELECTED_LOCATION = "selectedLocation"
GPS_CITY_INFO = "gpsCityInfo"
MANUAL_PRAYER_TIMES = "prayerTimes"
MANUAL_LAST_FETCH = "lastFetchDate"
LAST_LOCATION_ID = "lastLocationId"
# legacy key, never written; cleared with the manual data
LAST_LOCATION_DATE = "lastLocationDate"
GPS_PRAYER_TIMES = "gpsPrayerTimes"
GPS_LAST_FETCH = "gpsLastFetchDate"
SAVED_LOCATIONS = "savedLocations"
AUTO_LOCATION_UPDATE = "autoLocationUpdate"
LOCATION_PERMISSION = "locationPermission"
CACHED_COUNTRIES = "cachedCountries"
CACHED_STATES = "cachedStates:{}"
CACHED_DISTRICTS = "cachedDistricts:{}"
TIMEZONE = "timezone:{}:{}:{}"

SERIES_KEYS = {
    LocationMode.MANUAL: MANUAL_PRAYER_TIMES,
    LocationMode.GPS: GPS_PRAYER_TIMES,
}
FETCH_KEYS = {
    LocationMode.MANUAL: MANUAL_LAST_FETCH,
    LocationMode.GPS: GPS_LAST_FETCH,
}
MANUAL_KEYS = (SELECTED_LOCATION, MANUAL_PRAYER_TIMES, MANUAL_LAST_FETCH, LAST_LOCATION_ID, LAST_LOCATION_DATE)
GPS_KEYS = (GPS_CITY_INFO, GPS_PRAYER_TIMES, GPS_LAST_FETCH)


class JsonStore:
    """Thread-safe JSON file key-value store."""

    def __init__(self, path: str):
        self.path = path
        self._lock = threading.RLock()
        self._pending = None
        self._batch_result = None
        self._data = self._read()

    def _read(self) -> dict:
        if not os.path.isfile(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            logger.error(f"Error reading store {self.path}: {e}")
            return {}
        if not isinstance(data, dict):
            logger.error(f"Store root is not an object, ignoring: {self.path}")
            return {}
        return data

    def _write(self, data: dict) -> bool:
        tmp_path = self.path + ".tmp"
        try:
            os.makedirs(os.path.dirname(self.path) or ".", exist_ok=True)
            with open(tmp_path, "w", encoding="utf-8") as f:
                json.dump(data, f, ensure_ascii=False, indent=2)
            os.replace(tmp_path, self.path)
            return True
        except (OSError, TypeError, ValueError) as e:
            logger.error(f"Error writing store {self.path}: {e}")
            return False

    def get(self, key: str, default=None):
        with self._lock:
            source = self._pending if self._pending is not None else self._data
            if key not in source:
                return default
            return copy.deepcopy(source[key])

    def set(self, key: str, value) -> bool:
        with self._lock:
            if self._pending is not None:
                self._pending[key] = copy.deepcopy(value)
                return True
            data = dict(self._data)
            data[key] = copy.deepcopy(value)
            return self._commit(data)

    def remove(self, *keys: str) -> bool:
        with self._lock:
            target = self._pending if self._pending is not None else dict(self._data)
            for key in keys:
                target.pop(key, None)
            if self._pending is not None:
                return True
            return self._commit(target)

    def keys(self) -> list[str]:
        with self._lock:
            source = self._pending if self._pending is not None else self._data
            return list(source)

    def _commit(self, data: dict) -> bool:
        if not self._write(data):
            return False
        self._data = data
        return True

    @contextmanager
    def batch(self):
        """Group several writes into one commit.

        Yields a dict with a ``committed`` flag set after the block. If the
        block raises or the file write fails, nothing is applied. A nested
        batch joins the outer one and shares its flag.
        """
        with self._lock:
            if self._pending is not None:
                yield self._batch_result
                return
            self._pending = dict(self._data)
            result = {"committed": False}
            self._batch_result = result
            try:
                yield result
                pending = self._pending
                self._pending = None
                result["committed"] = self._commit(pending)
            finally:
                self._pending = None
                self._batch_result = None


def _parse_timestamp(value) -> datetime.datetime | None:
    if not value:
        return None
    try:
        return datetime.datetime.fromisoformat(str(value))
    except ValueError:
        logger.error(f"Invalid timestamp in store: {value!r}")
        return None


class PersistedStore(JsonStore):
    """Typed accessors over the raw keys. No decisions are made here."""

    # mode flag

    def load_location_mode(self) -> LocationMode | None:
        return LocationMode.parse(self.get(LOCATION_MODE))

    def save_location_mode(self, mode: LocationMode) -> bool:
        return self.set(LOCATION_MODE, mode.value)

    # manual selection

    def load_selected_location(self) -> SelectedLocation | None:
        raw = self.get(SELECTED_LOCATION)
        if not isinstance(raw, dict):
            return None
        return SelectedLocation.from_dict(raw)

    def save_selected_location(self, selection: SelectedLocation) -> bool:
        return self.set(SELECTED_LOCATION, selection.to_dict())

    def load_last_location_id(self) -> int | None:
        value = self.get(LAST_LOCATION_ID)
        try:
            return int(value) if value is not None else None
        except (TypeError, ValueError):
            return None

    def save_last_location_id(self, location_id: int) -> bool:
        return self.set(LAST_LOCATION_ID, location_id)

    # gps place

    def load_gps_city_info(self) -> GPSCityInfo | None:
        raw = self.get(GPS_CITY_INFO)
        if not isinstance(raw, dict) or not raw.get("id"):
            return None
        return GPSCityInfo.from_dict(raw)

    def save_gps_city_info(self, info: GPSCityInfo) -> bool:
        return self.set(GPS_CITY_INFO, info.to_dict())

    # prayer-time series

    def load_prayer_times(self, mode: LocationMode) -> list:
        raw = self.get(SERIES_KEYS[mode])
        if not isinstance(raw, list):
            return []
        try:
            return series_from_dicts(raw)
        except (KeyError, TypeError, AttributeError) as e:
            logger.error(f"Corrupt {mode.value} prayer times in store: {e}")
            return []

    def save_prayer_times(self, mode: LocationMode, series) -> bool:
        return self.set(SERIES_KEYS[mode], series_to_dicts(series))

    def load_last_fetch(self, mode: LocationMode) -> datetime.datetime | None:
        return _parse_timestamp(self.get(FETCH_KEYS[mode]))

    def save_last_fetch(self, mode: LocationMode, when: datetime.datetime) -> bool:
        return self.set(FETCH_KEYS[mode], when.isoformat())

    def clear_manual_data(self) -> bool:
        return self.remove(*MANUAL_KEYS)

    def clear_gps_data(self) -> bool:
        return self.remove(*GPS_KEYS)

    # saved locations

    def load_saved_locations(self) -> list[SelectedLocation]:
        raw = self.get(SAVED_LOCATIONS)
        if not isinstance(raw, list):
            return []
        return [SelectedLocation.from_dict(item) for item in raw if isinstance(item, dict)]

    def save_saved_locations(self, locations) -> bool:
        return self.set(SAVED_LOCATIONS, [loc.to_dict() for loc in locations])

    # preferences

    def load_auto_location_update(self) -> bool:
        return bool(self.get(AUTO_LOCATION_UPDATE, False))

    def save_auto_location_update(self, enabled: bool) -> bool:
        return self.set(AUTO_LOCATION_UPDATE, bool(enabled))

    def load_location_permission(self) -> bool:
        return bool(self.get(LOCATION_PERMISSION, False))

    def save_location_permission(self, granted: bool) -> bool:
        return self.set(LOCATION_PERMISSION, bool(granted))

    # timezone cache

    def load_cached_timezone(self, country: str, city: str, region: str) -> str | None:
        return self.get(TIMEZONE.format(country, city, region))

    def save_cached_timezone(self, country: str, city: str, region: str, zone: str) -> bool:
        return self.set(TIMEZONE.format(country, city, region), zone)

    # place hierarchy cache

    def load_cached_countries(self) -> list[PlaceItem]:
        return self._load_places(CACHED_COUNTRIES)

    def save_cached_countries(self, places) -> bool:
        return self.set(CACHED_COUNTRIES, [p.to_dict() for p in places])

    def load_cached_states(self, country_id: int) -> list[PlaceItem]:
        return self._load_places(CACHED_STATES.format(country_id))

    def save_cached_states(self, country_id: int, places) -> bool:
        return self.set(CACHED_STATES.format(country_id), [p.to_dict() for p in places])

    def load_cached_districts(self, state_id: int) -> list[PlaceItem]:
        return self._load_places(CACHED_DISTRICTS.format(state_id))

    def save_cached_districts(self, state_id: int, places) -> bool:
        return self.set(CACHED_DISTRICTS.format(state_id), [p.to_dict() for p in places])

    def _load_places(self, key: str) -> list[PlaceItem]:
        raw = self.get(key)
        if not isinstance(raw, list):
            return []
        return [PlaceItem.from_dict(item) for item in raw if isinstance(item, dict)]
