"""Events emitted by the engine for any front end to subscribe to."""

import logging
import threading
from dataclasses import dataclass

from namazvakti.models import CityDetail, LocationMode, PrayerTime

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LocationResolved:
    mode: LocationMode
    label: str
    source: str


@dataclass(frozen=True)
class SameLocation:
    mode: LocationMode
    label: str


@dataclass(frozen=True)
class LocationChangeDetected:
    candidate: CityDetail
    display_name: str


@dataclass(frozen=True)
class ModeSwitched:
    previous: LocationMode | None
    current: LocationMode


@dataclass(frozen=True)
class FetchFailed:
    mode: LocationMode | None
    place_id: str
    error: str


@dataclass(frozen=True)
class CurrentDayChanged:
    mode: LocationMode
    today: str
    prayer_time: PrayerTime | None


class EventBus:
    def __init__(self):
        self._listeners = []
        self._lock = threading.Lock()

    def subscribe(self, listener, event_type=None) -> None:
        """Call ``listener(event)`` for every event, or only for ``event_type``."""
        if not callable(listener):
            raise ValueError("Listener must be callable")
        with self._lock:
            self._listeners.append((event_type, listener))

    def unsubscribe(self, listener) -> None:
        with self._lock:
            self._listeners = [(t, l) for t, l in self._listeners if l is not listener]

    def emit(self, event) -> None:
        with self._lock:
            listeners = list(self._listeners)
        for event_type, listener in listeners:
            if event_type is not None and not isinstance(event, event_type):
                continue
            try:
                listener(event)
            except Exception:
                logger.exception(f"Error in listener for {type(event).__name__}")
