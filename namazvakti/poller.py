"""
Notice when the device has moved to a different place than the active one.

A check takes a fresh position, reverse geocodes it and compares the result
with the persisted active location. A first fix in GPS mode is applied
directly; other changes are applied when the user has opted in to automatic
updates and are otherwise offered through a ``LocationChangeDetected`` event.
"""

import logging
import threading
import time
from enum import Enum

from namazvakti.api_client import DiyanetApiError
from namazvakti.events import LocationChangeDetected
from namazvakti.identity import is_same_location
from namazvakti.location import LocationError
from namazvakti.mode_engine import SelectionStatus
from namazvakti.models import LocationMode

logger = logging.getLogger(__name__)


class PollOutcome(str, Enum):
    SKIPPED_OFFLINE = "skipped_offline"
    SKIPPED_NO_PERMISSION = "skipped_no_permission"
    SKIPPED_BUSY = "skipped_busy"
    BOOTSTRAPPED = "bootstrapped"
    APPLIED = "applied"
    PROMPTED = "prompted"
    NO_CHANGE = "no_change"
    UNRESOLVED = "unresolved"
    ABORTED = "aborted"


class ChangeDetectionPoller:
    def __init__(self, engine, resolver, provider, network, store, events,
                 start_delay: float = 3.0, min_interval: float = 10.0,
                 location_timeout: float = 15.0, clock=time.monotonic):
        self.engine = engine
        self.resolver = resolver
        self.provider = provider
        self.network = network
        self.store = store
        self.events = events
        self.start_delay = start_delay
        self.min_interval = min_interval
        self.location_timeout = location_timeout
        self._clock = clock

        self._lock = threading.Lock()
        self._in_flight = False
        self._last_started = None
        self._timer = None
        self._pending = None

    @property
    def pending(self):
        """Candidate place waiting for ``accept`` or ``decline``."""
        return self._pending

    def on_start(self) -> None:
        """Arm a single delayed check after startup."""
        self.cancel()
        self._timer = threading.Timer(self.start_delay, self.check)
        self._timer.daemon = True
        self._timer.start()

    def cancel(self) -> None:
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None

    def on_foreground(self) -> PollOutcome | None:
        """Check again unless the previous check began less than ``min_interval`` ago."""
        last = self._last_started
        if last is not None and self._clock() - last < self.min_interval:
            logger.debug("Location check ran recently, skipping")
            return None
        return self.check()

    def check(self) -> PollOutcome:
        if not self.network.is_online():
            return PollOutcome.SKIPPED_OFFLINE
        with self._lock:
            if self._in_flight:
                logger.debug("Location check already running")
                return PollOutcome.SKIPPED_BUSY
            self._in_flight = True
            self._last_started = self._clock()
        try:
            return self._check()
        finally:
            with self._lock:
                self._in_flight = False

    def _check(self) -> PollOutcome:
        try:
            if not self.provider.has_permission():
                logger.debug("Location permission not granted, skipping location check")
                return PollOutcome.SKIPPED_NO_PERMISSION
            coords = self.provider.current_position(timeout=self.location_timeout, max_age=0)
            detail = self.resolver.reverse_geocode(coords.lat, coords.lon, retry=False)
        except (LocationError, DiyanetApiError) as e:
            logger.warning(f"Location check aborted: {e}")
            return PollOutcome.ABORTED
        if detail is None:
            return PollOutcome.UNRESOLVED

        mode, active = self.engine.active_location()
        logger.debug(f"Location check: active={active.label if active else None}, found={detail.display_name}")

        if active is None:
            if mode in (None, LocationMode.GPS):
                logger.info(f"First location fix: {detail.display_name}")
                result = self.engine.apply_detected(detail, coords)
                return PollOutcome.BOOTSTRAPPED if result.status is SelectionStatus.APPLIED else PollOutcome.ABORTED
            return PollOutcome.NO_CHANGE
        if is_same_location(detail, active):
            return PollOutcome.NO_CHANGE

        logger.info(f"Location change detected: {active.label} -> {detail.display_name}")
        if self.store.load_auto_location_update():
            result = self.engine.apply_detected(detail, coords)
            return PollOutcome.APPLIED if result.status is SelectionStatus.APPLIED else PollOutcome.ABORTED
        self._pending = (detail, coords)
        self.events.emit(LocationChangeDetected(detail, detail.display_name))
        return PollOutcome.PROMPTED

    def accept(self, remember: bool = False):
        """Apply the pending candidate. Returns the SelectionResult, or None if nothing is pending."""
        pending, self._pending = self._pending, None
        if remember:
            self.store.save_auto_location_update(True)
        if pending is None:
            return None
        detail, coords = pending
        return self.engine.apply_detected(detail, coords)

    def decline(self, remember: bool = False) -> None:
        self._pending = None
        if remember:
            # the preference is stored even when the change itself is declined
            self.store.save_auto_location_update(True)
