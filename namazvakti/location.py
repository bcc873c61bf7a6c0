"""Device location sources and connectivity probing."""

import logging
import time

import requests

from namazvakti.models import Coordinates

logger = logging.getLogger(__name__)

IPAPI_URL = "http://ip-api.com/json/"


class LocationError(Exception):
    """No position could be obtained."""


class LocationPermissionError(LocationError):
    """The user has not allowed location lookups."""


class IpLocationProvider:
    """
    Position fix from IP geolocation.

    The desktop stand-in for a GPS receiver. Location access is opt-in: the
    permission flag lives in the store and is granted explicitly by the user.
    """

    def __init__(self, store, url: str = IPAPI_URL, session: requests.Session | None = None):
        self.store = store
        self.url = url
        self._session = session or requests.Session()

    def has_permission(self) -> bool:
        return self.store.load_location_permission()

    def grant_permission(self) -> None:
        self.store.save_location_permission(True)

    def revoke_permission(self) -> None:
        self.store.save_location_permission(False)

    def current_position(self, timeout: float = 15.0, max_age: float = 0) -> Coordinates:
        """
        Return a fresh fix. ``max_age`` is accepted for interface parity;
        IP lookups are never served from a local cache.
        Raises LocationError on failure.
        """
        try:
            resp = self._session.get(
                self.url,
                params={"fields": "status,message,lat,lon"},
                timeout=timeout,
            )
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            raise LocationError(f"IP geolocation failed: {e}") from e

        if data.get("status") != "success":
            raise LocationError(f"IP geolocation failed: {data.get('message', 'unknown error')}")
        try:
            return Coordinates(lat=float(data["lat"]), lon=float(data["lon"]))
        except (KeyError, TypeError, ValueError) as e:
            raise LocationError(f"IP geolocation returned no coordinates: {e}") from e


class FixedLocationProvider:
    """Always reports the same coordinate (configured position, tests)."""

    def __init__(self, coords: Coordinates, granted: bool = True):
        self.coords = coords
        self.granted = granted

    def has_permission(self) -> bool:
        return self.granted

    def current_position(self, timeout: float = 15.0, max_age: float = 0) -> Coordinates:
        return self.coords


class NetworkMonitor:
    """Answers "are we online?" with a cheap HEAD probe, cached briefly."""

    def __init__(self, url: str, timeout: float = 3.0, ttl: float = 5.0, clock=time.monotonic):
        self.url = url
        self.timeout = timeout
        self.ttl = ttl
        self._clock = clock
        self._checked_at = None
        self._online = True

    def is_online(self) -> bool:
        now = self._clock()
        if self._checked_at is not None and now - self._checked_at < self.ttl:
            return self._online
        try:
            requests.head(self.url, timeout=self.timeout, allow_redirects=True)
            online = True
        except requests.RequestException as e:
            logger.info(f"Connectivity probe failed: {e}")
            online = False
        if online != self._online:
            logger.info(f"Network is now {'online' if online else 'offline'}")
        self._online = online
        self._checked_at = now
        return online
