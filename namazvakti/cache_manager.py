"""Decide between cached and fresh prayer times, and find "today's" row."""

import datetime
import logging
from dataclasses import dataclass, field

from namazvakti.api_client import DiyanetApiError
from namazvakti.events import FetchFailed
from namazvakti.models import LocationMode, PrayerTime
from namazvakti.prayer_api import DEFAULT_PERIOD, fetch_prayer_series

logger = logging.getLogger(__name__)

MANUAL_MAX_AGE_DAYS = 29
COVERAGE_DAYS = 30


def utc_now() -> datetime.datetime:
    return datetime.datetime.now(datetime.timezone.utc)


def find_current_day(series, today: str) -> PrayerTime | None:
    for pt in series:
        if pt.day == today:
            return pt
    return None


def remaining_days(series, today: str) -> int:
    """Rows from today's row to the end, or 0 when today is missing."""
    for index, pt in enumerate(series):
        if pt.day == today:
            return len(series) - index
    return 0


def has_enough_future_data(series, today: str, days_needed: int = COVERAGE_DAYS) -> bool:
    return remaining_days(series, today) >= days_needed


def has_long_dates(series) -> bool:
    # caches written before the long date fields were stored
    return bool(series) and series[0].gregorian_date_long is not None


def manual_cache_expired(last_fetch: datetime.datetime | None, now: datetime.datetime,
                         max_age_days: int = MANUAL_MAX_AGE_DAYS) -> bool:
    if last_fetch is None:
        return True
    if last_fetch.tzinfo is None:
        last_fetch = last_fetch.replace(tzinfo=datetime.timezone.utc)
    return now - last_fetch >= datetime.timedelta(days=max_age_days)


@dataclass
class RefreshResult:
    mode: LocationMode
    series: list = field(default_factory=list)
    fetched: bool = False
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.error is None


class PrayerTimeCache:
    """Prayer-time cache for both location modes, backed by the store."""

    def __init__(self, store, client, network=None, events=None, clock=utc_now,
                 manual_freshness: str = "age", manual_max_age_days: int = MANUAL_MAX_AGE_DAYS,
                 coverage_days: int = COVERAGE_DAYS):
        self.store = store
        self.client = client
        self.network = network
        self.events = events
        self.clock = clock
        self.manual_freshness = manual_freshness
        self.manual_max_age_days = manual_max_age_days
        self.coverage_days = coverage_days

    @classmethod
    def from_settings(cls, settings, store, client, network=None, events=None, clock=utc_now) -> "PrayerTimeCache":
        return cls(
            store, client, network=network, events=events, clock=clock,
            manual_freshness=settings.manual_freshness,
            manual_max_age_days=settings.manual_max_age_days,
            coverage_days=settings.coverage_days,
        )

    def place_id_for(self, mode: LocationMode) -> str | None:
        if mode is LocationMode.GPS:
            info = self.store.load_gps_city_info()
            return info.id if info else None
        selection = self.store.load_selected_location()
        if selection and selection.is_complete and selection.district.id:
            return str(selection.district.id)
        legacy_id = self.store.load_last_location_id()
        return str(legacy_id) if legacy_id else None

    def series(self, mode: LocationMode) -> list:
        return self.store.load_prayer_times(mode)

    def current_day(self, mode: LocationMode, today: str) -> PrayerTime | None:
        return find_current_day(self.series(mode), today)

    def needs_fetch(self, mode: LocationMode, today: str) -> bool:
        """Whether the cached series of ``mode`` must be refetched."""
        series = self.series(mode)
        if mode is LocationMode.GPS or self.manual_freshness == "coverage":
            return not has_enough_future_data(series, today, self.coverage_days) or not has_long_dates(series)
        if find_current_day(series, today) is None:
            return True
        return manual_cache_expired(self.store.load_last_fetch(mode), self.clock(), self.manual_max_age_days)

    def fetch_series(self, place_id, period: str = DEFAULT_PERIOD) -> list:
        """Fetch a fresh series without touching the store."""
        logger.info(f"Fetching {period} prayer times for place {place_id}")
        return fetch_prayer_series(self.client, place_id, period)

    def refresh(self, mode: LocationMode, today: str, force: bool = False) -> RefreshResult:
        """
        Bring the cache of ``mode`` up to date.

        Returns the cached series unchanged when no fetch is needed, when
        offline, or when the fetch fails; a failed fetch never clears it.
        """
        cached = self.series(mode)
        place_id = self.place_id_for(mode)
        if not place_id:
            return RefreshResult(mode, cached, error="no active location")
        if not force and not self.needs_fetch(mode, today):
            logger.debug(f"{mode.value} prayer times are fresh, using cache")
            return RefreshResult(mode, cached)
        if self.network is not None and not self.network.is_online():
            logger.info(f"Offline, keeping cached {mode.value} prayer times")
            return RefreshResult(mode, cached, error="offline")

        try:
            fresh = self.fetch_series(place_id)
        except (DiyanetApiError, ValueError) as e:
            logger.error(f"Error fetching {mode.value} prayer times, using cached data: {e}")
            if self.events:
                self.events.emit(FetchFailed(mode, place_id, str(e)))
            return RefreshResult(mode, cached, error=str(e))
        if not fresh:
            logger.warning(f"Prayer times not found for place {place_id}")
            return RefreshResult(mode, cached, error="no prayer times returned")

        with self.store.batch() as txn:
            # the active location may have changed while we were fetching
            active = self.store.load_location_mode() or LocationMode.MANUAL
            if active is not mode or self.place_id_for(mode) != place_id:
                logger.info("Active location changed during refresh, discarding result")
                return RefreshResult(mode, self.series(mode), error="location changed")
            self.store.save_prayer_times(mode, fresh)
            self.store.save_last_fetch(mode, self.clock())
        if not txn["committed"]:
            return RefreshResult(mode, cached, error="could not persist prayer times")
        logger.info(f"{mode.value} prayer times updated ({len(fresh)} days)")
        return RefreshResult(mode, fresh, fetched=True)
