"""Application session: owns the store, the API client and every engine component."""

import logging
import threading
from dataclasses import dataclass, field

from namazvakti.api_client import DiyanetApiError, DiyanetClient
from namazvakti.cache_manager import PrayerTimeCache, RefreshResult, find_current_day, utc_now
from namazvakti.civil_date import TimezoneResolver, local_today
from namazvakti.events import CurrentDayChanged, EventBus, ModeSwitched
from namazvakti.location import IpLocationProvider, NetworkMonitor
from namazvakti.mode_engine import LocationModeEngine
from namazvakti.models import GPSCityInfo, LocationMode, PrayerTime
from namazvakti.place_resolver import PlaceResolver
from namazvakti.poller import ChangeDetectionPoller
from namazvakti.saved_locations import SavedLocations
from namazvakti.store import PersistedStore
from namazvakti.widget import WidgetPublisher

logger = logging.getLogger(__name__)


@dataclass
class ActiveState:
    mode: LocationMode | None = None
    label: str = ""
    detail: dict | None = None
    series: list = field(default_factory=list)
    today: str = ""
    current_day: PrayerTime | None = None
    timezone: str | None = None


def location_detail(place) -> dict | None:
    """Country / city / district names of an active place."""
    if place is None:
        return None
    if isinstance(place, GPSCityInfo):
        return {"country": place.country, "city": place.city, "district": place.name}
    return {
        "country": place.country.name if place.country else "",
        "city": place.city.name if place.city else "",
        "district": place.district.name if place.district else "",
    }


class AppSession:
    def __init__(self, settings, store=None, client=None, provider=None, network=None,
                 timezones=None, widget=None, clock=utc_now):
        self.settings = settings
        self.clock = clock
        self.events = EventBus()
        self.store = store or PersistedStore(settings.store_path)
        self.client = client or DiyanetClient.from_settings(settings)
        self.network = network or NetworkMonitor(settings.connectivity_url)
        self.provider = provider or IpLocationProvider(self.store, settings.ip_location_url)
        self.timezones = timezones or TimezoneResolver(self.store, settings.geocoding_url)
        if widget is None and settings.widget_enabled:
            widget = WidgetPublisher(settings.widget_dir)
        self.widget = widget

        self.resolver = PlaceResolver(self.client, self.store, self.network)
        self.cache = PrayerTimeCache.from_settings(
            settings, self.store, self.client, self.network, self.events, clock=clock
        )
        self.saved = SavedLocations(self.store)
        self.engine = LocationModeEngine(
            self.store, self.cache, self.resolver, self.provider, self.saved, self.events,
            location_timeout=settings.location_timeout,
        )
        self.poller = ChangeDetectionPoller(
            self.engine, self.resolver, self.provider, self.network, self.store, self.events,
            start_delay=settings.startup_check_delay,
            min_interval=settings.foreground_min_interval,
            location_timeout=settings.location_timeout,
        )
        self.events.subscribe(lambda _e: self.publish_widget_in_background(), ModeSwitched)

        self._publish_lock = threading.Lock()
        self._publish_thread = None
        self._widget_writers = []
        self._stop = threading.Event()
        self._ticker = None
        self._ticks = 0
        self._last_day = None

    # state

    def timezone(self, place=None) -> str | None:
        if place is None:
            _, place = self.engine.active_location()
        detail = location_detail(place)
        if not detail:
            return None
        return self.timezones.resolve(
            detail["country"], detail["city"], detail["district"], online=self.network.is_online()
        )

    def active_state(self) -> ActiveState:
        mode, place = self.engine.active_location()
        if place is None:
            return ActiveState(mode=mode, today=local_today(now=self.clock()))
        zone = self.timezone(place)
        today = local_today(zone, self.clock())
        series = self.cache.series(mode)
        return ActiveState(
            mode=mode,
            label=place.label,
            detail=location_detail(place),
            series=series,
            today=today,
            current_day=find_current_day(series, today),
            timezone=zone,
        )

    # actions

    def refresh(self, force: bool = False) -> RefreshResult | None:
        mode, place = self.engine.active_location()
        if place is None:
            logger.info("No active location yet, nothing to refresh")
            return None
        today = local_today(self.timezone(place), self.clock())
        result = self.cache.refresh(mode, today, force=force)
        if result.fetched:
            self.publish_widget()
        return result

    def publish_widget(self) -> None:
        if self.widget is None:
            return
        with self._publish_lock:
            state = self.active_state()
            if state.current_day is None:
                return
            writers = (
                self.widget.update_widget(state.label, state.current_day, state.detail, state.timezone),
                self.widget.sync_monthly_cache(state.label, state.series, state.detail, state.timezone),
            )
            self._widget_writers = [t for t in writers if isinstance(t, threading.Thread)]

    def publish_widget_in_background(self) -> threading.Thread | None:
        """Publish without holding up the caller; the time zone lookup may hit the network."""
        if self.widget is None:
            return None
        thread = threading.Thread(target=self.publish_widget, daemon=True)
        thread.start()
        self._publish_thread = thread
        return thread

    def flush(self, timeout: float = 10.0) -> None:
        """Wait for pending widget publishes, e.g. before a short-lived process exits."""
        if self._publish_thread is not None:
            self._publish_thread.join(timeout)
        for thread in self._widget_writers:
            thread.join(timeout)

    def esmaul_husna(self) -> dict | None:
        if not self.network.is_online():
            return None
        try:
            return self.client.get_esmaul_husna()
        except DiyanetApiError as e:
            logger.warning(f"Could not load the name of the day: {e}")
            return None

    def on_foreground(self):
        return self.poller.on_foreground()

    # lifecycle

    def tick(self) -> None:
        """Runs once a minute: watch for a new civil day, refresh hourly."""
        self._ticks += 1
        if self._ticks % self.settings.freshness_check_ticks == 0:
            self.refresh()
        state = self.active_state()
        if state.mode is not None and state.today != self._last_day:
            self._last_day = state.today
            logger.info(f"Current day is now {state.today}")
            self.events.emit(CurrentDayChanged(state.mode, state.today, state.current_day))
            self.publish_widget()

    def _run_ticker(self) -> None:
        while not self._stop.wait(self.settings.tick_seconds):
            self.tick()

    def start(self) -> None:
        self._stop.clear()
        self.refresh()
        threading.Thread(target=self.resolver.warm_countries, daemon=True).start()
        self.poller.on_start()
        self.tick()
        self._ticker = threading.Thread(target=self._run_ticker, daemon=True)
        self._ticker.start()

    def stop(self) -> None:
        self._stop.set()
        self.poller.cancel()
        self.client.close()
