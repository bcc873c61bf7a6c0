"""Place hierarchy lookups and reverse geocoding.

Hierarchy lists are served stale-while-revalidate: a fresh list is fetched
when online and written to the store, and the cached list is returned when
the network call fails or we are offline.
"""

import logging

from namazvakti.api_client import DiyanetApiError
from namazvakti.models import CityDetail, PlaceItem

logger = logging.getLogger(__name__)


class PlaceResolver:
    def __init__(self, client, store, network=None):
        self.client = client
        self.store = store
        self.network = network

    def _online(self) -> bool:
        return self.network is None or self.network.is_online()

    def _places(self, label: str, fetch, load_cached, save_cached) -> list[PlaceItem]:
        cached = load_cached()
        if not self._online():
            return cached
        try:
            fresh = [PlaceItem.from_dict(item) for item in fetch() if isinstance(item, dict)]
        except DiyanetApiError as e:
            logger.error(f"Error loading {label}: {e}")
            return cached
        if fresh:
            save_cached(fresh)
            return fresh
        return cached

    def countries(self) -> list[PlaceItem]:
        return self._places(
            "countries",
            self.client.get_countries,
            self.store.load_cached_countries,
            self.store.save_cached_countries,
        )

    def states(self, country_id: int) -> list[PlaceItem]:
        return self._places(
            f"states of country {country_id}",
            lambda: self.client.get_states(country_id),
            lambda: self.store.load_cached_states(country_id),
            lambda places: self.store.save_cached_states(country_id, places),
        )

    def districts(self, state_id: int) -> list[PlaceItem]:
        return self._places(
            f"districts of state {state_id}",
            lambda: self.client.get_districts(state_id),
            lambda: self.store.load_cached_districts(state_id),
            lambda places: self.store.save_cached_districts(state_id, places),
        )

    def warm_countries(self) -> None:
        """Fill the country cache once so the picker works offline."""
        if self.store.load_cached_countries() or not self._online():
            return
        try:
            countries = [PlaceItem.from_dict(c) for c in self.client.get_countries() if isinstance(c, dict)]
        except DiyanetApiError as e:
            logger.warning(f"Background country cache warming failed: {e}")
            return
        if countries:
            self.store.save_cached_countries(countries)

    def find(self, places, place_id: int) -> PlaceItem | None:
        for place in places:
            if place.id == place_id:
                return place
        return None

    def reverse_geocode(self, lat: float, lon: float, retry: bool = True) -> CityDetail | None:
        """
        Return the provider's place for a coordinate, or None if it has none.
        Raises DiyanetApiError on network failure.
        """
        data = self.client.get_city_from_location(lat, lon, retry=retry)
        if not isinstance(data, dict) or not data.get("id"):
            logger.info(f"No place found for {lat:.4f}, {lon:.4f}")
            return None
        return CityDetail.from_dict(data)
