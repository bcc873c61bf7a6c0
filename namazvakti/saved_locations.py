"""Ordered shortcut list of manual locations. Index 0 is the primary one."""

import logging

from namazvakti.identity import is_same_location
from namazvakti.models import SelectedLocation

logger = logging.getLogger(__name__)

MAX_SAVED_LOCATIONS = 10


class SavedLocations:
    def __init__(self, store, limit: int = MAX_SAVED_LOCATIONS):
        self.store = store
        self.limit = limit

    def list(self) -> list[SelectedLocation]:
        return self.store.load_saved_locations()

    def index_of(self, location) -> int:
        for index, saved in enumerate(self.list()):
            if is_same_location(saved, location):
                return index
        return -1

    def contains(self, location) -> bool:
        return self.index_of(location) >= 0

    def add(self, location: SelectedLocation) -> bool:
        """Append a complete location. Duplicates and a full list are refused."""
        if not location.is_complete:
            raise ValueError("Only complete selections can be saved")
        with self.store.batch():
            saved = self.list()
            if any(is_same_location(s, location) for s in saved):
                logger.info(f"{location.label} is already saved")
                return False
            if len(saved) >= self.limit:
                logger.warning(f"Saved locations are full ({self.limit}), not adding {location.label}")
                return False
            saved.append(location)
            self.store.save_saved_locations(saved)
        return True

    def remove(self, index: int) -> SelectedLocation:
        """Remove and return the entry at ``index``; the primary cannot be removed."""
        with self.store.batch():
            saved = self.list()
            if not 0 <= index < len(saved):
                raise IndexError(f"No saved location at index {index}")
            if index == 0:
                raise ValueError("The primary location cannot be removed")
            removed = saved.pop(index)
            self.store.save_saved_locations(saved)
        return removed

    def make_primary(self, index: int) -> SelectedLocation:
        with self.store.batch():
            saved = self.list()
            if not 0 <= index < len(saved):
                raise IndexError(f"No saved location at index {index}")
            location = saved.pop(index)
            saved.insert(0, location)
            self.store.save_saved_locations(saved)
        return location
