"""Tests for the cache_manager module."""

import datetime
import os
import shutil
import tempfile
import unittest
from unittest.mock import MagicMock

from namazvakti.api_client import DiyanetApiError
from namazvakti.cache_manager import (
    PrayerTimeCache,
    find_current_day,
    has_enough_future_data,
    manual_cache_expired,
    remaining_days,
)
from namazvakti.events import EventBus, FetchFailed
from namazvakti.models import GPSCityInfo, LocationMode, PlaceItem, PrayerTime, SelectedLocation
from namazvakti.store import PersistedStore

NOW = datetime.datetime(2025, 11, 26, 9, 0, tzinfo=datetime.timezone.utc)
TODAY = "2025-11-26"
SELECTION = SelectedLocation(PlaceItem(2, "TR", "TÜRKİYE"), PlaceItem(539, "58", "SİVAS"), PlaceItem(9858, "", "DİVRİĞİ"))
GPS_INFO = GPSCityInfo(id="9858", name="Divriği", city="Sivas", country="TÜRKİYE")


def make_series(start=TODAY, days=30, long_dates=True):
    first = datetime.date.fromisoformat(start)
    return [
        PrayerTime(
            date=(first + datetime.timedelta(days=i)).isoformat(),
            fajr="06:02", sun="07:29", dhuhr="12:24", asr="14:47", maghrib="17:08", isha="18:29",
            gregorian_date_long="long" if long_dates else None,
        )
        for i in range(days)
    ]


def remote_rows(start=TODAY, days=30):
    first = datetime.date.fromisoformat(start)
    rows = []
    for i in range(days):
        day = first + datetime.timedelta(days=i)
        rows.append({
            "gregorianDateShort": day.strftime("%d.%m.%Y"),
            "gregorianDateLong": day.strftime("%d %B %Y"),
            "hijriDateShort": "5.6.1447",
            "hijriDateLong": "5 Cemaziyelahir 1447",
            "fajr": "06:02", "sunrise": "07:29", "dhuhr": "12:24",
            "asr": "14:47", "maghrib": "17:08", "isha": "18:29",
        })
    return rows


class TestFreshnessFunctions(unittest.TestCase):
    def test_find_current_day(self):
        series = make_series(days=3)
        self.assertEqual(find_current_day(series, "2025-11-27").date, "2025-11-27")
        self.assertIsNone(find_current_day(series, "2025-12-01"))
        self.assertIsNone(find_current_day([], TODAY))

    def test_remaining_days(self):
        series = make_series("2025-11-20", 30)
        self.assertEqual(remaining_days(series, TODAY), 24)
        self.assertEqual(remaining_days(series, "2025-10-01"), 0)
        self.assertFalse(has_enough_future_data(series, TODAY))
        self.assertTrue(has_enough_future_data(make_series(TODAY, 30), TODAY))

    def test_manual_age_boundary(self):
        self.assertTrue(manual_cache_expired(None, NOW))
        self.assertTrue(manual_cache_expired(NOW - datetime.timedelta(days=29), NOW))
        self.assertFalse(manual_cache_expired(NOW - datetime.timedelta(days=28), NOW))

    def test_naive_timestamp_treated_as_utc(self):
        naive = (NOW - datetime.timedelta(days=2)).replace(tzinfo=None)
        self.assertFalse(manual_cache_expired(naive, NOW))


class CacheTestCase(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.store = PersistedStore(os.path.join(self._tmpdir, "store.json"))
        self.client = MagicMock()
        self.client.get_prayer_times.return_value = remote_rows()
        self.network = MagicMock()
        self.network.is_online.return_value = True
        self.events = EventBus()
        self.cache = PrayerTimeCache(self.store, self.client, self.network, self.events, clock=lambda: NOW)

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def use_manual(self, series, fetched_days_ago):
        self.store.save_location_mode(LocationMode.MANUAL)
        self.store.save_selected_location(SELECTION)
        self.store.save_prayer_times(LocationMode.MANUAL, series)
        if fetched_days_ago is not None:
            self.store.save_last_fetch(LocationMode.MANUAL, NOW - datetime.timedelta(days=fetched_days_ago))

    def use_gps(self, series):
        self.store.save_location_mode(LocationMode.GPS)
        self.store.save_gps_city_info(GPS_INFO)
        self.store.save_prayer_times(LocationMode.GPS, series)


class TestNeedsFetch(CacheTestCase):
    def test_manual_29_days_fetches(self):
        self.use_manual(make_series("2025-10-28", 60), 29)
        self.assertTrue(self.cache.needs_fetch(LocationMode.MANUAL, TODAY))

    def test_manual_28_days_reuses(self):
        self.use_manual(make_series("2025-10-29", 60), 28)
        self.assertFalse(self.cache.needs_fetch(LocationMode.MANUAL, TODAY))

    def test_manual_without_timestamp_fetches(self):
        self.use_manual(make_series(), None)
        self.assertTrue(self.cache.needs_fetch(LocationMode.MANUAL, TODAY))

    def test_manual_without_today_fetches(self):
        self.use_manual(make_series("2025-10-01", 10), 1)
        self.assertTrue(self.cache.needs_fetch(LocationMode.MANUAL, TODAY))

    def test_manual_coverage_policy(self):
        self.cache.manual_freshness = "coverage"
        self.use_manual(make_series(TODAY, 10), 1)
        self.assertTrue(self.cache.needs_fetch(LocationMode.MANUAL, TODAY))

    def test_gps_coverage(self):
        self.use_gps(make_series(TODAY, 30))
        self.assertFalse(self.cache.needs_fetch(LocationMode.GPS, TODAY))
        self.use_gps(make_series(TODAY, 29))
        self.assertTrue(self.cache.needs_fetch(LocationMode.GPS, TODAY))

    def test_gps_legacy_rows_refetched(self):
        self.use_gps(make_series(TODAY, 30, long_dates=False))
        self.assertTrue(self.cache.needs_fetch(LocationMode.GPS, TODAY))

    def test_idempotent(self):
        self.use_manual(make_series("2025-10-29", 60), 28)
        first = self.cache.needs_fetch(LocationMode.MANUAL, TODAY)
        self.assertEqual(first, self.cache.needs_fetch(LocationMode.MANUAL, TODAY))
        self.client.get_prayer_times.assert_not_called()


class TestRefresh(CacheTestCase):
    def test_fresh_cache_not_fetched(self):
        series = make_series("2025-10-29", 60)
        self.use_manual(series, 28)
        result = self.cache.refresh(LocationMode.MANUAL, TODAY)
        self.assertFalse(result.fetched)
        self.assertTrue(result.ok)
        self.assertEqual(result.series, series)
        self.client.get_prayer_times.assert_not_called()

    def test_stale_cache_replaced(self):
        self.use_manual(make_series("2025-10-28", 60), 29)
        result = self.cache.refresh(LocationMode.MANUAL, TODAY)
        self.assertTrue(result.fetched)
        self.client.get_prayer_times.assert_called_once_with("9858", "Monthly")
        stored = self.store.load_prayer_times(LocationMode.MANUAL)
        self.assertEqual(stored, result.series)
        self.assertEqual(stored[0].date, TODAY)
        self.assertEqual(self.store.load_last_fetch(LocationMode.MANUAL), NOW)

    def test_force_bypasses_freshness(self):
        self.use_gps(make_series(TODAY, 30))
        result = self.cache.refresh(LocationMode.GPS, TODAY, force=True)
        self.assertTrue(result.fetched)
        self.client.get_prayer_times.assert_called_once_with("9858", "Monthly")

    def test_failure_keeps_cache(self):
        series = make_series("2025-10-28", 60)
        self.use_manual(series, 29)
        self.client.get_prayer_times.side_effect = DiyanetApiError("down")
        failures = []
        self.events.subscribe(failures.append, FetchFailed)

        result = self.cache.refresh(LocationMode.MANUAL, TODAY)
        self.assertFalse(result.fetched)
        self.assertEqual(result.error, "down")
        self.assertEqual(result.series, series)
        self.assertEqual(self.store.load_prayer_times(LocationMode.MANUAL), series)
        self.assertEqual(len(failures), 1)

    def test_offline_keeps_cache(self):
        self.use_gps(make_series(TODAY, 5))
        self.network.is_online.return_value = False
        result = self.cache.refresh(LocationMode.GPS, TODAY)
        self.assertEqual(result.error, "offline")
        self.assertEqual(len(result.series), 5)
        self.client.get_prayer_times.assert_not_called()

    def test_empty_answer_keeps_cache(self):
        self.use_gps(make_series(TODAY, 5))
        self.client.get_prayer_times.return_value = []
        result = self.cache.refresh(LocationMode.GPS, TODAY)
        self.assertFalse(result.fetched)
        self.assertEqual(len(self.store.load_prayer_times(LocationMode.GPS)), 5)

    def test_no_active_location(self):
        result = self.cache.refresh(LocationMode.GPS, TODAY)
        self.assertEqual(result.error, "no active location")
        self.assertEqual(result.series, [])

    def test_result_discarded_after_mode_change(self):
        self.use_gps(make_series(TODAY, 5))

        def switch_during_fetch(*args):
            self.store.save_location_mode(LocationMode.MANUAL)
            return remote_rows()

        self.client.get_prayer_times.side_effect = switch_during_fetch
        result = self.cache.refresh(LocationMode.GPS, TODAY)
        self.assertFalse(result.fetched)
        self.assertEqual(len(self.store.load_prayer_times(LocationMode.GPS)), 5)

    def test_legacy_manual_id(self):
        self.store.save_last_location_id(9541)
        self.assertEqual(self.cache.place_id_for(LocationMode.MANUAL), "9541")


if __name__ == "__main__":
    unittest.main()
