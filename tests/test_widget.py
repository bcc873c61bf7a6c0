"""Tests for the widget module."""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from namazvakti.models import PrayerTime
from namazvakti.widget import WIDGET_FILE, WIDGET_MONTHLY_FILE, WidgetPublisher

DAY = PrayerTime(date="2025-11-26", fajr="06:02", sun="07:29", dhuhr="12:24", asr="14:47",
                 maghrib="17:08", isha="18:29", hijri_date_long="5 Cemaziyelahir 1447")
DETAIL = {"country": "TÜRKİYE", "city": "SİVAS", "district": "DİVRİĞİ"}


class TestWidgetPublisher(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.directory = os.path.join(self._tmpdir, "widget")

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def read(self, filename):
        with open(os.path.join(self.directory, filename), encoding="utf-8") as f:
            return json.load(f)

    def test_update_widget(self):
        WidgetPublisher(self.directory, background=False).update_widget(
            "DİVRİĞİ, SİVAS", DAY, DETAIL, "Europe/Istanbul")
        data = self.read(WIDGET_FILE)
        self.assertEqual(data["fajr"], "06:02")
        self.assertEqual(data["district"], "DİVRİĞİ")
        self.assertEqual(data["timezoneId"], "Europe/Istanbul")
        self.assertEqual(data["gregorianDateLong"], "")

    def test_monthly_cache_in_background(self):
        publisher = WidgetPublisher(self.directory)
        thread = publisher.sync_monthly_cache("DİVRİĞİ, SİVAS", [DAY, DAY], DETAIL)
        thread.join(5)
        data = self.read(WIDGET_MONTHLY_FILE)
        self.assertEqual(len(data["days"]), 2)
        self.assertEqual(data["timezoneId"], "")

    def test_concurrent_updates_keep_newest_snapshot(self):
        publisher = WidgetPublisher(self.directory)
        for round_no in range(20):
            labels = [f"place {round_no}-{i}" for i in range(5)]
            with self.assertNoLogs("namazvakti.widget", level="ERROR"):
                threads = [publisher.update_widget(label, DAY, DETAIL) for label in labels]
                for thread in threads:
                    thread.join(5)
            self.assertEqual(self.read(WIDGET_FILE)["locationName"], labels[-1])
        self.assertEqual(os.listdir(self.directory), [WIDGET_FILE])

    def test_stale_snapshot_is_dropped(self):
        publisher = WidgetPublisher(self.directory, background=False)
        publisher._write(WIDGET_FILE, {"locationName": "new"}, seq=2)
        publisher._write(WIDGET_FILE, {"locationName": "old"}, seq=1)
        self.assertEqual(self.read(WIDGET_FILE)["locationName"], "new")

    def test_empty_series_skipped(self):
        self.assertIsNone(WidgetPublisher(self.directory, background=False).sync_monthly_cache("x", []))
        self.assertFalse(os.path.exists(self.directory))

    def test_write_failure_is_logged(self):
        publisher = WidgetPublisher(self.directory, background=False)
        with patch("namazvakti.widget.os.replace", side_effect=OSError("read-only")):
            with self.assertLogs("namazvakti.widget", level="ERROR"):
                publisher.update_widget("x", DAY)
        self.assertEqual(os.listdir(self.directory), [])


if __name__ == "__main__":
    unittest.main()
