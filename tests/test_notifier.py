"""Tests for the notifier module."""

import unittest
from unittest.mock import MagicMock, patch

from namazvakti import notifier
from namazvakti.events import EventBus, LocationChangeDetected, ModeSwitched, SameLocation
from namazvakti.models import CityDetail, LocationMode
from namazvakti.notifier import _send_plyer, notify_fetch_failed, notify_location_change


class TestNotifyLocationChange(unittest.TestCase):
    @patch("namazvakti.notifier._send_plyer")
    def test_calls_send_plyer(self, mock_plyer):
        notify_location_change("Divriği, Sivas")
        mock_plyer.assert_called_once()
        args = mock_plyer.call_args[0]
        self.assertIn("Location changed", args[0])
        self.assertIn("Divriği", args[1])

    @patch("namazvakti.notifier._send_plyer")
    def test_calls_callback(self, mock_plyer):
        cb = MagicMock()
        notify_fetch_failed("timeout", callback=cb)
        cb.assert_called_once()
        self.assertIn("timeout", cb.call_args[0][1])


class TestSendPlyer(unittest.TestCase):
    @patch("namazvakti.notifier.plyer_notification")
    def test_passes_app_name(self, mock_notification):
        _send_plyer("title", "message", timeout=5)
        kwargs = mock_notification.notify.call_args[1]
        self.assertEqual(kwargs["app_name"], notifier.APP_NAME)
        self.assertEqual(kwargs["timeout"], 5)

    @patch("namazvakti.notifier.plyer_notification")
    def test_missing_backend_is_logged(self, mock_notification):
        mock_notification.notify.side_effect = NotImplementedError("No usable implementation")
        with self.assertLogs("namazvakti.notifier", level="WARNING"):
            _send_plyer("title", "message")


class TestAttach(unittest.TestCase):
    @patch("namazvakti.notifier._send_plyer")
    def test_subscribes_to_engine_events(self, mock_plyer):
        bus = EventBus()
        cb = MagicMock()
        notifier.attach(bus, cb)

        bus.emit(LocationChangeDetected(CityDetail("9858", "Divriği", "Sivas", "TÜRKİYE"), "Divriği, Sivas"))
        bus.emit(SameLocation(LocationMode.MANUAL, "DİVRİĞİ, SİVAS"))
        bus.emit(ModeSwitched(None, LocationMode.GPS))

        self.assertEqual(mock_plyer.call_count, 2)
        self.assertEqual(cb.call_count, 2)


if __name__ == "__main__":
    unittest.main()
