"""Tests for the location module."""

import shutil
import tempfile
import os
import unittest
from unittest.mock import MagicMock, patch

import requests

from namazvakti.location import (
    FixedLocationProvider,
    IpLocationProvider,
    LocationError,
    NetworkMonitor,
)
from namazvakti.models import Coordinates
from namazvakti.store import PersistedStore


class TestIpLocationProvider(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.store = PersistedStore(os.path.join(self._tmpdir, "store.json"))
        self.session = MagicMock()
        self.provider = IpLocationProvider(self.store, session=self.session)

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def test_returns_position_on_success(self):
        mock_resp = MagicMock()
        mock_resp.json.return_value = {"status": "success", "lat": 39.37, "lon": 38.11}
        mock_resp.raise_for_status = MagicMock()
        self.session.get.return_value = mock_resp

        coords = self.provider.current_position(timeout=15)
        self.assertEqual(coords, Coordinates(39.37, 38.11))
        self.assertEqual(self.session.get.call_args[1]["timeout"], 15)

    def test_raises_on_network_failure(self):
        self.session.get.side_effect = requests.ConnectionError("Network error")
        with self.assertRaises(LocationError):
            self.provider.current_position()

    def test_raises_on_api_error_status(self):
        mock_resp = MagicMock()
        mock_resp.json.return_value = {"status": "fail", "message": "reserved range"}
        mock_resp.raise_for_status = MagicMock()
        self.session.get.return_value = mock_resp
        with self.assertRaisesRegex(LocationError, "reserved range"):
            self.provider.current_position()

    def test_permission_is_persisted(self):
        self.assertFalse(self.provider.has_permission())
        self.provider.grant_permission()
        self.assertTrue(IpLocationProvider(PersistedStore(self.store.path)).has_permission())
        self.provider.revoke_permission()
        self.assertFalse(self.provider.has_permission())


class TestFixedLocationProvider(unittest.TestCase):
    def test_reports_fixed_coords(self):
        provider = FixedLocationProvider(Coordinates(41.0, 29.0), granted=False)
        self.assertFalse(provider.has_permission())
        self.assertEqual(provider.current_position(), Coordinates(41.0, 29.0))


class TestNetworkMonitor(unittest.TestCase):
    @patch("namazvakti.location.requests.head")
    def test_online_result_is_cached(self, mock_head):
        clock = MagicMock(return_value=100.0)
        monitor = NetworkMonitor("https://example.com", ttl=5, clock=clock)
        self.assertTrue(monitor.is_online())
        clock.return_value = 103.0
        self.assertTrue(monitor.is_online())
        mock_head.assert_called_once()

    @patch("namazvakti.location.requests.head")
    def test_offline_after_failed_probe(self, mock_head):
        clock = MagicMock(return_value=100.0)
        monitor = NetworkMonitor("https://example.com", ttl=5, clock=clock)
        mock_head.side_effect = requests.ConnectionError("no route")
        self.assertFalse(monitor.is_online())
        clock.return_value = 106.0
        mock_head.side_effect = None
        self.assertTrue(monitor.is_online())
        self.assertEqual(mock_head.call_count, 2)


if __name__ == "__main__":
    unittest.main()
