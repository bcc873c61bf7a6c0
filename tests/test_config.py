"""Tests for the config module."""

import json
import os
import shutil
import tempfile
import unittest
from unittest.mock import patch

from namazvakti.config import Settings, load_settings, save_settings


class TestLoadSettings(unittest.TestCase):
    def setUp(self):
        self._tmpdir = tempfile.mkdtemp()
        self.path = os.path.join(self._tmpdir, "config.json")

    def tearDown(self):
        shutil.rmtree(self._tmpdir, ignore_errors=True)

    def write(self, data):
        with open(self.path, "w") as f:
            json.dump(data, f)

    @patch.dict(os.environ, {}, clear=True)
    def test_defaults_without_file(self):
        settings = load_settings(self.path)
        self.assertEqual(settings.manual_freshness, "age")
        self.assertEqual(settings.manual_max_age_days, 29)
        self.assertEqual(settings.api_username, "")

    @patch.dict(os.environ, {}, clear=True)
    def test_values_are_cast(self):
        self.write({"request_timeout": "12", "notifications": "false", "coverage_days": 31, "bogus": 1})
        settings = load_settings(self.path)
        self.assertEqual(settings.request_timeout, 12.0)
        self.assertFalse(settings.notifications)
        self.assertEqual(settings.coverage_days, 31)

    @patch.dict(os.environ, {}, clear=True)
    def test_invalid_value_keeps_default(self):
        self.write({"max_retries": "many"})
        self.assertEqual(load_settings(self.path).max_retries, 3)

    @patch.dict(os.environ, {}, clear=True)
    def test_invalid_file_gives_defaults(self):
        with open(self.path, "w") as f:
            f.write("not valid json")
        self.assertEqual(load_settings(self.path), Settings())

    @patch.dict(os.environ, {"NAMAZVAKTI_API_USERNAME": "env-user", "NAMAZVAKTI_API_PASSWORD": "env-pass"}, clear=True)
    def test_environment_overrides_file(self):
        self.write({"api_username": "file-user"})
        settings = load_settings(self.path)
        self.assertEqual(settings.api_username, "env-user")
        self.assertEqual(settings.api_password, "env-pass")

    def test_save_omits_password(self):
        save_settings(Settings(data_dir=self._tmpdir, api_username="u", api_password="p"), self.path)
        with open(self.path) as f:
            data = json.load(f)
        self.assertEqual(data["api_username"], "u")
        self.assertNotIn("api_password", data)

    def test_store_path_in_data_dir(self):
        settings = Settings(data_dir=self._tmpdir)
        self.assertEqual(settings.store_path, os.path.join(self._tmpdir, "store.json"))


if __name__ == "__main__":
    unittest.main()
