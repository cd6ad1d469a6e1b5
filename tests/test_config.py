"""Tests for config loading and settings defaults."""

import tempfile
import unittest
from pathlib import Path

from wsw_status.config import CONFIG_PATH, build_settings, load_config, resolve_config_path
from wsw_status.fetchers.wsw import STATUS_URL


class TestConfig(unittest.TestCase):
    """Test config.yaml parsing."""

    def test_repository_config_loads(self):
        settings = build_settings(load_config(CONFIG_PATH), environ={})
        self.assertEqual(settings.url, STATUS_URL)
        self.assertEqual(settings.poll_interval_seconds, 15 * 60)
        self.assertEqual(settings.request_window_seconds, 20 * 60)
        self.assertEqual(settings.host, "0.0.0.0")
        self.assertEqual(settings.port, 8070)

    def test_defaults_for_empty_config(self):
        settings = build_settings({}, environ={})
        self.assertEqual(settings.timeout_seconds, 10)
        self.assertEqual(settings.poll_interval_seconds, 900)
        self.assertEqual(settings.request_window_seconds, 1200)
        self.assertEqual(settings.port, 8070)

    def test_invalid_values_fall_back(self):
        config = {
            "refresh": {"poll_interval_minutes": "often", "request_window_minutes": None},
            "health": {"staleness_warning_minutes": 90, "staleness_critical_minutes": 10},
            "server": "not-a-mapping",
        }
        settings = build_settings(config, environ={})
        self.assertEqual(settings.poll_interval_seconds, 900)
        self.assertEqual(settings.request_window_seconds, 1200)
        self.assertEqual(settings.staleness_critical_sec, settings.staleness_warning_sec)
        self.assertEqual(settings.host, "0.0.0.0")

    def test_environment_overrides_server(self):
        settings = build_settings(
            {"server": {"host": "127.0.0.1", "port": 9000}},
            environ={"HOST": "localhost", "PORT": "8123"},
        )
        self.assertEqual(settings.host, "localhost")
        self.assertEqual(settings.port, 8123)

    def test_config_path_override(self):
        self.assertEqual(resolve_config_path({}), CONFIG_PATH)
        self.assertEqual(resolve_config_path({"STATUS_CONFIG": "/tmp/x.yaml"}), Path("/tmp/x.yaml"))

    def test_missing_file_raises(self):
        with self.assertRaises(FileNotFoundError):
            load_config(Path("/nonexistent/config.yaml"))

    def test_non_mapping_root_raises(self):
        with tempfile.TemporaryDirectory() as tmp:
            path = Path(tmp) / "config.yaml"
            path.write_text("- just\n- a list\n")
            with self.assertRaises(ValueError):
                load_config(path)


if __name__ == "__main__":
    unittest.main()
