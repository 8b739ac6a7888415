"""Tests for configuration parsing."""

import unittest
import sys
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave.config import AppConfiguration, PredictionMode
from greenwave.exceptions import ConfigurationError


class TestPredictionMode(unittest.TestCase):
    """Test mode name parsing."""

    def test_known_names(self):
        """Test known names."""
        self.assertEqual(PredictionMode.parse("backend"), PredictionMode.BACKEND)
        self.assertEqual(PredictionMode.parse(" HYBRID "), PredictionMode.HYBRID)
        self.assertEqual(PredictionMode.parse("on-device"), PredictionMode.ON_DEVICE)
        self.assertEqual(PredictionMode.parse("on_device"), PredictionMode.ON_DEVICE)
        self.assertEqual(PredictionMode.parse("onDevice"), PredictionMode.ON_DEVICE)

    def test_unknown_or_empty_falls_back(self):
        """Test unknown or empty falls back."""
        self.assertEqual(PredictionMode.parse("cloud"), PredictionMode.ON_DEVICE)
        self.assertEqual(PredictionMode.parse(""), PredictionMode.ON_DEVICE)
        self.assertEqual(PredictionMode.parse(None), PredictionMode.ON_DEVICE)


class TestAppConfiguration(unittest.TestCase):
    """Test environment-driven configuration."""

    def test_defaults(self):
        """Test defaults."""
        config = AppConfiguration.from_env({})

        self.assertEqual(config.prediction_mode, PredictionMode.ON_DEVICE)
        self.assertIsNone(config.backend_base_url)
        self.assertEqual(config.signal_polling_interval, 1.0)
        self.assertEqual(config.low_confidence_threshold, 0.72)
        self.assertIsNone(config.database_path)

    def test_from_env(self):
        """Test from env."""
        config = AppConfiguration.from_env({
            "TRAFFIC_PREDICTION_MODE": "hybrid",
            "TRAFFIC_API_BASE_URL": "https://signals.example",
            "TRAFFIC_POLLING_INTERVAL": "2.5",
            "TRAFFIC_LOW_CONFIDENCE_THRESHOLD": "0.6",
            "TRAFFIC_DB_PATH": "/tmp/greenwave.db",
        })

        self.assertEqual(config.prediction_mode, PredictionMode.HYBRID)
        self.assertEqual(config.backend_base_url, "https://signals.example")
        self.assertEqual(config.signal_polling_interval, 2.5)
        self.assertEqual(config.low_confidence_threshold, 0.6)
        self.assertEqual(config.database_path, "/tmp/greenwave.db")

    def test_blank_base_url_means_unconfigured(self):
        """Test blank base url means unconfigured."""
        config = AppConfiguration.from_env({"TRAFFIC_API_BASE_URL": ""})
        self.assertIsNone(config.backend_base_url)

    def test_bad_number_raises(self):
        """Test bad number raises."""
        with self.assertRaises(ConfigurationError):
            AppConfiguration.from_env({"TRAFFIC_POLLING_INTERVAL": "soon"})


if __name__ == "__main__":
    unittest.main()
