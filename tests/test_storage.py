"""Tests for key-value stores and pattern/profile persistence."""

import unittest
from datetime import datetime
from unittest.mock import MagicMock, patch
import sys
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave.models import IntersectionCycleProfile, SignalCyclePattern, SignalPhaseObservation
from greenwave.storage import CycleProfileStore, MemoryKeyValueStore, SignalPhaseStorage, SQLiteKeyValueStore


class TestSQLiteKeyValueStore(unittest.TestCase):
    """Test the SQLite-backed store."""

    def setUp(self):
        self.store = SQLiteKeyValueStore(":memory:")

    def tearDown(self):
        self.store.close()

    def test_set_and_get(self):
        """Test set and get."""
        self.assertIsNone(self.store.get("missing"))
        self.store.set("a", "1")
        self.store.set("a", "2")
        self.assertEqual(self.store.get("a"), "2")

    def test_keys_match_prefix_literally(self):
        """Test keys match prefix literally."""
        self.store.set("cycle_profile-1", "x")
        self.store.set("cycleXprofile-2", "y")
        self.store.set("other", "z")

        self.assertEqual(self.store.keys("cycle_profile"), ["cycle_profile-1"])
        self.assertEqual(sorted(self.store.keys()), ["cycleXprofile-2", "cycle_profile-1", "other"])

    def test_retention_cleanup(self):
        """Test retention cleanup."""
        with patch("greenwave.storage.time.time", return_value=1_000.0):
            self.store.set("old", "1")
        self.store.set("fresh", "2")

        removed = self.store.retention_cleanup(retention_days=30)

        self.assertEqual(removed, 1)
        self.assertIsNone(self.store.get("old"))
        self.assertEqual(self.store.get("fresh"), "2")


class TestSignalPhaseStorage(unittest.TestCase):
    """Test best-effort pattern persistence."""

    def _pattern(self, node_id):
        launched = datetime(2024, 5, 6, 8, 0, 0)
        return SignalCyclePattern(
            node_id=node_id,
            observations=[SignalPhaseObservation.from_launch(node_id, launched)],
            last_updated=launched,
        )

    def test_save_and_load(self):
        """Test save and load."""
        storage = SignalPhaseStorage(MemoryKeyValueStore())
        pattern = self._pattern("osm-1")
        storage.save(pattern)

        self.assertEqual(storage.load("osm-1"), pattern)
        self.assertIsNone(storage.load("osm-2"))

    def test_load_all_skips_unreadable_entries(self):
        """Test load all skips unreadable entries."""
        store = MemoryKeyValueStore()
        storage = SignalPhaseStorage(store)
        storage.save(self._pattern("osm-1"))
        storage.save(self._pattern("osm-2"))
        store.set(SignalPhaseStorage.KEY_PREFIX + "broken", "not json")
        store.set("cycle-profile-x", "{}")

        patterns = storage.load_all()

        self.assertEqual(sorted(patterns), ["osm-1", "osm-2"])

    def test_works_with_sqlite_store(self):
        """Test works with sqlite store."""
        store = SQLiteKeyValueStore()
        storage = SignalPhaseStorage(store)
        storage.save(self._pattern("osm-1"))

        self.assertIn("osm-1", storage.load_all())
        store.close()

    def test_failures_are_swallowed(self):
        """Test failures are swallowed."""
        store = MagicMock()
        store.set.side_effect = OSError("read-only")
        store.get.side_effect = OSError("read-only")
        store.keys.side_effect = OSError("read-only")
        storage = SignalPhaseStorage(store)

        storage.save(self._pattern("osm-1"))
        self.assertIsNone(storage.load("osm-1"))
        self.assertEqual(storage.load_all(), {})


class TestCycleProfileStore(unittest.TestCase):
    """Test fallback profile persistence."""

    def test_upsert_and_fetch(self):
        """Test upsert and fetch."""
        profiles = CycleProfileStore(MemoryKeyValueStore())
        profile = IntersectionCycleProfile.default("1.0000_2.0000", datetime(2024, 5, 6))

        self.assertIsNone(profiles.profile("1.0000_2.0000"))
        profiles.upsert(profile)
        self.assertEqual(profiles.profile("1.0000_2.0000"), profile)


if __name__ == "__main__":
    unittest.main()
