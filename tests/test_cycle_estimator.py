"""Tests for CycleEstimator learning and prediction."""

import unittest
from datetime import datetime, timedelta
from unittest.mock import MagicMock
import sys
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave.cycle_estimator import MAX_OBSERVATIONS, CycleEstimator
from greenwave.storage import MemoryKeyValueStore, SignalPhaseStorage

BASE = datetime(2024, 5, 6, 8, 0, 0)
FIXED_NOW = datetime(2024, 5, 6, 12, 0, 0)


def at(seconds: float) -> datetime:
    return BASE + timedelta(seconds=seconds)


class TestCycleEstimator(unittest.TestCase):
    """Test cycle learning from green launches."""

    def setUp(self):
        self.estimator = CycleEstimator(storage=SignalPhaseStorage(MemoryKeyValueStore()), clock=lambda: FIXED_NOW)

    def record(self, node_id, offsets):
        pattern = None
        for offset in offsets:
            pattern = self.estimator.record_green_launch(node_id, at(offset))
        return pattern

    def test_no_prediction_without_enough_observations(self):
        """Test no prediction without enough observations."""
        self.record("osm-1", [0, 60])

        self.assertIsNone(self.estimator.pattern("osm-1").cycle_length)
        self.assertIsNone(self.estimator.predict_next_green("osm-1", at(90)))

    def test_no_prediction_for_unknown_node(self):
        """Test no prediction for unknown node."""
        self.assertIsNone(self.estimator.predict_next_green("missing", at(0)))

    def test_regular_launches_converge(self):
        """Test regular launches converge."""
        pattern = self.record("osm-1", [0, 60, 120, 180, 240])

        self.assertEqual(pattern.cycle_length, 60.0)
        self.assertEqual(pattern.cycle_offset, 0.0)
        self.assertAlmostEqual(pattern.confidence, 0.715)

        prediction = self.estimator.predict_next_green("osm-1", at(250))
        self.assertIsNotNone(prediction)
        self.assertEqual(prediction.node_id, "osm-1")
        self.assertEqual(prediction.next_green_time, at(300))
        self.assertEqual(prediction.cycle_length, 60.0)

    def test_prediction_is_strictly_in_the_future(self):
        """Test prediction is strictly in the future."""
        self.record("osm-1", [0, 60, 120])

        # Exactly on a green onset the next one is a full cycle away
        prediction = self.estimator.predict_next_green("osm-1", at(300))
        self.assertEqual(prediction.next_green_time, at(360))

    def test_prediction_before_offset_in_cycle(self):
        """Test prediction before offset in cycle."""
        self.record("osm-1", [30, 90, 150])

        pattern = self.estimator.pattern("osm-1")
        self.assertEqual(pattern.cycle_offset, 30.0)

        prediction = self.estimator.predict_next_green("osm-1", at(10))
        self.assertEqual(prediction.next_green_time, at(30))

    def test_out_of_range_intervals_are_discarded(self):
        """Test out of range intervals are discarded."""
        pattern = self.record("osm-1", [0, 5, 10, 14])
        self.assertIsNone(pattern.cycle_length)

        pattern = self.record("osm-2", [0, 60, 65, 125, 185])
        self.assertEqual(pattern.cycle_length, 60.0)

    def test_intervals_longer_than_max_are_discarded(self):
        """Test intervals longer than max are discarded."""
        pattern = self.record("osm-1", [0, 600, 1200])
        self.assertIsNone(pattern.cycle_length)
        self.assertEqual(pattern.confidence, 0.0)

    def test_history_is_bounded(self):
        """Test history is bounded."""
        pattern = self.record("osm-1", [i * 60 for i in range(MAX_OBSERVATIONS + 1)])

        self.assertEqual(len(pattern.observations), MAX_OBSERVATIONS)
        self.assertEqual(pattern.observations[0].green_launch_time, at(60))

    def test_long_regular_history_gives_high_confidence(self):
        """Test long regular history gives high confidence."""
        pattern = self.record("osm-1", [i * 60 for i in range(70)])
        self.assertGreater(pattern.confidence, 0.9)
        self.assertLessEqual(pattern.confidence, 1.0)

    def test_irregular_launches_lower_confidence(self):
        """Test irregular launches lower confidence."""
        regular = self.record("osm-1", [0, 60, 120, 180, 240])
        irregular = self.record("osm-2", [0, 63, 118, 184, 237])
        self.assertLess(irregular.confidence, regular.confidence)

    def test_replay_is_deterministic(self):
        """Test replay is deterministic."""
        offsets = [0, 61, 119, 182, 240, 301]
        first = self.record("osm-1", offsets)

        other = CycleEstimator(storage=SignalPhaseStorage(MemoryKeyValueStore()), clock=lambda: FIXED_NOW)
        for offset in offsets:
            second = other.record_green_launch("osm-1", at(offset))

        self.assertEqual(first, second)

    def test_record_returns_new_pattern_object(self):
        """Test record returns new pattern object."""
        first = self.record("osm-1", [0])
        second = self.record("osm-1", [60])
        self.assertIsNot(first, second)
        self.assertEqual(len(first.observations), 1)
        self.assertEqual(len(second.observations), 2)

    def test_returned_patterns_do_not_alias_state(self):
        """Test returned patterns do not alias state."""
        returned = self.record("osm-1", [0, 60, 120])
        returned.observations.clear()
        returned.cycle_length = 5.0

        snapshot = self.estimator.pattern("osm-1")
        snapshot.observations.clear()

        committed = self.estimator.pattern("osm-1")
        self.assertEqual(len(committed.observations), 3)
        self.assertEqual(committed.cycle_length, 60.0)
        self.assertEqual(self.estimator.predict_next_green("osm-1", at(130)).next_green_time, at(180))

    def test_patterns_persist_across_instances(self):
        """Test patterns persist across instances."""
        store = MemoryKeyValueStore()
        estimator = CycleEstimator(storage=SignalPhaseStorage(store), clock=lambda: FIXED_NOW)
        for offset in [0, 60, 120, 180]:
            estimator.record_green_launch("osm-1", at(offset))

        reloaded = CycleEstimator(storage=SignalPhaseStorage(store), clock=lambda: FIXED_NOW)
        prediction = reloaded.predict_next_green("osm-1", at(200))
        self.assertEqual(prediction.next_green_time, at(240))

    def test_storage_loaded_once(self):
        """Test storage loaded once."""
        storage = MagicMock()
        storage.load_all.return_value = {}
        estimator = CycleEstimator(storage=storage, clock=lambda: FIXED_NOW)

        estimator.pattern("osm-1")
        estimator.record_green_launch("osm-1", at(0))
        estimator.predict_next_green("osm-1", at(10))

        storage.load_all.assert_called_once()
        storage.save.assert_called_once()

    def test_persistence_failure_keeps_pattern_in_memory(self):
        """Test persistence failure keeps pattern in memory."""
        store = MagicMock()
        store.keys.return_value = []
        store.set.side_effect = OSError("disk full")
        estimator = CycleEstimator(storage=SignalPhaseStorage(store), clock=lambda: FIXED_NOW)

        for offset in [0, 60, 120]:
            estimator.record_green_launch("osm-1", at(offset))

        self.assertEqual(estimator.pattern("osm-1").cycle_length, 60.0)
        self.assertIsNotNone(estimator.predict_next_green("osm-1", at(130)))


if __name__ == "__main__":
    unittest.main()
