"""Tests for VehicleStateTracker stop/launch detection."""

import unittest
from datetime import datetime, timedelta
import sys
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave.models import Coordinate, GreenLightLaunch, HardStop, Moving, Stopped, VehicleSample
from greenwave.vehicle_state import TrackerState, VehicleStateTracker

HERE = Coordinate(37.7749, -122.4194)
T0 = datetime(2024, 5, 6, 8, 0, 0)


def sample(offset: float, speed: float, accel: float = 1.0) -> VehicleSample:
    return VehicleSample(location=HERE, speed_kph=speed, acceleration_g=accel, timestamp=T0 + timedelta(seconds=offset))


class TestVehicleStateTracker(unittest.TestCase):
    """Test the stop/launch state machine."""

    def setUp(self):
        self.tracker = VehicleStateTracker()
        self.events = []
        self.tracker.events.subscribe(self.events.append)

    def feed(self, *samples):
        for s in samples:
            self.tracker.process(s)

    def of_type(self, cls):
        return [e for e in self.events if isinstance(e, cls)]

    def test_sample_status_flags(self):
        """Test sample status flags."""
        self.assertTrue(sample(0, 0.5).is_stationary)
        self.assertFalse(sample(0, 0.5).is_moving)
        self.assertTrue(sample(0, 30.0).is_moving)
        self.assertFalse(sample(0, 30.0).is_stationary)

    def test_single_hard_stop_for_sustained_stop(self):
        """Test single hard stop for sustained stop."""
        speeds = [20, 20, 0.5, 0.5, 0.5, 0.3]
        self.feed(*[sample(i, s) for i, s in enumerate(speeds)])

        hard_stops = self.of_type(HardStop)
        self.assertEqual(len(hard_stops), 1)
        self.assertEqual(hard_stops[0].timestamp, T0 + timedelta(seconds=4))
        self.assertEqual(self.tracker.state, TrackerState.STOPPED_CONFIRMED)

    def test_short_stop_is_not_confirmed(self):
        """Test short stop is not confirmed."""
        self.feed(sample(0, 20), sample(1, 0.5), sample(2.5, 0.5))

        self.assertEqual(self.of_type(HardStop), [])
        self.assertEqual(self.tracker.state, TrackerState.STOPPED_PENDING)

    def test_launch_from_stop(self):
        """Test launch from stop."""
        self.feed(sample(0, 20), sample(1, 0.0), sample(3, 0.0))
        self.events.clear()

        self.feed(sample(4, 6.0, accel=1.2))

        launches = self.of_type(GreenLightLaunch)
        self.assertEqual(len(launches), 1)
        self.assertEqual(launches[0].location, HERE)
        self.assertEqual(self.tracker.state, TrackerState.MOVING)
        self.assertIsNone(self.tracker.stop_detected_at)

    def test_weak_acceleration_is_not_a_launch(self):
        """Test weak acceleration is not a launch."""
        self.feed(sample(0, 20), sample(1, 0.0), sample(3, 0.0))
        self.events.clear()

        self.feed(sample(4, 6.0, accel=1.05))

        self.assertEqual(self.of_type(GreenLightLaunch), [])

    def test_no_second_launch_while_moving(self):
        """Test no second launch while moving."""
        self.feed(sample(0, 0.0), sample(1, 6.0, accel=1.2), sample(2, 12.0, accel=1.3))
        self.assertEqual(len(self.of_type(GreenLightLaunch)), 1)

    def test_status_events_accompany_transitions(self):
        """Test status events accompany transitions."""
        self.feed(sample(0, 20), sample(1, 0.5), sample(3, 0.5))

        # Hard stop comes before the status event of the same sample
        self.assertIsInstance(self.events[-2], HardStop)
        self.assertIsInstance(self.events[-1], Stopped)
        self.assertEqual(self.of_type(Moving), [Moving(speed_kph=20)])

    def test_creeping_speed_emits_no_status(self):
        """Test creeping speed emits no status."""
        self.feed(sample(0, 3.0))
        self.assertEqual(self.events, [])

    def test_malformed_samples_are_ignored(self):
        """Test malformed samples are ignored."""
        self.feed(
            None,
            VehicleSample(location=None, speed_kph=10, acceleration_g=1.0, timestamp=T0),
            VehicleSample(location=HERE, speed_kph=float("nan"), acceleration_g=1.0, timestamp=T0),
            VehicleSample(location=HERE, speed_kph=-4.0, acceleration_g=1.0, timestamp=T0),
            VehicleSample(location=HERE, speed_kph=10.0, acceleration_g=1.0, timestamp=None),
        )
        self.assertEqual(self.events, [])
        self.assertIsNone(self.tracker.current_sample)

    def test_tolerates_sampling_gaps(self):
        """Test tolerates sampling gaps."""
        self.feed(sample(0, 40), sample(1, 0.2), sample(120, 0.2))
        self.assertEqual(len(self.of_type(HardStop)), 1)


if __name__ == "__main__":
    unittest.main()
