"""Replay simulated drives through the stop/wait/launch pipeline."""

import logging
import sys
from datetime import datetime, timedelta
from pathlib import Path

# Add src to path so we can import greenwave
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from greenwave import (
    Coordinate,
    CycleEstimator,
    Launched,
    LaunchedFromSignal,
    SignalNodeDirectory,
    SignalPhaseStorage,
    SQLiteKeyValueStore,
    StoppedAtSignal,
    StoppedInTraffic,
    StopWaitLaunchCoordinator,
    TrafficNode,
    VehicleStateTracker,
)
from greenwave.simulation import simulate_drive

# Set up logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)

logger = logging.getLogger(__name__)

# Market St & 5th St, San Francisco
INTERSECTION = Coordinate(37.7841, -122.4076)
CYCLE_SECONDS = 90


class StaticNodeClient:
    """Node lookup that always answers with a fixed set of signals."""

    def __init__(self, nodes):
        self.nodes = list(nodes)

    def fetch_traffic_signal_nodes(self, coordinate, radius):
        return [n for n in self.nodes if coordinate.distance_to(n.coordinate) <= radius]


def print_flow_event(event):
    if isinstance(event, StoppedAtSignal):
        print(f"  Stopped at signal {event.node.id} ({event.timestamp.strftime('%H:%M:%S')})")
    elif isinstance(event, StoppedInTraffic):
        print("  Stopped in traffic (no signal nearby)")
    elif isinstance(event, LaunchedFromSignal):
        prediction = event.prediction
        print(
            f"  Launched from {event.node.id}: next green at "
            f"{prediction.next_green_time.strftime('%H:%M:%S')} "
            f"(cycle {prediction.cycle_length:.0f}s, confidence {prediction.confidence:.0%})"
        )
    elif isinstance(event, Launched):
        print("  Launched (not enough history for a prediction yet)")


def main(drives: int = 5, db_path: str = ":memory:"):
    """
    Run a number of simulated drives through one intersection.

    Args:
        drives: How many approach/stop/launch runs to simulate
        db_path: SQLite file for learned patterns
    """
    node = TrafficNode(id="osm-65300001", coordinate=INTERSECTION, osm_id=65300001,
                       tags={"highway": "traffic_signals"})
    store = SQLiteKeyValueStore(db_path)
    tracker = VehicleStateTracker()
    coordinator = StopWaitLaunchCoordinator(
        tracker=tracker,
        directory=SignalNodeDirectory(client=StaticNodeClient([node])),
        estimator=CycleEstimator(storage=SignalPhaseStorage(store)),
    )
    coordinator.flow_events.subscribe(print_flow_event)
    coordinator.start_monitoring()

    start = datetime.now().replace(microsecond=0)
    try:
        for i in range(drives):
            print(f"\nDrive {i + 1}:")
            for sample in simulate_drive(INTERSECTION, start + timedelta(seconds=CYCLE_SECONDS * i)):
                tracker.process(sample)
    finally:
        coordinator.stop_monitoring()
        store.close()


if __name__ == "__main__":
    main(int(sys.argv[1]) if len(sys.argv) > 1 else 5)
