"""On-device signal prediction from learned cycles, with a simulated fallback."""

import logging
from datetime import datetime, timedelta
from typing import Callable, Optional

from .cycle_estimator import CycleEstimator
from .exceptions import TrafficNodeError
from .fallback import CyclePhaseSimulator
from .models import Coordinate, SignalPhase, SignalPrediction, TrafficNode, TrafficSignal
from .node_directory import NEAREST_SIGNAL_RADIUS, SignalNodeDirectory

logger = logging.getLogger(__name__)

SOURCE_TAG = "telematics-v2x"
ESTIMATED_GREEN_FRACTION = 0.3  # share of the cycle assumed green
YELLOW_WINDOW = 5.0  # seconds before green reported as yellow


class TelematicsObservationEngine:
    """Builds a TrafficSignal from the nearest node's learned cycle."""

    def __init__(self, directory: SignalNodeDirectory = None, estimator: CycleEstimator = None,
                 clock: Callable[[], datetime] = datetime.now):
        self.directory = directory or SignalNodeDirectory()
        self.estimator = estimator or CycleEstimator()
        self._clock = clock

    def predict_signal(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        if coordinate is None:
            return None

        try:
            node = self.directory.find_nearest(coordinate, max_distance=NEAREST_SIGNAL_RADIUS)
        except TrafficNodeError as e:
            logger.warning(f"Signal lookup failed near {coordinate}: {e}")
            return None

        if node is None:
            return None

        now = self._clock()
        prediction = self.estimator.predict_next_green(node.id, now)
        if prediction is None:
            return None

        return self._build_signal(prediction, node, coordinate, now)

    @staticmethod
    def _build_signal(prediction: SignalPrediction, node: TrafficNode, coordinate: Coordinate,
                      now: datetime) -> TrafficSignal:
        time_to_green = (prediction.next_green_time - now).total_seconds()

        if time_to_green <= 0:
            phase = SignalPhase.GREEN
            phase_ends_at = now + timedelta(seconds=prediction.cycle_length * ESTIMATED_GREEN_FRACTION)
        elif time_to_green <= YELLOW_WINDOW:
            phase = SignalPhase.YELLOW
            phase_ends_at = prediction.next_green_time
        else:
            phase = SignalPhase.RED
            phase_ends_at = prediction.next_green_time

        return TrafficSignal(
            intersection_id=node.id,
            intersection_name=f"OSM Node {node.osm_id}",
            coordinate=coordinate,
            phase=phase,
            next_green_at=prediction.next_green_time,
            phase_ends_at=phase_ends_at,
            confidence=prediction.confidence,
            source=SOURCE_TAG,
            server_timestamp=now,
        )


class OnDeviceSignalEngine:
    """Learned-cycle prediction first, simulated cycle when nothing is learned."""

    def __init__(self, observation_engine: TelematicsObservationEngine = None,
                 simulator: CyclePhaseSimulator = None):
        self.observation_engine = observation_engine or TelematicsObservationEngine()
        self.simulator = simulator or CyclePhaseSimulator()

    def predict_signal(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        if coordinate is None:
            return None

        signal = self.observation_engine.predict_signal(coordinate)
        if signal is not None:
            return signal

        logger.debug(f"No learned cycle near {coordinate}, using simulated cycle")
        return self.simulator.predict_signal(coordinate)
