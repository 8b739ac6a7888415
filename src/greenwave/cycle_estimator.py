"""Online estimation of signal cycle length, phase offset and confidence."""

import logging
import math
import threading
from dataclasses import replace
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

import pandas as pd

from .models import SignalCyclePattern, SignalPhaseObservation, SignalPrediction, start_of_day
from .storage import SignalPhaseStorage

logger = logging.getLogger(__name__)

MIN_OBSERVATIONS = 3
MAX_OBSERVATIONS = 100
MIN_CYCLE_INTERVAL = 15.0  # seconds
MAX_CYCLE_INTERVAL = 180.0  # seconds
OFFSET_WINDOW = 10  # most recent observations used for the offset
MAX_ACCEPTABLE_DEVIATION = 5.0  # seconds
PREDICTION_CONFIDENCE_THRESHOLD = 0.5


class CycleEstimator:
    """
    Learns each node's cycle from green-launch timestamps.

    All reads and writes of the per-node pattern map go through one lock, so a
    recorded launch (append, recompute, persist) is applied atomically and a
    prediction always sees a fully committed pattern. Stored patterns are
    loaded once, on first use.
    """

    def __init__(self, storage: SignalPhaseStorage = None, clock: Callable[[], datetime] = datetime.now):
        self.storage = storage or SignalPhaseStorage()
        self._clock = clock
        self._patterns: Dict[str, SignalCyclePattern] = {}
        self._loaded = False
        self._lock = threading.RLock()

    def record_green_launch(self, node_id: str, timestamp: datetime) -> SignalCyclePattern:
        """
        Record a green launch at a node and recompute its pattern.

        Args:
            node_id: TrafficNode id.
            timestamp: Moment the vehicle launched.

        Returns:
            A copy of the updated pattern.
        """
        with self._lock:
            self._ensure_loaded()

            pattern = self._patterns.get(node_id) or SignalCyclePattern(node_id=node_id, last_updated=self._clock())
            observations = list(pattern.observations)
            observations.append(SignalPhaseObservation.from_launch(node_id, timestamp))

            # Keep only the most recent observations
            if len(observations) > MAX_OBSERVATIONS:
                del observations[: len(observations) - MAX_OBSERVATIONS]

            updated = self._calculate_cycle_pattern(node_id, observations)
            self._patterns[node_id] = updated
            self.storage.save(updated)

        logger.debug(
            f"Recorded launch at {node_id}: {len(updated.observations)} obs, "
            f"cycle={updated.cycle_length}, confidence={updated.confidence:.2f}"
        )
        return replace(updated, observations=list(updated.observations))

    def predict_next_green(self, node_id: str, current_time: datetime = None) -> Optional[SignalPrediction]:
        """
        Predict the next green onset for a node.

        Returns:
            A SignalPrediction, or None when the node has no pattern with a
            confidence above the prediction threshold.
        """
        if current_time is None:
            current_time = self._clock()

        with self._lock:
            self._ensure_loaded()
            pattern = self._patterns.get(node_id)

        if (
            pattern is None
            or pattern.cycle_length is None
            or pattern.cycle_offset is None
            or pattern.confidence <= PREDICTION_CONFIDENCE_THRESHOLD
        ):
            return None

        cycle_length = pattern.cycle_length
        cycle_offset = pattern.cycle_offset

        midnight = start_of_day(current_time)
        seconds_since_midnight = (current_time - midnight).total_seconds()

        cycles_passed = math.floor((seconds_since_midnight - cycle_offset) / cycle_length)
        next_green_offset = cycle_offset + (cycles_passed + 1) * cycle_length
        next_green_time = midnight + timedelta(seconds=next_green_offset)

        if next_green_time <= current_time:
            next_green_time += timedelta(seconds=cycle_length)

        return SignalPrediction(
            node_id=node_id,
            next_green_time=next_green_time,
            cycle_length=cycle_length,
            confidence=pattern.confidence,
        )

    def pattern(self, node_id: str) -> Optional[SignalCyclePattern]:
        """Get a copy of the committed pattern for a node, if any."""
        with self._lock:
            self._ensure_loaded()
            pattern = self._patterns.get(node_id)
            if pattern is None:
                return None
            return replace(pattern, observations=list(pattern.observations))

    def _ensure_loaded(self) -> None:
        # Caller holds the lock, so concurrent first calls cannot double-load
        if self._loaded:
            return
        self._patterns = self.storage.load_all()
        self._loaded = True
        logger.info(f"Loaded {len(self._patterns)} signal cycle patterns")

    def _calculate_cycle_pattern(self, node_id: str, observations: List[SignalPhaseObservation]) -> SignalCyclePattern:
        updated = SignalCyclePattern(node_id=node_id, observations=observations, last_updated=self._clock())

        if len(observations) < MIN_OBSERVATIONS:
            return updated

        ordered = sorted(observations, key=lambda obs: obs.green_launch_time)
        launch_times = pd.Series([obs.green_launch_time for obs in ordered])
        intervals = launch_times.diff().dropna().dt.total_seconds()

        # Only intervals that look like signal cycles
        intervals = intervals[intervals.between(MIN_CYCLE_INTERVAL, MAX_CYCLE_INTERVAL)]
        if intervals.empty:
            return updated

        cycle_length = float(intervals.median())
        times_of_day = pd.Series([obs.seconds_since_midnight for obs in ordered], dtype="float64")

        cycle_offset = float((times_of_day.tail(OFFSET_WINDOW) % cycle_length).mean())

        updated.cycle_length = cycle_length
        updated.cycle_offset = cycle_offset
        updated.confidence = self._consistency(times_of_day, cycle_length, cycle_offset)
        return updated

    @staticmethod
    def _consistency(times_of_day: pd.Series, cycle_length: float, offset: float) -> float:
        """Score in [0, 1] from phase deviation and history size."""
        expected_phase = (times_of_day - offset) % cycle_length
        deviation = pd.concat([expected_phase, cycle_length - expected_phase], axis=1).min(axis=1)
        avg_deviation = float(deviation.mean())

        regularity = min(1.0, max(0.0, 1.0 - avg_deviation / MAX_ACCEPTABLE_DEVIATION))
        history = min(1.0, len(times_of_day) / MAX_OBSERVATIONS)
        return min(1.0, max(0.0, regularity * 0.7 + history * 0.3))
