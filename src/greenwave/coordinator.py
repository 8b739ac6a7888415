"""Joins telematics events with signal nodes and learned cycles."""

import logging
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from .cycle_estimator import CycleEstimator
from .events import EventStream
from .exceptions import TrafficNodeError
from .models import (
    Coordinate,
    GreenLightLaunch,
    HardStop,
    Moving,
    SignalPrediction,
    Stopped,
    TelematicsEvent,
    TrafficNode,
)
from .node_directory import NEAREST_SIGNAL_RADIUS, SignalNodeDirectory
from .vehicle_state import VehicleStateTracker

logger = logging.getLogger(__name__)


class FlowEvent:
    """Base class for stop/wait/launch flow events."""


@dataclass(frozen=True)
class StoppedAtSignal(FlowEvent):
    node: TrafficNode
    timestamp: datetime


@dataclass(frozen=True)
class StoppedInTraffic(FlowEvent):
    location: Coordinate


@dataclass(frozen=True)
class Waiting(FlowEvent):
    location: Coordinate


@dataclass(frozen=True)
class LaunchedFromSignal(FlowEvent):
    node: TrafficNode
    prediction: SignalPrediction
    timestamp: datetime


@dataclass(frozen=True)
class Launched(FlowEvent):
    location: Coordinate
    timestamp: datetime


@dataclass(frozen=True)
class InMotion(FlowEvent):
    speed_kph: float


class StopWaitLaunchCoordinator:
    """
    Tracks which signal the vehicle is stopped at and feeds launches from it
    into the cycle estimator.

    This class provides methods to:
    - Subscribe to a VehicleStateTracker's event stream
    - Emit flow events (stopped at signal, waiting, launched, ...)
    - Query the latest prediction for a node
    """

    def __init__(
        self,
        tracker: VehicleStateTracker = None,
        directory: SignalNodeDirectory = None,
        estimator: CycleEstimator = None,
        flow_events: EventStream = None,
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.tracker = tracker or VehicleStateTracker()
        self.directory = directory or SignalNodeDirectory()
        self.estimator = estimator or CycleEstimator()
        self.flow_events = flow_events or EventStream("flow")
        self._clock = clock

        self.current_stop_node: Optional[TrafficNode] = None
        self.stop_timestamp: Optional[datetime] = None
        self.last_prediction: Optional[SignalPrediction] = None
        self._unsubscribe: Optional[Callable[[], None]] = None
        self._lock = threading.RLock()

    @property
    def is_monitoring(self) -> bool:
        return self._unsubscribe is not None

    def start_monitoring(self) -> None:
        """Start consuming the tracker's telematics events."""
        if self.is_monitoring:
            return
        self._unsubscribe = self.tracker.events.subscribe(self.handle_event)
        logger.info("Started stop/wait/launch monitoring")

    def stop_monitoring(self) -> None:
        if not self.is_monitoring:
            return
        self._unsubscribe()
        self._unsubscribe = None
        logger.info("Stopped stop/wait/launch monitoring")

    def get_prediction(self, node_id: str, current_time: datetime = None) -> Optional[SignalPrediction]:
        return self.estimator.predict_next_green(node_id, current_time or self._clock())

    def handle_event(self, event: TelematicsEvent) -> None:
        """Dispatch one telematics event."""
        with self._lock:
            if isinstance(event, HardStop):
                self._handle_hard_stop(event.location, event.timestamp)
            elif isinstance(event, GreenLightLaunch):
                self._handle_green_light_launch(event.location, event.timestamp)
            elif isinstance(event, Stopped):
                self._emit(Waiting(location=event.location))
            elif isinstance(event, Moving):
                self._emit(InMotion(speed_kph=event.speed_kph))
            else:
                logger.debug(f"Ignoring unknown telematics event {event!r}")

    def _handle_hard_stop(self, location: Coordinate, timestamp: datetime) -> None:
        try:
            node = self.directory.find_nearest(location, max_distance=NEAREST_SIGNAL_RADIUS)
        except TrafficNodeError as e:
            # Unknown stop; nothing is emitted
            logger.warning(f"Signal lookup failed at {location}: {e}")
            self._clear_stop()
            return

        if node is not None:
            self.current_stop_node = node
            self.stop_timestamp = timestamp
            self._emit(StoppedAtSignal(node=node, timestamp=timestamp))
        else:
            self._clear_stop()
            self._emit(StoppedInTraffic(location=location))

    def _handle_green_light_launch(self, location: Coordinate, timestamp: datetime) -> None:
        node = self.current_stop_node
        if node is None:
            self._emit(Launched(location=location, timestamp=timestamp))
            return

        self.estimator.record_green_launch(node.id, timestamp)
        prediction = self.estimator.predict_next_green(node.id, timestamp)

        if prediction is not None:
            self.last_prediction = prediction
            self._emit(LaunchedFromSignal(node=node, prediction=prediction, timestamp=timestamp))
        else:
            self._emit(Launched(location=location, timestamp=timestamp))

        self._clear_stop()

    def _clear_stop(self) -> None:
        self.current_stop_node = None
        self.stop_timestamp = None

    def _emit(self, event: FlowEvent) -> None:
        logger.debug(f"Flow event: {event}")
        self.flow_events.emit(event)
