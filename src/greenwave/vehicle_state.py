"""Stop/launch detection over a stream of vehicle samples."""

import logging
import math
import threading
from datetime import datetime
from enum import Enum
from typing import Optional

from .events import EventStream
from .models import (
    Coordinate,
    GreenLightLaunch,
    HardStop,
    Moving,
    Stopped,
    TelematicsEvent,
    VehicleSample,
)

logger = logging.getLogger(__name__)

HARD_STOP_SPEED = 1.0  # km/h, below this the vehicle is stationary
LAUNCH_SPEED = 5.0  # km/h
LAUNCH_ACCELERATION_MARGIN = 0.15  # g above the 1 g resting magnitude
MINIMUM_STOP_DURATION = 2.0  # seconds


class TrackerState(Enum):
    MOVING = "moving"
    STOPPED_PENDING = "stopped_pending"
    STOPPED_CONFIRMED = "stopped_confirmed"


class VehicleStateTracker:
    """
    Turns VehicleSample readings into discrete telematics events.

    A stop is confirmed (HardStop) once the vehicle has been stationary for
    MINIMUM_STOP_DURATION; a launch (GreenLightLaunch) is a sample from a
    not-moving state with both launch speed and launch acceleration. Every
    valid sample also produces a coarse Stopped/Moving status event.

    A fresh tracker assumes the vehicle is standing still.
    """

    def __init__(self, events: EventStream = None):
        self.events = events or EventStream("telematics")
        self.state = TrackerState.STOPPED_CONFIRMED
        self.current_sample: Optional[VehicleSample] = None
        self.stop_detected_at: Optional[datetime] = None
        self.stop_location: Optional[Coordinate] = None
        self._lock = threading.RLock()

    def process(self, sample: VehicleSample) -> None:
        """Feed one sample. Malformed samples are ignored."""
        if not self._is_valid(sample):
            logger.debug(f"Dropping malformed vehicle sample: {sample!r}")
            return

        # Emit under the lock so events leave in sample order
        with self._lock:
            self.current_sample = sample
            for event in self._advance(sample):
                self.events.emit(event)

    @property
    def last_event(self) -> Optional[TelematicsEvent]:
        return self.events.last_event

    def reset(self) -> None:
        with self._lock:
            self.state = TrackerState.STOPPED_CONFIRMED
            self.current_sample = None
            self._clear_stop()

    def _advance(self, sample: VehicleSample) -> list:
        now = sample.timestamp
        emitted = []

        if self.state == TrackerState.MOVING and sample.speed_kph < HARD_STOP_SPEED:
            self.state = TrackerState.STOPPED_PENDING
            self.stop_detected_at = now
            self.stop_location = sample.location

        if self.state == TrackerState.STOPPED_PENDING and sample.speed_kph < HARD_STOP_SPEED:
            if (now - self.stop_detected_at).total_seconds() >= MINIMUM_STOP_DURATION:
                emitted.append(HardStop(location=sample.location, timestamp=now))
                self.state = TrackerState.STOPPED_CONFIRMED
                logger.debug(f"Hard stop confirmed at {sample.location}")

        if self.state != TrackerState.MOVING and self._is_launch(sample):
            emitted.append(GreenLightLaunch(location=sample.location, timestamp=now))
            self.state = TrackerState.MOVING
            self._clear_stop()
            logger.debug(f"Green light launch at {sample.location}")
        elif self.state != TrackerState.MOVING and sample.speed_kph >= LAUNCH_SPEED:
            # Rolled away without a launch signature
            self.state = TrackerState.MOVING
            self._clear_stop()

        if sample.speed_kph < HARD_STOP_SPEED:
            emitted.append(Stopped(location=sample.location))
        elif sample.speed_kph >= LAUNCH_SPEED:
            emitted.append(Moving(speed_kph=sample.speed_kph))

        return emitted

    def _clear_stop(self) -> None:
        self.stop_detected_at = None
        self.stop_location = None

    @staticmethod
    def _is_launch(sample: VehicleSample) -> bool:
        return (
            sample.speed_kph >= LAUNCH_SPEED
            and sample.acceleration_g >= 1.0 + LAUNCH_ACCELERATION_MARGIN
        )

    @staticmethod
    def _is_valid(sample) -> bool:
        if not isinstance(sample, VehicleSample):
            return False
        if not isinstance(sample.location, Coordinate) or not isinstance(sample.timestamp, datetime):
            return False
        for value in (sample.speed_kph, sample.acceleration_g):
            if not isinstance(value, (int, float)) or not math.isfinite(value) or value < 0:
                return False
        return True
