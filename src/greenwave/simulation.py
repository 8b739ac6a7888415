"""Synthetic drives for demos and end-to-end checks."""

from datetime import datetime, timedelta
from typing import List

from .models import Coordinate, VehicleSample

CRUISE_SPEED = 30.0  # km/h
LAUNCH_ACCELERATION = 1.25  # g
RESTING_ACCELERATION = 1.0  # g


def simulate_drive(
    target: Coordinate,
    start: datetime,
    wait_seconds: float = 40.0,
    sample_interval: float = 2.0,
    approach_steps: int = 10,
    departure_steps: int = 3,
) -> List[VehicleSample]:
    """
    Build a drive that approaches `target`, waits at a red light and launches.

    The approach starts ~200 m south-west of the target at cruise speed. The
    stop lasts `wait_seconds`, sampled every `sample_interval` seconds, and is
    followed by one launch sample (cruise speed, launch acceleration) and a
    short departure.

    Returns:
        VehicleSample list ordered by timestamp.
    """
    samples: List[VehicleSample] = []
    t = start
    step = timedelta(seconds=sample_interval)

    start_lat = target.latitude - 0.0018
    start_lon = target.longitude - 0.0018

    for i in range(approach_steps):
        progress = i / max(1, approach_steps - 1) * 0.95
        location = Coordinate(
            start_lat + (target.latitude - start_lat) * progress,
            start_lon + (target.longitude - start_lon) * progress,
        )
        samples.append(VehicleSample(location, CRUISE_SPEED, RESTING_ACCELERATION, t))
        t += step

    waited = 0.0
    while waited <= wait_seconds:
        samples.append(VehicleSample(target, 0.0, RESTING_ACCELERATION, t))
        t += step
        waited += sample_interval

    samples.append(VehicleSample(target, CRUISE_SPEED, LAUNCH_ACCELERATION, t))
    t += step

    for i in range(1, departure_steps + 1):
        location = Coordinate(target.latitude + 0.0002 * i, target.longitude + 0.0002 * i)
        samples.append(VehicleSample(location, CRUISE_SPEED, RESTING_ACCELERATION, t))
        t += step

    return samples
