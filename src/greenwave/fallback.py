"""Synthetic red/yellow/green cycle used when no learned pattern exists."""

import logging
import threading
from collections import OrderedDict
from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import Callable, Optional

from .geo import intersection_key
from .models import Coordinate, IntersectionCycleProfile, SignalPhase, TrafficSignal
from .storage import CycleProfileStore

logger = logging.getLogger(__name__)

SOURCE_TAG = "on-device-cycle-learning"
MAX_SMOOTHING = 0.15
FULL_QUALITY_SAMPLES = 120
MIN_CONFIDENCE = 0.60
MAX_CONFIDENCE = 0.93
MAX_PHASE_CLOCKS = 256  # intersections with a live phase clock

# red -> green -> yellow -> red
NEXT_PHASE = {
    SignalPhase.RED: SignalPhase.GREEN,
    SignalPhase.GREEN: SignalPhase.YELLOW,
    SignalPhase.YELLOW: SignalPhase.RED,
}


@dataclass
class _PhaseClock:
    phase: SignalPhase
    started_at: datetime


def phase_duration(profile: IntersectionCycleProfile, phase: SignalPhase) -> float:
    if phase == SignalPhase.RED:
        return profile.red_duration
    if phase == SignalPhase.YELLOW:
        return profile.yellow_duration
    if phase == SignalPhase.GREEN:
        return profile.green_duration
    return 0.0


def smooth_profile(profile: IntersectionCycleProfile, phase: SignalPhase, elapsed: float,
                   now: datetime) -> IntersectionCycleProfile:
    """Blend `elapsed` into the stored duration of `phase` and count the sample."""
    smoothing = min(MAX_SMOOTHING, 1.0 / max(1, profile.sample_count))
    updated = replace(profile)

    if phase == SignalPhase.RED:
        updated.red_duration = (1 - smoothing) * profile.red_duration + smoothing * elapsed
    elif phase == SignalPhase.YELLOW:
        updated.yellow_duration = (1 - smoothing) * profile.yellow_duration + smoothing * elapsed
    elif phase == SignalPhase.GREEN:
        updated.green_duration = (1 - smoothing) * profile.green_duration + smoothing * elapsed

    updated.sample_count = profile.sample_count + 1
    updated.last_updated_at = now
    return updated


def simulator_confidence(sample_count: int, elapsed_in_phase: float) -> float:
    """Grows with sample count, decays the longer the current phase runs."""
    cycle_quality = min(1.0, sample_count / FULL_QUALITY_SAMPLES)
    raw = MIN_CONFIDENCE + 0.33 * cycle_quality - min(0.1, elapsed_in_phase / 500.0)
    return max(MIN_CONFIDENCE, min(MAX_CONFIDENCE, raw))


class CyclePhaseSimulator:
    """Advances a per-intersection phase clock and learns phase durations."""

    def __init__(self, profile_store: CycleProfileStore = None, clock: Callable[[], datetime] = datetime.now,
                 max_intersections: int = MAX_PHASE_CLOCKS):
        self.profile_store = profile_store or CycleProfileStore()
        self.max_intersections = max_intersections
        self._clock = clock
        self._phases: "OrderedDict[str, _PhaseClock]" = OrderedDict()
        self._lock = threading.Lock()

    def predict_signal(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        if coordinate is None:
            return None

        key = intersection_key(coordinate.latitude, coordinate.longitude)

        with self._lock:
            now = self._clock()
            profile = self.profile_store.profile(key) or IntersectionCycleProfile.default(key, now)
            phase_clock = self._phase_clock(key, now)

            self._maybe_advance(phase_clock, profile, now)
            elapsed = max(1.0, (now - phase_clock.started_at).total_seconds())
            profile = smooth_profile(profile, phase_clock.phase, elapsed, now)
            self.profile_store.upsert(profile)

            return self._build_signal(profile, phase_clock, coordinate, now)

    def _phase_clock(self, key: str, now: datetime) -> _PhaseClock:
        # Caller holds the lock; least recently queried clocks are dropped first
        phase_clock = self._phases.get(key)
        if phase_clock is not None:
            self._phases.move_to_end(key)
            return phase_clock

        while self._phases and len(self._phases) >= self.max_intersections:
            evicted, _ = self._phases.popitem(last=False)
            logger.debug(f"Dropped phase clock for {evicted}")

        phase_clock = _PhaseClock(SignalPhase.RED, now)
        self._phases[key] = phase_clock
        return phase_clock

    @property
    def tracked_intersections(self) -> int:
        with self._lock:
            return len(self._phases)

    @staticmethod
    def _maybe_advance(phase_clock: _PhaseClock, profile: IntersectionCycleProfile, now: datetime) -> None:
        elapsed = (now - phase_clock.started_at).total_seconds()
        if phase_clock.phase in NEXT_PHASE and elapsed >= phase_duration(profile, phase_clock.phase):
            phase_clock.phase = NEXT_PHASE[phase_clock.phase]
            phase_clock.started_at = now
            logger.debug(f"Simulated phase advanced to {phase_clock.phase.value}")

    @staticmethod
    def _build_signal(profile: IntersectionCycleProfile, phase_clock: _PhaseClock,
                      coordinate: Coordinate, now: datetime) -> TrafficSignal:
        started = phase_clock.started_at
        elapsed = (now - started).total_seconds()

        if phase_clock.phase == SignalPhase.GREEN:
            phase_ends_at = started + timedelta(seconds=profile.green_duration)
            next_green_at = now
        elif phase_clock.phase == SignalPhase.YELLOW:
            phase_ends_at = started + timedelta(seconds=profile.yellow_duration)
            next_green_at = phase_ends_at + timedelta(seconds=profile.red_duration)
        elif phase_clock.phase == SignalPhase.RED:
            phase_ends_at = started + timedelta(seconds=profile.red_duration)
            next_green_at = phase_ends_at
        else:
            phase_ends_at = now + timedelta(seconds=1)
            next_green_at = now + timedelta(seconds=profile.red_duration)

        return TrafficSignal(
            intersection_id=profile.intersection_id,
            intersection_name="Local Intersection",
            coordinate=coordinate,
            phase=phase_clock.phase,
            next_green_at=next_green_at,
            phase_ends_at=phase_ends_at,
            confidence=simulator_confidence(profile.sample_count, elapsed),
            source=SOURCE_TAG,
            server_timestamp=now,
        )
