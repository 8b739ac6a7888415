"""Data models for the signal-timing pipeline."""

import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from enum import Enum
from typing import Any, Dict, List, Optional

from .geo import geohash, haversine_distance


@dataclass(frozen=True)
class Coordinate:
    """A WGS84 latitude/longitude pair."""
    latitude: float
    longitude: float

    def __post_init__(self):
        if not (-90.0 <= self.latitude <= 90.0):
            raise ValueError(f"Latitude out of range: {self.latitude}")
        if not (-180.0 <= self.longitude <= 180.0):
            raise ValueError(f"Longitude out of range: {self.longitude}")

    def distance_to(self, other: "Coordinate") -> float:
        """Great-circle distance to `other` in metres."""
        return haversine_distance(self.latitude, self.longitude, other.latitude, other.longitude)

    def geohash(self, precision: int = 7) -> str:
        return geohash(self.latitude, self.longitude, precision)


@dataclass(frozen=True)
class VehicleSample:
    """One motion/location reading from the sensor collaborator."""
    location: Coordinate
    speed_kph: float
    acceleration_g: float  # Magnitude including gravity, so ~1.0 at rest
    timestamp: datetime

    @property
    def is_stationary(self) -> bool:
        return self.speed_kph < 1.0

    @property
    def is_moving(self) -> bool:
        return self.speed_kph >= 5.0


class TelematicsEvent:
    """Base class for events emitted by the vehicle state tracker."""


@dataclass(frozen=True)
class HardStop(TelematicsEvent):
    location: Coordinate
    timestamp: datetime


@dataclass(frozen=True)
class GreenLightLaunch(TelematicsEvent):
    location: Coordinate
    timestamp: datetime


@dataclass(frozen=True)
class Moving(TelematicsEvent):
    speed_kph: float


@dataclass(frozen=True)
class Stopped(TelematicsEvent):
    location: Coordinate


@dataclass(frozen=True)
class TrafficNode:
    """A physical traffic-signal node from the node lookup service."""
    id: str
    coordinate: Coordinate
    osm_id: int  # External source identifier
    tags: Dict[str, str] = field(default_factory=dict, hash=False)

    @property
    def geohash(self) -> str:
        return self.coordinate.geohash(precision=7)


@dataclass(frozen=True)
class SignalPhaseObservation:
    """A single recorded green launch at a node."""
    node_id: str
    green_launch_time: datetime
    day_of_week: int  # ISO weekday, 1 = Monday
    seconds_since_midnight: float

    @classmethod
    def from_launch(cls, node_id: str, green_launch_time: datetime) -> "SignalPhaseObservation":
        midnight = start_of_day(green_launch_time)
        return cls(
            node_id=node_id,
            green_launch_time=green_launch_time,
            day_of_week=green_launch_time.isoweekday(),
            seconds_since_midnight=(green_launch_time - midnight).total_seconds(),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "green_launch_time": self.green_launch_time.isoformat(),
            "day_of_week": self.day_of_week,
            "seconds_since_midnight": self.seconds_since_midnight,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignalPhaseObservation":
        return cls(
            node_id=data["node_id"],
            green_launch_time=datetime.fromisoformat(data["green_launch_time"]),
            day_of_week=int(data["day_of_week"]),
            seconds_since_midnight=float(data["seconds_since_midnight"]),
        )


@dataclass
class SignalCyclePattern:
    """Learned cycle for one node, recomputed on every new observation."""
    node_id: str
    observations: List[SignalPhaseObservation] = field(default_factory=list)
    cycle_length: Optional[float] = None  # Seconds
    cycle_offset: Optional[float] = None  # Seconds since midnight of a green onset
    confidence: float = 0.0
    last_updated: datetime = field(default_factory=datetime.now)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "node_id": self.node_id,
            "observations": [obs.to_dict() for obs in self.observations],
            "cycle_length": self.cycle_length,
            "cycle_offset": self.cycle_offset,
            "confidence": self.confidence,
            "last_updated": self.last_updated.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SignalCyclePattern":
        return cls(
            node_id=data["node_id"],
            observations=[SignalPhaseObservation.from_dict(o) for o in data.get("observations", [])],
            cycle_length=data.get("cycle_length"),
            cycle_offset=data.get("cycle_offset"),
            confidence=float(data.get("confidence", 0.0)),
            last_updated=datetime.fromisoformat(data["last_updated"]),
        )


@dataclass(frozen=True)
class SignalPrediction:
    """Next green onset predicted for a node."""
    node_id: str
    next_green_time: datetime
    cycle_length: float
    confidence: float


@dataclass
class IntersectionCycleProfile:
    """Smoothed phase durations for the fallback simulator."""
    intersection_id: str
    red_duration: float
    yellow_duration: float
    green_duration: float
    sample_count: int
    last_updated_at: datetime

    @classmethod
    def default(cls, intersection_id: str, now: Optional[datetime] = None) -> "IntersectionCycleProfile":
        return cls(
            intersection_id=intersection_id,
            red_duration=28.0,
            yellow_duration=4.0,
            green_duration=28.0,
            sample_count=1,
            last_updated_at=now or datetime.now(),
        )

    @property
    def cycle_duration(self) -> float:
        return self.red_duration + self.yellow_duration + self.green_duration

    def to_dict(self) -> Dict[str, Any]:
        return {
            "intersection_id": self.intersection_id,
            "red_duration": self.red_duration,
            "yellow_duration": self.yellow_duration,
            "green_duration": self.green_duration,
            "sample_count": self.sample_count,
            "last_updated_at": self.last_updated_at.isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "IntersectionCycleProfile":
        return cls(
            intersection_id=data["intersection_id"],
            red_duration=float(data["red_duration"]),
            yellow_duration=float(data["yellow_duration"]),
            green_duration=float(data["green_duration"]),
            sample_count=int(data["sample_count"]),
            last_updated_at=datetime.fromisoformat(data["last_updated_at"]),
        )


class SignalPhase(str, Enum):
    RED = "red"
    YELLOW = "yellow"
    GREEN = "green"
    UNKNOWN = "unknown"

    @property
    def display_name(self) -> str:
        return self.value.capitalize()


@dataclass(frozen=True)
class TrafficSignal:
    """Fused signal prediction handed to presentation."""
    intersection_id: str
    intersection_name: str
    coordinate: Coordinate
    phase: SignalPhase
    next_green_at: Optional[datetime]
    phase_ends_at: Optional[datetime]
    confidence: float
    source: str  # e.g. "telematics-v2x", "on-device-cycle-learning", "spat-map"
    server_timestamp: datetime
    id: uuid.UUID = field(default_factory=uuid.uuid4)

    def countdown_to_green(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole seconds until the next green, or None if unknown."""
        return _countdown(self.next_green_at, now)

    def phase_countdown(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole seconds until the current phase ends, or None if unknown."""
        return _countdown(self.phase_ends_at, now)

    @property
    def is_production_grade(self) -> bool:
        return self.confidence >= 0.85 and self.source.lower() != "heuristic"


@dataclass(frozen=True)
class TrafficSignalDTO:
    """Decoded payload of the remote prediction service."""
    intersection_id: str
    intersection_name: str
    latitude: float
    longitude: float
    phase: str
    next_green_epoch_ms: Optional[int]
    phase_ends_epoch_ms: Optional[int]
    confidence: float
    source: str
    server_epoch_ms: int

    @classmethod
    def from_dict(cls, payload: Dict[str, Any]) -> "TrafficSignalDTO":
        """
        Build a DTO from the JSON body of the prediction service.

        Raises:
            KeyError: If a required field is missing.
            ValueError/TypeError: If a field has the wrong type.
        """
        return cls(
            intersection_id=str(payload["intersectionID"]),
            intersection_name=str(payload["intersectionName"]),
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            phase=str(payload["phase"]),
            next_green_epoch_ms=_optional_int(payload.get("nextGreenEpochMs")),
            phase_ends_epoch_ms=_optional_int(payload.get("phaseEndsEpochMs")),
            confidence=float(payload["confidence"]),
            source=str(payload["source"]),
            server_epoch_ms=int(payload["serverEpochMs"]),
        )

    def to_domain(self) -> TrafficSignal:
        try:
            phase = SignalPhase(self.phase.lower())
        except ValueError:
            phase = SignalPhase.UNKNOWN

        return TrafficSignal(
            intersection_id=self.intersection_id,
            intersection_name=self.intersection_name,
            coordinate=Coordinate(self.latitude, self.longitude),
            phase=phase,
            next_green_at=_from_epoch_ms(self.next_green_epoch_ms),
            phase_ends_at=_from_epoch_ms(self.phase_ends_epoch_ms),
            confidence=self.confidence,
            source=self.source,
            server_timestamp=_from_epoch_ms(self.server_epoch_ms),
        )


def start_of_day(moment: datetime) -> datetime:
    """Midnight of the day containing `moment`, keeping its tzinfo."""
    return moment.replace(hour=0, minute=0, second=0, microsecond=0)


def _countdown(target: Optional[datetime], now: Optional[datetime]) -> Optional[int]:
    if target is None:
        return None
    if now is None:
        now = datetime.now(target.tzinfo)
    return max(0, math.floor((target - now).total_seconds()))


def _optional_int(value: Any) -> Optional[int]:
    return None if value is None else int(value)


def _from_epoch_ms(value: Optional[int]) -> Optional[datetime]:
    if value is None:
        return None
    return datetime(1970, 1, 1, tzinfo=timezone.utc) + timedelta(milliseconds=value)
