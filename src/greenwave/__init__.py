"""greenwave - Traffic signal timing inference from vehicle telematics."""

__version__ = "0.1.0"

from .models import (
    Coordinate,
    VehicleSample,
    TelematicsEvent,
    HardStop,
    GreenLightLaunch,
    Moving,
    Stopped,
    TrafficNode,
    SignalPhaseObservation,
    SignalCyclePattern,
    SignalPrediction,
    IntersectionCycleProfile,
    SignalPhase,
    TrafficSignal,
    TrafficSignalDTO,
)
from .config import AppConfiguration, PredictionMode
from .events import EventStream
from .vehicle_state import VehicleStateTracker, TrackerState
from .node_directory import OverpassClient, SpatialCache, SignalNodeDirectory
from .cycle_estimator import CycleEstimator
from .storage import MemoryKeyValueStore, SQLiteKeyValueStore, SignalPhaseStorage, CycleProfileStore
from .coordinator import (
    StopWaitLaunchCoordinator,
    FlowEvent,
    StoppedAtSignal,
    StoppedInTraffic,
    Waiting,
    LaunchedFromSignal,
    Launched,
    InMotion,
)
from .fallback import CyclePhaseSimulator
from .on_device import TelematicsObservationEngine, OnDeviceSignalEngine
from .api_client import TrafficSignalAPIClient
from .fusion import PredictionFusionService

__all__ = [
    "Coordinate",
    "VehicleSample",
    "TelematicsEvent",
    "HardStop",
    "GreenLightLaunch",
    "Moving",
    "Stopped",
    "TrafficNode",
    "SignalPhaseObservation",
    "SignalCyclePattern",
    "SignalPrediction",
    "IntersectionCycleProfile",
    "SignalPhase",
    "TrafficSignal",
    "TrafficSignalDTO",
    "AppConfiguration",
    "PredictionMode",
    "EventStream",
    "VehicleStateTracker",
    "TrackerState",
    "OverpassClient",
    "SpatialCache",
    "SignalNodeDirectory",
    "CycleEstimator",
    "MemoryKeyValueStore",
    "SQLiteKeyValueStore",
    "SignalPhaseStorage",
    "CycleProfileStore",
    "StopWaitLaunchCoordinator",
    "FlowEvent",
    "StoppedAtSignal",
    "StoppedInTraffic",
    "Waiting",
    "LaunchedFromSignal",
    "Launched",
    "InMotion",
    "CyclePhaseSimulator",
    "TelematicsObservationEngine",
    "OnDeviceSignalEngine",
    "TrafficSignalAPIClient",
    "PredictionFusionService",
]
