"""Chooses between on-device and backend signal predictions."""

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeoutError
from typing import Optional

import requests

from .api_client import TrafficSignalAPIClient
from .config import AppConfiguration, PredictionMode
from .cycle_estimator import CycleEstimator
from .exceptions import APIError
from .fallback import CyclePhaseSimulator
from .models import Coordinate, TrafficSignal
from .node_directory import OverpassClient, SignalNodeDirectory
from .on_device import OnDeviceSignalEngine, TelematicsObservationEngine
from .storage import CycleProfileStore, MemoryKeyValueStore, SignalPhaseStorage, SQLiteKeyValueStore

logger = logging.getLogger(__name__)


class PredictionFusionService:
    """
    Produces one TrafficSignal per query under the configured mode.

    - on-device: the on-device engine only
    - backend: the remote service, falling back to on-device
    - hybrid: both at once, keeping the more confident result (ties go to
      the remote result)

    Remote failures, including timeouts, count as "no remote result" and are
    never raised to the caller.
    """

    def __init__(
        self,
        remote: TrafficSignalAPIClient = None,
        on_device: OnDeviceSignalEngine = None,
        mode: PredictionMode = PredictionMode.ON_DEVICE,
        remote_timeout: float = 3.0,
    ):
        self.remote = remote or TrafficSignalAPIClient()
        self.on_device = on_device or OnDeviceSignalEngine()
        self.remote_timeout = remote_timeout
        self.last_signal: Optional[TrafficSignal] = None
        self._mode = mode
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="greenwave-remote")

    @classmethod
    def from_config(cls, config: AppConfiguration) -> "PredictionFusionService":
        """Wire the full prediction stack from a configuration."""
        if config.database_path:
            store = SQLiteKeyValueStore(config.database_path)
        else:
            store = MemoryKeyValueStore()

        directory = SignalNodeDirectory(
            client=OverpassClient(base_url=config.overpass_url, timeout=config.node_lookup_timeout)
        )
        estimator = CycleEstimator(storage=SignalPhaseStorage(store))
        on_device = OnDeviceSignalEngine(
            observation_engine=TelematicsObservationEngine(directory=directory, estimator=estimator),
            simulator=CyclePhaseSimulator(profile_store=CycleProfileStore(store)),
        )
        remote = TrafficSignalAPIClient(base_url=config.backend_base_url, timeout=config.remote_timeout)
        return cls(remote=remote, on_device=on_device, mode=config.prediction_mode,
                   remote_timeout=config.remote_timeout)

    @property
    def mode(self) -> PredictionMode:
        with self._lock:
            return self._mode

    @mode.setter
    def mode(self, value: PredictionMode) -> None:
        with self._lock:
            self._mode = value

    def signal_prediction(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        """
        Get the best available signal prediction near a coordinate.

        Returns:
            A TrafficSignal, or None when no source has a result.
        """
        mode = self.mode

        if mode == PredictionMode.BACKEND:
            signal = self._backend_prediction(coordinate)
            if signal is None:
                signal = self.on_device.predict_signal(coordinate)
        elif mode == PredictionMode.HYBRID:
            remote_future = self._executor.submit(self._fetch_remote, coordinate)
            local = self.on_device.predict_signal(coordinate)
            backend = self._await_remote(remote_future)
            signal = self.pick_best_signal(backend, local)
        else:
            signal = self.on_device.predict_signal(coordinate)

        with self._lock:
            self.last_signal = signal
        return signal

    @staticmethod
    def pick_best_signal(backend: Optional[TrafficSignal], local: Optional[TrafficSignal]) -> Optional[TrafficSignal]:
        if backend is None:
            return local
        if local is None:
            return backend
        return backend if backend.confidence >= local.confidence else local

    def close(self) -> None:
        self._executor.shutdown(wait=False)

    def _backend_prediction(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        return self._await_remote(self._executor.submit(self._fetch_remote, coordinate))

    def _await_remote(self, future) -> Optional[TrafficSignal]:
        try:
            return future.result(timeout=self.remote_timeout)
        except FutureTimeoutError:
            future.cancel()
            logger.warning(f"Remote prediction timed out after {self.remote_timeout}s")
            return None

    def _fetch_remote(self, coordinate: Optional[Coordinate]) -> Optional[TrafficSignal]:
        if coordinate is None:
            return None

        try:
            dto = self.remote.fetch_signal(coordinate.latitude, coordinate.longitude)
            return dto.to_domain()
        except (APIError, requests.RequestException) as e:
            logger.warning(f"Remote prediction unavailable: {e}")
            return None
        except Exception as e:
            # Decodable but unusable payloads count as no remote result too
            logger.warning(f"Remote prediction rejected: {type(e).__name__}: {e}")
            return None
