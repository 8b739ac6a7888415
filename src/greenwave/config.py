"""Runtime configuration, read from the environment."""

import logging
import os
from dataclasses import dataclass
from enum import Enum
from typing import Mapping, Optional

from .exceptions import ConfigurationError
from .node_directory import OVERPASS_URL

logger = logging.getLogger(__name__)


class PredictionMode(Enum):
    ON_DEVICE = "on-device"
    BACKEND = "backend"
    HYBRID = "hybrid"

    @classmethod
    def parse(cls, value: Optional[str]) -> "PredictionMode":
        """Parse a mode name; unknown or empty values fall back to ON_DEVICE."""
        if not value:
            return cls.ON_DEVICE

        normalized = value.strip().lower().replace("_", "-")
        if normalized == "ondevice":
            normalized = "on-device"

        for mode in cls:
            if mode.value == normalized:
                return mode

        logger.warning(f"Unknown prediction mode {value!r}, using on-device")
        return cls.ON_DEVICE


@dataclass
class AppConfiguration:
    """Settings shared by the prediction components."""
    prediction_mode: PredictionMode = PredictionMode.ON_DEVICE
    backend_base_url: Optional[str] = None
    signal_polling_interval: float = 1.0  # seconds
    low_confidence_threshold: float = 0.72  # used by presentation
    remote_timeout: float = 3.0  # seconds
    node_lookup_timeout: float = 10.0  # seconds
    overpass_url: str = OVERPASS_URL
    database_path: Optional[str] = None  # None keeps patterns in memory

    @classmethod
    def from_env(cls, environ: Mapping[str, str] = None) -> "AppConfiguration":
        """
        Build a configuration from environment variables.

        Reads TRAFFIC_PREDICTION_MODE, TRAFFIC_API_BASE_URL,
        TRAFFIC_POLLING_INTERVAL, TRAFFIC_LOW_CONFIDENCE_THRESHOLD and
        TRAFFIC_DB_PATH.

        Raises:
            ConfigurationError: If a numeric setting is not a number.
        """
        env = os.environ if environ is None else environ

        return cls(
            prediction_mode=PredictionMode.parse(env.get("TRAFFIC_PREDICTION_MODE")),
            backend_base_url=env.get("TRAFFIC_API_BASE_URL") or None,
            signal_polling_interval=_float_setting(env, "TRAFFIC_POLLING_INTERVAL", 1.0),
            low_confidence_threshold=_float_setting(env, "TRAFFIC_LOW_CONFIDENCE_THRESHOLD", 0.72),
            database_path=env.get("TRAFFIC_DB_PATH") or None,
        )


def _float_setting(env: Mapping[str, str], name: str, default: float) -> float:
    raw = env.get(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        raise ConfigurationError(f"{name} must be a number, got {raw!r}")
