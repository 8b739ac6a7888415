"""Client for the remote signal prediction service."""

import logging
from typing import Optional

import requests

from .exceptions import BadStatusError, InvalidResponseError, MissingConfigurationError
from .models import TrafficSignalDTO

logger = logging.getLogger(__name__)

NEXT_SIGNAL_PATH = "v1/signals/next"


class TrafficSignalAPIClient:
    """Fetches signal predictions from the configured backend."""

    def __init__(self, base_url: Optional[str] = None, timeout: float = 3.0, session: requests.Session = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_signal(self, latitude: float, longitude: float) -> TrafficSignalDTO:
        """
        Get the backend's prediction for the signal nearest a coordinate.

        Args:
            latitude: Query latitude.
            longitude: Query longitude.

        Returns:
            Decoded TrafficSignalDTO.

        Raises:
            MissingConfigurationError: If no base URL is configured.
            BadStatusError: If the backend answers with a non-2xx status.
            InvalidResponseError: If the body is not a valid signal payload.
            requests.RequestException: On transport failure or timeout.
        """
        if not self.base_url:
            raise MissingConfigurationError("No backend base URL configured")

        url = f"{self.base_url.rstrip('/')}/{NEXT_SIGNAL_PATH}"
        response = self.session.get(
            url,
            params={"lat": str(latitude), "lon": str(longitude)},
            headers={"Accept": "application/json"},
            timeout=self.timeout,
        )

        if not 200 <= response.status_code < 300:
            raise BadStatusError(response.status_code)

        try:
            return TrafficSignalDTO.from_dict(response.json())
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to decode signal response: {e}")
            raise InvalidResponseError(str(e)) from e
