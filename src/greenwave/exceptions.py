"""Error types raised by greenwave components."""


class GreenwaveError(Exception):
    """Base exception for all greenwave errors."""
    pass


class ConfigurationError(GreenwaveError):
    """Raised when an explicit configuration value is invalid."""
    pass


class TrafficNodeError(GreenwaveError):
    """Raised when the traffic-signal node lookup fails."""
    pass


class InvalidURLError(TrafficNodeError):
    """Raised when the node lookup endpoint is not a usable URL."""
    pass


class NodeNetworkError(TrafficNodeError):
    """Raised on transport failures or non-2xx responses from the node lookup."""
    pass


class NodeParseError(TrafficNodeError):
    """Raised when the node lookup response cannot be decoded."""
    pass


class APIError(GreenwaveError):
    """Raised by the remote signal prediction client."""
    pass


class MissingConfigurationError(APIError):
    """Raised when no backend base URL is configured."""
    pass


class InvalidResponseError(APIError):
    """Raised when the backend response cannot be decoded."""
    pass


class BadStatusError(APIError):
    """Raised when the backend answers with a non-2xx status."""

    def __init__(self, status_code: int):
        super().__init__(f"Unexpected HTTP status {status_code}")
        self.status_code = status_code
