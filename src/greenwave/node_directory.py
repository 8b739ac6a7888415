"""Traffic-signal node lookup with a geohash-bucketed, time-expiring cache."""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Callable, Dict, List, Optional

import requests

from .exceptions import InvalidURLError, NodeNetworkError, NodeParseError
from .models import Coordinate, TrafficNode

logger = logging.getLogger(__name__)

OVERPASS_URL = "https://overpass-api.de/api/interpreter"

CACHE_PRECISION = 7
CACHE_TTL = 7 * 24 * 60 * 60  # 7 days
AREA_SEARCH_RADIUS = 500.0  # metres
NEAREST_SIGNAL_RADIUS = 50.0  # metres


class OverpassClient:
    """Fetches traffic-signal nodes from the OpenStreetMap Overpass API."""

    def __init__(self, base_url: str = OVERPASS_URL, timeout: float = 10.0, session: requests.Session = None):
        self.base_url = base_url
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch_traffic_signal_nodes(self, coordinate: Coordinate, radius: float) -> List[TrafficNode]:
        """
        Fetch all traffic-signal nodes within `radius` metres of a coordinate.

        Args:
            coordinate: Search centre.
            radius: Search radius in metres.

        Returns:
            List of TrafficNode objects (possibly empty).

        Raises:
            InvalidURLError: If the endpoint is not an http(s) URL.
            NodeNetworkError: On transport failure or a non-2xx status.
            NodeParseError: If the response body cannot be decoded.
        """
        if not self.base_url or not self.base_url.startswith(("http://", "https://")):
            raise InvalidURLError(f"Invalid Overpass endpoint: {self.base_url!r}")

        query = self._build_query(coordinate, radius)
        logger.debug(f"Querying Overpass for signals within {radius:.0f}m of {coordinate}")

        try:
            response = self.session.post(self.base_url, data=query.encode("utf-8"), timeout=self.timeout)
        except requests.RequestException as e:
            logger.warning(f"Overpass request failed: {e}")
            raise NodeNetworkError(str(e)) from e

        if not 200 <= response.status_code < 300:
            raise NodeNetworkError(f"Overpass returned HTTP {response.status_code}")

        return self._parse_response(response)

    @staticmethod
    def _build_query(coordinate: Coordinate, radius: float) -> str:
        return (
            "[out:json][timeout:10];\n"
            "(\n"
            f'  node["highway"="traffic_signals"](around:{radius},{coordinate.latitude},{coordinate.longitude});\n'
            ");\n"
            "out body;\n"
        )

    @staticmethod
    def _parse_response(response) -> List[TrafficNode]:
        try:
            payload = response.json()
            nodes = []
            for element in payload["elements"]:
                osm_id = int(element["id"])
                nodes.append(
                    TrafficNode(
                        id=f"osm-{osm_id}",
                        coordinate=Coordinate(float(element["lat"]), float(element["lon"])),
                        osm_id=osm_id,
                        tags=dict(element.get("tags") or {}),
                    )
                )
            return nodes
        except (ValueError, KeyError, TypeError) as e:
            logger.error(f"Failed to parse Overpass response: {e}")
            raise NodeParseError(str(e)) from e


@dataclass(frozen=True)
class CachedNodeSet:
    """Nodes fetched for one geohash bucket."""
    nodes: List[TrafficNode]
    timestamp: float  # Unix time of the fetch
    origin: Coordinate  # Coordinate the fetch was made from


class SpatialCache:
    """
    Node sets keyed by geohash bucket.

    An entry is served only while it is younger than `ttl` and the query lies
    within half the search radius of the coordinate it was fetched from.
    """

    def __init__(self, ttl: float = CACHE_TTL, precision: int = CACHE_PRECISION,
                 clock: Callable[[], float] = time.time):
        self.ttl = ttl
        self.precision = precision
        self._clock = clock
        self._cache: Dict[str, CachedNodeSet] = {}
        self._lock = threading.Lock()

    def nodes(self, coordinate: Coordinate, radius: float) -> Optional[List[TrafficNode]]:
        """Return cached nodes for a query, or None on a miss."""
        bucket = coordinate.geohash(self.precision)
        now = self._clock()

        with self._lock:
            cached = self._cache.get(bucket)
            if cached is None:
                logger.debug(f"Cache miss for bucket {bucket}")
                return None

            if now - cached.timestamp >= self.ttl:
                del self._cache[bucket]
                logger.debug(f"Evicted expired bucket {bucket}")
                return None

        if coordinate.distance_to(cached.origin) > radius * 0.5:
            logger.debug(f"Bucket {bucket} origin too far from query, treating as miss")
            return None

        logger.debug(f"Cache hit for bucket {bucket} ({len(cached.nodes)} nodes)")
        return list(cached.nodes)

    def store(self, nodes: List[TrafficNode], coordinate: Coordinate) -> None:
        bucket = coordinate.geohash(self.precision)
        with self._lock:
            self._cache[bucket] = CachedNodeSet(nodes=list(nodes), timestamp=self._clock(), origin=coordinate)

    def clear_expired(self) -> int:
        """Remove expired buckets. Returns the number removed."""
        now = self._clock()
        with self._lock:
            expired = [k for k, v in self._cache.items() if now - v.timestamp >= self.ttl]
            for key in expired:
                del self._cache[key]

        if expired:
            logger.debug(f"Evicted {len(expired)} expired cache buckets")
        return len(expired)

    def clear(self) -> None:
        with self._lock:
            self._cache.clear()

    def __len__(self) -> int:
        with self._lock:
            return len(self._cache)


class SignalNodeDirectory:
    """Resolves coordinates to nearby traffic-signal nodes."""

    def __init__(self, client: OverpassClient = None, cache: SpatialCache = None):
        self.client = client or OverpassClient()
        self.cache = cache or SpatialCache()

    def find_traffic_signals(self, coordinate: Coordinate, radius: float = AREA_SEARCH_RADIUS) -> List[TrafficNode]:
        """
        Get all signal nodes around a coordinate, using the cache when possible.

        Raises:
            TrafficNodeError: If the cache misses and the remote lookup fails.
        """
        cached = self.cache.nodes(coordinate, radius)
        if cached is not None:
            return cached

        nodes = self.client.fetch_traffic_signal_nodes(coordinate, radius)
        self.cache.store(nodes, coordinate)
        logger.debug(f"Fetched {len(nodes)} signal nodes near {coordinate}")
        return nodes

    def find_nearest(self, coordinate: Coordinate, max_distance: float = NEAREST_SIGNAL_RADIUS,
                     radius: float = None) -> Optional[TrafficNode]:
        """
        Get the closest signal node within `max_distance` metres.

        Args:
            coordinate: Query position.
            max_distance: Maximum accepted distance to the node.
            radius: Search radius for the lookup; defaults to `max_distance`.

        Returns:
            The nearest TrafficNode, or None if none is close enough.

        Raises:
            TrafficNodeError: If the remote lookup fails.
        """
        nodes = self.find_traffic_signals(coordinate, radius if radius is not None else max_distance)
        if not nodes:
            return None

        nearest = min(nodes, key=lambda node: coordinate.distance_to(node.coordinate))
        if coordinate.distance_to(nearest.coordinate) > max_distance:
            return None
        return nearest
