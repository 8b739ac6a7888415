"""Spatial bucketing helpers: geohash encoding and great-circle distance."""

import math

GEOHASH_BASE32 = "0123456789bcdefghjkmnpqrstuvwxyz"
EARTH_RADIUS_METERS = 6371008.8


def geohash(latitude: float, longitude: float, precision: int = 7) -> str:
    """
    Encode a coordinate as a geohash string.

    Args:
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        precision: Number of base32 characters (7 gives ~150 m cells).

    Returns:
        Geohash of length `precision`.
    """
    lat_range = [-90.0, 90.0]
    lon_range = [-180.0, 180.0]
    chars = []
    is_even = True
    bit = 0
    ch = 0

    while len(chars) < precision:
        if is_even:
            mid = (lon_range[0] + lon_range[1]) / 2
            if longitude > mid:
                ch |= 1 << (4 - bit)
                lon_range[0] = mid
            else:
                lon_range[1] = mid
        else:
            mid = (lat_range[0] + lat_range[1]) / 2
            if latitude > mid:
                ch |= 1 << (4 - bit)
                lat_range[0] = mid
            else:
                lat_range[1] = mid

        is_even = not is_even

        if bit < 4:
            bit += 1
        else:
            chars.append(GEOHASH_BASE32[ch])
            bit = 0
            ch = 0

    return "".join(chars)


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in metres between two coordinates."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    d_phi = math.radians(lat2 - lat1)
    d_lambda = math.radians(lon2 - lon1)

    a = math.sin(d_phi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(d_lambda / 2) ** 2
    return 2 * EARTH_RADIUS_METERS * math.asin(min(1.0, math.sqrt(a)))


def intersection_key(latitude: float, longitude: float) -> str:
    """Key for an intersection: the coordinate rounded to 4 decimals (~11 m)."""
    return f"{latitude:.4f}_{longitude:.4f}"
