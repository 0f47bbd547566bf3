# fleet_compliance/geo.py
"""
Great-circle distance and speed unit helpers.

Distances use the haversine formula on a spherical earth (R = 6371 km), which
is accurate to well under 0.5% at the point spacing a phone GPS produces.
"""

import math
from typing import Final

import numpy as np
import numpy.typing as npt

__all__: list[str] = [
    'EARTH_RADIUS_KM',
    'MS_TO_KMH',
    'haversine_km',
    'haversine_km_array',
    'speed_to_kmh',
    'speeds_to_kmh',
]

EARTH_RADIUS_KM: Final[float] = 6371.0

# Device speed is reported in metres per second
MS_TO_KMH: Final[float] = 3.6


def haversine_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Distance in kilometres between two WGS84 points given in decimal degrees."""
    d_lat: float = math.radians(lat2 - lat1)
    d_lon: float = math.radians(lon2 - lon1)
    a: float = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c: float = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def haversine_km_array(
    lat1: npt.ArrayLike,
    lon1: npt.ArrayLike,
    lat2: npt.ArrayLike,
    lon2: npt.ArrayLike,
) -> npt.NDArray[np.float64]:
    """
    Vectorised haversine distance in kilometres.

    All four inputs must broadcast together. NaN coordinates produce NaN
    distances.
    """
    lat1_rad = np.radians(np.asarray(lat1, dtype=np.float64))
    lat2_rad = np.radians(np.asarray(lat2, dtype=np.float64))
    d_lat = lat2_rad - lat1_rad
    d_lon = np.radians(
        np.asarray(lon2, dtype=np.float64) - np.asarray(lon1, dtype=np.float64)
    )

    a = np.sin(d_lat / 2) ** 2 + np.cos(lat1_rad) * np.cos(lat2_rad) * np.sin(d_lon / 2) ** 2
    # Rounding can push a marginally above 1 for antipodal points
    a = np.clip(a, 0.0, 1.0)
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def speed_to_kmh(speed_ms: float | None) -> float:
    """Convert a device speed in m/s to km/h. Missing or NaN speed is 0."""
    if speed_ms is None or math.isnan(speed_ms):
        return 0.0
    return speed_ms * MS_TO_KMH


def speeds_to_kmh(speeds_ms: npt.ArrayLike) -> npt.NDArray[np.float64]:
    """Vectorised speed_to_kmh."""
    speeds = np.asarray(speeds_ms, dtype=np.float64)
    return np.nan_to_num(speeds, nan=0.0) * MS_TO_KMH
