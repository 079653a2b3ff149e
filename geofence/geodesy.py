"""Great-circle distance helpers."""

from __future__ import annotations

import math
from dataclasses import dataclass
from math import atan2, cos, radians, sin, sqrt
from typing import Any

from errors import ValidationError

EARTH_RADIUS_M = 6_371_000


@dataclass(frozen=True)
class Coordinate:
    """A latitude/longitude pair in decimal degrees."""

    lat: float
    lon: float

    @classmethod
    def from_payload(cls, latitude: Any, longitude: Any) -> "Coordinate":
        """Coerce raw request values, rejecting missing or out-of-range input."""
        if latitude is None or longitude is None or latitude == "" or longitude == "":
            raise ValidationError(
                "Latitude and longitude are required",
                payload={"error": "missing_coordinates"},
            )
        if isinstance(latitude, bool) or isinstance(longitude, bool):
            raise ValidationError("Invalid coordinate values", payload={"error": "invalid_coordinates"})
        try:
            lat = float(latitude)
            lon = float(longitude)
        except (TypeError, ValueError):
            raise ValidationError("Invalid coordinate values", payload={"error": "invalid_coordinates"})
        if not (math.isfinite(lat) and math.isfinite(lon)):
            raise ValidationError("Invalid coordinate values", payload={"error": "invalid_coordinates"})
        if not -90 <= lat <= 90 or not -180 <= lon <= 180:
            raise ValidationError(
                "Coordinates out of range",
                payload={"error": "coordinates_out_of_range", "latitude": lat, "longitude": lon},
            )
        return cls(lat, lon)


def distance_m(a: Coordinate, b: Coordinate) -> float:
    """Return distance in metres between two points using the haversine formula."""
    d_lat = radians(b.lat - a.lat)
    d_lon = radians(b.lon - a.lon)
    h = sin(d_lat / 2) ** 2 + cos(radians(a.lat)) * cos(radians(b.lat)) * sin(d_lon / 2) ** 2
    # Rounding can push h just past 1 for near-antipodal points.
    h = min(1.0, max(0.0, h))
    return 2 * EARTH_RADIUS_M * atan2(sqrt(h), sqrt(1 - h))
