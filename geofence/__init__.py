"""Geodesy and geofence verification shared by check-ins and quests."""

from .engine import Geofence, VerificationResult, verify
from .geodesy import EARTH_RADIUS_M, Coordinate, distance_m

__all__ = [
    "Coordinate",
    "EARTH_RADIUS_M",
    "Geofence",
    "VerificationResult",
    "distance_m",
    "verify",
]
