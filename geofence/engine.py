"""Accept/reject decisions for presence claims.

Every check-in, business check-in and quest step goes through :func:`verify`
so the boundary rule (inclusive radius) is the same everywhere.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

from .geodesy import Coordinate, distance_m


@dataclass(frozen=True)
class Geofence:
    """Circular target region around ``center``."""

    center: Coordinate
    radius_m: float
    name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.radius_m > 0:
            raise ValueError(f"Geofence radius must be positive, got {self.radius_m!r}")


@dataclass(frozen=True)
class VerificationResult:
    verified: bool
    distance_m: Optional[float]

    def to_dict(self) -> dict:
        return {"verified": self.verified, "distance_meters": self.distance_m}


def verify(claimed: Coordinate, fence: Optional[Geofence]) -> VerificationResult:
    """Decide whether ``claimed`` lies inside ``fence``.

    A missing fence means presence is not required for the target, so the
    claim is accepted without a distance.
    """
    if fence is None:
        return VerificationResult(verified=True, distance_m=None)
    distance = distance_m(claimed, fence.center)
    return VerificationResult(verified=distance <= fence.radius_m, distance_m=distance)
