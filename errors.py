"""Error taxonomy shared by every feature service.

Services raise these; blueprints turn them into JSON responses with
``jsonify(exc.payload), exc.status_code``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional


class AdventureError(Exception):
    """Base class for failures a request handler can report to the client."""

    status_code = 400
    error_code = "bad_request"

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        payload: Optional[Dict[str, Any]] = None,
        *,
        error_code: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code
        if error_code is not None:
            self.error_code = error_code
        self.payload = {"error": self.error_code, "message": message}
        if payload:
            self.payload.update(payload)


class ValidationError(AdventureError):
    status_code = 400
    error_code = "validation_error"


class NotFoundError(AdventureError):
    status_code = 404
    error_code = "not_found"


class ConflictError(AdventureError):
    status_code = 409
    error_code = "conflict"


class VerificationError(AdventureError):
    """A presence or answer claim was rejected. Expected outcome, not a fault."""

    status_code = 400
    error_code = "verification_failed"

    def __init__(
        self,
        message: str,
        *,
        distance_m: Optional[float] = None,
        radius_m: Optional[float] = None,
        reason: str = "outside_geofence",
    ):
        super().__init__(
            message,
            payload={
                "reason": reason,
                "distance_meters": round(distance_m, 1) if distance_m is not None else None,
                "required_radius": radius_m,
            },
        )
        self.distance_m = distance_m
        self.radius_m = radius_m
        self.reason = reason


class InsufficientBalanceError(AdventureError):
    status_code = 400
    error_code = "insufficient_points"

    def __init__(self, requested: int, balance: int):
        super().__init__(
            "Insufficient points",
            payload={"requested": requested, "balance": balance},
        )
        self.requested = requested
        self.balance = balance


class ServiceUnavailableError(AdventureError):
    status_code = 503
    error_code = "service_unavailable"
