"""Public JSON API for map targets and check-ins."""

from __future__ import annotations

from flask import Blueprint, current_app, jsonify, request

from errors import AdventureError, ValidationError
from geofence import Coordinate
from request_parsing import coerce_positive_int, json_body, optional_positive_int

from . import service

checkins_bp = Blueprint("checkins", __name__, url_prefix="/api")


@checkins_bp.get("/locations")
def list_locations():
    return jsonify([location.to_public_dict() for location in service.list_targets("locations")])


@checkins_bp.get("/partners")
def list_partners():
    return jsonify([partner.to_public_dict() for partner in service.list_targets("partners")])


@checkins_bp.get("/locations/nearby")
def nearby_locations():
    return _nearby("locations")


@checkins_bp.get("/partners/nearby")
def nearby_partners():
    return _nearby("partners")


@checkins_bp.post("/checkins")
def create_check_in():
    try:
        payload = json_body()
        result = service.record_check_in(
            coerce_positive_int(payload.get("user_id"), "user_id"),
            Coordinate.from_payload(payload.get("latitude"), payload.get("longitude")),
            location_id=optional_positive_int(payload.get("location_id"), "location_id"),
            business_partner_id=optional_positive_int(payload.get("business_partner_id"), "business_partner_id"),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@checkins_bp.post("/business-checkins")
def create_business_check_in():
    try:
        payload = json_body()
        result = service.record_check_in(
            coerce_positive_int(payload.get("user_id"), "user_id"),
            Coordinate.from_payload(payload.get("latitude"), payload.get("longitude")),
            business_partner_id=coerce_positive_int(payload.get("business_partner_id"), "business_partner_id"),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@checkins_bp.get("/users/<int:user_id>/checkins")
def list_user_check_ins(user_id: int):
    try:
        checkins = service.list_user_check_ins(user_id)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify([checkin.to_public_dict() for checkin in checkins])


def _nearby(kind: str):
    try:
        origin = Coordinate.from_payload(request.args.get("lat"), request.args.get("lon"))
        radius_m = _parse_radius(request.args.get("radius"))
        results = service.nearby_targets(kind, origin, radius_m)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(results)


def _parse_radius(raw) -> float:
    if raw is None or raw == "":
        return float(current_app.config.get("NEARBY_DEFAULT_RADIUS_M", 50_000))
    try:
        return float(raw)
    except (TypeError, ValueError):
        raise ValidationError("radius must be a number", payload={"error": "invalid_radius"})
