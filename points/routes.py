"""Balance and redemption endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify, request

from errors import AdventureError
from request_parsing import clean_or_none, coerce_positive_int, json_body, optional_timestamp

from . import service

points_bp = Blueprint("points", __name__, url_prefix="/api/users")


@points_bp.get("/<int:user_id>/points")
def get_points(user_id: int):
    try:
        balance = service.get_balance(user_id)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify({"points": balance})


@points_bp.get("/<int:user_id>/points/history")
def points_history(user_id: int):
    try:
        limit = min(coerce_positive_int(request.args.get("limit", 100), "limit"), 500)
        rows = service.list_transactions(
            user_id,
            limit=limit,
            since=optional_timestamp(request.args.get("since"), "since"),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify([row.to_public_dict() for row in rows])


@points_bp.post("/<int:user_id>/redeem-points")
def redeem_points(user_id: int):
    try:
        payload = json_body()
        points = coerce_positive_int(payload.get("points"), "points")
        result = service.redeem_points(
            user_id,
            points,
            discount_code=clean_or_none(payload.get("discount_code")),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)
