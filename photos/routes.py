"""Photo upload endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import AdventureError, ValidationError
from request_parsing import clean_or_none, coerce_positive_int, json_body, optional_positive_int

from . import service

photos_bp = Blueprint("photos", __name__, url_prefix="/api/photos")


@photos_bp.post("/upload-url")
def create_upload_url():
    try:
        payload = json_body()
        result = service.create_upload_url(
            clean_or_none(payload.get("filename")),
            clean_or_none(payload.get("contentType") or payload.get("content_type")),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@photos_bp.post("")
def register_photo():
    try:
        payload = json_body()
        user_id = coerce_positive_int(payload.get("user_id"), "user_id")
        filename = clean_or_none(payload.get("filename"))
        url = clean_or_none(payload.get("url"))
        if not filename or not url:
            raise ValidationError(
                "User ID, filename, and URL are required",
                payload={"error": "missing_fields"},
            )
        photo = service.register_photo(
            user_id,
            filename,
            url,
            checkin_id=optional_positive_int(payload.get("checkin_id"), "checkin_id"),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(photo), 201
