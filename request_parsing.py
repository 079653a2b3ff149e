"""Boundary checks that turn loose JSON bodies into typed arguments."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from dateutil import parser as date_parser
from flask import request

from errors import ValidationError

# Largest value a signed 64-bit INTEGER column can hold.
MAX_DB_INT = 2**63 - 1


def json_body() -> Dict[str, Any]:
    payload = request.get_json(silent=True)
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Request body must be a JSON object", payload={"error": "invalid_body"})
    return payload


def coerce_positive_int(value: Any, field: str) -> int:
    if value is None or value == "" or isinstance(value, bool):
        raise ValidationError(f"{field} is required", payload={"error": "missing_fields", "field": field})
    if isinstance(value, float) and not value.is_integer():
        raise ValidationError(f"{field} must be a whole number", payload={"error": "invalid_field", "field": field})
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"{field} must be a whole number", payload={"error": "invalid_field", "field": field})
    if number <= 0:
        raise ValidationError(f"{field} must be positive", payload={"error": "invalid_field", "field": field})
    if number > MAX_DB_INT:
        raise ValidationError(f"{field} is too large", payload={"error": "invalid_field", "field": field})
    return number


def optional_positive_int(value: Any, field: str) -> Optional[int]:
    if value is None or value == "":
        return None
    return coerce_positive_int(value, field)


def clean_or_none(value: Any) -> Optional[str]:
    if value is None:
        return None
    cleaned = str(value).strip()
    return cleaned or None


def optional_timestamp(value: Any, field: str) -> Optional[datetime]:
    """Parse an ISO-8601 query value into an aware UTC datetime; naive input is taken as UTC."""
    cleaned = clean_or_none(value)
    if cleaned is None:
        return None
    try:
        dt = date_parser.isoparse(cleaned)
    except (TypeError, ValueError, OverflowError):
        raise ValidationError(f"{field} must be an ISO-8601 timestamp", payload={"error": "invalid_field", "field": field})
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)
