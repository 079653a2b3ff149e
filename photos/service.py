"""Two-phase photo handoff: hand out a signed upload URL, then register metadata.

The phases are independent. An upload that never gets registered is just an
orphaned object in the bucket; points are only paid on registration.
"""

from __future__ import annotations

import time
from typing import Any, Dict, Optional

from flask import current_app
from werkzeug.utils import secure_filename

from checkins.service import lock_user
from errors import NotFoundError, ServiceUnavailableError, ValidationError
from extensions import db
from models import CheckIn, Photo
from points.service import credit
from transactions import atomic

DEFAULT_CONTENT_TYPE = "image/jpeg"


def create_upload_url(filename: Optional[str], content_type: Optional[str] = None) -> Dict[str, Any]:
    cleaned = secure_filename(filename or "")
    if not cleaned:
        raise ValidationError("Filename is required", payload={"error": "missing_filename"})

    storage = _photo_bucket()
    key = f"photos/{int(time.time() * 1000)}-{cleaned}"
    try:
        signed = storage.create_signed_upload_url(key)
        public_url = storage.get_public_url(key)
    except Exception as exc:
        current_app.logger.exception("Supabase signed upload URL failed for %s: %s", key, exc)
        raise ServiceUnavailableError(
            "Photo storage is unavailable",
            payload={"error": "storage_unavailable"},
        ) from exc

    signed = signed or {}
    upload_url = signed.get("signed_url") or signed.get("signedUrl")
    if not upload_url:
        current_app.logger.warning("Supabase returned no signed URL for %s: %r", key, signed)
        raise ServiceUnavailableError("Photo storage is unavailable", payload={"error": "storage_unavailable"})

    return {
        "upload_url": upload_url,
        "token": signed.get("token"),
        "key": key,
        "url": public_url,
        "content_type": content_type or DEFAULT_CONTENT_TYPE,
    }


def register_photo(
    user_id: int,
    filename: str,
    url: str,
    checkin_id: Optional[int] = None,
) -> Dict[str, Any]:
    points = int(current_app.config.get("PHOTO_POINTS", 5))
    with atomic(f"registering photo for user {user_id}"):
        lock_user(user_id)
        if checkin_id is not None:
            checkin = db.session.get(CheckIn, checkin_id)
            if not checkin or checkin.user_id != user_id:
                raise NotFoundError("Check-in not found", payload={"error": "checkin_not_found"})

        photo = Photo(
            user_id=user_id,
            checkin_id=checkin_id,
            filename=filename,
            url=url,
            points_earned=points,
        )
        db.session.add(photo)
        db.session.flush()
        if points:
            credit(user_id, points, source=f"photo:{photo.id}")

    return photo.to_public_dict()


def _photo_bucket():
    client = None
    if current_app.config.get("USE_SUPABASE"):
        client = current_app.config.get("SUPABASE_CLIENT")
    if not client:
        raise ServiceUnavailableError("Photo storage is not configured", payload={"error": "storage_unavailable"})
    return client.storage.from_(current_app.config.get("PHOTOS_BUCKET", "photos"))
