"""Check-in ledger: verify a presence claim, record it, and pay out the reward."""

from __future__ import annotations

from typing import Any, Dict, List, Optional, Type, Union

from flask import current_app
from sqlalchemy import select

from errors import NotFoundError, ValidationError
from extensions import db
from geofence import Coordinate, distance_m, verify
from models import BusinessPartner, CheckIn, Location, User
from points.service import credit
from transactions import atomic

Target = Union[Location, BusinessPartner]

TARGET_KINDS: Dict[str, Type[Target]] = {
    "locations": Location,
    "partners": BusinessPartner,
}


def record_check_in(
    user_id: int,
    claimed: Coordinate,
    *,
    location_id: Optional[int] = None,
    business_partner_id: Optional[int] = None,
) -> Dict[str, Any]:
    """Persist one check-in attempt and credit its reward when verified.

    Both accepted and rejected attempts are written. The credit and the
    ledger row share a transaction.
    """
    if (location_id is None) == (business_partner_id is None):
        raise ValidationError(
            "Provide exactly one of location_id or business_partner_id",
            payload={"error": "missing_target"},
        )

    with atomic(f"recording check-in for user {user_id}"):
        lock_user(user_id)
        target = _resolve_target(location_id, business_partner_id)
        result = verify(claimed, target.geofence)

        points_earned = 0
        repeat_visit = False
        if result.verified:
            if _first_visit_only() and _has_verified_visit(user_id, location_id, business_partner_id):
                repeat_visit = True
            else:
                points_earned = int(target.points_reward or 0)

        checkin = CheckIn(
            user_id=user_id,
            location_id=location_id,
            business_partner_id=business_partner_id,
            latitude=claimed.lat,
            longitude=claimed.lon,
            distance_meters=result.distance_m,
            points_earned=points_earned,
            verified=result.verified,
        )
        db.session.add(checkin)
        db.session.flush()

        if points_earned:
            credit(user_id, points_earned, source=f"checkin:{checkin.id}")

    if result.verified:
        current_app.logger.info(
            "Verified check-in %s for user %s at %r (%.1fm, +%s points)",
            checkin.id,
            user_id,
            target.name,
            result.distance_m,
            points_earned,
        )
    else:
        current_app.logger.info(
            "Rejected check-in %s for user %s at %r: %.1fm outside %.0fm radius",
            checkin.id,
            user_id,
            target.name,
            result.distance_m,
            target.radius_meters,
        )

    payload = checkin.to_public_dict()
    payload.update(
        {
            "radius_meters": target.radius_meters,
            "repeat_visit": repeat_visit,
        }
    )
    return payload


def list_user_check_ins(user_id: int) -> List[CheckIn]:
    require_user(user_id)
    return (
        CheckIn.query.filter_by(user_id=user_id)
        .order_by(CheckIn.created_at.desc(), CheckIn.id.desc())
        .all()
    )


def list_targets(kind: str) -> List[Target]:
    model = _target_model(kind)
    return model.query.filter(model.is_active.is_(True)).order_by(model.name.asc()).all()


def nearby_targets(kind: str, origin: Coordinate, radius_m: float) -> List[Dict[str, Any]]:
    """Return active targets within ``radius_m`` of ``origin``, nearest first."""
    if not radius_m > 0:
        raise ValidationError("Search radius must be positive", payload={"error": "invalid_radius"})

    results = []
    for target in list_targets(kind):
        distance = distance_m(origin, target.geofence.center)
        if distance > radius_m:
            continue
        entry = target.to_public_dict()
        entry["distance_meters"] = round(distance, 1)
        entry["within_geofence"] = verify(origin, target.geofence).verified
        results.append(entry)
    results.sort(key=lambda entry: entry["distance_meters"])
    return results


def require_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found", payload={"error": "user_not_found"})
    return user


def lock_user(user_id: int) -> User:
    """Load the user row with ``FOR UPDATE`` so per-user writes serialize."""
    user = db.session.execute(
        select(User).where(User.id == user_id).with_for_update()
    ).scalar_one_or_none()
    if not user:
        raise NotFoundError("User not found", payload={"error": "user_not_found"})
    return user


def _resolve_target(location_id: Optional[int], business_partner_id: Optional[int]) -> Target:
    if location_id is not None:
        target = db.session.get(Location, location_id)
        if not target or not target.is_active:
            raise NotFoundError("Location not found", payload={"error": "location_not_found"})
        return target

    target = db.session.get(BusinessPartner, business_partner_id)
    if not target or not target.is_active:
        raise NotFoundError("Business partner not found", payload={"error": "business_partner_not_found"})
    return target


def _has_verified_visit(user_id: int, location_id: Optional[int], business_partner_id: Optional[int]) -> bool:
    query = CheckIn.query.filter(CheckIn.user_id == user_id, CheckIn.verified.is_(True))
    if location_id is not None:
        query = query.filter(CheckIn.location_id == location_id)
    else:
        query = query.filter(CheckIn.business_partner_id == business_partner_id)
    return db.session.query(query.exists()).scalar()


def _target_model(kind: str) -> Type[Target]:
    try:
        return TARGET_KINDS[kind]
    except KeyError:
        raise NotFoundError(f"Unknown target type {kind!r}")


def _first_visit_only() -> bool:
    return bool(current_app.config.get("CHECKIN_FIRST_VISIT_ONLY", True))
