"""Database models for the Adventure Check-in API."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, text

from extensions import db
from geofence import Coordinate, Geofence


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class User(db.Model):
    """Player account, mirrored from the commerce identity provider on first sight."""

    __tablename__ = "users"

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(255), unique=True, nullable=False)
    name = db.Column(db.String(255), nullable=False, default="")
    points = db.Column(db.Integer, nullable=False, default=0, server_default="0")

    shopify_customer_id = db.Column(db.String(64), unique=True, nullable=True)
    shopify_shop_domain = db.Column(db.String(255), nullable=True)
    avatar_url = db.Column(db.String(500), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        default=_utcnow,
        onupdate=_utcnow,
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        db.CheckConstraint("points >= 0", name="ck_users_points_non_negative"),
    )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "points": self.points,
            "shopify_customer_id": self.shopify_customer_id,
            "shopify_shop_domain": self.shopify_shop_domain,
            "avatar_url": self.avatar_url,
            "created_at": _isoformat_or_none(self.created_at),
            "updated_at": _isoformat_or_none(self.updated_at),
        }

    def __repr__(self) -> str:  # pragma: no cover - helper for shell debugging
        return f"<User id={self.id} email={self.email!r} points={self.points}>"


class _GeofencedTarget:
    """Columns shared by every place a player can check in at."""

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(120), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)

    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    radius_meters = db.Column(db.Float, nullable=False, default=50)
    points_reward = db.Column(db.Integer, nullable=False, default=10)

    is_active = db.Column(db.Boolean, default=True, nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    @property
    def geofence(self) -> Geofence:
        return Geofence(
            center=Coordinate(self.latitude, self.longitude),
            radius_m=float(self.radius_meters),
            name=self.name,
        )

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "radius_meters": self.radius_meters,
            "points_reward": self.points_reward,
            "is_active": self.is_active,
            "created_at": _isoformat_or_none(self.created_at),
        }


class Location(_GeofencedTarget, db.Model):
    """Point of interest on the adventure map."""

    __tablename__ = "locations"
    __table_args__ = (
        db.CheckConstraint("radius_meters > 0", name="ck_locations_radius_positive"),
    )

    def __repr__(self) -> str:  # pragma: no cover
        return f"<Location id={self.id} name={self.name!r}>"


class BusinessPartner(_GeofencedTarget, db.Model):
    """Partner business that rewards in-person visits."""

    __tablename__ = "business_partners"
    __table_args__ = (
        db.CheckConstraint("radius_meters > 0", name="ck_business_partners_radius_positive"),
    )

    address = db.Column(db.String(255), nullable=True)
    website_url = db.Column(db.String(500), nullable=True)

    def to_public_dict(self) -> dict:
        payload = super().to_public_dict()
        payload["address"] = self.address
        payload["website_url"] = self.website_url
        return payload

    def __repr__(self) -> str:  # pragma: no cover
        return f"<BusinessPartner id={self.id} name={self.name!r}>"


class CheckIn(db.Model):
    """Append-only record of one presence claim and its verification outcome."""

    __tablename__ = "checkins"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    business_partner_id = db.Column(db.Integer, db.ForeignKey("business_partners.id"), nullable=True)

    latitude = db.Column(db.Float, nullable=False)
    longitude = db.Column(db.Float, nullable=False)
    distance_meters = db.Column(db.Float, nullable=True)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    verified = db.Column(db.Boolean, nullable=False, default=False)

    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    location = db.relationship("Location", lazy="joined")
    business_partner = db.relationship("BusinessPartner", lazy="joined")

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "location_id": self.location_id,
            "business_partner_id": self.business_partner_id,
            "location_name": self.location.name if self.location else None,
            "business_name": self.business_partner.name if self.business_partner else None,
            "latitude": self.latitude,
            "longitude": self.longitude,
            "distance_meters": self.distance_meters,
            "points_earned": self.points_earned,
            "verified": self.verified,
            "created_at": _isoformat_or_none(self.created_at),
        }


class Photo(db.Model):
    """Metadata for an uploaded photo; the bytes live in object storage."""

    __tablename__ = "photos"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    checkin_id = db.Column(db.Integer, db.ForeignKey("checkins.id"), nullable=True)
    filename = db.Column(db.String(255), nullable=False)
    url = db.Column(db.String(1000), nullable=False)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "checkin_id": self.checkin_id,
            "filename": self.filename,
            "url": self.url,
            "points_earned": self.points_earned,
            "created_at": _isoformat_or_none(self.created_at),
        }


class Quest(db.Model):
    """Multi-step challenge with a bonus awarded on full completion."""

    __tablename__ = "quests"

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    category = db.Column(db.String(50), nullable=True)
    points_reward = db.Column(db.Integer, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    steps = db.relationship(
        "QuestStep",
        back_populates="quest",
        order_by="QuestStep.step_number",
        cascade="all, delete-orphan",
    )

    def to_public_dict(self, include_steps: bool = False) -> dict:
        payload = {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "category": self.category,
            "points_reward": self.points_reward,
            "is_active": self.is_active,
            "total_steps": len(self.steps),
            "created_at": _isoformat_or_none(self.created_at),
        }
        if include_steps:
            payload["steps"] = [step.to_public_dict() for step in self.steps]
        return payload


class QuestStep(db.Model):
    """One step of a quest; optionally tied to a location geofence."""

    __tablename__ = "quest_steps"

    TYPE_PHOTO = "photo"
    TYPE_CHECK_IN = "check-in"
    TYPE_QUESTION = "question"
    TYPE_TASK = "task"
    STEP_TYPES = (TYPE_PHOTO, TYPE_CHECK_IN, TYPE_QUESTION, TYPE_TASK)

    id = db.Column(db.Integer, primary_key=True)
    quest_id = db.Column(db.Integer, db.ForeignKey("quests.id"), index=True, nullable=False)
    step_number = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(160), nullable=False)
    description = db.Column(db.Text, nullable=True)
    instructions = db.Column(db.Text, nullable=True)
    step_type = db.Column(db.String(20), nullable=False, default=TYPE_CHECK_IN)
    target_location_id = db.Column(db.Integer, db.ForeignKey("locations.id"), nullable=True)
    points_reward = db.Column(db.Integer, nullable=False, default=0)
    answer = db.Column(db.String(255), nullable=True)

    quest = db.relationship("Quest", back_populates="steps")
    target_location = db.relationship("Location", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("quest_id", "step_number", name="uq_quest_step_number"),
    )

    @property
    def geofence(self) -> Optional[Geofence]:
        if self.target_location is None:
            return None
        return self.target_location.geofence

    def to_public_dict(self) -> dict:
        location = self.target_location
        return {
            "id": self.id,
            "quest_id": self.quest_id,
            "step_number": self.step_number,
            "title": self.title,
            "description": self.description,
            "instructions": self.instructions,
            "step_type": self.step_type,
            "target_location_id": self.target_location_id,
            "location_name": location.name if location else None,
            "latitude": location.latitude if location else None,
            "longitude": location.longitude if location else None,
            "radius_meters": location.radius_meters if location else None,
            "points_reward": self.points_reward,
        }


class UserQuest(db.Model):
    """One player's attempt at one quest."""

    __tablename__ = "user_quests"

    STATUS_ACTIVE = "active"
    STATUS_COMPLETED = "completed"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    quest_id = db.Column(db.Integer, db.ForeignKey("quests.id"), index=True, nullable=False)
    status = db.Column(db.String(20), nullable=False, default=STATUS_ACTIVE)
    completed_steps = db.Column(db.Integer, nullable=False, default=0)
    total_steps = db.Column(db.Integer, nullable=False, default=0)
    points_earned = db.Column(db.Integer, nullable=False, default=0)
    started_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)
    completed_at = db.Column(db.DateTime(timezone=True), nullable=True)

    quest = db.relationship("Quest", lazy="joined")
    step_completions = db.relationship("UserQuestStep", back_populates="user_quest", lazy="selectin")

    __table_args__ = (
        db.Index(
            "uq_user_quest_one_active",
            "user_id",
            "quest_id",
            unique=True,
            sqlite_where=text("status = 'active'"),
            postgresql_where=text("status = 'active'"),
        ),
    )

    @property
    def progress_percentage(self) -> int:
        if not self.total_steps:
            return 0
        return int((self.completed_steps / self.total_steps) * 100)

    def to_public_dict(self) -> dict:
        quest = self.quest
        return {
            "id": self.id,
            "user_id": self.user_id,
            "quest_id": self.quest_id,
            "name": quest.name if quest else None,
            "description": quest.description if quest else None,
            "points_reward": quest.points_reward if quest else None,
            "status": self.status,
            "completed_steps": self.completed_steps,
            "total_steps": self.total_steps,
            "progress": f"{self.completed_steps}/{self.total_steps}",
            "progress_percentage": self.progress_percentage,
            "points_earned": self.points_earned,
            "completed_step_numbers": sorted(
                completion.quest_step.step_number for completion in self.step_completions
            ),
            "started_at": _isoformat_or_none(self.started_at),
            "completed_at": _isoformat_or_none(self.completed_at),
        }


class UserQuestStep(db.Model):
    """Completion record for one step of one attempt (unique per attempt/step)."""

    __tablename__ = "user_quest_steps"

    id = db.Column(db.Integer, primary_key=True)
    user_quest_id = db.Column(db.Integer, db.ForeignKey("user_quests.id"), index=True, nullable=False)
    quest_step_id = db.Column(db.Integer, db.ForeignKey("quest_steps.id"), nullable=False)
    status = db.Column(db.String(20), nullable=False, default="completed")
    photo_url = db.Column(db.String(1000), nullable=True)
    checkin_id = db.Column(db.Integer, db.ForeignKey("checkins.id"), nullable=True)
    completed_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    user_quest = db.relationship("UserQuest", back_populates="step_completions")
    quest_step = db.relationship("QuestStep", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("user_quest_id", "quest_step_id", name="uq_user_quest_step"),
    )


class PointsTransaction(db.Model):
    """Signed ledger entry written alongside every balance change."""

    __tablename__ = "points_transactions"

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), index=True, nullable=False)
    delta = db.Column(db.Integer, nullable=False)
    source = db.Column(db.String(120), nullable=False)
    created_at = db.Column(db.DateTime(timezone=True), default=_utcnow, server_default=func.now(), nullable=False)

    def to_public_dict(self) -> dict:
        return {
            "id": self.id,
            "delta": self.delta,
            "source": self.source,
            "created_at": _isoformat_or_none(self.created_at),
        }


def _isoformat_or_none(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    aware = _ensure_aware(value)
    return aware.astimezone(timezone.utc).isoformat()


def _ensure_aware(value: Optional[datetime]) -> Optional[datetime]:
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
