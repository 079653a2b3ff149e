from __future__ import annotations

from typing import Dict, List, Optional

import pytest

from app import create_app
from extensions import db
from identity.shopify import CustomerProfile
from models import BusinessPartner, Location, Quest, QuestStep, User

DOCKS = (43.6578, -71.5003)


class FakeBucket:
    def __init__(self, name: str):
        self.name = name
        self.signed_keys: List[str] = []

    def create_signed_upload_url(self, key: str) -> dict:
        self.signed_keys.append(key)
        return {
            "signed_url": f"https://storage.test/upload/{self.name}/{key}?token=abc",
            "token": "abc",
            "path": key,
        }

    def get_public_url(self, key: str) -> str:
        return f"https://storage.test/public/{self.name}/{key}"


class FakeStorage:
    def __init__(self):
        self.buckets: Dict[str, FakeBucket] = {}

    def from_(self, bucket: str) -> FakeBucket:
        return self.buckets.setdefault(bucket, FakeBucket(bucket))


class FakeSupabase:
    def __init__(self):
        self.storage = FakeStorage()


class FakeIdentityProvider:
    def __init__(self):
        self.customers: Dict[str, CustomerProfile] = {}

    def add(self, profile: CustomerProfile) -> CustomerProfile:
        self.customers[profile.customer_id] = profile
        return profile

    def find_customer_by_email(self, email: str) -> Optional[CustomerProfile]:
        for profile in self.customers.values():
            if profile.email.lower() == email.lower():
                return profile
        return None

    def get_customer(self, customer_id: str) -> Optional[CustomerProfile]:
        return self.customers.get(customer_id)


@pytest.fixture
def app():
    app = create_app(
        {
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": "sqlite://",
            "USE_SUPABASE": True,
            "SUPABASE_CLIENT": FakeSupabase(),
            "IDENTITY_PROVIDER": FakeIdentityProvider(),
            "PHOTOS_BUCKET": "adventure-photos",
            "PHOTO_POINTS": 5,
            "CHECKIN_FIRST_VISIT_ONLY": True,
            "QUEST_ENFORCE_STEP_ORDER": False,
        }
    )
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def make_user():
    def _make(points: int = 0, email: Optional[str] = None) -> User:
        count = User.query.count() + 1
        user = User(email=email or f"explorer{count}@example.com", name=f"Explorer {count}", points=points)
        db.session.add(user)
        db.session.commit()
        return user

    return _make


@pytest.fixture
def make_location():
    def _make(
        latitude: float = DOCKS[0],
        longitude: float = DOCKS[1],
        radius_meters: float = 50,
        points_reward: int = 15,
        name: str = "Meredith Town Docks",
        model=Location,
        **extra,
    ):
        target = model(
            name=name,
            latitude=latitude,
            longitude=longitude,
            radius_meters=radius_meters,
            points_reward=points_reward,
            **extra,
        )
        db.session.add(target)
        db.session.commit()
        return target

    return _make


@pytest.fixture
def make_partner(make_location):
    def _make(**kwargs) -> BusinessPartner:
        kwargs.setdefault("name", "Lakeside Coffee Roasters")
        kwargs.setdefault("points_reward", 20)
        return make_location(model=BusinessPartner, **kwargs)

    return _make


@pytest.fixture
def make_quest():
    def _make(steps: List[dict], points_reward: int = 50, name: str = "Meredith Sculpture Walk", is_active: bool = True) -> Quest:
        quest = Quest(name=name, description="Walk the bay.", points_reward=points_reward, is_active=is_active)
        for number, row in enumerate(steps, start=1):
            quest.steps.append(
                QuestStep(
                    step_number=row.get("step_number", number),
                    title=row.get("title", f"Step {number}"),
                    step_type=row.get("step_type", QuestStep.TYPE_CHECK_IN),
                    target_location_id=row.get("target_location_id"),
                    points_reward=row.get("points_reward", 10),
                    answer=row.get("answer"),
                )
            )
        db.session.add(quest)
        db.session.commit()
        return quest

    return _make
