#!/usr/bin/env python
"""
Seed a local database with demo map targets and the sculpture-walk quest.

Usage:
    python scripts/seed_demo_data.py

Environment variables:
    DATABASE_URL       (optional – defaults match config.py)
"""

from __future__ import annotations

import sys

from app import create_app  # reuse the app factory and its config
from extensions import db
from models import BusinessPartner, Location, Quest, QuestStep

LOCATIONS = [
    {
        "name": "Meredith Town Docks",
        "description": "Lakeside docks at the heart of town.",
        "category": "landmark",
        "latitude": 43.6578,
        "longitude": -71.5003,
        "radius_meters": 50,
        "points_reward": 15,
    },
    {
        "name": "Hesky Park Sculpture",
        "description": "Bronze sculpture overlooking the bay.",
        "category": "art",
        "latitude": 43.6571,
        "longitude": -71.4989,
        "radius_meters": 40,
        "points_reward": 10,
    },
    {
        "name": "Mill Falls Marketplace",
        "description": "Historic mill converted into shops.",
        "category": "landmark",
        "latitude": 43.6590,
        "longitude": -71.5018,
        "radius_meters": 60,
        "points_reward": 10,
    },
]

PARTNERS = [
    {
        "name": "Lakeside Coffee Roasters",
        "description": "Check in for a free refill.",
        "category": "cafe",
        "latitude": 43.6582,
        "longitude": -71.5010,
        "radius_meters": 30,
        "points_reward": 20,
        "address": "1 Main Street, Meredith, NH",
    },
]


def seed() -> None:
    app = create_app()
    with app.app_context():
        db.create_all()
        if Location.query.first():
            print("ℹ️ Locations already present; nothing to seed.")
            return

        locations = [Location(**row) for row in LOCATIONS]
        db.session.add_all(locations)
        db.session.add_all(BusinessPartner(**row) for row in PARTNERS)
        db.session.flush()

        quest = Quest(
            name="Meredith Sculpture Walk",
            description="Visit three stops around the bay.",
            category="art",
            points_reward=50,
        )
        for number, location in enumerate(locations, start=1):
            quest.steps.append(
                QuestStep(
                    step_number=number,
                    title=f"Find {location.name}",
                    step_type=QuestStep.TYPE_CHECK_IN,
                    target_location_id=location.id,
                    points_reward=10,
                )
            )
        db.session.add(quest)
        db.session.commit()

        print("✅ Seed complete.")
        print(f"    Locations: {len(LOCATIONS)}")
        print(f"    Partners:  {len(PARTNERS)}")
        print(f"    Quests:    1 ({len(quest.steps)} steps)")


if __name__ == "__main__":
    try:
        seed()
    except KeyboardInterrupt:
        sys.exit("\n⚠️ Seeding cancelled by user.")
