"""Quest catalogue and progression endpoints."""

from __future__ import annotations

from flask import Blueprint, jsonify

from errors import AdventureError
from geofence import Coordinate
from request_parsing import clean_or_none, coerce_positive_int, json_body

from . import service

quests_bp = Blueprint("quests", __name__, url_prefix="/api")


@quests_bp.get("/quests")
def list_quests():
    return jsonify([quest.to_public_dict() for quest in service.list_quests()])


@quests_bp.get("/quests/<int:quest_id>")
def get_quest(quest_id: int):
    try:
        quest = service.get_quest(quest_id)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(quest.to_public_dict(include_steps=True))


@quests_bp.post("/quests/<int:quest_id>/start")
def start_quest(quest_id: int):
    try:
        payload = json_body()
        user_quest = service.start_quest(coerce_positive_int(payload.get("user_id"), "user_id"), quest_id)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(user_quest), 201


@quests_bp.post("/quests/<int:quest_id>/complete-step")
def complete_step(quest_id: int):
    try:
        payload = json_body()
        user_id = coerce_positive_int(payload.get("user_id"), "user_id")
        step_number = coerce_positive_int(payload.get("step_number"), "step_number")
        claimed = Coordinate.from_payload(payload.get("latitude"), payload.get("longitude"))
        result = service.complete_step(
            user_id,
            quest_id,
            step_number,
            claimed,
            photo_url=clean_or_none(payload.get("photo_url")),
            answer=clean_or_none(payload.get("answer")),
        )
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(result)


@quests_bp.get("/users/<int:user_id>/quests")
def list_user_quests(user_id: int):
    try:
        attempts = service.list_user_quests(user_id)
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify([attempt.to_public_dict() for attempt in attempts])


@quests_bp.post("/users/<int:user_id>/quests")
def start_user_quest(user_id: int):
    try:
        payload = json_body()
        user_quest = service.start_quest(user_id, coerce_positive_int(payload.get("quest_id"), "quest_id"))
    except AdventureError as exc:
        return jsonify(exc.payload), exc.status_code
    return jsonify(user_quest), 201
