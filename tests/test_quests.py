import pytest

from errors import ConflictError, NotFoundError, VerificationError
from extensions import db
from geofence import Coordinate
from models import CheckIn, QuestStep, User, UserQuest, UserQuestStep
from quests import service

from conftest import DOCKS

FAR_AWAY = (DOCKS[0] + 0.045, DOCKS[1])


@pytest.fixture
def walk(make_location, make_quest):
    """Three fenced steps worth 10 each plus a 50 point completion bonus."""
    location = make_location(radius_meters=50, points_reward=15)
    return make_quest(
        [{"target_location_id": location.id, "points_reward": 10} for _ in range(3)],
        points_reward=50,
    )


def _complete(client, user, quest, step_number, coords=DOCKS, **extra):
    payload = {
        "user_id": user.id,
        "step_number": step_number,
        "latitude": coords[0],
        "longitude": coords[1],
    }
    payload.update(extra)
    return client.post(f"/api/quests/{quest.id}/complete-step", json=payload)


def test_full_walk_credits_steps_and_bonus(client, make_user, walk):
    user = make_user()
    resp = client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})
    assert resp.status_code == 201
    started = resp.get_json()
    assert started["status"] == "active"
    assert started["completed_steps"] == 0
    assert started["total_steps"] == 3

    first = _complete(client, user, walk, 1).get_json()
    assert first == {
        **first,
        "step_completed": True,
        "quest_completed": False,
        "points_earned": 10,
        "progress": "1/3",
    }
    assert _complete(client, user, walk, 2).get_json()["progress"] == "2/3"

    last = _complete(client, user, walk, 3).get_json()
    assert last["quest_completed"] is True
    assert last["points_earned"] == 60
    assert "Meredith Sculpture Walk" in last["message"]

    attempt = UserQuest.query.filter_by(user_id=user.id, quest_id=walk.id).one()
    assert attempt.status == UserQuest.STATUS_COMPLETED
    assert attempt.completed_at is not None
    assert attempt.completed_steps == 3
    assert attempt.points_earned == 50
    assert db.session.get(User, user.id).points == 80


def test_fenced_steps_leave_linked_check_ins(client, make_user, walk):
    user = make_user()
    client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})
    _complete(client, user, walk, 1)

    completion = UserQuestStep.query.one()
    checkin = db.session.get(CheckIn, completion.checkin_id)
    assert checkin.verified is True
    assert checkin.points_earned == 10
    assert checkin.user_id == user.id


def test_starting_twice_conflicts(client, make_user, walk):
    user = make_user()
    client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})
    resp = client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})

    assert resp.status_code == 409
    assert resp.get_json()["error"] == "quest_in_progress"
    assert UserQuest.query.count() == 1


def test_restart_allowed_after_completion(app, make_user, make_quest):
    user = make_user()
    quest = make_quest([{"points_reward": 5}], points_reward=0)
    service.start_quest(user.id, quest.id)
    service.complete_step(user.id, quest.id, 1, Coordinate(*DOCKS))

    again = service.start_quest(user.id, quest.id)
    assert again["status"] == "active"
    assert UserQuest.query.count() == 2


def test_resubmitting_a_step_is_rejected(client, make_user, walk):
    user = make_user()
    client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})
    _complete(client, user, walk, 1)

    resp = _complete(client, user, walk, 1)
    assert resp.status_code == 409
    assert resp.get_json()["error"] == "step_already_completed"
    assert db.session.get(User, user.id).points == 10
    assert UserQuestStep.query.count() == 1


def test_completed_quest_accepts_no_more_steps(app, make_user, make_quest):
    user = make_user()
    quest = make_quest([{"points_reward": 5}], points_reward=20)
    service.start_quest(user.id, quest.id)
    service.complete_step(user.id, quest.id, 1, Coordinate(*DOCKS))

    with pytest.raises(ConflictError) as exc_info:
        service.complete_step(user.id, quest.id, 1, Coordinate(*DOCKS))
    assert exc_info.value.payload["error"] == "quest_already_completed"
    assert db.session.get(User, user.id).points == 25


def test_step_outside_geofence_changes_nothing(client, make_user, walk):
    user = make_user()
    client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})

    resp = _complete(client, user, walk, 1, coords=FAR_AWAY)
    assert resp.status_code == 400
    body = resp.get_json()
    assert body["error"] == "verification_failed"
    assert body["reason"] == "outside_geofence"
    assert body["distance_meters"] > 4900
    assert body["required_radius"] == 50

    assert UserQuestStep.query.count() == 0
    assert CheckIn.query.count() == 0
    assert db.session.get(User, user.id).points == 0
    assert UserQuest.query.one().completed_steps == 0


def test_step_without_fence_needs_no_presence(app, make_user, make_quest):
    user = make_user()
    quest = make_quest([{"step_type": QuestStep.TYPE_TASK, "points_reward": 7}, {}])
    service.start_quest(user.id, quest.id)

    result = service.complete_step(user.id, quest.id, 1, Coordinate(-33.8, 151.2))
    assert result["points_earned"] == 7
    assert UserQuestStep.query.one().checkin_id is None
    assert CheckIn.query.count() == 0


def test_missing_attempt_or_step(app, make_user, walk):
    user = make_user()
    with pytest.raises(NotFoundError) as exc_info:
        service.complete_step(user.id, walk.id, 1, Coordinate(*DOCKS))
    assert exc_info.value.payload["error"] == "no_active_quest"

    service.start_quest(user.id, walk.id)
    with pytest.raises(NotFoundError) as exc_info:
        service.complete_step(user.id, walk.id, 9, Coordinate(*DOCKS))
    assert exc_info.value.payload["error"] == "step_not_found"


def test_unknown_or_inactive_quest_cannot_start(client, make_user, make_quest):
    user = make_user()
    retired = make_quest([{}], is_active=False)
    assert client.post("/api/quests/999/start", json={"user_id": user.id}).status_code == 404
    assert client.post(f"/api/quests/{retired.id}/start", json={"user_id": user.id}).status_code == 404
    assert client.get(f"/api/quests/{retired.id}").status_code == 404


def test_quest_without_steps_cannot_start(client, make_user, make_quest):
    user = make_user()
    empty = make_quest([])
    resp = client.post(f"/api/quests/{empty.id}/start", json={"user_id": user.id})
    assert resp.status_code == 400
    assert resp.get_json()["error"] == "quest_has_no_steps"


def test_photo_step_requires_photo(client, make_user, make_quest):
    user = make_user()
    quest = make_quest([{"step_type": QuestStep.TYPE_PHOTO}, {}])
    client.post(f"/api/quests/{quest.id}/start", json={"user_id": user.id})

    assert _complete(client, user, quest, 1).status_code == 400
    resp = _complete(client, user, quest, 1, photo_url="https://storage.test/public/p.jpg")
    assert resp.status_code == 200
    assert UserQuestStep.query.one().photo_url == "https://storage.test/public/p.jpg"


def test_question_step_checks_answer(app, make_user, make_quest):
    user = make_user()
    quest = make_quest([{"step_type": QuestStep.TYPE_QUESTION, "answer": "Lake Winnipesaukee"}, {}])
    service.start_quest(user.id, quest.id)

    with pytest.raises(VerificationError) as exc_info:
        service.complete_step(user.id, quest.id, 1, Coordinate(*DOCKS), answer="Squam Lake")
    assert exc_info.value.reason == "incorrect_answer"

    result = service.complete_step(user.id, quest.id, 1, Coordinate(*DOCKS), answer="  lake   winnipesaukee ")
    assert result["step_completed"] is True


def test_steps_may_complete_out_of_order_by_default(app, make_user, walk):
    user = make_user()
    service.start_quest(user.id, walk.id)
    result = service.complete_step(user.id, walk.id, 3, Coordinate(*DOCKS))
    assert result["progress"] == "1/3"


def test_step_order_enforced_when_configured(app, make_user, walk):
    app.config["QUEST_ENFORCE_STEP_ORDER"] = True
    user = make_user()
    service.start_quest(user.id, walk.id)

    with pytest.raises(ConflictError) as exc_info:
        service.complete_step(user.id, walk.id, 3, Coordinate(*DOCKS))
    assert exc_info.value.payload["next_step"] == 1

    service.complete_step(user.id, walk.id, 1, Coordinate(*DOCKS))
    service.complete_step(user.id, walk.id, 2, Coordinate(*DOCKS))
    assert service.complete_step(user.id, walk.id, 3, Coordinate(*DOCKS))["quest_completed"] is True


def test_failed_bonus_rolls_back_final_step(app, make_user, walk, monkeypatch):
    user = make_user()
    service.start_quest(user.id, walk.id)
    service.complete_step(user.id, walk.id, 1, Coordinate(*DOCKS))
    service.complete_step(user.id, walk.id, 2, Coordinate(*DOCKS))

    real_credit = service.credit

    def credit_without_bonus(user_id, amount, source):
        if source.endswith(":bonus"):
            raise RuntimeError("ledger offline")
        return real_credit(user_id, amount, source)

    monkeypatch.setattr(service, "credit", credit_without_bonus)
    with pytest.raises(RuntimeError):
        service.complete_step(user.id, walk.id, 3, Coordinate(*DOCKS))

    attempt = UserQuest.query.one()
    assert attempt.status == UserQuest.STATUS_ACTIVE
    assert attempt.completed_steps == 2
    assert UserQuestStep.query.count() == 2
    assert CheckIn.query.count() == 2
    assert db.session.get(User, user.id).points == 20


def test_user_quest_listing(client, make_user, walk, make_quest):
    user = make_user()
    other = make_quest([{}], name="Harbor Hunt")
    client.post(f"/api/quests/{walk.id}/start", json={"user_id": user.id})
    _complete(client, user, walk, 2)
    client.post(f"/api/users/{user.id}/quests", json={"quest_id": other.id})

    listing = client.get(f"/api/users/{user.id}/quests").get_json()
    assert [row["name"] for row in listing] == ["Harbor Hunt", "Meredith Sculpture Walk"]
    walk_row = listing[1]
    assert walk_row["progress"] == "1/3"
    assert walk_row["progress_percentage"] == 33
    assert walk_row["completed_step_numbers"] == [2]
    assert client.get("/api/users/999/quests").status_code == 404


def test_quest_detail_hides_answers(client, make_location, make_quest):
    location = make_location()
    quest = make_quest(
        [
            {"target_location_id": location.id},
            {"step_type": QuestStep.TYPE_QUESTION, "answer": "secret"},
        ]
    )

    detail = client.get(f"/api/quests/{quest.id}").get_json()
    assert [step["step_number"] for step in detail["steps"]] == [1, 2]
    assert detail["steps"][0]["radius_meters"] == 50
    assert detail["steps"][0]["location_name"] == "Meredith Town Docks"
    assert all("answer" not in step for step in detail["steps"])
    assert client.get("/api/quests/999").status_code == 404
    assert [row["id"] for row in client.get("/api/quests").get_json()] == [quest.id]
