"""Quest progression: start an attempt, complete steps, finish with a bonus.

A ``UserQuest`` moves ``active -> completed`` and never back. Each call
below is one transaction; the step check-in, the completion record and
both possible credits (step reward and completion bonus) commit together.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from flask import current_app
from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError

from checkins.service import lock_user, require_user
from errors import ConflictError, NotFoundError, ValidationError, VerificationError
from extensions import db
from geofence import Coordinate, verify
from models import CheckIn, Quest, QuestStep, UserQuest, UserQuestStep
from points.service import credit
from transactions import atomic


def list_quests() -> List[Quest]:
    return Quest.query.filter(Quest.is_active.is_(True)).order_by(Quest.name.asc()).all()


def get_quest(quest_id: int) -> Quest:
    quest = db.session.get(Quest, quest_id)
    if not quest or not quest.is_active:
        raise NotFoundError("Quest not found", payload={"error": "quest_not_found"})
    return quest


def start_quest(user_id: int, quest_id: int) -> Dict[str, Any]:
    with atomic(f"starting quest {quest_id} for user {user_id}"):
        lock_user(user_id)
        quest = get_quest(quest_id)
        if _active_attempt(user_id, quest_id) is not None:
            raise ConflictError("Quest already in progress", payload={"error": "quest_in_progress"})

        total_steps = len(quest.steps)
        if not total_steps:
            raise ValidationError("Quest has no steps yet", payload={"error": "quest_has_no_steps"})

        attempt = UserQuest(
            user_id=user_id,
            quest_id=quest_id,
            status=UserQuest.STATUS_ACTIVE,
            completed_steps=0,
            total_steps=total_steps,
        )
        db.session.add(attempt)
        try:
            db.session.flush()
        except IntegrityError as exc:
            # Lost a race with a concurrent start; the partial unique index caught it.
            raise ConflictError("Quest already in progress", payload={"error": "quest_in_progress"}) from exc

    current_app.logger.info("User %s started quest %s (%s steps)", user_id, quest_id, total_steps)
    return attempt.to_public_dict()


def complete_step(
    user_id: int,
    quest_id: int,
    step_number: int,
    claimed: Coordinate,
    *,
    photo_url: Optional[str] = None,
    answer: Optional[str] = None,
) -> Dict[str, Any]:
    """Verify and record one step, finishing the quest when it was the last one."""
    with atomic(f"completing step {step_number} of quest {quest_id} for user {user_id}"):
        lock_user(user_id)
        attempt = _active_attempt(user_id, quest_id, for_update=True)
        if attempt is None:
            if _has_completed_attempt(user_id, quest_id):
                raise ConflictError("Quest already completed", payload={"error": "quest_already_completed"})
            raise NotFoundError("No active quest found", payload={"error": "no_active_quest"})

        step = QuestStep.query.filter_by(quest_id=quest_id, step_number=step_number).first()
        if not step:
            raise NotFoundError("Quest step not found", payload={"error": "step_not_found"})

        done_step_ids = {completion.quest_step_id for completion in attempt.step_completions}
        if step.id in done_step_ids:
            raise ConflictError("Step already completed", payload={"error": "step_already_completed"})
        if _enforce_step_order():
            _require_previous_steps(attempt.quest, step, done_step_ids)

        _check_submission(step, photo_url, answer)

        fence = step.geofence
        result = verify(claimed, fence)
        if not result.verified:
            current_app.logger.info(
                "User %s outside geofence for quest %s step %s: %.1fm > %.0fm",
                user_id,
                quest_id,
                step_number,
                result.distance_m,
                fence.radius_m,
            )
            raise VerificationError(
                "You must be at the correct location to complete this step",
                distance_m=result.distance_m,
                radius_m=fence.radius_m,
            )

        step_points = int(step.points_reward or 0)
        checkin = None
        if step.target_location_id is not None:
            checkin = CheckIn(
                user_id=user_id,
                location_id=step.target_location_id,
                latitude=claimed.lat,
                longitude=claimed.lon,
                distance_meters=result.distance_m,
                points_earned=step_points,
                verified=True,
            )
            db.session.add(checkin)
            db.session.flush()

        db.session.add(
            UserQuestStep(
                user_quest_id=attempt.id,
                quest_step_id=step.id,
                status="completed",
                photo_url=photo_url,
                checkin_id=checkin.id if checkin else None,
            )
        )
        try:
            db.session.flush()
        except IntegrityError as exc:
            raise ConflictError("Step already completed", payload={"error": "step_already_completed"}) from exc

        if step_points:
            credit(user_id, step_points, source=f"quest:{quest_id}:step:{step_number}")

        completed = _count_completed(attempt.id)
        total = _count_steps(quest_id)
        attempt.completed_steps = completed
        attempt.total_steps = total

        bonus = 0
        quest_completed = completed >= total
        if quest_completed:
            quest = attempt.quest
            bonus = int(quest.points_reward or 0)
            attempt.status = UserQuest.STATUS_COMPLETED
            attempt.completed_at = datetime.now(timezone.utc)
            attempt.points_earned = bonus
            if bonus:
                credit(user_id, bonus, source=f"quest:{quest_id}:bonus")
            quest_name = quest.name

    response: Dict[str, Any] = {
        "step_completed": True,
        "quest_completed": quest_completed,
        "points_earned": step_points + bonus,
    }
    if quest_completed:
        current_app.logger.info("User %s completed quest %s (+%s bonus)", user_id, quest_id, bonus)
        response["message"] = f"Congratulations! You've completed {quest_name}!"
    else:
        response["progress"] = f"{completed}/{total}"
        response["progress_percentage"] = int((completed / total) * 100) if total else 0
    response["user_quest"] = attempt.to_public_dict()
    return response


def list_user_quests(user_id: int) -> List[UserQuest]:
    require_user(user_id)
    return (
        UserQuest.query.filter_by(user_id=user_id)
        .order_by(UserQuest.started_at.desc(), UserQuest.id.desc())
        .all()
    )


def _active_attempt(user_id: int, quest_id: int, for_update: bool = False) -> Optional[UserQuest]:
    query = select(UserQuest).where(
        UserQuest.user_id == user_id,
        UserQuest.quest_id == quest_id,
        UserQuest.status == UserQuest.STATUS_ACTIVE,
    )
    if for_update:
        query = query.with_for_update(of=UserQuest)
    return db.session.execute(query).unique().scalar_one_or_none()


def _has_completed_attempt(user_id: int, quest_id: int) -> bool:
    query = UserQuest.query.filter_by(
        user_id=user_id,
        quest_id=quest_id,
        status=UserQuest.STATUS_COMPLETED,
    )
    return db.session.query(query.exists()).scalar()


def _count_completed(user_quest_id: int) -> int:
    return db.session.execute(
        select(func.count(UserQuestStep.id)).where(
            UserQuestStep.user_quest_id == user_quest_id,
            UserQuestStep.status == "completed",
        )
    ).scalar_one()


def _count_steps(quest_id: int) -> int:
    return db.session.execute(
        select(func.count(QuestStep.id)).where(QuestStep.quest_id == quest_id)
    ).scalar_one()


def _require_previous_steps(quest: Quest, step: QuestStep, done_step_ids: set) -> None:
    pending = [
        earlier.step_number
        for earlier in quest.steps
        if earlier.step_number < step.step_number and earlier.id not in done_step_ids
    ]
    if pending:
        raise ConflictError(
            f"Complete step {pending[0]} first",
            payload={"error": "step_out_of_order", "next_step": pending[0]},
        )


def _check_submission(step: QuestStep, photo_url: Optional[str], answer: Optional[str]) -> None:
    if step.step_type == QuestStep.TYPE_PHOTO and not photo_url:
        raise ValidationError("A photo is required for this step", payload={"error": "missing_photo"})

    if step.step_type == QuestStep.TYPE_QUESTION and step.answer:
        if not answer:
            raise ValidationError("An answer is required for this step", payload={"error": "missing_answer"})
        if _normalize_answer(answer) != _normalize_answer(step.answer):
            raise VerificationError("That answer is not correct", reason="incorrect_answer")


def _normalize_answer(value: str) -> str:
    return " ".join(value.split()).casefold()


def _enforce_step_order() -> bool:
    return bool(current_app.config.get("QUEST_ENFORCE_STEP_ORDER", False))
