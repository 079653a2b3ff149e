"""Points ledger: the only code allowed to change a user's balance.

``credit`` and ``debit`` join the caller's transaction and never commit;
check-ins, quest steps and photo uploads all credit inside their own
``atomic`` block so the balance and the record that earned it land together.
"""

from __future__ import annotations

import time
from datetime import datetime
from typing import Dict, List, Optional

from flask import current_app
from sqlalchemy import select, update

from errors import InsufficientBalanceError, NotFoundError, ValidationError
from extensions import db
from models import PointsTransaction, User
from transactions import atomic


def credit(user_id: int, amount: int, source: str) -> int:
    """Add ``amount`` to the balance and return the new balance."""
    _require_positive(amount)
    result = db.session.execute(
        update(User)
        .where(User.id == user_id)
        .values(points=User.points + amount)
        .execution_options(synchronize_session="fetch")
    )
    if not result.rowcount:
        raise NotFoundError("User not found", payload={"error": "user_not_found"})
    db.session.add(PointsTransaction(user_id=user_id, delta=amount, source=source))
    return _current_balance(user_id)


def debit(user_id: int, amount: int, source: str) -> int:
    """Subtract ``amount`` if the balance covers it and return the new balance."""
    _require_positive(amount)
    result = db.session.execute(
        update(User)
        .where(User.id == user_id, User.points >= amount)
        .values(points=User.points - amount)
        .execution_options(synchronize_session="fetch")
    )
    if not result.rowcount:
        balance = db.session.execute(select(User.points).where(User.id == user_id)).scalar_one_or_none()
        if balance is None:
            raise NotFoundError("User not found", payload={"error": "user_not_found"})
        raise InsufficientBalanceError(requested=amount, balance=balance)
    db.session.add(PointsTransaction(user_id=user_id, delta=-amount, source=source))
    return _current_balance(user_id)


def get_balance(user_id: int) -> int:
    balance = db.session.execute(select(User.points).where(User.id == user_id)).scalar_one_or_none()
    if balance is None:
        raise NotFoundError("User not found", payload={"error": "user_not_found"})
    return balance


def redeem_points(user_id: int, points: int, discount_code: Optional[str] = None) -> Dict[str, object]:
    with atomic(f"redeeming {points} points for user {user_id}"):
        remaining = debit(user_id, points, source="redemption")
    # Real discount issuance happens in the commerce backend; this is a placeholder code.
    code = discount_code or f"ADVENTURE{int(time.time() * 1000)}"
    current_app.logger.info("User %s redeemed %s points (%s remaining)", user_id, points, remaining)
    return {
        "success": True,
        "points_redeemed": points,
        "remaining_points": remaining,
        "discount_code": code,
    }


def list_transactions(user_id: int, limit: int = 100, since: Optional[datetime] = None) -> List[PointsTransaction]:
    get_balance(user_id)
    query = PointsTransaction.query.filter_by(user_id=user_id)
    if since is not None:
        query = query.filter(PointsTransaction.created_at >= since)
    return (
        query
        .order_by(PointsTransaction.created_at.desc(), PointsTransaction.id.desc())
        .limit(limit)
        .all()
    )


def _current_balance(user_id: int) -> int:
    return db.session.execute(select(User.points).where(User.id == user_id)).scalar_one()


def _require_positive(amount: int) -> None:
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Points amount must be a positive whole number", payload={"error": "invalid_points"})
