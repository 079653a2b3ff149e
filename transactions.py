"""Unit-of-work helper: one commit per request-level operation."""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from errors import AdventureError
from extensions import db


@contextmanager
def atomic(action: str) -> Iterator[Session]:
    """Commit everything done inside the block, or roll all of it back."""
    session = db.session
    try:
        yield session
        session.commit()
    except AdventureError:
        session.rollback()
        raise
    except SQLAlchemyError as exc:
        session.rollback()
        current_app.logger.exception("Database error while %s: %s", action, exc)
        raise AdventureError(
            "Could not save changes. Please try again.",
            status_code=500,
            error_code="database_error",
        ) from exc
    except Exception:
        session.rollback()
        raise
