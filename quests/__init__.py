"""Quest progression package (catalogue + per-user state machine)."""

from .routes import quests_bp
from .service import complete_step, start_quest

__all__ = ["quests_bp", "complete_step", "start_quest"]
