"""Check-in ledger package (map targets, nearby search, check-ins)."""

from .routes import checkins_bp
from .service import record_check_in

__all__ = ["checkins_bp", "record_check_in"]
