"""Points ledger package (balance changes + redemption API)."""

from .routes import points_bp
from .service import credit, debit, get_balance, redeem_points

__all__ = ["points_bp", "credit", "debit", "get_balance", "redeem_points"]
