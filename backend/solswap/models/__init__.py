"""
Database Models

Model classes are re-exported here:
    from solswap.models import Position, PositionStatus, TradeMode
"""

from solswap.database import Base  # noqa: F401
from solswap.models.trading import Position, PositionStatus, TradeMode

__all__ = [
    "Base",
    "Position",
    "PositionStatus",
    "TradeMode",
]
