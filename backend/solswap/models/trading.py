"""Trading models: positions opened by successful buys."""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import Boolean, Column, DateTime, Float, String

from solswap.database import Base


class PositionStatus(str, Enum):
    ACTIVE = "active"
    CLOSED = "closed"


class TradeMode(str, Enum):
    EXACT = "EXACT"
    SAFE = "SAFE"  # Reserved: accepted and stored, no distinct execution behavior


def _new_position_id() -> str:
    return str(uuid.uuid4())


class Position(Base):
    __tablename__ = "positions"

    id = Column(String(36), primary_key=True, default=_new_position_id)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)
    closed_at = Column(DateTime, nullable=True)

    mint = Column(String, nullable=False, index=True)  # Traded token mint address
    buy_amount = Column(Float, nullable=False)  # SOL spent on the buy
    token_amount = Column(Float, nullable=False)  # Tokens received (human units)
    entry_price = Column(Float, nullable=False)  # SOL per token at entry
    current_price = Column(Float, nullable=False)  # Last observed SOL price

    status = Column(String, default=PositionStatus.ACTIVE.value, nullable=False, index=True)
    trade_mode = Column(String, default=TradeMode.EXACT.value, nullable=False)
    dex = Column(String, nullable=True)
    parent_signature = Column(String, nullable=True)  # Signature of the buy that opened the position

    # Fixed exit policy (percent of entry price)
    stop_loss_pct = Column(Float, nullable=True)
    take_profit_pct = Column(Float, nullable=True)

    # Trailing stop tracking
    highest_price = Column(Float, nullable=False)  # Peak price while armed (seeded with entry)
    trailing_stop_price = Column(Float, nullable=True)
    trailing_stop_activated = Column(Boolean, default=False, nullable=False)
    trailing_stop_distance_pct = Column(Float, nullable=True)  # Stop sits this % below the peak
    trailing_stop_activation_pct = Column(Float, nullable=True)  # Arms once price is this % above entry

    # "stop_loss", "take_profit", "trailing_stop", "manual"
    exit_reason = Column(String, nullable=True)

    def get_short_mint(self) -> str:
        """Get shortened mint address for log lines"""
        if self.mint and len(self.mint) > 10:
            return f"{self.mint[:4]}...{self.mint[-4:]}"
        return self.mint or ""

    def __repr__(self) -> str:
        return f"<Position {self.id} {self.get_short_mint()} {self.status}>"
