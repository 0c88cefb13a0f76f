"""Position-related Pydantic schemas"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field

from solswap.models.trading import PositionStatus, TradeMode


class PositionCreate(BaseModel):
    mint: str = Field(min_length=32, max_length=44)
    buy_amount: float = Field(gt=0)  # SOL
    token_amount: float = Field(gt=0)
    entry_price: float = Field(gt=0)  # SOL per token
    trade_mode: TradeMode = TradeMode.EXACT
    dex: Optional[str] = None
    parent_signature: Optional[str] = None
    stop_loss_pct: Optional[float] = Field(default=None, ge=0)
    take_profit_pct: Optional[float] = Field(default=None, ge=0)
    trailing_stop_distance_pct: Optional[float] = Field(default=None, ge=0)
    trailing_stop_activation_pct: Optional[float] = Field(default=None, ge=0)


class PositionResponse(BaseModel):
    id: str
    created_at: datetime
    closed_at: Optional[datetime] = None
    mint: str
    buy_amount: float
    token_amount: float
    entry_price: float
    current_price: float
    status: PositionStatus
    trade_mode: TradeMode
    dex: Optional[str] = None
    parent_signature: Optional[str] = None
    stop_loss_pct: Optional[float] = None
    take_profit_pct: Optional[float] = None
    highest_price: float
    trailing_stop_price: Optional[float] = None
    trailing_stop_activated: bool = False
    trailing_stop_distance_pct: Optional[float] = None
    trailing_stop_activation_pct: Optional[float] = None
    exit_reason: Optional[str] = None

    class Config:
        from_attributes = True
