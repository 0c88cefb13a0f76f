"""
Position persistence

Positions are created on a successful buy, updated by the exit monitor on
every price tick, and closed when an exit fires. Each update locks only its
own record and runs in its own transaction, so a slow update to one position
never blocks the others and two ticks for the same position cannot interleave.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from solswap.exceptions import PositionNotFound, ValidationError
from solswap.models.trading import Position, PositionStatus, TradeMode
from solswap.schemas.position import PositionCreate

logger = logging.getLogger(__name__)

# Fields the monitor (or an operator) may change after creation
UPDATABLE_FIELDS = frozenset({
    "current_price",
    "highest_price",
    "trailing_stop_price",
    "trailing_stop_activated",
    "trailing_stop_distance_pct",
    "trailing_stop_activation_pct",
    "stop_loss_pct",
    "take_profit_pct",
    "token_amount",
    "status",
    "exit_reason",
    "closed_at",
})


class PositionStore:
    """Async CRUD over the positions table with per-record update locks."""

    def __init__(self, session_maker: async_sessionmaker[AsyncSession]):
        self.session_maker = session_maker
        self._locks: Dict[str, asyncio.Lock] = {}

    def _lock_for(self, position_id: str) -> asyncio.Lock:
        lock = self._locks.get(position_id)
        if lock is None:
            lock = self._locks[position_id] = asyncio.Lock()
        return lock

    async def create(self, data: Union[PositionCreate, Dict[str, Any]]) -> Position:
        """
        Persist a new active position.

        ``current_price`` and ``highest_price`` start at the entry price.
        """
        if not isinstance(data, PositionCreate):
            data = PositionCreate(**data)

        fields = data.model_dump()
        fields["trade_mode"] = TradeMode(fields["trade_mode"]).value
        position = Position(
            **fields,
            status=PositionStatus.ACTIVE.value,
            current_price=data.entry_price,
            highest_price=data.entry_price,
            trailing_stop_activated=False,
        )
        async with self.session_maker() as db:
            db.add(position)
            await db.commit()
            await db.refresh(position)

        logger.info(
            f"Position {position.id} opened: {position.get_short_mint()} "
            f"{position.token_amount} tokens @ {position.entry_price:.9f} SOL"
        )
        return position

    async def get(self, position_id: str) -> Position:
        async with self.session_maker() as db:
            position = await db.get(Position, position_id)
        if position is None:
            raise PositionNotFound(position_id)
        return position

    async def list_all(self) -> List[Position]:
        async with self.session_maker() as db:
            result = await db.execute(select(Position).order_by(Position.created_at))
            return list(result.scalars().all())

    async def list_active(self) -> List[Position]:
        async with self.session_maker() as db:
            result = await db.execute(
                select(Position)
                .where(Position.status == PositionStatus.ACTIVE.value)
                .order_by(Position.created_at)
            )
            return list(result.scalars().all())

    async def find_active_exact_by_mint(self, mint: str) -> Optional[Position]:
        """First active EXACT-mode position for ``mint``, if any"""
        async with self.session_maker() as db:
            result = await db.execute(
                select(Position)
                .where(Position.mint == mint)
                .where(Position.status == PositionStatus.ACTIVE.value)
                .where(Position.trade_mode == TradeMode.EXACT.value)
                .order_by(Position.created_at)
                .limit(1)
            )
            return result.scalars().first()

    async def update(self, position_id: str, fields: Dict[str, Any]) -> Position:
        """
        Merge ``fields`` into one position.

        Raises:
            ValidationError: A field is not updatable
            PositionNotFound: No position with this id
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValidationError(f"Cannot update position fields: {', '.join(sorted(unknown))}")

        async with self._lock_for(position_id):
            async with self.session_maker() as db:
                async with db.begin():
                    position = await db.get(Position, position_id)
                    if position is None:
                        raise PositionNotFound(position_id)
                    for name, value in fields.items():
                        setattr(position, name, value)
                    position.updated_at = datetime.utcnow()
                return position

    async def close(self, position_id: str, reason: str) -> Position:
        """Mark a position closed with ``reason`` as the exit reason"""
        position = await self.update(position_id, {
            "status": PositionStatus.CLOSED.value,
            "exit_reason": reason,
            "closed_at": datetime.utcnow(),
        })
        logger.info(f"Position {position_id} closed ({reason})")
        return position
