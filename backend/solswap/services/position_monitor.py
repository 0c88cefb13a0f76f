"""
Position exit monitor

Periodically checks every active position against its exit policy:
- Fetches the current token price in SOL
- Runs the trailing stop and fixed TP/SL evaluators
- Persists the returned field updates through PositionStore
- On a triggered exit, calls the close handler (normally a sell) and then
  marks the position closed

A position whose close handler fails with funds not moved stays active and
is retried on the next tick. A failure with an uncertain outcome (the sell
may have landed) closes the position as "exit_uncertain" and is never retried.
"""

import asyncio
import logging
from typing import Any, Awaitable, Callable, Optional

from solswap.exceptions import AppError, PriceFormatInvalid, TradeError, TradeOutcome
from solswap.models.trading import Position
from solswap.services.position_store import PositionStore
from solswap.trading_engine.trailing_stops import ensure_numeric_price, evaluate_exit_conditions

logger = logging.getLogger(__name__)

EXIT_UNCERTAIN = "exit_uncertain"

CloseHandler = Callable[[Position, str], Awaitable[Any]]


class PositionMonitor:
    """Monitor active positions and close them when an exit condition fires."""

    def __init__(
        self,
        store: PositionStore,
        price_feed,
        close_handler: Optional[CloseHandler] = None,
        interval_seconds: float = 5.0,
    ):
        self.store = store
        self.price_feed = price_feed
        self.close_handler = close_handler
        self.interval_seconds = interval_seconds
        self.running = False
        self.task: Optional[asyncio.Task] = None

    async def start(self):
        """Start the monitoring loop"""
        if self.running:
            return
        self.running = True
        self.task = asyncio.create_task(self._monitor_loop())
        logger.info(f"Position monitor started (interval: {self.interval_seconds}s)")

    async def stop(self):
        """Stop the monitoring loop"""
        self.running = False
        if self.task:
            self.task.cancel()
            try:
                await self.task
            except asyncio.CancelledError:
                pass
            self.task = None
            logger.info("Position monitor stopped")

    async def _monitor_loop(self):
        while self.running:
            try:
                await self.check_positions()
            except Exception as e:
                logger.error(f"Position monitor error: {e}", exc_info=True)

            await asyncio.sleep(self.interval_seconds)

    async def check_positions(self) -> int:
        """
        Run one pass over all active positions.

        Returns:
            Number of positions closed in this pass
        """
        positions = await self.store.list_active()
        if not positions:
            return 0

        closed = 0
        for position in positions:
            try:
                if await self._check_position(position):
                    closed += 1
            except AppError as e:
                logger.warning(f"Skipping position {position.id} this tick: {e}")
        return closed

    async def _check_position(self, position: Position) -> bool:
        token_price = await self.price_feed.get_price(position.mint)
        try:
            price = ensure_numeric_price(token_price.price_in_sol)
        except PriceFormatInvalid:
            logger.error(f"Invalid price for {position.get_short_mint()}: {token_price.price_in_sol!r}")
            raise

        decision = evaluate_exit_conditions(position, price)
        position = await self.store.update(position.id, decision.updates)
        logger.debug(f"{position.get_short_mint()}: {decision.message}")

        if not decision.should_close:
            return False

        logger.info(f"Exit triggered for position {position.id} ({decision.exit_reason}): {decision.message}")
        if self.close_handler is not None:
            try:
                await self.close_handler(position, decision.exit_reason)
            except TradeError as e:
                if e.outcome != TradeOutcome.OUTCOME_UNCERTAIN:
                    logger.error(f"Close handler failed for position {position.id}, leaving it active: {e}")
                    return False
                # The sell may have landed; selling again could execute twice
                signature = getattr(e, "signature", None)
                logger.error(
                    f"Exit for position {position.id} has an uncertain outcome "
                    f"(signature {signature}); closing without retry: {e}"
                )
                await self.store.close(position.id, EXIT_UNCERTAIN)
                return True
            except Exception as e:
                logger.error(
                    f"Close handler failed for position {position.id}, leaving it active: {e}",
                    exc_info=True,
                )
                return False

        await self.store.close(position.id, decision.exit_reason)
        return True
