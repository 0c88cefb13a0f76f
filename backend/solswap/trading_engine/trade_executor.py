"""
Trade execution orchestration

Runs one trade end to end: build the signed bundle, submit it, wait for
confirmation. Every step is awaited in order; a failure at any step is logged
with the step that failed and re-raised as the typed TradeError from that
step. Nothing is retried.

Positions are only opened after a confirmed buy (see open_position).
"""

import logging
from dataclasses import dataclass
from decimal import Decimal
from typing import Optional

from solswap.exceptions import TradeError, ValidationError
from solswap.exchange_clients.jupiter_client import Quote
from solswap.models.trading import Position
from solswap.precision import from_smallest_unit
from solswap.schemas.position import PositionCreate
from solswap.services.position_store import PositionStore
from solswap.trading_engine.bundle_builder import TransactionBundler
from solswap.trading_engine.submission import SubmissionRelay, SubmissionResult
from solswap.trading_engine.trade_context import ExitPolicy, TradeContext, TradeDirection, TradeIntent

logger = logging.getLogger(__name__)


@dataclass
class TradeResult:
    """A confirmed trade"""
    intent: TradeIntent
    signature: str
    quote: Quote
    submission: SubmissionResult

    @property
    def atomic(self) -> bool:
        return self.submission.atomic


class TradeExecutor:
    """Executes buy and sell intents through the bundler and submission relay."""

    def __init__(
        self,
        bundler: TransactionBundler,
        relay: SubmissionRelay,
        store: Optional[PositionStore] = None,
    ):
        self.bundler = bundler
        self.relay = relay
        self.store = store

    async def buy(self, intent: TradeIntent, ctx: TradeContext) -> TradeResult:
        """Spend ``intent.amount`` SOL on ``intent.base_mint``"""
        if intent.direction != TradeDirection.BUY:
            raise ValidationError("buy() requires a BUY intent")
        logger.info(
            f"Buying {intent.base_mint} with {intent.amount} SOL "
            f"(slippage {intent.slippage_bps} bps, tip {ctx.tip_sol} SOL, mode {ctx.trade_mode.value})"
        )
        return await self._execute(intent, ctx)

    async def sell(self, intent: TradeIntent, ctx: TradeContext) -> TradeResult:
        """Sell ``intent.amount`` tokens of ``intent.quote_mint`` for SOL"""
        if intent.direction != TradeDirection.SELL:
            raise ValidationError("sell() requires a SELL intent")
        logger.info(
            f"Selling {intent.amount} of {intent.quote_mint} "
            f"(slippage {intent.slippage_bps} bps, tip {ctx.tip_sol} SOL)"
        )
        return await self._execute(intent, ctx)

    async def _execute(self, intent: TradeIntent, ctx: TradeContext) -> TradeResult:
        step = "build"
        try:
            if intent.direction == TradeDirection.BUY:
                bundle = await self.bundler.build_buy_bundle(intent, ctx.signer, ctx.tip_lamports)
            else:
                bundle = await self.bundler.build_sell_bundle(intent, ctx.signer, ctx.tip_lamports)

            step = "submit"
            submission = await self.relay.submit(bundle)
        except TradeError as e:
            logger.error(
                f"{intent.direction.value} {intent.token_mint} failed at {step} "
                f"[{e.kind.value}, {e.outcome.value}]: {e}"
            )
            raise

        if not submission.atomic:
            logger.warning(
                f"{intent.direction.value} {submission.signature} was submitted without a bundle; "
                f"tip landed: {submission.tip_landed}"
            )
        logger.info(f"{intent.direction.value} confirmed: {submission.signature}")
        return TradeResult(
            intent=intent,
            signature=submission.signature,
            quote=bundle.quote,
            submission=submission,
        )

    async def open_position(
        self,
        intent: TradeIntent,
        result: TradeResult,
        ctx: TradeContext,
        exit_policy: Optional[ExitPolicy] = None,
    ) -> Position:
        """
        Persist a Position for a confirmed buy.

        The token amount comes from the quote's output amount; decimals are
        taken from the quote when present, otherwise read from the mint.
        """
        if self.store is None:
            raise ValidationError("No position store configured")
        if intent.direction != TradeDirection.BUY:
            raise ValidationError("Positions are only opened for buys")

        policy = exit_policy or ctx.exit_policy
        decimals = result.quote.output_decimals
        if decimals is None:
            decimals = await self.bundler.resolve_decimals(intent.base_mint)

        token_amount = from_smallest_unit(result.quote.out_amount, decimals)
        if token_amount <= 0:
            raise ValidationError(f"Quote output amount must be positive, got {result.quote.out_amount}")
        entry_price = Decimal(intent.amount) / token_amount

        return await self.store.create(PositionCreate(
            mint=intent.base_mint,
            buy_amount=float(intent.amount),
            token_amount=float(token_amount),
            entry_price=float(entry_price),
            trade_mode=ctx.trade_mode,
            dex=ctx.dex,
            parent_signature=result.signature,
            stop_loss_pct=policy.stop_loss_pct,
            take_profit_pct=policy.take_profit_pct,
            trailing_stop_distance_pct=policy.trailing_stop_distance_pct,
            trailing_stop_activation_pct=policy.trailing_stop_activation_pct,
        ))
