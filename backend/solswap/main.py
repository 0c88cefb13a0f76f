"""
SolSwap command line entry point

Commands:
  monitor            Watch active positions and sell when an exit fires
  list [--active]    Print positions as JSON
  buy MINT AMOUNT    Buy MINT with AMOUNT SOL and open a position
  sell MINT AMOUNT   Sell AMOUNT tokens of MINT for SOL
"""

import argparse
import asyncio
import json
import logging
import sys
from decimal import Decimal
from typing import Optional

from solana.rpc.async_api import AsyncClient
from solders.keypair import Keypair

from solswap.config import Settings, settings
from solswap.database import async_session_maker, init_db
from solswap.exceptions import AppError, ValidationError
from solswap.exchange_clients import JitoClient, JupiterClient
from solswap.models.trading import Position, TradeMode
from solswap.price_feeds import CoinveraPriceFeed
from solswap.schemas.position import PositionResponse
from solswap.services.position_monitor import PositionMonitor
from solswap.services.position_store import PositionStore
from solswap.trading_engine.bundle_builder import TransactionBundler
from solswap.trading_engine.submission import SubmissionRelay
from solswap.trading_engine.trade_context import ExitPolicy, TradeContext, TradeIntent
from solswap.trading_engine.trade_executor import TradeExecutor

logger = logging.getLogger(__name__)


class Runtime:
    """Clients and services wired from settings for one process"""

    def __init__(self, config: Settings):
        self.config = config
        self.rpc = AsyncClient(config.solana_rpc_url)
        self.jupiter = JupiterClient(config.jupiter_api_url, timeout=config.http_timeout_seconds)
        self.jito: Optional[JitoClient] = None
        if config.relay_enabled:
            self.jito = JitoClient(config.jito_engine_url, timeout=config.http_timeout_seconds)
        self.price_feed = CoinveraPriceFeed(
            config.coinvera_api_url, config.coinvera_api_key, timeout=config.http_timeout_seconds
        )
        self.store = PositionStore(async_session_maker)
        self.bundler = TransactionBundler(
            self.jupiter,
            self.rpc,
            tip_account=config.jito_tip_account,
            relay_enabled=config.relay_enabled,
            require_relay_for_tip=config.require_relay_for_tip,
        )
        self.relay = SubmissionRelay(
            self.rpc,
            self.jito,
            confirm_timeout_seconds=config.confirm_timeout_seconds,
            poll_interval_seconds=config.confirm_poll_interval_seconds,
            skip_preflight=config.skip_preflight,
        )
        self.executor = TradeExecutor(self.bundler, self.relay, self.store)

    def signer(self) -> Keypair:
        if not self.config.wallet_private_key:
            raise ValidationError("WALLET_PRIVATE_KEY is not set")
        try:
            return Keypair.from_base58_string(self.config.wallet_private_key)
        except ValueError as e:
            raise ValidationError(f"Invalid WALLET_PRIVATE_KEY: {e}")

    def default_tip_sol(self) -> float:
        # Without a relay a tip cannot ride in the same bundle as the swap
        if not self.config.relay_enabled and self.config.require_relay_for_tip:
            return 0.0
        return self.config.default_jito_tip_sol

    async def close(self):
        await self.jupiter.close()
        if self.jito:
            await self.jito.close()
        await self.price_feed.close()
        await self.rpc.close()


def make_close_handler(runtime: Runtime):
    """Close handler that sells the whole position for SOL"""

    async def sell_position(position: Position, reason: str):
        ctx = TradeContext(
            signer=runtime.signer(),
            tip_sol=runtime.default_tip_sol(),
            dex=position.dex or runtime.config.default_dex,
            trade_mode=TradeMode(position.trade_mode),
        )
        intent = TradeIntent.sell(position.mint, position.token_amount, runtime.config.default_slippage_pct)
        logger.info(f"Selling position {position.id} ({reason})")
        return await runtime.executor.sell(intent, ctx)

    return sell_position


async def run_monitor(runtime: Runtime):
    close_handler = make_close_handler(runtime) if runtime.config.wallet_private_key else None
    if close_handler is None:
        logger.warning("WALLET_PRIVATE_KEY not set: exits will close positions without selling")

    monitor = PositionMonitor(
        runtime.store,
        runtime.price_feed,
        close_handler=close_handler,
        interval_seconds=runtime.config.price_check_delay_seconds,
    )
    await monitor.start()
    try:
        await monitor.task
    finally:
        await monitor.stop()


async def list_positions(runtime: Runtime, active_only: bool):
    positions = await (runtime.store.list_active() if active_only else runtime.store.list_all())
    payload = [PositionResponse.model_validate(p).model_dump(mode="json") for p in positions]
    print(json.dumps(payload, indent=2))


async def buy(runtime: Runtime, args: argparse.Namespace):
    ctx = TradeContext(
        signer=runtime.signer(),
        tip_sol=args.tip if args.tip is not None else runtime.default_tip_sol(),
        dex=runtime.config.default_dex,
        trade_mode=TradeMode(args.mode),
        exit_policy=ExitPolicy(
            stop_loss_pct=args.stop_loss,
            take_profit_pct=args.take_profit,
            trailing_stop_distance_pct=args.trailing_distance,
            trailing_stop_activation_pct=args.trailing_activation,
        ),
    )
    intent = TradeIntent.buy(args.mint, args.amount, args.slippage)
    result = await runtime.executor.buy(intent, ctx)
    position = await runtime.executor.open_position(intent, result, ctx)
    print(f"Buy confirmed: {result.signature}")
    print(f"Position {position.id}: {position.token_amount} tokens @ {position.entry_price:.9f} SOL")


async def sell(runtime: Runtime, args: argparse.Namespace):
    ctx = TradeContext(
        signer=runtime.signer(),
        tip_sol=args.tip if args.tip is not None else runtime.default_tip_sol(),
        dex=runtime.config.default_dex,
    )
    intent = TradeIntent.sell(args.mint, args.amount, args.slippage)
    result = await runtime.executor.sell(intent, ctx)
    print(f"Sell confirmed: {result.signature}")

    position = await runtime.store.find_active_exact_by_mint(args.mint)
    if position is None:
        return
    held = Decimal(str(position.token_amount))
    if intent.amount >= held:
        await runtime.store.close(position.id, "manual")
    else:
        remaining = held - intent.amount
        await runtime.store.update(position.id, {"token_amount": float(remaining)})
        logger.info(f"Position {position.id} reduced to {remaining} tokens")


def build_parser(config: Settings) -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="solswap-monitor", description="Solana swap executor and position monitor")
    sub = parser.add_subparsers(dest="command")

    sub.add_parser("monitor", help="Watch active positions and sell on exit")

    list_parser = sub.add_parser("list", help="Print positions as JSON")
    list_parser.add_argument("--active", action="store_true", help="Only active positions")

    for name, amount_help in (("buy", "SOL to spend"), ("sell", "Tokens to sell")):
        trade_parser = sub.add_parser(name, help=f"{name.capitalize()} a token")
        trade_parser.add_argument("mint", help="Token mint address")
        trade_parser.add_argument("amount", help=amount_help)
        trade_parser.add_argument("--slippage", type=float, default=config.default_slippage_pct, help="Slippage %%")
        trade_parser.add_argument("--tip", type=float, default=None, help="Jito tip in SOL")

    buy_parser = sub.choices["buy"]
    buy_parser.add_argument("--mode", choices=[m.value for m in TradeMode], default=TradeMode.EXACT.value)
    buy_parser.add_argument("--stop-loss", type=float, default=None, help="Stop loss %% below entry")
    buy_parser.add_argument("--take-profit", type=float, default=None, help="Take profit %% above entry")
    buy_parser.add_argument("--trailing-distance", type=float, default=None, help="Trailing stop distance %%")
    buy_parser.add_argument("--trailing-activation", type=float, default=None, help="Trailing stop activation %%")
    return parser


async def run(args: argparse.Namespace, config: Settings) -> int:
    await init_db()
    runtime = Runtime(config)
    try:
        if args.command == "list":
            await list_positions(runtime, args.active)
        elif args.command == "buy":
            await buy(runtime, args)
        elif args.command == "sell":
            await sell(runtime, args)
        else:
            await run_monitor(runtime)
    except AppError as e:
        logger.error(f"{args.command or 'monitor'} failed: {e}")
        return 1
    finally:
        await runtime.close()
    return 0


def main(argv=None):
    args = build_parser(settings).parse_args(argv)

    logging.basicConfig(
        level=getattr(logging, settings.log_level.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    try:
        sys.exit(asyncio.run(run(args, settings)))
    except KeyboardInterrupt:
        logger.info("Interrupted, shutting down")
        sys.exit(0)


if __name__ == "__main__":
    main()
