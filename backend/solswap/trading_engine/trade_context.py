"""
Trade request dataclasses.

TradeIntent describes what to trade; TradeContext carries who signs and the
per-user trade parameters for one request. Both are built per call and passed
explicitly, so concurrent requests never share mutable trade settings.
"""

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Optional, Union

from solders.keypair import Keypair

from solswap.constants import SOL_MINT, VALID_DEX_OPTIONS
from solswap.exceptions import ValidationError
from solswap.models.trading import TradeMode
from solswap.precision import sol_to_lamports


class TradeDirection(str, Enum):
    BUY = "BUY"
    SELL = "SELL"


def to_decimal(value: Union[float, str, Decimal], name: str) -> Decimal:
    """Parse a human-entered number; non-numeric or non-finite input is a ValidationError"""
    try:
        result = Decimal(str(value).strip())
    except InvalidOperation:
        raise ValidationError(f"{name} must be a number, got {value!r}")
    if not result.is_finite():
        raise ValidationError(f"{name} must be finite, got {value!r}")
    return result


def slippage_pct_to_bps(slippage_pct: Union[float, str, Decimal]) -> int:
    """Convert a slippage percentage (10 == 10%) to basis points"""
    bps = to_decimal(slippage_pct, "Slippage") * 100
    if bps < 0:
        raise ValidationError(f"Slippage must be >= 0, got {slippage_pct}")
    return int(bps.to_integral_value())


@dataclass(frozen=True)
class TradeIntent:
    """
    One buy or sell request.

    ``quote_mint`` is the asset spent (SOL on a buy, the token on a sell) and
    ``base_mint`` the asset received. ``amount`` is in human units of the
    spent asset.
    """
    direction: TradeDirection
    base_mint: str
    quote_mint: str
    amount: Decimal
    slippage_bps: int

    def __post_init__(self):
        if self.amount <= 0:
            raise ValidationError(f"Trade amount must be positive, got {self.amount}")
        if self.slippage_bps < 0:
            raise ValidationError(f"Slippage must be >= 0 bps, got {self.slippage_bps}")

    @classmethod
    def buy(cls, mint: str, amount_sol: Union[float, str, Decimal], slippage_pct: float) -> "TradeIntent":
        return cls(
            direction=TradeDirection.BUY,
            base_mint=mint,
            quote_mint=SOL_MINT,
            amount=to_decimal(amount_sol, "Trade amount"),
            slippage_bps=slippage_pct_to_bps(slippage_pct),
        )

    @classmethod
    def sell(cls, mint: str, token_amount: Union[float, str, Decimal], slippage_pct: float) -> "TradeIntent":
        return cls(
            direction=TradeDirection.SELL,
            base_mint=SOL_MINT,
            quote_mint=mint,
            amount=to_decimal(token_amount, "Trade amount"),
            slippage_bps=slippage_pct_to_bps(slippage_pct),
        )

    @property
    def input_mint(self) -> str:
        return self.quote_mint

    @property
    def output_mint(self) -> str:
        return self.base_mint

    @property
    def token_mint(self) -> str:
        """The non-SOL side of the trade"""
        return self.base_mint if self.direction == TradeDirection.BUY else self.quote_mint


@dataclass(frozen=True)
class ExitPolicy:
    """Exit parameters copied onto a Position when it is opened (all percentages)"""
    stop_loss_pct: Optional[float] = None
    take_profit_pct: Optional[float] = None
    trailing_stop_distance_pct: Optional[float] = None
    trailing_stop_activation_pct: Optional[float] = None


@dataclass
class TradeContext:
    """Per-request signer and trade parameters."""
    signer: Keypair
    tip_sol: float = 0.0
    dex: str = "jupiter"
    trade_mode: TradeMode = TradeMode.EXACT
    exit_policy: ExitPolicy = field(default_factory=ExitPolicy)

    def __post_init__(self):
        if self.tip_sol < 0:
            raise ValidationError(f"Tip must be >= 0, got {self.tip_sol}")
        if self.dex not in VALID_DEX_OPTIONS:
            raise ValidationError(f"DEX must be one of: {', '.join(VALID_DEX_OPTIONS)}")

    @property
    def tip_lamports(self) -> int:
        return sol_to_lamports(self.tip_sol) if self.tip_sol else 0

    @property
    def wallet_address(self) -> str:
        return str(self.signer.pubkey())
