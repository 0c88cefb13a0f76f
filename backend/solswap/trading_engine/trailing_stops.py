"""
Exit policy evaluation: trailing stop and fixed take-profit / stop-loss

Trailing stop states per position:
- Inactive: trailing_stop_activated is False
- Armed: activated once price reaches entry * (1 + activation%). The stop sits
  distance% below the highest price seen and only ever moves up.
- Triggered: price <= stop; the caller closes the position.

A percentage of None means that exit is not configured. An explicit 0 is a
real threshold: activation 0 arms at entry and distance 0 puts the stop at
the peak.

All functions here are pure: they read the position and return the field
updates to apply (through PositionStore) plus whether to close. Nothing is
mutated or persisted, so evaluation is safe to run concurrently.
"""

import math
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from solswap.exceptions import PriceFormatInvalid

EXIT_STOP_LOSS = "stop_loss"
EXIT_TAKE_PROFIT = "take_profit"
EXIT_TRAILING_STOP = "trailing_stop"


@dataclass
class ExitDecision:
    updates: Dict[str, Any] = field(default_factory=dict)
    should_close: bool = False
    exit_reason: Optional[str] = None
    message: str = ""


def ensure_numeric_price(value: Any) -> float:
    """
    Validate a price before it enters exit evaluation.

    Raises:
        PriceFormatInvalid: Strings, bools, None, NaN/inf or negative values
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise PriceFormatInvalid("Price must be numeric", f"got {type(value).__name__}: {value!r}")
    price = float(value)
    if not math.isfinite(price) or price < 0:
        raise PriceFormatInvalid("Price must be a finite non-negative number", repr(value))
    return price


def _stop_below(price: float, distance_pct: float) -> float:
    return price * (1 - distance_pct / 100)


def evaluate_trailing_stop(position: Any, current_price: float) -> ExitDecision:
    """
    Advance the trailing stop state machine by one price observation.

    Args:
        position: Position (or any object with the same attributes)
        current_price: Latest price in SOL per token

    Returns:
        ExitDecision; ``updates`` always contains ``current_price``
    """
    decision = ExitDecision(updates={"current_price": current_price})

    activation_pct = position.trailing_stop_activation_pct
    distance_pct = position.trailing_stop_distance_pct
    if activation_pct is None or distance_pct is None:
        decision.message = "Trailing stop not configured"
        return decision

    entry_price = position.entry_price
    if not entry_price or entry_price <= 0:
        decision.message = "Invalid entry price"
        return decision

    if not position.trailing_stop_activated:
        activation_price = entry_price * (1 + activation_pct / 100)
        if current_price >= activation_price:
            decision.updates.update(
                trailing_stop_activated=True,
                highest_price=current_price,
                trailing_stop_price=_stop_below(current_price, distance_pct),
            )
            decision.message = (
                f"Trailing stop armed at {current_price:.9f} "
                f"(activation {activation_price:.9f}), stop {decision.updates['trailing_stop_price']:.9f}"
            )
        else:
            decision.message = f"Price {current_price:.9f} below activation {activation_price:.9f}"
        return decision

    # Armed
    highest = position.highest_price or entry_price
    stop_price = position.trailing_stop_price
    if stop_price is None:
        stop_price = _stop_below(highest, distance_pct)
        decision.updates["trailing_stop_price"] = stop_price

    if current_price > highest:
        highest = current_price
        stop_price = max(stop_price, _stop_below(highest, distance_pct))
        decision.updates.update(highest_price=highest, trailing_stop_price=stop_price)

    if current_price <= stop_price:
        decision.should_close = True
        decision.exit_reason = EXIT_TRAILING_STOP
        decision.message = (
            f"Trailing stop triggered: {current_price:.9f} <= stop {stop_price:.9f} (peak {highest:.9f})"
        )
    else:
        decision.message = f"Trailing stop at {stop_price:.9f}, peak {highest:.9f}, current {current_price:.9f}"
    return decision


def evaluate_fixed_exit(position: Any, current_price: float) -> ExitDecision:
    """
    Check the fixed stop-loss and take-profit thresholds (percent of entry).

    Stop-loss is checked first.
    """
    decision = ExitDecision(updates={"current_price": current_price})
    entry_price = position.entry_price
    if not entry_price or entry_price <= 0:
        decision.message = "Invalid entry price"
        return decision

    if position.stop_loss_pct is not None:
        stop_price = entry_price * (1 - position.stop_loss_pct / 100)
        if current_price <= stop_price:
            decision.should_close = True
            decision.exit_reason = EXIT_STOP_LOSS
            decision.message = f"Stop loss triggered: {current_price:.9f} <= {stop_price:.9f}"
            return decision

    if position.take_profit_pct is not None:
        target = entry_price * (1 + position.take_profit_pct / 100)
        if current_price >= target:
            decision.should_close = True
            decision.exit_reason = EXIT_TAKE_PROFIT
            decision.message = f"Take profit triggered: {current_price:.9f} >= {target:.9f}"
            return decision

    decision.message = "No fixed exit triggered"
    return decision


def evaluate_exit_conditions(position: Any, current_price: float) -> ExitDecision:
    """
    Combined exit policy for one price tick.

    Order:
    1. Fixed stop-loss
    2. Trailing stop (its field updates are always kept)
    3. Fixed take-profit, skipped while the trailing stop is armed so the
       trailing stop manages the exit once profits run
    """
    trailing = evaluate_trailing_stop(position, current_price)
    fixed = evaluate_fixed_exit(position, current_price)

    if fixed.should_close and fixed.exit_reason == EXIT_STOP_LOSS:
        return ExitDecision(trailing.updates, True, EXIT_STOP_LOSS, fixed.message)

    if trailing.should_close:
        return trailing

    armed = position.trailing_stop_activated or trailing.updates.get("trailing_stop_activated", False)
    if fixed.should_close and not armed:
        return ExitDecision(trailing.updates, True, fixed.exit_reason, fixed.message)

    return trailing
