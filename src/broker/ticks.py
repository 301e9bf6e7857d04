from __future__ import annotations

from decimal import ROUND_CEILING, ROUND_FLOOR, Decimal


def round_price_down_to_tick(price: Decimal, min_tick: Decimal) -> Decimal:
    """Round price DOWN to the nearest valid tick."""
    p = Decimal(price)
    t = Decimal(min_tick)
    if t <= 0:
        return p
    steps = (p / t).to_integral_value(rounding=ROUND_FLOOR)
    return steps * t


def round_price_up_to_tick(price: Decimal, min_tick: Decimal) -> Decimal:
    """Round price UP to the nearest valid tick."""
    p = Decimal(price)
    t = Decimal(min_tick)
    if t <= 0:
        return p
    steps = (p / t).to_integral_value(rounding=ROUND_CEILING)
    return steps * t


def round_exits_to_tick(side: str, stop_loss: Decimal, take_profit: Decimal, min_tick: Decimal) -> tuple[Decimal, Decimal]:
    """
    Snap bracket exit prices onto the instrument's tick grid.

    Both exits move away from the entry: for a BUY the stop rounds down and the target
    rounds up, for a SELL the other way round.
    """
    if side == "BUY":
        return round_price_down_to_tick(stop_loss, min_tick), round_price_up_to_tick(take_profit, min_tick)
    return round_price_up_to_tick(stop_loss, min_tick), round_price_down_to_tick(take_profit, min_tick)


def reverse_side(side: str) -> str:
    return "SELL" if side == "BUY" else "BUY"


# Contract units per lot, by IB security type.
LOT_UNITS: dict[str, Decimal] = {
    "CASH": Decimal("100000"),
    "CMDTY": Decimal("100"),
    "STK": Decimal("1"),
}


def lots_to_quantity(size: Decimal, sec_type: str) -> Decimal:
    """Convert a size in lots to the order quantity IB expects for `sec_type`."""
    return Decimal(size) * LOT_UNITS.get(sec_type, Decimal("1"))
