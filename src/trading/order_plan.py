from __future__ import annotations

from decimal import Decimal

from src.domain.models import Direction, OrderPlan, Quote, RiskSettings

_HUNDRED = Decimal("100")
_ONE = Decimal("1")


def compute_plan(direction: Direction, quote: Quote, settings: RiskSettings) -> OrderPlan:
    """
    Derive stop-loss / take-profit levels for one batch.

    Longs are priced off the ask, shorts off the bid. The take-profit distance is the
    stop distance scaled by `take_profit_multiplier`. Size is `trade_size` as configured;
    `risk_per_trade` does not influence it.
    """
    sl_frac = Decimal(settings.stop_loss) / _HUNDRED
    tp_frac = sl_frac * Decimal(settings.take_profit_multiplier)

    if direction is Direction.LONG:
        stop_loss = quote.ask * (_ONE - sl_frac)
        take_profit = quote.ask * (_ONE + tp_frac)
    else:
        stop_loss = quote.bid * (_ONE + sl_frac)
        take_profit = quote.bid * (_ONE - tp_frac)

    return OrderPlan(
        direction=direction,
        stop_loss=stop_loss,
        take_profit=take_profit,
        size=Decimal(settings.trade_size),
    )
