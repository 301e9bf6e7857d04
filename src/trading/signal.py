from __future__ import annotations

from src.domain.models import Direction, InstrumentSpecification, Quote
from src.ports.broker import TradingSession
from src.utils.event_log import EventLog


def direction_from_spread(quote: Quote, spec: InstrumentSpecification) -> Direction:
    """Spread wider than two points reads as an uptrend; anything else is a downtrend."""
    spread = quote.ask - quote.bid
    if spread > spec.point_size * 2:
        return Direction.LONG
    return Direction.SHORT


async def evaluate_direction(session: TradingSession, instrument: str, events: EventLog) -> tuple[Direction, Quote]:
    """
    Fetch the latest quote and tick size for `instrument` and infer the trade direction.

    Returns the direction together with the quote it was derived from so the caller can
    price the order plan off the same snapshot.
    """
    quote = await session.get_quote(instrument)
    events.info(f"Fetched price for {instrument}: Bid {quote.bid}, Ask {quote.ask}", symbol=instrument, step="Signal")

    spec = await session.get_instrument_specification(instrument)
    direction = direction_from_spread(quote, spec)
    events.info(f"Market direction for {instrument}: {direction.trend}", symbol=instrument, step="Signal")
    return direction, quote
