from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from src.domain.errors import NotConnected, SubmissionFailed
from src.domain.models import OrderPlan, OrderResult
from src.ports.broker import TradingSession
from src.utils.event_log import EventLog

logger = logging.getLogger(__name__)

# Comment attached to every order so campaign fills can be told apart in the broker UI.
ORDER_TAG = "C.O.N-IBOT-MOBILE"
BATCH_SIZE = 20
INTER_ORDER_DELAY_SECONDS = 0.2

Sleep = Callable[[float], Awaitable[None]]


async def submit_batch(
    session: TradingSession,
    instrument: str,
    plan: OrderPlan,
    events: EventLog,
    *,
    batch_size: int = BATCH_SIZE,
    inter_order_delay: float = INTER_ORDER_DELAY_SECONDS,
    tag: str = ORDER_TAG,
    sleep: Sleep = asyncio.sleep,
) -> list[OrderResult]:
    """
    Place `batch_size` identical market orders for one instrument.

    Orders go out one at a time with `inter_order_delay` seconds between submissions so
    the broker is not flooded. The first failing order aborts the batch; orders already
    placed are reported through SubmissionFailed.partial_results and left open.
    """
    if not session.is_connected():
        raise NotConnected(f"Not connected to broker. Cannot place trade for {instrument}.")

    side = plan.direction.side
    events.info(f"Placing {batch_size} {side} orders for {instrument}", symbol=instrument, step="Submit")

    results: list[OrderResult] = []
    for i in range(batch_size):
        if i > 0 and inter_order_delay > 0:
            await sleep(inter_order_delay)
        try:
            result = await session.submit_market_order(
                instrument,
                side,
                plan.size,
                plan.stop_loss,
                plan.take_profit,
                tag,
            )
        except Exception as e:
            logger.debug("Order %s/%s for %s failed: %s", i + 1, batch_size, instrument, e)
            raise SubmissionFailed(
                f"{side} order {i + 1} of {batch_size} failed for {instrument}: {e}",
                partial_results=results,
            ) from e
        results.append(result)
        events.info(
            f"{side} order {i + 1} placed for {instrument}. Order ID: {result.order_id}",
            symbol=instrument,
            step="Submit",
        )

    events.info(f"All {batch_size} trades placed successfully for {instrument}", symbol=instrument, step="Submit")
    events.info(f"Stop Loss: {plan.stop_loss:.5f}", symbol=instrument, step="Submit")
    events.info(f"Take Profit: {plan.take_profit:.5f}", symbol=instrument, step="Submit")
    return results
