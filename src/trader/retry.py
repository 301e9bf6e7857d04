from __future__ import annotations

import asyncio
import logging

from src.domain.errors import NotConnected, SubmissionFailed
from src.domain.models import InstrumentOutcome, InstrumentReport, OrderResult, RiskSettings
from src.ports.broker import TradingSession
from src.trading.executor import BATCH_SIZE, INTER_ORDER_DELAY_SECONDS, Sleep, submit_batch
from src.trading.order_plan import compute_plan
from src.trading.signal import evaluate_direction
from src.utils.event_log import EventLog

logger = logging.getLogger(__name__)

MAX_ATTEMPTS = 4
RETRY_BACKOFF_SECONDS = 1.0


async def trade_instrument(
    session: TradingSession,
    instrument: str,
    settings: RiskSettings,
    events: EventLog,
    *,
    batch_size: int = BATCH_SIZE,
    inter_order_delay: float = INTER_ORDER_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> list[OrderResult]:
    """One attempt: signal -> plan -> batch."""
    if not session.is_connected():
        raise NotConnected(f"Not connected to broker. Cannot place trade for {instrument}.")

    direction, quote = await evaluate_direction(session, instrument, events)
    plan = compute_plan(direction, quote, settings)
    return await submit_batch(
        session,
        instrument,
        plan,
        events,
        batch_size=batch_size,
        inter_order_delay=inter_order_delay,
        sleep=sleep,
    )


async def run_with_retry(
    session: TradingSession,
    instrument: str,
    settings: RiskSettings,
    events: EventLog,
    *,
    max_attempts: int = MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF_SECONDS,
    batch_size: int = BATCH_SIZE,
    inter_order_delay: float = INTER_ORDER_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> InstrumentReport:
    """
    Trade one instrument with a bounded number of attempts.

    Every failure is logged. While attempts remain, wait a fixed `backoff` and start again
    from signal evaluation. A disconnected session is not retried. Never raises.
    """
    attempt = 0
    while True:
        try:
            orders = await trade_instrument(
                session,
                instrument,
                settings,
                events,
                batch_size=batch_size,
                inter_order_delay=inter_order_delay,
                sleep=sleep,
            )
            return InstrumentReport(instrument, InstrumentOutcome.SUCCEEDED, attempts=attempt + 1, orders=orders)
        except NotConnected as e:
            events.error(str(e), symbol=instrument, step="Retry")
            return InstrumentReport(instrument, InstrumentOutcome.EXHAUSTED, attempts=attempt + 1)
        except Exception as e:
            events.error(f"Error placing trades for {instrument}: {e}", symbol=instrument, step="Retry")
            if isinstance(e, SubmissionFailed) and e.partial_results:
                logger.warning(
                    "%s: %s order(s) from the aborted batch remain open",
                    instrument,
                    len(e.partial_results),
                )

        if attempt >= max_attempts - 1:
            events.error(
                f"Failed to place trades for {instrument} after {max_attempts} attempts",
                symbol=instrument,
                step="Retry",
            )
            return InstrumentReport(instrument, InstrumentOutcome.EXHAUSTED, attempts=attempt + 1)

        attempt += 1
        events.info(f"Retrying trades for {instrument} (Attempt {attempt})", symbol=instrument, step="Retry")
        await sleep(backoff)
