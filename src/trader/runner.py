import asyncio
import logging
from pathlib import Path

from src.domain.errors import ConfigurationError
from src.domain.models import CampaignReport, InstrumentReport, RiskSettings
from src.ports.broker import TradingSession
from src.trader.retry import MAX_ATTEMPTS, RETRY_BACKOFF_SECONDS, run_with_retry
from src.trading.executor import BATCH_SIZE, INTER_ORDER_DELAY_SECONDS, Sleep
from src.utils.config_loader import load_config
from src.utils.event_log import EventLog
from src.utils.settings import settings_from_config

INSTRUMENT_DELIMITER = ","
# Pause between instruments (seconds)
INSTRUMENT_PACING_SECONDS = 1.0
# Pause after each account verification message (seconds)
PREAMBLE_DELAY_SECONDS = 2.0

logger = logging.getLogger(__name__)


def parse_instruments(raw: str, delimiter: str = INSTRUMENT_DELIMITER) -> list[str]:
    """
    Split the instrument list on `delimiter` and strip whitespace around each entry.

    Order and duplicates are preserved; empty entries are kept as "".
    """
    return [part.strip() for part in str(raw).split(delimiter)]


def check_instrument(entry: str) -> str:
    """Reject entries a broker could never resolve (embedded whitespace, control chars)."""
    if any(ch.isspace() for ch in entry):
        raise ConfigurationError(f"Instrument entry contains whitespace: {entry!r}")
    if any(not ch.isprintable() for ch in entry):
        raise ConfigurationError(f"Instrument entry contains control characters: {entry!r}")
    return entry


async def run_campaign(
    session: TradingSession,
    settings: RiskSettings,
    events: EventLog,
    *,
    delimiter: str = INSTRUMENT_DELIMITER,
    max_attempts: int = MAX_ATTEMPTS,
    backoff: float = RETRY_BACKOFF_SECONDS,
    batch_size: int = BATCH_SIZE,
    inter_order_delay: float = INTER_ORDER_DELAY_SECONDS,
    pacing: float = INSTRUMENT_PACING_SECONDS,
    preamble_delay: float = PREAMBLE_DELAY_SECONDS,
    sleep: Sleep = asyncio.sleep,
) -> CampaignReport:
    """
    Trade every configured instrument, one after another.

    Each instrument runs to success or retry exhaustion before the next one starts,
    followed by a fixed pacing delay. A failed instrument never stops the campaign.
    """
    events.info("Verifying account....", step="Campaign")
    await sleep(preamble_delay)
    events.info("Account details successfully submitted.....", step="Campaign")
    await sleep(preamble_delay)
    events.info("Fetching trading symbols...", step="Campaign")

    entries = parse_instruments(settings.trading_pairs, delimiter)
    events.info(f"Trading pairs: {', '.join(entries)}", step="Campaign")

    instruments: list[str] = []
    skipped: list[str] = []
    reports: list[InstrumentReport] = []

    for entry in entries:
        try:
            instrument = check_instrument(entry)
        except ConfigurationError as e:
            events.error(f"Skipping instrument entry: {e}", symbol=entry, step="Campaign")
            skipped.append(entry)
            continue

        instruments.append(instrument)
        events.info(f"Analyzing market direction for {instrument}", symbol=instrument, step="Campaign")
        report = await run_with_retry(
            session,
            instrument,
            settings,
            events,
            max_attempts=max_attempts,
            backoff=backoff,
            batch_size=batch_size,
            inter_order_delay=inter_order_delay,
            sleep=sleep,
        )
        reports.append(report)
        logger.info("%s finished: %s after %s attempt(s)", instrument, report.outcome.value, report.attempts)
        await sleep(pacing)

    return CampaignReport(instruments=instruments, reports=reports, skipped=skipped)


async def _run_once(config_path: str | Path | None = None) -> CampaignReport | None:
    # Imported here so unit tests can exercise the runner without ib_insync installed.
    from src.broker.connection import IBSession

    config = load_config(config_path)
    settings = settings_from_config(config)
    events = EventLog()

    session = IBSession(config=config)
    events.info("Connecting to broker...", symbol="IBKR", step="Connect")
    try:
        await session.connect()
    except Exception as e:
        events.error(f"Error connecting to broker: {e}", symbol="IBKR", step="Connect")
        return None
    events.info("Connected to broker successfully", symbol="IBKR", step="Connect")

    try:
        return await run_campaign(session, settings, events)
    finally:
        session.close()


def main(config_path: str | Path | None = None) -> None:
    # Configure logging (idempotent; safe if configured elsewhere).
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )

    report = asyncio.run(_run_once(config_path))
    if report is None:
        logger.error("Campaign did not start: broker connection failed.")
        return

    succeeded = sum(1 for r in report.reports if r.succeeded)
    logger.info(
        "Campaign complete: %s/%s instrument(s) succeeded, %s skipped",
        succeeded,
        len(report.reports),
        len(report.skipped),
    )
