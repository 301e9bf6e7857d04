import asyncio
import os
from decimal import Decimal

import pytest

try:
    import ib_insync  # noqa: F401
except Exception:
    pytest.skip("ib_insync is not installed; skipping IBKR adapter tests.", allow_module_level=True)

from src.broker.connection import IBSession, contract_for
from src.domain.errors import NotConnected
from src.domain.models import RiskSettings
from src.trader.runner import run_campaign
from src.utils.event_log import EventLog

CONFIG = {
    "broker": {"host": "127.0.0.1", "port": 7497, "client_id": 999, "connect_timeout": 5, "request_timeout": 10},
    "trading": {},
}


def test_contract_resolution():
    assert contract_for("xauusd").secType == "CMDTY"
    assert contract_for("XAUUSD").currency == "USD"
    fx = contract_for("EURUSD")
    assert fx.secType == "CASH"
    assert (fx.symbol, fx.currency) == ("EUR", "USD")
    assert contract_for("AAPL").secType == "STK"


def test_unconnected_session_refuses_lookups():
    session = IBSession(config=CONFIG)
    assert session.is_connected() is False
    assert session.is_paper_trading()
    with pytest.raises(NotConnected):
        asyncio.run(session.get_quote("EURUSD"))


@pytest.mark.integration
def test_paper_campaign_places_orders():
    """Runs one small campaign against a paper account on TWS (port 7497)."""
    if os.environ.get("BATCHTRADER_RUN_PAPER_TRADES") != "1":
        pytest.skip("Set BATCHTRADER_RUN_PAPER_TRADES=1 to place real paper orders.")

    async def scenario():
        session = IBSession(config=CONFIG)
        await session.connect()
        try:
            events = EventLog()
            settings = RiskSettings(trading_pairs="EURUSD", stop_loss=Decimal("1"), trade_size=Decimal("0.01"))
            return await run_campaign(session, settings, events, batch_size=2), events
        finally:
            session.close()

    report, events = asyncio.run(scenario())
    assert report.reports[0].succeeded, events.messages()
    assert len(report.reports[0].orders) == 2
