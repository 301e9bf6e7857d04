from __future__ import annotations

import asyncio
import logging
from typing import Any

from src.domain.models import CampaignReport, RiskSettings
from src.ports.broker import TradingSession
from src.trader.runner import run_campaign
from src.utils.event_log import EventLog
from src.utils.settings import apply_settings_update

logger = logging.getLogger(__name__)


class TradingDesk:
    """
    Owns what the dashboard manipulates: the session handle, the active settings,
    the event log and the trading toggle.

    Switching trading off only flips the flag; a campaign that already started keeps
    running until every instrument is done.
    """

    def __init__(
        self,
        session: TradingSession,
        settings: RiskSettings | None = None,
        events: EventLog | None = None,
        **campaign_kwargs: Any,
    ) -> None:
        self.session = session
        self.settings = settings or RiskSettings()
        self.events = events or EventLog()
        self.is_trading = False
        self.last_report: CampaignReport | None = None
        self._campaign_kwargs = campaign_kwargs
        # Campaigns still in flight; toggling off never cancels one, so several can overlap.
        self._tasks: set[asyncio.Task[CampaignReport | None]] = set()

    @property
    def is_running(self) -> bool:
        return any(not t.done() for t in self._tasks)

    def is_connected(self) -> bool:
        try:
            return bool(self.session.is_connected())
        except Exception:
            return False

    async def connect(self) -> bool:
        self.events.info("Connecting to broker...", symbol="Broker", step="Connect")
        try:
            await self.session.connect()
        except Exception as e:
            self.events.error(f"Error connecting to broker: {e}", symbol="Broker", step="Connect")
            logger.debug("Broker connection failed", exc_info=True)
            return False
        self.events.info("Connected to broker successfully", symbol="Broker", step="Connect")
        return True

    def toggle(self) -> bool:
        """Flip the trading flag. Turning it on starts exactly one campaign. Returns the new flag."""
        if not self.is_trading:
            self.is_trading = True
            self.events.info("Trading started...", step="Toggle")
            task = asyncio.get_running_loop().create_task(self._run(self.settings))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            self.is_trading = False
            self.events.info("Trading stopped.", step="Toggle")
        return self.is_trading

    async def wait(self) -> CampaignReport | None:
        """Wait for every in-flight campaign and return the most recent report."""
        while self._tasks:
            await asyncio.gather(*self._tasks)
        return self.last_report

    async def _run(self, settings: RiskSettings) -> CampaignReport | None:
        try:
            report = await run_campaign(self.session, settings, self.events, **self._campaign_kwargs)
        except Exception as e:
            self.events.error(f"Campaign aborted: {e}", step="Campaign")
            logger.exception("Campaign aborted")
            return None
        self.last_report = report
        return report

    def update_settings(self, patch: dict[str, Any]) -> RiskSettings:
        """Apply a partial settings update; takes effect on the next campaign."""
        self.settings = apply_settings_update(self.settings, patch)
        s = self.settings
        self.events.info(
            f"Settings saved: Risk {s.risk_per_trade}%, Stop Loss {s.stop_loss}%, TP Multiplier {s.take_profit_multiplier}",
            step="Settings",
        )
        return self.settings

    def close(self) -> None:
        try:
            self.session.close()
        except Exception as e:
            logger.warning(f"Failed to close broker session: {e}")
