from __future__ import annotations

from decimal import Decimal
from typing import Protocol

from src.domain.models import InstrumentSpecification, OrderResult, Quote


class TradingSession(Protocol):
    async def connect(self) -> None: ...

    async def get_quote(self, instrument: str) -> Quote: ...

    async def get_instrument_specification(self, instrument: str) -> InstrumentSpecification: ...

    async def submit_market_order(
        self,
        instrument: str,
        side: str,
        size: Decimal,
        stop_loss: Decimal,
        take_profit: Decimal,
        tag: str,
    ) -> OrderResult: ...

    def is_connected(self) -> bool: ...

    def close(self) -> None: ...
