from __future__ import annotations

import itertools
from datetime import datetime
from decimal import Decimal

import pytest

from src.domain.errors import GatewayConnectionError, OrderError, QuoteUnavailable, SpecificationUnavailable
from src.domain.models import InstrumentSpecification, OrderResult, Quote
from src.utils.event_log import EventLog


class FakeSession:
    """In-memory TradingSession: scripted quotes, scripted failures, every call recorded."""

    def __init__(
        self,
        quotes: dict[str, Quote] | None = None,
        point_size: Decimal = Decimal("0.01"),
        connected: bool = True,
    ) -> None:
        self.quotes = quotes or {
            "XAUUSD": Quote(bid=Decimal("2000.00"), ask=Decimal("2000.05")),
            "EURUSD": Quote(bid=Decimal("1.08000"), ask=Decimal("1.08001")),
        }
        self.point_size = point_size
        self.connected = connected
        self.connect_error: Exception | None = None
        # instrument -> number of leading get_quote calls that fail
        self.quote_failures: dict[str, int] = {}
        self.quote_error: type[Exception] = QuoteUnavailable
        # 1-based indices of submit_market_order calls that fail
        self.order_failures: set[int] = set()
        self.calls: list[tuple[str, str]] = []
        self.orders: list[dict] = []
        self.closed = False
        self._order_calls = 0
        self._ids = itertools.count(1001)

    async def connect(self) -> None:
        self.calls.append(("connect", ""))
        if self.connect_error is not None:
            raise self.connect_error
        self.connected = True

    def is_connected(self) -> bool:
        return self.connected

    def close(self) -> None:
        self.closed = True
        self.connected = False

    async def get_quote(self, instrument: str) -> Quote:
        self.calls.append(("quote", instrument))
        remaining = self.quote_failures.get(instrument, 0)
        if remaining:
            self.quote_failures[instrument] = remaining - 1
            raise self.quote_error(f"price feed down for {instrument}")
        if instrument not in self.quotes:
            raise QuoteUnavailable(f"Unknown instrument: {instrument!r}")
        return self.quotes[instrument]

    async def get_instrument_specification(self, instrument: str) -> InstrumentSpecification:
        self.calls.append(("spec", instrument))
        if instrument not in self.quotes:
            raise SpecificationUnavailable(f"Unknown instrument: {instrument!r}")
        return InstrumentSpecification(point_size=self.point_size)

    async def submit_market_order(self, instrument, side, size, stop_loss, take_profit, tag) -> OrderResult:
        self.calls.append(("order", instrument))
        self._order_calls += 1
        if self._order_calls in self.order_failures:
            raise OrderError(f"order rejected ({self._order_calls})")
        result = OrderResult(order_id=str(next(self._ids)))
        self.orders.append(
            {
                "instrument": instrument,
                "side": side,
                "size": size,
                "stop_loss": stop_loss,
                "take_profit": take_profit,
                "tag": tag,
                "order_id": result.order_id,
            }
        )
        return result


class RecordingSleep:
    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def session() -> FakeSession:
    return FakeSession()


@pytest.fixture
def make_session():
    return FakeSession


@pytest.fixture
def sleeps() -> RecordingSleep:
    return RecordingSleep()


@pytest.fixture
def events() -> EventLog:
    return EventLog(clock=lambda: datetime(2024, 1, 2, 9, 30, 15))


@pytest.fixture
def refused() -> Exception:
    return GatewayConnectionError("IBKR connection refused at 127.0.0.1:7497 - is TWS/Gateway running?")
