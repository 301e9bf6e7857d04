import asyncio
import logging
import math
from decimal import Decimal

from ib_insync import IB, Contract, Forex, LimitOrder, MarketOrder, Stock, StopOrder

from src.broker.ticks import lots_to_quantity, reverse_side, round_exits_to_tick
from src.domain.errors import (
    GatewayConnectionError,
    NotConnected,
    OrderError,
    QuoteUnavailable,
    SpecificationUnavailable,
    TradingError,
)
from src.domain.models import InstrumentSpecification, OrderResult, Quote

logger = logging.getLogger(__name__)

# Connection timeout in seconds
IBKR_CONNECT_TIMEOUT = 30
IBKR_REQUEST_TIMEOUT = 60

# Spot metals trade as CMDTY on IBKR; everything else 6-letter is treated as a currency pair.
_METAL_PREFIXES = ("XAU", "XAG", "XPT", "XPD")
_REJECTED_STATUSES = {"Cancelled", "ApiCancelled", "Inactive"}


def contract_for(symbol: str) -> Contract:
    sym = symbol.strip().upper()
    if len(sym) == 6 and sym.isalpha():
        if sym.startswith(_METAL_PREFIXES):
            return Contract(symbol=sym, secType="CMDTY", exchange="SMART", currency=sym[3:])
        return Forex(sym)
    return Stock(sym, "SMART", "USD")


def _price(value) -> Decimal | None:
    try:
        f = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(f) or f <= 0:
        return None
    return Decimal(str(f))


class IBSession:
    """
    TradingSession backed by TWS / IB Gateway through ib_insync.

    All calls are awaited on the caller's event loop; nothing here spawns threads.
    """

    def __init__(self, config: dict | None = None, config_path: str | None = None):
        if config is None:
            from src.utils.config_loader import load_config

            config = load_config(config_path=config_path)
        self.config = config

        broker = self.config.get("broker", {}) or {}
        self.host = str(broker.get("host", "127.0.0.1"))
        self.port = int(broker.get("port", 7497))
        self.client_id = int(broker.get("client_id", 10))
        self.connect_timeout = float(broker.get("connect_timeout", IBKR_CONNECT_TIMEOUT))

        self.ib = IB()
        # Bounds every request; a hung gateway call surfaces as an error instead of blocking forever.
        self.ib.RequestTimeout = float(broker.get("request_timeout", IBKR_REQUEST_TIMEOUT))

        self._contracts: dict[str, Contract] = {}
        self._min_tick_cache: dict[str, Decimal] = {}

    async def connect(self) -> None:
        """Connect to TWS / Gateway and switch to delayed market data."""
        logger.info(
            f"Connecting to IBKR at {self.host}:{self.port} (Client ID: {self.client_id}, timeout: {self.connect_timeout}s)"
        )
        try:
            await self.ib.connectAsync(
                self.host,
                self.port,
                clientId=self.client_id,
                timeout=self.connect_timeout,
                readonly=False,
            )
        except (TimeoutError, asyncio.TimeoutError) as e:
            raise GatewayConnectionError(f"IBKR connection timed out after {self.connect_timeout}s") from e
        except ConnectionRefusedError as e:
            raise GatewayConnectionError(
                f"IBKR connection refused at {self.host}:{self.port} - is TWS/Gateway running?"
            ) from e
        except Exception as e:
            raise GatewayConnectionError(f"Failed to connect to IBKR: {type(e).__name__}: {e}") from e

        # Type 3 (delayed) still returns quotes when the account has no real-time subscription.
        self.ib.reqMarketDataType(3)
        logger.info("Successfully connected to IBKR. Market data type set to DELAYED (3).")

    def is_connected(self) -> bool:
        return self.ib.isConnected()

    def close(self) -> None:
        if self.ib.isConnected():
            self.ib.disconnect()
            logger.info("Disconnected from IBKR.")

    def is_paper_trading(self) -> bool:
        return self.port in [7497, 4002]

    async def _qualified(self, symbol: str, error_cls: type[TradingError]) -> Contract:
        if not self.ib.isConnected():
            raise NotConnected(f"Not connected to broker. Cannot look up {symbol}.")
        if symbol in self._contracts:
            return self._contracts[symbol]
        try:
            qualified = await self.ib.qualifyContractsAsync(contract_for(symbol))
        except Exception as e:
            raise error_cls(f"Failed to resolve contract for {symbol!r}: {e}") from e
        if not qualified or not getattr(qualified[0], "conId", 0):
            raise error_cls(f"Unknown instrument: {symbol!r}")
        self._contracts[symbol] = qualified[0]
        return qualified[0]

    async def get_quote(self, instrument: str) -> Quote:
        contract = await self._qualified(instrument, QuoteUnavailable)
        try:
            tickers = await self.ib.reqTickersAsync(contract)
        except Exception as e:
            raise QuoteUnavailable(f"Failed to fetch price for {instrument}: {e}") from e
        if not tickers:
            raise QuoteUnavailable(f"No price returned for {instrument}")

        bid = _price(getattr(tickers[0], "bid", None))
        ask = _price(getattr(tickers[0], "ask", None))
        if bid is None or ask is None:
            raise QuoteUnavailable(f"No bid/ask available for {instrument}")
        return Quote(bid=bid, ask=ask)

    async def get_instrument_specification(self, instrument: str) -> InstrumentSpecification:
        if instrument in self._min_tick_cache:
            return InstrumentSpecification(point_size=self._min_tick_cache[instrument])

        contract = await self._qualified(instrument, SpecificationUnavailable)
        try:
            details = await self.ib.reqContractDetailsAsync(contract)
        except Exception as e:
            raise SpecificationUnavailable(f"Failed to fetch contract details for {instrument}: {e}") from e

        min_tick = _price(getattr(details[0], "minTick", None)) if details else None
        if min_tick is None:
            raise SpecificationUnavailable(f"No tick size available for {instrument}")
        self._min_tick_cache[instrument] = min_tick
        return InstrumentSpecification(point_size=min_tick)

    async def submit_market_order(
        self,
        instrument: str,
        side: str,
        size: Decimal,
        stop_loss: Decimal,
        take_profit: Decimal,
        tag: str,
    ) -> OrderResult:
        """
        Market entry with take-profit and stop-loss children in one OCA group.

        The parent is transmitted immediately and the exits are attached by parentId, so
        a rejected child can never leave the parent waiting for a manual "Transmit".
        """
        contract = await self._qualified(instrument, OrderError)
        quantity = float(lots_to_quantity(size, contract.secType))
        if quantity <= 0:
            raise OrderError(f"Invalid quantity {quantity} for {instrument}")

        tick = self._min_tick_cache.get(instrument)
        if tick:
            stop_loss, take_profit = round_exits_to_tick(side, stop_loss, take_profit, tick)

        exit_side = reverse_side(side)
        try:
            parent_id = int(self.ib.client.getReqId())
            parent = MarketOrder(side, quantity)
            parent.orderId = parent_id
            parent.orderRef = tag
            parent.transmit = True

            oca_group = f"OCA_{parent_id}"
            tp_order = LimitOrder(exit_side, quantity, float(take_profit))
            sl_order = StopOrder(exit_side, quantity, float(stop_loss))
            for child in (tp_order, sl_order):
                child.orderId = int(self.ib.client.getReqId())
                child.parentId = parent_id
                child.ocaGroup = oca_group
                child.ocaType = 1
                child.orderRef = tag
                child.transmit = True

            trade = self.ib.placeOrder(contract, parent)
            for child in (tp_order, sl_order):
                self.ib.placeOrder(contract, child)
        except Exception as e:
            raise OrderError(f"Failed to place {side} order for {instrument}: {e}") from e

        # Let the gateway acknowledge before reading the status.
        await asyncio.sleep(0)
        status = getattr(getattr(trade, "orderStatus", None), "status", "")
        if status in _REJECTED_STATUSES:
            raise OrderError(f"{side} order for {instrument} was rejected (status={status})")

        logger.info(f"Placed {side} (parent) for {quantity} of {instrument} (orderId={parent_id})")
        return OrderResult(order_id=str(parent_id))
