from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any


class Direction(str, Enum):
    LONG = "LONG"
    SHORT = "SHORT"

    @property
    def side(self) -> str:
        return "BUY" if self is Direction.LONG else "SELL"

    @property
    def trend(self) -> str:
        return "Uptrend" if self is Direction.LONG else "Downtrend"


class InstrumentOutcome(str, Enum):
    SUCCEEDED = "SUCCEEDED"
    EXHAUSTED = "EXHAUSTED"


@dataclass(frozen=True)
class RiskSettings:
    """
    Flat trading record supplied by the settings form.

    `risk_per_trade` is carried for display only; position size is always `trade_size`.
    `copy_all_trades` and `enable_notifications` are passed through untouched.
    """

    risk_per_trade: Decimal = Decimal("2")
    stop_loss: Decimal = Decimal("10")
    take_profit_multiplier: Decimal = Decimal("2")
    trade_size: Decimal = Decimal("0.01")
    trading_pairs: str = "XAUUSD"
    copy_all_trades: bool = True
    enable_notifications: bool = True

    def to_dict(self) -> dict[str, Any]:
        return {
            "risk_per_trade": float(self.risk_per_trade),
            "stop_loss": float(self.stop_loss),
            "take_profit_multiplier": float(self.take_profit_multiplier),
            "trade_size": float(self.trade_size),
            "trading_pairs": self.trading_pairs,
            "copy_all_trades": bool(self.copy_all_trades),
            "enable_notifications": bool(self.enable_notifications),
        }


@dataclass(frozen=True)
class Quote:
    bid: Decimal
    ask: Decimal


@dataclass(frozen=True)
class InstrumentSpecification:
    point_size: Decimal


@dataclass(frozen=True)
class OrderPlan:
    direction: Direction
    stop_loss: Decimal
    take_profit: Decimal
    size: Decimal

    def to_dict(self) -> dict[str, Any]:
        return {
            "direction": self.direction.value,
            "stop_loss": float(self.stop_loss),
            "take_profit": float(self.take_profit),
            "size": float(self.size),
        }


@dataclass(frozen=True)
class OrderResult:
    order_id: str


@dataclass(frozen=True)
class LogEvent:
    id: int
    timestamp: datetime
    message: str
    level: str = "INFO"
    symbol: str | None = None
    step: str | None = None

    def render(self) -> str:
        return f"[{self.timestamp.strftime('%H:%M:%S')}] {self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": int(self.id),
            "timestamp": self.timestamp.isoformat(),
            "level": self.level,
            "symbol": self.symbol,
            "step": self.step,
            "message": self.message,
        }


@dataclass(frozen=True)
class InstrumentReport:
    instrument: str
    outcome: InstrumentOutcome
    attempts: int
    orders: list[OrderResult] = field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        return self.outcome is InstrumentOutcome.SUCCEEDED

    def to_dict(self) -> dict[str, Any]:
        return {
            "instrument": self.instrument,
            "outcome": self.outcome.value,
            "attempts": int(self.attempts),
            "order_ids": [o.order_id for o in self.orders],
        }


@dataclass(frozen=True)
class CampaignReport:
    instruments: list[str]
    reports: list[InstrumentReport]
    skipped: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "instruments": list(self.instruments),
            "reports": [r.to_dict() for r in self.reports],
            "skipped": list(self.skipped),
        }
