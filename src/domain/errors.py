from __future__ import annotations

from src.domain.models import OrderResult


class TradingError(Exception):
    """Base class for failures raised while trading one instrument."""


class NotConnected(TradingError):
    """The broker session is not connected; the handle cannot be used."""


class QuoteUnavailable(TradingError):
    pass


class SpecificationUnavailable(TradingError):
    pass


class OrderError(TradingError):
    pass


class SubmissionFailed(TradingError):
    """
    Raised when an order inside a batch fails.

    Orders placed before the failure stay in `partial_results`; they are not cancelled.
    """

    def __init__(self, message: str, partial_results: list[OrderResult] | None = None) -> None:
        super().__init__(message)
        self.partial_results: list[OrderResult] = list(partial_results or [])


class GatewayConnectionError(Exception):
    """Raised when the broker session cannot be established."""


class ConfigurationError(ValueError):
    """Invalid trading settings or a malformed instrument entry."""
