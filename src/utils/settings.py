from __future__ import annotations

from dataclasses import replace
from decimal import Decimal, InvalidOperation
from typing import Any

from src.domain.errors import ConfigurationError
from src.domain.models import RiskSettings


def default_settings() -> dict[str, Any]:
    return RiskSettings().to_dict()


def _is_number(v: Any) -> bool:
    return isinstance(v, (int, float, Decimal)) and not isinstance(v, bool)


def _validate_bool(v: Any, *, name: str) -> None:
    if not isinstance(v, bool):
        raise ConfigurationError(f"{name} must be boolean")


def _validate_number(v: Any, *, name: str) -> None:
    if not _is_number(v):
        raise ConfigurationError(f"{name} must be a number")
    if not Decimal(str(v)).is_finite():
        raise ConfigurationError(f"{name} must be a finite number")


def _validate_positive_number(v: Any, *, name: str) -> None:
    _validate_number(v, name=name)
    if Decimal(str(v)) <= 0:
        raise ConfigurationError(f"{name} must be > 0")


def _validate_percent(v: Any, *, name: str) -> None:
    _validate_number(v, name=name)
    vv = Decimal(str(v))
    if vv < 0 or vv > 100:
        raise ConfigurationError(f"{name} must be between 0 and 100")


def _validate_pairs(v: Any) -> None:
    if not isinstance(v, str):
        raise ConfigurationError("trading_pairs must be a string")
    # Keep this bounded; each entry becomes a full batch of orders.
    if len(v) > 2000:
        raise ConfigurationError("trading_pairs is too long (max 2000 characters)")


_SETTING_VALIDATORS: dict[str, Any] = {
    "risk_per_trade": lambda v: _validate_percent(v, name="risk_per_trade"),
    "stop_loss": lambda v: _validate_percent(v, name="stop_loss"),
    "take_profit_multiplier": lambda v: _validate_positive_number(v, name="take_profit_multiplier"),
    "trade_size": lambda v: _validate_positive_number(v, name="trade_size"),
    "trading_pairs": _validate_pairs,
    "copy_all_trades": lambda v: _validate_bool(v, name="copy_all_trades"),
    "enable_notifications": lambda v: _validate_bool(v, name="enable_notifications"),
}

_DECIMAL_KEYS = ("risk_per_trade", "stop_loss", "take_profit_multiplier", "trade_size")


def validate_settings(doc: dict[str, Any]) -> None:
    if not isinstance(doc, dict):
        raise ConfigurationError(f"trading settings must be an object; got {type(doc).__name__}")
    # Disallow unknown keys; the settings form only knows these options.
    for key, value in doc.items():
        validator = _SETTING_VALIDATORS.get(key)
        if validator is None:
            raise ConfigurationError(f"Unsupported trading setting: {key}")
        validator(value)


def _to_decimal(v: Any, *, name: str) -> Decimal:
    try:
        return Decimal(str(v))
    except InvalidOperation as e:
        raise ConfigurationError(f"{name} must be a number") from e


def _coerce(doc: dict[str, Any]) -> dict[str, Any]:
    out = dict(doc)
    for key in _DECIMAL_KEYS:
        if key in out:
            out[key] = _to_decimal(out[key], name=key)
    return out


def settings_from_dict(doc: dict[str, Any] | None) -> RiskSettings:
    """Build RiskSettings from a (possibly partial) trading record; missing keys take defaults."""
    doc = doc or {}
    validate_settings(doc)
    return RiskSettings(**_coerce(doc))


def settings_from_config(cfg: dict[str, Any]) -> RiskSettings:
    return settings_from_dict(cfg.get("trading") or {})


def apply_settings_update(current: RiskSettings, patch: dict[str, Any]) -> RiskSettings:
    validate_settings(patch)
    return replace(current, **_coerce(patch))
