from __future__ import annotations

import logging
import os
import threading
from copy import deepcopy
from pathlib import Path
from typing import Any

import yaml

from src.utils.settings import validate_settings

logger = logging.getLogger(__name__)

_cache_lock = threading.Lock()
_cached: dict[str, Any] | None = None
_cached_path: str | None = None


def _project_root() -> Path:
    # src/utils/config_loader.py -> src/utils -> src -> project root
    return Path(__file__).resolve().parents[2]


def default_config_path() -> Path:
    """`BATCHTRADER_CONFIG` if set, else `config/config.yaml` in the project root."""
    override = (os.environ.get("BATCHTRADER_CONFIG") or "").strip()
    if override:
        return Path(override)
    return _project_root() / "config" / "config.yaml"


def _apply_env_overrides(cfg: dict[str, Any]) -> None:
    """
    Override selected YAML settings with environment variables.

    Only connection details and the instrument list can be overridden this way.
    """
    broker = cfg.setdefault("broker", {})
    if os.getenv("BATCHTRADER_BROKER_HOST"):
        broker["host"] = os.environ["BATCHTRADER_BROKER_HOST"]
    if os.getenv("BATCHTRADER_BROKER_PORT"):
        broker["port"] = int(os.environ["BATCHTRADER_BROKER_PORT"])
    if os.getenv("BATCHTRADER_BROKER_CLIENT_ID"):
        broker["client_id"] = int(os.environ["BATCHTRADER_BROKER_CLIENT_ID"])

    trading = cfg.setdefault("trading", {})
    if os.getenv("BATCHTRADER_TRADING_PAIRS"):
        trading["trading_pairs"] = os.environ["BATCHTRADER_TRADING_PAIRS"]


def validate_config(cfg: dict[str, Any]) -> None:
    """
    Fail fast if the configuration is missing required sections.
    Keep this minimal and pragmatic; avoid over-engineering.
    """
    required_top = ["broker", "trading"]
    missing = [k for k in required_top if k not in cfg]
    if missing:
        raise ValueError(f"Missing required config sections: {', '.join(missing)}")

    broker = cfg.get("broker") or {}
    for k in ["host", "port", "client_id"]:
        if k not in broker:
            raise ValueError(f"Missing broker.{k} in config")

    validate_settings(cfg.get("trading") or {})


def load_config(config_path: str | Path | None = None, *, force_reload: bool = False) -> dict[str, Any]:
    """
    Load the YAML config once and reuse it across the process.

    - Reads `config/config.yaml` by default.
    - Applies environment overrides for a small set of operational settings.
    - Returns a deep copy so callers can safely mutate local copies.
    """
    global _cached, _cached_path

    path = Path(config_path) if config_path else default_config_path()
    path_str = str(path.resolve())

    with _cache_lock:
        if not force_reload and _cached is not None and _cached_path == path_str:
            return deepcopy(_cached)

        if not path.exists():
            raise FileNotFoundError(f"Config file not found: {path}")

        with path.open("r", encoding="utf-8") as f:
            cfg = yaml.safe_load(f) or {}

        if not isinstance(cfg, dict):
            raise ValueError(f"Config must be a YAML mapping (dict); got {type(cfg).__name__}")

        _apply_env_overrides(cfg)
        validate_config(cfg)

        _cached = cfg
        _cached_path = path_str
        logger.info("Loaded config from %s", path_str)
        return deepcopy(cfg)
