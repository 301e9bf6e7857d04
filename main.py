"""Run one trading campaign from the command line and exit.

Usage: python main.py [path/to/config.yaml]

Connects to TWS / IB Gateway, trades every instrument in `trading.trading_pairs`
once and logs a per-instrument summary. The dashboard flow (toggle, settings,
live event log) is served by `api_server.py` instead.
"""

from __future__ import annotations

import sys
from pathlib import Path

from dotenv import load_dotenv


def _load_local_secrets() -> None:
    """Pick up BATCHTRADER_* broker overrides from config/secrets.env, if present."""
    env_path = Path(__file__).resolve().parent / "config" / "secrets.env"
    if env_path.exists():
        load_dotenv(env_path)


def main() -> None:
    _load_local_secrets()

    from src.trader.runner import main as run_campaign_once

    run_campaign_once(sys.argv[1] if len(sys.argv) > 1 else None)


if __name__ == "__main__":
    main()
