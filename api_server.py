"""Serve the trading desk over HTTP for the dashboard.

One process owns one broker session (one IBKR client id), one event log and the
trading toggle, so the server refuses to start twice and runs a single worker.
Bind address: BATCHTRADER_API_HOST / BATCHTRADER_API_PORT (default 127.0.0.1:8000).
"""

import os
import sys
import uvicorn
import logging
import fcntl
from pathlib import Path
from dotenv import load_dotenv

# Desk events are mirrored to logging; keep a copy on disk next to the process.
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    handlers=[
        logging.StreamHandler(sys.stderr),
        logging.FileHandler("batch_trader_api.log", mode="a")
    ]
)
logger = logging.getLogger("api_server")

LOCK_FILE = Path(".batch_trader_api.lock")


def _load_broker_env() -> None:
    """Apply BATCHTRADER_* overrides from config/secrets.env before the desk reads its config."""
    env_path = Path(__file__).resolve().parent / "config" / "secrets.env"
    if env_path.exists():
        load_dotenv(env_path)
        logger.info("Loaded broker overrides from %s", env_path)


def main() -> None:
    _load_broker_env()

    host = os.environ.get("BATCHTRADER_API_HOST", "127.0.0.1")
    port = int(os.environ.get("BATCHTRADER_API_PORT", "8000"))

    try:
        lock_f = LOCK_FILE.open("w")
        fcntl.flock(lock_f.fileno(), fcntl.LOCK_EX | fcntl.LOCK_NB)
        lock_f.write(str(os.getpid()))
        lock_f.flush()
        # Held until exit.
    except OSError:
        logger.error("A desk server is already running (%s is locked). Exiting.", LOCK_FILE)
        sys.exit(1)

    try:
        logger.info("Starting trading desk API on %s:%s", host, port)
        uvicorn.run(
            "src.api.app:app",
            host=host,
            port=port,
            reload=False,
            log_level="info",
            workers=1  # the desk and its broker session are per-process
        )
    except Exception as e:
        logger.error(f"Desk server stopped with an error: {e}", exc_info=True)
        sys.exit(1)


if __name__ == "__main__":
    main()
