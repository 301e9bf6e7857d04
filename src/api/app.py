from __future__ import annotations

import asyncio
import json
import logging
import os
import traceback
from typing import Any

from fastapi import FastAPI, HTTPException, Query, Request
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, StreamingResponse

from src.domain.errors import ConfigurationError
from src.trader.desk import TradingDesk
from src.utils.config_loader import load_config
from src.utils.event_log import EventLog
from src.utils.settings import settings_from_config

logger = logging.getLogger(__name__)

app = FastAPI(
    title="Batch Trader API",
    version="0.1.0",
)
app.state.desk = None


def _broker_disabled() -> bool:
    return str(os.environ.get("BATCHTRADER_DISABLE_BROKER", "")).strip() in {"1", "true", "TRUE", "yes", "YES"}


def _require_desk() -> TradingDesk:
    desk = getattr(app.state, "desk", None)
    if desk is None:
        raise HTTPException(status_code=503, detail="Trading desk not ready")
    return desk


@app.on_event("startup")
async def startup_event():
    if _broker_disabled():
        logger.info("Broker session startup skipped (BATCHTRADER_DISABLE_BROKER set).")
        return

    # Import lazily so unit tests can run without IBKR dependencies installed.
    from src.broker.connection import IBSession

    cfg = load_config()
    app.state.desk = TradingDesk(IBSession(config=cfg), settings=settings_from_config(cfg), events=EventLog())
    logger.info("Trading desk ready (broker %s:%s)", cfg["broker"]["host"], cfg["broker"]["port"])


@app.on_event("shutdown")
async def shutdown_event():
    desk = getattr(app.state, "desk", None)
    if desk is not None:
        desk.close()
        logger.info("Broker session closed")


# Local dev defaults.
app.add_middleware(
    CORSMiddleware,
    allow_origins=["http://localhost:5173", "http://127.0.0.1:5173"],
    allow_credentials=False,
    allow_methods=["GET", "POST", "PUT"],
    allow_headers=["*"],
)


@app.exception_handler(Exception)
async def global_exception_handler(request: Request, exc: Exception):
    """Return a clean JSON 500 instead of a bare traceback."""
    logger.error(f"Unhandled exception: {type(exc).__name__}: {exc}")
    logger.debug(traceback.format_exc())
    return JSONResponse(
        status_code=500,
        content={
            "detail": f"Internal server error: {type(exc).__name__}",
            "message": str(exc)[:200],  # Truncate long error messages
        },
    )


def _status(desk: TradingDesk) -> dict[str, Any]:
    return {
        "is_connected": desk.is_connected(),
        "is_trading": desk.is_trading,
        "is_running": desk.is_running,
    }


@app.get("/api/health")
async def health() -> dict[str, Any]:
    desk = getattr(app.state, "desk", None)
    out: dict[str, Any] = {"status": "ok", "broker_enabled": not _broker_disabled(), "desk_ready": desk is not None}
    if desk is not None:
        out.update(_status(desk))
    return out


@app.get("/api/status")
async def status() -> dict[str, Any]:
    return _status(_require_desk())


@app.get("/api/events")
async def events(
    limit: int = Query(default=200, ge=1, le=2000),
    after_id: int | None = Query(default=None, ge=0),
) -> list[dict[str, Any]]:
    desk = _require_desk()
    rows = desk.events.since(after_id, limit=limit) if after_id is not None else desk.events.tail(limit)
    return jsonable_encoder([e.to_dict() for e in rows])


@app.get("/api/events/stream")
async def events_stream(
    request: Request,
    after_id: int = Query(default=0, ge=0),
    poll_seconds: float = Query(default=1.0, ge=0.2, le=10.0),
):
    """Server-Sent Events feed of the desk's event log."""
    desk = _require_desk()

    async def _gen():
        last_id = int(after_id)
        # Hint to clients how long to wait before reconnecting (milliseconds).
        yield "retry: 1000\n\n"
        while True:
            if await request.is_disconnected():
                break
            rows = desk.events.since(last_id)
            if rows:
                for e in rows:
                    last_id = e.id
                    yield f"data: {json.dumps(e.to_dict(), ensure_ascii=False)}\n\n"
            else:
                yield ": keep-alive\n\n"
            await asyncio.sleep(float(poll_seconds))

    return StreamingResponse(
        _gen(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            # Prevent proxy buffering (best-effort; harmless when ignored)
            "X-Accel-Buffering": "no",
        },
    )


@app.post("/api/connect")
async def connect() -> dict[str, Any]:
    desk = _require_desk()
    if not await desk.connect():
        raise HTTPException(status_code=503, detail="Broker connection failed; see event log")
    return _status(desk)


@app.post("/api/trading/toggle")
async def toggle_trading() -> dict[str, Any]:
    desk = _require_desk()
    desk.toggle()
    return _status(desk)


@app.get("/api/settings")
async def get_settings() -> dict[str, Any]:
    return _require_desk().settings.to_dict()


@app.put("/api/settings")
async def put_settings(payload: dict[str, Any]) -> dict[str, Any]:
    """Partial update of the trading record (strict validation; unknown keys rejected)."""
    desk = _require_desk()
    try:
        settings = desk.update_settings(payload)
    except ConfigurationError as e:
        raise HTTPException(status_code=400, detail=f"Invalid settings: {str(e)[:200]}") from e
    return settings.to_dict()
