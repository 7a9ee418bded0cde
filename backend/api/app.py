"""
FastAPI application for the Kho-Kho Live API service.

Viewers read a match timer (REST or WebSocket), scorers drive it with timer
commands, and tournament standings are computed from finished matches.
Redis and Postgres are connected in the lifespan; tests build the app with
``use_lifespan=False`` and override the dependencies instead.
"""
from __future__ import annotations

import asyncio
import uuid
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Awaitable, Callable

from fastapi import Depends, FastAPI, WebSocket

from shared.config import get_settings
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger, setup_logging
from shared.utils.metrics import start_metrics_server
from shared.utils.redis_manager import RedisManager
from viewer.engine import Clock
from viewer.feed import TimerSource

from api.dependencies import (
    close_dependencies,
    get_clock,
    get_db,
    get_redis,
    get_timer_source,
    init_dependencies,
)
from api.middleware import setup_middleware
from api.routes.matches import router as matches_router
from api.routes.tournaments import router as tournaments_router
from api.ws.timer import serve_timer_socket

logger = get_logger(__name__)

_RETRY_BASE_DELAY_S = 2.0
_RETRY_MAX_DELAY_S = 30.0


async def _connect_with_retry(connect_fn: Callable[[], Awaitable[None]], name: str, attempts: int) -> None:
    """Await connect_fn() until it succeeds, backing off exponentially; the last failure propagates."""
    delay = _RETRY_BASE_DELAY_S
    for attempt in range(1, attempts + 1):
        try:
            await connect_fn()
            return
        except Exception as exc:
            if attempt == attempts:
                raise
            logger.warning("connect_retry", name=name, attempt=attempt, delay_s=delay, error=str(exc))
            await asyncio.sleep(delay)
            delay = min(delay * 2, _RETRY_MAX_DELAY_S)


async def _probe(name: str, check: Callable[[], Awaitable[object]]) -> bool:
    try:
        await check()
    except Exception as exc:
        logger.warning("readiness_check_failed", dependency=name, error=str(exc))
        return False
    return True


@asynccontextmanager
async def _noop_lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    yield


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    settings = get_settings()
    setup_logging("api")
    start_metrics_server()

    redis = RedisManager(settings)
    db = DatabaseManager(settings)
    await _connect_with_retry(redis.connect, "redis", settings.connect_attempts)
    await _connect_with_retry(db.connect, "database", settings.connect_attempts)
    init_dependencies(redis, db)
    logger.info("api_service_started", host=settings.api_host, port=settings.api_port)

    try:
        yield
    finally:
        await close_dependencies()
        await db.disconnect()
        await redis.disconnect()
        logger.info("api_service_stopped")


def create_app(*, use_lifespan: bool = True) -> FastAPI:
    """Build the app. ``use_lifespan=False`` skips Redis/Postgres so tests can inject fakes."""
    app = FastAPI(
        title="Kho-Kho Live API",
        description="Live match timers and standings for Kho-Kho tournaments",
        version="1.0.0",
        lifespan=lifespan if use_lifespan else _noop_lifespan,
    )
    setup_middleware(app)
    app.include_router(matches_router)
    app.include_router(tournaments_router)

    @app.get("/health", tags=["system"])
    async def health() -> dict[str, str]:
        return {"status": "ok", "service": "api"}

    @app.get("/ready", tags=["system"])
    async def readiness() -> dict[str, object]:
        redis_ok = await _probe("redis", lambda: get_redis().client.ping())
        db_ok = await _probe("database", lambda: get_db().ping())
        return {
            "status": "ok" if redis_ok and db_ok else "degraded",
            "redis": redis_ok,
            "database": db_ok,
        }

    @app.websocket("/v1/ws/matches/{match_id}/timer")
    async def timer_websocket(
        ws: WebSocket,
        match_id: uuid.UUID,
        source: TimerSource = Depends(get_timer_source),
        clock: Clock = Depends(get_clock),
    ) -> None:
        """
        Live timer for one match.

        Server → client: {"type": "timer", "match_id": ..., "data": TimerDisplay}
        on connect, on every change and once per second while the clock moves.
        Client → server: {"op": "ping"} → {"type": "pong"}.
        """
        await serve_timer_socket(ws, match_id, source, clock)

    return app


# For running with uvicorn directly
app = create_app()
