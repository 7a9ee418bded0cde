"""
Redis connection manager for Kho-Kho Live.
Provides the async connection pool and the match change feed.
"""
from __future__ import annotations

from typing import Any, Optional

import redis.asyncio as aioredis
from redis.asyncio import Redis
from redis.asyncio.client import PubSub

from shared.config import Settings, get_settings
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# ── Key namespaces ──────────────────────────────────────────────────────
MATCH_CHANGES_CHANNEL = "changes:matches:{match_id}"


def _fmt(template: str, **kwargs: Any) -> str:
    return template.format(**kwargs)


class RedisManager:
    """Manages the async Redis pool and the pub/sub change feed."""

    def __init__(self, settings: Settings | None = None) -> None:
        self._settings = settings or get_settings()
        self._pool: Optional[Redis] = None

    async def connect(self) -> None:
        self._pool = aioredis.from_url(
            self._settings.redis_url_str,
            max_connections=self._settings.redis_max_connections,
            decode_responses=True,
            socket_connect_timeout=5,
            socket_keepalive=True,
            retry_on_timeout=True,
        )
        await self._pool.ping()
        logger.info("redis_connected", url=self._settings.redis_url_str)

    async def disconnect(self) -> None:
        if self._pool:
            await self._pool.aclose()
            self._pool = None
            logger.info("redis_disconnected")

    @property
    def client(self) -> Redis:
        if self._pool is None:
            raise RuntimeError("RedisManager not connected. Call connect() first.")
        return self._pool

    # ── Change feed ─────────────────────────────────────────────────────
    async def publish_match_change(self, match_id: str, payload: str) -> int:
        """Publish a row-change event for a match. Returns the receiver count."""
        channel = _fmt(MATCH_CHANGES_CHANNEL, match_id=match_id)
        return await self.client.publish(channel, payload)

    async def subscribe_match_changes(self, match_id: str) -> PubSub:
        """Open a PubSub subscribed to one match's change channel."""
        pubsub = self.client.pubsub(ignore_subscribe_messages=True)
        await pubsub.subscribe(_fmt(MATCH_CHANGES_CHANNEL, match_id=match_id))
        return pubsub
