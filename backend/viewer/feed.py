"""
Backing-store access for viewer sessions: the initial timer row read from
Postgres and the per-match change feed carried over Redis pub/sub.
"""
from __future__ import annotations

import uuid
from typing import Any, Optional, Protocol

from pydantic import ValidationError
from redis.asyncio.client import PubSub
from sqlalchemy import select

from shared.models.domain import RowChange
from shared.models.orm import MatchORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.metrics import CHANGE_FEED_DROPPED, TIMER_FETCH_LATENCY, atrack_latency
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


class ChangeStream(Protocol):
    """An open subscription: iterates new rows until closed."""

    def __aiter__(self) -> "ChangeStream":
        ...

    async def __anext__(self) -> dict[str, Any]:
        ...

    async def aclose(self) -> None:
        ...


class TimerSource(Protocol):
    """What a viewer session needs from the backing store."""

    async def fetch_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        """The match's timer columns, or None when the row does not exist."""
        ...

    async def subscribe(self, match_id: uuid.UUID) -> ChangeStream:
        """Returns once the match's change channel is subscribed."""
        ...


def decode_row_change(raw: Any) -> Optional[dict[str, Any]]:
    """Return the new row of an UPDATE notification; None for anything else."""
    if isinstance(raw, bytes):
        raw = raw.decode("utf-8", errors="replace")
    try:
        change = RowChange.model_validate_json(raw)
    except (ValidationError, TypeError, ValueError) as exc:
        CHANGE_FEED_DROPPED.labels(reason="malformed").inc()
        logger.warning("change_feed_malformed", error=str(exc))
        return None
    if change.event.upper() != "UPDATE" or change.table != "matches":
        CHANGE_FEED_DROPPED.labels(reason="ignored_event").inc()
        return None
    return change.new


class RedisChangeStream:
    """Decoded UPDATE rows from one match's pub/sub channel."""

    def __init__(self, match_id: uuid.UUID, pubsub: PubSub) -> None:
        self._match_id = match_id
        self._pubsub = pubsub
        self._messages = pubsub.listen()
        self._closed = False

    def __aiter__(self) -> "RedisChangeStream":
        return self

    async def __anext__(self) -> dict[str, Any]:
        while not self._closed:
            message = await self._messages.__anext__()
            if message.get("type") != "message":
                continue
            row = decode_row_change(message.get("data"))
            if row is not None:
                return row
        raise StopAsyncIteration

    async def aclose(self) -> None:
        """Unsubscribe and release the connection. Idempotent."""
        if self._closed:
            return
        self._closed = True
        try:
            await self._pubsub.unsubscribe()
        finally:
            await self._pubsub.aclose()
        logger.debug("change_feed_unsubscribed", match_id=str(self._match_id))


class StoreTimerSource:
    """TimerSource backed by the platform database and the Redis change feed."""

    def __init__(self, db: DatabaseManager, redis: RedisManager) -> None:
        self._db = db
        self._redis = redis

    async def fetch_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        stmt = select(
            MatchORM.timer_value,
            MatchORM.timer_status,
            MatchORM.updated_at,
            MatchORM.status,
        ).where(MatchORM.id == match_id)
        async with atrack_latency(TIMER_FETCH_LATENCY):
            async with self._db.read_session() as session:
                result = await session.execute(stmt)
                row = result.mappings().first()
        return dict(row) if row is not None else None

    async def subscribe(self, match_id: uuid.UUID) -> RedisChangeStream:
        pubsub = await self._redis.subscribe_match_changes(str(match_id))
        logger.debug("change_feed_subscribed", match_id=str(match_id))
        return RedisChangeStream(match_id, pubsub)
