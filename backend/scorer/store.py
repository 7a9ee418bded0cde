"""
Persistence for the scorer's match timer: writes the timer columns of the
match row and announces the change on the match's change channel.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional, Protocol

from sqlalchemy import select, update

from shared.models.domain import MatchTimerState, RowChange
from shared.models.orm import MatchORM
from shared.utils.database import DatabaseManager
from shared.utils.logging import get_logger
from shared.utils.redis_manager import RedisManager

logger = get_logger(__name__)


class MatchNotFound(LookupError):
    """The match row does not exist."""

    def __init__(self, match_id: uuid.UUID) -> None:
        super().__init__(f"match {match_id} not found")
        self.match_id = match_id


class TimerStore(Protocol):
    async def load_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        ...

    async def save_timer(self, match_id: uuid.UUID, state: MatchTimerState) -> None:
        ...


class StoreTimerWriter:
    """TimerStore over Postgres with change notification through Redis."""

    def __init__(self, db: DatabaseManager, redis: RedisManager) -> None:
        self._db = db
        self._redis = redis

    async def load_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        stmt = select(
            MatchORM.timer_value,
            MatchORM.timer_status,
            MatchORM.updated_at,
            MatchORM.status,
            MatchORM.current_turn,
            MatchORM.current_inning,
            MatchORM.innings,
            MatchORM.turn_duration,
        ).where(MatchORM.id == match_id)
        async with self._db.read_session() as session:
            row = (await session.execute(stmt)).mappings().first()
        return dict(row) if row is not None else None

    async def save_timer(self, match_id: uuid.UUID, state: MatchTimerState) -> None:
        snapshot = state.snapshot
        updated_at = datetime.fromtimestamp(snapshot.received_at / 1000, tz=timezone.utc)
        stmt = (
            update(MatchORM)
            .where(MatchORM.id == match_id)
            .values(
                timer_value=snapshot.value,
                timer_status=snapshot.status.value,
                updated_at=updated_at,
                current_turn=state.current_turn,
                current_inning=state.current_inning,
            )
            .returning(MatchORM.status)
        )
        async with self._db.write_session() as session:
            match_status = (await session.execute(stmt)).scalar_one_or_none()
        if match_status is None:
            raise MatchNotFound(match_id)

        change = RowChange(
            new={
                "id": str(match_id),
                "timer_value": snapshot.value,
                "timer_status": snapshot.status.value,
                "updated_at": updated_at.isoformat(),
                "current_turn": state.current_turn,
                "current_inning": state.current_inning,
                "status": match_status,
            }
        )
        receivers = await self._redis.publish_match_change(str(match_id), change.model_dump_json())
        logger.info(
            "timer_saved",
            match_id=str(match_id),
            value=snapshot.value,
            status=snapshot.status.value,
            turn=state.current_turn,
            receivers=receivers,
        )
