"""
Dependency injection for the API service.
Provides infrastructure managers and timer collaborators to route handlers.
"""
from __future__ import annotations

from scorer.store import StoreTimerWriter
from scorer.timer_control import ScorerTimerRegistry
from shared.utils.database import DatabaseManager
from shared.utils.redis_manager import RedisManager
from viewer.engine import Clock, wall_clock_ms
from viewer.feed import StoreTimerSource, TimerSource

# Module-level singletons, initialized at startup
_redis: RedisManager | None = None
_db: DatabaseManager | None = None
_timer_registry: ScorerTimerRegistry | None = None


def init_dependencies(redis: RedisManager, db: DatabaseManager) -> None:
    """Initialize module-level singletons. Called once at startup."""
    global _redis, _db, _timer_registry
    _redis = redis
    _db = db
    _timer_registry = ScorerTimerRegistry(StoreTimerWriter(db, redis))


def get_redis() -> RedisManager:
    if _redis is None:
        raise RuntimeError("RedisManager not initialized; call init_dependencies first")
    return _redis


def get_db() -> DatabaseManager:
    if _db is None:
        raise RuntimeError("DatabaseManager not initialized; call init_dependencies first")
    return _db


def get_clock() -> Clock:
    return wall_clock_ms


def get_timer_source() -> TimerSource:
    """FastAPI dependency: where viewer sessions read and subscribe."""
    return StoreTimerSource(get_db(), get_redis())


def get_timer_registry() -> ScorerTimerRegistry:
    """FastAPI dependency: the process-wide scorer timer controllers."""
    if _timer_registry is None:
        raise RuntimeError("ScorerTimerRegistry not initialized; call init_dependencies first")
    return _timer_registry


async def close_dependencies() -> None:
    """Cancel pending timer deadlines before the stores go away."""
    if _timer_registry is not None:
        await _timer_registry.close()
