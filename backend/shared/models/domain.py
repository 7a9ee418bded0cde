"""
Pydantic v2 domain models shared across the Kho-Kho Live services.
These are the canonical wire/internal representations, not ORM models.
"""
from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field

from shared.models.enums import BreakKind, MatchStatus, TimerBadge, TimerStatus, WSServerMsgType


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ── Base ────────────────────────────────────────────────────────────────
class DomainModel(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)


# ── Reference entities ──────────────────────────────────────────────────
class TeamRef(DomainModel):
    id: uuid.UUID
    name: str


# ── Match timer ─────────────────────────────────────────────────────────
class TimerSnapshot(DomainModel):
    """
    Last-known authoritative timer state.

    ``received_at`` is the extrapolation baseline in epoch milliseconds: the
    producer's ``updated_at`` for an initial fetch, the consumer's own clock
    for a push-delivered snapshot.
    """
    model_config = ConfigDict(frozen=True)

    value: int = 0
    status: TimerStatus = TimerStatus.STOPPED
    received_at: int
    is_push_delivered: bool = False


class MatchTimerState(DomainModel):
    """The scorer's view of a match clock: the timer plus turn and inning progress."""
    model_config = ConfigDict(frozen=True)

    snapshot: TimerSnapshot
    current_turn: int = 1
    current_inning: int = 1
    innings: int = 2
    turn_limit_s: int = 0

    @property
    def total_turns(self) -> int:
        return self.innings * 2

    @property
    def break_kind(self) -> BreakKind:
        """Even turns close an inning."""
        return BreakKind.INNING if self.current_turn % 2 == 0 else BreakKind.TURN


class TimerDisplay(DomainModel):
    """What a viewer renders for a match timer at one instant."""
    match_id: uuid.UUID
    seconds: int = 0
    clock: str = "00:00"
    status: TimerStatus = TimerStatus.STOPPED
    badge: Optional[TimerBadge] = None
    ticking: bool = False
    available: bool = True


# ── Results / standings ────────────────────────────────────────────────
class MatchResult(DomainModel):
    """The slice of a match row the standings table needs."""
    id: uuid.UUID
    tournament_id: uuid.UUID
    team_a_id: uuid.UUID
    team_b_id: uuid.UUID
    status: MatchStatus
    score_a: Optional[int] = None
    score_b: Optional[int] = None


class TeamStanding(DomainModel):
    team_id: uuid.UUID
    team_name: str
    played: int = 0
    won: int = 0
    lost: int = 0
    draw: int = 0
    points: int = 0
    points_scored: int = 0
    points_conceded: int = 0
    score_difference: int = 0
    nrr: float = 0.0


# ── Change feed ─────────────────────────────────────────────────────────
class RowChange(DomainModel):
    """Row-level change notification carried on a match's change channel."""
    event: str = "UPDATE"
    table: str = "matches"
    new: dict[str, Any] = Field(default_factory=dict)
    committed_at: datetime = Field(default_factory=_utcnow)


# ── WebSocket messages ──────────────────────────────────────────────────
class WSEnvelope(DomainModel):
    """Server → client message envelope."""
    type: WSServerMsgType
    match_id: Optional[uuid.UUID] = None
    timestamp: datetime = Field(default_factory=_utcnow)
    data: Any = None
