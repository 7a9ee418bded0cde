"""Presentation helpers for the match timer."""
from __future__ import annotations

import uuid
from typing import Optional

from shared.models.domain import TimerDisplay, TimerSnapshot
from shared.models.enums import MatchStatus, TimerBadge, TimerStatus

_STATUS_BADGES: dict[TimerStatus, TimerBadge] = {
    TimerStatus.RUNNING: TimerBadge.LIVE,
    TimerStatus.PAUSED: TimerBadge.PAUSED,
    TimerStatus.BREAK: TimerBadge.BREAK,
}


def format_clock(seconds: int) -> str:
    """``MM:SS``; minutes are not wrapped into hours."""
    safe = max(0, int(seconds))
    mins, secs = divmod(safe, 60)
    return f"{mins:02d}:{secs:02d}"


def resolve_badge(
    status: TimerStatus, match_status: Optional[MatchStatus] = None
) -> Optional[TimerBadge]:
    """Label shown next to the timer. A finished match always reads FINISHED."""
    if match_status == MatchStatus.FINISHED:
        return TimerBadge.FINISHED
    if status == TimerStatus.STOPPED:
        return None if match_status == MatchStatus.LIVE else TimerBadge.FINISHED
    return _STATUS_BADGES[status]


def build_display(
    match_id: uuid.UUID,
    snapshot: TimerSnapshot,
    seconds: int,
    match_status: Optional[MatchStatus] = None,
) -> TimerDisplay:
    return TimerDisplay(
        match_id=match_id,
        seconds=seconds,
        clock=format_clock(seconds),
        status=snapshot.status,
        badge=resolve_badge(snapshot.status, match_status),
        ticking=snapshot.status.is_ticking,
    )


def unavailable_display(match_id: uuid.UUID) -> TimerDisplay:
    """Placeholder emitted while no snapshot could be loaded."""
    return TimerDisplay(match_id=match_id, available=False)
