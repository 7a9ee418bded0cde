"""
Match timer REST endpoints.

GET  /v1/matches/{id}/timer            Current timer display for a viewer.
POST /v1/matches/{id}/timer/{command}  Scorer timer command (start, pause, resume,
                                       break, end-break, stop, reset).
"""
from __future__ import annotations

import uuid
from typing import Any

from fastapi import APIRouter, Depends, HTTPException

from shared.models.domain import TimerDisplay
from shared.models.enums import MatchStatus, TimerCommand
from shared.utils.logging import get_logger
from scorer.timer_control import ScorerTimerRegistry
from viewer.display import build_display
from viewer.engine import Clock, project_display_time, snapshot_from_row
from viewer.feed import TimerSource

from api.dependencies import get_clock, get_timer_registry, get_timer_source

logger = get_logger(__name__)
router = APIRouter(prefix="/v1/matches", tags=["matches"])


@router.get("/{match_id}/timer", response_model=TimerDisplay)
async def get_match_timer(
    match_id: uuid.UUID,
    source: TimerSource = Depends(get_timer_source),
    clock: Clock = Depends(get_clock),
) -> TimerDisplay:
    """
    One-shot projection of the match timer.

    Clients that need a continuously updating clock should use the
    WebSocket endpoint instead of polling this.
    """
    row = await source.fetch_timer(match_id)
    if row is None:
        raise HTTPException(status_code=404, detail="Match not found")

    now = clock()
    snapshot = snapshot_from_row(row, now)
    return build_display(
        match_id,
        snapshot,
        project_display_time(snapshot, now),
        MatchStatus.parse(row.get("status")),
    )


@router.post("/{match_id}/timer/{command}")
async def run_timer_command(
    match_id: uuid.UUID,
    command: TimerCommand,
    registry: ScorerTimerRegistry = Depends(get_timer_registry),
) -> dict[str, Any]:
    """Break length follows the turn: even turns close an inning."""
    state = await registry.execute(match_id, command)
    return {
        "match_id": str(match_id),
        "command": command.value,
        "timer_value": state.snapshot.value,
        "timer_status": state.snapshot.status.value,
        "current_turn": state.current_turn,
        "current_inning": state.current_inning,
    }
