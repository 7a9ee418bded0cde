"""
Timer reconciliation for live match viewers.

A viewer holds the last authoritative TimerSnapshot and projects a display
value from it against its own wall clock:

- paused / stopped snapshots are static;
- running snapshots count up from ``value``;
- break snapshots count down from ``value`` and floor at zero.

Initial (fetched) snapshots carry the producer's ``updated_at`` as their
baseline, so producer-ahead clock skew shows up as negative elapsed time and
is clamped to zero. Push snapshots use the consumer's receipt time as the
baseline and are never clamped.
"""
from __future__ import annotations

import math
import time
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from shared.models.enums import TimerStatus
from shared.models.domain import TimerSnapshot
from shared.utils.logging import get_logger

logger = get_logger(__name__)

# Epoch milliseconds
Clock = Callable[[], int]


def wall_clock_ms() -> int:
    return int(time.time() * 1000)


def project_display_time(snapshot: TimerSnapshot, now_ms: int) -> int:
    """Display seconds for ``snapshot`` at wall-clock instant ``now_ms``."""
    if not snapshot.status.is_ticking:
        return max(0, snapshot.value)

    elapsed = (now_ms - snapshot.received_at) // 1000
    if elapsed < 0 and not snapshot.is_push_delivered:
        elapsed = 0

    if snapshot.status == TimerStatus.RUNNING:
        return max(0, snapshot.value + elapsed)
    return max(0, snapshot.value - elapsed)


def snapshot_from_row(row: Mapping[str, Any], now_ms: int) -> TimerSnapshot:
    """Initial snapshot from a fetched match row, baselined on its ``updated_at``."""
    received_at = _parse_timestamp_ms(row.get("updated_at"))
    if received_at is None:
        received_at = now_ms
    return TimerSnapshot(
        value=_parse_value(row.get("timer_value")),
        status=_parse_status(row.get("timer_status")),
        received_at=received_at,
        is_push_delivered=False,
    )


def snapshot_from_push(payload: Mapping[str, Any], now_ms: int) -> TimerSnapshot:
    """Push snapshot from a change-feed row, baselined on local receipt time."""
    return TimerSnapshot(
        value=_parse_value(payload.get("timer_value")),
        status=_parse_status(payload.get("timer_status")),
        received_at=now_ms,
        is_push_delivered=True,
    )


# ── Boundary parsing ────────────────────────────────────────────────────

def _parse_status(raw: Any) -> TimerStatus:
    status = TimerStatus.parse(raw)
    if raw is None or isinstance(raw, TimerStatus):
        return status
    if status == TimerStatus.STOPPED and str(raw).strip().lower() != TimerStatus.STOPPED.value:
        logger.warning("timer_status_unrecognized", raw=repr(raw))
    return status


def _parse_value(raw: Any) -> int:
    if raw is None or isinstance(raw, bool):
        return 0
    if isinstance(raw, int):
        return raw
    number: Any = raw
    if isinstance(raw, str):
        try:
            number = float(raw)
        except ValueError:
            number = None
    # NaN and infinities have no int value
    if isinstance(number, float) and math.isfinite(number):
        return int(number)
    logger.warning("timer_value_unrecognized", raw=repr(raw))
    return 0


def _parse_timestamp_ms(raw: Any) -> Optional[int]:
    if raw is None or raw == "":
        return None
    dt: Optional[datetime] = None
    if isinstance(raw, datetime):
        dt = raw
    elif isinstance(raw, str):
        try:
            dt = datetime.fromisoformat(raw.strip().replace("Z", "+00:00"))
        except ValueError:
            logger.warning("timer_updated_at_unparseable", raw=raw)
            return None
    if dt is None:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return int(dt.timestamp() * 1000)
