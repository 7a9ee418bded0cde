"""Clock formatting and badge selection."""
from __future__ import annotations

import uuid

import pytest

from conftest import BASE_MS
from shared.models.domain import TimerSnapshot
from shared.models.enums import MatchStatus, TimerBadge, TimerStatus
from viewer.display import build_display, format_clock, resolve_badge, unavailable_display


@pytest.mark.parametrize(
    "seconds,expected",
    [
        (0, "00:00"),
        (7, "00:07"),
        (59, "00:59"),
        (60, "01:00"),
        (95, "01:35"),
        (3599, "59:59"),
        (3600, "60:00"),
        (7500, "125:00"),
        (-5, "00:00"),
    ],
)
def test_format_clock(seconds: int, expected: str) -> None:
    assert format_clock(seconds) == expected


@pytest.mark.parametrize(
    "status,match_status,expected",
    [
        (TimerStatus.RUNNING, MatchStatus.LIVE, TimerBadge.LIVE),
        (TimerStatus.RUNNING, None, TimerBadge.LIVE),
        (TimerStatus.PAUSED, MatchStatus.LIVE, TimerBadge.PAUSED),
        (TimerStatus.BREAK, MatchStatus.LIVE, TimerBadge.BREAK),
        (TimerStatus.STOPPED, None, TimerBadge.FINISHED),
        (TimerStatus.STOPPED, MatchStatus.SCHEDULED, TimerBadge.FINISHED),
        (TimerStatus.STOPPED, MatchStatus.LIVE, None),
        (TimerStatus.RUNNING, MatchStatus.FINISHED, TimerBadge.FINISHED),
        (TimerStatus.BREAK, MatchStatus.FINISHED, TimerBadge.FINISHED),
    ],
)
def test_resolve_badge(
    status: TimerStatus, match_status: MatchStatus | None, expected: TimerBadge | None
) -> None:
    assert resolve_badge(status, match_status) == expected


def test_build_display_running() -> None:
    match_id = uuid.uuid4()
    snapshot = TimerSnapshot(value=40, status=TimerStatus.RUNNING, received_at=BASE_MS)
    display = build_display(match_id, snapshot, 125, MatchStatus.LIVE)
    assert display.match_id == match_id
    assert display.seconds == 125
    assert display.clock == "02:05"
    assert display.status == TimerStatus.RUNNING
    assert display.badge == TimerBadge.LIVE
    assert display.ticking is True
    assert display.available is True


def test_build_display_paused_is_not_ticking() -> None:
    snapshot = TimerSnapshot(value=12, status=TimerStatus.PAUSED, received_at=BASE_MS)
    display = build_display(uuid.uuid4(), snapshot, 12)
    assert display.ticking is False
    assert display.badge == TimerBadge.PAUSED


def test_unavailable_display() -> None:
    match_id = uuid.uuid4()
    display = unavailable_display(match_id)
    assert display.available is False
    assert display.match_id == match_id
    assert display.seconds == 0
    assert display.clock == "00:00"
    assert display.badge is None


def test_display_serializes_enum_values() -> None:
    snapshot = TimerSnapshot(value=3, status=TimerStatus.BREAK, received_at=BASE_MS)
    data = build_display(uuid.uuid4(), snapshot, 3, MatchStatus.LIVE).model_dump(mode="json")
    assert data["status"] == "break"
    assert data["badge"] == "BREAK"
