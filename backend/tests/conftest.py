"""Shared fakes for timer tests: a settable clock, an in-memory backing store and a display recorder."""
from __future__ import annotations

import asyncio
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

import pytest

from shared.models.domain import MatchTimerState, RowChange, TimerDisplay
from scorer.store import MatchNotFound
from viewer.feed import decode_row_change

# 2026-03-01T12:00:00Z
BASE_MS = 1_772_366_400_000


def iso_at(ms: int) -> str:
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).isoformat()


class FakeClock:
    """Epoch-millisecond clock that only moves when told to."""

    def __init__(self, start_ms: int = BASE_MS) -> None:
        self.now = start_ms

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += int(seconds * 1000)


class FakeChangeStream:
    """Rows pushed to one match's queue, ending with the source's feed_error if set."""

    def __init__(self, source: "FakeTimerSource", match_id: uuid.UUID) -> None:
        self._source = source
        self._match_id = match_id
        self._queue = source._queue(match_id)
        self.closed = False

    def __aiter__(self) -> "FakeChangeStream":
        return self

    async def __anext__(self) -> dict[str, Any]:
        if self.closed:
            raise StopAsyncIteration
        row = await self._queue.get()
        if self._source.feed_error is not None:
            raise self._source.feed_error
        return row

    async def aclose(self) -> None:
        if not self.closed:
            self.closed = True
            self._source.unsubscribed.add(self._match_id)


class FakeTimerSource:
    """In-memory TimerSource: one row per match plus a queue of pushed rows."""

    def __init__(self) -> None:
        self.rows: dict[uuid.UUID, dict[str, Any]] = {}
        self.fetch_error: Optional[Exception] = None
        self.fetch_gate: Optional[asyncio.Event] = None
        self.subscribe_error: Optional[Exception] = None
        self.feed_error: Optional[Exception] = None
        self.subscribed: set[uuid.UUID] = set()
        self.unsubscribed: set[uuid.UUID] = set()
        self.calls: list[str] = []
        self._queues: dict[uuid.UUID, asyncio.Queue[dict[str, Any]]] = {}

    def _queue(self, match_id: uuid.UUID) -> asyncio.Queue[dict[str, Any]]:
        return self._queues.setdefault(match_id, asyncio.Queue())

    async def fetch_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        self.calls.append("fetch")
        if self.fetch_gate is not None:
            await self.fetch_gate.wait()
        if self.fetch_error is not None:
            raise self.fetch_error
        row = self.rows.get(match_id)
        return dict(row) if row is not None else None

    async def subscribe(self, match_id: uuid.UUID) -> FakeChangeStream:
        await asyncio.sleep(0)
        if self.subscribe_error is not None:
            raise self.subscribe_error
        self.calls.append("subscribe")
        self.subscribed.add(match_id)
        return FakeChangeStream(self, match_id)

    def push(self, match_id: uuid.UUID, row: dict[str, Any]) -> None:
        self._queue(match_id).put_nowait(row)


class LoopbackTimerStore:
    """TimerStore that writes into a FakeTimerSource and pushes the change like the real feed."""

    def __init__(self, source: FakeTimerSource) -> None:
        self.source = source
        self.saves: list[tuple[uuid.UUID, MatchTimerState]] = []

    async def load_timer(self, match_id: uuid.UUID) -> Optional[dict[str, Any]]:
        return await self.source.fetch_timer(match_id)

    async def save_timer(self, match_id: uuid.UUID, state: MatchTimerState) -> None:
        row = self.source.rows.get(match_id)
        if row is None:
            raise MatchNotFound(match_id)
        snapshot = state.snapshot
        row.update(
            timer_value=snapshot.value,
            timer_status=snapshot.status.value,
            updated_at=iso_at(snapshot.received_at),
            current_turn=state.current_turn,
            current_inning=state.current_inning,
        )
        self.saves.append((match_id, state))
        wire = RowChange(new=dict(row)).model_dump_json()
        decoded = decode_row_change(wire)
        assert decoded is not None
        self.source.push(match_id, decoded)


class DisplayRecorder:
    """on_display callback collecting every emitted TimerDisplay."""

    def __init__(self) -> None:
        self.displays: list[TimerDisplay] = []
        self._changed = asyncio.Event()

    async def __call__(self, display: TimerDisplay) -> None:
        self.displays.append(display)
        self._changed.set()

    @property
    def latest(self) -> TimerDisplay:
        return self.displays[-1]

    @property
    def seconds(self) -> list[int]:
        return [d.seconds for d in self.displays]

    async def wait_for(self, count: int, timeout: float = 1.0) -> None:
        async def _wait() -> None:
            while len(self.displays) < count:
                self._changed.clear()
                await self._changed.wait()

        await asyncio.wait_for(_wait(), timeout)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def source() -> FakeTimerSource:
    return FakeTimerSource()


@pytest.fixture
def recorder() -> DisplayRecorder:
    return DisplayRecorder()


@pytest.fixture
def match_id() -> uuid.UUID:
    return uuid.uuid4()
