"""
Viewer session for one live match timer.

Lifecycle:
- ``start()`` waits for the change-feed subscription, then reads the initial row;
- every snapshot (initial or pushed) replaces the previous one wholesale,
  emits a display immediately and re-arms or disarms the local ticker;
- every tick re-projects the current snapshot and emits;
- ``close()`` stops the ticker and the feed listener on every exit path.
"""
from __future__ import annotations

import asyncio
import contextlib
import uuid
from typing import Awaitable, Callable, Optional

from shared.config import Settings, get_settings
from shared.models.domain import TimerDisplay, TimerSnapshot
from shared.models.enums import MatchStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import TIMER_FETCH_FAILURES, TIMER_SNAPSHOTS
from viewer.display import build_display, unavailable_display
from viewer.engine import (
    Clock,
    project_display_time,
    snapshot_from_push,
    snapshot_from_row,
    wall_clock_ms,
)
from viewer.feed import ChangeStream, TimerSource
from viewer.ticker import LocalTicker

logger = get_logger(__name__)

DisplayCallback = Callable[[TimerDisplay], Awaitable[None]]


class LiveTimerSession:
    """Keeps one viewer's timer display in step with the authoritative match row."""

    def __init__(
        self,
        match_id: uuid.UUID,
        source: TimerSource,
        on_display: DisplayCallback,
        *,
        clock: Clock = wall_clock_ms,
        tick_interval_s: float | None = None,
        settings: Settings | None = None,
    ) -> None:
        settings = settings or get_settings()
        self._match_id = match_id
        self._source = source
        self._on_display = on_display
        self._clock = clock
        self._ticker = LocalTicker(
            self.refresh,
            tick_interval_s or settings.timer_tick_interval_s,
            name=f"timer-tick-{match_id}",
        )
        self._snapshot: Optional[TimerSnapshot] = None
        self._match_status: Optional[MatchStatus] = None
        self._last_display: Optional[TimerDisplay] = None
        self._stream: Optional[ChangeStream] = None
        self._listener: Optional[asyncio.Task[None]] = None
        self._started = False
        self._closed = False
        self._log = logger.bind(match_id=str(match_id))

    @property
    def match_id(self) -> uuid.UUID:
        return self._match_id

    @property
    def snapshot(self) -> Optional[TimerSnapshot]:
        return self._snapshot

    @property
    def last_display(self) -> Optional[TimerDisplay]:
        return self._last_display

    @property
    def ticking(self) -> bool:
        return self._ticker.armed

    @property
    def closed(self) -> bool:
        return self._closed

    async def __aenter__(self) -> "LiveTimerSession":
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.close()

    async def start(self) -> None:
        if self._started:
            raise RuntimeError("LiveTimerSession already started")
        self._started = True
        # Subscribed before the read: an update committed after the read is still delivered.
        try:
            self._stream = await self._source.subscribe(self._match_id)
        except Exception as exc:
            self._log.error("change_feed_subscribe_failed", error=str(exc), exc_info=True)
        else:
            self._listener = asyncio.create_task(
                self._listen(self._stream), name=f"timer-feed-{self._match_id}"
            )
        await self._load_initial()

    async def close(self) -> None:
        """Tear down ticker and feed listener. Safe to call more than once."""
        if self._closed:
            return
        self._closed = True
        await self._ticker.stop()
        listener, self._listener = self._listener, None
        if listener is not None:
            listener.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await listener
        if self._stream is not None:
            await self._stream.aclose()
        self._log.debug("timer_session_closed")

    async def apply_snapshot(
        self, snapshot: TimerSnapshot, match_status: Optional[MatchStatus] = None
    ) -> Optional[TimerDisplay]:
        """Replace the current snapshot and render it immediately."""
        if self._closed:
            return None
        self._snapshot = snapshot
        if match_status is not None:
            self._match_status = match_status
        TIMER_SNAPSHOTS.labels(source="push" if snapshot.is_push_delivered else "fetch").inc()
        if snapshot.status.is_ticking:
            self._ticker.arm()
        else:
            self._ticker.disarm()
        return await self.refresh()

    async def refresh(self) -> Optional[TimerDisplay]:
        """Project the current snapshot against the clock and emit it."""
        snapshot = self._snapshot
        if snapshot is None or self._closed:
            return None
        seconds = project_display_time(snapshot, self._clock())
        display = build_display(self._match_id, snapshot, seconds, self._match_status)
        self._last_display = display
        await self._on_display(display)
        return display

    async def _load_initial(self) -> None:
        try:
            row = await self._source.fetch_timer(self._match_id)
        except Exception as exc:
            TIMER_FETCH_FAILURES.labels(reason="error").inc()
            self._log.warning("timer_fetch_failed", error=str(exc))
            row = None
        else:
            if row is None:
                TIMER_FETCH_FAILURES.labels(reason="missing").inc()
                self._log.warning("timer_row_missing")

        if self._snapshot is not None:
            # A push landed while the read was in flight; it is newer.
            self._log.debug("timer_initial_superseded")
            return
        if row is None:
            if not self._closed:
                self._last_display = unavailable_display(self._match_id)
                await self._on_display(self._last_display)
            return
        await self.apply_snapshot(
            snapshot_from_row(row, self._clock()),
            MatchStatus.parse(row.get("status")),
        )

    async def _listen(self, stream: ChangeStream) -> None:
        try:
            async for row in stream:
                try:
                    await self.apply_snapshot(
                        snapshot_from_push(row, self._clock()),
                        MatchStatus.parse(row.get("status")),
                    )
                except Exception as exc:
                    # One bad row must not end the subscription.
                    self._log.error("change_feed_row_failed", error=str(exc), exc_info=True)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            # Reconnection belongs to the transport; the display freezes on the last snapshot.
            self._log.error("change_feed_failed", error=str(exc), exc_info=True)
        finally:
            await stream.aclose()
