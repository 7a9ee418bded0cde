"""
Scorer-side match timer.

The scorer is the single producer of timer snapshots. Every command re-reads
the match row (the database is authoritative, other workers may have moved
the clock), folds the elapsed time into ``timer_value``, moves the status
along the allowed transitions and persists the result, which viewers then
receive through the change feed:

    stopped -> running <-> paused
    running -> break -> running (next turn)
    running | paused | break -> stopped

The clock also moves on its own. A running turn that reaches the match's
turn limit goes to a break, and a break that runs out starts the next turn
(even turns close an inning, so their break is the longer inning break).
When the last turn's break ends the timer stops. These automatic steps are
applied whenever the row is read, and a deadline task applies them on time
while a controller is alive.
"""
from __future__ import annotations

import asyncio
import uuid
from typing import Any, Mapping, Optional

from shared.config import Settings, get_settings
from shared.models.domain import MatchTimerState, TimerSnapshot
from shared.models.enums import BreakKind, TimerCommand, TimerStatus
from shared.utils.logging import get_logger
from shared.utils.metrics import TIMER_COMMANDS
from scorer.store import MatchNotFound, TimerStore
from viewer.engine import Clock, project_display_time, snapshot_from_row, wall_clock_ms

logger = get_logger(__name__)

# command -> (allowed source statuses, target status)
_TRANSITIONS: dict[TimerCommand, tuple[frozenset[TimerStatus], TimerStatus]] = {
    TimerCommand.START: (frozenset({TimerStatus.STOPPED}), TimerStatus.RUNNING),
    TimerCommand.PAUSE: (frozenset({TimerStatus.RUNNING}), TimerStatus.PAUSED),
    TimerCommand.RESUME: (frozenset({TimerStatus.PAUSED}), TimerStatus.RUNNING),
    TimerCommand.BREAK: (frozenset({TimerStatus.RUNNING}), TimerStatus.BREAK),
    TimerCommand.END_BREAK: (frozenset({TimerStatus.BREAK}), TimerStatus.RUNNING),
    TimerCommand.STOP: (
        frozenset({TimerStatus.RUNNING, TimerStatus.PAUSED, TimerStatus.BREAK}),
        TimerStatus.STOPPED,
    ),
}


class InvalidTimerTransition(Exception):
    def __init__(self, command: TimerCommand, status: TimerStatus) -> None:
        super().__init__(f"cannot {command.value} a timer that is {status.value}")
        self.command = command
        self.status = status


def _positive_int(raw: Any, default: int) -> int:
    if isinstance(raw, int) and not isinstance(raw, bool) and raw > 0:
        return raw
    return default


class ScorerTimerController:
    """Timer state machine for one match, persisted through a TimerStore."""

    def __init__(
        self,
        match_id: uuid.UUID,
        store: TimerStore,
        *,
        clock: Clock = wall_clock_ms,
        settings: Settings | None = None,
        auto_advance: bool = True,
    ) -> None:
        self._settings = settings or get_settings()
        self._match_id = match_id
        self._store = store
        self._clock = clock
        self._auto_advance = auto_advance
        self._state: Optional[MatchTimerState] = None
        self._lock = asyncio.Lock()
        self._deadline: Optional[asyncio.Task[None]] = None
        self._log = logger.bind(match_id=str(match_id))

    @property
    def match_id(self) -> uuid.UUID:
        return self._match_id

    @property
    def state(self) -> MatchTimerState:
        return self._require_loaded()

    @property
    def status(self) -> TimerStatus:
        return self._require_loaded().snapshot.status

    @property
    def deadline_armed(self) -> bool:
        return self._deadline is not None and not self._deadline.done()

    def current_value(self) -> int:
        return project_display_time(self._require_loaded().snapshot, self._clock())

    def break_duration(self, kind: BreakKind) -> int:
        return self._settings.break_duration_s(kind)

    async def load(self) -> MatchTimerState:
        """Read the row and extrapolate from its ``updated_at``; nothing is persisted."""
        row = await self._store.load_timer(self._match_id)
        if row is None:
            raise MatchNotFound(self._match_id)
        self._state = self._state_from_row(row, self._clock())
        return self._state

    async def sync(self) -> MatchTimerState:
        """Re-read the row and persist any turn-limit or break expiry that is due."""
        async with self._lock:
            state = await self._reload_settled()
            self._arm_deadline(state)
            return state

    async def execute(self, command: TimerCommand) -> MatchTimerState:
        """Apply ``command`` to the freshly read row and persist the result."""
        async with self._lock:
            try:
                state = await self._reload_settled()
                new_state = self._next_state(state, command)
                await self._store.save_timer(self._match_id, new_state)
            except InvalidTimerTransition:
                TIMER_COMMANDS.labels(command=command.value, outcome="rejected").inc()
                raise
            except Exception:
                TIMER_COMMANDS.labels(command=command.value, outcome="error").inc()
                raise
            self._state = new_state
            self._arm_deadline(new_state)
            TIMER_COMMANDS.labels(command=command.value, outcome="ok").inc()
            self._log.info(
                "timer_command_applied",
                command=command.value,
                status=new_state.snapshot.status.value,
                value=new_state.snapshot.value,
                turn=new_state.current_turn,
                inning=new_state.current_inning,
            )
            return new_state

    async def start(self) -> MatchTimerState:
        return await self.execute(TimerCommand.START)

    async def pause(self) -> MatchTimerState:
        return await self.execute(TimerCommand.PAUSE)

    async def resume(self) -> MatchTimerState:
        return await self.execute(TimerCommand.RESUME)

    async def begin_break(self) -> MatchTimerState:
        return await self.execute(TimerCommand.BREAK)

    async def end_break(self) -> MatchTimerState:
        return await self.execute(TimerCommand.END_BREAK)

    async def stop(self) -> MatchTimerState:
        return await self.execute(TimerCommand.STOP)

    async def reset(self) -> MatchTimerState:
        return await self.execute(TimerCommand.RESET)

    async def close(self) -> None:
        task, self._deadline = self._deadline, None
        if task is not None and task is not asyncio.current_task():
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

    # ── State transitions ───────────────────────────────────────────────

    def _state_from_row(self, row: Mapping[str, Any], now: int) -> MatchTimerState:
        limit = row.get("turn_duration")
        return MatchTimerState(
            snapshot=snapshot_from_row(row, now),
            current_turn=_positive_int(row.get("current_turn"), 1),
            current_inning=_positive_int(row.get("current_inning"), 1),
            innings=_positive_int(row.get("innings"), 2),
            turn_limit_s=(
                limit if isinstance(limit, int) and limit >= 0 else self._settings.turn_duration_s
            ),
        )

    async def _reload_settled(self) -> MatchTimerState:
        state = await self.load()
        settled = self._settle(state, self._clock())
        if settled is not state:
            await self._store.save_timer(self._match_id, settled)
            self._log.info(
                "timer_auto_advanced",
                status=settled.snapshot.status.value,
                turn=settled.current_turn,
                inning=settled.current_inning,
            )
            self._state = settled
        return settled

    def _settle(self, state: MatchTimerState, now: int) -> MatchTimerState:
        """Apply every automatic step that fell due at or before ``now``."""
        while True:
            due = self._due_at(state)
            if due is None or due > now:
                return state
            if state.snapshot.status == TimerStatus.RUNNING:
                state = self._enter_break(state, due)
            else:
                state = self._next_turn(state, due)

    def _due_at(self, state: MatchTimerState) -> Optional[int]:
        snapshot = state.snapshot
        if snapshot.status == TimerStatus.RUNNING and state.turn_limit_s > 0:
            remaining = max(0, state.turn_limit_s - snapshot.value)
            return snapshot.received_at + remaining * 1000
        if snapshot.status == TimerStatus.BREAK:
            return snapshot.received_at + max(0, snapshot.value) * 1000
        return None

    def _enter_break(self, state: MatchTimerState, at_ms: int) -> MatchTimerState:
        snapshot = TimerSnapshot(
            value=self.break_duration(state.break_kind),
            status=TimerStatus.BREAK,
            received_at=at_ms,
            is_push_delivered=True,
        )
        return state.model_copy(update={"snapshot": snapshot})

    def _next_turn(self, state: MatchTimerState, at_ms: int) -> MatchTimerState:
        """Leave a break: the next turn runs from zero, or the match clock stops after the last turn."""
        if state.current_turn >= state.total_turns:
            snapshot = TimerSnapshot(value=0, status=TimerStatus.STOPPED, received_at=at_ms, is_push_delivered=True)
            return state.model_copy(update={"snapshot": snapshot})
        inning = state.current_inning + 1 if state.current_turn % 2 == 0 else state.current_inning
        snapshot = TimerSnapshot(value=0, status=TimerStatus.RUNNING, received_at=at_ms, is_push_delivered=True)
        return state.model_copy(
            update={"snapshot": snapshot, "current_turn": state.current_turn + 1, "current_inning": inning}
        )

    def _next_state(self, state: MatchTimerState, command: TimerCommand) -> MatchTimerState:
        current = state.snapshot
        now = self._clock()

        if command == TimerCommand.RESET:
            if current.status == TimerStatus.BREAK:
                raise InvalidTimerTransition(command, current.status)
            status = TimerStatus.PAUSED if current.status == TimerStatus.RUNNING else current.status
            snapshot = TimerSnapshot(value=0, status=status, received_at=now, is_push_delivered=True)
            return state.model_copy(update={"snapshot": snapshot})

        allowed, target = _TRANSITIONS[command]
        if current.status not in allowed:
            raise InvalidTimerTransition(command, current.status)

        if command == TimerCommand.BREAK:
            return self._enter_break(state, now)
        if command == TimerCommand.END_BREAK:
            return self._next_turn(state, now)
        snapshot = TimerSnapshot(
            value=project_display_time(current, now),
            status=target,
            received_at=now,
            is_push_delivered=True,
        )
        return state.model_copy(update={"snapshot": snapshot})

    # ── Deadlines ───────────────────────────────────────────────────────

    def _arm_deadline(self, state: MatchTimerState) -> None:
        current = asyncio.current_task()
        if self._deadline is not None and self._deadline is not current:
            self._deadline.cancel()
        self._deadline = None
        if not self._auto_advance:
            return
        due = self._due_at(state)
        if due is None:
            return
        delay_s = max(0.0, (due - self._clock()) / 1000)
        self._deadline = asyncio.create_task(
            self._fire_at(delay_s), name=f"timer-deadline-{self._match_id}"
        )

    async def _fire_at(self, delay_s: float) -> None:
        await asyncio.sleep(delay_s)
        try:
            await self.sync()
        except Exception as exc:
            self._log.error("timer_auto_advance_failed", error=str(exc), exc_info=True)

    def _require_loaded(self) -> MatchTimerState:
        if self._state is None:
            raise RuntimeError("ScorerTimerController not loaded. Call load() first.")
        return self._state


class ScorerTimerRegistry:
    """
    Per-match controllers for this process.

    Controllers only hold a lock and the deadline task; state is re-read on
    every command. A controller is dropped once its timer stops or its match
    disappears, so the registry only holds clocks that are still moving.
    """

    def __init__(
        self,
        store: TimerStore,
        *,
        clock: Clock = wall_clock_ms,
        settings: Settings | None = None,
        auto_advance: bool = True,
    ) -> None:
        self._store = store
        self._clock = clock
        self._settings = settings
        self._auto_advance = auto_advance
        self._controllers: dict[uuid.UUID, ScorerTimerController] = {}

    def __len__(self) -> int:
        return len(self._controllers)

    def __contains__(self, match_id: object) -> bool:
        return match_id in self._controllers

    def get(self, match_id: uuid.UUID) -> ScorerTimerController:
        controller = self._controllers.get(match_id)
        if controller is None:
            controller = ScorerTimerController(
                match_id,
                self._store,
                clock=self._clock,
                settings=self._settings,
                auto_advance=self._auto_advance,
            )
            self._controllers[match_id] = controller
        return controller

    async def execute(self, match_id: uuid.UUID, command: TimerCommand) -> MatchTimerState:
        controller = self.get(match_id)
        try:
            state = await controller.execute(command)
        except MatchNotFound:
            await self.forget(match_id)
            raise
        if state.snapshot.status == TimerStatus.STOPPED:
            await self.forget(match_id)
        return state

    async def forget(self, match_id: uuid.UUID) -> None:
        controller = self._controllers.pop(match_id, None)
        if controller is not None:
            await controller.close()

    async def close(self) -> None:
        for match_id in list(self._controllers):
            await self.forget(match_id)
