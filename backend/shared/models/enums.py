"""Domain enumerations for the Kho-Kho Live platform."""
from __future__ import annotations

from enum import Enum
from typing import Any


class TimerStatus(str, Enum):
    RUNNING = "running"
    PAUSED = "paused"
    BREAK = "break"
    STOPPED = "stopped"

    @property
    def is_ticking(self) -> bool:
        """Whether the displayed value moves between snapshots."""
        return self in (TimerStatus.RUNNING, TimerStatus.BREAK)

    @classmethod
    def parse(cls, raw: Any) -> "TimerStatus":
        """Map a loosely-typed payload value to a status; unknown values are STOPPED."""
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                pass
        return cls.STOPPED


class MatchStatus(str, Enum):
    SCHEDULED = "scheduled"
    LIVE = "live"
    FINISHED = "finished"
    CANCELLED = "cancelled"

    @classmethod
    def parse(cls, raw: Any) -> "MatchStatus | None":
        if isinstance(raw, cls):
            return raw
        if isinstance(raw, str):
            try:
                return cls(raw.strip().lower())
            except ValueError:
                return None
        return None


class BreakKind(str, Enum):
    """Break between turns or between innings."""
    TURN = "turn"
    INNING = "inning"


class TimerBadge(str, Enum):
    LIVE = "LIVE"
    PAUSED = "PAUSED"
    BREAK = "BREAK"
    FINISHED = "FINISHED"


class TimerCommand(str, Enum):
    START = "start"
    PAUSE = "pause"
    RESUME = "resume"
    BREAK = "break"
    END_BREAK = "end-break"
    STOP = "stop"
    RESET = "reset"


class WSServerMsgType(str, Enum):
    TIMER = "timer"
    PONG = "pong"
    ERROR = "error"
