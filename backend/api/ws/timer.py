"""
WebSocket bridge between one viewer connection and a LiveTimerSession.

Server messages:
- timer: TimerDisplay, sent on every snapshot change and every local tick
- pong:  reply to {"op": "ping"}
- error: unparseable or unknown client message
"""
from __future__ import annotations

import json
import uuid

from fastapi import WebSocket, WebSocketDisconnect

from shared.models.domain import TimerDisplay, WSEnvelope
from shared.models.enums import WSServerMsgType
from shared.utils.logging import get_logger
from shared.utils.metrics import WS_TIMER_SESSIONS
from viewer.engine import Clock
from viewer.feed import TimerSource
from viewer.session import LiveTimerSession

logger = get_logger(__name__)


async def serve_timer_socket(
    ws: WebSocket,
    match_id: uuid.UUID,
    source: TimerSource,
    clock: Clock,
) -> None:
    """Run the connection until the client goes away; the session is always closed."""
    await ws.accept()
    WS_TIMER_SESSIONS.inc()
    log = logger.bind(match_id=str(match_id))
    log.info("ws_timer_connected", client=f"{ws.client.host}:{ws.client.port}" if ws.client else "unknown")

    async def push(display: TimerDisplay) -> None:
        envelope = WSEnvelope(
            type=WSServerMsgType.TIMER,
            match_id=match_id,
            data=display.model_dump(mode="json"),
        )
        await ws.send_text(envelope.model_dump_json())

    session = LiveTimerSession(match_id, source, push, clock=clock)
    try:
        await session.start()
        while True:
            raw = await ws.receive_text()
            await _handle_client_message(ws, match_id, raw)
    except WebSocketDisconnect as exc:
        log.info("ws_timer_disconnected", code=exc.code)
    finally:
        await session.close()
        WS_TIMER_SESSIONS.dec()


async def _handle_client_message(ws: WebSocket, match_id: uuid.UUID, raw: str) -> None:
    try:
        msg = json.loads(raw)
    except json.JSONDecodeError:
        await _send(ws, WSEnvelope(type=WSServerMsgType.ERROR, match_id=match_id, data={"message": "invalid_json"}))
        return

    if isinstance(msg, dict) and msg.get("op") == "ping":
        await _send(ws, WSEnvelope(type=WSServerMsgType.PONG, match_id=match_id))
        return
    await _send(ws, WSEnvelope(type=WSServerMsgType.ERROR, match_id=match_id, data={"message": "unknown_op"}))


async def _send(ws: WebSocket, envelope: WSEnvelope) -> None:
    await ws.send_text(envelope.model_dump_json())
