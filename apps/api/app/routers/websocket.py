"""
WebSocket router for real-time monitoring events.

Observers join the topic of one baby and receive session-started,
session-ended, settings-updated and safety-alert events as
{"type": <event>, "data": {...}} JSON messages.
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from starlette.concurrency import run_in_threadpool

from app.core.deps import AuthenticationError, authenticate_token, extract_token
from app.core.permissions import has_access
from app.core.websocket import manager
from app.db.models import Baby
from app.db.session import SessionLocal

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


def _authorize(token: str | None, baby_id: UUID) -> tuple[int, str] | None:
    """Return a (close code, reason) pair when the observer may not join."""
    db = SessionLocal()
    try:
        try:
            user = authenticate_token(db, token)
        except AuthenticationError as e:
            return 4001, str(e)

        baby = db.get(Baby, baby_id)
        if baby is None or not baby.is_active or not has_access(baby, user.id):
            return 4003, "Access denied to this baby"
        return None
    finally:
        db.close()


@router.websocket("/monitoring/{baby_id}")
async def websocket_monitoring(
    websocket: WebSocket,
    baby_id: UUID,
    token: str | None = Query(None),
):
    """
    WebSocket endpoint for one baby's monitoring events.

    Authenticates via:
    1. JWT token in query parameter (?token=...)
    2. Or session cookie / Bearer header

    Closes with 4001 when unauthenticated and 4003 without access.
    """
    token = token or extract_token(websocket.headers, websocket.cookies)
    denied = await run_in_threadpool(_authorize, token, baby_id)
    if denied:
        code, reason = denied
        await websocket.close(code=code, reason=reason)
        return

    topic = str(baby_id)
    await manager.subscribe(topic, websocket)
    logger.debug("Observer joined monitoring topic %s", topic)

    try:
        # Keep connection alive, handle incoming messages (heartbeat/pings)
        while True:
            try:
                data = await websocket.receive_text()

                if data == "ping":
                    await websocket.send_text("pong")
            except WebSocketDisconnect:
                break
    finally:
        await manager.unsubscribe(topic, websocket)
