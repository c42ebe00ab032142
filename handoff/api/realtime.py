"""
Realtime WebSocket - pushes row changes for one table/column/value filter
"""
import asyncio
import contextlib
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect
from fastapi.encoders import jsonable_encoder

from handoff.api.auth import user_from_token
from handoff.errors import AuthError
from handoff.services.realtime import Change

logger = logging.getLogger(__name__)

router = APIRouter()


@router.websocket("/ws")
async def realtime_websocket(
    websocket: WebSocket,
    table: str = Query(""),
    column: str = Query(""),
    value: str = Query(""),
    token: str = Query(""),
):
    """Subscribe, then forward every matching change until the client goes away"""
    app = websocket.app
    try:
        async with app.state.session_factory() as session:
            user = await user_from_token(session, app.state.settings, token)
    except AuthError:
        await websocket.close(code=4001, reason="Unauthorized")
        return

    await websocket.accept()

    queue: asyncio.Queue = asyncio.Queue()
    subscription = app.state.realtime.subscribe(table, column, value, queue.put_nowait)
    if not subscription.subscribed:
        await websocket.send_json({"type": "error", "message": subscription.error})
        await websocket.close(code=4400)
        return

    logger.info(f"Realtime socket for user {user.id} on {table}:{column}={value}")
    await websocket.send_json({"type": "subscribed", "table": table, "column": column, "value": value})

    async def forward() -> None:
        while True:
            change: Change = await queue.get()
            await websocket.send_json(jsonable_encoder({"type": "change", **change.to_dict()}))

    sender = asyncio.create_task(forward())
    try:
        # Incoming frames are ignored; receiving only detects the disconnect
        while True:
            await websocket.receive_text()
    except WebSocketDisconnect:
        logger.debug(f"Realtime socket closed for user {user.id}")
    finally:
        subscription.unsubscribe()
        sender.cancel()
        try:
            with contextlib.suppress(asyncio.CancelledError):
                await sender
        except Exception:
            logger.exception(f"Realtime sender failed for user {user.id}")
