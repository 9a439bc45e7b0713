"""
WebSocket delivery of live subscriptions.

The socket is authenticated from the `token` query parameter, then every
snapshot is rendered and sent as one JSON frame. A client disconnect
cancels the subscription, which ends the stream.
"""

import asyncio
from typing import Any, Callable, List, TypeVar

import structlog
from fastapi import WebSocket, WebSocketDisconnect, status

from dispute_desk.core.exceptions import ListenerError
from dispute_desk.services.change_feed import Subscription
from dispute_desk.services.session_store import SessionStore

logger = structlog.get_logger()

T = TypeVar("T")


async def accept_authenticated(websocket: WebSocket, store: SessionStore, token: str | None) -> bool:
    user = await store.get_current_user(token)
    if user is None:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return False
    await websocket.accept()
    return True


async def _release_on_disconnect(websocket: WebSocket, subscription: Subscription) -> None:
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
    finally:
        subscription.cancel()


async def stream_snapshots(
    websocket: WebSocket,
    subscription: Subscription[T],
    render: Callable[[List[T]], Any],
) -> None:
    watcher = asyncio.create_task(_release_on_disconnect(websocket, subscription))
    try:
        async with subscription:
            async for snapshot in subscription:
                await websocket.send_json(render(snapshot))
    except ListenerError as e:
        await websocket.send_json({"error": e.detail})
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
    except WebSocketDisconnect:
        pass
    finally:
        watcher.cancel()
        logger.info("live_stream_closed", topic=subscription.topic)
