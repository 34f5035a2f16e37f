"""
WebSocket push of scan history and chat transcript.

One feed per socket: a Firestore subscription for signed-in clients, a
LocalFeed over the in-memory state for anonymous ones. It is cancelled
when the socket disconnects, and also when the client's identity changes
(the socket is then closed so the frontend reconnects under the new
identity).
"""

import asyncio
import json
import logging
from typing import Callable

from fastapi import APIRouter, Query, WebSocket
from starlette.websockets import WebSocketDisconnect

from kyc_shield.core import dependencies
from kyc_shield.core.auth import is_valid_device_id
from kyc_shield.integrations import firebase as firebase_module
from kyc_shield.integrations.realtime import LocalFeed, Subscription
from kyc_shield.services import chat_service, scans_service
from kyc_shield.services.clients import ClientState

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Realtime"])


def _dump(items) -> str:
    return json.dumps([item.model_dump(mode="json") for item in items])


async def _wait_for_disconnect(websocket: WebSocket) -> None:
    while True:
        try:
            message = await websocket.receive()
        except WebSocketDisconnect:
            return
        if message["type"] == "websocket.disconnect":
            return


async def _serve(websocket: WebSocket, state: ClientState, subscription) -> None:
    state.track(subscription)

    async def forward():
        async for payload in subscription.updates():
            await websocket.send_text(payload)

    forward_task = asyncio.create_task(forward())
    disconnect_task = asyncio.create_task(_wait_for_disconnect(websocket))
    try:
        done, pending = await asyncio.wait(
            {forward_task, disconnect_task}, return_when=asyncio.FIRST_COMPLETED
        )
        for task in pending:
            task.cancel()
        if forward_task in done and disconnect_task not in done:
            # Subscription ended from our side (identity change).
            await websocket.close(code=1000)
    finally:
        subscription.cancel()
        state.forget(subscription)


async def _stream(websocket: WebSocket, device_id: str, topic: str, make_query: Callable, transform: Callable, local_items: Callable) -> None:
    await websocket.accept()
    if not is_valid_device_id(device_id):
        await websocket.send_text(json.dumps({"type": "error", "detail": "Invalid device_id"}))
        await websocket.close(code=1008)
        return

    state = dependencies.registry.get(device_id)
    context = state.context()
    db = firebase_module.db

    if not context.is_signed_in or db is None:
        feed = LocalFeed(topic, lambda: _dump(local_items(state))).start()
        await _serve(websocket, state, feed)
        return

    subscription = Subscription(
        make_query(db, context.user.uid),
        lambda docs: _dump(transform(docs)),
    ).start()
    logger.info(f"[REALTIME] {websocket.url.path} subscribed for {context.user.uid}")
    await _serve(websocket, state, subscription)


@router.websocket("/ws/history")
async def history_socket(websocket: WebSocket, device_id: str = Query("")):
    await _stream(
        websocket,
        device_id,
        "history",
        scans_service.history_query,
        scans_service.records_from_snapshot,
        lambda state: [],
    )


@router.websocket("/ws/chat")
async def chat_socket(websocket: WebSocket, device_id: str = Query("")):
    await _stream(
        websocket,
        device_id,
        "chat",
        chat_service.transcript_query,
        chat_service.messages_from_snapshot,
        lambda state: state.conversation.local_messages,
    )
