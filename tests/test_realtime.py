"""
Tests for kyc_shield/integrations/realtime.py and the /ws/history and
/ws/chat sockets.
"""

import asyncio
import json
from datetime import datetime, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from starlette.websockets import WebSocketDisconnect

from kyc_shield.schemas.auth import UserIdentity
from kyc_shield.schemas.verification import FAILED_VERDICT
from kyc_shield.integrations.realtime import LocalFeed, Subscription
from kyc_shield.services import scans_service
from tests.conftest import DEVICE_ID, HEADERS


def _ids(docs):
    return sorted(doc.id for doc in docs)


async def _drain(subscription):
    return [payload async for payload in subscription.updates()]


# ---------------------------------------------------------------------------
# Subscription
# ---------------------------------------------------------------------------


async def test_subscription_pushes_initial_and_later_snapshots(mock_firebase):
    collection = mock_firebase.collection("scans")
    subscription = Subscription(collection.where("owner", "==", "alice"), _ids).start()

    collection.document("a1").set({"owner": "alice"})
    collection.document("b1").set({"owner": "bob"})
    await asyncio.sleep(0)
    subscription.cancel()

    assert await _drain(subscription) == [[], ["a1"], ["a1"]]


async def test_no_updates_after_cancel(mock_firebase):
    collection = mock_firebase.collection("chats")
    subscription = Subscription(collection, _ids).start()
    subscription.cancel()

    collection.document("late").set({"owner": "alice"})

    assert await _drain(subscription) == [[]]
    assert collection._watches == []


async def test_transform_failure_is_skipped(mock_firebase):
    collection = mock_firebase.collection("scans")

    def explode(docs):
        raise ValueError("bad document")

    subscription = Subscription(collection, explode).start()
    subscription.cancel()
    assert await _drain(subscription) == []


# ---------------------------------------------------------------------------
# LocalFeed
# ---------------------------------------------------------------------------


async def test_local_feed_pushes_on_start_and_refresh():
    items = ["a"]
    feed = LocalFeed("chat", lambda: list(items)).start()

    items.append("b")
    feed.refresh()
    feed.cancel()
    feed.refresh()

    assert await _drain(feed) == [["a"], ["a", "b"]]


# ---------------------------------------------------------------------------
# WebSockets
# ---------------------------------------------------------------------------


def test_history_socket_anonymous_gets_empty_list(client):
    with client.websocket_connect(f"/ws/history?device_id={DEVICE_ID}") as ws:
        assert json.loads(ws.receive_text()) == []


def test_chat_socket_anonymous_gets_local_transcript(client):
    with client.websocket_connect(f"/ws/chat?device_id={DEVICE_ID}") as ws:
        messages = json.loads(ws.receive_text())
    assert [m["id"] for m in messages] == ["init"]


def test_socket_rejects_bad_device_id(client):
    with client.websocket_connect("/ws/history?device_id=bad id") as ws:
        assert json.loads(ws.receive_text())["type"] == "error"


def test_history_socket_streams_new_scans(client, mock_firebase, registry):
    registry.get(DEVICE_ID).auth.user = UserIdentity(uid="alice")
    mock_firebase.seed("scans", "old", {
        "owner": "alice",
        "occurredAt": datetime(2000, 1, 1, tzinfo=timezone.utc),
        "isReal": True,
        "confidence": 90,
        "issues": [],
        "message": "ok",
    })

    with client.websocket_connect(f"/ws/history?device_id={DEVICE_ID}") as ws:
        assert [r["id"] for r in json.loads(ws.receive_text())] == ["old"]

        new_id = scans_service.save_scan("alice", FAILED_VERDICT)
        records = json.loads(ws.receive_text())
        assert [r["id"] for r in records] == [new_id, "old"]
        assert records[0]["message"] == "Verification Failed"


def test_socket_closed_on_sign_out(client, mock_firebase, registry):
    state = registry.get(DEVICE_ID)
    state.auth.user = UserIdentity(uid="alice")

    with client.websocket_connect(f"/ws/chat?device_id={DEVICE_ID}") as ws:
        ws.receive_text()
        state.sign_out()
        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 1000
    assert state.subscriptions == set()


def test_anonymous_socket_closed_on_sign_in(client, registry):
    with client.websocket_connect(f"/ws/history?device_id={DEVICE_ID}") as ws:
        assert json.loads(ws.receive_text()) == []
        assert len(registry.get(DEVICE_ID).subscriptions) == 1

        with (
            patch("kyc_shield.integrations.firebase.is_ready", return_value=True),
            patch("kyc_shield.integrations.firebase.verify_id_token", return_value={"uid": "alice"}),
        ):
            response = client.post("/api/auth/login", json={"id_token": "tok"}, headers=HEADERS)
        assert response.status_code == 200

        with pytest.raises(WebSocketDisconnect) as exc:
            ws.receive_text()
    assert exc.value.code == 1000
    assert registry.get(DEVICE_ID).subscriptions == set()


def test_anonymous_chat_socket_pushes_new_messages(client):
    with (
        patch("kyc_shield.integrations.gemini.client.create_chat", return_value=MagicMock()),
        patch("kyc_shield.integrations.gemini.client.send_chat_message", AsyncMock(return_value="Use daylight.")),
    ):
        with client.websocket_connect(f"/ws/chat?device_id={DEVICE_ID}") as ws:
            assert [m["id"] for m in json.loads(ws.receive_text())] == ["init"]

            response = client.post("/api/chat/messages", json={"text": "Any tips?"}, headers=HEADERS)
            assert response.status_code == 200

            messages = json.loads(ws.receive_text())
    assert [m["sender"] for m in messages] == ["assistant", "user", "assistant"]
    assert messages[-1]["text"] == "Use daylight."
