"""
Tests for kyc_shield/services/chat_service.py and /api/chat/messages.

The Gemini chat is replaced with AsyncMock / MagicMock objects; no network.
"""

import asyncio
import time
from datetime import datetime, timedelta, timezone
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from kyc_shield.core.errors import ConfigurationError
from kyc_shield.integrations.gemini.prompts import GREETING
from kyc_shield.schemas.auth import SessionContext, UserIdentity
from kyc_shield.services import chat_service
from kyc_shield.services.chat_service import (
    CONNECTION_ERROR_REPLY,
    EMPTY_REPLY,
    INIT_ERROR_REPLY,
    Conversation,
)
from tests.conftest import HEADERS

ANON = SessionContext(device_id="dev-c")
ALICE = SessionContext(device_id="dev-c", user=UserIdentity(uid="alice"))


@pytest.fixture
def gemini_chat():
    """Patch chat creation; `.send` is the per-message AsyncMock."""
    chat = MagicMock(name="chat")
    send = AsyncMock(return_value="Hold the document flat under even light.")
    with (
        patch("kyc_shield.integrations.gemini.client.create_chat", return_value=chat) as create,
        patch("kyc_shield.integrations.gemini.client.send_chat_message", send),
    ):
        yield MagicMock(chat=chat, create=create, send=send)


# ---------------------------------------------------------------------------
# Conversation.reply
# ---------------------------------------------------------------------------


async def test_reply_returns_model_text(gemini_chat):
    conversation = Conversation()
    assert await conversation.reply("Why was I rejected?") == "Hold the document flat under even light."
    gemini_chat.send.assert_awaited_once_with(gemini_chat.chat, "Why was I rejected?")


async def test_chat_is_created_once_and_reused(gemini_chat):
    conversation = Conversation()
    await conversation.reply("one")
    await conversation.reply("two")
    assert gemini_chat.create.call_count == 1
    assert gemini_chat.send.await_count == 2


async def test_reply_without_client_is_init_error():
    conversation = Conversation()
    with patch("kyc_shield.integrations.gemini.client.create_chat", side_effect=ConfigurationError()):
        assert await conversation.reply("hello") == INIT_ERROR_REPLY


async def test_reply_transport_failure_is_connection_error(gemini_chat):
    gemini_chat.send.side_effect = RuntimeError("socket closed")
    assert await Conversation().reply("hello") == CONNECTION_ERROR_REPLY


@pytest.mark.parametrize("text", ["", None])
async def test_empty_model_text_gets_placeholder(gemini_chat, text):
    gemini_chat.send.return_value = text
    assert await Conversation().reply("hello") == EMPTY_REPLY


# ---------------------------------------------------------------------------
# Transcript
# ---------------------------------------------------------------------------


def test_new_conversation_starts_with_greeting():
    messages = Conversation().local_messages
    assert len(messages) == 1
    assert messages[0].id == "init"
    assert messages[0].sender == "assistant"
    assert messages[0].text == GREETING


async def test_anonymous_messages_stay_local(gemini_chat, mock_firebase):
    conversation = Conversation()
    user_msg, reply = await chat_service.send_message(ANON, conversation, "  hi there ")

    assert user_msg.text == "hi there"
    assert reply.sender == "assistant"
    assert [m.sender for m in conversation.local_messages] == ["assistant", "user", "assistant"]
    assert mock_firebase.documents("chats") == []
    assert chat_service.get_transcript(ANON, conversation) == conversation.local_messages


async def test_signed_in_messages_are_persisted(gemini_chat, mock_firebase):
    conversation = Conversation()
    user_msg, reply = await chat_service.send_message(ALICE, conversation, "What is moire?")

    docs = mock_firebase.documents("chats")
    assert [(d["owner"], d["sender"], d["text"]) for d in docs] == [
        ("alice", "user", "What is moire?"),
        ("alice", "assistant", "Hold the document flat under even light."),
    ]
    assert user_msg.id.startswith("doc")
    assert len(conversation.local_messages) == 1


async def test_persistence_failure_still_returns_reply(gemini_chat, mock_firebase, monkeypatch):
    def boom(data):
        raise RuntimeError("unavailable")

    monkeypatch.setattr(mock_firebase.collection("chats"), "add", boom)
    user_msg, reply = await chat_service.send_message(ALICE, Conversation(), "hello")
    assert reply.text == "Hold the document flat under even light."


async def test_slow_firestore_write_does_not_block_the_loop(gemini_chat, mock_firebase, monkeypatch):
    chats = mock_firebase.collection("chats")
    original_add = chats.add

    def slow_add(data):
        time.sleep(0.1)
        return original_add(data)

    monkeypatch.setattr(chats, "add", slow_add)

    send = asyncio.create_task(chat_service.send_message(ALICE, Conversation(), "hello"))
    ticks = 0
    while not send.done():
        await asyncio.sleep(0.01)
        ticks += 1

    assert ticks > 5
    assert len(mock_firebase.documents("chats")) == 2


def test_signed_in_transcript_is_50_most_recent_oldest_first(mock_firebase):
    start = datetime(2026, 1, 1, tzinfo=timezone.utc)
    for i in range(60):
        mock_firebase.seed("chats", f"m{i:02d}", {
            "owner": "alice",
            "sender": "user" if i % 2 == 0 else "assistant",
            "text": f"message {i}",
            "occurredAt": start + timedelta(seconds=i),
        })
    mock_firebase.seed("chats", "bob-1", {
        "owner": "bob", "sender": "user", "text": "not yours", "occurredAt": start + timedelta(hours=1),
    })

    messages = chat_service.get_transcript(ALICE, Conversation())

    assert len(messages) == 50
    assert messages[0].text == "message 10"
    assert messages[-1].text == "message 59"
    assert all(m.text != "not yours" for m in messages)


def test_signed_in_empty_transcript_shows_greeting(mock_firebase):
    messages = chat_service.get_transcript(ALICE, Conversation())
    assert [m.id for m in messages] == ["init"]


# ---------------------------------------------------------------------------
# /api/chat/messages
# ---------------------------------------------------------------------------


def test_get_messages_initial_greeting(client):
    response = client.get("/api/chat/messages", headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert len(body) == 1
    assert body[0]["text"] == GREETING


def test_post_message_returns_pair(client, gemini_chat):
    response = client.post("/api/chat/messages", json={"text": "How do I retry?"}, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert [m["sender"] for m in body] == ["user", "assistant"]
    assert body[1]["text"] == "Hold the document flat under even light."

    transcript = client.get("/api/chat/messages", headers=HEADERS).json()
    assert len(transcript) == 3


def test_post_blank_message_rejected(client, gemini_chat):
    response = client.post("/api/chat/messages", json={"text": "   "}, headers=HEADERS)
    assert response.status_code == 400
    gemini_chat.send.assert_not_awaited()


def test_post_message_without_ai_client(client):
    with patch("kyc_shield.integrations.gemini.client.client", None):
        response = client.post("/api/chat/messages", json={"text": "hello"}, headers=HEADERS)
    assert response.status_code == 200
    assert response.json()[1]["text"] == INIT_ERROR_REPLY
