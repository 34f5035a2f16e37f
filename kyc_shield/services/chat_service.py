"""
Assistant chat: Gemini conversation per client plus the message transcript.

Signed-in clients keep their transcript in the `chats` collection (the 50
most recent messages are read back). Anonymous clients keep it in memory
for as long as their client state lives.
"""

import logging
import uuid
from datetime import datetime, timezone

from fastapi.concurrency import run_in_threadpool
from firebase_admin import firestore
from google.cloud.firestore_v1.base_query import FieldFilter

from kyc_shield.config import settings
from kyc_shield.core.errors import PersistenceError
from kyc_shield.integrations import firebase as firebase_module
from kyc_shield.integrations.gemini import client as gemini_module
from kyc_shield.integrations.gemini.prompts import GREETING
from kyc_shield.schemas.auth import SessionContext
from kyc_shield.schemas.chat import ChatMessage

logger = logging.getLogger(__name__)

INIT_ERROR_REPLY = "Error: AI Service not initialized. Please check your API Key."
CONNECTION_ERROR_REPLY = "Connection error: Unable to reach Gemini servers. Please try again."
EMPTY_REPLY = "I processed that, but have no text response."


def greeting_message() -> ChatMessage:
    return ChatMessage(id="init", sender="assistant", text=GREETING, sent_at=datetime.now(timezone.utc))


class Conversation:
    """One client's Gemini chat and its local (anonymous) transcript."""

    def __init__(self):
        self._chat = None
        self.local_messages: list[ChatMessage] = [greeting_message()]

    def reset_local(self) -> None:
        self.local_messages = [greeting_message()]

    async def reply(self, text: str) -> str:
        """Forwards `text` to the assistant. Never raises; failures become reply text."""
        if self._chat is None:
            try:
                self._chat = gemini_module.create_chat()
            except Exception as e:
                logger.error(f"[CHAT] Failed to initialize Gemini chat: {e}")
                return INIT_ERROR_REPLY

        try:
            answer = await gemini_module.send_chat_message(self._chat, text)
        except Exception as e:
            logger.error(f"[CHAT] Gemini API error: {e}")
            return CONNECTION_ERROR_REPLY

        return answer or EMPTY_REPLY


def transcript_query(db, owner: str):
    """Owner's most recent messages, newest first (callers reverse)."""
    return (
        db.collection(settings.chats_collection)
        .where(filter=FieldFilter("owner", "==", owner))
        .order_by("occurredAt", direction=firestore.Query.DESCENDING)
        .limit(settings.chat_history_limit)
    )


def messages_from_snapshot(docs) -> list[ChatMessage]:
    messages = []
    for doc in docs:
        data = doc.to_dict()
        messages.append(ChatMessage(
            id=doc.id,
            sender=data.get("sender", "assistant"),
            text=data.get("text", ""),
            sent_at=data.get("occurredAt") or datetime.now(timezone.utc),
        ))
    messages.reverse()
    return messages or [greeting_message()]


def _uses_firestore(context: SessionContext) -> bool:
    return context.is_signed_in and firebase_module.db is not None


def get_transcript(context: SessionContext, conversation: Conversation) -> list[ChatMessage]:
    if not _uses_firestore(context):
        return list(conversation.local_messages)

    try:
        docs = transcript_query(firebase_module.db, context.user.uid).stream()
        return messages_from_snapshot(docs)
    except Exception as e:
        logger.error(f"[CHAT] Transcript read failed for {context.user.uid}: {e}")
        raise PersistenceError("Unable to load chat history.") from e


def _store(context: SessionContext, conversation: Conversation, sender: str, text: str) -> ChatMessage:
    message = ChatMessage(id=uuid.uuid4().hex, sender=sender, text=text, sent_at=datetime.now(timezone.utc))

    if not _uses_firestore(context):
        conversation.local_messages.append(message)
        return message

    try:
        _, doc_ref = firebase_module.db.collection(settings.chats_collection).add({
            "owner": context.user.uid,
            "sender": sender,
            "text": text,
            "occurredAt": message.sent_at,
        })
        message.id = doc_ref.id
    except Exception as e:
        # The reply is still returned to the caller; only the cloud copy is lost.
        logger.error(f"[CHAT] Failed to persist {sender} message for {context.user.uid}: {e}")
    return message


async def send_message(context: SessionContext, conversation: Conversation, text: str) -> list[ChatMessage]:
    """Stores the user's message, asks the assistant, stores the reply. Returns both."""
    text = text.strip()
    user_message = await run_in_threadpool(_store, context, conversation, "user", text)
    answer = await conversation.reply(text)
    assistant_message = await run_in_threadpool(_store, context, conversation, "assistant", answer)
    return [user_message, assistant_message]
