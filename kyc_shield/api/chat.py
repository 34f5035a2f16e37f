"""
Assistant chat routes.
"""

from typing import List

from fastapi import APIRouter, Depends, HTTPException
from fastapi.concurrency import run_in_threadpool

from kyc_shield.core.dependencies import get_client_state
from kyc_shield.core.rate_limiter import check_rate_limit
from kyc_shield.schemas.chat import ChatMessage, ChatRequest
from kyc_shield.services import chat_service
from kyc_shield.services.clients import ClientState

router = APIRouter(prefix="/api/chat", tags=["Chat"])


@router.get("/messages", response_model=List[ChatMessage])
async def get_messages(state: ClientState = Depends(get_client_state)):
    return await run_in_threadpool(chat_service.get_transcript, state.context(), state.conversation)


@router.post("/messages", response_model=List[ChatMessage])
async def post_message(payload: ChatRequest, state: ClientState = Depends(get_client_state)):
    """Returns the stored user message followed by the assistant's reply."""
    if not payload.text.strip():
        raise HTTPException(status_code=400, detail="Message is empty")

    check_rate_limit(state.device_id)
    messages = await chat_service.send_message(state.context(), state.conversation, payload.text)
    state.refresh_local("chat")
    return messages
