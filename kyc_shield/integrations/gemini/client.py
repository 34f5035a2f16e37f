"""
Gemini API client: initialization, face-frame verdicts and assistant chat.

`client` starts as None. Call `initialize()` inside the FastAPI lifespan;
without GEMINI_API_KEY the client stays None and every call degrades to
the documented failure outputs instead of crashing the service.
"""

import os
import json
import logging
from typing import Any

from google import genai
from google.genai import types

from kyc_shield.config import settings
from kyc_shield.core.errors import ConfigurationError, MalformedResponseError, TransportError
from kyc_shield.integrations.gemini.prompts import ASSISTANT_PERSONA, VERDICT_PROMPT

logger = logging.getLogger(__name__)

client = None  # genai.Client | None


def initialize() -> None:
    global client

    api_key = os.getenv("GEMINI_API_KEY")
    if not api_key:
        logger.warning("[STARTUP] GEMINI_API_KEY not set. Verdicts and chat will report failures.")
        return

    try:
        client = genai.Client(
            api_key=api_key,
            http_options=types.HttpOptions(
                timeout=settings.gemini_http_timeout_ms,
                retry_options=types.HttpRetryOptions(
                    attempts=settings.gemini_max_retries,
                    initial_delay=settings.gemini_retry_initial_delay,
                    max_delay=settings.gemini_retry_max_delay,
                    exp_base=settings.gemini_retry_exp_base,
                    http_status_codes=[408, 429, 500, 502, 503, 504]
                )
            )
        )
        logger.info("[STARTUP] Gemini client initialized")
    except Exception as e:
        logger.error(f"[STARTUP] Failed to initialize Gemini client: {e}")


async def analyze_face_frame(image_bytes: bytes) -> Any:
    """
    Sends one JPEG frame for liveness / deepfake analysis.

    Returns the decoded JSON body exactly as the model produced it; shape
    validation is the caller's job. Raises TransportError when the call
    fails and MalformedResponseError when the body is empty or not JSON.
    """
    if client is None:
        raise TransportError("AI Service not initialized. Please check your API Key.")

    config = types.GenerateContentConfig(
        response_mime_type="application/json",
    )

    try:
        response = await client.aio.models.generate_content(
            model=settings.gemini_verdict_model,
            contents=[
                types.Part.from_bytes(data=image_bytes, mime_type="image/jpeg"),
                VERDICT_PROMPT,
            ],
            config=config
        )
    except Exception as e:
        logger.error(f"[GEMINI] analyze_face_frame error: {e}")
        raise TransportError(f"Face analysis failed: {e}") from e

    text = response.text
    if not text:
        raise MalformedResponseError("No response from AI")

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        logger.error(f"[GEMINI] Failed to parse AI response: {text[:200]}")
        raise MalformedResponseError() from e


def create_chat():
    """Opens a chat pre-loaded with the assistant persona."""
    if client is None:
        raise ConfigurationError("AI Service not initialized. Please check your API Key.")

    return client.aio.chats.create(
        model=settings.gemini_chat_model,
        config=types.GenerateContentConfig(system_instruction=ASSISTANT_PERSONA),
    )


async def send_chat_message(chat, message: str) -> str | None:
    response = await chat.send_message(message)
    return response.text
