"""
Verdict acquisition: one deadline-bounded Gemini call plus field-level
validation of whatever came back.

The model is treated as untrusted. Each of the four verdict fields is
checked on its own; a field with the wrong shape, type or range is
replaced by its safe default while the valid ones pass through.
"""

import logging
import math
from typing import Any

from kyc_shield.config import settings
from kyc_shield.core.deadline import first_of
from kyc_shield.integrations.gemini import client as gemini_module
from kyc_shield.schemas.verification import (
    DEFAULT_CONFIDENCE,
    DEFAULT_ISSUES,
    DEFAULT_IS_REAL,
    DEFAULT_MESSAGE,
    Verdict,
)

logger = logging.getLogger(__name__)


def _valid_confidence(value: Any) -> bool:
    # bool is an int subclass; "true" is not a score.
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    if isinstance(value, float) and not math.isfinite(value):
        return False
    return 0 <= value <= 100


def _coerce_confidence(value: Any) -> int:
    """Half-up rounding: 96.5 becomes 97."""
    if not _valid_confidence(value):
        return DEFAULT_CONFIDENCE
    return int(math.floor(value + 0.5))


def _valid_issues(value: Any) -> bool:
    return isinstance(value, list) and all(isinstance(item, str) for item in value)


def _coerce_issues(value: Any) -> list[str]:
    return list(value) if _valid_issues(value) else list(DEFAULT_ISSUES)


def normalize_verdict(raw: Any) -> Verdict:
    """Builds a Verdict from an untrusted model response."""
    if not isinstance(raw, dict):
        logger.warning(f"[ANALYSIS] Response is {type(raw).__name__}, not an object. Using defaults.")
        raw = {}

    is_real = raw.get("isReal")
    message = raw.get("message")

    verdict = Verdict(
        is_real=is_real if isinstance(is_real, bool) else DEFAULT_IS_REAL,
        confidence=_coerce_confidence(raw.get("confidence")),
        issues=_coerce_issues(raw.get("issues")),
        message=message if isinstance(message, str) else DEFAULT_MESSAGE,
    )

    defaulted = [
        name for name, ok in (
            ("isReal", isinstance(is_real, bool)),
            ("confidence", _valid_confidence(raw.get("confidence"))),
            ("issues", _valid_issues(raw.get("issues"))),
            ("message", isinstance(message, str)),
        ) if not ok
    ]
    if defaulted:
        logger.info(f"[ANALYSIS] Defaulted verdict fields: {defaulted}")
    return verdict


async def request_verdict(image_bytes: bytes, timeout: float | None = None) -> Verdict:
    """
    Issues exactly one verdict call raced against the analysis deadline.

    Raises AnalysisTimeoutError if the deadline wins, TransportError (or
    MalformedResponseError) if the call itself fails.
    """
    if timeout is None:
        timeout = settings.analysis_timeout_sec

    raw = await first_of(gemini_module.analyze_face_frame(image_bytes), timeout)
    return normalize_verdict(raw)
