from datetime import datetime
from enum import Enum
from typing import Literal, Optional, List

from pydantic import BaseModel, ConfigDict, Field


class Stage(str, Enum):
    IDLE = "idle"
    CAPTURING = "capturing"
    PROMPTING = "prompting"
    ANALYZING = "analyzing"
    RESULT = "result"


class Verdict(BaseModel):
    """Outcome of one AI analysis call. Immutable once built."""
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    is_real: bool = Field(alias="isReal")
    confidence: int = Field(ge=0, le=100)
    issues: List[str]
    message: str

    @property
    def headline(self) -> str:
        return "KYC APPROVED" if self.is_real else "DEEPFAKE DETECTED"

    @property
    def verdict_code(self) -> str:
        return "HUMAN_VERIFIED" if self.is_real else "SPOOF_ATTEMPT"


# Returned whenever the verdict call times out or fails outright.
FAILED_VERDICT = Verdict(
    is_real=False,
    confidence=0,
    issues=["System Timeout", "Network Error"],
    message="Verification Failed",
)

# Field-level defaults for an untrusted response.
DEFAULT_IS_REAL = False
DEFAULT_CONFIDENCE = 0
DEFAULT_ISSUES = ("Analysis Error",)
DEFAULT_MESSAGE = "Verification Inconclusive"


class Metrics(BaseModel):
    confidence: int = 0
    blink_rate: int = 0
    texture_status: Literal["checking", "clean", "artifacts"] = "checking"
    # Only one still frame is analyzed; blink rate is display filler.
    blink_rate_simulated: bool = True


class ActivityLogEntry(BaseModel):
    id: str
    timestamp: datetime
    message: str
    kind: Literal["info", "success", "alert", "system"] = "info"


class VerdictView(BaseModel):
    is_real: bool
    confidence: int
    issues: List[str]
    message: str
    headline: str
    verdict_code: str


class SessionStateResponse(BaseModel):
    stage: Stage
    instruction: Optional[str] = None
    has_captured_frame: bool = False
    verdict: Optional[VerdictView] = None
    metrics: Metrics
    error: Optional[str] = None
    activity_log: List[ActivityLogEntry] = []
