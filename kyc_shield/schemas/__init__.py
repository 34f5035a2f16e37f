from kyc_shield.schemas.verification import (
    Stage,
    Verdict,
    FAILED_VERDICT,
    Metrics,
    ActivityLogEntry,
    VerdictView,
    SessionStateResponse,
)
from kyc_shield.schemas.auth import UserIdentity, SessionContext, LoginRequest, AuthStateResponse
from kyc_shield.schemas.chat import ChatMessage, ChatRequest
from kyc_shield.schemas.history import ScanRecord

__all__ = [
    "Stage",
    "Verdict",
    "FAILED_VERDICT",
    "Metrics",
    "ActivityLogEntry",
    "VerdictView",
    "SessionStateResponse",
    "UserIdentity",
    "SessionContext",
    "LoginRequest",
    "AuthStateResponse",
    "ChatMessage",
    "ChatRequest",
    "ScanRecord",
]
