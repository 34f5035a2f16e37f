from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel


class ScanRecord(BaseModel):
    """Persisted projection of one completed verification session."""
    id: Optional[str] = None
    owner: str
    occurred_at: datetime
    is_real: bool
    confidence: int
    issues: List[str]
    message: str

    def to_document(self) -> dict:
        return {
            "owner": self.owner,
            "occurredAt": self.occurred_at,
            "isReal": self.is_real,
            "confidence": self.confidence,
            "issues": list(self.issues),
            "message": self.message,
        }

    @classmethod
    def from_document(cls, doc_id: str, data: dict) -> "ScanRecord":
        return cls(
            id=doc_id,
            owner=data.get("owner", ""),
            occurred_at=data.get("occurredAt"),
            is_real=bool(data.get("isReal", False)),
            confidence=int(data.get("confidence", 0)),
            issues=list(data.get("issues") or []),
            message=data.get("message", ""),
        )
