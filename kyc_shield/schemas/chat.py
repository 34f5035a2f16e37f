from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    id: str
    sender: Literal["user", "assistant"]
    text: str
    sent_at: datetime


class ChatRequest(BaseModel):
    text: str = Field(min_length=1, max_length=2000)
