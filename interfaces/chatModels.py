from datetime import datetime
from enum import Enum
from typing import List
from pydantic import BaseModel


class Sender(str, Enum):
    USER = "user"
    ASSISTANT = "assistant"


class ChatRequest(BaseModel):
    content: str


class ChatMessageResponse(BaseModel):
    id: str
    content: str
    sender: Sender
    timestamp: datetime
    pending: bool = False

    class Config:
        from_attributes = True  # This enables ORM mode


class ChatHistoryResponse(BaseModel):
    messages: List[ChatMessageResponse]
    pending: bool = False
