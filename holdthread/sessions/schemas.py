"""Wire schemas for session transcripts."""
from __future__ import annotations

from datetime import datetime
from typing import List

from pydantic import BaseModel, Field

from holdthread.sessions.models import Message, Session


class ChatMessageOut(BaseModel):
    role: str
    content: str
    timestamp: datetime

    @classmethod
    def from_message(cls, message: Message) -> "ChatMessageOut":
        return cls(role=message.role.value, content=message.content, timestamp=message.created_at)


class SessionOut(BaseModel):
    sessionId: str
    createdAt: datetime
    lastUpdatedAt: datetime
    mainChain: List[ChatMessageOut] = Field(default_factory=list)

    @classmethod
    def from_session(cls, session: Session) -> "SessionOut":
        return cls(
            sessionId=session.id,
            createdAt=session.created_at,
            lastUpdatedAt=session.last_updated_at,
            mainChain=[ChatMessageOut.from_message(m) for m in session.main_chain],
        )
