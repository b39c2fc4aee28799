"""Wire schemas for digression mini-chats."""
from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field

from holdthread.digressions.models import DigressionSession
from holdthread.sessions.schemas import ChatMessageOut


class StartDigressionRequest(BaseModel):
    sessionId: str
    selectedText: Optional[str] = None
    initialUserInput: Optional[str] = None


class StartDigressionResponse(BaseModel):
    digressionId: str


class UpdateSelectedTextRequest(BaseModel):
    selectedText: Optional[str] = None


class DigressionTurnRequest(BaseModel):
    userInput: str = ""


class DigressionTurnResponse(BaseModel):
    digressionId: str
    messages: List[ChatMessageOut] = Field(default_factory=list)


class MergeDigressionResponse(BaseModel):
    sessionId: str


class DigressionOut(BaseModel):
    digressionId: str
    parentSessionId: str
    selectedText: Optional[str] = None
    createdAt: datetime
    lastUpdatedAt: datetime
    messages: List[ChatMessageOut] = Field(default_factory=list)

    @classmethod
    def from_digression(cls, digression: DigressionSession) -> "DigressionOut":
        return cls(
            digressionId=digression.digression_id,
            parentSessionId=digression.parent_session_id,
            selectedText=digression.selected_text,
            createdAt=digression.created_at,
            lastUpdatedAt=digression.last_updated_at,
            messages=[ChatMessageOut.from_message(m) for m in digression.messages],
        )
