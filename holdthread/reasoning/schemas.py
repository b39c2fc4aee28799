"""Wire schemas for the main reasoning chat."""
from __future__ import annotations

from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field

from holdthread.sessions.schemas import ChatMessageOut


class StreamPhase(str, Enum):
    reasoning = "reasoning"
    transition = "transition"
    answer = "answer"
    done = "done"
    error = "error"


class StreamEvent(BaseModel):
    sessionId: str
    phase: StreamPhase
    text: str = ""

    def to_sse(self) -> str:
        return f"event: {self.phase.value}\ndata: {self.model_dump_json()}\n\n"


class MainChatRequest(BaseModel):
    sessionId: Optional[str] = None
    userInput: str = ""


class StartMainTurnResponse(BaseModel):
    sessionId: Optional[str] = None
    turnId: str
    initialMessages: List[ChatMessageOut] = Field(default_factory=list)
