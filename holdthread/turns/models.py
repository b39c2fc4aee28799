from __future__ import annotations

from datetime import datetime, timezone
from enum import Enum
from typing import Optional
from uuid import uuid4

from pydantic import BaseModel, Field


def _now() -> datetime:
    return datetime.now(timezone.utc)


class TurnStatus(str, Enum):
    created = "created"
    streaming = "streaming"
    committed = "committed"
    failed = "failed"


class ConversationTurn(BaseModel):
    """Pending user input waiting for its response stream to be opened."""

    turn_id: str = Field(default_factory=lambda: uuid4().hex)
    session_id: Optional[str] = None
    user_input: str
    status: TurnStatus = TurnStatus.created
    created_at: datetime = Field(default_factory=_now)
