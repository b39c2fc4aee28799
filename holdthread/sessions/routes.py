from __future__ import annotations

from typing import List

from fastapi import APIRouter, Depends

from holdthread.digressions.schemas import DigressionOut
from holdthread.digressions.service import DigressionService
from holdthread.sessions.schemas import SessionOut
from holdthread.state import ConversationRuntime, get_digression_service, get_runtime

router = APIRouter(prefix="/api/chat/sessions", tags=["sessions"])


@router.get("/{session_id}", response_model=SessionOut)
async def get_session(session_id: str, runtime: ConversationRuntime = Depends(get_runtime)):
    session = await runtime.sessions.get(session_id)
    return SessionOut.from_session(session)


@router.get("/{session_id}/digressions", response_model=List[DigressionOut])
async def list_session_digressions(
    session_id: str,
    service: DigressionService = Depends(get_digression_service),
):
    return [DigressionOut.from_digression(d) for d in await service.list_for_session(session_id)]
