from __future__ import annotations

from fastapi import APIRouter, Depends, Response

from holdthread.digressions.schemas import (
    DigressionOut,
    DigressionTurnRequest,
    DigressionTurnResponse,
    MergeDigressionResponse,
    StartDigressionRequest,
    StartDigressionResponse,
    UpdateSelectedTextRequest,
)
from holdthread.digressions.service import DigressionService
from holdthread.sessions.schemas import ChatMessageOut
from holdthread.state import get_digression_service

router = APIRouter(prefix="/api/chat/digress", tags=["digressions"])


@router.post("/start", response_model=StartDigressionResponse)
async def start_digression(
    payload: StartDigressionRequest,
    service: DigressionService = Depends(get_digression_service),
):
    digression_id = await service.start(payload.sessionId, payload.selectedText, payload.initialUserInput)
    return StartDigressionResponse(digressionId=digression_id)


@router.get("/{digression_id}", response_model=DigressionOut)
async def get_digression(
    digression_id: str,
    service: DigressionService = Depends(get_digression_service),
):
    return DigressionOut.from_digression(await service.get(digression_id))


@router.patch("/{digression_id}", response_model=DigressionOut)
async def update_selected_text(
    digression_id: str,
    payload: UpdateSelectedTextRequest,
    service: DigressionService = Depends(get_digression_service),
):
    return DigressionOut.from_digression(await service.update_selected_text(digression_id, payload.selectedText))


@router.post("/{digression_id}", response_model=DigressionTurnResponse)
async def continue_digression(
    digression_id: str,
    payload: DigressionTurnRequest,
    service: DigressionService = Depends(get_digression_service),
):
    digression = await service.continue_digression(digression_id, payload.userInput)
    return DigressionTurnResponse(
        digressionId=digression.digression_id,
        messages=[ChatMessageOut.from_message(m) for m in digression.messages],
    )


@router.post("/{digression_id}/merge", response_model=MergeDigressionResponse)
async def merge_digression(
    digression_id: str,
    service: DigressionService = Depends(get_digression_service),
):
    return MergeDigressionResponse(sessionId=await service.merge(digression_id))


@router.delete("/{digression_id}", status_code=204)
async def discard_digression(
    digression_id: str,
    service: DigressionService = Depends(get_digression_service),
):
    await service.discard(digression_id)
    return Response(status_code=204)
