"""Two-step main chat: POST creates a turn, GET streams it as server-sent events."""
from __future__ import annotations

from typing import AsyncGenerator

from fastapi import APIRouter, Depends
from fastapi.responses import StreamingResponse

from holdthread.common.errors import require_text
from holdthread.reasoning.schemas import MainChatRequest, StartMainTurnResponse
from holdthread.reasoning.service import ReasoningService, TurnStream
from holdthread.sessions.schemas import ChatMessageOut
from holdthread.state import ConversationRuntime, get_reasoning_service, get_runtime

router = APIRouter(prefix="/api/chat/main", tags=["main_chat"])

SSE_HEADERS = {"Cache-Control": "no-cache", "Connection": "keep-alive"}


async def event_stream(stream: TurnStream) -> AsyncGenerator[str, None]:
    try:
        async for event in stream.events:
            yield event.to_sse()
    finally:
        await stream.aclose()


@router.post("/turn", response_model=StartMainTurnResponse)
async def start_turn(
    payload: MainChatRequest,
    runtime: ConversationRuntime = Depends(get_runtime),
):
    require_text(payload.userInput, "userInput")
    initial_messages = []
    if payload.sessionId:
        session = await runtime.sessions.get(payload.sessionId)
        initial_messages = [ChatMessageOut.from_message(m) for m in session.main_chain]
    turn = await runtime.reasoning.start_turn(payload.sessionId, payload.userInput)
    return StartMainTurnResponse(
        sessionId=turn.session_id,
        turnId=turn.turn_id,
        initialMessages=initial_messages,
    )


@router.get("/stream/{turn_id}")
async def stream_turn(
    turn_id: str,
    service: ReasoningService = Depends(get_reasoning_service),
) -> StreamingResponse:
    stream = await service.open_stream(turn_id)
    return StreamingResponse(event_stream(stream), media_type="text/event-stream", headers=SSE_HEADERS)
