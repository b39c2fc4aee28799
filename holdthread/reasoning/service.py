"""Main-chain turn orchestration.

A turn is requested first (``start_turn``) and streamed second
(``open_stream`` / ``stream_turn``), so a browser EventSource can open the
stream with a plain GET. Per turn the lifecycle is
created -> streaming -> committed | failed; the turn record is deleted once it
reaches a terminal state.

Ordering of side effects within a turn:
  1. the user message is persisted before the model is called;
  2. the assistant message (answer-phase text only) is persisted before ``done``;
  3. the turn record is deleted last.
A model failure, an empty answer or a client disconnect leaves the session with
the user message and no partial assistant message.
"""
from __future__ import annotations

import asyncio
import logging
from typing import AsyncIterator, Awaitable, Callable, List, Optional

from holdthread.common.errors import HoldThreadError, NotFound, require_text
from holdthread.llm.client import ModelClient
from holdthread.reasoning.phase import (
    ClassifiedFragment,
    LexicalPhaseClassifier,
    Phase,
    PhaseClassifierFactory,
)
from holdthread.reasoning.schemas import StreamEvent, StreamPhase
from holdthread.sessions.locks import SessionLocks
from holdthread.sessions.models import Message, Role, Session
from holdthread.sessions.repository import SessionRepository
from holdthread.turns.models import ConversationTurn, TurnStatus
from holdthread.turns.repository import TurnRepository

logger = logging.getLogger(__name__)


class TurnStream:
    """A claimed turn whose session is resolved; ``events`` drives the model call.

    Closing a stream that was never iterated still releases the turn.
    """

    def __init__(
        self,
        turn: ConversationTurn,
        session_id: str,
        events: AsyncIterator[StreamEvent],
        release: Callable[[], Awaitable[None]],
    ) -> None:
        self.turn = turn
        self.session_id = session_id
        self.events = events
        self._release = release

    async def aclose(self) -> None:
        try:
            await self.events.aclose()  # type: ignore[attr-defined]
        finally:
            await self._release()


class ReasoningService:
    def __init__(
        self,
        sessions: SessionRepository,
        turns: TurnRepository,
        model_client: ModelClient,
        classifier_factory: Optional[PhaseClassifierFactory] = None,
        locks: Optional[SessionLocks] = None,
    ) -> None:
        self.sessions = sessions
        self.turns = turns
        self.model_client = model_client
        self.classifier_factory = classifier_factory or LexicalPhaseClassifier
        self.locks = locks or SessionLocks()

    async def start_turn(self, session_id: Optional[str], user_input: str) -> ConversationTurn:
        require_text(user_input, "userInput")
        turn = ConversationTurn(session_id=session_id or None, user_input=user_input)
        await self.turns.create(turn)
        logger.info("Turn %s created (session=%s, input_len=%s)", turn.turn_id, turn.session_id, len(user_input))
        return turn

    async def open_stream(self, turn_id: str) -> TurnStream:
        """Claim the turn and resolve its session; raises NotFound before anything streams."""
        turn = await self.turns.claim(turn_id)
        if turn is None:
            raise NotFound("turn", turn_id)
        try:
            session_id = await self._resolve_session(turn)
        except HoldThreadError:
            await self._finalize(turn, TurnStatus.failed)
            raise
        return TurnStream(turn, session_id, self._run_turn(turn, session_id), lambda: self._release(turn))

    async def stream_turn(self, turn_id: str) -> AsyncIterator[StreamEvent]:
        stream = await self.open_stream(turn_id)
        try:
            async for event in stream.events:
                yield event
        finally:
            await stream.aclose()

    async def _resolve_session(self, turn: ConversationTurn) -> str:
        if turn.session_id is None:
            session = Session()
            await self.sessions.create(session)
            logger.info("Session %s created for turn %s", session.id, turn.turn_id)
            return session.id
        await self.sessions.get(turn.session_id)
        return turn.session_id

    async def _run_turn(self, turn: ConversationTurn, session_id: str) -> AsyncIterator[StreamEvent]:
        status = TurnStatus.failed
        try:
            async with self.locks.hold(session_id):
                session = await self.sessions.get(session_id)
                session.append(Message(role=Role.user, content=turn.user_input))
                await self.sessions.update(session)

                classifier = self.classifier_factory()
                answer_parts: List[str] = []
                fragments = self.model_client.stream_reasoning(list(session.main_chain))
                try:
                    try:
                        async for fragment in fragments:
                            for classified in classifier.feed(fragment):
                                yield self._event(session_id, classified, answer_parts)
                        for classified in classifier.finish():
                            yield self._event(session_id, classified, answer_parts)
                    finally:
                        aclose = getattr(fragments, "aclose", None)
                        if aclose is not None:
                            await aclose()
                except Exception as exc:
                    logger.exception(
                        "Turn %s failed mid-stream; discarding %s answer fragments", turn.turn_id, len(answer_parts)
                    )
                    message = exc.message if isinstance(exc, HoldThreadError) else "Model stream failed"
                    yield StreamEvent(sessionId=session_id, phase=StreamPhase.error, text=message)
                    return

                answer = "".join(answer_parts)
                if not answer:
                    logger.warning("Turn %s produced no answer text; nothing committed", turn.turn_id)
                    yield StreamEvent(
                        sessionId=session_id, phase=StreamPhase.error, text="Model produced no answer"
                    )
                    return

                session.append(Message(role=Role.assistant, content=answer))
                await self.sessions.update(session)
                status = TurnStatus.committed
                logger.info("Turn %s committed to session %s (answer_len=%s)", turn.turn_id, session_id, len(answer))
            yield StreamEvent(sessionId=session_id, phase=StreamPhase.done, text="")
        except HoldThreadError as exc:
            logger.warning("Turn %s failed: %s", turn.turn_id, exc.message)
            yield StreamEvent(sessionId=session_id, phase=StreamPhase.error, text=exc.message)
        except (asyncio.CancelledError, GeneratorExit):
            if status != TurnStatus.committed:
                logger.warning("Turn %s cancelled by client; partial answer discarded", turn.turn_id)
            raise
        finally:
            await self._finalize(turn, status)

    @staticmethod
    def _event(session_id: str, classified: ClassifiedFragment, answer_parts: List[str]) -> StreamEvent:
        if classified.transition:
            return StreamEvent(sessionId=session_id, phase=StreamPhase.transition, text="")
        if classified.phase == Phase.answer:
            answer_parts.append(classified.text)
            return StreamEvent(sessionId=session_id, phase=StreamPhase.answer, text=classified.text)
        return StreamEvent(sessionId=session_id, phase=StreamPhase.reasoning, text=classified.text)

    async def _release(self, turn: ConversationTurn) -> None:
        if await self.turns.get(turn.turn_id) is not None:
            logger.warning("Turn %s closed before streaming started", turn.turn_id)
            await self._finalize(turn, TurnStatus.failed)

    async def _finalize(self, turn: ConversationTurn, status: TurnStatus) -> None:
        turn.status = status
        try:
            await self.turns.update(turn)
            await self.turns.delete(turn.turn_id)
        except NotFound:
            logger.warning("Turn %s already removed before finalizing as %s", turn.turn_id, status.value)
            return
        logger.info("Turn %s finished as %s", turn.turn_id, status.value)
