"""Digression branch lifecycle: start, continue, merge, discard.

Digressions are non-streaming. Merging copies only the branch's final
assistant message into the parent's main chain and then deletes the branch.
"""
from __future__ import annotations

import logging
from typing import List, Optional, Sequence

from holdthread.common.errors import InvalidInput, InvalidState, UpstreamFailure, require_text
from holdthread.digressions.models import DigressionSession
from holdthread.digressions.repository import DigressionRepository
from holdthread.llm.client import ModelClient
from holdthread.sessions.locks import SessionLocks
from holdthread.sessions.models import Message, Role
from holdthread.sessions.repository import SessionRepository

logger = logging.getLogger(__name__)

DEFAULT_SUMMARY_MESSAGES = 6
DEFAULT_SUMMARY_CHARS = 100


def _truncate(text: str, max_length: int) -> str:
    if len(text) <= max_length:
        return text
    return text[:max_length] + "..."


def summarize_conversation(
    messages: Sequence[Message],
    max_messages: int = DEFAULT_SUMMARY_MESSAGES,
    max_chars: int = DEFAULT_SUMMARY_CHARS,
) -> str:
    """Last few exchanges as ``role: content`` lines, each cut to a character budget."""
    recent = list(messages)[-max_messages:]
    return "\n".join(f"{m.role.value}: {_truncate(m.content, max_chars)}" for m in recent)


def build_seed_prompt(selected_text: Optional[str], summary: str) -> str:
    if selected_text and selected_text.strip():
        focus = (
            "This is a brief digression to clarify or explore the following selected text:\n\n"
            f'"{selected_text}"\n\n'
        )
    else:
        focus = "This is a brief digression about the main conversation.\n\n"
    return (
        f"{focus}"
        "The main conversation context is:\n"
        f"{summary}\n\n"
        "Please provide concise, focused answers about the selected text."
    )


class DigressionService:
    def __init__(
        self,
        sessions: SessionRepository,
        digressions: DigressionRepository,
        model_client: ModelClient,
        locks: Optional[SessionLocks] = None,
        summary_messages: int = DEFAULT_SUMMARY_MESSAGES,
        summary_chars: int = DEFAULT_SUMMARY_CHARS,
    ) -> None:
        self.sessions = sessions
        self.digressions = digressions
        self.model_client = model_client
        self.locks = locks or SessionLocks()
        self.summary_messages = summary_messages
        self.summary_chars = summary_chars

    async def start(
        self,
        parent_session_id: str,
        selected_text: Optional[str],
        initial_user_input: Optional[str] = None,
    ) -> str:
        if not parent_session_id or not parent_session_id.strip():
            raise InvalidInput("sessionId cannot be empty", details={"field": "sessionId"})
        parent = await self.sessions.get(parent_session_id)
        if not parent.main_chain:
            raise InvalidState(
                "Cannot start a digression on an empty conversation",
                resource_kind="session",
                details={"session_id": parent_session_id},
            )

        digression = DigressionSession(parent_session_id=parent_session_id, selected_text=selected_text)
        summary = summarize_conversation(parent.main_chain, self.summary_messages, self.summary_chars)
        digression.add_message(Message(role=Role.system, content=build_seed_prompt(selected_text, summary)))
        if initial_user_input and initial_user_input.strip():
            digression.add_message(Message(role=Role.user, content=initial_user_input))

        await self.digressions.create(digression)
        logger.info("Digression %s started on session %s", digression.digression_id, parent_session_id)
        return digression.digression_id

    async def get(self, digression_id: str) -> DigressionSession:
        return await self.digressions.get(digression_id)

    async def list_for_session(self, parent_session_id: str) -> List[DigressionSession]:
        await self.sessions.get(parent_session_id)
        return await self.digressions.list_for_session(parent_session_id)

    async def continue_digression(self, digression_id: str, user_input: str) -> DigressionSession:
        """One user message plus one complete model answer; nothing is saved if the model fails."""
        require_text(user_input, "userInput")
        digression = await self.digressions.get(digression_id)
        digression.add_message(Message(role=Role.user, content=user_input))

        answer = await self.model_client.complete(list(digression.messages))
        if not answer:
            raise UpstreamFailure("Model produced an empty digression answer", resource_kind="digression")

        digression.add_message(Message(role=Role.assistant, content=answer))
        await self.digressions.update(digression)
        logger.info("Digression %s now has %s messages", digression_id, len(digression.messages))
        return digression

    async def merge(self, digression_id: str) -> str:
        """Copy the final assistant answer into the parent, then drop the branch.

        The re-read, append and delete all run under the parent lock, so a
        branch merges at most once even when merges queue behind a turn.
        """
        parent_id = (await self.digressions.get(digression_id)).parent_session_id
        async with self.locks.hold(parent_id):
            digression = await self.digressions.get(digression_id)
            final_answer = digression.last_assistant_message()
            if final_answer is None:
                raise InvalidState(
                    "Cannot merge digression: no assistant messages found",
                    resource_kind="digression",
                    details={"digression_id": digression_id},
                )
            parent = await self.sessions.get(parent_id)
            parent.append(final_answer)
            await self.sessions.update(parent)
            await self.digressions.delete(digression_id)
        logger.info("Digression %s merged into session %s", digression_id, parent_id)
        return parent_id

    async def update_selected_text(self, digression_id: str, selected_text: Optional[str]) -> DigressionSession:
        digression = await self.digressions.get(digression_id)
        digression.update_selected_text(selected_text)
        await self.digressions.update(digression)
        logger.info("Digression %s selected text updated", digression_id)
        return digression

    async def discard(self, digression_id: str) -> None:
        await self.digressions.delete(digression_id)
        logger.info("Digression %s discarded", digression_id)
