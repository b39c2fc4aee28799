from __future__ import annotations

from typing import Dict, Optional, Protocol

from holdthread.common.errors import NotFound
from holdthread.turns.models import ConversationTurn, TurnStatus


class DuplicateTurnError(RuntimeError):
    """Turn ids are generated internally; a collision means a bug upstream."""


class TurnRepository(Protocol):
    async def create(self, turn: ConversationTurn) -> str: ...
    async def get(self, turn_id: str) -> Optional[ConversationTurn]: ...
    async def claim(self, turn_id: str) -> Optional[ConversationTurn]: ...
    async def update(self, turn: ConversationTurn) -> None: ...
    async def delete(self, turn_id: str) -> None: ...


class InMemoryTurnRepository:
    """Ephemeral turns live only long enough to open their stream."""

    def __init__(self) -> None:
        self._items: Dict[str, ConversationTurn] = {}

    async def create(self, turn: ConversationTurn) -> str:
        if turn.turn_id in self._items:
            raise DuplicateTurnError(f"Turn {turn.turn_id} already exists")
        self._items[turn.turn_id] = turn.model_copy()
        return turn.turn_id

    async def get(self, turn_id: str) -> Optional[ConversationTurn]:
        turn = self._items.get(turn_id)
        return turn.model_copy() if turn else None

    async def claim(self, turn_id: str) -> Optional[ConversationTurn]:
        """Move a created turn to streaming; None if absent or already claimed."""
        turn = self._items.get(turn_id)
        if turn is None or turn.status != TurnStatus.created:
            return None
        claimed = turn.model_copy(update={"status": TurnStatus.streaming})
        self._items[turn_id] = claimed
        return claimed.model_copy()

    async def update(self, turn: ConversationTurn) -> None:
        if turn.turn_id not in self._items:
            raise NotFound("turn", turn.turn_id)
        self._items[turn.turn_id] = turn.model_copy()

    async def delete(self, turn_id: str) -> None:
        if self._items.pop(turn_id, None) is None:
            raise NotFound("turn", turn_id)

    def __len__(self) -> int:
        return len(self._items)
