from __future__ import annotations

from typing import Dict, Optional, Protocol

from holdthread.common.errors import NotFound
from holdthread.common.file_store import JsonFileCollection
from holdthread.sessions.models import Session


class SessionRepository(Protocol):
    async def create(self, session: Session) -> str: ...
    async def get(self, session_id: str) -> Session: ...
    async def update(self, session: Session) -> None: ...
    async def delete(self, session_id: str) -> None: ...


class InMemorySessionRepository:
    """Keyed session map.

    Each method touches the dict without suspending, so it is atomic per key on
    the event loop. Sessions are copied in and out: whatever ``get`` returns
    belongs to the caller until it is handed back through ``update``.
    """

    def __init__(self) -> None:
        self._items: Dict[str, Session] = {}

    async def create(self, session: Session) -> str:
        self._items[session.id] = session.model_copy(deep=True)
        return session.id

    async def get(self, session_id: str) -> Session:
        session = self._items.get(session_id)
        if session is None:
            raise NotFound("session", session_id)
        return session.model_copy(deep=True)

    async def update(self, session: Session) -> None:
        if session.id not in self._items:
            raise NotFound("session", session.id)
        self._items[session.id] = session.model_copy(deep=True)

    async def delete(self, session_id: str) -> None:
        if self._items.pop(session_id, None) is None:
            raise NotFound("session", session_id)


class FileSessionRepository:
    """Filesystem-backed sessions, one JSON document per session."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self._docs = JsonFileCollection(base_dir, "sessions", Session)

    async def create(self, session: Session) -> str:
        await self._docs.put(session.id, session)
        return session.id

    async def get(self, session_id: str) -> Session:
        session = await self._docs.load(session_id)
        if session is None:
            raise NotFound("session", session_id)
        return session

    async def update(self, session: Session) -> None:
        if not await self._docs.exists(session.id):
            raise NotFound("session", session.id)
        await self._docs.put(session.id, session)

    async def delete(self, session_id: str) -> None:
        if not await self._docs.remove(session_id):
            raise NotFound("session", session_id)
