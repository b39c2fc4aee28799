from __future__ import annotations

from typing import Dict, List, Optional, Protocol

from holdthread.common.errors import NotFound
from holdthread.common.file_store import JsonFileCollection
from holdthread.digressions.models import DigressionSession


class DigressionRepository(Protocol):
    async def create(self, digression: DigressionSession) -> str: ...
    async def get(self, digression_id: str) -> DigressionSession: ...
    async def update(self, digression: DigressionSession) -> None: ...
    async def delete(self, digression_id: str) -> None: ...
    async def list_for_session(self, parent_session_id: str) -> List[DigressionSession]: ...


class InMemoryDigressionRepository:
    def __init__(self) -> None:
        self._items: Dict[str, DigressionSession] = {}

    async def create(self, digression: DigressionSession) -> str:
        self._items[digression.digression_id] = digression.model_copy(deep=True)
        return digression.digression_id

    async def get(self, digression_id: str) -> DigressionSession:
        digression = self._items.get(digression_id)
        if digression is None:
            raise NotFound("digression", digression_id)
        return digression.model_copy(deep=True)

    async def update(self, digression: DigressionSession) -> None:
        if digression.digression_id not in self._items:
            raise NotFound("digression", digression.digression_id)
        self._items[digression.digression_id] = digression.model_copy(deep=True)

    async def delete(self, digression_id: str) -> None:
        if self._items.pop(digression_id, None) is None:
            raise NotFound("digression", digression_id)

    async def list_for_session(self, parent_session_id: str) -> List[DigressionSession]:
        return [
            d.model_copy(deep=True)
            for d in self._items.values()
            if d.parent_session_id == parent_session_id
        ]


class FileDigressionRepository:
    """Filesystem-backed digressions."""

    def __init__(self, base_dir: Optional[str] = None) -> None:
        self._docs = JsonFileCollection(base_dir, "digressions", DigressionSession)

    async def create(self, digression: DigressionSession) -> str:
        await self._docs.put(digression.digression_id, digression)
        return digression.digression_id

    async def get(self, digression_id: str) -> DigressionSession:
        digression = await self._docs.load(digression_id)
        if digression is None:
            raise NotFound("digression", digression_id)
        return digression

    async def update(self, digression: DigressionSession) -> None:
        if not await self._docs.exists(digression.digression_id):
            raise NotFound("digression", digression.digression_id)
        await self._docs.put(digression.digression_id, digression)

    async def delete(self, digression_id: str) -> None:
        if not await self._docs.remove(digression_id):
            raise NotFound("digression", digression_id)

    async def list_for_session(self, parent_session_id: str) -> List[DigressionSession]:
        return [d for d in await self._docs.load_all() if d.parent_session_id == parent_session_id]
