"""Filesystem-backed JSON document collection shared by the durable stores."""
from __future__ import annotations

import asyncio
import os
import re
import tempfile
from pathlib import Path
from typing import Generic, List, Optional, Type, TypeVar

from pydantic import BaseModel

ModelT = TypeVar("ModelT", bound=BaseModel)


def _sanitize_name(value: str) -> str:
    return re.sub(r"[^A-Za-z0-9_.-]", "_", value or "unknown")


class JsonFileCollection(Generic[ModelT]):
    """One JSON file per document under ``<base_dir>/<collection>/``.

    Writes go to a temp file and are swapped in with ``os.replace`` so a reader
    never sees a half-written document. Blocking file I/O runs in a worker thread.
    """

    def __init__(self, base_dir: Optional[str], collection: str, model: Type[ModelT]) -> None:
        default_dir = Path(os.getenv("STORE_DIR") or Path.cwd() / "var" / "holdthread")
        root = Path(base_dir) if base_dir else default_dir
        self._dir = root / collection
        self._dir.mkdir(parents=True, exist_ok=True)
        self._model = model

    def _path(self, key: str) -> Path:
        return self._dir / f"{_sanitize_name(key)}.json"

    def _write(self, key: str, doc: ModelT) -> None:
        fd, tmp = tempfile.mkstemp(dir=self._dir, suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(doc.model_dump_json(indent=2))
            os.replace(tmp, self._path(key))
        except BaseException:
            if os.path.exists(tmp):
                os.unlink(tmp)
            raise

    def _read(self, key: str) -> Optional[ModelT]:
        path = self._path(key)
        if not path.exists():
            return None
        return self._model.model_validate_json(path.read_text(encoding="utf-8"))

    def _remove(self, key: str) -> bool:
        try:
            self._path(key).unlink()
        except FileNotFoundError:
            return False
        return True

    def _all(self) -> List[ModelT]:
        docs: List[ModelT] = []
        for path in sorted(self._dir.glob("*.json")):
            docs.append(self._model.model_validate_json(path.read_text(encoding="utf-8")))
        return docs

    async def put(self, key: str, doc: ModelT) -> None:
        await asyncio.to_thread(self._write, key, doc)

    async def load(self, key: str) -> Optional[ModelT]:
        return await asyncio.to_thread(self._read, key)

    async def exists(self, key: str) -> bool:
        return await asyncio.to_thread(self._path(key).exists)

    async def remove(self, key: str) -> bool:
        return await asyncio.to_thread(self._remove, key)

    async def load_all(self) -> List[ModelT]:
        return await asyncio.to_thread(self._all)
