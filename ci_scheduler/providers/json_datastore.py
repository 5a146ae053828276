"""
File-backed datastore with atomic transactions.

All entities live in a single JSON document grouped by kind::

    {
        "Commit": {
            "flutter/flutter/master/abc123": {"repository": "flutter/flutter", ...}
        },
        "Task": {
            "flutter/flutter/master/abc123/tasks/5f0c...": {"name": "Linux A", ...}
        }
    }

Every transaction loads the document, applies its writes to a copy and
replaces the file atomically (temporary file plus rename), all under one
asyncio lock. A failed transaction leaves the file untouched.
"""

import asyncio
import json
from collections.abc import AsyncIterator, Sequence
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Any

import aiofiles
import structlog

from ci_scheduler.exceptions import DatastoreError, TransactionConflictError
from ci_scheduler.models.domain import Commit, Task
from ci_scheduler.providers.base import Datastore, Entity

log = structlog.get_logger(__name__)

Document = dict[str, dict[str, dict[str, Any]]]

_KINDS: dict[str, type[Commit] | type[Task]] = {Commit.KIND: Commit, Task.KIND: Task}


class JsonFileDatastore(Datastore):
    """Datastore persisted to one JSON file.

    Suitable for a single scheduler process; concurrent coroutines are
    serialised by the instance lock.
    """

    def __init__(self, path: str | Path) -> None:
        """Initialize the datastore.

        Args:
            path: JSON file to store entities in. Parent directories are
                created if needed; the file itself is created on first write.
        """
        self.path = Path(path)
        self.path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = asyncio.Lock()

    async def lookup(self, key: str) -> Entity | None:
        async with self._lock:
            document = await self._load()
        for kind, entities in document.items():
            if key in entities:
                return _KINDS[kind].from_dict(entities[key])
        return None

    async def query(self, kind: str) -> list[Entity]:
        if kind not in _KINDS:
            raise DatastoreError(f"Unknown entity kind: {kind}")
        async with self._lock:
            document = await self._load()
        return [_KINDS[kind].from_dict(data) for data in document.get(kind, {}).values()]

    async def run_transaction(self, inserts: Sequence[Entity], deletes: Sequence[str] = ()) -> None:
        async with self._transaction() as document:
            for key in deletes:
                for entities in document.values():
                    entities.pop(key, None)

            for entity in inserts:
                entities = document.setdefault(entity.KIND, {})
                if entity.key in entities:
                    raise TransactionConflictError(f"Entity already exists: {entity.key}", key=entity.key)
                entities[entity.key] = entity.to_dict()

        log.debug("datastore_transaction_committed", inserts=len(inserts), deletes=len(deletes))

    @asynccontextmanager
    async def _transaction(self) -> AsyncIterator[Document]:
        async with self._lock:
            document = await self._load()
            try:
                yield document
            except Exception:
                log.warning("datastore_transaction_aborted", path=str(self.path))
                raise
            await self._write(document)

    async def _load(self) -> Document:
        if not self.path.exists():
            return {kind: {} for kind in _KINDS}
        try:
            async with aiofiles.open(self.path) as f:
                content = await f.read()
            document = json.loads(content) if content.strip() else {}
        except (OSError, json.JSONDecodeError) as e:
            raise DatastoreError(f"Cannot read datastore {self.path}: {e}") from e
        if not isinstance(document, dict):
            raise DatastoreError(f"Datastore {self.path} is not a JSON object")
        for kind in _KINDS:
            document.setdefault(kind, {})
        return document

    async def _write(self, document: Document) -> None:
        tmp_path = self.path.with_suffix(".tmp")
        try:
            async with aiofiles.open(tmp_path, "w") as f:
                await f.write(json.dumps(document, indent=2, sort_keys=True))
            tmp_path.replace(self.path)
        except OSError as e:
            raise DatastoreError(f"Cannot write datastore {self.path}: {e}") from e
