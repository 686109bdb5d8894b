"""
Collection backends.

A collection is an ordered set of records (camelCase dicts with an ``id`` key)
addressed by a slash-separated key such as ``chat/sessions`` or
``chat/messages/<session id>``. Stores only talk to the ``Collection``
interface; the backend decides how a collection is persisted:

- ``JsonFileBackend`` keeps each collection as one JSON array document at
  ``<data dir>/<key>.json``. Mutations of the same document are serialized
  with a per-path lock and rewrite the document atomically.
- ``SqliteBackend`` keeps one row per record in the ``documents`` table and
  mutates a single row per operation.
"""
import asyncio
import logging
import sqlite3
import weakref
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Callable, Optional, Union

import aiosqlite

from agentdash.config import StorageConfig
from agentdash.db.codec import decode_record, encode_record
from agentdash.db.database import connect
from agentdash.db.files import read_json_file, remove_file, write_json_file
from agentdash.errors import StorageError

logger = logging.getLogger(__name__)

Document = dict[str, Any]
Mutator = Callable[[Document], Document]
Predicate = Callable[[Document], bool]


class Collection(ABC):
    def __init__(self, key: str) -> None:
        self.key = key

    @abstractmethod
    async def load(self) -> list[Document]:
        """All records in insertion order."""

    @abstractmethod
    async def get(self, record_id: str) -> Optional[Document]:
        ...

    @abstractmethod
    async def insert(self, record: Document) -> None:
        ...

    @abstractmethod
    async def update(self, record_id: str, mutate: Mutator) -> Optional[Document]:
        """Replace a record with ``mutate(record)``. Returns the new record, or None if absent."""

    @abstractmethod
    async def remove(self, record_id: str) -> bool:
        ...

    @abstractmethod
    async def remove_where(self, predicate: Predicate) -> list[Document]:
        """Remove every matching record and return the removed ones."""

    @abstractmethod
    async def count(self) -> int:
        ...

    @abstractmethod
    async def drop(self) -> bool:
        """Discard the whole collection. Returns False if there was nothing to discard."""


class Backend(ABC):
    name: str

    async def open(self) -> None:
        pass

    async def close(self) -> None:
        pass

    @abstractmethod
    def collection(self, key: str) -> Collection:
        ...


# ─────────────────────────────────────────────
# JSON documents
# ─────────────────────────────────────────────

class JsonFileCollection(Collection):
    def __init__(self, key: str, path: Path, lock: asyncio.Lock) -> None:
        super().__init__(key)
        self.path = path
        self._lock = lock

    async def load(self) -> list[Document]:
        return await read_json_file(self.path)

    async def get(self, record_id: str) -> Optional[Document]:
        for record in await self.load():
            if record.get("id") == record_id:
                return record
        return None

    async def insert(self, record: Document) -> None:
        async with self._lock:
            records = await self.load()
            records.append(record)
            await write_json_file(self.path, records)

    async def update(self, record_id: str, mutate: Mutator) -> Optional[Document]:
        async with self._lock:
            records = await self.load()
            for index, record in enumerate(records):
                if record.get("id") == record_id:
                    break
            else:
                return None
            records[index] = mutate(record)
            await write_json_file(self.path, records)
            return records[index]

    async def remove(self, record_id: str) -> bool:
        removed = await self.remove_where(lambda r: r.get("id") == record_id)
        return bool(removed)

    async def remove_where(self, predicate: Predicate) -> list[Document]:
        async with self._lock:
            records = await self.load()
            kept = [r for r in records if not predicate(r)]
            if len(kept) == len(records):
                return []
            await write_json_file(self.path, kept)
            return [r for r in records if predicate(r)]

    async def count(self) -> int:
        return len(await self.load())

    async def drop(self) -> bool:
        async with self._lock:
            return await remove_file(self.path)


class JsonFileBackend(Backend):
    name = "json"

    def __init__(self, data_dir: Union[str, Path]) -> None:
        self.data_dir = Path(data_dir)
        # A lock lives as long as some collection handle on its path does.
        self._locks: "weakref.WeakValueDictionary[Path, asyncio.Lock]" = weakref.WeakValueDictionary()

    def collection(self, key: str) -> JsonFileCollection:
        path = self.data_dir / f"{key}.json"
        lock = self._locks.get(path)
        if lock is None:
            lock = self._locks[path] = asyncio.Lock()
        return JsonFileCollection(key, path, lock)


# ─────────────────────────────────────────────
# SQLite keyed records
# ─────────────────────────────────────────────

class SqliteCollection(Collection):
    def __init__(self, key: str, backend: "SqliteBackend") -> None:
        super().__init__(key)
        self._backend = backend

    async def load(self) -> list[Document]:
        db = self._backend.db
        try:
            async with db.execute(
                "SELECT body FROM documents WHERE collection = ? ORDER BY seq", (self.key,)
            ) as cur:
                rows = await cur.fetchall()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation=f"read {self.key}") from e
        return [decode_record(r["body"]) for r in rows]

    async def get(self, record_id: str) -> Optional[Document]:
        db = self._backend.db
        try:
            async with db.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?", (self.key, record_id)
            ) as cur:
                row = await cur.fetchone()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation=f"read {self.key}") from e
        if row is None:
            return None
        return decode_record(row["body"])

    async def insert(self, record: Document) -> None:
        async with self._backend.write() as db:
            await db.execute(
                "INSERT INTO documents (collection, id, body) VALUES (?, ?, ?)",
                (self.key, record["id"], encode_record(record)),
            )

    async def update(self, record_id: str, mutate: Mutator) -> Optional[Document]:
        async with self._backend.write() as db:
            async with db.execute(
                "SELECT body FROM documents WHERE collection = ? AND id = ?", (self.key, record_id)
            ) as cur:
                row = await cur.fetchone()
            if row is None:
                return None
            updated = mutate(decode_record(row["body"]))
            await db.execute(
                "UPDATE documents SET body = ? WHERE collection = ? AND id = ?",
                (encode_record(updated), self.key, record_id),
            )
            return updated

    async def remove(self, record_id: str) -> bool:
        async with self._backend.write() as db:
            async with db.execute(
                "DELETE FROM documents WHERE collection = ? AND id = ?", (self.key, record_id)
            ) as cur:
                return cur.rowcount > 0

    async def remove_where(self, predicate: Predicate) -> list[Document]:
        async with self._backend.write() as db:
            async with db.execute(
                "SELECT body FROM documents WHERE collection = ? ORDER BY seq", (self.key,)
            ) as cur:
                rows = await cur.fetchall()
            removed = [r for r in (decode_record(row["body"]) for row in rows) if predicate(r)]
            await db.executemany(
                "DELETE FROM documents WHERE collection = ? AND id = ?",
                [(self.key, r["id"]) for r in removed],
            )
            return removed

    async def count(self) -> int:
        db = self._backend.db
        try:
            async with db.execute(
                "SELECT COUNT(*) AS cnt FROM documents WHERE collection = ?", (self.key,)
            ) as cur:
                row = await cur.fetchone()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation=f"count {self.key}") from e
        return row["cnt"]

    async def drop(self) -> bool:
        async with self._backend.write() as db:
            async with db.execute("DELETE FROM documents WHERE collection = ?", (self.key,)) as cur:
                return cur.rowcount > 0


class _WriteTransaction:
    """Serializes writers on the shared connection and commits (or rolls back) on exit."""

    def __init__(self, backend: "SqliteBackend") -> None:
        self._backend = backend

    async def __aenter__(self) -> aiosqlite.Connection:
        db = self._backend.db
        await self._backend._lock.acquire()
        return db

    async def __aexit__(self, exc_type, exc, tb) -> bool:
        db = self._backend.db
        try:
            if exc_type is None:
                await db.commit()
            else:
                await db.rollback()
        except sqlite3.Error as e:
            raise StorageError(str(e), operation="commit") from e
        finally:
            self._backend._lock.release()
        if exc_type is not None and issubclass(exc_type, sqlite3.Error):
            raise StorageError(str(exc), operation="write") from exc
        return False


class SqliteBackend(Backend):
    name = "sqlite"

    def __init__(self, db_path: Union[str, Path]) -> None:
        self.db_path = db_path
        self._db: Optional[aiosqlite.Connection] = None
        self._lock = asyncio.Lock()

    async def open(self) -> None:
        if self._db is None:
            self._db = await connect(self.db_path)

    async def close(self) -> None:
        if self._db is not None:
            await self._db.close()
            self._db = None
            logger.info("Database connection closed.")

    @property
    def db(self) -> aiosqlite.Connection:
        if self._db is None:
            raise StorageError("database connection is not open")
        return self._db

    def write(self) -> _WriteTransaction:
        return _WriteTransaction(self)

    def collection(self, key: str) -> SqliteCollection:
        return SqliteCollection(key, self)


def create_backend(config: StorageConfig) -> Backend:
    if config.backend == "sqlite":
        return SqliteBackend(config.db_path)
    return JsonFileBackend(config.data_dir)
