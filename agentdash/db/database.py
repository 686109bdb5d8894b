"""
SQLite connection management and schema initialization for the keyed-record backend.
Uses aiosqlite for fully async, non-blocking access.
"""
import aiosqlite
import logging
from pathlib import Path
from typing import Union

logger = logging.getLogger(__name__)


async def connect(db_path: Union[str, Path]) -> aiosqlite.Connection:
    """Open a connection with WAL journaling and make sure the schema exists."""
    if str(db_path) != ":memory:":
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
    db = await aiosqlite.connect(str(db_path))
    db.row_factory = aiosqlite.Row
    # WAL mode: allows concurrent reads while writing
    await db.execute("PRAGMA journal_mode=WAL")
    await init_schema(db)
    logger.info(f"Database initialized at {db_path}")
    return db


async def init_schema(db: aiosqlite.Connection) -> None:
    """Create all tables if they do not already exist (idempotent)."""
    await db.executescript("""
        -- ----------------------------------------------------------------
        -- Document: one record of one collection, stored as codec JSON.
        -- `collection` mirrors the JSON backend's relative document path
        -- (e.g. 'chat/sessions', 'chat/messages/<session id>').
        -- `seq` preserves insertion order within a collection.
        -- ----------------------------------------------------------------
        CREATE TABLE IF NOT EXISTS documents (
            seq         INTEGER PRIMARY KEY AUTOINCREMENT,
            collection  TEXT NOT NULL,
            id          TEXT NOT NULL,
            body        TEXT NOT NULL,
            UNIQUE (collection, id)
        );

        CREATE INDEX IF NOT EXISTS idx_documents_collection_seq
            ON documents(collection, seq);
    """)
    await db.commit()
    logger.info("Schema initialized.")
