"""
File access helpers for JSON collection documents.

Reads never fail: a missing or unparsable document is reported as a warning
and the caller's default is returned. Writes replace the whole document via a
temporary sibling file and raise ``StorageError`` when that is not possible.
"""
import logging
import os
import uuid
from pathlib import Path
from typing import Any, Optional

import aiofiles
import aiofiles.os

from agentdash.db.codec import decode_records, encode_records
from agentdash.errors import StorageError

logger = logging.getLogger(__name__)


async def ensure_dir(dir_path: Path) -> None:
    await aiofiles.os.makedirs(dir_path, exist_ok=True)


async def read_json_file(file_path: Path, default: Optional[list[Any]] = None) -> list[dict[str, Any]]:
    """Load a collection document, or ``default`` (an empty list if omitted)."""
    if default is None:
        default = []
    try:
        await ensure_dir(file_path.parent)
        async with aiofiles.open(file_path, "r", encoding="utf-8") as f:
            text = await f.read()
        return decode_records(text)
    except FileNotFoundError:
        logger.debug(f"Collection document {file_path} does not exist yet, using default")
        return list(default)
    except (OSError, ValueError) as e:
        logger.warning(f"Could not read file {file_path}, returning default: {e}")
        return list(default)


async def write_json_file(file_path: Path, records: list[dict[str, Any]]) -> None:
    """Serialize ``records`` and atomically replace the document at ``file_path``."""
    tmp_path = file_path.with_name(f".{file_path.name}.{uuid.uuid4().hex}.tmp")
    try:
        await ensure_dir(file_path.parent)
        text = encode_records(records)
        async with aiofiles.open(tmp_path, "w", encoding="utf-8") as f:
            await f.write(text)
            await f.flush()
            os.fsync(f.fileno())
        await aiofiles.os.replace(tmp_path, file_path)
    except (OSError, TypeError, ValueError) as e:
        logger.error(f"Error writing file {file_path}: {e}")
        await remove_file(tmp_path)
        raise StorageError(f"Failed to write data to {file_path}", operation="write") from e


async def remove_file(file_path: Path) -> bool:
    """Best-effort unlink. Returns True if a file was removed."""
    try:
        await aiofiles.os.remove(file_path)
        return True
    except FileNotFoundError:
        return False
    except OSError as e:
        logger.warning(f"Could not remove file {file_path}: {e}")
        return False
