"""Memory entry CRUD, keyword search, and store statistics."""
import logging
import time
from collections import Counter
from typing import Literal, Optional

from fastapi import APIRouter, Depends, Query

from agentdash.api.deps import get_storage
from agentdash.api.envelope import api_response
from agentdash.api.schemas import MemoryEntryCreate, MemoryEntryUpdate, require_uuid
from agentdash.db.crud import Storage, match_count, paginate, tokenize_query
from agentdash.db.models import MEMORY_TYPES, MemoryEntry, MemoryType
from agentdash.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/memory", tags=["memory"])

SNIPPET_CHARS = 200
TOP_TAGS = 10

_SORT_KEYS = {
    "createdAt": lambda e: e.created_at,
    "updatedAt": lambda e: e.updated_at,
    "accessCount": lambda e: e.access_count,
    "priority": lambda e: e.priority,
}


def _filter_entries(
    entries: list[MemoryEntry],
    category: Optional[str],
    type: Optional[str],
    tags: Optional[str],
) -> list[MemoryEntry]:
    if category:
        entries = [e for e in entries if category in e.category]
    if type in MEMORY_TYPES:
        entries = [e for e in entries if e.type == type]
    if tags:
        wanted = [t.strip().lower() for t in tags.split(",") if t.strip()]
        entries = [
            e for e in entries
            if any(w in tag.lower() for w in wanted for tag in e.tags)
        ]
    return entries


@router.get("/entries")
async def list_entries(
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    category: Optional[str] = None,
    type: Optional[str] = None,
    tags: Optional[str] = None,
    sort_by: str = Query("updatedAt", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    storage: Storage = Depends(get_storage),
):
    entries = _filter_entries(await storage.memory.get_all(), category, type, tags)
    entries.sort(key=_SORT_KEYS.get(sort_by, _SORT_KEYS["updatedAt"]), reverse=sort_order == "desc")
    page = paginate(entries, limit, offset)
    stats = await storage.memory.get_stats()

    return api_response({
        "entries": page.items,
        "total": page.total,
        "hasMore": page.has_more,
        "categories": stats.category_breakdown,
    })


@router.post("/entries", status_code=201)
async def create_entry(body: MemoryEntryCreate, storage: Storage = Depends(get_storage)):
    entry = await storage.memory.create(
        type=body.type,
        content=body.content,
        category=body.category,
        tags=body.tags,
        priority=body.priority,
        source=body.source,
    )
    return api_response(entry)


@router.get("/entries/{entry_id}")
async def get_entry(entry_id: str, storage: Storage = Depends(get_storage)):
    """Reading an entry counts as an access."""
    require_uuid(entry_id, "memory entry")
    entry = await storage.memory.record_access(entry_id)
    if entry is None:
        raise NotFoundError("Memory entry", entry_id)
    return api_response(entry)


@router.put("/entries/{entry_id}")
async def update_entry(entry_id: str, body: MemoryEntryUpdate, storage: Storage = Depends(get_storage)):
    require_uuid(entry_id, "memory entry")
    entry = await storage.memory.update(entry_id, body.changes())
    if entry is None:
        raise NotFoundError("Memory entry", entry_id)
    return api_response(entry)


@router.delete("/entries/{entry_id}")
async def delete_entry(entry_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(entry_id, "memory entry")
    if not await storage.memory.delete(entry_id):
        raise NotFoundError("Memory entry", entry_id)
    return api_response(None, "Memory entry deleted successfully")


def _snippet(content: str) -> str:
    if len(content) > SNIPPET_CHARS:
        return content[:SNIPPET_CHARS] + "..."
    return content


@router.get("/search")
async def search_entries(
    query: Optional[str] = Query(None, max_length=500),
    category: Optional[str] = None,
    type: Optional[MemoryType] = None,
    min_priority: Optional[int] = Query(None, ge=1, le=5, alias="minPriority"),
    limit: int = Query(20, ge=1, le=100),
    storage: Storage = Depends(get_storage),
):
    if not query:
        raise ValidationError("Query parameter is required")

    started = time.perf_counter()
    entries = await storage.memory.search(query, category=category, type=type, limit=limit)
    if min_priority is not None:
        entries = [e for e in entries if e.priority >= min_priority]
    search_time = (time.perf_counter() - started) * 1000

    terms = tokenize_query(query)
    results = [
        {
            "entry": entry,
            "score": match_count(entry, terms),
            "matches": [{"field": "content", "snippet": _snippet(entry.content)}],
        }
        for entry in entries
    ]
    logger.debug(f"Memory search '{query}': {len(results)} result(s) in {search_time:.1f}ms")
    return api_response({
        "results": results,
        "total": len(results),
        "query": query,
        "searchTime": search_time,
    })


@router.get("/stats")
async def memory_stats(storage: Storage = Depends(get_storage)):
    stats = await storage.memory.get_stats()
    tag_counts = Counter(tag.lower() for entry in await storage.memory.get_all() for tag in entry.tags)

    data = stats.model_dump(by_alias=True)
    data["topTags"] = [{"tag": tag, "count": count} for tag, count in tag_counts.most_common(TOP_TAGS)]
    return api_response(data)
