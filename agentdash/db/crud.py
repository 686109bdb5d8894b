"""
Record stores for AgentDash.
Each store wraps one collection (or, for chat messages, one collection per
session) of the configured backend. "Not found" is reported as None/False;
only persistence failures raise (StorageError).
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Callable, Generic, Iterable, Optional, TypeVar

from pydantic import BaseModel

from agentdash.config import StorageConfig
from agentdash.db.backends import Backend, Collection, create_backend
from agentdash.db.models import (
    AccessLog,
    Agent,
    AgentConfig,
    AgentMetrics,
    AgentPermissions,
    CategoryCount,
    ChatMessage,
    ChatSession,
    FileAttachment,
    LogDetails,
    MCPTool,
    MemoryEntry,
    MemoryStats,
    MessageMetadata,
    Page,
    Record,
    ToolParameter,
    ToolUsageStats,
    TypeCount,
)
from agentdash.errors import StorageError

logger = logging.getLogger(__name__)

R = TypeVar("R", bound=Record)
T = TypeVar("T")

LAST_MESSAGE_PREVIEW_CHARS = 100
# Upper bound on the number of daily access-log documents merged by one query
MAX_LOG_QUERY_DAYS = 366

# Fields a generic update may never overwrite
_IMMUTABLE_FIELDS = {"id", "created_at"}


def _now() -> datetime:
    # Millisecond precision so a record survives a codec round-trip unchanged
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=now.microsecond // 1000 * 1000)


def _new_id() -> str:
    return str(uuid.uuid4())


def _dump(value: Any) -> Any:
    if isinstance(value, BaseModel):
        return value.model_dump()
    if isinstance(value, list):
        return [_dump(v) for v in value]
    return value


def paginate(items: list[T], limit: int, offset: int) -> Page[T]:
    total = len(items)
    return Page(
        items=items[offset:offset + limit],
        total=total,
        has_more=offset + limit < total,
        offset=offset,
        limit=limit,
    )


class _RecordStore(Generic[R]):
    """Shared get/update/delete plumbing over one collection of ``model`` records."""

    model: type[R]

    def __init__(self, collection: Collection) -> None:
        self._collection = collection

    def _load(self, document: dict[str, Any]) -> R:
        return self.model.model_validate(document)

    async def get_all(self) -> list[R]:
        return [self._load(d) for d in await self._collection.load()]

    async def get_by_id(self, record_id: str) -> Optional[R]:
        document = await self._collection.get(record_id)
        if document is None:
            return None
        return self._load(document)

    async def _insert(self, record: R) -> R:
        await self._collection.insert(record.to_document())
        return record

    async def _mutate(self, record_id: str, change: Callable[[R], R]) -> Optional[R]:
        document = await self._collection.update(
            record_id, lambda d: change(self._load(d)).to_document()
        )
        if document is None:
            return None
        return self._load(document)

    def _merge(self, record: R, updates: dict[str, Any]) -> R:
        merged = record.model_dump()
        merged.update({k: _dump(v) for k, v in updates.items() if k not in _IMMUTABLE_FIELDS})
        if "updated_at" in self.model.model_fields:
            merged["updated_at"] = _now()
        return self.model.model_validate(merged)

    async def update(self, record_id: str, updates: dict[str, Any]) -> Optional[R]:
        """Shallow-merge ``updates`` (keyed by field name) over the stored record."""
        return await self._mutate(record_id, lambda r: self._merge(r, updates))

    async def delete(self, record_id: str) -> bool:
        removed = await self._collection.remove(record_id)
        if removed:
            logger.info(f"{self.model.__name__} deleted: {record_id}")
        return removed


# ─────────────────────────────────────────────
# Agents
# ─────────────────────────────────────────────

class AgentStore(_RecordStore[Agent]):
    model = Agent

    def __init__(self, backend: Backend) -> None:
        super().__init__(backend.collection("agents/agents"))

    async def create(
        self,
        name: str,
        configuration: AgentConfig,
        description: str = "",
        permissions: Optional[AgentPermissions] = None,
        status: str = "offline",
    ) -> Agent:
        agent = Agent(
            id=_new_id(),
            name=name,
            description=description,
            status=status,
            permissions=permissions or AgentPermissions(),
            configuration=configuration,
            metrics=AgentMetrics(),
            last_seen=_now(),
        )
        await self._insert(agent)
        logger.info(f"Agent registered: {agent.id} '{name}'")
        return agent

    async def touch(self, agent_id: str) -> Optional[Agent]:
        """Record that the agent was just seen."""
        return await self._mutate(agent_id, lambda a: a.model_copy(update={"last_seen": _now()}))


# ─────────────────────────────────────────────
# Chat sessions & messages
# ─────────────────────────────────────────────

def _messages_key(session_id: str) -> str:
    return f"chat/messages/{session_id}"


class ChatSessionStore(_RecordStore[ChatSession]):
    model = ChatSession

    def __init__(self, backend: Backend) -> None:
        super().__init__(backend.collection("chat/sessions"))
        self._backend = backend

    async def create(self, agent_id: str, name: str, is_active: bool = True) -> ChatSession:
        now = _now()
        session = ChatSession(
            id=_new_id(),
            agent_id=agent_id,
            name=name,
            created_at=now,
            updated_at=now,
            is_active=is_active,
            message_count=0,
        )
        await self._insert(session)
        logger.info(f"Chat session created: {session.id} for agent {agent_id}")
        return session

    async def _drop_messages(self, session_ids: Iterable[str]) -> int:
        dropped = 0
        for session_id in session_ids:
            try:
                if await self._backend.collection(_messages_key(session_id)).drop():
                    dropped += 1
            except StorageError as e:
                logger.warning(f"Could not remove messages of session {session_id}: {e}")
        return dropped

    async def delete(self, session_id: str) -> bool:
        if not await self._collection.remove(session_id):
            return False
        await self._drop_messages([session_id])
        logger.info(f"Chat session deleted: {session_id}")
        return True

    async def delete_all(self, agent_id: Optional[str] = None) -> int:
        """Delete every session (or every session of ``agent_id``) and their messages."""
        removed = await self._collection.remove_where(
            lambda d: agent_id is None or d.get("agentId") == agent_id
        )
        if not removed:
            return 0
        dropped = await self._drop_messages(d["id"] for d in removed)
        logger.info(f"Bulk deleted {len(removed)} chat sessions ({dropped} message documents)")
        return len(removed)

    async def get_paginated(self, limit: int = 50, offset: int = 0, agent_id: Optional[str] = None) -> Page[ChatSession]:
        sessions = await self.get_all()
        if agent_id:
            sessions = [s for s in sessions if s.agent_id == agent_id]
        sessions.sort(key=lambda s: s.updated_at, reverse=True)
        return paginate(sessions, limit, offset)


class ChatMessageStore:
    def __init__(self, backend: Backend, sessions: ChatSessionStore) -> None:
        self._backend = backend
        self._sessions = sessions

    def _collection(self, session_id: str) -> Collection:
        return self._backend.collection(_messages_key(session_id))

    async def get_by_session(
        self,
        session_id: str,
        limit: int = 50,
        before: Optional[datetime] = None,
    ) -> list[ChatMessage]:
        """Newest messages first, optionally only those strictly older than ``before``."""
        messages = [ChatMessage.model_validate(d) for d in await self._collection(session_id).load()]
        if before is not None:
            messages = [m for m in messages if m.timestamp < before]
        messages.sort(key=lambda m: m.timestamp, reverse=True)
        return messages[:limit]

    async def count(self, session_id: str) -> int:
        return await self._collection(session_id).count()

    async def create(
        self,
        session_id: str,
        role: str,
        content: str,
        attachments: Optional[list[FileAttachment]] = None,
        metadata: Optional[MessageMetadata] = None,
    ) -> Optional[ChatMessage]:
        """Append a message to an existing session. Returns None if the session is unknown."""
        if await self._sessions.get_by_id(session_id) is None:
            return None

        message = ChatMessage(
            id=_new_id(),
            session_id=session_id,
            role=role,
            content=content,
            timestamp=_now(),
            attachments=attachments,
            metadata=metadata,
        )
        collection = self._collection(session_id)
        await collection.insert(message.to_document())

        # Second, independent mutation: the count is re-derived from the document
        message_count = await collection.count()
        await self._sessions.update(session_id, {
            "message_count": message_count,
            "last_message": content[:LAST_MESSAGE_PREVIEW_CHARS],
        })
        logger.debug(f"Message posted: session={session_id} role={role} count={message_count}")
        return message


# ─────────────────────────────────────────────
# Memory entries
# ─────────────────────────────────────────────

def memory_search_text(entry: MemoryEntry) -> str:
    return f"{entry.content} {' '.join(entry.tags)} {entry.category}".lower()


def tokenize_query(query: str) -> list[str]:
    return query.lower().split()


def match_count(entry: MemoryEntry, terms: list[str]) -> int:
    """Number of query terms found anywhere in the entry's content, tags or category."""
    text = memory_search_text(entry)
    return sum(1 for term in terms if term in text)


class MemoryStore(_RecordStore[MemoryEntry]):
    model = MemoryEntry

    def __init__(self, backend: Backend) -> None:
        super().__init__(backend.collection("memory/entries"))

    async def create(
        self,
        type: str,
        content: str,
        category: str,
        tags: Optional[list[str]] = None,
        priority: int = 3,
        source: Optional[str] = None,
    ) -> MemoryEntry:
        now = _now()
        entry = MemoryEntry(
            id=_new_id(),
            type=type,
            content=content,
            tags=tags or [],
            category=category,
            created_at=now,
            updated_at=now,
            access_count=0,
            source=source,
            priority=priority,
        )
        await self._insert(entry)
        logger.info(f"Memory entry created: {entry.id} ({type}/{category})")
        return entry

    async def record_access(self, entry_id: str) -> Optional[MemoryEntry]:
        """Count one read of the entry. Returns the updated entry, or None if unknown."""
        return await self._mutate(entry_id, lambda e: e.model_copy(update={
            "access_count": e.access_count + 1,
            "last_accessed": _now(),
        }))

    async def search(
        self,
        query: str,
        category: Optional[str] = None,
        type: Optional[str] = None,
        limit: int = 20,
    ) -> list[MemoryEntry]:
        entries = await self.get_all()
        if category:
            entries = [e for e in entries if category in e.category]
        if type:
            entries = [e for e in entries if e.type == type]

        terms = tokenize_query(query)
        scored = [(match_count(e, terms), e) for e in entries]
        scored = [(score, e) for score, e in scored if score > 0]
        scored.sort(key=lambda pair: pair[0], reverse=True)
        return [e for _, e in scored[:limit]]

    async def get_stats(self) -> MemoryStats:
        entries = await self.get_all()
        categories: dict[str, int] = {}
        types: dict[str, int] = {}
        total_size = 0
        total_access = 0
        for entry in entries:
            categories[entry.category] = categories.get(entry.category, 0) + 1
            types[entry.type] = types.get(entry.type, 0) + 1
            total_size += len(entry.content)
            total_access += entry.access_count
        return MemoryStats(
            total_entries=len(entries),
            total_size=total_size,
            category_breakdown=[CategoryCount(category=c, count=n) for c, n in categories.items()],
            type_breakdown=[TypeCount(type=t, count=n) for t, n in types.items()],
            average_access_count=total_access / len(entries) if entries else 0,
        )


# ─────────────────────────────────────────────
# MCP tools
# ─────────────────────────────────────────────

class ToolStore(_RecordStore[MCPTool]):
    model = MCPTool

    def __init__(self, backend: Backend) -> None:
        super().__init__(backend.collection("mcp/tools"))

    async def create(
        self,
        name: str,
        description: str,
        category: str,
        parameters: Optional[list[ToolParameter]] = None,
        permissions: Optional[list[str]] = None,
        is_active: bool = True,
    ) -> MCPTool:
        tool = MCPTool(
            id=_new_id(),
            name=name,
            description=description,
            category=category,
            parameters=parameters or [],
            permissions=permissions or [],
            is_active=is_active,
            usage_stats=ToolUsageStats(),
        )
        await self._insert(tool)
        logger.info(f"MCP tool registered: {tool.id} '{name}'")
        return tool

    async def record_execution(self, tool_id: str, duration_ms: float, success: bool) -> Optional[MCPTool]:
        """Fold one execution into the running average time and success rate."""
        def apply(tool: MCPTool) -> MCPTool:
            stats = tool.usage_stats
            total = stats.total_executions + 1
            average = (stats.average_execution_time * stats.total_executions + duration_ms) / total
            successes = round(stats.success_rate * stats.total_executions) + (1 if success else 0)
            return tool.model_copy(update={
                "usage_stats": ToolUsageStats(
                    total_executions=total,
                    success_rate=successes / total,
                    average_execution_time=average,
                ),
                "last_used": _now(),
            })

        return await self._mutate(tool_id, apply)


# ─────────────────────────────────────────────
# Access logs (one document per UTC day)
# ─────────────────────────────────────────────

def _log_key(day: date) -> str:
    return f"logs/access-{day.isoformat()}"


class AccessLogStore:
    def __init__(self, backend: Backend) -> None:
        self._backend = backend

    def _collection(self, day: date) -> Collection:
        return self._backend.collection(_log_key(day))

    async def create(
        self,
        agent_id: str,
        operation: str,
        resource: str,
        resource_id: str,
        response_time: float = 0,
        status: str = "success",
        details: Optional[LogDetails] = None,
    ) -> AccessLog:
        now = _now()
        log = AccessLog(
            id=_new_id(),
            timestamp=now,
            agent_id=agent_id,
            operation=operation,
            resource=resource,
            resource_id=resource_id,
            response_time=response_time,
            status=status,
            details=details,
        )
        await self._collection(now.date()).insert(log.to_document())
        return log

    async def get_by_agent(
        self,
        agent_id: str,
        limit: int = 100,
        since: Optional[datetime] = None,
    ) -> list[AccessLog]:
        """Today's logs for an agent, or every day from ``since`` through today."""
        today = _now().date()
        days = [today]
        if since is not None:
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            first = max(since.astimezone(timezone.utc).date(), today - timedelta(days=MAX_LOG_QUERY_DAYS - 1))
            days = [first + timedelta(days=n) for n in range((today - first).days + 1)]

        logs: list[AccessLog] = []
        for day in days:
            for document in await self._collection(day).load():
                log = AccessLog.model_validate(document)
                if log.agent_id != agent_id:
                    continue
                if since is not None and log.timestamp < since:
                    continue
                logs.append(log)
        logs.sort(key=lambda log: log.timestamp, reverse=True)
        return logs[:limit]


# ─────────────────────────────────────────────
# Storage container
# ─────────────────────────────────────────────

@dataclass
class Storage:
    backend: Backend
    agents: AgentStore
    sessions: ChatSessionStore
    messages: ChatMessageStore
    memory: MemoryStore
    tools: ToolStore
    access_logs: AccessLogStore

    async def close(self) -> None:
        await self.backend.close()


async def open_storage(config: StorageConfig) -> Storage:
    backend = create_backend(config)
    await backend.open()
    sessions = ChatSessionStore(backend)
    logger.info(f"Storage opened: backend={backend.name} data_dir={config.data_dir}")
    return Storage(
        backend=backend,
        agents=AgentStore(backend),
        sessions=sessions,
        messages=ChatMessageStore(backend, sessions),
        memory=MemoryStore(backend),
        tools=ToolStore(backend),
        access_logs=AccessLogStore(backend),
    )
