"""
Record models for AgentDash.
These objects are shared by the stores and the API layer. Their JSON form uses
camelCase keys so existing collection documents load unchanged.
"""
from datetime import datetime
from typing import Any, Generic, Literal, Optional, TypeVar, get_args

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel

from agentdash.db.codec import timestamp_text

AgentStatus = Literal["online", "offline", "error", "maintenance"]
PermissionLevel = Literal["none", "read", "write", "admin"]
MessageRole = Literal["user", "assistant", "system"]
MemoryType = Literal["fact", "preference", "context", "instruction", "conversation"]
ParameterType = Literal["string", "number", "boolean", "array", "object"]
LogOperation = Literal["read", "write", "delete", "search", "execute"]
LogStatus = Literal["success", "error", "timeout", "denied"]

AGENT_STATUSES: tuple[str, ...] = get_args(AgentStatus)
MEMORY_TYPES: tuple[str, ...] = get_args(MemoryType)

_TEXT_FIELDS = (str, Optional[str], list[str], Optional[list[str]])
_UNTYPED_FIELDS = (Any, Optional[Any], dict[str, Any], Optional[dict[str, Any]])


def _as_text(value: Any) -> Any:
    if isinstance(value, datetime):
        return timestamp_text(value)
    if isinstance(value, list):
        return [_as_text(v) for v in value]
    if isinstance(value, dict):
        return {k: _as_text(v) for k, v in value.items()}
    return value


class Record(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())

    @model_validator(mode="before")
    @classmethod
    def _restore_string_fields(cls, data: Any) -> Any:
        # The codec revives any timestamp-shaped string; text fields must stay text.
        if not isinstance(data, dict):
            return data
        for name, field in cls.model_fields.items():
            key = field.alias if field.alias in data else name
            value = data.get(key)
            if key in data and field.annotation in _TEXT_FIELDS + _UNTYPED_FIELDS:
                data = {**data, key: _as_text(value)}
        return data

    def to_document(self) -> dict[str, Any]:
        """Return the camelCase dict persisted by the backends (unset optionals omitted)."""
        return self.model_dump(by_alias=True, exclude_none=True)


# ─────────────────────────────────────────────
# Agents
# ─────────────────────────────────────────────

class AgentPermissions(Record):
    memory_access: PermissionLevel = "read"
    tool_access: list[str] = Field(default_factory=list)
    rate_limit_rpm: int = 60
    max_memory_size: int = 100


class AgentConfig(Record):
    model: str
    temperature: float
    max_tokens: int
    system_prompt: Optional[str] = None


class AgentMetrics(Record):
    total_requests: int = 0
    average_response_time: float = 0
    error_rate: float = 0
    uptime: float = 100


class Agent(Record):
    id: str
    name: str
    description: str = ""
    status: AgentStatus = "offline"
    permissions: AgentPermissions = Field(default_factory=AgentPermissions)
    configuration: AgentConfig
    metrics: AgentMetrics = Field(default_factory=AgentMetrics)
    last_seen: Optional[datetime] = None


# ─────────────────────────────────────────────
# Chat
# ─────────────────────────────────────────────

class ChatSession(Record):
    id: str
    agent_id: str
    name: str
    created_at: datetime
    updated_at: datetime
    is_active: bool = True
    message_count: int = 0
    last_message: Optional[str] = None


class FileAttachment(Record):
    id: str
    filename: str
    mime_type: str
    size: int
    path: str


class MessageMetadata(Record):
    processing_time: Optional[float] = None
    token_count: Optional[int] = None
    model_used: Optional[str] = None


class ChatMessage(Record):
    id: str
    session_id: str
    role: MessageRole
    content: str
    timestamp: datetime
    attachments: Optional[list[FileAttachment]] = None
    metadata: Optional[MessageMetadata] = None


# ─────────────────────────────────────────────
# Memory
# ─────────────────────────────────────────────

class MemoryEntry(Record):
    id: str
    type: MemoryType
    content: str
    tags: list[str] = Field(default_factory=list)
    category: str
    created_at: datetime
    updated_at: datetime
    access_count: int = 0
    last_accessed: Optional[datetime] = None
    source: Optional[str] = None
    priority: int = 3


class CategoryCount(Record):
    category: str
    count: int


class TypeCount(Record):
    type: str
    count: int


class MemoryStats(Record):
    total_entries: int
    total_size: int
    category_breakdown: list[CategoryCount]
    type_breakdown: list[TypeCount]
    average_access_count: float


# ─────────────────────────────────────────────
# MCP tools
# ─────────────────────────────────────────────

class ParameterValidation(Record):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None


class ToolParameter(Record):
    name: str
    type: ParameterType
    required: bool
    description: str
    default_value: Optional[Any] = None
    validation: Optional[ParameterValidation] = None


class ToolUsageStats(Record):
    total_executions: int = 0
    success_rate: float = 1
    average_execution_time: float = 0


class MCPTool(Record):
    id: str
    name: str
    description: str
    category: str
    parameters: list[ToolParameter] = Field(default_factory=list)
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True
    usage_stats: ToolUsageStats = Field(default_factory=ToolUsageStats)
    last_used: Optional[datetime] = None


# ─────────────────────────────────────────────
# Access logs
# ─────────────────────────────────────────────

class LogDetails(Record):
    query: Optional[str] = None
    result_count: Optional[int] = None
    error_message: Optional[str] = None
    metadata: Optional[dict[str, Any]] = None


class AccessLog(Record):
    id: str
    timestamp: datetime
    agent_id: str
    operation: LogOperation
    resource: str
    resource_id: str
    response_time: float
    status: LogStatus
    details: Optional[LogDetails] = None


T = TypeVar("T")


class Page(BaseModel, Generic[T]):
    """One slice of a listing plus the size of the full (filtered) result."""

    items: list[T]
    total: int
    has_more: bool
    offset: int
    limit: int
