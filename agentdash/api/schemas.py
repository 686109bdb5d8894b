"""
Request bodies accepted by the REST API.

Field limits mirror what the dashboard UI enforces; anything outside them is
rejected with a 400 before a store is touched.
"""
import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from agentdash.db.models import (
    AgentStatus,
    FileAttachment,
    MemoryType,
    MessageMetadata,
    MessageRole,
    ParameterType,
    PermissionLevel,
)
from agentdash.errors import ValidationError

UUID_RE = re.compile(
    r"^[0-9a-f]{8}-[0-9a-f]{4}-[1-5][0-9a-f]{3}-[89ab][0-9a-f]{3}-[0-9a-f]{12}$",
    re.IGNORECASE,
)


def is_valid_uuid(value: Optional[str]) -> bool:
    return isinstance(value, str) and UUID_RE.match(value) is not None


def require_uuid(value: str, resource: str) -> str:
    if not is_valid_uuid(value):
        raise ValidationError(f"Invalid {resource} ID format")
    return value


class RequestModel(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, protected_namespaces=())

    def changes(self) -> dict[str, Any]:
        """Non-null fields the client actually sent, keyed by field name."""
        sent = {k: getattr(self, k) for k in self.model_fields_set}
        return {k: v for k, v in sent.items() if v is not None}


# ─────────────────────────────────────────────
# Agents
# ─────────────────────────────────────────────

class AgentConfigBody(RequestModel):
    model: str
    temperature: float = Field(ge=0, le=1)
    max_tokens: int = Field(ge=1, le=100000)
    system_prompt: Optional[str] = Field(default=None, max_length=10000)


class AgentPermissionsBody(RequestModel):
    memory_access: PermissionLevel
    tool_access: list[str]
    rate_limit_rpm: int = Field(ge=1, le=10000)
    max_memory_size: int = Field(ge=1, le=10000)


class AgentCreate(RequestModel):
    name: str = Field(max_length=100)
    description: str = Field(max_length=500)
    configuration: AgentConfigBody
    permissions: Optional[AgentPermissionsBody] = None


class AgentUpdate(RequestModel):
    name: Optional[str] = Field(default=None, max_length=100)
    description: Optional[str] = Field(default=None, max_length=500)
    status: Optional[AgentStatus] = None
    configuration: Optional[AgentConfigBody] = None
    permissions: Optional[AgentPermissionsBody] = None


# ─────────────────────────────────────────────
# Chat
# ─────────────────────────────────────────────

class ChatSessionCreate(RequestModel):
    agent_id: str = Field(min_length=1)
    name: str = Field(max_length=100)


class ChatSessionUpdate(RequestModel):
    name: Optional[str] = Field(default=None, max_length=100)
    is_active: Optional[bool] = None


class ChatMessageCreate(RequestModel):
    session_id: str
    role: MessageRole
    content: str = Field(max_length=50000)
    attachments: Optional[list[FileAttachment]] = None
    metadata: Optional[MessageMetadata] = None


# ─────────────────────────────────────────────
# Memory
# ─────────────────────────────────────────────

class MemoryEntryCreate(RequestModel):
    type: MemoryType
    content: str = Field(max_length=10000)
    tags: list[str] = Field(default_factory=list, max_length=20)
    category: str
    priority: int = Field(default=3, ge=1, le=5)
    source: Optional[str] = None

    @field_validator("tags")
    @classmethod
    def _tag_length(cls, v: list[str]) -> list[str]:
        for tag in v:
            if len(tag) > 50:
                raise ValueError("Tags must be at most 50 characters")
        return v


class MemoryEntryUpdate(RequestModel):
    content: Optional[str] = Field(default=None, max_length=10000)
    tags: Optional[list[str]] = Field(default=None, max_length=20)
    category: Optional[str] = None
    priority: Optional[int] = Field(default=None, ge=1, le=5)

    @field_validator("tags")
    @classmethod
    def _tag_length(cls, v: Optional[list[str]]) -> Optional[list[str]]:
        for tag in v or []:
            if len(tag) > 50:
                raise ValueError("Tags must be at most 50 characters")
        return v


# ─────────────────────────────────────────────
# MCP tools
# ─────────────────────────────────────────────

class ParameterValidationBody(RequestModel):
    min_length: Optional[int] = None
    max_length: Optional[int] = None
    pattern: Optional[str] = None
    min: Optional[float] = None
    max: Optional[float] = None


class ToolParameterBody(RequestModel):
    name: str
    type: ParameterType
    required: bool
    description: str
    default_value: Optional[Any] = None
    validation: Optional[ParameterValidationBody] = None


class ToolCreate(RequestModel):
    name: str = Field(max_length=100)
    description: str = Field(max_length=500)
    category: str
    parameters: list[ToolParameterBody]
    permissions: list[str] = Field(default_factory=list)
    is_active: bool = True


class ToolUpdate(RequestModel):
    description: Optional[str] = Field(default=None, max_length=500)
    is_active: Optional[bool] = None
    permissions: Optional[list[str]] = None


class ToolExecute(RequestModel):
    tool_id: str
    agent_id: str
    parameters: dict[str, Any] = Field(default_factory=dict)
    timeout: int = Field(default=30, ge=1, le=300)
