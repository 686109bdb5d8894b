"""Agent API endpoints.

GET    /api/agents                  - list agents with status counts
POST   /api/agents                  - register an agent (starts offline)
GET    /api/agents/system-metrics   - fleet-wide agent / memory / MCP / process metrics
GET    /api/agents/{agent_id}       - agent detail
PUT    /api/agents/{agent_id}       - update name, description, status, configuration, permissions
DELETE /api/agents/{agent_id}       - delete (no cascade)
POST   /api/agents/{agent_id}/heartbeat - mark the agent as seen now
GET    /api/agents/{agent_id}/logs  - the agent's access logs
"""
import logging
import time
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional

import psutil
from fastapi import APIRouter, Depends, Query, Request

from agentdash.api.deps import get_storage, get_storage_config
from agentdash.api.envelope import api_response
from agentdash.api.schemas import AgentCreate, AgentUpdate, require_uuid
from agentdash.config import StorageConfig
from agentdash.db.crud import Storage
from agentdash.db.models import AGENT_STATUSES, AgentConfig, AgentPermissions
from agentdash.errors import NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/agents", tags=["agents"])

TOP_CATEGORIES = 5


@router.get("")
async def list_agents(
    status: Optional[str] = None,
    limit: int = Query(50, ge=1, le=200),
    storage: Storage = Depends(get_storage),
):
    agents = await storage.agents.get_all()
    if status in AGENT_STATUSES:
        agents = [a for a in agents if a.status == status]

    status_counts = {s: sum(1 for a in agents if a.status == s) for s in AGENT_STATUSES}
    return api_response({
        "agents": agents[:limit],
        "total": len(agents),
        "statusCounts": status_counts,
    })


@router.post("", status_code=201)
async def register_agent(body: AgentCreate, storage: Storage = Depends(get_storage)):
    permissions = None
    if body.permissions is not None:
        permissions = AgentPermissions.model_validate(body.permissions.model_dump())
    agent = await storage.agents.create(
        name=body.name,
        description=body.description,
        configuration=AgentConfig.model_validate(body.configuration.model_dump()),
        permissions=permissions,
        status="offline",
    )
    return api_response(agent)


def _disk_usage_percent(path: Path) -> float:
    while not path.exists() and path != path.parent:
        path = path.parent
    return psutil.disk_usage(str(path)).percent


@router.get("/system-metrics")
async def system_metrics(
    request: Request,
    storage: Storage = Depends(get_storage),
    config: StorageConfig = Depends(get_storage_config),
):
    agents = await storage.agents.get_all()
    memory_stats = await storage.memory.get_stats()
    tools = await storage.tools.get_all()

    tool_count = len(tools)
    mcp = {
        "activeTools": sum(1 for t in tools if t.is_active),
        "totalExecutions": sum(t.usage_stats.total_executions for t in tools),
        "averageExecutionTime": (
            sum(t.usage_stats.average_execution_time for t in tools) / tool_count if tool_count else 0
        ),
        "errorRate": (
            sum(1 - t.usage_stats.success_rate for t in tools) / tool_count if tool_count else 0
        ),
    }

    return api_response({
        "timestamp": datetime.now(timezone.utc),
        "agents": {
            "total": len(agents),
            "online": sum(1 for a in agents if a.status == "online"),
            "offline": sum(1 for a in agents if a.status == "offline"),
            "error": sum(1 for a in agents if a.status == "error"),
        },
        "memory": {
            "totalEntries": memory_stats.total_entries,
            "totalSize": memory_stats.total_size,
            # Not tracked: access timings are not recorded per read
            "averageAccessTime": 0,
            "topCategories": memory_stats.category_breakdown[:TOP_CATEGORIES],
        },
        "mcp": mcp,
        "system": {
            "uptime": (time.monotonic() - request.app.state.started_at) * 1000,
            "memoryUsage": psutil.Process().memory_info().rss / (1024 * 1024),
            "diskUsage": _disk_usage_percent(config.data_dir),
        },
    })


@router.get("/{agent_id}")
async def get_agent(agent_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(agent_id, "agent")
    agent = await storage.agents.get_by_id(agent_id)
    if agent is None:
        raise NotFoundError("Agent", agent_id)
    return api_response(agent)


@router.put("/{agent_id}")
async def update_agent(agent_id: str, body: AgentUpdate, storage: Storage = Depends(get_storage)):
    require_uuid(agent_id, "agent")
    agent = await storage.agents.update(agent_id, body.changes())
    if agent is None:
        raise NotFoundError("Agent", agent_id)
    return api_response(agent)


@router.delete("/{agent_id}")
async def delete_agent(agent_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(agent_id, "agent")
    if not await storage.agents.delete(agent_id):
        raise NotFoundError("Agent", agent_id)
    return api_response(None, "Agent deleted successfully")


@router.post("/{agent_id}/heartbeat")
async def agent_heartbeat(agent_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(agent_id, "agent")
    agent = await storage.agents.touch(agent_id)
    if agent is None:
        raise NotFoundError("Agent", agent_id)
    return api_response(agent)


@router.get("/{agent_id}/logs")
async def agent_logs(
    agent_id: str,
    limit: int = Query(100, ge=1, le=200),
    since: Optional[datetime] = None,
    storage: Storage = Depends(get_storage),
):
    require_uuid(agent_id, "agent")
    logs = await storage.access_logs.get_by_agent(agent_id, limit=limit, since=since)
    return api_response({"logs": logs, "total": len(logs)})
