"""
MCP tool registry and simulated execution.

Execution never calls out anywhere: it checks that the tool may be used by
the agent, records the attempt, and echoes the parameters back.
"""
import logging
import time
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import JSONResponse

from agentdash.api.deps import get_storage
from agentdash.api.envelope import api_error, api_response
from agentdash.api.schemas import ToolCreate, ToolExecute, ToolUpdate, require_uuid
from agentdash.db.crud import Storage
from agentdash.db.models import Agent, LogDetails, MCPTool, ToolParameter
from agentdash.errors import AppError, ForbiddenError, NotFoundError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/mcp", tags=["mcp"])


@router.get("/tools")
async def list_tools(
    category: Optional[str] = None,
    is_active: bool = Query(True, alias="isActive"),
    limit: int = Query(50, ge=1, le=200),
    storage: Storage = Depends(get_storage),
):
    all_tools = await storage.tools.get_all()
    tools = [t for t in all_tools if t.is_active == is_active]
    if category:
        tools = [t for t in tools if t.category == category]

    return api_response({
        "tools": tools[:limit],
        "total": len(tools),
        "categories": sorted({t.category for t in all_tools}),
    })


@router.post("/tools", status_code=201)
async def register_tool(body: ToolCreate, storage: Storage = Depends(get_storage)):
    tool = await storage.tools.create(
        name=body.name,
        description=body.description,
        category=body.category,
        parameters=[ToolParameter.model_validate(p.model_dump()) for p in body.parameters],
        permissions=body.permissions,
        is_active=body.is_active,
    )
    return api_response(tool)


@router.get("/tools/{tool_id}")
async def get_tool(tool_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(tool_id, "tool")
    tool = await storage.tools.get_by_id(tool_id)
    if tool is None:
        raise NotFoundError("MCP tool", tool_id)
    return api_response(tool)


@router.put("/tools/{tool_id}")
async def update_tool(tool_id: str, body: ToolUpdate, storage: Storage = Depends(get_storage)):
    require_uuid(tool_id, "tool")
    tool = await storage.tools.update(tool_id, body.changes())
    if tool is None:
        raise NotFoundError("MCP tool", tool_id)
    return api_response(tool)


@router.delete("/tools/{tool_id}")
async def delete_tool(tool_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(tool_id, "tool")
    if not await storage.tools.delete(tool_id):
        raise NotFoundError("MCP tool", tool_id)
    return api_response(None, "MCP tool deleted successfully")


# ─────────────────────────────────────────────
# Execution
# ─────────────────────────────────────────────

def _elapsed_ms(started: float) -> float:
    return (time.perf_counter() - started) * 1000


def check_tool_access(tool: MCPTool, agent: Agent) -> None:
    """Raise ForbiddenError unless ``agent`` may run ``tool``."""
    if not tool.is_active:
        raise ForbiddenError("Tool is not active")
    # An empty toolAccess list means the agent may use every tool
    allowed = agent.permissions.tool_access
    if allowed and tool.id not in allowed:
        raise ForbiddenError("Agent does not have permission to use this tool")


@router.post("/execute")
async def execute_tool(body: ToolExecute, storage: Storage = Depends(get_storage)):
    execution_id = str(uuid.uuid4())
    started = time.perf_counter()
    tool: Optional[MCPTool] = None

    try:
        require_uuid(body.tool_id, "tool")
        require_uuid(body.agent_id, "agent")
        tool = await storage.tools.get_by_id(body.tool_id)
        if tool is None:
            raise NotFoundError("MCP tool", body.tool_id)
        agent = await storage.agents.touch(body.agent_id)
        if agent is None:
            raise NotFoundError("Agent", body.agent_id)
        check_tool_access(tool, agent)
    except AppError as exc:
        elapsed = _elapsed_ms(started)
        if tool is not None:
            await storage.tools.record_execution(tool.id, elapsed, success=False)
        if isinstance(exc, ForbiddenError):
            await storage.access_logs.create(
                agent_id=body.agent_id,
                operation="execute",
                resource="mcp_tool",
                resource_id=body.tool_id,
                response_time=elapsed,
                status="denied",
                details=LogDetails(error_message=exc.message),
            )
        logger.info(f"Execution {execution_id} of tool {body.tool_id} refused: {exc.message}")
        result: dict[str, Any] = {
            "executionId": execution_id,
            "status": "error",
            "executionTime": elapsed,
            "timestamp": datetime.now(timezone.utc),
            "error": {"code": exc.code, "message": exc.message},
        }
        return JSONResponse(
            status_code=exc.status_code,
            content=api_error(exc.message, code=exc.code, data=result),
        )

    now = datetime.now(timezone.utc)
    output = {
        "message": f"Tool {tool.name} executed successfully",
        "parameters": body.parameters,
        "timestamp": now,
    }
    elapsed = _elapsed_ms(started)
    await storage.access_logs.create(
        agent_id=agent.id,
        operation="execute",
        resource="mcp_tool",
        resource_id=tool.id,
        response_time=elapsed,
        status="success",
    )
    await storage.tools.record_execution(tool.id, elapsed, success=True)
    logger.info(f"Execution {execution_id}: agent {agent.id} ran tool '{tool.name}' in {elapsed:.1f}ms")

    return api_response({
        "executionId": execution_id,
        "status": "success",
        "result": output,
        "executionTime": elapsed,
        "timestamp": now,
    })
