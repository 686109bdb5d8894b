"""Chat session, message, and live-stream endpoints."""
import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncIterator, Optional

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import StreamingResponse

from agentdash.api.deps import get_storage
from agentdash.api.envelope import api_response
from agentdash.api.schemas import (
    ChatMessageCreate,
    ChatSessionCreate,
    ChatSessionUpdate,
    require_uuid,
)
from agentdash.config import HEARTBEAT_INTERVAL
from agentdash.db.codec import format_timestamp
from agentdash.db.crud import Storage
from agentdash.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/chat", tags=["chat"])

# How often the stream checks for a closed connection between heartbeats
DISCONNECT_POLL_SECONDS = 0.5


# ─────────────────────────────────────────────
# Sessions
# ─────────────────────────────────────────────

@router.get("/sessions")
async def list_sessions(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    storage: Storage = Depends(get_storage),
):
    page = await storage.sessions.get_paginated(limit=limit, offset=offset, agent_id=agent_id)
    return api_response({"sessions": page.items, "total": page.total, "hasMore": page.has_more})


@router.post("/sessions", status_code=201)
async def create_session(body: ChatSessionCreate, storage: Storage = Depends(get_storage)):
    session = await storage.sessions.create(body.agent_id, body.name)
    return api_response(session)


@router.delete("/sessions")
async def delete_all_sessions(
    agent_id: Optional[str] = Query(None, alias="agentId"),
    storage: Storage = Depends(get_storage),
):
    deleted = await storage.sessions.delete_all(agent_id)
    if deleted == 0:
        message = "No sessions to delete"
    else:
        message = f"Successfully deleted {deleted} session(s)"
    return api_response({"deletedCount": deleted, "message": message}, message)


@router.get("/sessions/{session_id}")
async def get_session(session_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(session_id, "session")
    session = await storage.sessions.get_by_id(session_id)
    if session is None:
        raise NotFoundError("Chat session", session_id)
    return api_response(session)


@router.put("/sessions/{session_id}")
async def update_session(session_id: str, body: ChatSessionUpdate, storage: Storage = Depends(get_storage)):
    require_uuid(session_id, "session")
    session = await storage.sessions.update(session_id, body.changes())
    if session is None:
        raise NotFoundError("Chat session", session_id)
    return api_response(session)


@router.delete("/sessions/{session_id}")
async def delete_session(session_id: str, storage: Storage = Depends(get_storage)):
    require_uuid(session_id, "session")
    if not await storage.sessions.delete(session_id):
        raise NotFoundError("Chat session", session_id)
    return api_response(None, "Session deleted successfully")


# ─────────────────────────────────────────────
# Messages
# ─────────────────────────────────────────────

@router.get("/messages")
async def list_messages(
    session_id: Optional[str] = Query(None, alias="sessionId"),
    limit: int = Query(50, ge=1, le=200),
    before: Optional[datetime] = None,
    storage: Storage = Depends(get_storage),
):
    if not session_id:
        raise ValidationError("sessionId is required")
    require_uuid(session_id, "session")
    if before is not None and before.tzinfo is None:
        before = before.replace(tzinfo=timezone.utc)
    messages = await storage.messages.get_by_session(session_id, limit=limit, before=before)
    return api_response({"messages": messages, "hasMore": len(messages) == limit})


@router.post("/messages", status_code=201)
async def post_message(body: ChatMessageCreate, storage: Storage = Depends(get_storage)):
    require_uuid(body.session_id, "session")
    message = await storage.messages.create(
        session_id=body.session_id,
        role=body.role,
        content=body.content,
        attachments=body.attachments,
        metadata=body.metadata,
    )
    if message is None:
        raise NotFoundError("Chat session", body.session_id)
    return api_response(message)


# ─────────────────────────────────────────────
# Live stream (SSE)
# ─────────────────────────────────────────────

def sse_event(payload: dict[str, Any]) -> str:
    return f"data: {json.dumps(payload)}\n\n"


def _timestamp() -> str:
    return format_timestamp(datetime.now(timezone.utc))


async def stream_events(
    request: Request,
    session_id: Optional[str],
    interval: float = HEARTBEAT_INTERVAL,
) -> AsyncIterator[str]:
    """
    A ``connected`` event, then a ``heartbeat`` every ``interval`` seconds
    until the client goes away.
    """
    loop = asyncio.get_running_loop()
    yield sse_event({"type": "connected", "sessionId": session_id or "all", "timestamp": _timestamp()})

    last_beat = loop.time()
    while not await request.is_disconnected():
        await asyncio.sleep(min(DISCONNECT_POLL_SECONDS, interval))
        if loop.time() - last_beat >= interval:
            last_beat = loop.time()
            yield sse_event({"type": "heartbeat", "timestamp": _timestamp()})

    logger.debug(f"Chat stream closed (session={session_id or 'all'})")


@router.get("/stream")
async def chat_stream(request: Request, session_id: Optional[str] = Query(None, alias="sessionId")):
    if session_id is not None:
        require_uuid(session_id, "session")
    return StreamingResponse(
        stream_events(request, session_id),
        media_type="text/event-stream",
        headers={"Cache-Control": "no-cache", "Connection": "keep-alive"},
    )
