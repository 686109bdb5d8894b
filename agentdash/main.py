"""
AgentDash main entry point.

Starts a FastAPI HTTP server that:
  1. Serves the dashboard REST API under /api (agents, chat, memory, mcp)
  2. Streams chat heartbeats over SSE at /api/chat/stream
  3. Answers liveness probes at /health
"""
import logging
import time
from contextlib import asynccontextmanager
from typing import Optional

import uvicorn
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from agentdash.api import agents, chat, mcp, memory
from agentdash.api.envelope import api_error
from agentdash.config import APP_VERSION, HOST, LOG_LEVEL, PORT, StorageConfig, get_cors_origins, get_storage_config
from agentdash.db.crud import open_storage
from agentdash.errors import AppError

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
)
logger = logging.getLogger("agentdash")


def _validation_message(exc: RequestValidationError) -> str:
    parts = []
    for err in exc.errors():
        loc = [str(p) for p in err.get("loc", ()) if p not in ("body", "query", "path")]
        field = ".".join(loc) or "body"
        parts.append(f"{field}: {err.get('msg', 'invalid value')}")
    return ", ".join(parts)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(AppError)
    async def app_error_handler(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc.message}")
        return JSONResponse(status_code=exc.status_code, content=api_error(exc.message, code=exc.code))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        return JSONResponse(
            status_code=400,
            content=api_error(_validation_message(exc), code="VALIDATION_ERROR"),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(status_code=exc.status_code, content=api_error(str(exc.detail)))

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=500,
            content=api_error("Internal server error", code="INTERNAL_ERROR"),
        )


def create_app(config: Optional[StorageConfig] = None) -> FastAPI:
    storage_config = config or get_storage_config()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        # Startup: open the configured backend
        app.state.storage = await open_storage(storage_config)
        logger.info(f"AgentDash running at http://{HOST}:{PORT} (storage={storage_config.backend})")
        yield
        # Shutdown
        await app.state.storage.close()

    app = FastAPI(
        title="AgentDash",
        description="Dashboard API for monitoring and operating a fleet of AI agents.",
        version=APP_VERSION,
        lifespan=lifespan,
    )
    app.state.storage_config = storage_config
    app.state.started_at = time.monotonic()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=get_cors_origins(),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )
    register_exception_handlers(app)

    for module in (agents, chat, mcp, memory):
        app.include_router(module.router)

    @app.get("/health")
    async def health():
        return {"status": "ok", "service": "AgentDash", "version": APP_VERSION}

    return app


app = create_app()


if __name__ == "__main__":
    uvicorn.run("agentdash.main:app", host=HOST, port=PORT, reload=True)
