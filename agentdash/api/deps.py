from fastapi import Request

from agentdash.config import StorageConfig
from agentdash.db.crud import Storage


def get_storage(request: Request) -> Storage:
    """The stores opened by the app's lifespan."""
    return request.app.state.storage


def get_storage_config(request: Request) -> StorageConfig:
    return request.app.state.storage_config
