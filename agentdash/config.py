"""
AgentDash Configuration
"""
import os
import json
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

# Project root
BASE_DIR = Path(__file__).resolve().parent.parent

config_data = {}
_config_file = BASE_DIR / "data" / "config.json"
if _config_file.exists():
    try:
        with open(_config_file, "r", encoding="utf-8") as _f:
            config_data = json.load(_f)
    except (OSError, ValueError):
        pass

# Root directory for every collection document (and the SQLite file)
DATA_DIR = Path(os.getenv("AGENTDASH_DATA_DIR", config_data.get("DATA_DIR", str(BASE_DIR / "data"))))

# Storage backend: "json" keeps one document per collection, "sqlite" keeps one row per record
STORAGE_BACKEND = os.getenv("AGENTDASH_STORAGE", config_data.get("STORAGE", "json")).lower()
STORAGE_BACKENDS = ("json", "sqlite")

DB_PATH = os.getenv("AGENTDASH_DB", config_data.get("DB_PATH", str(DATA_DIR / "agentdash.db")))

# HTTP server - default to localhost only
HOST = os.getenv("AGENTDASH_HOST", config_data.get("HOST", "127.0.0.1"))
PORT = int(os.getenv("AGENTDASH_PORT", config_data.get("PORT", "39780")))

# Seconds between heartbeat events on /api/chat/stream
HEARTBEAT_INTERVAL = float(os.getenv("AGENTDASH_HEARTBEAT_INTERVAL", config_data.get("HEARTBEAT_INTERVAL", "30")))

# Comma-separated origins allowed to call the API (the React UI)
CORS_ORIGINS = os.getenv("AGENTDASH_CORS_ORIGINS", config_data.get("CORS_ORIGINS", "http://localhost:3000"))

LOG_LEVEL = os.getenv("AGENTDASH_LOG_LEVEL", "INFO").upper()
APP_VERSION = "0.1.0"


@dataclass
class StorageConfig:
    """Where and how the stores persist their collections."""

    data_dir: Path
    backend: str = "json"
    db_path: Optional[Path] = None

    def __post_init__(self) -> None:
        self.data_dir = Path(self.data_dir)
        if self.backend not in STORAGE_BACKENDS:
            raise ValueError(f"Unknown storage backend '{self.backend}'. Must be one of {STORAGE_BACKENDS}")
        if self.db_path is None:
            self.db_path = self.data_dir / "agentdash.db"
        else:
            self.db_path = Path(self.db_path)


def get_storage_config() -> StorageConfig:
    return StorageConfig(data_dir=DATA_DIR, backend=STORAGE_BACKEND, db_path=Path(DB_PATH))


def get_cors_origins() -> list[str]:
    return [o.strip() for o in CORS_ORIGINS.split(",") if o.strip()]
