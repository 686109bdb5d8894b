import argparse
import os
from pathlib import Path

import uvicorn

from agentdash.config import DATA_DIR, DB_PATH, HOST, PORT, STORAGE_BACKEND, STORAGE_BACKENDS, StorageConfig


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Run the AgentDash HTTP/SSE server")
    parser.add_argument("--host", default=HOST, help="Bind host")
    parser.add_argument("--port", type=int, default=PORT, help="Bind port")
    parser.add_argument(
        "--reload",
        action="store_true",
        help="Enable auto-reload for development",
    )
    parser.add_argument("--data-dir", default=None, help=f"Directory holding the collections (default: {DATA_DIR})")
    parser.add_argument(
        "--storage",
        choices=STORAGE_BACKENDS,
        default=STORAGE_BACKEND,
        help="Storage backend",
    )
    return parser


def storage_config_from_args(args: argparse.Namespace) -> StorageConfig:
    if args.data_dir:
        # A relocated data directory carries its own SQLite file
        return StorageConfig(data_dir=Path(args.data_dir), backend=args.storage)
    return StorageConfig(data_dir=DATA_DIR, backend=args.storage, db_path=Path(DB_PATH))


def main() -> None:
    args = build_parser().parse_args()
    config = storage_config_from_args(args)

    if args.reload:
        # The reloader re-imports the app in a child process, so hand the settings over via the environment
        os.environ["AGENTDASH_DATA_DIR"] = str(config.data_dir)
        os.environ["AGENTDASH_STORAGE"] = config.backend
        os.environ["AGENTDASH_DB"] = str(config.db_path)
        target = "agentdash.main:app"
    else:
        from agentdash.main import create_app
        target = create_app(config)

    uvicorn.run(
        target,
        host=args.host,
        port=args.port,
        reload=args.reload,
        log_level="info",
        timeout_graceful_shutdown=3,
    )


if __name__ == "__main__":
    main()
