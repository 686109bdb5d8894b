from pathlib import Path

import pytest

from agentdash.cli import build_parser, storage_config_from_args


def test_data_dir_carries_its_own_database(tmp_path):
    args = build_parser().parse_args(["--data-dir", str(tmp_path), "--storage", "sqlite", "--port", "4000"])
    config = storage_config_from_args(args)

    assert args.port == 4000
    assert config.backend == "sqlite"
    assert config.data_dir == Path(tmp_path)
    assert config.db_path == Path(tmp_path) / "agentdash.db"


def test_unknown_backend_is_rejected():
    with pytest.raises(SystemExit):
        build_parser().parse_args(["--storage", "mongo"])
