from __future__ import annotations

from pathlib import Path

import pytest

from hivecode.config import HiveSettings
from hivecode.project import ProjectContext


@pytest.fixture
def settings(tmp_path: Path) -> HiveSettings:
    return HiveSettings(
        worker_count=4,
        log_dir=tmp_path / "logs",
        global_config_path=tmp_path / "global" / "config.json",
        agent_command="agent --yes",
        restart_poll_interval=0.01,
        restart_timeout=0.05,
    )


@pytest.fixture
def project(tmp_path: Path, settings: HiveSettings) -> ProjectContext:
    root = tmp_path / "myproj"
    root.mkdir()
    return ProjectContext.from_path(root, settings)


@pytest.fixture
def no_git():
    def runner(args, cwd):
        return 128, "", "fatal: not a git repository"

    return runner
