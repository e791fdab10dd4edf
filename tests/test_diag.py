from __future__ import annotations

import importlib.util
import json
from pathlib import Path

import pytest

from hivecode.project import ProjectContext, initialize
from hivecode.tmux import FakeTmuxHost, TmuxHost


def _load_diag():
    script = Path(__file__).resolve().parents[1] / "scripts" / "hive_diag.py"
    spec = importlib.util.spec_from_file_location("hive_diag", script)
    assert spec and spec.loader
    module = importlib.util.module_from_spec(spec)
    spec.loader.exec_module(module)
    return module


@pytest.fixture
def diag(monkeypatch: pytest.MonkeyPatch, project: ProjectContext, tmp_path: Path):
    monkeypatch.chdir(project.root)
    monkeypatch.setenv("HIVECODE_GLOBAL_CONFIG", str(tmp_path / "global.json"))
    monkeypatch.setenv("HIVECODE_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("HIVECODE_WORKER_COUNT", raising=False)
    return _load_diag()


def test_workers_dumps_snapshots(diag, monkeypatch, capsys) -> None:
    host = FakeTmuxHost({"hive-myproj-worker-2"})
    monkeypatch.setattr(diag, "TmuxHost", lambda timeout: host)

    diag.main(["workers", "--running"])

    payload = json.loads(capsys.readouterr().out)
    assert [worker["id"] for worker in payload] == [2]
    assert payload[0]["session_name"] == "hive-myproj-worker-2"
    assert payload[0]["status"] is None


def test_workers_without_tmux_exits(diag, monkeypatch, tmp_path: Path, capsys) -> None:
    monkeypatch.setattr(diag, "TmuxHost", lambda timeout: TmuxHost(tmp_path / "missing"))

    with pytest.raises(SystemExit):
        diag.main(["workers"])
    assert "tmux is required" in capsys.readouterr().out


def test_config_reports_layers(diag, tmp_path: Path, project: ProjectContext, capsys) -> None:
    (tmp_path / "global.json").write_text(json.dumps({"theme": "dark"}), encoding="utf-8")

    diag.main(["config"])

    payload = json.loads(capsys.readouterr().out)
    assert payload["entries"] == [{"key": "theme", "value": "dark", "source": "global"}]
    assert payload["paths"]["local"] == str(project.root / ".hive" / "config.json")
    assert payload["settings"]["worker_count"] == 4


def test_tasks_lists_headers(diag, project: ProjectContext, capsys) -> None:
    initialize(project)

    diag.main(["tasks"])

    payload = json.loads(capsys.readouterr().out)
    assert [task["worker"] for task in payload] == [1, 2]
    assert payload[0]["branch"] == "feature/worker-1-task"
    assert payload[0]["title"] == "Worker-1 Task"
