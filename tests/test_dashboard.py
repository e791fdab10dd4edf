from __future__ import annotations

from pathlib import Path

from rich.console import Console

from hivecode.aggregator import LogChunk, Update, WorkerInfo
from hivecode.dashboard import Dashboard, DashboardState, KeyReader, render, render_worker
from hivecode.status import WorkerStatus
from hivecode.theme import DARK_THEME, LIGHT_THEME
from hivecode.tmux import FakeTmuxHost
from hivecode.workers import WorkerManager
from hivecode.worktrees import GitStatus, WorktreeProvisioner


def _worker(slot: int, running: bool, status: WorkerStatus | None = None) -> WorkerInfo:
    return WorkerInfo(
        slot=slot,
        session_name=f"hive-p-worker-{slot}",
        worktree_path=Path(f"/wt/worker-{slot}"),
        log_path=Path(f"/tmp/hive-p-worker-{slot}.log"),
        running=running,
        status=status,
    )


def _text(renderable, width: int = 100) -> str:
    console = Console(width=width, record=True, color_system=None)
    console.print(renderable)
    return console.export_text()


def _state() -> DashboardState:
    return DashboardState(
        project="p",
        workers=[
            _worker(
                1,
                True,
                WorkerStatus(
                    status="testing",
                    branch="feature/auth",
                    current="Running the suite",
                    percent=150,
                    subagent={"name": "test", "status": "failed", "message": "2 failures"},
                ),
            ),
            _worker(2, True),
            _worker(3, False, WorkerStatus(status="coding")),
        ],
        logs={1: ["collected 40 items", "FAILED test_login"]},
        git=GitStatus(branch="main", clean=False, ahead=2, behind=0),
    )


def test_render_standalone_dashboard() -> None:
    text = _text(render(_state(), DARK_THEME))

    assert "HiveCode" in text
    assert "Worker-1" in text and "testing" in text and "feature/auth" in text
    assert "Running the suite" in text
    assert "100%" in text
    assert "✗ [test] 2 failures" in text
    assert "FAILED test_login" in text
    assert "initializing..." in text
    assert "(stopped)" in text
    assert "main" in text and "↑2" in text and "↓" not in text
    assert "[a]ttach" in text


def test_render_embedded_is_compact() -> None:
    text = _text(render(_state(), LIGHT_THEME, embedded=True), width=50)

    assert "Workers | p" in text
    assert "W1" in text and "Worker-1" not in text
    assert "[a]ttach" not in text
    assert "[1-4] attach" in text


def test_render_worker_with_nan_percent() -> None:
    status = WorkerStatus.model_validate({"status": "coding", "percent": "NaN", "current": "Writing"})

    text = _text(render_worker(_worker(1, True, status), [], DARK_THEME))

    assert "Writing" in text
    assert "%" not in text


def test_render_without_git_status() -> None:
    state = DashboardState(project="p", workers=[_worker(1, False)])

    assert "git: loading..." in _text(render(state, DARK_THEME))


def test_key_commands() -> None:
    state = _state()

    assert state.command_for("q").kind == "quit"
    assert state.command_for("\x03").kind == "quit"
    assert state.command_for("2").slot == 2
    assert state.command_for("7") is None
    assert state.command_for("a").slot == 1
    assert state.command_for("z") is None
    assert state.command_for("²") is None
    assert state.command_for("٣") is None

    state.workers = [_worker(1, False)]
    assert state.command_for("a") is None


def _dashboard(project, settings, no_git) -> Dashboard:
    host = FakeTmuxHost()
    manager = WorkerManager(project, settings, host=host, provisioner=WorktreeProvisioner(runner=no_git))
    return Dashboard(
        settings,
        manager=manager,
        theme=DARK_THEME,
        console=Console(record=True),
        provisioner=WorktreeProvisioner(runner=no_git),
    )


def test_apply_updates_state(project, settings, no_git) -> None:
    dashboard = _dashboard(project, settings, no_git)

    dashboard.apply(Update("workers", [_worker(1, True)]))
    dashboard.apply(Update("logs", {1: LogChunk(start=0, end=6, data=b"hello\n")}))
    dashboard.apply(Update("git", None))

    assert dashboard.state.workers[0].slot == 1
    assert dashboard.state.logs == {1: ["hello"]}
    assert dashboard.state.git is None
    assert dashboard.apply(Update("keys", "x2")).slot == 2


def test_read_logs_uses_current_offsets(project, settings, no_git) -> None:
    dashboard = _dashboard(project, settings, no_git)
    log = project.log_path(2)
    log.parent.mkdir(parents=True)
    log.write_text("line\n", encoding="utf-8")

    chunks = dashboard.read_logs()

    assert set(chunks) == {1, 2, 3, 4}
    assert chunks[2].data == b"line\n"
    assert chunks[1].data == b""
    assert dashboard.read_git() is None


def test_key_reader_without_tty_reads_nothing(tmp_path: Path) -> None:
    with open(tmp_path / "input", "w+") as stream:
        reader = KeyReader(stream)

        assert not reader.interactive
        with reader.cbreak():
            assert reader.read(timeout=0) == ""
