from __future__ import annotations

import json
from pathlib import Path

import pytest

from hivecode.status import StatusStore, StatusValue, SubagentState, WorkerStatus, known_statuses


def _write(store: StatusStore, slot: int, content: str) -> None:
    path = store.path_for(slot)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(content, encoding="utf-8")


def test_missing_document_reads_as_none(tmp_path: Path) -> None:
    assert StatusStore(tmp_path / ".hive").read(1) is None


def test_read_parses_document(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(
        store,
        1,
        json.dumps(
            {
                "status": "testing",
                "branch": "feature/auth",
                "current": "running tests",
                "percent": 60,
                "subagent": {"name": "test", "status": "running", "message": "12/40"},
            }
        ),
    )

    status = store.read(1)

    assert status is not None
    assert status.status is StatusValue.TESTING
    assert status.branch == "feature/auth"
    assert status.display_percent == 60
    assert status.subagent is not None
    assert status.subagent.status is SubagentState.RUNNING


def test_malformed_document_without_history_is_none(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(store, 1, '{"status": "cod')

    assert store.read(1) is None


def test_torn_write_keeps_last_known_value(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(store, 2, json.dumps({"status": "coding"}))
    assert store.read(2).status is StatusValue.CODING

    _write(store, 2, '{"status": "test')

    assert store.read(2).status is StatusValue.CODING


def test_non_object_document_is_ignored(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(store, 1, "[1, 2, 3]")

    assert store.read(1) is None


def test_permissive_read_of_unexpected_values(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(
        store,
        1,
        json.dumps({"status": "daydreaming", "percent": 150, "subagent": "lint", "extra": True}),
    )

    status = store.read(1)

    assert status.status is StatusValue.UNKNOWN
    assert status.percent == 150
    assert status.display_percent == 100
    assert status.subagent is None
    assert status.model_extra == {"extra": True}


def test_negative_and_non_numeric_percent() -> None:
    assert WorkerStatus(percent=-5).display_percent == 0
    assert WorkerStatus(percent="half").percent is None


@pytest.mark.parametrize("percent", ["NaN", "inf", float("-inf"), float("nan")])
def test_non_finite_percent_reads_as_absent(percent) -> None:
    status = WorkerStatus.model_validate({"status": "coding", "percent": percent})

    assert status.percent is None
    assert status.display_percent is None


def test_bare_nan_token_in_document(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    _write(store, 1, '{"status": "coding", "percent": NaN}')

    status = store.read(1)

    assert status.status is StatusValue.CODING
    assert status.display_percent is None


def test_write_round_trips_and_is_atomic(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    status = WorkerStatus(status="ready_for_review", branch="feature/x", percent=100)

    path = store.write(3, status)

    assert json.loads(path.read_text(encoding="utf-8")) == {
        "status": "ready_for_review",
        "branch": "feature/x",
        "percent": 100.0,
    }
    assert [p.name for p in path.parent.iterdir()] == ["worker-3.json"]
    assert store.read(3).status is StatusValue.READY_FOR_REVIEW


@pytest.mark.parametrize(
    "status",
    [
        WorkerStatus(status="daydreaming"),
        WorkerStatus(status="coding", percent=150),
        WorkerStatus(status="coding", subagent={"name": "lint", "status": "maybe"}),
    ],
)
def test_write_rejects_invalid_documents(tmp_path: Path, status: WorkerStatus) -> None:
    store = StatusStore(tmp_path / ".hive")

    with pytest.raises(ValueError):
        store.write(1, status)
    assert not store.path_for(1).exists()


def test_reset_removes_document(tmp_path: Path) -> None:
    store = StatusStore(tmp_path / ".hive")
    store.write(1, WorkerStatus(status="idle"))

    assert store.reset(1) is True
    assert store.read(1) is None
    assert store.reset(1) is False


def test_known_statuses_excludes_unknown() -> None:
    assert "unknown" not in known_statuses()
    assert known_statuses()[0] == "idle"
