from __future__ import annotations

import asyncio
import json
from pathlib import Path

from hivecode.aggregator import LogTail, PollingScheduler, StatusAggregator, clean_line, read_log_chunk
from hivecode.config import HiveSettings
from hivecode.project import ProjectContext
from hivecode.sessions import SessionRegistry
from hivecode.status import StatusStore, WorkerStatus
from hivecode.tmux import FakeTmuxHost


def test_poll_combines_liveness_and_status(project: ProjectContext, settings: HiveSettings) -> None:
    host = FakeTmuxHost({"hive-myproj-worker-1", "hive-myproj-worker-2", "hive-myproj-worker-4"})
    store = StatusStore(project.hive_dir)
    store.write(1, WorkerStatus(status="coding", branch="feature/a", percent=40))
    store.write(3, WorkerStatus(status="testing"))
    store.path_for(2).write_text("{ torn", encoding="utf-8")

    workers = StatusAggregator(project, settings, SessionRegistry(host), store).poll()

    assert [worker.slot for worker in workers] == [1, 2, 3, 4]
    assert [worker.running for worker in workers] == [True, True, False, True]
    assert [worker.display_status for worker in workers] == ["coding", "idle", "stopped", "idle"]
    assert workers[0].status.branch == "feature/a"
    assert workers[2].status is not None
    assert workers[3].worktree_path == project.worktree_base / "worker-4"


def test_worker_info_to_dict(project: ProjectContext, settings: HiveSettings) -> None:
    host = FakeTmuxHost({"hive-myproj-worker-1"})
    store = StatusStore(project.hive_dir)
    store.write(1, WorkerStatus(status="approved"))

    info = StatusAggregator(project, settings, SessionRegistry(host), store).poll_slot(1)

    payload = info.to_dict()
    assert payload["id"] == 1
    assert payload["running"] is True
    assert payload["status"] == {"status": "approved"}
    json.dumps(payload)


def test_clean_line_strips_escapes_and_redraws() -> None:
    assert clean_line("\x1b[32mok\x1b[0m   ") == "ok"
    assert clean_line("50%\r75%\r100%") == "100%"
    assert clean_line("\x1b]0;title\x07text") == "text"


def test_log_tail_reads_incrementally(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    log.write_bytes(b"one\ntwo\npart")
    tail = LogTail(log, max_lines=10)

    assert tail.poll()
    assert tail.lines == ["one", "two"]

    with log.open("ab") as handle:
        handle.write(b"ial\n\n   \nthree\n")
    tail.poll()

    assert tail.lines == ["one", "two", "partial", "three"]
    assert tail.poll() is False


def test_log_tail_keeps_last_lines(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    log.write_text("".join(f"line {n}\n" for n in range(10)), encoding="utf-8")
    tail = LogTail(log, max_lines=3)

    tail.poll()

    assert tail.lines == ["line 7", "line 8", "line 9"]


def test_log_tail_restarts_after_truncation(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    log.write_text("old 1\nold 2\n", encoding="utf-8")
    tail = LogTail(log)
    tail.poll()

    log.write_text("new\n", encoding="utf-8")
    tail.poll()

    assert tail.lines == ["new"]
    assert tail.offset == len(b"new\n")


def test_log_tail_clears_when_file_disappears(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    log.write_text("hello\n", encoding="utf-8")
    tail = LogTail(log)
    tail.poll()

    log.unlink()

    assert tail.poll() is True
    assert tail.lines == []
    assert tail.offset == 0


def test_log_tail_decodes_split_utf8(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    data = "héllo ✓\n".encode("utf-8")
    log.write_bytes(data[:2])
    tail = LogTail(log)
    tail.poll()
    with log.open("ab") as handle:
        handle.write(data[2:])
    tail.poll()

    assert tail.lines == ["héllo ✓"]


def test_stale_chunk_is_dropped(tmp_path: Path) -> None:
    log = tmp_path / "worker.log"
    log.write_text("a\n", encoding="utf-8")
    tail = LogTail(log)
    stale = read_log_chunk(log, 0)
    tail.poll()

    assert tail.apply(stale) is False
    assert tail.lines == ["a"]


def test_scheduler_feeds_one_queue_and_stops() -> None:
    counter = {"fast": 0}

    def fast() -> int:
        counter["fast"] += 1
        return counter["fast"]

    def broken() -> None:
        raise RuntimeError("boom")

    async def scenario() -> list[str]:
        scheduler = PollingScheduler()
        scheduler.every("fast", 0.01, fast)
        scheduler.every("broken", 0.01, broken)
        scheduler.every("slow", 10, lambda: "once")
        scheduler.start()
        kinds = []
        for _ in range(4):
            update = await scheduler.next_update(timeout=1.0)
            kinds.append(update.kind)
        assert scheduler.running
        await scheduler.stop()
        assert not scheduler.running
        return kinds

    kinds = asyncio.run(scenario())

    assert "broken" not in kinds
    assert kinds.count("slow") == 1
    assert kinds.count("fast") == 3


def test_next_update_times_out() -> None:
    async def scenario():
        return await PollingScheduler().next_update(timeout=0.01)

    assert asyncio.run(scenario()) is None
