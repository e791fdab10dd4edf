"""Point-in-time worker snapshots, log tailing and the polling scheduler."""

from __future__ import annotations

import asyncio
import codecs
import logging
import re
from collections import deque
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable

from .config import HiveSettings
from .project import ProjectContext
from .sessions import SessionRegistry, session_name
from .status import StatusStore, WorkerStatus
from .worktrees import worktree_path

logger = logging.getLogger(__name__)

_ANSI_ESCAPE = re.compile(r"\x1b\[[0-?]*[ -/]*[@-~]|\x1b\][^\x07\x1b]*(?:\x07|\x1b\\)|\x1b[@-Z\\-_]")


@dataclass(slots=True)
class WorkerInfo:
    """One slot as seen by one poll.

    ``running`` and ``status`` come from two separate reads and may disagree;
    ``running=False`` always wins.
    """

    slot: int
    session_name: str
    worktree_path: Path
    log_path: Path
    running: bool
    status: WorkerStatus | None = None

    @property
    def display_status(self) -> str:
        if not self.running:
            return "stopped"
        if self.status is None:
            return "idle"
        return self.status.status.value

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.slot,
            "session_name": self.session_name,
            "worktree_path": str(self.worktree_path),
            "log_path": str(self.log_path),
            "running": self.running,
            "status": self.status.to_document() if self.status is not None else None,
        }


class StatusAggregator:
    """Combines tmux liveness with status documents, slot by slot."""

    def __init__(
        self,
        context: ProjectContext,
        settings: HiveSettings,
        registry: SessionRegistry,
        store: StatusStore | None = None,
    ) -> None:
        self._context = context
        self._settings = settings
        self._registry = registry
        self._store = store or StatusStore(context.hive_dir)

    @property
    def store(self) -> StatusStore:
        return self._store

    def poll_slot(self, slot: int) -> WorkerInfo:
        name = session_name(self._context.name, slot)
        running = self._registry.exists(name)
        status = self._store.read(slot)
        return WorkerInfo(
            slot=slot,
            session_name=name,
            worktree_path=worktree_path(self._context.worktree_base, slot),
            log_path=self._context.log_path(slot),
            running=running,
            status=status,
        )

    def poll(self) -> list[WorkerInfo]:
        return [self.poll_slot(slot) for slot in self._settings.slots]


@dataclass(frozen=True, slots=True)
class LogChunk:
    """Bytes read from a log beyond ``start`` (``reset`` when the file shrank or vanished)."""

    start: int
    end: int
    data: bytes
    reset: bool = False


def read_log_chunk(path: Path, offset: int) -> LogChunk:
    try:
        size = Path(path).stat().st_size
    except OSError:
        return LogChunk(start=offset, end=0, data=b"", reset=offset > 0)
    if size < offset:
        offset, reset = 0, True
    else:
        reset = False
    if size == offset:
        return LogChunk(start=offset, end=offset, data=b"", reset=reset)
    try:
        with open(path, "rb") as handle:
            handle.seek(offset)
            data = handle.read(size - offset)
    except OSError:
        return LogChunk(start=offset, end=offset, data=b"", reset=reset)
    return LogChunk(start=offset, end=offset + len(data), data=data, reset=reset)


def clean_line(line: str) -> str:
    line = _ANSI_ESCAPE.sub("", line)
    if "\r" in line:
        # Carriage returns redraw the line; keep what the terminal would show last.
        segments = [segment for segment in line.split("\r") if segment]
        line = segments[-1] if segments else ""
    return line.rstrip()


class LogTail:
    """Keeps the last ``max_lines`` non-empty lines of a growing log file."""

    def __init__(self, path: Path, max_lines: int = 100) -> None:
        self._path = Path(path)
        self._offset = 0
        self._partial = ""
        self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        self._lines: deque[str] = deque(maxlen=max_lines)

    @property
    def path(self) -> Path:
        return self._path

    @property
    def offset(self) -> int:
        return self._offset

    @property
    def lines(self) -> list[str]:
        return list(self._lines)

    def reset(self) -> None:
        self._offset = 0
        self._partial = ""
        self._decoder.reset()
        self._lines.clear()

    def apply(self, chunk: LogChunk) -> bool:
        """Fold a chunk in; chunks read against a stale offset are dropped."""

        if chunk.reset:
            self.reset()
            if chunk.start != 0 or chunk.end == 0:
                return True
        elif chunk.start != self._offset:
            return False
        if not chunk.data:
            self._offset = chunk.end
            return False

        text = self._partial + self._decoder.decode(chunk.data)
        pieces = text.split("\n")
        self._partial = pieces.pop()
        for piece in pieces:
            line = clean_line(piece)
            if line.strip():
                self._lines.append(line)
        self._offset = chunk.end
        return True

    def poll(self) -> bool:
        return self.apply(read_log_chunk(self._path, self._offset))


@dataclass(frozen=True, slots=True)
class Update:
    kind: str
    value: Any


class PollingScheduler:
    """Independent periodic jobs feeding one queue.

    Each job runs its blocking read in a worker thread and posts the result;
    state is only changed by whoever consumes the queue on the event loop.
    """

    def __init__(self) -> None:
        self._jobs: list[tuple[str, float, Callable[[], Any]]] = []
        self._tasks: list[asyncio.Task[None]] = []
        self._queue: asyncio.Queue[Update] = asyncio.Queue()

    def every(self, kind: str, interval: float, job: Callable[[], Any]) -> None:
        self._jobs.append((kind, interval, job))

    @property
    def running(self) -> bool:
        return any(not task.done() for task in self._tasks)

    def start(self) -> None:
        if self._tasks:
            return
        for kind, interval, job in self._jobs:
            self._tasks.append(asyncio.create_task(self._loop(kind, interval, job), name=f"poll-{kind}"))

    async def stop(self) -> None:
        tasks, self._tasks = self._tasks, []
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    async def next_update(self, timeout: float | None = None) -> Update | None:
        try:
            return await asyncio.wait_for(self._queue.get(), timeout)
        except asyncio.TimeoutError:
            return None

    async def _loop(self, kind: str, interval: float, job: Callable[[], Any]) -> None:
        while True:
            try:
                value = await asyncio.to_thread(job)
            except Exception:
                logger.exception("Polling job failed", extra={"job": kind})
            else:
                await self._queue.put(Update(kind, value))
            await asyncio.sleep(interval)


__all__ = [
    "LogChunk",
    "LogTail",
    "PollingScheduler",
    "StatusAggregator",
    "Update",
    "WorkerInfo",
    "clean_line",
    "read_log_chunk",
]
