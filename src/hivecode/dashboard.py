"""Live worker dashboard rendered with rich."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import select
import sys
import termios
import tty
from dataclasses import dataclass, field
from typing import Iterator, TextIO

from rich.console import Console, Group, RenderableType
from rich.live import Live
from rich.panel import Panel
from rich.table import Table
from rich.text import Text

from .aggregator import LogChunk, LogTail, PollingScheduler, StatusAggregator, Update, WorkerInfo, read_log_chunk
from .config import HiveSettings
from .status import SubagentState
from .theme import Theme
from .workers import WorkerManager
from .worktrees import GitStatus, WorktreeProvisioner

logger = logging.getLogger(__name__)

# status -> (icon, RichColors attribute)
STATUS_ICONS: dict[str, tuple[str, str]] = {
    "idle": ("○", "text_dim"),
    "coding": ("●", "success"),
    "testing": ("◐", "warning"),
    "reviewing": ("●", "info"),
    "ready_for_review": ("◉", "info"),
    "approved": ("✓", "success"),
    "unknown": ("?", "text_dim"),
    "stopped": ("○", "text_dim"),
}

QUIT_KEYS = {"q", "Q", "\x03"}


@dataclass(frozen=True, slots=True)
class KeyCommand:
    kind: str
    slot: int | None = None


@dataclass(slots=True)
class DashboardState:
    project: str
    worker_count: int = 4
    workers: list[WorkerInfo] = field(default_factory=list)
    logs: dict[int, list[str]] = field(default_factory=dict)
    git: GitStatus | None = None
    selected: int | None = None

    def command_for(self, key: str) -> KeyCommand | None:
        if key in QUIT_KEYS:
            return KeyCommand("quit")
        if key.isascii() and key.isdigit() and 1 <= int(key) <= self.worker_count:
            return KeyCommand("attach", int(key))
        if key == "a":
            for worker in self.workers:
                if worker.running:
                    return KeyCommand("attach", worker.slot)
        return None


def _progress_bar(percent: int, width: int = 20) -> str:
    filled = round(width * percent / 100)
    return "█" * filled + "░" * (width - filled)


def _truncate(value: str, limit: int) -> str:
    return value if len(value) <= limit else value[: max(limit - 1, 1)] + "…"


def _subagent_line(worker: WorkerInfo, theme: Theme) -> Text | None:
    status = worker.status
    if status is None or status.subagent is None:
        return None
    sub = status.subagent
    colors = theme.rich
    if sub.status is SubagentState.RUNNING:
        return Text(f"… [{sub.name}] {sub.message or 'Running...'}", style=colors.warning, no_wrap=True)
    if sub.status is SubagentState.PASSED:
        return Text(f"✓ [{sub.name}] Passed", style=colors.success, no_wrap=True)
    if sub.status is SubagentState.FAILED:
        return Text(f"✗ [{sub.name}] {sub.message or 'Failed'}", style=colors.error, no_wrap=True)
    return Text(f"? [{sub.name}] {sub.message or ''}".rstrip(), style=colors.text_dim, no_wrap=True)


def render_worker(
    worker: WorkerInfo,
    logs: list[str],
    theme: Theme,
    *,
    embedded: bool = False,
    selected: bool = False,
) -> Panel:
    colors = theme.rich
    display = worker.display_status
    icon, color_key = STATUS_ICONS.get(display, STATUS_ICONS["unknown"])
    status_color = getattr(colors, color_key)
    branch = (worker.status.branch if worker.status else None) or "—"

    header = Text(no_wrap=True)
    label = f"W{worker.slot}" if embedded else f"Worker-{worker.slot}"
    header.append(label, style=f"bold {colors.text}" if worker.running else colors.text_dim)
    header.append("  ")
    header.append(icon, style=status_color)
    if not embedded:
        header.append(f" {display}", style=status_color)
    header.append("  ")
    header.append(_truncate(branch, 40), style=colors.info)

    lines: list[RenderableType] = [header]
    if not worker.running:
        lines.append(Text("(stopped)", style=colors.text_dim))
    else:
        status = worker.status
        if status is not None and status.current:
            lines.append(Text(status.current, style=colors.text, no_wrap=True, overflow="ellipsis"))
        percent = status.display_percent if status is not None else None
        if percent is not None:
            bar = Text(_progress_bar(percent), style=status_color)
            bar.append(f" {percent:3d}%", style=colors.text_dim)
            lines.append(bar)
        subagent = _subagent_line(worker, theme)
        if subagent is not None:
            lines.append(subagent)
        recent = logs[-5:] if embedded else logs[-4:]
        for line in recent:
            lines.append(Text(line, style=colors.text_dim, no_wrap=True, overflow="ellipsis"))
        if not recent and subagent is None and (status is None or not status.current):
            lines.append(Text("initializing...", style=colors.text_dim))

    if selected:
        border = f"bold {colors.brand}"
    else:
        border = colors.border if worker.running else colors.border_inactive
    return Panel(Group(*lines), border_style=border, padding=(0, 1))


def render_status_bar(state: DashboardState, theme: Theme, *, embedded: bool = False) -> RenderableType:
    colors = theme.rich
    span = "1" if state.worker_count == 1 else f"1-{min(state.worker_count, 9)}"
    hints = Text(no_wrap=True)
    hints.append("[", style=colors.text_dim)
    hints.append(span, style=colors.brand)
    hints.append("] attach  ", style=colors.text_dim)
    if not embedded:
        hints.append("[", style=colors.text_dim)
        hints.append("a", style=colors.brand)
        hints.append("]ttach  ", style=colors.text_dim)
    hints.append("[", style=colors.text_dim)
    hints.append("q", style=colors.brand)
    hints.append("]uit", style=colors.text_dim)
    if embedded:
        return Panel(hints, border_style=colors.border_inactive, padding=(0, 1))

    git = Text(no_wrap=True)
    if state.git is None:
        git.append("git: loading...", style=colors.text_dim)
    else:
        git.append(state.git.branch, style=colors.info)
        git.append(" ")
        git.append("✓" if state.git.clean else "*", style=colors.success if state.git.clean else colors.warning)
        if state.git.ahead:
            git.append(f" ↑{state.git.ahead}", style=colors.success)
        if state.git.behind:
            git.append(f" ↓{state.git.behind}", style=colors.error)

    grid = Table.grid(expand=True)
    grid.add_column(justify="left")
    grid.add_column(justify="right")
    grid.add_row(git, hints)
    return Panel(grid, border_style=colors.border_inactive, padding=(0, 1))


def render(state: DashboardState, theme: Theme, *, embedded: bool = False) -> RenderableType:
    """Build the whole screen from ``state``; no I/O."""

    colors = theme.rich
    if embedded:
        title = Text.assemble(("Workers", f"bold {colors.brand}"), (" | ", colors.text_dim), (state.project, colors.info))
        header: RenderableType = Panel(title, border_style=colors.brand, padding=(0, 1))
    else:
        header = Text.assemble(
            (f"{theme.icon} ", colors.brand),
            ("HiveCode", f"bold {colors.text}"),
            ("  ", colors.text_dim),
            (state.project, colors.info),
        )
    cards = [
        render_worker(
            worker,
            state.logs.get(worker.slot, []),
            theme,
            embedded=embedded,
            selected=state.selected == worker.slot,
        )
        for worker in state.workers
    ]
    return Group(header, *cards, render_status_bar(state, theme, embedded=embedded))


class KeyReader:
    """Single keystrokes from a tty in cbreak mode; nothing from a non-tty."""

    def __init__(self, stream: TextIO | None = None) -> None:
        self._stream = stream or sys.stdin

    @property
    def interactive(self) -> bool:
        try:
            return self._stream.isatty()
        except (AttributeError, ValueError):
            return False

    @contextlib.contextmanager
    def cbreak(self) -> Iterator[None]:
        if not self.interactive:
            yield
            return
        fd = self._stream.fileno()
        old = termios.tcgetattr(fd)
        try:
            tty.setcbreak(fd)
            yield
        finally:
            termios.tcsetattr(fd, termios.TCSADRAIN, old)

    def read(self, timeout: float = 0.1) -> str:
        if not self.interactive:
            select.select([], [], [], max(0.0, timeout))
            return ""
        ready, _, _ = select.select([self._stream], [], [], max(0.0, timeout))
        if not ready:
            return ""
        return os.read(self._stream.fileno(), 64).decode("utf-8", errors="ignore")


class Dashboard:
    """Polls workers, logs and git on independent timers and redraws on change.

    Attaching hands the terminal to the worker's session and blocks; the
    dashboard resumes with fresh polling once the client detaches.
    """

    def __init__(
        self,
        settings: HiveSettings,
        *,
        manager: WorkerManager,
        theme: Theme,
        embedded: bool = False,
        console: Console | None = None,
        keys: KeyReader | None = None,
        provisioner: WorktreeProvisioner | None = None,
    ) -> None:
        context = manager.context
        self._settings = settings
        self._manager = manager
        self._theme = theme
        self._embedded = embedded
        self._console = console or Console()
        self._keys = keys or KeyReader()
        self._provisioner = provisioner or WorktreeProvisioner()
        self._aggregator = StatusAggregator(context, settings, manager.registry)
        self._tails = {slot: LogTail(context.log_path(slot), settings.log_tail_lines) for slot in settings.slots}
        self.state = DashboardState(project=context.name, worker_count=settings.worker_count)

    def read_logs(self) -> dict[int, LogChunk]:
        return {slot: read_log_chunk(tail.path, tail.offset) for slot, tail in self._tails.items()}

    def read_git(self) -> GitStatus | None:
        return self._provisioner.repository_status(self._manager.context.root)

    def apply(self, update: Update) -> KeyCommand | None:
        """Fold one scheduler update into ``state``; keys may yield a command."""

        if update.kind == "workers":
            self.state.workers = update.value
        elif update.kind == "logs":
            for slot, chunk in update.value.items():
                tail = self._tails[slot]
                if tail.apply(chunk):
                    self.state.logs[slot] = tail.lines
        elif update.kind == "git":
            self.state.git = update.value
        elif update.kind == "keys":
            for key in update.value:
                command = self.state.command_for(key)
                if command is not None:
                    return command
        return None

    def renderable(self) -> RenderableType:
        return render(self.state, self._theme, embedded=self._embedded)

    def run(self) -> int:
        while True:
            try:
                command = asyncio.run(self._session())
            except KeyboardInterrupt:
                return 0
            if command is None or command.kind == "quit":
                return 0
            result = self._manager.attach(command.slot)
            if not result.ok:
                logger.warning("Attach failed", extra={"slot": command.slot, "error": result.message})
            self.state.selected = None

    async def _session(self) -> KeyCommand | None:
        settings = self._settings
        scheduler = PollingScheduler()
        scheduler.every("workers", settings.status_poll_interval, self._aggregator.poll)
        scheduler.every("logs", settings.log_poll_interval, self.read_logs)
        if not self._embedded:
            scheduler.every("git", settings.git_poll_interval, self.read_git)
        scheduler.every("keys", 0, self._keys.read)

        with self._keys.cbreak(), Live(
            self.renderable(), console=self._console, auto_refresh=False, screen=True
        ) as live:
            scheduler.start()
            try:
                while True:
                    update = await scheduler.next_update(timeout=1.0)
                    if update is None:
                        continue
                    command = self.apply(update)
                    if command is not None:
                        if command.kind == "attach":
                            self.state.selected = command.slot
                            live.update(self.renderable(), refresh=True)
                        return command
                    if update.kind != "keys":
                        live.update(self.renderable(), refresh=True)
            finally:
                await scheduler.stop()


__all__ = [
    "Dashboard",
    "DashboardState",
    "KeyCommand",
    "KeyReader",
    "STATUS_ICONS",
    "render",
    "render_status_bar",
    "render_worker",
]
