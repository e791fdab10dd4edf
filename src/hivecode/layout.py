"""The embedded session: lead agent on the left, dashboard on the right."""

from __future__ import annotations

import logging
import os
import sys
import time
from dataclasses import dataclass
from typing import Callable, Mapping

from .config import HiveSettings
from .keybindings import KeyBindingInstaller, status_right
from .project import ProjectContext, initialize
from .sessions import embedded_session_name
from .theme import Theme
from .tmux import TmuxError, TmuxHost
from .workers import OperationResult, WorkerManager

logger = logging.getLogger(__name__)

MIN_LEAD_WIDTH = 40
MAX_LEAD_WIDTH = 80
RECOMMENDED_COLUMNS = 120
SESSION_SIZE = (200, 50)
WORKER_SETTLE_SECONDS = 0.5


@dataclass(slots=True)
class LayoutOptions:
    worker_count: int = 4
    lead_width: int = 60
    show_workers: bool = True

    def clamped(self, max_workers: int) -> "LayoutOptions":
        return LayoutOptions(
            worker_count=max(1, min(self.worker_count, max_workers)),
            lead_width=max(MIN_LEAD_WIDTH, min(self.lead_width, MAX_LEAD_WIDTH)),
            show_workers=self.show_workers,
        )


def apply_theme_options(host: TmuxHost, session: str, theme: Theme) -> None:
    """Colour-dependent options only; re-run when the theme is toggled."""

    colors = theme.tmux
    host.set_option("status-style", f"bg={colors.status_bg},fg={colors.status_fg}", target=session)
    host.set_option(
        "status-left",
        f"#[fg={colors.brand},bold]🐝 HiveCode#[default] | #[fg={colors.success}]#S#[default] ",
        target=session,
    )
    host.set_option("status-right", status_right(theme), target=session)
    host.set_option("pane-border-style", f"fg={colors.border_inactive}", target=session)
    host.set_option("pane-active-border-style", f"fg={colors.border_active}", target=session)


def apply_tmux_config(host: TmuxHost, session: str, theme: Theme) -> None:
    """Apply the HiveCode look and feel; options tmux rejects are skipped."""

    host.set_option("mouse", "on", target=session)
    host.set_option("terminal-overrides", ",xterm*:smcup@:rmcup@", global_=True, append=True)

    host.set_option("set-clipboard", "on", global_=True)
    if sys.platform == "darwin":
        copy = ["send-keys", "-X", "copy-pipe-and-cancel", "pbcopy"]
        host.bind_key("copy-mode", "MouseDragEnd1Pane", copy)
        host.bind_key("copy-mode-vi", "y", copy)

    host.set_option("status", "on", target=session)
    host.set_option("status-position", "top", target=session)
    host.set_option("status-interval", "1", target=session)
    host.set_option("status-left-length", "40", target=session)
    host.set_option("status-right-length", "60", target=session)
    host.set_option("pane-border-status", "top", target=session)
    host.set_option("pane-border-format", " #{pane_title} ", target=session)
    apply_theme_options(host, session, theme)

    host.set_option("set-titles", "on", global_=True)
    host.set_option("set-titles-string", "🐝 HiveCode - #S", global_=True)
    host.set_option("escape-time", "0", global_=True)
    host.set_option("history-limit", "50000", global_=True)
    host.set_option("default-terminal", "xterm-256color", global_=True)
    host.set_option("terminal-overrides", ",xterm-256color:Tc", global_=True, append=True)
    host.set_option("focus-events", "on", global_=True)


def check_terminal(columns: int | None = None, environ: Mapping[str, str] | None = None) -> list[str]:
    env = os.environ if environ is None else environ
    warnings: list[str] = []
    cols = columns or 80
    if cols < RECOMMENDED_COLUMNS:
        warnings.append(
            f"Terminal width ({cols}) below recommended {RECOMMENDED_COLUMNS} columns for best experience"
        )
    term = env.get("TERM", "")
    if "256color" not in term and "truecolor" not in term:
        warnings.append("Terminal may not support full colors")
    if env.get("TERM_PROGRAM") == "Apple_Terminal":
        warnings.append("macOS Terminal.app detected - consider iTerm2 or Ghostty for better experience")
    return warnings


class LayoutComposer:
    """Builds the embedded session in a fixed order.

    Any existing embedded session for the project is destroyed first, so
    composing twice leaves exactly one.
    """

    def __init__(
        self,
        context: ProjectContext,
        settings: HiveSettings,
        *,
        host: TmuxHost,
        workers: WorkerManager,
        theme: Theme,
        cli_command: str = "hivecode",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._context = context
        self._settings = settings
        self._host = host
        self._workers = workers
        self._theme = theme
        self._cli = cli_command
        self._sleep = sleep
        self._worker_results: list[OperationResult] = []

    @property
    def session(self) -> str:
        return embedded_session_name(self._context.name)

    @property
    def worker_results(self) -> list[OperationResult]:
        return list(self._worker_results)

    def compose(self, options: LayoutOptions | None = None) -> str:
        options = (options or LayoutOptions()).clamped(self._settings.worker_count)
        session = self.session
        host = self._host

        initialize(self._context)

        if self._workers.registry.exists(session):
            host.kill_session(session)

        width, height = SESSION_SIZE
        created = host.new_session(session, self._context.root, width=width, height=height)
        if not created.ok:
            raise TmuxError(f"failed to create session {session}: {created.stderr.strip()}")
        apply_tmux_config(host, session, self._theme)

        self._worker_results = [self._workers.start(slot) for slot in range(1, options.worker_count + 1)]
        self._sleep(WORKER_SETTLE_SECONDS)

        lead, dashboard = f"{session}:0.0", f"{session}:0.1"
        if options.show_workers:
            host.split_window(f"{session}:0", percent=100 - options.lead_width)
            host.select_pane(lead, title="Queen")
            host.select_pane(dashboard, title="Dashboard")
            host.send_keys(dashboard, f"{self._cli} dashboard --embedded")

        KeyBindingInstaller(
            host,
            session=session,
            identity=self._context.name,
            theme=self._theme,
            worker_count=self._settings.worker_count,
            cli_command=self._cli,
        ).install()

        host.send_keys(lead, self._settings.agent_command)
        host.select_pane(lead)
        logger.info("Composed embedded layout", extra={"session": session, "workers": options.worker_count})
        return session


__all__ = [
    "LayoutComposer",
    "LayoutOptions",
    "apply_theme_options",
    "apply_tmux_config",
    "check_terminal",
]
