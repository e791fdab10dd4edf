"""Synchronous adapter for the tmux session host."""

from __future__ import annotations

import logging
import shlex
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, Sequence

from .utils import host_environment, inside_tmux

logger = logging.getLogger(__name__)

TMUX_INSTALL_HINT = (
    "tmux is required.\n"
    "Install tmux:\n"
    "  macOS:  brew install tmux\n"
    "  Linux:  sudo apt install tmux"
)


class TmuxError(RuntimeError):
    """Base class for tmux host errors."""


class TmuxNotFoundError(TmuxError):
    """Raised when the tmux executable cannot be located."""


@dataclass(slots=True)
class TmuxResult:
    """Holds the outcome of a tmux invocation."""

    args: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str

    @property
    def ok(self) -> bool:
        return self.returncode == 0


# A bare ";" ends the command that receives it; "\;" is kept as part of a
# bound command sequence.
BOUND_SEPARATOR = "\\;"
COMMAND_SEPARATOR = ";"


def chain(*commands: Sequence[str]) -> list[str]:
    """Join tmux commands into one ``bind-key`` argument list."""

    argv: list[str] = []
    for command in commands:
        if not command:
            continue
        if argv:
            argv.append(BOUND_SEPARATOR)
        argv.extend(command)
    return argv


def split_commands(args: Sequence[str], separator: str) -> list[tuple[str, ...]]:
    """Split an argument list on ``separator`` into individual commands."""

    commands: list[tuple[str, ...]] = []
    current: list[str] = []
    for arg in args:
        if arg == separator:
            if current:
                commands.append(tuple(current))
            current = []
        else:
            current.append(arg)
    if current:
        commands.append(tuple(current))
    return commands


class TmuxHost:
    """Execute tmux commands; every failure is reported, never raised."""

    def __init__(self, executable: Path | None = None, *, timeout: float = 10.0) -> None:
        self._executable_path = self._resolve_executable(executable)
        self._timeout = timeout

    @staticmethod
    def _resolve_executable(explicit: Path | None) -> Path | None:
        if explicit is not None:
            candidate = Path(explicit)
            if candidate.exists() and candidate.is_file():
                return candidate
            return None

        binary = shutil.which("tmux")
        return Path(binary) if binary else None

    @property
    def executable(self) -> Path | None:
        return self._executable_path

    @property
    def available(self) -> bool:
        return self._executable_path is not None

    def require(self) -> None:
        """Raise ``TmuxNotFoundError`` when no tmux binary is usable."""

        if not self.available:
            raise TmuxNotFoundError(TMUX_INSTALL_HINT)

    # session lifecycle

    def has_session(self, name: str) -> bool:
        return self._invoke("has-session", "-t", _exact(name)).ok

    def new_session(
        self,
        name: str,
        cwd: Path | str,
        *,
        width: int | None = None,
        height: int | None = None,
    ) -> TmuxResult:
        args = ["new-session", "-d", "-s", name, "-c", str(cwd)]
        if width is not None and height is not None:
            args.extend(["-x", str(width), "-y", str(height)])
        return self._invoke(*args)

    def kill_session(self, name: str) -> TmuxResult:
        return self._invoke("kill-session", "-t", _exact(name))

    # panes and input

    def split_window(self, target: str, *, percent: int, horizontal: bool = True) -> TmuxResult:
        orientation = "-h" if horizontal else "-v"
        return self._invoke("split-window", orientation, "-l", f"{percent}%", "-t", target)

    def select_pane(self, target: str, *, title: str | None = None) -> TmuxResult:
        args = ["select-pane", "-t", target]
        if title is not None:
            args.extend(["-T", title])
        return self._invoke(*args)

    def send_keys(self, target: str, text: str, *, enter: bool = True) -> TmuxResult:
        args = ["send-keys", "-t", target, text]
        if enter:
            args.append("Enter")
        return self._invoke(*args)

    def pipe_output(self, target: str, path: Path | str) -> TmuxResult:
        return self._invoke("pipe-pane", "-t", target, f"cat >> {shlex.quote(str(path))}")

    # interactive configuration

    def set_option(
        self,
        option: str,
        value: str,
        *,
        target: str | None = None,
        global_: bool = False,
        append: bool = False,
    ) -> TmuxResult:
        flags = ""
        if global_:
            flags += "g"
        if append:
            flags += "a"
        args = ["set-option"]
        if flags:
            args.append(f"-{flags}")
        if target is not None and not global_:
            args.extend(["-t", target])
        args.extend([option, value])
        result = self._invoke(*args)
        if not result.ok:
            logger.debug("Ignoring unsupported tmux option", extra={"option": option})
        return result

    def bind_key(self, table: str, key: str, command: Iterable[str]) -> TmuxResult:
        result = self._invoke("bind-key", "-T", table, key, *command)
        if not result.ok:
            logger.debug("Ignoring unsupported tmux binding", extra={"table": table, "key": key})
        return result

    # terminal hand-off

    def attach(self, name: str) -> int:
        """Hand the terminal to ``name`` and block until the client detaches."""

        if inside_tmux():
            return self._invoke("switch-client", "-t", _exact(name)).returncode
        if self._executable_path is None:
            return 127
        try:
            process = subprocess.run(
                [str(self._executable_path), "attach-session", "-t", _exact(name)],
                env=host_environment(),
                check=False,
            )
        except OSError as exc:
            logger.warning("tmux attach failed", extra={"session": name, "error": str(exc)})
            return 1
        return process.returncode

    def _invoke(self, *args: str) -> TmuxResult:
        if self._executable_path is None:
            return TmuxResult(args=("tmux", *args), returncode=127, stdout="", stderr="tmux not found")
        cmd = [str(self._executable_path), *args]
        try:
            process = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.PIPE,
                stderr=subprocess.PIPE,
                text=True,
                timeout=self._timeout,
                env=host_environment(),
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            return TmuxResult(args=tuple(cmd), returncode=124, stdout="", stderr=str(exc))
        except OSError as exc:
            return TmuxResult(args=tuple(cmd), returncode=126, stdout="", stderr=str(exc))
        return TmuxResult(
            args=tuple(cmd),
            returncode=process.returncode,
            stdout=process.stdout,
            stderr=process.stderr,
        )


def _exact(name: str) -> str:
    # "=" disables tmux's prefix matching so worker-1 never resolves to worker-10.
    return name if name.startswith("=") else f"={name}"


class FakeTmuxHost(TmuxHost):
    """Test double that keeps sessions in memory."""

    def __init__(
        self,
        sessions: Iterable[str] | None = None,
        *,
        fail_commands: Iterable[str] | None = None,
        release_delay: int = 0,
    ) -> None:  # type: ignore[override]
        self._executable_path = Path("/tmp/fake-tmux")
        self._timeout = 1.0
        self.sessions: set[str] = set(sessions or [])
        self.fail_commands = set(fail_commands or [])
        self.release_delay = release_delay
        self._releasing: dict[str, int] = {}
        self._invocations: list[tuple[str, ...]] = []
        self.attached: list[str] = []
        # (table, key) -> command sequence, split the way tmux stores it
        self.bindings: dict[tuple[str, str], list[tuple[str, ...]]] = {}

    @property
    def invocations(self) -> list[tuple[str, ...]]:
        return self._invocations

    def commands(self, name: str) -> list[tuple[str, ...]]:
        return [args for args in self._invocations if args and args[0] == name]

    def attach(self, name: str) -> int:  # type: ignore[override]
        self.attached.append(name)
        return 0

    def release(self, name: str) -> None:
        self._releasing.pop(name, None)

    def _invoke(self, *args: str) -> TmuxResult:  # type: ignore[override]
        commands = split_commands(args, COMMAND_SEPARATOR)
        if len(commands) > 1:
            results = [self._invoke(*command) for command in commands]
            return next((result for result in results if not result.ok), results[-1])

        self._invocations.append(tuple(args))
        command = args[0] if args else ""
        if command in self.fail_commands:
            return TmuxResult(args=tuple(args), returncode=1, stdout="", stderr="simulated failure")

        if command == "has-session":
            name = args[-1].lstrip("=")
            pending = self._releasing.get(name)
            if pending:
                self._releasing[name] = pending - 1
                return TmuxResult(args=tuple(args), returncode=0, stdout="", stderr="")
            self._releasing.pop(name, None)
            code = 0 if name in self.sessions else 1
            return TmuxResult(args=tuple(args), returncode=code, stdout="", stderr="")

        if command == "new-session":
            name = args[args.index("-s") + 1]
            if name in self.sessions or self._releasing.get(name):
                return TmuxResult(args=tuple(args), returncode=1, stdout="", stderr="duplicate session")
            self.sessions.add(name)
        elif command == "bind-key":
            table, key = args[2], args[3]
            self.bindings[(table, key)] = split_commands(args[4:], BOUND_SEPARATOR)
        elif command == "kill-session":
            name = args[-1].lstrip("=")
            if name not in self.sessions:
                return TmuxResult(args=tuple(args), returncode=1, stdout="", stderr="can't find session")
            self.sessions.discard(name)
            if self.release_delay:
                self._releasing[name] = self.release_delay
        return TmuxResult(args=tuple(args), returncode=0, stdout="", stderr="")


__all__ = [
    "FakeTmuxHost",
    "TMUX_INSTALL_HINT",
    "TmuxError",
    "TmuxHost",
    "TmuxNotFoundError",
    "TmuxResult",
    "chain",
    "split_commands",
]
