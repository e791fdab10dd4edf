"""Lifecycle of the fixed worker slots, each a detached tmux session."""

from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from enum import Enum
from typing import Callable

from .config import HiveSettings
from .project import ProjectContext
from .sessions import SessionRegistry, session_name
from .tasks import task_prompt
from .tmux import TmuxError, TmuxHost
from .worktrees import WorktreeProvisioner

logger = logging.getLogger(__name__)

EXIT_COMMAND = "/exit"


class WorkerState(str, Enum):
    ABSENT = "absent"
    STARTING = "starting"
    RUNNING = "running"
    STOPPING = "stopping"
    KILLED_PENDING_RESTART = "killed-pending-restart"


class SessionReleaseTimeout(TmuxError):
    """Raised when tmux keeps a killed session's name past the restart timeout."""


@dataclass(slots=True)
class OperationResult:
    """Outcome of one lifecycle call for one slot."""

    slot: int
    ok: bool
    message: str
    degraded: bool = False

    def line(self) -> str:
        return f"Worker-{self.slot} {self.message}"


class WorkerManager:
    """Start, stop, kill and restart workers.

    Host failures are folded into ``OperationResult`` values; the only
    exception raised is ``ValueError`` for a slot outside ``1..N``.
    """

    def __init__(
        self,
        context: ProjectContext,
        settings: HiveSettings,
        *,
        host: TmuxHost,
        registry: SessionRegistry | None = None,
        provisioner: WorktreeProvisioner | None = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self._context = context
        self._settings = settings
        self._host = host
        self._registry = registry or SessionRegistry(host)
        self._provisioner = provisioner or WorktreeProvisioner()
        self._clock = clock
        self._sleep = sleep
        self._states: dict[int, WorkerState] = {}

    @property
    def context(self) -> ProjectContext:
        return self._context

    @property
    def registry(self) -> SessionRegistry:
        return self._registry

    @property
    def slots(self) -> range:
        return self._settings.slots

    def session_name(self, slot: int) -> str:
        return session_name(self._context.name, slot)

    def check_slot(self, slot: int) -> None:
        if slot not in self.slots:
            raise ValueError(f"Worker ID must be 1-{self._settings.worker_count}")

    def is_running(self, slot: int) -> bool:
        return self._registry.exists(self.session_name(slot))

    def state(self, slot: int) -> WorkerState:
        """Tracked state reconciled against the live session table."""

        self.check_slot(slot)
        tracked = self._states.get(slot, WorkerState.ABSENT)
        if self.is_running(slot):
            # A killed session can linger until tmux releases its name.
            if tracked in (WorkerState.STOPPING, WorkerState.KILLED_PENDING_RESTART):
                return tracked
            state = WorkerState.RUNNING
        else:
            state = WorkerState.ABSENT
        self._states[slot] = state
        return state

    def start(self, slot: int) -> OperationResult:
        self.check_slot(slot)
        name = self.session_name(slot)
        if self._registry.exists(name):
            self._states[slot] = WorkerState.RUNNING
            return OperationResult(slot, True, "already running")

        self._states[slot] = WorkerState.STARTING
        degraded = False
        context = self._context
        worktree = self._provisioner.ensure(context.root, context.worktree_base, slot)
        shared_root = worktree == context.root

        log_path = context.log_path(slot)
        try:
            log_path.parent.mkdir(parents=True, exist_ok=True)
            log_path.write_text("", encoding="utf-8")
        except OSError as exc:
            logger.warning("Cannot reset worker log", extra={"slot": slot, "path": str(log_path), "error": str(exc)})
            degraded = True

        created = self._host.new_session(name, worktree)
        if not created.ok:
            self._states[slot] = WorkerState.ABSENT
            reason = created.stderr.strip() or f"exit code {created.returncode}"
            logger.error("Worker session creation failed", extra={"slot": slot, "session": name, "error": reason})
            return OperationResult(slot, False, f"failed to start: {reason}")

        follow_ups = (
            self._host.pipe_output(name, log_path),
            self._host.set_option("mouse", "on", target=name),
            self._host.send_keys(name, self._settings.agent_command),
        )
        if not all(step.ok for step in follow_ups):
            degraded = True
            logger.warning("Worker started with incomplete setup", extra={"slot": slot, "session": name})

        self._states[slot] = WorkerState.RUNNING
        logger.info("Started worker", extra={"slot": slot, "session": name, "worktree": str(worktree)})
        message = f"started ({name})"
        if shared_root:
            message += " in shared project root"
        return OperationResult(slot, True, message, degraded=degraded or shared_root)

    def stop(self, slot: int) -> OperationResult:
        """Ask the agent to exit; the session is expected to end on its own."""

        self.check_slot(slot)
        name = self.session_name(slot)
        if not self._registry.exists(name):
            self._states[slot] = WorkerState.ABSENT
            return OperationResult(slot, False, "not running")

        result = self._host.send_keys(name, EXIT_COMMAND)
        if not result.ok:
            return OperationResult(slot, False, f"failed to stop: {result.stderr.strip()}")
        self._states[slot] = WorkerState.STOPPING
        return OperationResult(slot, True, "stopping...")

    def kill(self, slot: int) -> OperationResult:
        self.check_slot(slot)
        name = self.session_name(slot)
        if not self._registry.exists(name):
            if self._states.get(slot) is not WorkerState.KILLED_PENDING_RESTART:
                self._states[slot] = WorkerState.ABSENT
            return OperationResult(slot, True, "not running")

        result = self._host.kill_session(name)
        if not result.ok and self._registry.exists(name):
            logger.error("Worker kill failed", extra={"slot": slot, "session": name, "error": result.stderr.strip()})
            return OperationResult(slot, False, f"failed to kill: {result.stderr.strip()}")
        if self._states.get(slot) is not WorkerState.KILLED_PENDING_RESTART:
            self._states[slot] = WorkerState.ABSENT
        logger.info("Killed worker", extra={"slot": slot, "session": name})
        return OperationResult(slot, True, "killed")

    def wait_released(self, name: str) -> None:
        """Poll until tmux no longer reports ``name``; raise after the timeout."""

        deadline = self._clock() + self._settings.restart_timeout
        while self._registry.exists(name):
            if self._clock() >= deadline:
                raise SessionReleaseTimeout(
                    f"session {name} still present after {self._settings.restart_timeout:g}s"
                )
            self._sleep(self._settings.restart_poll_interval)

    def restart(self, slot: int) -> OperationResult:
        self.check_slot(slot)
        self._states[slot] = WorkerState.KILLED_PENDING_RESTART
        killed = self.kill(slot)
        if not killed.ok:
            self._states[slot] = WorkerState.RUNNING
            return killed
        try:
            self.wait_released(self.session_name(slot))
        except SessionReleaseTimeout as exc:
            logger.warning("Restart aborted", extra={"slot": slot, "error": str(exc)})
            return OperationResult(slot, False, f"restart timed out: {exc}")
        result = self.start(slot)
        if result.ok and result.message.startswith("started"):
            result.message = "restarted" + result.message[len("started") :]
        return result

    def start_all(self) -> list[OperationResult]:
        self._context.ensure_hive_dirs()
        return [self.start(slot) for slot in self.slots]

    def stop_all(self) -> list[OperationResult]:
        return [self.stop(slot) for slot in self.slots]

    def kill_all(self) -> list[OperationResult]:
        return [self.kill(slot) for slot in self.slots]

    def send_prompt(self, slot: int) -> OperationResult:
        self.check_slot(slot)
        name = self.session_name(slot)
        if not self._registry.exists(name):
            return OperationResult(slot, False, "not running")
        result = self._host.send_keys(name, task_prompt(slot))
        if not result.ok:
            return OperationResult(slot, False, f"failed to send prompt: {result.stderr.strip()}")
        return OperationResult(slot, True, "prompt sent")

    def prompt_all(self) -> list[OperationResult]:
        return [self.send_prompt(slot) for slot in self.slots if self.is_running(slot)]

    def first_running(self) -> int | None:
        running = self._registry.running_slots(self._context.name, self.slots)
        return running[0] if running else None

    def attach(self, slot: int) -> OperationResult:
        """Give the terminal to the worker's session; returns after it detaches."""

        self.check_slot(slot)
        name = self.session_name(slot)
        if not self._registry.exists(name):
            return OperationResult(slot, False, "is not running")
        code = self._host.attach(name)
        if code != 0:
            return OperationResult(slot, False, f"attach exited with code {code}")
        return OperationResult(slot, True, "detached")


__all__ = [
    "EXIT_COMMAND",
    "OperationResult",
    "SessionReleaseTimeout",
    "WorkerManager",
    "WorkerState",
]
