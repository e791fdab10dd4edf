"""HiveCode mode: a one-shot key table layered over tmux's root bindings.

``Ctrl+\\`` switches the client into the ``hive`` table. The next key, any
key, runs its action (or nothing) and returns the client to ``root``, so
the overlay can never outlive a single keystroke.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum

from .sessions import session_name
from .theme import Theme
from .tmux import TmuxHost, chain

ENTER_CHORD = "C-\\"
ESCAPE_KEY = "Escape"
CATCH_ALL_KEY = "Any"
HIVE_TABLE = "hive"
ROOT_TABLE = "root"


class ModalState(str, Enum):
    ROOT = "root"
    HIVE = "hive"


class ActionKind(str, Enum):
    PASS_THROUGH = "pass_through"
    ENTER_HIVE = "enter_hive"
    TOGGLE_DASHBOARD = "toggle_dashboard"
    ATTACH_WORKER = "attach_worker"
    RETURN_TO_LEAD = "return_to_lead"
    TOGGLE_THEME = "toggle_theme"
    EXIT_MODE = "exit_mode"


@dataclass(frozen=True, slots=True)
class KeyAction:
    kind: ActionKind
    slot: int | None = None


def attach_keys(worker_count: int) -> list[str]:
    # tmux keys are single characters, so at most nine workers get a digit.
    return [str(slot) for slot in range(1, min(worker_count, 9) + 1)]


class ModalKeyDispatcher:
    """The two-table state machine that the tmux bindings implement."""

    def __init__(self, worker_count: int = 4) -> None:
        self._state = ModalState.ROOT
        self._hive_table: dict[str, KeyAction] = {"w": KeyAction(ActionKind.TOGGLE_DASHBOARD)}
        for key in attach_keys(worker_count):
            self._hive_table[key] = KeyAction(ActionKind.ATTACH_WORKER, int(key))
        self._hive_table["q"] = KeyAction(ActionKind.RETURN_TO_LEAD)
        self._hive_table["t"] = KeyAction(ActionKind.TOGGLE_THEME)
        self._hive_table[ESCAPE_KEY] = KeyAction(ActionKind.EXIT_MODE)

    @property
    def state(self) -> ModalState:
        return self._state

    @property
    def hive_table(self) -> dict[str, KeyAction]:
        return dict(self._hive_table)

    def press(self, key: str) -> KeyAction:
        if self._state is ModalState.ROOT:
            if key == ENTER_CHORD:
                self._state = ModalState.HIVE
                return KeyAction(ActionKind.ENTER_HIVE)
            return KeyAction(ActionKind.PASS_THROUGH)

        action = self._hive_table.get(key, KeyAction(ActionKind.EXIT_MODE))
        self._state = ModalState.ROOT
        return action

    def timeout(self) -> None:
        self._state = ModalState.ROOT


def status_right(theme: Theme) -> str:
    colors = theme.tmux
    branch = "#(git -C #{pane_current_path} branch --show-current 2>/dev/null)"
    return (
        f"#[fg={colors.text_dim}][^\\]mode#[default] "
        f"#[fg={colors.git_branch}]{branch}#[default] "
        f"#[fg={colors.text_secondary}]%H:%M#[default] "
    )


def hive_mode_status_right(theme: Theme, worker_count: int) -> str:
    colors = theme.tmux
    keys = attach_keys(worker_count)
    span = keys[0] if len(keys) == 1 else f"{keys[0]}-{keys[-1]}"

    def hint(key: str, label: str) -> str:
        return f"#[fg={colors.status_fg}][{key}]#[fg={colors.text_secondary}]{label} "

    return (
        f"#[fg={colors.brand},bold]▶#[default] "
        + hint("w", "toggle")
        + hint(span, "worker")
        + hint("t", "theme")
        + hint("Esc", "exit")
        + "#[default] "
    )


class KeyBindingInstaller:
    """Renders ``ModalKeyDispatcher`` tables as tmux ``bind-key`` commands."""

    def __init__(
        self,
        host: TmuxHost,
        *,
        session: str,
        identity: str,
        theme: Theme,
        worker_count: int = 4,
        cli_command: str = "hivecode",
    ) -> None:
        self._host = host
        self._session = session
        self._identity = identity
        self._theme = theme
        self._worker_count = worker_count
        self._cli = cli_command
        self._dispatcher = ModalKeyDispatcher(worker_count)

    def exit_mode(self) -> list[list[str]]:
        return [
            ["set-option", "-t", self._session, "status-right", status_right(self._theme)],
            ["switch-client", "-T", ROOT_TABLE],
        ]

    def enter_mode(self) -> list[list[str]]:
        hint = hive_mode_status_right(self._theme, self._worker_count)
        return [
            ["set-option", "-t", self._session, "status-right", hint],
            ["switch-client", "-T", HIVE_TABLE],
        ]

    def attach_command(self, slot: int) -> list[str]:
        worker = session_name(self._identity, slot)
        return [
            "if-shell",
            f"tmux has-session -t '={worker}' 2>/dev/null",
            f"switch-client -t '={worker}'",
            f"display-message 'Worker-{slot} not running'",
        ]

    def action_commands(self, action: KeyAction) -> list[list[str]]:
        if action.kind is ActionKind.TOGGLE_DASHBOARD:
            return [["resize-pane", "-Z", "-t", f"{self._session}:0.0"]]
        if action.kind is ActionKind.ATTACH_WORKER and action.slot is not None:
            return [self.attach_command(action.slot)]
        if action.kind is ActionKind.RETURN_TO_LEAD:
            return [["switch-client", "-t", self._session]]
        if action.kind is ActionKind.TOGGLE_THEME:
            return [["run-shell", f"{self._cli} theme toggle --session '{self._session}'"]]
        return []

    def install(self) -> int:
        """Bind every key; returns how many bindings tmux accepted."""

        accepted = 0
        accepted += self._host.bind_key(ROOT_TABLE, ENTER_CHORD, chain(*self.enter_mode())).ok
        for key, action in self._dispatcher.hive_table.items():
            commands = [*self.action_commands(action), *self.exit_mode()]
            accepted += self._host.bind_key(HIVE_TABLE, key, chain(*commands)).ok
        accepted += self._host.bind_key(HIVE_TABLE, CATCH_ALL_KEY, chain(*self.exit_mode())).ok

        prefix: dict[str, list[list[str]]] = {
            "h": [["select-pane", "-L"]],
            "l": [["select-pane", "-R"]],
            "w": [["resize-pane", "-Z", "-t", f"{self._session}:0.0"]],
            "D": [["resize-pane", "-Z"]],
            "b": [["switch-client", "-t", self._session]],
            "S": [self._popup(f"{self._cli} status", height=20)],
            "R": [self._popup(f"{self._cli} workers kill && {self._cli} workers up", height=10)],
        }
        for key in attach_keys(self._worker_count):
            prefix[key] = [self.attach_command(int(key))]
        for key, commands in prefix.items():
            accepted += self._host.bind_key("prefix", key, chain(*commands)).ok
        return accepted

    @staticmethod
    def _popup(command: str, *, height: int) -> list[str]:
        script = f"{command}; echo ''; echo 'Press any key to close'; read -n 1"
        return ["display-popup", "-E", "-w", "60", "-h", str(height), script]


def help_text(worker_count: int = 4) -> str:
    keys = attach_keys(worker_count)
    span = keys[0] if len(keys) == 1 else f"{keys[0]}-{keys[-1]}"
    return "\n".join(
        [
            "HiveCode Mode (Ctrl+\\), then one key:",
            "  w       Toggle Dashboard visibility",
            f"  {span:<7} Attach to Worker",
            "  t       Toggle theme (light/dark)",
            "  q       Return to HiveCode (from Worker)",
            "  Esc     Exit mode (no action)",
            "",
            "tmux Prefix (Ctrl+b):",
            "  h / l   Focus Queen / Dashboard",
            f"  {span:<7} Attach to Worker",
            "  b       Return to embedded session",
            "  w       Toggle Dashboard",
            "  D       Toggle fullscreen",
            "  S       Show status popup",
            "  R       Restart all Workers",
            "  d       Detach (keep running)",
        ]
    )


__all__ = [
    "ActionKind",
    "ENTER_CHORD",
    "KeyAction",
    "KeyBindingInstaller",
    "ModalKeyDispatcher",
    "ModalState",
    "help_text",
    "hive_mode_status_right",
    "status_right",
]
