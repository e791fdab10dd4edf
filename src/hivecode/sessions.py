"""Deterministic tmux session naming and liveness checks."""

from __future__ import annotations

from typing import Iterable

from .tmux import TmuxHost


def _tmux_safe(identity: str) -> str:
    # tmux rewrites "." and ":" in session names; do it up front so lookups match.
    return identity.replace(".", "_").replace(":", "_")


def session_name(identity: str, slot: int) -> str:
    """Return the tmux session name hosting worker ``slot`` of ``identity``."""

    return f"hive-{_tmux_safe(identity)}-worker-{slot}"


def embedded_session_name(identity: str) -> str:
    """Return the session name hosting the lead pane and dashboard."""

    return f"hivecode-{_tmux_safe(identity)}"


class SessionRegistry:
    """Answers "is this session alive" by asking tmux every time."""

    def __init__(self, host: TmuxHost) -> None:
        self._host = host

    @property
    def host(self) -> TmuxHost:
        return self._host

    def exists(self, name: str) -> bool:
        try:
            return self._host.has_session(name)
        except Exception:  # pragma: no cover - host adapters already report failures
            return False

    def worker_running(self, identity: str, slot: int) -> bool:
        return self.exists(session_name(identity, slot))

    def running_slots(self, identity: str, slots: Iterable[int]) -> list[int]:
        return [slot for slot in slots if self.worker_running(identity, slot)]


__all__ = ["SessionRegistry", "embedded_session_name", "session_name"]
