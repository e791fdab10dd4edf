"""Environment helpers for processes spawned through tmux."""

from __future__ import annotations

import os
from typing import Mapping

# The tmux server outlives the invoking interpreter; worker shells must not
# inherit its virtualenv.
_SANITIZED_VARS = {
    "PYTHONHOME",
    "PYTHONPATH",
    "VIRTUAL_ENV",
    "CONDA_PREFIX",
    "PIP_RESPECT_VIRTUALENV",
}

DEFAULT_TERM = "xterm-256color"


def host_environment(additional: Mapping[str, str] | None = None) -> dict[str, str]:
    """Return the environment handed to tmux client invocations."""

    env = dict(os.environ)
    for key in _SANITIZED_VARS:
        env.pop(key, None)
    env.setdefault("TERM", DEFAULT_TERM)
    if additional:
        env.update(additional)
    return env


def inside_tmux(environ: Mapping[str, str] | None = None) -> bool:
    """Whether the current process already runs inside a tmux client."""

    source = os.environ if environ is None else environ
    return bool(source.get("TMUX"))
