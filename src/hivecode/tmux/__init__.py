"""tmux session host utilities."""

from .host import (
    TMUX_INSTALL_HINT,
    FakeTmuxHost,
    TmuxError,
    TmuxHost,
    TmuxNotFoundError,
    TmuxResult,
    chain,
)

__all__ = [
    "FakeTmuxHost",
    "TMUX_INSTALL_HINT",
    "TmuxError",
    "TmuxHost",
    "TmuxNotFoundError",
    "TmuxResult",
    "chain",
]
