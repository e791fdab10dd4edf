"""Light and dark palettes for tmux styling and the dashboard.

The resolved ``Theme`` is created once per command and handed to every
component that renders; nothing here holds a "current" theme.

Resolution order:

1. ``--theme light|dark`` on the command line
2. ``HIVECODE_THEME``
3. project preferences, then global preferences
4. terminal background detection (``COLORFGBG``)
5. dark
"""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Literal, Mapping

from .preferences import PreferenceStore

ThemeMode = Literal["light", "dark"]


@dataclass(frozen=True, slots=True)
class TmuxColors:
    status_bg: str
    status_fg: str
    brand: str
    border_active: str
    border_inactive: str
    git_branch: str
    success: str
    warning: str
    error: str
    text_secondary: str
    text_dim: str


@dataclass(frozen=True, slots=True)
class RichColors:
    brand: str
    border: str
    border_inactive: str
    text: str
    text_dim: str
    success: str
    error: str
    warning: str
    info: str


@dataclass(frozen=True, slots=True)
class Theme:
    mode: ThemeMode
    tmux: TmuxColors
    rich: RichColors

    @property
    def icon(self) -> str:
        return "☀️" if self.mode == "light" else "🌙"


DARK_THEME = Theme(
    mode="dark",
    tmux=TmuxColors(
        status_bg="#1e1e1e",
        status_fg="#ffffff",
        brand="#ffc107",
        border_active="#ffc107",
        border_inactive="#444444",
        git_branch="#2196f3",
        success="#4caf50",
        warning="#ff9800",
        error="#f44336",
        text_secondary="#888888",
        text_dim="#666666",
    ),
    rich=RichColors(
        brand="yellow",
        border="green",
        border_inactive="grey50",
        text="white",
        text_dim="grey50",
        success="green",
        error="red",
        warning="yellow",
        info="cyan",
    ),
)

LIGHT_THEME = Theme(
    mode="light",
    tmux=TmuxColors(
        status_bg="#f5f5f5",
        status_fg="#1e1e1e",
        brand="#b8860b",
        border_active="#b8860b",
        border_inactive="#cccccc",
        git_branch="#1565c0",
        success="#2e7d32",
        warning="#e65100",
        error="#c62828",
        text_secondary="#555555",
        text_dim="#888888",
    ),
    rich=RichColors(
        brand="dark_goldenrod",
        border="green",
        border_inactive="grey62",
        text="black",
        text_dim="grey42",
        success="green4",
        error="red3",
        warning="dark_orange3",
        info="dark_cyan",
    ),
)


def theme_for(mode: str | None) -> Theme:
    return LIGHT_THEME if mode == "light" else DARK_THEME


def detect_terminal_theme(environ: Mapping[str, str] | None = None) -> ThemeMode:
    """Guess the background from ``COLORFGBG`` ("fg;bg" or "fg;cursor;bg")."""

    env = os.environ if environ is None else environ
    colorfgbg = env.get("COLORFGBG")
    if colorfgbg:
        parts = colorfgbg.split(";")
        candidate = parts[-1] if len(parts) > 2 else parts[1] if len(parts) > 1 else parts[0]
        if candidate.strip().isdigit():
            # ANSI 0-6 are dark backgrounds, 7-15 light.
            return "light" if int(candidate) >= 7 else "dark"

    if env.get("TERM_PROGRAM") == "Apple_Terminal":
        return "light"
    return "dark"


def resolve_theme(
    override: str | None = None,
    *,
    env_theme: str | None = None,
    preferences: PreferenceStore | None = None,
    environ: Mapping[str, str] | None = None,
) -> Theme:
    if override in ("light", "dark"):
        return theme_for(override)
    if env_theme in ("light", "dark"):
        return theme_for(env_theme)
    if preferences is not None:
        configured = preferences.get("theme")
        if configured in ("light", "dark"):
            return theme_for(configured)
    return theme_for(detect_terminal_theme(environ))


__all__ = [
    "DARK_THEME",
    "LIGHT_THEME",
    "RichColors",
    "Theme",
    "ThemeMode",
    "TmuxColors",
    "detect_terminal_theme",
    "resolve_theme",
    "theme_for",
]
