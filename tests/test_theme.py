from __future__ import annotations

from pathlib import Path

from hivecode.preferences import PreferenceStore
from hivecode.theme import DARK_THEME, LIGHT_THEME, detect_terminal_theme, resolve_theme, theme_for


def test_detect_from_colorfgbg() -> None:
    assert detect_terminal_theme({"COLORFGBG": "15;0"}) == "dark"
    assert detect_terminal_theme({"COLORFGBG": "0;15"}) == "light"
    assert detect_terminal_theme({"COLORFGBG": "0;default;15"}) == "light"


def test_detect_defaults() -> None:
    assert detect_terminal_theme({"TERM_PROGRAM": "Apple_Terminal"}) == "light"
    assert detect_terminal_theme({"COLORFGBG": "garbage"}) == "dark"
    assert detect_terminal_theme({}) == "dark"


def test_resolution_order(tmp_path: Path) -> None:
    prefs = PreferenceStore(tmp_path / "global.json")
    prefs.set("theme", "light")
    env = {"COLORFGBG": "15;0"}

    assert resolve_theme("dark", env_theme="light", preferences=prefs, environ=env) is DARK_THEME
    assert resolve_theme(None, env_theme="dark", preferences=prefs, environ=env) is DARK_THEME
    assert resolve_theme(None, preferences=prefs, environ=env) is LIGHT_THEME
    assert resolve_theme(None, environ=env) is DARK_THEME


def test_auto_preference_falls_through_to_detection(tmp_path: Path) -> None:
    prefs = PreferenceStore(tmp_path / "global.json")
    prefs.set("theme", "auto")

    assert resolve_theme(None, preferences=prefs, environ={"COLORFGBG": "0;15"}) is LIGHT_THEME


def test_theme_objects_are_distinct() -> None:
    assert theme_for("light").tmux.status_bg != theme_for("dark").tmux.status_bg
    assert theme_for(None) is DARK_THEME
    assert LIGHT_THEME.icon != DARK_THEME.icon
