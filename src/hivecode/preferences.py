"""User preferences layered as global config overridden by project config."""

from __future__ import annotations

import json
import logging
import os
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Literal, get_args

from pydantic import BaseModel, ValidationError

logger = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"


class PreferenceError(ValueError):
    """Raised when a preference key or value is rejected."""


class Preferences(BaseModel):
    """The closed set of recognised preference keys."""

    theme: Literal["light", "dark", "auto"] | None = None


PREFERENCE_KEYS = tuple(Preferences.model_fields)


@dataclass(slots=True)
class PreferenceEntry:
    key: str
    value: str
    source: Literal["global", "local"]


def local_config_path(project_root: Path) -> Path:
    return Path(project_root) / ".hive" / CONFIG_FILENAME


class PreferenceStore:
    """Reads and writes preference files.

    Lookups merge per key: a key set in the project file wins, every other
    key still comes from the global file.
    """

    def __init__(self, global_path: Path, local_path: Path | None = None) -> None:
        self._global_path = Path(global_path).expanduser()
        self._local_path = Path(local_path) if local_path is not None else None

    @classmethod
    def for_project(cls, global_path: Path, project_root: Path | None) -> "PreferenceStore":
        local = local_config_path(project_root) if project_root is not None else None
        return cls(global_path, local)

    @property
    def global_path(self) -> Path:
        return self._global_path

    @property
    def local_path(self) -> Path | None:
        return self._local_path

    def get(self, key: str) -> str | None:
        self._check_key(key)
        return self.merged().get(key)

    def merged(self) -> dict[str, str]:
        merged: dict[str, str] = {}
        for entry in self.entries():
            merged[entry.key] = entry.value
        return merged

    def entries(self) -> list[PreferenceEntry]:
        result: dict[str, PreferenceEntry] = {}
        layers: list[tuple[Literal["global", "local"], Path | None]] = [
            ("global", self._global_path),
            ("local", self._local_path),
        ]
        for source, path in layers:
            if path is None:
                continue
            for key, value in self._read(path).items():
                if key in PREFERENCE_KEYS and value is not None and _is_valid(key, value):
                    result[key] = PreferenceEntry(key=key, value=str(value), source=source)
        return list(result.values())

    def set(self, key: str, value: str, *, local: bool = False) -> Path:
        self._check_key(key)
        if not _is_valid(key, value):
            raise PreferenceError(f"Invalid {key} value: {value}. Must be {_allowed_values(key)}.")

        path = self._target(local)
        document = self._read(path)
        document[key] = value
        self._write(path, document)
        return path

    def unset(self, key: str, *, local: bool = False) -> bool:
        self._check_key(key)
        path = self._target(local)
        document = self._read(path)
        if key not in document:
            return False
        del document[key]
        self._write(path, document)
        return True

    def paths(self) -> dict[str, Path | None]:
        return {"global": self._global_path, "local": self._local_path}

    def _target(self, local: bool) -> Path:
        if not local:
            return self._global_path
        if self._local_path is None:
            raise PreferenceError("No project directory available for a local setting")
        return self._local_path

    @staticmethod
    def _check_key(key: str) -> None:
        if key not in PREFERENCE_KEYS:
            raise PreferenceError(f"Unknown config key: {key}")

    @staticmethod
    def _read(path: Path) -> dict[str, Any]:
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as exc:
            logger.warning("Ignoring unreadable config file", extra={"path": str(path), "error": str(exc)})
            return {}
        return document if isinstance(document, dict) else {}

    @staticmethod
    def _write(path: Path, document: dict[str, Any]) -> None:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(dir=str(path.parent), prefix=".config.", suffix=".tmp")
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as handle:
                handle.write(json.dumps(document, indent=2) + "\n")
            os.replace(tmp_name, path)
        except BaseException:
            Path(tmp_name).unlink(missing_ok=True)
            raise


def _is_valid(key: str, value: Any) -> bool:
    try:
        Preferences.model_validate({key: value})
    except ValidationError:
        return False
    return True


def _allowed_values(key: str) -> str:
    values: list[str] = []
    for arg in get_args(Preferences.model_fields[key].annotation):
        values.extend(value for value in get_args(arg) if isinstance(value, str))
    quoted = [f"'{value}'" for value in values]
    if len(quoted) < 2:
        return "".join(quoted)
    return ", ".join(quoted[:-1]) + f", or {quoted[-1]}"


__all__ = [
    "CONFIG_FILENAME",
    "PREFERENCE_KEYS",
    "PreferenceEntry",
    "PreferenceError",
    "PreferenceStore",
    "Preferences",
    "local_config_path",
]
