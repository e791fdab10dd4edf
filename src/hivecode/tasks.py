"""Task documents the lead writes for each worker (``.hive/tasks/worker-N.md``)."""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, ValidationError, field_validator

logger = logging.getLogger(__name__)

_FENCE = "---"


class TaskDocument(BaseModel):
    """A task file: YAML front matter (``branch``, ``on_complete``) plus Markdown."""

    slot: int
    branch: str | None = Field(default=None, description="Branch the worker should use.")
    on_complete: str = Field(default="wait", description="What the worker does when done.")
    body: str = ""

    @field_validator("branch", mode="before")
    @classmethod
    def _stringify_branch(cls, value: Any) -> str | None:
        return None if value in (None, "") else str(value)

    @field_validator("on_complete", mode="before")
    @classmethod
    def _default_on_complete(cls, value: Any) -> str:
        return "wait" if value in (None, "") else str(value)

    @property
    def title(self) -> str:
        for line in self.body.splitlines():
            if line.startswith("#"):
                return line.lstrip("#").strip()
        return f"Worker-{self.slot} task"


def task_path(hive_dir: Path, slot: int) -> Path:
    return Path(hive_dir) / "tasks" / f"worker-{slot}.md"


def split_front_matter(text: str) -> tuple[dict[str, Any], str]:
    """Return ``(header, body)``; a missing or unparsable header yields ``{}``."""

    lines = text.splitlines(keepends=True)
    if not lines or lines[0].strip() != _FENCE:
        return {}, text
    for index in range(1, len(lines)):
        if lines[index].strip() == _FENCE:
            raw_header = "".join(lines[1:index])
            body = "".join(lines[index + 1 :])
            try:
                header = yaml.safe_load(raw_header)
            except yaml.YAMLError:
                return {}, body
            return (header if isinstance(header, dict) else {}), body
    return {}, text


def parse_task(slot: int, text: str) -> TaskDocument:
    header, body = split_front_matter(text)
    try:
        return TaskDocument(
            slot=slot,
            branch=header.get("branch"),
            on_complete=header.get("on_complete"),
            body=body.lstrip("\n"),
        )
    except ValidationError:
        return TaskDocument(slot=slot, body=body.lstrip("\n"))


def load_task(hive_dir: Path, slot: int) -> TaskDocument | None:
    """Load a worker's task; absent or unreadable files are simply ``None``."""

    path = task_path(hive_dir, slot)
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        return None
    except (OSError, UnicodeDecodeError) as exc:
        logger.debug("Unreadable task document", extra={"slot": slot, "error": str(exc)})
        return None
    return parse_task(slot, text)


def sample_task(slot: int) -> str:
    header = yaml.safe_dump(
        {"branch": f"feature/worker-{slot}-task", "on_complete": "wait"}, sort_keys=False
    )
    return (
        f"{_FENCE}\n{header}{_FENCE}\n\n"
        f"# Worker-{slot} Task\n\n"
        "## Objective\n\nDescribe the task here.\n\n"
        "## Tasks\n\n1. Task 1\n2. Task 2\n\n"
        "## Acceptance Criteria\n\n- [ ] Criterion 1\n- [ ] Criterion 2\n"
    )


def task_prompt(slot: int) -> str:
    return (
        f"Read .hive/tasks/worker-{slot}.md for your task, then start working. "
        f"Update .hive/status/worker-{slot}.json when done."
    )


__all__ = [
    "TaskDocument",
    "load_task",
    "parse_task",
    "sample_task",
    "split_front_matter",
    "task_path",
    "task_prompt",
]
