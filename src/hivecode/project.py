"""Project identity and the ``.hive`` directory layout."""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path

from .config import HiveSettings
from .tasks import sample_task, task_path
from .worktrees import default_worktree_base

logger = logging.getLogger(__name__)

HOOK_NAME = "inject-hive-role.sh"

_HOOK_SCRIPT = """#!/bin/bash
#
# inject-hive-role.sh - Hive role auto-injection
#
# Auto-generated by: hivecode init
#

set -e

INPUT=$(cat)
CWD=$(echo "$INPUT" | jq -r '.cwd // empty')
[ -z "$CWD" ] && CWD=$(pwd)

if echo "$CWD" | grep -qE '/worker-[0-9]+$'; then
    WORKER_ID=$(basename "$CWD" | sed 's/worker-//')
    cat << EOF
<hive-role>
You are Hive Worker-${WORKER_ID}.

1. Read .hive/tasks/worker-${WORKER_ID}.md to get your task
2. Focus on completing the assigned task
3. After completion, run lint/test to verify
4. Update .hive/status/worker-${WORKER_ID}.json

Status file format:
{
  "status": "idle|coding|testing|reviewing|ready_for_review|approved",
  "branch": "feature/xxx",
  "current": "Current work description",
  "percent": 50,
  "subagent": {"name": "lint|test|code-review", "status": "running|passed|failed", "message": "..."}
}
</hive-role>
EOF
    exit 0
fi

if [ -d "$CWD/.hive" ]; then
    cat << EOF
<hive-role>
You are Hive Queen (coordinator).

1. Create plans and distribute tasks to .hive/tasks/worker-N.md
2. Monitor .hive/status/ to track Worker progress
3. When PRs are ready, have a Worker run a code-review subagent
4. Coordinate merges and resolve conflicts

Worker management: hivecode workers up|down|restart N, hivecode status.
Start by reading .hive/assignment.md.
</hive-role>
EOF
    exit 0
fi

exit 0
"""

_ASSIGNMENT = """# Task Assignment

## Overview

Describe the overall task here.

## Workers

| Worker | Task | Branch |
|--------|------|--------|
| Worker-1 | Task description | `feature/task-1` |
| Worker-2 | Task description | `feature/task-2` |
| Worker-3 | (idle) | - |
| Worker-4 | Code Review | `review/*` |

## Acceptance Criteria

1. All tests pass
2. Code reviewed
"""


@dataclass(frozen=True, slots=True)
class ProjectContext:
    """Where a project's workers, worktrees, logs and status files live."""

    root: Path
    name: str
    hive_dir: Path
    worktree_base: Path
    log_dir: Path

    @classmethod
    def from_path(cls, root: Path, settings: HiveSettings) -> "ProjectContext":
        root = Path(root).resolve()
        return cls(
            root=root,
            name=root.name,
            hive_dir=root / ".hive",
            worktree_base=default_worktree_base(root),
            log_dir=Path(settings.log_dir).expanduser(),
        )

    @classmethod
    def from_cwd(cls, settings: HiveSettings) -> "ProjectContext":
        return cls.from_path(Path.cwd(), settings)

    @property
    def initialized(self) -> bool:
        return self.hive_dir.is_dir()

    def log_path(self, slot: int) -> Path:
        return self.log_dir / f"hive-{self.name}-worker-{slot}.log"

    def ensure_hive_dirs(self) -> None:
        (self.hive_dir / "tasks").mkdir(parents=True, exist_ok=True)
        (self.hive_dir / "status").mkdir(parents=True, exist_ok=True)


def initialize(context: ProjectContext, *, sample_slots: int = 2) -> list[str]:
    """Create the ``.hive`` tree, role hook and sample files; returns what was done.

    Existing files are left untouched, so running it twice is harmless.
    """

    steps: list[str] = []
    context.ensure_hive_dirs()
    steps.append("Created .hive/tasks and .hive/status")

    hooks_dir = context.root / ".claude" / "hooks"
    hooks_dir.mkdir(parents=True, exist_ok=True)
    hook = hooks_dir / HOOK_NAME
    if not hook.exists():
        hook.write_text(_HOOK_SCRIPT, encoding="utf-8")
        hook.chmod(0o755)
        steps.append("Created hook script")

    settings_file = context.root / ".claude" / "settings.json"
    if settings_file.exists():
        if HOOK_NAME in settings_file.read_text(encoding="utf-8", errors="replace"):
            steps.append("Hook already configured in settings.json")
        else:
            logger.warning("settings.json exists without the hive hook", extra={"path": str(settings_file)})
            steps.append("settings.json exists but hook not configured; add it manually")
    else:
        settings_file.write_text(json.dumps(_hook_settings(), indent=2), encoding="utf-8")
        steps.append("Created .claude/settings.json with hook")

    for slot in range(1, sample_slots + 1):
        path = task_path(context.hive_dir, slot)
        if not path.exists():
            path.write_text(sample_task(slot), encoding="utf-8")
    steps.append("Created sample task files")

    assignment = context.hive_dir / "assignment.md"
    if not assignment.exists():
        assignment.write_text(_ASSIGNMENT, encoding="utf-8")
        steps.append("Created .hive/assignment.md")
    return steps


def _hook_settings() -> dict:
    return {
        "hooks": {
            "SessionStart": [
                {
                    "matcher": "startup",
                    "hooks": [
                        {
                            "type": "command",
                            "command": f'"$CLAUDE_PROJECT_DIR/.claude/hooks/{HOOK_NAME}"',
                            "statusMessage": "Loading Hive role...",
                        }
                    ],
                }
            ]
        }
    }


__all__ = ["HOOK_NAME", "ProjectContext", "initialize"]
