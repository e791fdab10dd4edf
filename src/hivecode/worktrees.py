"""Per-worker git worktrees with a shared-root fallback."""

from __future__ import annotations

import logging
import shutil
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Sequence

logger = logging.getLogger(__name__)

GitRunner = Callable[[Sequence[str], Path], tuple[int, str, str]]


def run_git(args: Sequence[str], cwd: Path, timeout: float = 30.0) -> tuple[int, str, str]:
    """Run ``git`` and return ``(returncode, stdout, stderr)`` without raising."""

    try:
        process = subprocess.run(
            ["git", *args],
            cwd=str(cwd),
            stdin=subprocess.DEVNULL,
            stdout=subprocess.PIPE,
            stderr=subprocess.PIPE,
            text=True,
            timeout=timeout,
            check=False,
        )
    except (OSError, subprocess.TimeoutExpired) as exc:
        return 1, "", str(exc)
    return process.returncode, process.stdout, process.stderr


def worktree_path(worktree_base: Path, slot: int) -> Path:
    return Path(worktree_base) / f"worker-{slot}"


def workspace_branch(slot: int) -> str:
    return f"worker-{slot}-workspace"


def default_worktree_base(project_root: Path) -> Path:
    """``<parent>/.worktrees/<project name>``, outside the repository itself."""

    root = Path(project_root)
    return root.parent / ".worktrees" / root.name


@dataclass(slots=True)
class GitStatus:
    branch: str
    clean: bool
    ahead: int | None = None
    behind: int | None = None


class WorktreeProvisioner:
    """Creates worker worktrees lazily and never fails the caller."""

    def __init__(self, runner: GitRunner | None = None) -> None:
        self._runner = runner or run_git

    def ensure(
        self,
        project_root: Path,
        worktree_base: Path,
        slot: int,
        branch_hint: str | None = None,
    ) -> Path:
        """Return the worktree for ``slot``, or ``project_root`` when isolation fails."""

        project_root = Path(project_root)
        path = worktree_path(worktree_base, slot)
        if path.exists():
            return path

        branch = branch_hint or workspace_branch(slot)
        try:
            Path(worktree_base).mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            logger.warning(
                "Cannot create worktree base; worker shares project root",
                extra={"slot": slot, "base": str(worktree_base), "error": str(exc)},
            )
            return project_root

        code, _, err = self._runner(["worktree", "add", str(path), "-b", branch], project_root)
        if code != 0:
            # Branch left over from an earlier worktree: check it out instead.
            code, _, err = self._runner(["worktree", "add", str(path), branch], project_root)

        if code != 0 or not path.exists():
            logger.warning(
                "Worktree creation failed; worker shares project root",
                extra={"slot": slot, "path": str(path), "branch": branch, "error": err.strip()},
            )
            return project_root
        return path

    def cleanup(self, project_root: Path, worktree_base: Path, slot: int) -> str:
        """Detach the worktree from ``slot``: ``removed``, ``force_removed`` or ``absent``."""

        path = worktree_path(worktree_base, slot)
        if not path.exists():
            return "absent"
        code, _, err = self._runner(["worktree", "remove", "--force", str(path)], Path(project_root))
        if code == 0 and not path.exists():
            return "removed"
        logger.info(
            "git worktree remove failed; deleting directory",
            extra={"slot": slot, "path": str(path), "error": err.strip()},
        )
        shutil.rmtree(path, ignore_errors=True)
        self._runner(["worktree", "prune"], Path(project_root))
        return "force_removed"

    def repository_status(self, path: Path) -> GitStatus | None:
        """Branch, cleanliness and upstream divergence of ``path``; ``None`` outside git."""

        path = Path(path)
        code, branch, _ = self._runner(["branch", "--show-current"], path)
        if code != 0:
            return None
        code, porcelain, _ = self._runner(["status", "--porcelain"], path)
        if code != 0:
            return None

        status = GitStatus(branch=branch.strip(), clean=porcelain.strip() == "")
        code, counts, _ = self._runner(
            ["rev-list", "--left-right", "--count", "HEAD...@{upstream}"], path
        )
        if code == 0:
            parts = counts.split()
            if len(parts) == 2 and all(part.isdigit() for part in parts):
                status.ahead, status.behind = int(parts[0]), int(parts[1])
        return status


__all__ = [
    "GitRunner",
    "GitStatus",
    "WorktreeProvisioner",
    "default_worktree_base",
    "run_git",
    "workspace_branch",
    "worktree_path",
]
