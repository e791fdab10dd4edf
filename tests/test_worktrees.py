from __future__ import annotations

from pathlib import Path

from hivecode.worktrees import WorktreeProvisioner, default_worktree_base, workspace_branch, worktree_path


class RecordingGit:
    """Stub git runner; ``worktree add`` creates the directory unless told to fail."""

    def __init__(self, fail_first_add: bool = False, fail_all: bool = False, outputs=None) -> None:
        self.calls: list[list[str]] = []
        self.fail_first_add = fail_first_add
        self.fail_all = fail_all
        self.outputs = outputs or {}

    def __call__(self, args, cwd):
        args = list(args)
        self.calls.append(args)
        if self.fail_all:
            return 128, "", "fatal: not a git repository"
        if args[:2] == ["worktree", "add"]:
            adds = [call for call in self.calls if call[:2] == ["worktree", "add"]]
            if self.fail_first_add and len(adds) == 1:
                return 255, "", "fatal: a branch named 'worker-1-workspace' already exists"
            Path(args[2]).mkdir(parents=True)
            return 0, "", ""
        key = " ".join(args)
        return self.outputs.get(key, (0, "", ""))


def test_default_worktree_base_is_sibling(tmp_path: Path) -> None:
    root = tmp_path / "code" / "myproj"
    assert default_worktree_base(root) == tmp_path / "code" / ".worktrees" / "myproj"
    assert worktree_path(tmp_path, 3) == tmp_path / "worker-3"
    assert workspace_branch(3) == "worker-3-workspace"


def test_ensure_creates_worktree_once(tmp_path: Path) -> None:
    git = RecordingGit()
    provisioner = WorktreeProvisioner(runner=git)
    base = tmp_path / "wt"

    first = provisioner.ensure(tmp_path, base, 1)
    second = provisioner.ensure(tmp_path, base, 1)

    assert first == second == base / "worker-1"
    adds = [call for call in git.calls if call[:2] == ["worktree", "add"]]
    assert adds == [["worktree", "add", str(base / "worker-1"), "-b", "worker-1-workspace"]]


def test_ensure_reuses_existing_branch(tmp_path: Path) -> None:
    git = RecordingGit(fail_first_add=True)
    provisioner = WorktreeProvisioner(runner=git)

    path = provisioner.ensure(tmp_path, tmp_path / "wt", 1)

    assert path.exists()
    assert git.calls[-1] == ["worktree", "add", str(path), "worker-1-workspace"]


def test_ensure_falls_back_to_project_root(tmp_path: Path) -> None:
    provisioner = WorktreeProvisioner(runner=RecordingGit(fail_all=True))

    assert provisioner.ensure(tmp_path, tmp_path / "wt", 2) == tmp_path


def test_ensure_honours_branch_hint(tmp_path: Path) -> None:
    git = RecordingGit()
    WorktreeProvisioner(runner=git).ensure(tmp_path, tmp_path / "wt", 1, branch_hint="feature/x")

    assert git.calls[0][-1] == "feature/x"


def test_cleanup_outcomes(tmp_path: Path) -> None:
    base = tmp_path / "wt"
    provisioner = WorktreeProvisioner(runner=RecordingGit(fail_all=True))
    assert provisioner.cleanup(tmp_path, base, 1) == "absent"

    (base / "worker-1").mkdir(parents=True)
    assert provisioner.cleanup(tmp_path, base, 1) == "force_removed"
    assert not (base / "worker-1").exists()


def test_repository_status_parses_counts(tmp_path: Path) -> None:
    git = RecordingGit(
        outputs={
            "branch --show-current": (0, "main\n", ""),
            "status --porcelain": (0, " M file.py\n", ""),
            "rev-list --left-right --count HEAD...@{upstream}": (0, "2\t1\n", ""),
        }
    )

    status = WorktreeProvisioner(runner=git).repository_status(tmp_path)

    assert status is not None
    assert (status.branch, status.clean, status.ahead, status.behind) == ("main", False, 2, 1)


def test_repository_status_outside_git(tmp_path: Path) -> None:
    assert WorktreeProvisioner(runner=RecordingGit(fail_all=True)).repository_status(tmp_path) is None
