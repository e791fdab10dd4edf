"""HiveCode diagnostics CLI."""

from __future__ import annotations

import argparse
import json

from hivecode.aggregator import StatusAggregator
from hivecode.config import HiveSettings
from hivecode.preferences import PreferenceStore
from hivecode.project import ProjectContext
from hivecode.sessions import SessionRegistry
from hivecode.tasks import load_task
from hivecode.tmux import TMUX_INSTALL_HINT, TmuxHost


def load_context(settings: HiveSettings) -> ProjectContext:
    return ProjectContext.from_cwd(settings)


def cmd_workers(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    host = TmuxHost(timeout=settings.tmux_timeout)
    if not host.available:
        print(TMUX_INSTALL_HINT)
        raise SystemExit(1)
    aggregator = StatusAggregator(load_context(settings), settings, SessionRegistry(host))
    workers = aggregator.poll()
    if args.running:
        workers = [worker for worker in workers if worker.running]
    print(json.dumps([worker.to_dict() for worker in workers], indent=2))


def cmd_config(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    context = load_context(settings)
    store = PreferenceStore.for_project(settings.global_config_path.expanduser(), context.root)
    payload = {
        "entries": [
            {"key": entry.key, "value": entry.value, "source": entry.source} for entry in store.entries()
        ],
        "paths": {name: str(path) if path is not None else None for name, path in store.paths().items()},
        "settings": settings.model_dump(mode="json"),
    }
    print(json.dumps(payload, indent=2))


def cmd_tasks(args: argparse.Namespace) -> None:
    settings = HiveSettings()
    context = load_context(settings)
    tasks = []
    for slot in settings.slots:
        task = load_task(context.hive_dir, slot)
        if task is None:
            continue
        tasks.append(
            {
                "worker": slot,
                "title": task.title,
                "branch": task.branch,
                "on_complete": task.on_complete,
            }
        )
    print(json.dumps(tasks, indent=2))


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="HiveCode diagnostics")
    sub = parser.add_subparsers(dest="cmd")

    p_workers = sub.add_parser("workers", help="Dump worker snapshots")
    p_workers.add_argument("--running", action="store_true", help="Only running workers")
    p_workers.set_defaults(func=cmd_workers)

    p_config = sub.add_parser("config", help="Show layered preferences and settings")
    p_config.set_defaults(func=cmd_config)

    p_tasks = sub.add_parser("tasks", help="List task document headers")
    p_tasks.set_defaults(func=cmd_tasks)

    return parser


def main(argv: list[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if not hasattr(args, "func"):
        parser.print_help()
        return
    args.func(args)


if __name__ == "__main__":
    main()
