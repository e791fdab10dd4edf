"""``hivecode`` command line."""

from __future__ import annotations

import argparse
import logging
import shlex
import shutil
import subprocess
import sys
from dataclasses import dataclass
from pathlib import Path

from . import __version__
from .aggregator import StatusAggregator
from .config import HiveSettings, get_settings
from .dashboard import Dashboard
from .keybindings import KeyBindingInstaller, help_text
from .layout import LayoutComposer, LayoutOptions, apply_theme_options, check_terminal
from .preferences import PreferenceError, PreferenceStore
from .project import ProjectContext, initialize
from .sessions import SessionRegistry, embedded_session_name
from .status import StatusStore
from .theme import Theme, resolve_theme, theme_for
from .tmux import TMUX_INSTALL_HINT, TmuxError, TmuxHost, TmuxNotFoundError
from .workers import OperationResult, WorkerManager, WorkerState
from .worktrees import WorktreeProvisioner

logger = logging.getLogger(__name__)

DEFAULT_COMMAND = "embedded"
EMBEDDED_PREFIX = "hivecode-"


def configure_logging(level: str) -> None:
    """Configure root logging for the CLI."""

    logging.basicConfig(
        level=getattr(logging, level, logging.WARNING),
        format="[%(asctime)s] [%(levelname)s] %(name)s: %(message)s",
    )


def create_host(settings: HiveSettings) -> TmuxHost:
    executable = Path(settings.tmux_path) if settings.tmux_path else None
    return TmuxHost(executable, timeout=settings.tmux_timeout)


@dataclass(slots=True)
class Runtime:
    settings: HiveSettings
    context: ProjectContext
    host: TmuxHost

    @classmethod
    def load(cls) -> "Runtime":
        settings = get_settings()
        return cls(settings=settings, context=ProjectContext.from_cwd(settings), host=create_host(settings))

    @property
    def preferences(self) -> PreferenceStore:
        return PreferenceStore.for_project(self.settings.global_config_path, self.context.root)

    def manager(self) -> WorkerManager:
        self.host.require()
        return WorkerManager(self.context, self.settings, host=self.host, registry=SessionRegistry(self.host))

    def theme(self, override: str | None = None) -> Theme:
        return resolve_theme(override, env_theme=self.settings.theme, preferences=self.preferences)


def _header(title: str, runtime: Runtime | None = None) -> None:
    print(f"🐝 {title}")
    if runtime is not None:
        print(f"   Project: {runtime.context.name}")
    print()


def _print_results(results: list[OperationResult]) -> int:
    for result in results:
        stream = sys.stdout if result.ok else sys.stderr
        print(f"  {result.line()}", file=stream)
    return sum(1 for result in results if result.ok)


def _theme_override(value: str) -> str | None:
    return None if value == "auto" else value


# workers


def cmd_workers_up(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    _header("Starting HiveCode Workers", runtime)
    ready = _print_results(manager.start_all())
    total = runtime.settings.worker_count
    print()
    print(f"✅ {ready}/{total} Workers ready")
    print()
    print("Workers are running in detached tmux sessions.")
    print("Use `hivecode dashboard` to monitor them.")
    return 0 if ready == total else 1


def cmd_workers_down(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    _header("Stopping HiveCode Workers")
    _print_results(manager.stop_all())
    print()
    print("✅ Stop commands sent")
    print("   Workers will exit gracefully.")
    return 0


def cmd_workers_kill(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    _header("Killing all HiveCode Workers")
    results = manager.kill_all()
    killed = _print_results(results)
    print()
    print(f"✅ {killed}/{len(results)} Workers down")
    return 0 if killed == len(results) else 1


def cmd_workers_restart(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    manager.check_slot(args.worker)
    _header(f"Restarting Worker-{args.worker}")
    if manager.state(args.worker) is WorkerState.ABSENT:
        print(f"  Worker-{args.worker} not running, starting it")
    result = manager.restart(args.worker)
    _print_results([result])
    if not result.ok:
        return 1
    print()
    print(f"✅ Worker-{args.worker} restarted")
    return 0


def cmd_workers_list(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    aggregator = StatusAggregator(runtime.context, runtime.settings, manager.registry)
    _header("HiveCode Workers", runtime)
    for worker in aggregator.poll():
        icon = "●" if worker.running else "○"
        running = "running" if worker.running else "stopped"
        status = worker.status.status.value if worker.status else "unknown"
        branch = (worker.status.branch if worker.status else None) or "-"
        print(f"  {icon} Worker-{worker.slot}  {running:<8}  {status:<12}  {branch}")
        if worker.status is not None and worker.status.subagent is not None:
            sub = worker.status.subagent
            print(f"      └─ [{sub.name}] {sub.status.value}: {sub.message or ''}")
    print()
    return 0


def cmd_workers_prompt(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    _header("Sending prompts to Workers")
    results = manager.prompt_all()
    sent = _print_results(results)
    print()
    print(f"✅ Prompts sent ({sent}/{len(results)})")
    return 0 if sent == len(results) else 1


# sessions


def cmd_queen(args: argparse.Namespace, runtime: Runtime) -> int:
    runtime.context.ensure_hive_dirs()
    _header("Starting HiveCode Queen", runtime)
    print("Starting Claude Code with Queen role...")
    print()
    command = shlex.split(runtime.settings.agent_command)
    try:
        return subprocess.run(command, cwd=runtime.context.root, check=False).returncode
    except OSError as exc:
        print(f"Failed to start agent: {exc}", file=sys.stderr)
        print("\nMake sure Claude Code is installed:\n  npm install -g @anthropic-ai/claude-code")
        return 1


def cmd_dashboard(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    theme = runtime.theme(_theme_override(args.theme))
    return Dashboard(runtime.settings, manager=manager, theme=theme, embedded=args.embedded).run()


def cmd_embedded(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    settings = runtime.settings
    session = embedded_session_name(runtime.context.name)
    if args.attach and manager.registry.exists(session):
        return runtime.host.attach(session)

    if args.workers < 1 or args.workers > settings.worker_count:
        raise ValueError(f"Worker count must be 1-{settings.worker_count}")
    if args.queen_width < 40 or args.queen_width > 80:
        raise ValueError("Queen width must be 40-80%")

    print("🐝 HiveCode")
    print(f"   Project: {runtime.context.name}")
    if not runtime.context.initialized:
        print("   (auto-initializing...)")
    print()
    warnings = check_terminal(shutil.get_terminal_size().columns)
    for warning in warnings:
        print(f"⚠️  {warning}")
    if warnings:
        print()

    print("  Starting Workers...")
    composer = LayoutComposer(
        runtime.context,
        settings,
        host=runtime.host,
        workers=manager,
        theme=runtime.theme(_theme_override(args.theme)),
    )
    options = LayoutOptions(worker_count=args.workers, lead_width=args.queen_width, show_workers=args.panels)
    session = composer.compose(options)
    ready = _print_results(composer.worker_results)
    print()
    print(f"✅ Ready! {ready}/{len(composer.worker_results)} Workers ready")
    print()
    print(help_text(settings.worker_count))
    print()
    return runtime.host.attach(session)


def cmd_status(args: argparse.Namespace, runtime: Runtime) -> int:
    return cmd_workers_list(args, runtime)


def cmd_attach(args: argparse.Namespace, runtime: Runtime) -> int:
    manager = runtime.manager()
    slot = args.worker
    if slot is None:
        slot = manager.first_running()
        if slot is None:
            print("No running Workers found", file=sys.stderr)
            print("Start Workers with: hivecode workers up")
            return 1
    result = manager.attach(slot)
    if not result.ok:
        print(result.line(), file=sys.stderr)
        return 1
    return 0


def cmd_stop(args: argparse.Namespace, runtime: Runtime) -> int:
    if not args.all:
        return cmd_workers_down(args, runtime)
    code = cmd_workers_kill(args, runtime)
    session = embedded_session_name(runtime.context.name)
    if runtime.host.has_session(session) and runtime.host.kill_session(session).ok:
        print(f"  Embedded session {session} killed")
    return code


def cmd_clean(args: argparse.Namespace, runtime: Runtime) -> int:
    provisioner = WorktreeProvisioner()
    context = runtime.context
    print("Cleaning worktrees...")
    labels = {"removed": "Removed", "force_removed": "Force removed"}
    for slot in runtime.settings.slots:
        outcome = provisioner.cleanup(context.root, context.worktree_base, slot)
        if outcome in labels:
            print(f"  {labels[outcome]}: worker-{slot}")
    print("✅ Cleanup complete")
    return 0


def cmd_init(args: argparse.Namespace, runtime: Runtime) -> int:
    _header(f"Initializing HiveCode for {runtime.context.name}")
    for step in initialize(runtime.context):
        print(f"  ✓ {step}")
    if args.reset:
        store = StatusStore(runtime.context.hive_dir)
        cleared = [slot for slot in runtime.settings.slots if store.reset(slot)]
        print(f"  ✓ Cleared {len(cleared)} status file(s)")
    print()
    print("✅ HiveCode initialized!")
    print()
    print("Next steps:")
    print("  1. Edit .hive/assignment.md with your task plan")
    print("  2. Edit .hive/tasks/worker-*.md with specific tasks")
    print("  3. Run 'hivecode' to start Queen")
    print("  4. Run 'hivecode workers up' to start Workers")
    print("  5. Run 'hivecode dashboard' to monitor")
    return 0


# config and theme


def cmd_config_set(args: argparse.Namespace, runtime: Runtime) -> int:
    runtime.preferences.set(args.key, args.value, local=args.local)
    print(f"✓ Set {args.key} = {args.value} ({'local' if args.local else 'global'})")
    return 0


def cmd_config_get(args: argparse.Namespace, runtime: Runtime) -> int:
    value = runtime.preferences.get(args.key)
    print(value if value is not None else "(not set)")
    return 0


def cmd_config_unset(args: argparse.Namespace, runtime: Runtime) -> int:
    removed = runtime.preferences.unset(args.key, local=args.local)
    scope = "local" if args.local else "global"
    print(f"✓ Removed {args.key} ({scope})" if removed else f"{args.key} was not set ({scope})")
    return 0


def cmd_config_list(args: argparse.Namespace, runtime: Runtime) -> int:
    store = runtime.preferences
    _header("HiveCode Configuration")
    entries = store.entries()
    if not entries:
        print("  (no configuration set)")
    for entry in entries:
        print(f"  {entry.key} = {entry.value} [{entry.source}]")
    print()
    print("Config files:")
    _print_paths(store, indent="  ")
    return 0


def cmd_config_path(args: argparse.Namespace, runtime: Runtime) -> int:
    _print_paths(runtime.preferences)
    return 0


def _print_paths(store: PreferenceStore, indent: str = "") -> None:
    paths = store.paths()
    print(f"{indent}Global: {paths['global']}")
    if paths.get("local") is not None:
        print(f"{indent}Local:  {paths['local']}")


def cmd_theme_toggle(args: argparse.Namespace, runtime: Runtime) -> int:
    store = runtime.preferences
    current = store.get("theme") or "dark"
    mode = "dark" if current == "light" else "light"
    store.set("theme", mode)
    theme = theme_for(mode)
    if args.session:
        identity = args.session[len(EMBEDDED_PREFIX) :] if args.session.startswith(EMBEDDED_PREFIX) else args.session
        apply_theme_options(runtime.host, args.session, theme)
        KeyBindingInstaller(
            runtime.host,
            session=args.session,
            identity=identity,
            theme=theme,
            worker_count=runtime.settings.worker_count,
        ).install()
    print(f"{theme.icon} Theme: {mode}")
    return 0


def cmd_theme_set(args: argparse.Namespace, runtime: Runtime) -> int:
    runtime.preferences.set("theme", args.mode)
    icon = {"light": "☀️", "dark": "🌙"}.get(args.mode, "🔄")
    print(f"{icon} Theme set to: {args.mode}")
    return 0


def cmd_theme_show(args: argparse.Namespace, runtime: Runtime) -> int:
    theme = runtime.theme()
    print(f"{theme.icon} Current theme: {theme.mode}")
    return 0


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(prog="hivecode", description="Multi-instance parallel Claude Code workflow system")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    sub = parser.add_subparsers(dest="cmd")

    p_queen = sub.add_parser("queen", help="Start Queen only (agent without dashboard)")
    p_queen.set_defaults(func=cmd_queen)

    p_workers = sub.add_parser("workers", help="Manage HiveCode Workers")
    workers = p_workers.add_subparsers(dest="workers_cmd")
    workers.add_parser("up", help="Start all Workers in detached tmux sessions").set_defaults(func=cmd_workers_up)
    workers.add_parser("down", help="Stop all Workers (sends /exit)").set_defaults(func=cmd_workers_down)
    workers.add_parser("kill", help="Kill all Worker sessions").set_defaults(func=cmd_workers_kill)
    p_restart = workers.add_parser("restart", help="Restart a specific Worker")
    p_restart.add_argument("worker", type=int)
    p_restart.set_defaults(func=cmd_workers_restart)
    workers.add_parser("list", help="List Worker status").set_defaults(func=cmd_workers_list)
    workers.add_parser("prompt", help="Send the task prompt to running Workers").set_defaults(func=cmd_workers_prompt)

    p_dashboard = sub.add_parser("dashboard", aliases=["dash"], help="Start the monitoring dashboard")
    p_dashboard.add_argument("--embedded", action="store_true", help="Compact layout for the embedded pane")
    p_dashboard.add_argument("--theme", choices=["light", "dark", "auto"], default="auto")
    p_dashboard.set_defaults(func=cmd_dashboard)

    p_embedded = sub.add_parser("embedded", aliases=["e"], help="Start HiveCode (Queen + dashboard)")
    p_embedded.add_argument("-w", "--workers", type=int, default=4, help="Number of workers to start")
    p_embedded.add_argument("--queen-width", type=int, default=60, help="Queen pane width percentage")
    p_embedded.add_argument("--no-panels", dest="panels", action="store_false", help="Queen only")
    p_embedded.add_argument("--attach", action="store_true", help="Attach to an existing session if available")
    p_embedded.add_argument("--theme", choices=["light", "dark", "auto"], default="auto")
    p_embedded.set_defaults(func=cmd_embedded)

    sub.add_parser("status", help="Show Worker status").set_defaults(func=cmd_status)

    p_attach = sub.add_parser("attach", help="Attach to a Worker session")
    p_attach.add_argument("worker", type=int, nargs="?")
    p_attach.set_defaults(func=cmd_attach)

    p_init = sub.add_parser("init", help="Initialize .hive for this project")
    p_init.add_argument("--reset", action="store_true", help="Clear existing Worker status files")
    p_init.set_defaults(func=cmd_init)

    p_config = sub.add_parser("config", help="Manage HiveCode configuration")
    config = p_config.add_subparsers(dest="config_cmd")
    p_set = config.add_parser("set", help="Set a config value")
    p_set.add_argument("key")
    p_set.add_argument("value")
    p_set.add_argument("--local", action="store_true", help="Write .hive/config.json instead of the global file")
    p_set.set_defaults(func=cmd_config_set)
    p_get = config.add_parser("get", help="Get a config value")
    p_get.add_argument("key")
    p_get.set_defaults(func=cmd_config_get)
    p_unset = config.add_parser("unset", help="Remove a config value")
    p_unset.add_argument("key")
    p_unset.add_argument("--local", action="store_true")
    p_unset.set_defaults(func=cmd_config_unset)
    config.add_parser("list", help="List all config values").set_defaults(func=cmd_config_list)
    config.add_parser("path", help="Show config file paths").set_defaults(func=cmd_config_path)

    p_theme = sub.add_parser("theme", help="Manage color theme")
    theme = p_theme.add_subparsers(dest="theme_cmd")
    p_toggle = theme.add_parser("toggle", help="Toggle between light and dark")
    p_toggle.add_argument("--session", help="tmux session to restyle")
    p_toggle.set_defaults(func=cmd_theme_toggle)
    p_theme_set = theme.add_parser("set", help="Set theme to light, dark, or auto")
    p_theme_set.add_argument("mode", choices=["light", "dark", "auto"])
    p_theme_set.set_defaults(func=cmd_theme_set)
    theme.add_parser("show", help="Show current theme").set_defaults(func=cmd_theme_show)

    p_stop = sub.add_parser("stop", help="Stop Workers")
    p_stop.add_argument("--all", action="store_true", help="Kill Workers and the embedded session")
    p_stop.set_defaults(func=cmd_stop)

    sub.add_parser("clean", help="Remove worker worktrees").set_defaults(func=cmd_clean)
    return parser


def _with_default_command(argv: list[str]) -> list[str]:
    if not argv:
        return [DEFAULT_COMMAND]
    if argv[0].startswith("-") and argv[0] not in ("-h", "--help", "--version"):
        return [DEFAULT_COMMAND, *argv]
    return argv


def main(argv: list[str] | None = None) -> int:
    parser = build_parser()
    args = parser.parse_args(_with_default_command(list(sys.argv[1:] if argv is None else argv)))
    if not hasattr(args, "func"):
        parser.print_help()
        return 1

    runtime = Runtime.load()
    configure_logging(runtime.settings.log_level)
    logger.info("Running command", extra={"command": args.cmd, "project": runtime.context.name})
    try:
        return args.func(args, runtime)
    except TmuxNotFoundError:
        print(f"Error: {TMUX_INSTALL_HINT}", file=sys.stderr)
        return 1
    except (PreferenceError, ValueError, TmuxError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
