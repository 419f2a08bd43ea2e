"""Command line interface for cmkit."""
from __future__ import annotations

from argparse import ArgumentParser, Namespace
from pathlib import Path
from typing import Iterable
import json
import shutil
import sys

from core.command_runner import CommandError, RecordingCommandRunner, SubprocessCommandRunner
from core.console import Console

from .errors import KitError
from .host import ProcessJob, TerminalHost
from .kits import current_host
from .lifecycle import Lifecycle
from .registry import REGISTRY, KitRegistry
from .settings import Settings
from .subsystems import SubsystemLocator


def _parse_arguments(argv: Iterable[str]) -> Namespace:
    parser = ArgumentParser(prog="cmkit", description="CMake kit discovery and build lifecycle")
    parser.add_argument("--config", "-c", type=Path, default=None, help="Path to the configuration file")
    parser.add_argument("--project", "-C", type=Path, default=None, help="Project root (default: current directory)")
    parser.add_argument("--kit", "-k", help="Kit to use instead of the configured default")
    parser.add_argument("--dry-run", "-n", action="store_true", help="Print commands without executing them")
    parser.add_argument("--yes", "-y", action="store_true", help="Answer yes to every confirmation prompt")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable verbose output (maps to debug)")
    parser.add_argument(
        "--log",
        "-l",
        choices=list(Console.LEVELS),
        default=None,
        help="Set log level (default: from configuration, else warn)",
    )

    subparsers = parser.add_subparsers(dest="command", required=True)

    subparsers.add_parser("scan", help="Discover kits on this host and list them")
    subparsers.add_parser("list", help="List available kits")

    configure_parser = subparsers.add_parser("configure", help="Configure the build directory")
    configure_parser.add_argument("--clean", action="store_true", help="Remove the build directory first")

    build_parser = subparsers.add_parser("build", help="Build the project")
    build_parser.add_argument("--clean", action="store_true", help="Clean before building")

    subparsers.add_parser("install", help="Install the project")

    test_parser = subparsers.add_parser("test", help="Run CTest in the background")
    test_parser.add_argument("--wait", action="store_true", help="Wait for the tests and print their output")

    subparsers.add_parser("shell", help="Open an interactive shell for the kit")

    lsp_parser = subparsers.add_parser("lsp", help="Print the language server command for the kit")
    lsp_parser.add_argument("--json", action="store_true", help="Print command, cwd and environment as JSON")

    subparsers.add_parser("reset", help="Remove the build directory")

    return parser.parse_args(list(argv))


def main(argv: Iterable[str] | None = None) -> int:
    args = _parse_arguments(sys.argv[1:] if argv is None else argv)
    project_root = (args.project or Path.cwd()).resolve()

    try:
        settings = Settings.load(project_root, args.config)
    except (ValueError, TypeError) as exc:
        Console(level="error").error(f"Failed to load config: {exc}")
        return 1

    if args.log:
        log_level = args.log
    elif args.verbose:
        log_level = "debug"
    else:
        log_level = settings.log_level
    try:
        console = Console(level=log_level, dry_run=args.dry_run)
    except ValueError as exc:
        Console(level="error").error(str(exc))
        return 1
    if settings.source is not None:
        console.debug(f"Loaded configuration from {settings.source}")

    runner: SubprocessCommandRunner | RecordingCommandRunner
    if args.dry_run:
        runner = RecordingCommandRunner()
    else:
        runner = SubprocessCommandRunner()

    host = TerminalHost(runner, console, assume_yes=args.yes)
    lifecycle = Lifecycle(
        registry=REGISTRY,
        host=host,
        settings=settings,
        project_root=project_root,
        console=console,
        dry_run=args.dry_run,
    )

    try:
        _populate_registry(REGISTRY, lifecycle, settings, console, force_scan=args.command == "scan")
        status = _dispatch(args, lifecycle, REGISTRY, console)
    except (KitError, CommandError, ValueError, TypeError) as exc:
        console.error(str(exc))
        return 1

    if args.dry_run and isinstance(runner, RecordingCommandRunner):
        for line in runner.iter_formatted(workspace=project_root):
            console.echo(line)
    return status


def _populate_registry(
    registry: KitRegistry,
    lifecycle: Lifecycle,
    settings: Settings,
    console: Console,
    *,
    force_scan: bool,
) -> None:
    registry.set_default(settings.default_kit)
    if settings.kits and not force_scan:
        registry.load_mapping(settings.kits, host=current_host())
        console.debug(f"Using {len(registry)} kit(s) from configuration")
        return
    locator = SubsystemLocator(
        # Probes only read the host, so they run even in dry-run mode.
        runner=SubprocessCommandRunner(),
        console=console,
        host=current_host(),
        which=shutil.which,
        msys2_root=Path(settings.msys2_root),
        bridge=settings.bridge,
        compilers=settings.compilers,
    )
    lifecycle.scan(locator)


def _dispatch(args: Namespace, lifecycle: Lifecycle, registry: KitRegistry, console: Console) -> int:
    command = args.command
    if command in {"scan", "list"}:
        _print_kits(registry, console)
        return 0
    if command == "configure":
        lifecycle.configure(args.kit, clean=args.clean)
        return 0
    if command == "build":
        lifecycle.build(args.kit, clean=args.clean)
        return 0
    if command == "install":
        lifecycle.install(args.kit)
        return 0
    if command == "test":
        job = lifecycle.test(args.kit)
        if args.wait and isinstance(job, ProcessJob) and job.process is not None:
            code = job.wait()
            console.echo(job.sink.read_text(encoding="utf-8", errors="replace"))
            return 0 if code == 0 else 1
        return 0
    if command == "shell":
        lifecycle.shell(args.kit)
        return 0
    if command == "lsp":
        step = lifecycle.language_server(args.kit)
        if args.json:
            payload = {"command": list(step.command), "cwd": str(step.cwd), "environment": step.env}
            console.echo(json.dumps(payload, indent=2))
        else:
            console.echo(" ".join(step.command))
        return 0
    if command == "reset":
        removed = lifecycle.reset(args.kit)
        console.info("Build directory removed" if removed else "Build directory left in place")
        return 0
    raise ValueError(f"Unknown command: {command}")


def _print_kits(registry: KitRegistry, console: Console) -> None:
    if not len(registry):
        console.echo("No kits available")
        return
    default = registry.default_name
    if default not in registry:
        if default is not None:
            console.warn(f"Configured default kit '{default}' was not found")
        default = registry.names()[0]
    for kit in registry.kits():
        marker = " (default)" if kit.name == default else ""
        console.echo(kit.describe().replace(f"kit {kit.name}:", f"kit {kit.name}{marker}:", 1))


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
