"""Turn a kit and a lifecycle intent into a concrete invocation."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Sequence
import os

from .environment import merge_overlay
from .errors import ToolMissing
from .kits import CONFIGURE_TOOL, LANGUAGE_SERVER, TEST_TOOL, Kit, ShellDescriptor


@dataclass(slots=True)
class BuildStep:
    description: str
    command: Sequence[str]
    cwd: Path
    env: Dict[str, str] = field(default_factory=dict)


def _tool(kit: Kit, path: str | None, tool: str) -> List[str]:
    if not path:
        raise ToolMissing(kit, tool)
    return [*kit.command_prefix, path]


def _jobs_flag(jobs: int | None) -> List[str]:
    if jobs is None:
        return []
    if isinstance(jobs, bool) or not isinstance(jobs, int) or jobs < 1:
        raise ValueError(f"Job count must be a positive integer, got {jobs!r}")
    return ["-j", str(jobs)]


def _overlay(kit: Kit) -> Dict[str, str]:
    return merge_overlay({}, kit.environment_overlay())


def configure_command(
    kit: Kit,
    project_root: Path,
    build_dir: Path,
    extra_args: Sequence[str] = (),
) -> BuildStep:
    cmd = _tool(kit, kit.configure_tool_path, CONFIGURE_TOOL)
    cmd.extend(["-G", kit.generator, "-S", str(project_root), "-B", str(build_dir)])
    cmd.extend(extra_args)
    return BuildStep(description="Configure project", command=cmd, cwd=project_root, env=_overlay(kit))


def build_command(
    kit: Kit,
    project_root: Path,
    build_dir: Path,
    *,
    jobs: int | None = None,
    clean: bool = False,
    extra_args: Sequence[str] = (),
) -> BuildStep:
    cmd = _tool(kit, kit.configure_tool_path, CONFIGURE_TOOL)
    cmd.extend(["--build", str(build_dir)])
    cmd.extend(_jobs_flag(jobs))
    if clean:
        cmd.append("--clean-first")
    cmd.extend(extra_args)
    return BuildStep(description="Build project", command=cmd, cwd=project_root, env=_overlay(kit))


def install_command(
    kit: Kit,
    project_root: Path,
    build_dir: Path,
    *,
    jobs: int | None = None,
) -> BuildStep:
    cmd = _tool(kit, kit.configure_tool_path, CONFIGURE_TOOL)
    cmd.extend(["--install", str(build_dir)])
    cmd.extend(_jobs_flag(jobs))
    return BuildStep(description="Install project", command=cmd, cwd=project_root, env=_overlay(kit))


def test_command(
    kit: Kit,
    test_dir: Path,
    *,
    jobs: int | None = None,
    extra_args: Sequence[str] = (),
) -> BuildStep:
    cmd = _tool(kit, kit.test_tool_path, TEST_TOOL)
    cmd.extend(_jobs_flag(jobs))
    cmd.extend(extra_args)
    return BuildStep(description="Run tests", command=cmd, cwd=test_dir, env=_overlay(kit))


test_command.__test__ = False  # type: ignore[attr-defined]


def language_server_command(kit: Kit, project_root: Path, build_dir: Path) -> BuildStep:
    """Invocation an editor uses to start the kit's language server."""
    cmd = _tool(kit, kit.language_server_path, LANGUAGE_SERVER)
    cmd.append(f"--compile-commands-dir={build_dir}")
    return BuildStep(description="Language server", command=cmd, cwd=project_root, env=_overlay(kit))


def default_shell() -> ShellDescriptor:
    if os.name == "nt":
        return ShellDescriptor(program=os.environ.get("COMSPEC", "cmd.exe"))
    return ShellDescriptor(program=os.environ.get("SHELL", "/bin/sh"))


def shell_command(kit: Kit, project_root: Path) -> BuildStep:
    """Interactive shell for ``kit``; tools are never launched this way."""
    shell = kit.shell or default_shell()
    env = merge_overlay(_overlay(kit), shell.environment)
    return BuildStep(description="Interactive shell", command=shell.command, cwd=project_root, env=env)


__all__ = [
    "BuildStep",
    "build_command",
    "configure_command",
    "default_shell",
    "install_command",
    "language_server_command",
    "shell_command",
    "test_command",
]
