"""Locate the toolchain contexts installed on the host.

Three strategies exist, one per host class:

* MSYS2 flavors on a Windows host, isolated by diffing each flavor's login
  environment against the plain ``MSYS`` environment.
* WSL distributions reachable through the ``wsl`` bridge.
* Compilers found directly on ``PATH`` of a Unix host.

Each probe blocks until its child process exits. A failing probe only drops
the kit it was building.
"""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, List, Mapping, Sequence, Tuple
import os

from core.command_runner import CommandRunner
from core.console import Reporter

from .environment import EnvironmentPairs, capture_environment, environment_delta, parse_environment
from .errors import ProbeFailure
from .kits import ExecFinder, Kit, ShellDescriptor, build_kit, classic_generator

WhichFunction = Callable[[str], "str | None"]


@dataclass(frozen=True, slots=True)
class Msys2Flavor:
    msystem: str
    directory: str

    @property
    def kit_name(self) -> str:
        return f"msys2-{self.directory}"


MSYS2_FLAVORS: Tuple[Msys2Flavor, ...] = (
    Msys2Flavor("UCRT64", "ucrt64"),
    Msys2Flavor("CLANG64", "clang64"),
    Msys2Flavor("MINGW64", "mingw64"),
    Msys2Flavor("MINGW32", "mingw32"),
)

MSYS2_BASELINE = "MSYS"
MSYS2_GENERATOR = "MSYS Makefiles"
WSL_GENERATOR = "Unix Makefiles"
# `which` reporting an unknown name, or the shell reporting no `which`.
NOT_FOUND_EXIT_CODES = (1, 127)

BUILTIN_COMPILERS: Dict[str, Tuple[str, str]] = {
    "gcc": ("gcc", "g++"),
    "clang": ("clang", "clang++"),
}


def decode_bridge_output(data: str | bytes) -> str:
    """Decode ``wsl -l`` output, which is UTF-16-LE on Windows consoles."""
    if isinstance(data, bytes):
        return data.decode("utf-16-le", errors="replace").lstrip("\ufeff")
    # Text decoded with a byte codec still carries the NUL halves.
    return data.replace("\x00", "").lstrip("\ufeff")


def parse_distribution_list(text: str) -> List[str]:
    """Return the first token of every line after the header."""
    lines = text.splitlines()
    names: List[str] = []
    for line in lines[1:]:
        stripped = line.strip()
        if not stripped:
            continue
        names.append(stripped.split()[0])
    return names


def msys2_exec_finder(root: Path, flavor: Msys2Flavor) -> ExecFinder:
    search_dirs = (root / flavor.directory / "bin", root / "usr" / "bin")

    def find(name: str) -> str | None:
        for directory in search_dirs:
            for candidate in (directory / f"{name}.exe", directory / name):
                if candidate.is_file():
                    return str(candidate)
        return None

    return find


def bridge_exec_finder(runner: CommandRunner, bridge: Sequence[str]) -> ExecFinder:
    """Resolve names with ``which`` inside the distribution.

    ``which`` exits 1 for an unknown name, and the shell exits 127 when the
    distribution has no ``which`` at all. Both leave the tool unresolved. Any
    other failure means the distribution itself could not be started.
    """

    def find(name: str) -> str | None:
        command = [*bridge, "which", name]
        result = runner.run(command, check=False)
        if result.returncode in NOT_FOUND_EXIT_CODES:
            return None
        if result.returncode != 0:
            raise ProbeFailure(runner.format_command(command), f"exit code {result.returncode}\n{result.stderr}")
        path = result.stdout.strip()
        return path.splitlines()[0] if path else None

    return find


class SubsystemLocator:
    """Discover kits with whichever strategies apply to the host."""

    def __init__(
        self,
        *,
        runner: CommandRunner,
        console: Reporter,
        host: str,
        which: WhichFunction,
        msys2_root: Path | None = None,
        bridge: str = "wsl",
        compilers: Mapping[str, Tuple[str, str]] | None = None,
        shell: str | None = None,
    ) -> None:
        self._runner = runner
        self._console = console
        self._host = host
        self._which = which
        self._msys2_root = msys2_root
        self._bridge = bridge
        self._compilers = dict(compilers) if compilers is not None else dict(BUILTIN_COMPILERS)
        self._shell = shell or os.environ.get("SHELL") or "/bin/sh"
        self._baseline: EnvironmentPairs | None = None

    @property
    def is_windows(self) -> bool:
        return self._host == "windows"

    def locate(self) -> List[Kit]:
        kits: List[Kit] = []
        if self.is_windows and self._msys2_root is not None and self._msys2_root.is_dir():
            kits.extend(self.msys2_kits())
        if self.is_windows and self._which(self._bridge):
            kits.extend(self.wsl_kits())
        if not self.is_windows:
            kits.extend(self.host_kits())
        return kits

    # MSYS2

    @staticmethod
    def _bash(root: Path) -> Path:
        return root / "usr" / "bin" / "bash.exe"

    def _capture_msys2(self, root: Path, msystem: str) -> EnvironmentPairs:
        lines = capture_environment(
            self._runner,
            str(self._bash(root)),
            ["--login", "-c", "env"],
            env={"MSYSTEM": msystem, "CHERE_INVOKING": "1"},
        )
        return parse_environment(lines)

    def msys2_baseline(self, root: Path) -> EnvironmentPairs:
        if self._baseline is None:
            self._baseline = self._capture_msys2(root, MSYS2_BASELINE)
        return self._baseline

    def msys2_kits(self) -> List[Kit]:
        root = self._msys2_root
        if root is None:
            return []
        present = [flavor for flavor in MSYS2_FLAVORS if (root / flavor.directory / "bin").is_dir()]
        if not present:
            return []
        try:
            baseline = self.msys2_baseline(root)
        except ProbeFailure as exc:
            self._console.warn(f"Skipping MSYS2 kits, baseline shell failed: {exc}")
            return []

        kits: List[Kit] = []
        for flavor in present:
            try:
                captured = self._capture_msys2(root, flavor.msystem)
            except ProbeFailure as exc:
                self._console.warn(f"Skipping {flavor.kit_name}: {exc}")
                continue
            delta = environment_delta(captured, baseline)
            shell = ShellDescriptor(
                program=str(self._bash(root)),
                args=("--login", "-i"),
                environment=(("MSYSTEM", flavor.msystem), ("CHERE_INVOKING", "1")),
            )
            kits.append(
                build_kit(
                    flavor.kit_name,
                    environment_delta=delta,
                    shell=shell,
                    exec_finder=msys2_exec_finder(root, flavor),
                    fallback_generator=MSYS2_GENERATOR,
                )
            )
            self._console.debug(f"Found {flavor.kit_name} ({len(delta)} environment changes)")
        return kits

    # WSL

    def list_distributions(self) -> List[str]:
        command = [self._bridge, "-l"]
        try:
            result = self._runner.run(command, check=False, encoding="utf-16-le")
        except OSError as exc:
            raise ProbeFailure(self._runner.format_command(command), str(exc)) from exc
        if result.returncode != 0:
            raise ProbeFailure(
                self._runner.format_command(command),
                f"exit code {result.returncode}\n{decode_bridge_output(result.stdout)}",
            )
        return parse_distribution_list(decode_bridge_output(result.stdout))

    def wsl_kits(self) -> List[Kit]:
        try:
            distributions = self.list_distributions()
        except ProbeFailure as exc:
            self._console.warn(f"Skipping WSL kits, cannot list distributions: {exc}")
            return []

        kits: List[Kit] = []
        for distribution in distributions:
            bridge = (self._bridge, "-d", distribution)
            name = f"wsl-{distribution}"
            try:
                kit = build_kit(
                    name,
                    shell=ShellDescriptor(program=self._bridge, args=("-d", distribution)),
                    exec_finder=bridge_exec_finder(self._runner, bridge),
                    fallback_generator=WSL_GENERATOR,
                    command_prefix=bridge,
                )
            except (ProbeFailure, OSError) as exc:
                self._console.warn(f"Skipping {name}: {exc}")
                continue
            kits.append(kit)
            self._console.debug(f"Found {name}")
        return kits

    # Plain Unix host

    def host_kits(self) -> List[Kit]:
        kits: List[Kit] = []
        shell = ShellDescriptor(program=self._shell)
        for compiler, (c_name, cxx_name) in self._compilers.items():
            c_path = self._which(c_name)
            if not c_path:
                continue
            kits.append(
                build_kit(
                    f"unix-{compiler}",
                    shell=shell,
                    exec_finder=self._which,
                    fallback_generator=classic_generator(self._host),
                    c_compiler=c_path,
                    cxx_compiler=self._which(cxx_name),
                )
            )
            self._console.debug(f"Found unix-{compiler} ({c_path})")
        return kits


__all__ = [
    "BUILTIN_COMPILERS",
    "MSYS2_FLAVORS",
    "Msys2Flavor",
    "SubsystemLocator",
    "bridge_exec_finder",
    "decode_bridge_output",
    "msys2_exec_finder",
    "parse_distribution_list",
]
