"""Kit records and the builder that probes a toolchain context for its tools."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, List, Mapping, Sequence, Tuple
import platform
import shutil

from core.config_loader import normalize_string_list

from .environment import EnvironmentPairs

ExecFinder = Callable[[str], "str | None"]

CONFIGURE_TOOL = "cmake"
TEST_TOOL = "ctest"
LANGUAGE_SERVER = "clangd"
FAST_GENERATOR_TOOL = "ninja"
FAST_GENERATOR = "Ninja"


def current_host() -> str:
    return platform.system().lower()


def classic_generator(host: str | None = None) -> str:
    """Makefile generator CMake uses when no faster one is installed."""
    system = host if host is not None else current_host()
    if system == "windows":
        return "MinGW Makefiles"
    return "Unix Makefiles"


def _pairs_from_value(value: Any, *, field_name: str) -> EnvironmentPairs:
    if value is None:
        return ()
    if isinstance(value, Mapping):
        return tuple((str(key), str(item)) for key, item in value.items())
    if isinstance(value, Sequence) and not isinstance(value, (str, bytes)):
        pairs: List[Tuple[str, str]] = []
        for entry in value:
            if isinstance(entry, str) and "=" in entry:
                name, _, text = entry.partition("=")
                pairs.append((name, text))
            elif isinstance(entry, Sequence) and not isinstance(entry, (str, bytes)) and len(entry) == 2:
                pairs.append((str(entry[0]), str(entry[1])))
            else:
                raise TypeError(f"{field_name} entries must be NAME=VALUE strings or [name, value] pairs")
        return tuple(pairs)
    raise TypeError(f"{field_name} must be a table or a list of NAME=VALUE strings")


@dataclass(frozen=True, slots=True)
class ShellDescriptor:
    """Program, arguments and environment overlay for an interactive shell."""

    program: str
    args: Tuple[str, ...] = ()
    environment: EnvironmentPairs = ()

    @property
    def command(self) -> List[str]:
        return [self.program, *self.args]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "ShellDescriptor":
        allowed_keys = {"program", "args", "environment"}
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Shell descriptor contains unknown keys: {joined}")
        program = data.get("program")
        if not isinstance(program, str) or not program.strip():
            raise ValueError("Shell descriptor requires a non-empty 'program'")
        return cls(
            program=program.strip(),
            args=tuple(normalize_string_list(data.get("args"), field_name="shell.args")),
            environment=_pairs_from_value(data.get("environment"), field_name="shell.environment"),
        )


@dataclass(frozen=True, slots=True)
class Kit:
    """A named, fully resolved toolchain context.

    ``command_prefix`` is prepended to every tool invocation; it is how kits
    living behind a bridge (WSL) run their tools. ``c_compiler`` and
    ``cxx_compiler`` are exported as ``CC``/``CXX`` next to the environment
    delta so CMake picks the compiler the kit is named after.
    """

    name: str
    generator: str
    environment_delta: EnvironmentPairs = ()
    configure_tool_path: str | None = None
    test_tool_path: str | None = None
    language_server_path: str | None = None
    shell: ShellDescriptor | None = None
    command_prefix: Tuple[str, ...] = ()
    c_compiler: str | None = None
    cxx_compiler: str | None = None

    FIELDS = (
        "environment_delta",
        "configure_tool_path",
        "test_tool_path",
        "language_server_path",
        "generator",
        "shell",
        "command_prefix",
        "c_compiler",
        "cxx_compiler",
    )

    def environment_overlay(self) -> EnvironmentPairs:
        overlay = list(self.environment_delta)
        if self.c_compiler:
            overlay.append(("CC", self.c_compiler))
        if self.cxx_compiler:
            overlay.append(("CXX", self.cxx_compiler))
        return tuple(overlay)

    def describe(self) -> str:
        lines = [f"kit {self.name}:"]
        lines.append(f"  generator: {self.generator}")
        lines.append(f"  configure_tool_path: {self.configure_tool_path or '<none>'}")
        lines.append(f"  test_tool_path: {self.test_tool_path or '<none>'}")
        lines.append(f"  language_server_path: {self.language_server_path or '<none>'}")
        if self.c_compiler or self.cxx_compiler:
            lines.append(f"  compilers: {self.c_compiler or '<none>'} / {self.cxx_compiler or '<none>'}")
        if self.command_prefix:
            lines.append(f"  command_prefix: {' '.join(self.command_prefix)}")
        if self.shell is not None:
            lines.append(f"  shell: {' '.join(self.shell.command)}")
        if self.environment_delta:
            lines.append("  environment:")
            for name, value in self.environment_delta:
                lines.append(f"    {name}={value}")
        return "\n".join(lines)

    @classmethod
    def from_mapping(cls, name: str, data: Mapping[str, Any], *, host: str | None = None) -> "Kit":
        if not isinstance(data, Mapping):
            raise TypeError(f"Kit '{name}' definition must be a mapping")

        allowed_keys = {
            "environment",
            "configure_tool_path",
            "test_tool_path",
            "language_server_path",
            "generator",
            "shell",
            "command_prefix",
            "c_compiler",
            "cxx_compiler",
        }
        unknown = {str(key) for key in data.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"Kit '{name}' contains unknown keys: {joined}")

        def optional_text(key: str) -> str | None:
            value = data.get(key)
            if value is None:
                return None
            text = str(value).strip()
            return text or None

        shell_section = data.get("shell")
        shell: ShellDescriptor | None = None
        if isinstance(shell_section, Mapping):
            shell = ShellDescriptor.from_mapping(shell_section)
        elif shell_section is not None:
            raise TypeError(f"Kit '{name}' shell must be a table")

        return cls(
            name=name,
            generator=optional_text("generator") or classic_generator(host),
            environment_delta=_pairs_from_value(data.get("environment"), field_name=f"kits.{name}.environment"),
            configure_tool_path=optional_text("configure_tool_path"),
            test_tool_path=optional_text("test_tool_path"),
            language_server_path=optional_text("language_server_path"),
            shell=shell,
            command_prefix=tuple(
                normalize_string_list(data.get("command_prefix"), field_name=f"kits.{name}.command_prefix")
            ),
            c_compiler=optional_text("c_compiler"),
            cxx_compiler=optional_text("cxx_compiler"),
        )


def build_kit(
    name: str,
    environment_delta: Iterable[Tuple[str, str]] = (),
    shell: ShellDescriptor | None = None,
    exec_finder: ExecFinder | None = None,
    *,
    fallback_generator: str | None = None,
    command_prefix: Sequence[str] = (),
    c_compiler: str | None = None,
    cxx_compiler: str | None = None,
) -> Kit:
    """Probe a toolchain context and assemble its :class:`Kit`.

    Every tool is resolved on its own; a missing tool leaves its field at
    ``None``. The generator is decided here once and never re-probed.
    """
    find = exec_finder or shutil.which
    generator = FAST_GENERATOR if find(FAST_GENERATOR_TOOL) else (fallback_generator or classic_generator())
    return Kit(
        name=name,
        generator=generator,
        environment_delta=tuple(environment_delta),
        configure_tool_path=find(CONFIGURE_TOOL),
        test_tool_path=find(TEST_TOOL),
        language_server_path=find(LANGUAGE_SERVER),
        shell=shell,
        command_prefix=tuple(command_prefix),
        c_compiler=c_compiler,
        cxx_compiler=cxx_compiler,
    )


__all__ = [
    "CONFIGURE_TOOL",
    "ExecFinder",
    "FAST_GENERATOR",
    "Kit",
    "LANGUAGE_SERVER",
    "ShellDescriptor",
    "TEST_TOOL",
    "build_kit",
    "classic_generator",
    "current_host",
]
