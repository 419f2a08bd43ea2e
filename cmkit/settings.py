"""Configuration loading for the cmkit CLI."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Mapping, Tuple
import os

from core.config_loader import find_config_file, load_config_file, normalize_string_list

from .subsystems import BUILTIN_COMPILERS

CONFIG_ENV_VAR = "CMKIT_CONFIG"
CONFIG_STEM = "cmkit"
DEFAULT_MSYS2_ROOT = "C:/msys64"
DEFAULT_TEST_OUTPUT = ".cmkit-test.log"


def _optional_text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _parse_jobs(value: Any) -> int | None:
    if value is None:
        return None
    if isinstance(value, bool) or not isinstance(value, int):
        raise TypeError("global.jobs must be an integer")
    if value < 1:
        raise ValueError("global.jobs must be at least 1")
    return value


def _parse_compilers(section: Any) -> Dict[str, Tuple[str, str]]:
    if section is None:
        return dict(BUILTIN_COMPILERS)
    if not isinstance(section, Mapping):
        raise TypeError("[compilers] must be a table of name = [cc, cxx]")
    compilers: Dict[str, Tuple[str, str]] = {}
    for raw_name, raw_value in section.items():
        names = normalize_string_list(raw_value, field_name=f"compilers.{raw_name}")
        if len(names) != 2:
            raise ValueError(f"compilers.{raw_name} must list exactly a C and a C++ compiler")
        compilers[str(raw_name)] = (names[0], names[1])
    return compilers


@dataclass(slots=True)
class Settings:
    default_kit: str | None = None
    jobs: int | None = None
    build_dir: str | None = None
    log_level: str = "warn"
    msys2_root: str = DEFAULT_MSYS2_ROOT
    bridge: str = "wsl"
    test_output: str = DEFAULT_TEST_OUTPUT
    extra_config_args: List[str] = field(default_factory=list)
    extra_build_args: List[str] = field(default_factory=list)
    extra_test_args: List[str] = field(default_factory=list)
    compilers: Dict[str, Tuple[str, str]] = field(default_factory=lambda: dict(BUILTIN_COMPILERS))
    kits: Dict[str, Mapping[str, Any]] = field(default_factory=dict)
    source: Path | None = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any], *, source: Path | None = None) -> "Settings":
        global_section = data.get("global", {})
        if not isinstance(global_section, Mapping):
            raise TypeError("[global] must be a table")

        allowed_keys = {
            "default_kit",
            "jobs",
            "build_dir",
            "log_level",
            "msys2_root",
            "bridge",
            "test_output",
            "extra_config_args",
            "extra_build_args",
            "extra_test_args",
        }
        unknown = {str(key) for key in global_section.keys() if str(key) not in allowed_keys}
        if unknown:
            joined = ", ".join(sorted(unknown))
            raise ValueError(f"[global] contains unknown keys: {joined}")

        kits_section = data.get("kits", {})
        if not isinstance(kits_section, Mapping):
            raise TypeError("[kits] must be a table of kit tables")
        kits: Dict[str, Mapping[str, Any]] = {}
        for raw_name, raw_value in kits_section.items():
            if not isinstance(raw_value, Mapping):
                raise TypeError(f"kits.{raw_name} must be a table")
            kits[str(raw_name)] = raw_value

        return cls(
            default_kit=_optional_text(global_section.get("default_kit")),
            jobs=_parse_jobs(global_section.get("jobs")),
            build_dir=_optional_text(global_section.get("build_dir")),
            log_level=str(global_section.get("log_level", "warn")),
            msys2_root=str(global_section.get("msys2_root", DEFAULT_MSYS2_ROOT)),
            bridge=str(global_section.get("bridge", "wsl")),
            test_output=str(global_section.get("test_output", DEFAULT_TEST_OUTPUT)),
            extra_config_args=normalize_string_list(
                global_section.get("extra_config_args"), field_name="global.extra_config_args"
            ),
            extra_build_args=normalize_string_list(
                global_section.get("extra_build_args"), field_name="global.extra_build_args"
            ),
            extra_test_args=normalize_string_list(
                global_section.get("extra_test_args"), field_name="global.extra_test_args"
            ),
            compilers=_parse_compilers(data.get("compilers")),
            kits=kits,
            source=source,
        )

    @classmethod
    def load(cls, project_root: Path, explicit: Path | None = None, env: Mapping[str, str] | None = None) -> "Settings":
        """Load settings: explicit path, then ``$CMKIT_CONFIG``, then ``<root>/cmkit.*``."""
        environ = env if env is not None else os.environ
        path = explicit
        if path is None and environ.get(CONFIG_ENV_VAR):
            path = Path(environ[CONFIG_ENV_VAR]).expanduser()
        if path is None:
            path = find_config_file(project_root, CONFIG_STEM)
        if path is None:
            return cls()
        if not path.is_file():
            raise ValueError(f"Configuration file not found: {path}")
        return cls.from_mapping(load_config_file(path), source=path)

    def build_dir_override(self) -> Path | None:
        return Path(self.build_dir).expanduser() if self.build_dir else None

    def test_output_path(self, project_root: Path) -> Path:
        path = Path(self.test_output).expanduser()
        return path if path.is_absolute() else project_root / path


__all__ = ["CONFIG_ENV_VAR", "Settings"]
