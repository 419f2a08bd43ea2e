"""Capture and compare the environments exported by nested shells."""
from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Sequence, Tuple
import re

from core.command_runner import CommandRunner

from .errors import ProbeFailure

EnvironmentPairs = Tuple[Tuple[str, str], ...]

_ASSIGNMENT = re.compile(r"^([A-Za-z_][A-Za-z0-9_]*)=(.*)$")


def capture_environment(
    runner: CommandRunner,
    program: str,
    args: Sequence[str] = (),
    *,
    env: Mapping[str, str] | None = None,
) -> List[str]:
    """Run ``program`` non-interactively and return its ``NAME=VALUE`` lines.

    Output is captured with stderr folded in, so banners and prompts printed
    by login scripts are dropped by the line filter rather than confusing
    the parser.
    """
    command = [program, *args]
    try:
        result = runner.run(command, env=env, check=False, combine_output=True)
    except OSError as exc:
        raise ProbeFailure(runner.format_command(command), str(exc)) from exc
    if result.returncode != 0:
        raise ProbeFailure(
            runner.format_command(command),
            f"exit code {result.returncode}\n{result.stdout}",
        )
    return [line for line in result.stdout.splitlines() if _ASSIGNMENT.match(line)]


def parse_environment(lines: Iterable[str]) -> EnvironmentPairs:
    pairs: List[Tuple[str, str]] = []
    for line in lines:
        match = _ASSIGNMENT.match(line.rstrip("\r"))
        if match:
            pairs.append((match.group(1), match.group(2)))
    return tuple(pairs)


def environment_delta(flavor: Iterable[Tuple[str, str]], baseline: Iterable[Tuple[str, str]]) -> EnvironmentPairs:
    """Return the pairs of ``flavor`` that do not appear in ``baseline``.

    A variable whose value changed shows up because the ``(name, value)``
    pair differs. Flavor order is preserved and duplicates collapse.
    """
    known = set(baseline)
    delta: List[Tuple[str, str]] = []
    seen: set[Tuple[str, str]] = set()
    for pair in flavor:
        if pair in known or pair in seen:
            continue
        seen.add(pair)
        delta.append(pair)
    return tuple(delta)


def merge_overlay(base: Mapping[str, str], overlay: Iterable[Tuple[str, str]]) -> Dict[str, str]:
    """Apply ``overlay`` on a copy of ``base``; later entries win."""
    merged = dict(base)
    for name, value in overlay:
        merged[name] = value
    return merged


__all__ = [
    "EnvironmentPairs",
    "capture_environment",
    "environment_delta",
    "merge_overlay",
    "parse_environment",
]
