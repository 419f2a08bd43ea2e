"""Utilities for executing tool commands with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import IO, Dict, Iterable, List, Mapping, Sequence
import os
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int
    stdout: str
    stderr: str
    streamed: bool = False


class CommandError(RuntimeError):
    """Raised when a command fails."""

    def __init__(self, result: CommandResult):
        message = f"Command failed with exit code {result.returncode}: {' '.join(map(shlex.quote, result.command))}"
        if result.streamed:
            message = f"{message}\nstdout/stderr already streamed above."
        else:
            message = (
                f"{message}\n"
                f"stdout: {result.stdout}\n"
                f"stderr: {result.stderr}"
            )
        super().__init__(message)
        self.result = result


def merge_environment(env: Mapping[str, str] | None) -> Dict[str, str] | None:
    """Overlay ``env`` on the ambient process environment, in insertion order."""
    if env is None:
        return None
    merged = os.environ.copy()
    for key, value in env.items():
        merged[key] = value
    return merged


class CommandRunner:
    """Abstract command runner interface.

    ``combine_output`` folds stderr into stdout. ``encoding`` decodes the raw
    output bytes with a specific codec instead of UTF-8.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        combine_output: bool = False,
        encoding: str | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def spawn(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        output: IO[str] | None = None,
        note: str | None = None,
    ) -> "subprocess.Popen[str] | None":
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return " ".join(shlex.quote(part) for part in command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`."""

    def _finalize(self, result: CommandResult, *, check: bool) -> CommandResult:
        if check and result.returncode != 0:
            raise CommandError(result)
        return result

    @staticmethod
    def _decode(data: bytes | None, encoding: str) -> str:
        if not data:
            return ""
        return data.decode(encoding, errors="replace")

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        combine_output: bool = False,
        encoding: str | None = None,
    ) -> CommandResult:
        merged_env = merge_environment(env)
        if stream:
            process = subprocess.run(
                list(command),
                cwd=str(cwd) if cwd else None,
                env=merged_env,
                check=False,
            )
            return self._finalize(
                CommandResult(
                    command=command,
                    returncode=process.returncode,
                    stdout="",
                    stderr="",
                    streamed=True,
                ),
                check=check,
            )

        captured = subprocess.run(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=merged_env,
            stdout=subprocess.PIPE,
            stderr=subprocess.STDOUT if combine_output else subprocess.PIPE,
            check=False,
        )
        codec = encoding or "utf-8"
        return self._finalize(
            CommandResult(
                command=command,
                returncode=captured.returncode,
                stdout=self._decode(captured.stdout, codec),
                stderr=self._decode(captured.stderr, codec),
            ),
            check=check,
        )

    def spawn(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        output: IO[str] | None = None,
        note: str | None = None,
    ) -> "subprocess.Popen[str]":
        return subprocess.Popen(
            list(command),
            cwd=str(cwd) if cwd else None,
            env=merge_environment(env),
            stdout=output if output is not None else subprocess.DEVNULL,
            stderr=subprocess.STDOUT,
            stdin=subprocess.DEVNULL,
            text=True,
        )


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    env: Dict[str, str]
    note: str | None
    stream: bool
    background: bool = False


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self) -> None:
        self.commands: List[RecordedCommand] = []

    @staticmethod
    def _record_entry(
        *,
        command: Sequence[str],
        cwd: Path | None,
        env: Mapping[str, str] | None,
        note: str | None,
        stream: bool,
        background: bool = False,
    ) -> RecordedCommand:
        return RecordedCommand(
            command=list(command),
            cwd=str(cwd) if cwd else None,
            env=dict(env) if env else {},
            note=note,
            stream=stream,
            background=background,
        )

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        check: bool = True,
        note: str | None = None,
        stream: bool = False,
        combine_output: bool = False,
        encoding: str | None = None,
    ) -> CommandResult:
        self.commands.append(
            self._record_entry(command=command, cwd=cwd, env=env, note=note, stream=stream)
        )
        return CommandResult(command=command, returncode=0, stdout="", stderr="")

    def spawn(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        output: IO[str] | None = None,
        note: str | None = None,
    ) -> None:
        self.commands.append(
            self._record_entry(command=command, cwd=cwd, env=env, note=note, stream=False, background=True)
        )
        return None

    def iter_commands(self) -> Iterable[RecordedCommand]:
        return iter(self.commands)

    def iter_formatted(self, *, workspace: Path | None = None) -> Iterable[str]:
        default_cwd = str(workspace) if workspace else None
        for record in self.commands:
            cmd = self.format_command(record.command)
            cwd = record.cwd or default_cwd
            note = record.note
            parts: List[str] = ["[dry-run]"]
            if note:
                parts.append(note)
            if record.background:
                parts.append("(background)")
            if cwd:
                parts.append(f"(cwd={cwd})")
            if record.env:
                overlay = " ".join(f"{key}={shlex.quote(value)}" for key, value in record.env.items())
                parts.append(f"(env: {overlay})")
            parts.append(cmd)
            yield " ".join(parts)


__all__ = [
    "CommandError",
    "CommandResult",
    "CommandRunner",
    "RecordedCommand",
    "RecordingCommandRunner",
    "SubprocessCommandRunner",
    "merge_environment",
]
