"""Collaborator contract between the lifecycle and whatever hosts it."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Mapping, Protocol, Sequence
import os
import subprocess

from core.command_runner import CommandResult, CommandRunner
from core.console import Console

from .errors import TestRunInProgress


class BackgroundJob(Protocol):
    def running(self) -> bool:
        ...


class Host(Protocol):
    """What the lifecycle needs from its environment: run, ask, spawn.

    ``spawn_background`` raises ``TestRunInProgress`` when an earlier
    invocation is still writing the same sink.
    """

    def run_command(self, argv: Sequence[str], cwd: Path, env: Mapping[str, str], *, note: str | None = None) -> Any:
        ...

    def confirm(self, prompt: str) -> bool:
        ...

    def spawn_background(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Mapping[str, str],
        output_sink: Path,
    ) -> BackgroundJob:
        ...


def pid_file_for(sink: Path) -> Path:
    return sink.with_name(f"{sink.name}.pid")


@dataclass(slots=True)
class ProcessJob:
    """Background process writing into ``sink``.

    ``pid_file`` names the running process for later invocations and is
    removed once the job has been waited for.
    """

    command: Sequence[str]
    sink: Path
    process: "subprocess.Popen[str] | None" = None
    pid_file: Path | None = None

    def running(self) -> bool:
        return self.process is not None and self.process.poll() is None

    def wait(self, timeout: float | None = None) -> int | None:
        if self.process is None:
            return None
        code = self.process.wait(timeout=timeout)
        if self.pid_file is not None:
            self.pid_file.unlink(missing_ok=True)
        return code


class TerminalHost:
    """Runs commands in the calling terminal and prompts on stdin."""

    def __init__(
        self,
        runner: CommandRunner,
        console: Console,
        *,
        assume_yes: bool = False,
        prompt: Callable[[str], str] = input,
    ) -> None:
        self._runner = runner
        self._console = console
        self._assume_yes = assume_yes
        self._prompt = prompt

    @property
    def runner(self) -> CommandRunner:
        return self._runner

    def run_command(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Mapping[str, str],
        *,
        note: str | None = None,
    ) -> CommandResult:
        self._console.info(f"{note or 'Running'}: {self._runner.format_command(argv)}")
        return self._runner.run(argv, cwd=cwd, env=env, note=note, stream=True)

    def confirm(self, prompt: str) -> bool:
        if self._assume_yes:
            self._console.debug(f"{prompt} [assumed yes]")
            return True
        try:
            answer = self._prompt(f"{prompt} [y/N] ")
        except EOFError:
            return False
        return answer.strip().lower() in {"y", "yes"}

    def spawn_background(
        self,
        argv: Sequence[str],
        cwd: Path,
        env: Mapping[str, str],
        output_sink: Path,
    ) -> ProcessJob:
        if self._console.dry_run:
            self._runner.spawn(argv, cwd=cwd, env=env, note="Run tests")
            return ProcessJob(command=list(argv), sink=output_sink)
        pid_file = pid_file_for(output_sink)
        running = self.running_pid(output_sink)
        if running is not None:
            raise TestRunInProgress(f"A test run (pid {running}) is still writing {output_sink}; wait for it to finish")
        output_sink.parent.mkdir(parents=True, exist_ok=True)
        # Truncate on every run; the child keeps its own copy of the handle.
        with output_sink.open("w", encoding="utf-8") as handle:
            process = self._runner.spawn(argv, cwd=cwd, env=env, output=handle, note="Run tests")
        if process is not None:
            pid_file.write_text(f"{process.pid}\n", encoding="utf-8")
        self._console.info(f"Tests running in background, output in {output_sink}")
        return ProcessJob(command=list(argv), sink=output_sink, process=process, pid_file=pid_file)

    def running_pid(self, output_sink: Path) -> int | None:
        """Pid of a test run from any invocation still writing ``output_sink``.

        A pid file left behind by a finished run is removed.
        """
        pid_file = pid_file_for(output_sink)
        if not pid_file.is_file():
            return None
        try:
            pid = int(pid_file.read_text(encoding="utf-8").strip())
        except ValueError:
            pid = None
        if pid is not None and self._pid_alive(pid):
            return pid
        self._console.debug(f"Removing stale {pid_file}")
        pid_file.unlink(missing_ok=True)
        return None

    def _pid_alive(self, pid: int) -> bool:
        if os.name == "nt":
            # os.kill on Windows terminates the target instead of probing it.
            result = self._runner.run(
                ["tasklist", "/FI", f"PID eq {pid}", "/NH"],
                check=False,
                note="Check test run",
            )
            return str(pid) in result.stdout.split()
        try:
            os.kill(pid, 0)
        except ProcessLookupError:
            return False
        except PermissionError:
            return True
        return True


__all__ = ["BackgroundJob", "Host", "ProcessJob", "TerminalHost", "pid_file_for"]
