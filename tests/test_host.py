from __future__ import annotations

from pathlib import Path
import io
import subprocess
import sys
import tempfile
import unittest

from core.command_runner import RecordingCommandRunner, SubprocessCommandRunner
from core.console import Console
from cmkit.errors import TestRunInProgress
from cmkit.host import TerminalHost, pid_file_for

PYTHON = sys.executable
SLEEPER = [PYTHON, "-c", "import time; time.sleep(30)"]
QUICK = [PYTHON, "-c", "print('ok')"]


class ConfirmTests(unittest.TestCase):
    def _host(self, answers, **kwargs) -> TerminalHost:
        replies = iter(answers)

        def prompt(text: str) -> str:
            reply = next(replies)
            if isinstance(reply, BaseException):
                raise reply
            return reply

        return TerminalHost(RecordingCommandRunner(), Console(level="none"), prompt=prompt, **kwargs)

    def test_answers(self) -> None:
        self.assertTrue(self._host(["y"]).confirm("Remove?"))
        self.assertTrue(self._host([" YES "]).confirm("Remove?"))
        self.assertFalse(self._host([""]).confirm("Remove?"))
        self.assertFalse(self._host([EOFError()]).confirm("Remove?"))

    def test_assume_yes_skips_prompt(self) -> None:
        self.assertTrue(self._host([], assume_yes=True).confirm("Remove?"))


class SpawnBackgroundTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.sink = self.root / "tests.log"
        self.host = TerminalHost(SubprocessCommandRunner(), Console(level="none", stream=io.StringIO()))

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_dry_run_records_without_touching_files(self) -> None:
        runner = RecordingCommandRunner()
        host = TerminalHost(runner, Console(level="none", dry_run=True, stream=io.StringIO()))

        job = host.spawn_background(["ctest"], self.root, {}, self.sink)

        self.assertFalse(job.running())
        self.assertTrue(runner.commands[0].background)
        self.assertFalse(self.sink.exists())
        self.assertFalse(pid_file_for(self.sink).exists())

    def test_pid_file_tracks_the_run(self) -> None:
        job = self.host.spawn_background(QUICK, self.root, {}, self.sink)

        self.assertEqual(pid_file_for(self.sink).read_text().strip(), str(job.process.pid))
        self.assertEqual(job.wait(timeout=60), 0)
        self.assertFalse(pid_file_for(self.sink).exists())
        self.assertIn("ok", self.sink.read_text())

    def test_running_job_from_another_host_is_rejected(self) -> None:
        job = self.host.spawn_background(SLEEPER, self.root, {}, self.sink)
        try:
            other = TerminalHost(SubprocessCommandRunner(), Console(level="none"))
            with self.assertRaises(TestRunInProgress):
                other.spawn_background(QUICK, self.root, {}, self.sink)
        finally:
            job.process.kill()
            job.wait(timeout=60)

        retry = self.host.spawn_background(QUICK, self.root, {}, self.sink)
        self.assertEqual(retry.wait(timeout=60), 0)

    def test_stale_pid_file_is_replaced(self) -> None:
        finished = subprocess.Popen(QUICK, stdout=subprocess.DEVNULL)
        finished.wait(timeout=60)
        pid_file_for(self.sink).write_text(f"{finished.pid}\n")

        self.assertIsNone(self.host.running_pid(self.sink))
        self.assertFalse(pid_file_for(self.sink).exists())

        job = self.host.spawn_background(QUICK, self.root, {}, self.sink)
        self.assertEqual(pid_file_for(self.sink).read_text().strip(), str(job.process.pid))
        job.wait(timeout=60)

    def test_unreadable_pid_file_is_removed(self) -> None:
        pid_file_for(self.sink).write_text("not a pid\n")

        self.assertIsNone(self.host.running_pid(self.sink))
        self.assertFalse(pid_file_for(self.sink).exists())


if __name__ == "__main__":
    unittest.main()
