from __future__ import annotations

from pathlib import Path
import tempfile
import unittest

from cmkit.errors import MissingProjectFile, NotConfigured
from cmkit.state import BuildDirectory, BuildState


class BuildDirectoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.directory = BuildDirectory(self.root, "unix-gcc")

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def test_default_and_override_paths(self) -> None:
        self.assertEqual(self.directory.path, self.root / "build-unix-gcc")
        self.assertEqual(BuildDirectory(self.root, "k", override=Path("out")).path, self.root / "out")
        absolute = self.root / "elsewhere"
        self.assertEqual(BuildDirectory(self.root, "k", override=absolute).path, absolute)

    def test_state_follows_directory_existence(self) -> None:
        self.assertIs(self.directory.state, BuildState.UNCONFIGURED)
        self.directory.path.mkdir()
        self.assertIs(self.directory.state, BuildState.CONFIGURED)

    def test_missing_project_file(self) -> None:
        with self.assertRaises(MissingProjectFile):
            self.directory.ensure_source_present()

        (self.root / "CMakeLists.txt").write_text("project(demo)\n")
        self.directory.ensure_source_present()

    def test_ensure_configured_declined(self) -> None:
        prompts = []
        configured = []

        def confirm(prompt: str) -> bool:
            prompts.append(prompt)
            return False

        with self.assertRaises(NotConfigured):
            self.directory.ensure_configured(confirm, lambda: configured.append(True))

        self.assertEqual(len(prompts), 1)
        self.assertEqual(configured, [])

    def test_ensure_configured_accepted_runs_configure(self) -> None:
        self.directory.ensure_configured(lambda prompt: True, lambda: self.directory.path.mkdir())

        self.assertTrue(self.directory.configured)

    def test_ensure_configured_fails_when_configure_creates_nothing(self) -> None:
        with self.assertRaises(NotConfigured):
            self.directory.ensure_configured(lambda prompt: True, lambda: None)

    def test_ensure_configured_does_not_prompt_when_configured(self) -> None:
        self.directory.path.mkdir()

        def confirm(prompt: str) -> bool:
            raise AssertionError("should not prompt")

        self.directory.ensure_configured(confirm, lambda: None)

    def test_reset_requires_confirmation(self) -> None:
        (self.directory.path / "CMakeFiles").mkdir(parents=True)

        self.assertFalse(self.directory.reset(lambda prompt: False))
        self.assertTrue(self.directory.configured)

        self.assertTrue(self.directory.reset(lambda prompt: True))
        self.assertIs(self.directory.state, BuildState.UNCONFIGURED)

    def test_reset_without_directory_is_a_no_op(self) -> None:
        self.assertFalse(self.directory.reset(lambda prompt: True))


class ResolveTestDirectoryTests(unittest.TestCase):
    def setUp(self) -> None:
        self.temp_dir = tempfile.TemporaryDirectory()
        self.root = Path(self.temp_dir.name)
        self.directory = BuildDirectory(self.root, "k", override=Path("build"))
        self.build = self.directory.path

    def tearDown(self) -> None:
        self.temp_dir.cleanup()

    def _touch(self, relative: str) -> None:
        path = self.build / relative
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text("# generated\n")

    def test_fetched_dependencies_are_ignored(self) -> None:
        self._touch("_deps/foo/CTestTestfile.cmake")
        self._touch("CTestTestfile.cmake")

        self.assertEqual(self.directory.resolve_test_directory(), self.build)
        self.assertEqual(self.directory.test_directories(), [self.build])

    def test_outer_directory_wins_over_subdirectories(self) -> None:
        self._touch("CTestTestfile.cmake")
        self._touch("tests/CTestTestfile.cmake")
        self._touch("tests/unit/CTestTestfile.cmake")

        self.assertEqual(
            self.directory.test_directories(),
            [self.build / "tests" / "unit", self.build / "tests", self.build],
        )
        self.assertEqual(self.directory.resolve_test_directory(), self.build)

    def test_nested_deps_segment_is_ignored(self) -> None:
        self._touch("sub/_deps/gtest-build/CTestTestfile.cmake")
        self._touch("sub/CTestTestfile.cmake")

        self.assertEqual(self.directory.resolve_test_directory(), self.build / "sub")

    def test_no_test_database(self) -> None:
        self.assertIsNone(self.directory.resolve_test_directory())
        self.build.mkdir()
        self.assertIsNone(self.directory.resolve_test_directory())


if __name__ == "__main__":
    unittest.main()
