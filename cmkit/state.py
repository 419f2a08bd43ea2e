"""Observe and reset the per-kit build directory."""
from __future__ import annotations

from enum import Enum
from pathlib import Path
from typing import Callable, List
import shutil

from .errors import MissingProjectFile, NotConfigured

PROJECT_FILE = "CMakeLists.txt"
TEST_DATABASE = "CTestTestfile.cmake"
FETCHED_DEPENDENCIES = "_deps"

Confirm = Callable[[str], bool]


class BuildState(str, Enum):
    UNCONFIGURED = "unconfigured"
    CONFIGURED = "configured"


def default_build_dir(project_root: Path, kit_name: str) -> Path:
    return project_root / f"build-{kit_name}"


class BuildDirectory:
    """Build directory of one kit inside one project.

    The tracker only observes: the directory appears as a side effect of a
    successful configure run. Its existence is the whole state.
    """

    def __init__(
        self,
        project_root: Path,
        kit_name: str,
        *,
        override: Path | None = None,
        project_file: str = PROJECT_FILE,
    ) -> None:
        self.project_root = project_root
        self.kit_name = kit_name
        self.project_file = project_file
        if override is None:
            self.path = default_build_dir(project_root, kit_name)
        elif override.is_absolute():
            self.path = override
        else:
            self.path = project_root / override

    @property
    def state(self) -> BuildState:
        return BuildState.CONFIGURED if self.path.is_dir() else BuildState.UNCONFIGURED

    @property
    def configured(self) -> bool:
        return self.state is BuildState.CONFIGURED

    def ensure_source_present(self) -> None:
        project_file = self.project_root / self.project_file
        if not project_file.is_file():
            raise MissingProjectFile(f"No {self.project_file} in {self.project_root}")

    def ensure_configured(self, confirm: Confirm, configure: Callable[[], object]) -> None:
        if self.configured:
            return
        prompt = f"Build directory {self.path} is not configured. Configure it now with kit '{self.kit_name}'?"
        if not confirm(prompt):
            raise NotConfigured(f"Build directory {self.path} is not configured; run configure first")
        configure()
        if not self.configured:
            raise NotConfigured(f"Configure did not create {self.path}")

    def reset(self, confirm: Confirm) -> bool:
        if not self.path.exists():
            return False
        if not confirm(f"Remove build directory {self.path}?"):
            return False
        shutil.rmtree(self.path)
        return True

    def test_directories(self) -> List[Path]:
        """Directories holding a test database, children before parents.

        Subtrees under a ``_deps`` segment belong to fetched dependencies and
        are skipped.
        """
        if not self.path.is_dir():
            return []
        found: List[Path] = []
        self._collect_test_directories(self.path, found)
        return found

    def _collect_test_directories(self, directory: Path, found: List[Path]) -> None:
        for child in sorted(entry for entry in directory.iterdir() if entry.is_dir()):
            if child.name == FETCHED_DEPENDENCIES:
                continue
            self._collect_test_directories(child, found)
        if (directory / TEST_DATABASE).is_file():
            found.append(directory)

    def resolve_test_directory(self) -> Path | None:
        # The last match is the outermost directory, so the project's own
        # tests win over nested subprojects.
        candidates = self.test_directories()
        return candidates[-1] if candidates else None


__all__ = [
    "BuildDirectory",
    "BuildState",
    "FETCHED_DEPENDENCIES",
    "PROJECT_FILE",
    "TEST_DATABASE",
    "default_build_dir",
]
