"""Exception types raised by kit discovery and the build lifecycle."""
from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .kits import Kit


class KitError(RuntimeError):
    """Base class for every cmkit failure surfaced to a caller."""


class ProbeFailure(KitError):
    """A shell or tool probe exited non-zero or could not be started."""

    def __init__(self, command: str, detail: str) -> None:
        super().__init__(f"Probe failed: {command}\n{detail}".rstrip())
        self.command = command
        self.detail = detail


class ToolMissing(KitError):
    """The selected kit has no path for a tool the operation needs."""

    def __init__(self, kit: "Kit", tool: str) -> None:
        super().__init__(f"Kit '{kit.name}' has no {tool} executable.\n{kit.describe()}")
        self.kit = kit
        self.tool = tool


class NotConfigured(KitError):
    """The build directory has not been configured yet."""


class MissingProjectFile(KitError):
    """The project root lacks its top-level CMakeLists.txt."""


class NoKitSelected(KitError):
    """No kit could be resolved from the registry."""


class TestRunInProgress(KitError):
    """A previous background test run is still writing to the output sink."""

    __test__ = False


__all__ = [
    "KitError",
    "MissingProjectFile",
    "NoKitSelected",
    "NotConfigured",
    "ProbeFailure",
    "TestRunInProgress",
    "ToolMissing",
]
