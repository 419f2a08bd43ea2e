"""Discover CMake kits across host subsystems and drive the build lifecycle."""
from __future__ import annotations

from .commands import BuildStep
from .errors import (
    KitError,
    MissingProjectFile,
    NoKitSelected,
    NotConfigured,
    ProbeFailure,
    TestRunInProgress,
    ToolMissing,
)
from .kits import Kit, ShellDescriptor, build_kit
from .lifecycle import Lifecycle
from .registry import REGISTRY, KitRegistry
from .state import BuildDirectory, BuildState
from .subsystems import SubsystemLocator

__all__ = [
    "BuildDirectory",
    "BuildState",
    "BuildStep",
    "Kit",
    "KitError",
    "KitRegistry",
    "Lifecycle",
    "MissingProjectFile",
    "NoKitSelected",
    "NotConfigured",
    "ProbeFailure",
    "REGISTRY",
    "ShellDescriptor",
    "SubsystemLocator",
    "TestRunInProgress",
    "ToolMissing",
    "build_kit",
]
