"""Configure, build, install and test a CMake project with the selected kit."""
from __future__ import annotations

from pathlib import Path
from typing import Any, List

from core.console import Console

from .commands import (
    BuildStep,
    build_command,
    configure_command,
    install_command,
    language_server_command,
    shell_command,
    test_command,
)
from .errors import NotConfigured, TestRunInProgress
from .host import BackgroundJob, Host
from .kits import Kit
from .registry import KitRegistry, KitSource
from .settings import Settings
from .state import BuildDirectory


class Lifecycle:
    """User-facing operations sequencing kit selection, state checks and commands.

    Configure, build and install go through ``host.run_command``. Tests are
    spawned in the background into ``settings.test_output``; a second run
    is refused while the first is still going. This instance tracks its own
    job and the host tracks runs started by other invocations.
    """

    def __init__(
        self,
        *,
        registry: KitRegistry,
        host: Host,
        settings: Settings,
        project_root: Path,
        console: Console,
        dry_run: bool = False,
    ) -> None:
        self._registry = registry
        self._host = host
        self._settings = settings
        self._project_root = project_root
        self._console = console
        self._dry_run = dry_run
        self._test_job: BackgroundJob | None = None

    @property
    def project_root(self) -> Path:
        return self._project_root

    def scan(self, source: KitSource) -> List[Kit]:
        kits = self._registry.scan(source)
        if not kits:
            self._console.warn("No kits found on this host; define [kits] in the configuration file")
        else:
            self._console.info(f"Found {len(kits)} kit(s): {', '.join(kit.name for kit in kits)}")
        return kits

    def kit(self, name: str | None = None) -> Kit:
        return self._registry.select(name)

    def build_directory(self, kit: Kit) -> BuildDirectory:
        return BuildDirectory(self._project_root, kit.name, override=self._settings.build_dir_override())

    def _run(self, step: BuildStep) -> Any:
        return self._host.run_command(step.command, step.cwd, step.env, note=step.description)

    def _ensure_configured(self, kit: Kit, directory: BuildDirectory) -> None:
        if self._dry_run and not directory.configured:
            self._console.dry(f"{directory.path} is not configured; configuring first")
            self.configure(kit.name)
            return
        directory.ensure_configured(self._host.confirm, lambda: self.configure(kit.name))

    def configure(self, kit_name: str | None = None, *, clean: bool = False) -> Any:
        kit = self.kit(kit_name)
        directory = self.build_directory(kit)
        directory.ensure_source_present()
        step = configure_command(kit, self._project_root, directory.path, self._settings.extra_config_args)
        if clean and self._dry_run:
            if directory.path.exists():
                self._console.dry(f"would remove {directory.path}")
        elif clean:
            directory.reset(self._host.confirm)
        return self._run(step)

    def build(self, kit_name: str | None = None, *, clean: bool = False) -> Any:
        kit = self.kit(kit_name)
        directory = self.build_directory(kit)
        step = build_command(
            kit,
            self._project_root,
            directory.path,
            jobs=self._settings.jobs,
            clean=clean,
            extra_args=self._settings.extra_build_args,
        )
        self._ensure_configured(kit, directory)
        return self._run(step)

    def install(self, kit_name: str | None = None) -> Any:
        kit = self.kit(kit_name)
        directory = self.build_directory(kit)
        step = install_command(kit, self._project_root, directory.path, jobs=self._settings.jobs)
        self._ensure_configured(kit, directory)
        return self._run(step)

    def test(self, kit_name: str | None = None) -> BackgroundJob:
        if self._test_job is not None and self._test_job.running():
            raise TestRunInProgress("A test run is still in progress; wait for it to finish")
        kit = self.kit(kit_name)
        directory = self.build_directory(kit)
        if not directory.configured:
            raise NotConfigured(f"Build directory {directory.path} is not configured; run configure and build first")
        test_dir = directory.resolve_test_directory()
        if test_dir is None:
            raise NotConfigured(f"No CTest files under {directory.path}; does the project call enable_testing()?")
        step = test_command(kit, test_dir, jobs=self._settings.jobs, extra_args=self._settings.extra_test_args)
        self._test_job = self._host.spawn_background(
            step.command,
            step.cwd,
            step.env,
            self._settings.test_output_path(self._project_root),
        )
        return self._test_job

    def shell(self, kit_name: str | None = None) -> Any:
        kit = self.kit(kit_name)
        return self._run(shell_command(kit, self._project_root))

    def language_server(self, kit_name: str | None = None) -> BuildStep:
        """Command and environment an editor needs to start the language server."""
        kit = self.kit(kit_name)
        return language_server_command(kit, self._project_root, self.build_directory(kit).path)

    def reset(self, kit_name: str | None = None) -> bool:
        kit = self.kit(kit_name)
        return self.build_directory(kit).reset(self._host.confirm)


__all__ = ["Lifecycle"]
