"""Publishing a project through the configured DragonRuby toolchain."""
from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Iterator, List, Sequence
import tomllib

from .command_runner import CommandLaunchError, CommandResult, CommandRunner, CommandTimeoutError
from .config_loader import CONFIG_FILENAME, SmaugConfig, load_project_config
from .console import Console
from .dragonruby import DragonRuby, DragonRubyRegistry
from .fs import copy_directory, ensure_removed
from .metadata import GameMetadata, metadata_path


BUILDS_DIRNAME = "builds"
SIDE_CHANNEL_DIRNAMES = ("logs", "exceptions")


class PublishFailure(RuntimeError):
    """Base class for every classified way a publish run can fail."""

    kind = "PublishFailure"

    def details(self) -> Dict[str, Any]:
        return {}

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.kind, "message": str(self), **self.details()}


class _PathFailure(PublishFailure):
    def __init__(self, message: str, path: Path, reason: BaseException | None = None):
        if reason is not None:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.path = path
        self.reason = reason

    def details(self) -> Dict[str, Any]:
        return {"path": str(self.path)}


class ProjectNotFound(_PathFailure):
    kind = "ProjectNotFound"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__(f"Could not find project directory {path}", path, reason)


class ConfigError(_PathFailure):
    kind = "ConfigError"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__("Couldn't load Smaug configuration.", path, reason)


class MetadataWriteFailed(_PathFailure):
    kind = "MetadataWriteFailed"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__(f"Could not write game metadata to {path}", path, reason)


class StagingFailed(_PathFailure):
    kind = "StagingFailed"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__(f"Could not stage project into {path}", path, reason)


class ReconciliationFailed(_PathFailure):
    kind = "ReconciliationFailed"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__(f"Could not copy toolchain output into {path}", path, reason)


class CleanupFailed(_PathFailure):
    kind = "CleanupFailed"

    def __init__(self, path: Path, reason: BaseException | None = None):
        super().__init__(f"Could not clean up build directory {path}", path, reason)


class ConfiguredDragonRubyNotFound(PublishFailure):
    kind = "ConfiguredDragonRubyNotFound"

    def __init__(self, version: str, edition: str | None = None):
        super().__init__(
            "Could not find the configured version of DragonRuby. "
            "Install it with `smaug dragonruby install`"
        )
        self.version = version
        self.edition = edition

    def details(self) -> Dict[str, Any]:
        return {"version": self.version, "edition": self.edition}


class ToolchainLaunchFailed(PublishFailure):
    kind = "ToolchainLaunchFailed"

    def __init__(self, executable: Path, reason: BaseException | None = None):
        super().__init__(f"Could not start {executable}" + (f" ({reason})" if reason else ""))
        self.executable = executable

    def details(self) -> Dict[str, Any]:
        return {"executable": str(self.executable)}


class ToolchainTimedOut(PublishFailure):
    kind = "ToolchainTimedOut"

    def __init__(self, executable: Path, timeout: float):
        super().__init__(f"{executable} did not finish within {timeout:g}s")
        self.executable = executable
        self.timeout = timeout

    def details(self) -> Dict[str, Any]:
        return {"executable": str(self.executable), "timeout": self.timeout}


class PublishError(PublishFailure):
    kind = "PublishError"

    def __init__(self, project_name: str, returncode: int | None = None):
        super().__init__(f"Publishing {project_name} failed")
        self.project_name = project_name
        self.returncode = returncode

    def details(self) -> Dict[str, Any]:
        return {"project_name": self.project_name, "returncode": self.returncode}


@dataclass(slots=True)
class PublishOptions:
    path: Path | None = None
    dragonruby_args: List[str] = field(default_factory=list)
    quiet: bool = False
    dry_run: bool = False
    timeout: float | None = None


@dataclass(frozen=True, slots=True)
class PublishResult:
    project_name: str
    dry_run: bool = False

    def __str__(self) -> str:
        if self.dry_run:
            return f"Dry run for {self.project_name} complete; nothing was published."
        return f"Successfully published {self.project_name} to Itch.io!"

    def to_dict(self) -> Dict[str, Any]:
        return {"type": "success", "project_name": self.project_name, "dry_run": self.dry_run}


@dataclass(frozen=True, slots=True)
class PublishLayout:
    """Every path a publish run reads or writes."""

    project_root: Path
    install_dir: Path
    staging_dir: Path
    executable: Path

    @classmethod
    def create(cls, project_root: Path, dragonruby: DragonRuby) -> "PublishLayout":
        install_dir = dragonruby.install_dir
        return cls(
            project_root=project_root,
            install_dir=install_dir,
            staging_dir=install_dir / project_root.name,
            executable=dragonruby.publish_executable,
        )

    @property
    def builds_source(self) -> Path:
        # dragonruby-publish writes to <install_dir>/builds, never into the staged copy.
        return self.install_dir / BUILDS_DIRNAME

    @property
    def builds_target(self) -> Path:
        return self.project_root / BUILDS_DIRNAME

    def command(self, extra_args: Sequence[str]) -> List[str]:
        return [str(self.executable), self.staging_dir.name, *extra_args]


class PublishEngine:
    def __init__(
        self,
        *,
        registry: DragonRubyRegistry,
        command_runner: CommandRunner,
        console: Console | None = None,
    ) -> None:
        self._registry = registry
        self._command_runner = command_runner
        self._console = console or Console(level="none")

    def run(self, options: PublishOptions) -> PublishResult:
        """Stage, publish and reconcile one project.

        Returns a :class:`PublishResult` when the toolchain exits successfully
        and raises a :class:`PublishFailure` subclass otherwise. Once staging
        has started, the staging area is removed on every exit path.
        """

        project_root = self._resolve_project_root(options.path)
        config = self._load_config(project_root)
        self._write_metadata(config, project_root, dry_run=options.dry_run)

        dragonruby = self._registry.configured_version(config)
        if dragonruby is None:
            raise ConfiguredDragonRubyNotFound(config.dragonruby.version, config.dragonruby.edition)
        self._console.info(f"Publishing {config.project.name} with {dragonruby}")
        self._console.debug(f"DragonRuby install: {dragonruby.install_dir}")

        layout = PublishLayout.create(project_root, dragonruby)
        if options.dry_run:
            return self._describe(config, layout, options)

        self._check_layout(layout)
        with self._staging_area(layout.staging_dir):
            self._stage(layout)
            result = self._invoke(layout, options)
            self._reconcile(layout, succeeded=result.succeeded)
            if not result.succeeded:
                raise PublishError(config.project.name, result.returncode)

        return PublishResult(project_name=config.project.name)

    def _resolve_project_root(self, path: Path | None) -> Path:
        target = path if path is not None else Path.cwd()
        try:
            project_root = target.expanduser().resolve(strict=True)
        except OSError as exc:
            raise ProjectNotFound(target, exc) from exc
        if not project_root.is_dir():
            raise ProjectNotFound(project_root)
        self._console.debug(f"Directory: {project_root}")
        return project_root

    def _load_config(self, project_root: Path) -> SmaugConfig:
        config_path = project_root / CONFIG_FILENAME
        try:
            config = load_project_config(config_path)
        except (OSError, tomllib.TOMLDecodeError, ValueError, TypeError) as exc:
            raise ConfigError(config_path, exc) from exc
        self._console.debug(f"Smaug config: {config}")
        return config

    def _write_metadata(self, config: SmaugConfig, project_root: Path, *, dry_run: bool) -> None:
        path = metadata_path(project_root)
        metadata = GameMetadata.from_config(config)
        if dry_run:
            self._console.dry(f"Write game metadata to {path}")
            return
        self._console.debug("Writing game metadata.")
        try:
            metadata.write(path)
        except OSError as exc:
            raise MetadataWriteFailed(path, exc) from exc

    def _check_layout(self, layout: PublishLayout) -> None:
        root = layout.project_root
        staging_dir = layout.staging_dir
        if staging_dir.is_relative_to(root) or root.is_relative_to(staging_dir):
            reason = ValueError(f"{root} overlaps the DragonRuby install at {layout.install_dir}")
            raise StagingFailed(staging_dir, reason)

    @contextmanager
    def _staging_area(self, staging_dir: Path) -> Iterator[Path]:
        failed = False
        try:
            yield staging_dir
        except BaseException:
            failed = True
            raise
        finally:
            self._teardown(staging_dir, raise_errors=not failed)

    def _teardown(self, staging_dir: Path, *, raise_errors: bool) -> None:
        self._console.debug(f"Removing build directory {staging_dir}")
        try:
            ensure_removed(staging_dir)
        except OSError as exc:
            if raise_errors:
                raise CleanupFailed(staging_dir, exc) from exc
            self._console.error(f"Could not clean up build directory {staging_dir}: {exc}")

    def _stage(self, layout: PublishLayout) -> None:
        staging_dir = layout.staging_dir
        self._console.debug(f"Copying {layout.project_root} to {staging_dir}")
        try:
            # A crashed earlier run may have left a staging area behind.
            ensure_removed(staging_dir)
            copy_directory(layout.project_root, staging_dir)
            for name in SIDE_CHANNEL_DIRNAMES:
                ensure_removed(staging_dir / name)
                ensure_removed(layout.project_root / name)
        except OSError as exc:
            raise StagingFailed(staging_dir, exc) from exc

    def _invoke(self, layout: PublishLayout, options: PublishOptions) -> CommandResult:
        command = layout.command(options.dragonruby_args)
        self._console.debug(f"DragonRuby Directory: {layout.install_dir}")
        self._console.debug(f"Spawning Process {self._command_runner.format_command(command)}")
        try:
            result = self._command_runner.run(
                command,
                cwd=layout.install_dir,
                quiet=options.quiet,
                timeout=options.timeout,
                note="Publish project",
            )
        except CommandLaunchError as exc:
            raise ToolchainLaunchFailed(layout.executable, exc.reason) from exc
        except CommandTimeoutError as exc:
            raise ToolchainTimedOut(layout.executable, exc.timeout) from exc
        self._console.debug(f"{layout.executable.name} exited with status {result.returncode}")
        return result

    def _reconcile(self, layout: PublishLayout, *, succeeded: bool) -> None:
        project_root = layout.project_root
        if layout.builds_source.is_dir() or succeeded:
            self._console.debug(f"Copying builds to {layout.builds_target}")
            try:
                copy_directory(layout.builds_source, layout.builds_target)
            except OSError as exc:
                raise ReconciliationFailed(layout.builds_target, exc) from exc

        for name in SIDE_CHANNEL_DIRNAMES:
            staged = layout.staging_dir / name
            local = project_root / name
            try:
                ensure_removed(local)
                if staged.is_dir():
                    copy_directory(staged, local)
            except OSError as exc:
                raise ReconciliationFailed(local, exc) from exc

    def _describe(self, config: SmaugConfig, layout: PublishLayout, options: PublishOptions) -> PublishResult:
        self._console.dry(f"Copy {layout.project_root} to {layout.staging_dir}")
        for name in SIDE_CHANNEL_DIRNAMES:
            self._console.dry(f"Clear {layout.staging_dir / name} and {layout.project_root / name}")
        self._command_runner.run(
            layout.command(options.dragonruby_args),
            cwd=layout.install_dir,
            quiet=options.quiet,
            timeout=options.timeout,
            note="Publish project",
        )
        self._console.dry(f"Copy {layout.builds_source} to {layout.builds_target}")
        for name in SIDE_CHANNEL_DIRNAMES:
            self._console.dry(f"Copy {layout.staging_dir / name} to {layout.project_root / name}")
        self._console.dry(f"Remove {layout.staging_dir}")
        return PublishResult(project_name=config.project.name, dry_run=True)
