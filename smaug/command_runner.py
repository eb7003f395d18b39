"""Utilities for running the toolchain with optional dry-run support."""
from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Iterable, List, Sequence
import shlex
import subprocess


@dataclass
class CommandResult:
    """Represents the outcome of an executed command."""

    command: Sequence[str]
    returncode: int

    @property
    def succeeded(self) -> bool:
        return self.returncode == 0


def format_command(command: Sequence[str]) -> str:
    return " ".join(shlex.quote(str(part)) for part in command)


class CommandLaunchError(RuntimeError):
    """Raised when the executable could not be started at all."""

    def __init__(self, command: Sequence[str], reason: OSError):
        super().__init__(f"Could not start {command[0]}: {reason.strerror or reason}")
        self.command = list(command)
        self.reason = reason


class CommandTimeoutError(RuntimeError):
    """Raised when a command outlives its timeout and is killed."""

    def __init__(self, command: Sequence[str], timeout: float):
        super().__init__(f"Command timed out after {timeout:g}s: {format_command(command)}")
        self.command = list(command)
        self.timeout = timeout


class CommandRunner:
    """Abstract command runner interface."""

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        quiet: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        raise NotImplementedError

    def format_command(self, command: Sequence[str]) -> str:
        return format_command(command)


class SubprocessCommandRunner(CommandRunner):
    """Command runner that executes commands via :mod:`subprocess`.

    Standard output is inherited from the calling process unless ``quiet`` is
    set, in which case it is discarded. Standard error is always inherited.
    The call blocks until the process exits; ``timeout`` is opt-in. A non-zero
    exit is reported through the result, never raised.
    """

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        quiet: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        args = [str(part) for part in command]
        try:
            process = subprocess.run(
                args,
                cwd=str(cwd) if cwd else None,
                stdout=subprocess.DEVNULL if quiet else None,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            raise CommandTimeoutError(args, timeout or 0) from exc
        except OSError as exc:
            raise CommandLaunchError(args, exc) from exc

        return CommandResult(command=args, returncode=process.returncode)


@dataclass(slots=True)
class RecordedCommand:
    command: List[str]
    cwd: str | None
    note: str | None
    quiet: bool


class RecordingCommandRunner(CommandRunner):
    """Command runner that records commands instead of executing them."""

    def __init__(self, returncode: int = 0) -> None:
        self.commands: List[RecordedCommand] = []
        self.returncode = returncode

    def run(
        self,
        command: Sequence[str],
        *,
        cwd: Path | None = None,
        note: str | None = None,
        quiet: bool = False,
        timeout: float | None = None,
    ) -> CommandResult:
        self.commands.append(
            RecordedCommand(
                command=[str(part) for part in command],
                cwd=str(cwd) if cwd else None,
                note=note,
                quiet=quiet,
            )
        )
        return CommandResult(command=list(command), returncode=self.returncode)

    def iter_formatted(self) -> Iterable[str]:
        for record in self.commands:
            parts: List[str] = ["[dry-run]"]
            if record.note:
                parts.append(record.note)
            if record.cwd:
                parts.append(f"(cwd={record.cwd})")
            parts.append(self.format_command(record.command))
            yield " ".join(parts)
