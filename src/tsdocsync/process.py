"""Subprocess execution with allow-list and environment policies.

Git lookups for deep links are the only external processes tsdocsync
spawns. They go through :class:`ProcessRunner`, which resolves the
executable against the configured allow-list, runs it with a sanitised
environment and a timeout, and converts every failure into a
:class:`ToolExecutionError`. Callers decide whether the failure is fatal;
the deep-link builder treats it as "no link".
"""

from __future__ import annotations

import os
import shutil
import subprocess  # noqa: S404
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from pathlib import Path
from typing import Protocol, runtime_checkable

from tsdocsync.logging import LoggerAdapter, get_logger
from tsdocsync.settings import DocSyncSettings, get_settings

__all__ = [
    "AllowListEnforcer",
    "ProcessRunner",
    "SanitisedEnvironment",
    "ToolExecutionError",
    "ToolRunResult",
    "get_process_runner",
    "run_tool",
    "set_process_runner",
]

type Command = Sequence[str]

LOGGER = get_logger(__name__)


@dataclass(slots=True)
class ToolRunResult:
    """Structured result from invoking a subprocess."""

    command: tuple[str, ...]
    returncode: int
    stdout: str
    stderr: str
    duration_seconds: float


class ToolExecutionError(RuntimeError):
    """Raised when a subprocess cannot be run or fails.

    Parameters
    ----------
    message : str
        Human-readable error message.
    command : Sequence[str]
        Command that failed.
    returncode : int | None, optional
        Process exit code if available.
    streams : tuple[str, str] | None, optional
        ``(stdout, stderr)`` tuple if available.
    """

    def __init__(
        self,
        message: str,
        *,
        command: Sequence[str],
        returncode: int | None = None,
        streams: tuple[str, str] | None = None,
    ) -> None:
        super().__init__(message)
        self.command: tuple[str, ...] = tuple(command)
        self.returncode = returncode
        self.stdout, self.stderr = streams if streams is not None else ("", "")


@runtime_checkable
class AllowListPolicy(Protocol):
    """Protocol for enforcing executable allow-list checks."""

    def resolve(self, executable: str, command: Command) -> Path: ...


@dataclass(slots=True, frozen=True)
class AllowListEnforcer:
    """Allow-list policy backed by :class:`~tsdocsync.settings.DocSyncSettings`."""

    settings_loader: Callable[[], DocSyncSettings] = get_settings

    def resolve(self, executable: str, command: Command) -> Path:
        """Resolve ``executable`` to an absolute, allow-listed path."""
        candidate = Path(executable)
        if not candidate.is_absolute():
            resolved = shutil.which(executable)
            if resolved is None:
                detail = f"Executable '{executable}' could not be resolved to an absolute path"
                raise ToolExecutionError(detail, command=command)
            candidate = Path(resolved)
        if not self.settings_loader().is_allowed(candidate):
            message = f"Executable '{candidate}' is not permitted by TSDOCSYNC_EXEC_ALLOWLIST"
            LOGGER.warning(message, extra={"executable": candidate.as_posix()})
            raise ToolExecutionError(message, command=command)
        return candidate


@dataclass(slots=True, frozen=True)
class SanitisedEnvironment:
    """Environment policy that whitelists baseline variables and allows overrides."""

    allowed_keys: frozenset[str] = frozenset(
        {"HOME", "PATH", "LANG", "LC_ALL", "LC_CTYPE", "LC_MESSAGES", "TZ"}
    )

    def build(self, overrides: Mapping[str, str] | None) -> dict[str, str]:
        baseline = {
            key: value
            for key, value in os.environ.items()
            if key in self.allowed_keys or key.startswith("GIT_")
        }
        if overrides:
            baseline.update(overrides)
        return baseline


@dataclass(slots=True)
class ProcessRunner:
    """Execute tooling subprocesses under the shared policies."""

    allowlist: AllowListPolicy = field(default_factory=AllowListEnforcer)
    environment: SanitisedEnvironment = field(default_factory=SanitisedEnvironment)
    logger: LoggerAdapter = field(default_factory=lambda: get_logger(__name__))

    def run(
        self,
        command: Command,
        *,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        timeout: float | None = None,
        check: bool = False,
    ) -> ToolRunResult:
        """Execute ``command`` and capture its text output.

        Raises
        ------
        ToolExecutionError
            If the executable is missing or not allow-listed, the process
            times out, or ``check`` is set and the exit code is non-zero.
        """
        if not command:
            message = "Command must contain at least one argument"
            raise ToolExecutionError(message, command=[])

        executable = self.allowlist.resolve(command[0], command)
        final_command = (str(executable), *command[1:])
        start = time.monotonic()
        try:
            completed = subprocess.run(  # noqa: S603
                final_command,
                cwd=str(cwd) if cwd else None,
                env=self.environment.build(env),
                text=True,
                capture_output=True,
                timeout=timeout,
                check=False,
            )
        except subprocess.TimeoutExpired as exc:
            message = "Subprocess timed out"
            self.logger.debug(message, extra={"command": list(command), "timeout": timeout})
            raise ToolExecutionError(message, command=command) from exc
        except OSError as exc:
            message = "Executable could not be started"
            raise ToolExecutionError(message, command=command) from exc

        result = ToolRunResult(
            command=final_command,
            returncode=completed.returncode,
            stdout=completed.stdout,
            stderr=completed.stderr,
            duration_seconds=time.monotonic() - start,
        )
        self.logger.debug(
            "Subprocess finished",
            extra={"command": list(command), "returncode": completed.returncode},
        )
        if check and completed.returncode != 0:
            message = "Subprocess returned a non-zero exit status"
            raise ToolExecutionError(
                message,
                command=command,
                returncode=completed.returncode,
                streams=(completed.stdout, completed.stderr),
            )
        return result


_PROCESS_STATE: list[ProcessRunner] = [ProcessRunner()]


def get_process_runner() -> ProcessRunner:
    """Return the process runner used by :func:`run_tool`."""
    return _PROCESS_STATE[0]


def set_process_runner(runner: ProcessRunner) -> None:
    """Replace the process runner used by :func:`run_tool`.

    Intended for tests; callers should restore the previous runner.
    """
    _PROCESS_STATE[0] = runner


def run_tool(
    command: Command,
    *,
    cwd: Path | None = None,
    timeout: float | None = None,
    check: bool = False,
) -> ToolRunResult:
    """Execute ``command`` with the shared :class:`ProcessRunner`."""
    return get_process_runner().run(command, cwd=cwd, timeout=timeout, check=check)
