"""Typed runtime settings loaded from ``TSDOCSYNC_*`` environment variables.

The CLI reads its defaults from :class:`DocSyncSettings`; explicit command
line flags override them. Validation failures surface as
:class:`~tsdocsync.errors.SettingsError` so the CLI can report them with a
Problem Details payload instead of a pydantic traceback.
"""

from __future__ import annotations

from collections.abc import Callable
from fnmatch import fnmatch
from pathlib import Path
from typing import Annotated, Final

from pydantic import Field, ValidationError, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict

from tsdocsync.errors import SettingsError

__all__: Final[list[str]] = [
    "DEFAULT_SEARCH_PHRASE",
    "DocSyncSettings",
    "get_settings",
    "load_settings",
]

DEFAULT_SEARCH_PHRASE: Final[str] = "The following is auto-generated from"


class DocSyncSettings(BaseSettings):
    """Runtime configuration for a documentation sync pass."""

    model_config = SettingsConfigDict(env_prefix="TSDOCSYNC_", case_sensitive=False, extra="ignore")

    readme_path: Path = Field(
        default=Path("README.md"),
        description="Markdown document whose marker regions are regenerated.",
    )
    search_phrase: str = Field(
        default=DEFAULT_SEARCH_PHRASE,
        min_length=1,
        description="Phrase that introduces a marker line in the document.",
    )
    repo_url: str | None = Field(
        default=None,
        description="Repository base URL; enables deep links from kind labels to source lines.",
    )
    branch: str = Field(
        default="main",
        min_length=1,
        description="Branch name used when composing deep links.",
    )
    git_timeout: float = Field(
        default=10.0,
        gt=0,
        description="Seconds to wait for a single git lookup before giving up on a deep link.",
    )
    exec_allowlist: Annotated[tuple[str, ...], NoDecode] = Field(
        default=("git",),
        description="Glob patterns for executables the process runner may spawn.",
    )
    log_level: str = Field(
        default="WARNING",
        description="Root log level configured by the CLI.",
    )

    @field_validator("exec_allowlist", mode="before")
    @classmethod
    def _split_allowlist(cls, value: object) -> object:
        if isinstance(value, str):
            return tuple(part.strip() for part in value.split(",") if part.strip())
        return value

    @field_validator("repo_url", mode="before")
    @classmethod
    def _blank_repo_url(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value

    @field_validator("log_level")
    @classmethod
    def _normalise_level(cls, value: str) -> str:
        level = value.strip().upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            message = f"Unknown log level '{value}'"
            raise ValueError(message)
        return level

    def is_allowed(self, executable: Path) -> bool:
        """Return ``True`` when ``executable`` matches the allow-list."""
        candidates = (executable.name, executable.as_posix())
        return any(
            fnmatch(candidate, pattern) for pattern in self.exec_allowlist for candidate in candidates
        )


def load_settings(
    settings_factory: Callable[[], DocSyncSettings] = DocSyncSettings,
) -> DocSyncSettings:
    """Instantiate settings with structured error handling.

    Parameters
    ----------
    settings_factory : Callable[[], DocSyncSettings], optional
        Zero-argument factory. Defaults to :class:`DocSyncSettings`.

    Returns
    -------
    DocSyncSettings
        Validated settings.

    Raises
    ------
    SettingsError
        If validation fails; the pydantic errors are attached.
    """
    try:
        return settings_factory()
    except ValidationError as exc:
        errors = tuple(
            {"loc": ".".join(str(part) for part in err["loc"]), "msg": err["msg"]}
            for err in exc.errors()
        )
        message = "Failed to load tsdocsync settings"
        raise SettingsError(message, errors=errors, cause=exc) from exc


_SETTINGS_CACHE: dict[str, DocSyncSettings] = {}


def get_settings(*, reload: bool = False) -> DocSyncSettings:
    """Return process-wide settings, loading them on first use."""
    if reload or "default" not in _SETTINGS_CACHE:
        _SETTINGS_CACHE["default"] = load_settings()
    return _SETTINGS_CACHE["default"]
