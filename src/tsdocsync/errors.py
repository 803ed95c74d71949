"""Typed exception hierarchy with Problem Details support.

All tsdocsync exceptions inherit from :class:`DocSyncError`, which carries a
stable :class:`ErrorCode`, a log level and optional context, and converts to
an RFC 9457 Problem Details payload.

Two families exist. Recoverable errors (:class:`AliasResolutionError`,
:class:`TypeRenderError`) are raised by the type oracle and caught at the
smallest scope by the renderer, which substitutes a placeholder. Fatal
errors (:class:`NoExportsError`, :class:`SourceLoadError`,
:class:`ConfigurationError`) abort the whole generation pass before the
target document is written.

Examples
--------
>>> from tsdocsync.errors import NoExportsError, ErrorCode
>>> try:
...     raise NoExportsError("src/empty.ts")
... except NoExportsError as e:
...     assert e.code == ErrorCode.NO_EXPORTS
...     details = e.to_problem_details()
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from enum import StrEnum
from typing import TYPE_CHECKING

from tsdocsync.problem_details import (
    BASE_TYPE_URI,
    ProblemDetailsParams,
    build_problem_details,
)

if TYPE_CHECKING:
    from tsdocsync.problem_details import JsonValue, ProblemDetails

__all__ = [
    "AliasResolutionError",
    "ConfigurationError",
    "DocSyncError",
    "ErrorCode",
    "NoExportsError",
    "SettingsError",
    "SourceLoadError",
    "TypeRenderError",
    "get_type_uri",
]


class ErrorCode(StrEnum):
    """Stable error codes for tsdocsync exceptions.

    Codes are kebab-case and double as the last segment of the Problem
    Details ``type`` URI.
    """

    RUNTIME_ERROR = "runtime-error"
    CONFIGURATION_ERROR = "configuration-error"
    SETTINGS_INVALID = "settings-invalid"
    SOURCE_UNREADABLE = "source-unreadable"
    NO_EXPORTS = "no-exports"
    ALIAS_UNRESOLVED = "alias-unresolved"
    TYPE_UNAVAILABLE = "type-unavailable"


def get_type_uri(code: ErrorCode) -> str:
    """Return the Problem Details ``type`` URI for ``code``."""
    return f"{BASE_TYPE_URI}/{code.value}"


class DocSyncError(Exception):
    """Base exception for all tsdocsync errors.

    Parameters
    ----------
    message : str
        Human-readable error message.
    code : ErrorCode, optional
        Stable error code. Defaults to ``ErrorCode.RUNTIME_ERROR``.
    http_status : int, optional
        Status reported in the Problem Details payload. Defaults to 500.
    log_level : int, optional
        Level used when the error is logged. Defaults to ``logging.ERROR``.
    cause : Exception | None, optional
        Underlying exception, chained as ``__cause__``.
    context : Mapping[str, object] | None, optional
        Extra fields copied into the Problem Details extensions.

    Attributes
    ----------
    message : str
        Human-readable error message.
    code : ErrorCode
        Error code enum value.
    context : dict[str, object]
        Additional context for error details.
    """

    def __init__(  # noqa: PLR0913
        self,
        message: str,
        *,
        code: ErrorCode = ErrorCode.RUNTIME_ERROR,
        http_status: int = 500,
        log_level: int = logging.ERROR,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.http_status = http_status
        self.log_level = log_level
        self.context: dict[str, object] = dict(context) if context else {}
        if cause is not None:
            self.__cause__ = cause

    def to_problem_details(
        self,
        instance: str | None = None,
        title: str | None = None,
    ) -> ProblemDetails:
        """Convert the error to an RFC 9457 Problem Details payload.

        Parameters
        ----------
        instance : str | None, optional
            URI identifying the occurrence. Defaults to ``urn:tsdocsync:error``.
        title : str | None, optional
            Short summary. Defaults to the exception class name.

        Returns
        -------
        ProblemDetails
            Payload with the error code and context extensions.
        """
        extensions: dict[str, JsonValue] = {key: str(value) for key, value in self.context.items()}
        return build_problem_details(
            ProblemDetailsParams(
                problem_type=get_type_uri(self.code),
                title=title or self.__class__.__name__,
                status=self.http_status,
                detail=self.message,
                instance=instance or "urn:tsdocsync:error",
                code=self.code.value,
                extensions=extensions or None,
            )
        )

    def __str__(self) -> str:
        base = f"{self.__class__.__name__}[{self.code.value}]: {self.message}"
        if self.__cause__:
            base += f" (caused by: {type(self.__cause__).__name__})"
        return base


class ConfigurationError(DocSyncError):
    """Raised when the runtime environment is unusable (e.g. missing grammar)."""

    def __init__(
        self,
        message: str,
        cause: Exception | None = None,
        context: Mapping[str, object] | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.CONFIGURATION_ERROR,
            http_status=500,
            cause=cause,
            context=context,
        )


class SettingsError(DocSyncError):
    """Raised when ``TSDOCSYNC_*`` settings fail validation.

    Parameters
    ----------
    message : str
        Human-readable error message.
    errors : tuple[dict[str, object], ...]
        Validation errors reported by pydantic.
    cause : Exception | None, optional
        The original ``ValidationError``.
    """

    def __init__(
        self,
        message: str,
        *,
        errors: tuple[dict[str, object], ...] = (),
        cause: Exception | None = None,
    ) -> None:
        super().__init__(
            message,
            code=ErrorCode.SETTINGS_INVALID,
            http_status=500,
            cause=cause,
            context={"errors": list(errors)} if errors else None,
        )
        self.errors = errors


class SourceLoadError(DocSyncError):
    """Raised when a source file or the target document cannot be read."""

    def __init__(self, path: str, cause: Exception | None = None) -> None:
        super().__init__(
            f"Could not read {path}",
            code=ErrorCode.SOURCE_UNREADABLE,
            http_status=404,
            cause=cause,
            context={"path": path},
        )
        self.path = path


class NoExportsError(DocSyncError):
    """Raised when a source file has no export table.

    The message names the offending file; the error aborts the whole
    generation pass so no partial document is written.
    """

    def __init__(self, path: str) -> None:
        super().__init__(
            f"No exports found in {path}",
            code=ErrorCode.NO_EXPORTS,
            http_status=422,
            context={"path": path},
        )
        self.path = path


class AliasResolutionError(DocSyncError):
    """Raised when an alias (re-export or import) cannot be followed.

    Recoverable: the resolver falls back to the alias itself.
    """

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(
            f"Cannot resolve alias '{name}': {reason}",
            code=ErrorCode.ALIAS_UNRESOLVED,
            http_status=422,
            log_level=logging.DEBUG,
            context={"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason


class TypeRenderError(DocSyncError):
    """Raised when no display string can be produced for a symbol's type.

    Recoverable: callers treat the type as absent.
    """

    def __init__(self, name: str, reason: str) -> None:
        super().__init__(
            f"Cannot render type of '{name}': {reason}",
            code=ErrorCode.TYPE_UNAVAILABLE,
            http_status=422,
            log_level=logging.DEBUG,
            context={"name": name, "reason": reason},
        )
        self.name = name
        self.reason = reason
