"""Structured logging helpers with correlation IDs.

Every module obtains its logger through :func:`get_logger`, which returns a
:class:`LoggerAdapter` that injects ``correlation_id``, ``operation`` and
``status`` fields into each record. Module loggers carry a ``NullHandler``;
only the CLI configures real handlers (see :func:`setup_logging`).

Examples
--------
>>> from tsdocsync.logging import get_logger, with_fields
>>> logger = get_logger(__name__)
>>> logger.info("Rendering started", extra={"operation": "render", "status": "started"})
>>> adapter = with_fields(logger, source="src/index.ts")
>>> adapter.debug("Parsed module")
"""

from __future__ import annotations

import contextvars
import json
import logging
import sys
from typing import TYPE_CHECKING, Any, Self, TextIO

if TYPE_CHECKING:
    from collections.abc import MutableMapping
    from types import TracebackType

__all__ = [
    "CorrelationContext",
    "JsonFormatter",
    "LoggerAdapter",
    "get_correlation_id",
    "get_logger",
    "setup_logging",
    "with_fields",
]

_correlation_id: contextvars.ContextVar[str | None] = contextvars.ContextVar(
    "correlation_id", default=None
)

_STANDARD_ATTRS = frozenset(
    {
        "name",
        "msg",
        "args",
        "created",
        "filename",
        "funcName",
        "levelname",
        "levelno",
        "lineno",
        "module",
        "msecs",
        "message",
        "pathname",
        "process",
        "processName",
        "relativeCreated",
        "thread",
        "threadName",
        "taskName",
        "exc_info",
        "exc_text",
        "stack_info",
    }
)


class JsonFormatter(logging.Formatter):
    """Format log records as one JSON object per line.

    The payload holds ``ts``, ``level``, ``name`` and ``message`` plus every
    JSON-friendly extra attached to the record. ``correlation_id`` falls back
    to the context variable when the record does not carry one.
    """

    def format(self, record: logging.LogRecord) -> str:
        data: dict[str, object] = {
            "ts": self.formatTime(record, "%Y-%m-%dT%H:%M:%S") + "Z",
            "level": record.levelname,
            "name": record.name,
            "message": record.getMessage(),
        }
        for field in ("correlation_id", "operation", "status"):
            value = getattr(record, field, None)
            if value is not None:
                data[field] = value
        if "correlation_id" not in data:
            ctx_correlation_id = get_correlation_id()
            if ctx_correlation_id is not None:
                data["correlation_id"] = ctx_correlation_id
        for key, value in record.__dict__.items():
            if (
                key not in _STANDARD_ATTRS
                and key not in data
                and not key.startswith("_")
                and isinstance(value, (str, int, float, bool, list, dict))
            ):
                data[key] = value
        if record.exc_info:
            data["exc_info"] = self.formatException(record.exc_info)
        return json.dumps(data, default=str)


class LoggerAdapter(logging.LoggerAdapter):  # type: ignore[type-arg]
    """Logger adapter that injects structured context fields.

    Fields bound at construction are merged under the per-call ``extra``
    dict (per-call values win). ``operation`` defaults to ``"unknown"`` and
    ``status`` is inferred from the level when absent.
    """

    logger: logging.Logger

    def process(self, msg: Any, kwargs: MutableMapping[str, Any]) -> tuple[Any, MutableMapping[str, Any]]:  # noqa: ANN401
        extra = dict(kwargs.get("extra") or {})
        for key, value in (self.extra or {}).items():
            extra.setdefault(key, value)
        if "correlation_id" not in extra:
            ctx_correlation_id = get_correlation_id()
            if ctx_correlation_id is not None:
                extra["correlation_id"] = ctx_correlation_id
        extra.setdefault("operation", "unknown")
        kwargs["extra"] = extra
        return msg, kwargs

    def log(self, level: int, msg: object, *args: object, **kwargs: Any) -> None:  # noqa: ANN401
        extra = dict(kwargs.get("extra") or {})
        if "status" not in extra and "status" not in (self.extra or {}):
            if level >= logging.ERROR:
                extra["status"] = "error"
            elif level >= logging.WARNING:
                extra["status"] = "warning"
            else:
                extra["status"] = "success"
        kwargs["extra"] = extra
        super().log(level, msg, *args, **kwargs)


def get_logger(name: str) -> LoggerAdapter:
    """Return a structured logger adapter for ``name``.

    Parameters
    ----------
    name : str
        Logger name (typically ``__name__``).

    Returns
    -------
    LoggerAdapter
        Adapter with structured context injection. A ``NullHandler`` is
        attached to the underlying logger so library use stays silent.
    """
    logger = logging.getLogger(name)
    if not logger.handlers:
        logger.addHandler(logging.NullHandler())
    return LoggerAdapter(logger, {})


def with_fields(logger: logging.Logger | LoggerAdapter, **fields: object) -> LoggerAdapter:
    """Return an adapter bound to ``fields``.

    Parameters
    ----------
    logger : logging.Logger | LoggerAdapter
        Base logger to wrap (may already be an adapter; its bound fields are
        kept unless overridden).
    **fields : object
        Structured fields injected into every record.

    Returns
    -------
    LoggerAdapter
        Adapter carrying the merged fields.
    """
    if isinstance(logger, LoggerAdapter):
        merged = {**dict(logger.extra or {}), **fields}
        return LoggerAdapter(logger.logger, merged)
    return LoggerAdapter(logger, dict(fields))


def setup_logging(level: int = logging.WARNING, stream: TextIO | None = None) -> None:
    """Configure the root logger with a JSON formatter.

    Parameters
    ----------
    level : int, optional
        Threshold for the root logger. Defaults to ``logging.WARNING``.
    stream : TextIO | None, optional
        Destination stream. Defaults to ``sys.stderr`` so stdout stays free
        for command output.
    """
    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JsonFormatter())
    logging.basicConfig(level=level, handlers=[handler], force=True)


def get_correlation_id() -> str | None:
    """Return the current correlation ID, if any."""
    return _correlation_id.get()


class CorrelationContext:
    """Context manager scoping a correlation ID.

    Examples
    --------
    >>> from tsdocsync.logging import CorrelationContext, get_correlation_id
    >>> with CorrelationContext("pass-1"):
    ...     assert get_correlation_id() == "pass-1"
    """

    def __init__(self, correlation_id: str | None) -> None:
        self.correlation_id = correlation_id
        self._token: contextvars.Token[str | None] | None = None

    def __enter__(self) -> Self:
        self._token = _correlation_id.set(self.correlation_id)
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        if self._token is not None:
            _correlation_id.reset(self._token)
        del exc_type, exc_val, exc_tb

