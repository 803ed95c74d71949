"""Shared pytest fixtures.

This module provides reusable fixtures for:
- TypeScript fixture files and scratch sources written on the fly
- Program / checker / render context construction
- Settings isolation from the developer's ``TSDOCSYNC_*`` environment
- Logging capture grouped by logger name
"""

from __future__ import annotations

import logging
import os
import shutil
from pathlib import Path
from typing import TYPE_CHECKING

import pytest

from tsdocsync import settings as settings_module
from tsdocsync.checker import TypeChecker
from tsdocsync.program import Program
from tsdocsync.render import RenderContext

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator

    from _pytest.logging import LogCaptureFixture

FIXTURES_DIR = Path(__file__).parent / "fixtures" / "ts"


@pytest.fixture(autouse=True)
def isolated_settings(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    """Drop ``TSDOCSYNC_*`` variables and the settings cache around each test."""
    for key in list(os.environ):
        if key.upper().startswith("TSDOCSYNC_"):
            monkeypatch.delenv(key, raising=False)
    settings_module._SETTINGS_CACHE.clear()  # noqa: SLF001
    yield
    settings_module._SETTINGS_CACHE.clear()  # noqa: SLF001


@pytest.fixture
def fixtures_dir() -> Path:
    """Directory holding the checked-in TypeScript fixtures."""
    return FIXTURES_DIR


@pytest.fixture
def fixture_copy(tmp_path: Path) -> Callable[..., Path]:
    """Copy named fixtures into ``tmp_path`` and return the directory."""

    def _copy(*names: str) -> Path:
        for name in names:
            shutil.copy(FIXTURES_DIR / name, tmp_path / name)
        return tmp_path

    return _copy


@pytest.fixture
def write_source(tmp_path: Path) -> Callable[[str, str], Path]:
    """Write ``text`` to ``tmp_path / name`` and return the path."""

    def _write(name: str, text: str) -> Path:
        path = tmp_path / name
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(text, encoding="utf-8")
        return path

    return _write


@pytest.fixture
def program() -> Program:
    return Program()


@pytest.fixture
def checker(program: Program) -> TypeChecker:
    return TypeChecker(program)


@pytest.fixture
def render_context(checker: TypeChecker) -> RenderContext:
    """Render context without deep links."""
    return RenderContext(checker=checker)


@pytest.fixture
def caplog_records(caplog: LogCaptureFixture) -> Callable[[], dict[str, list[logging.LogRecord]]]:
    """Return a callable grouping captured records by logger name.

    Parameters
    ----------
    caplog : LogCaptureFixture
        Pytest's log capture fixture, set to ``DEBUG``.

    Returns
    -------
    Callable[[], dict[str, list[logging.LogRecord]]]
        Snapshot function.
    """
    caplog.set_level(logging.DEBUG)

    def _collect_records() -> dict[str, list[logging.LogRecord]]:
        grouped: dict[str, list[logging.LogRecord]] = {}
        for record in caplog.records:
            grouped.setdefault(record.name, []).append(record)
        return grouped

    return _collect_records
