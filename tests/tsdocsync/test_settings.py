"""Tests for tsdocsync.settings."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsdocsync.errors import ErrorCode, SettingsError
from tsdocsync.settings import DEFAULT_SEARCH_PHRASE, DocSyncSettings, get_settings, load_settings


class TestDefaults:
    def test_defaults(self) -> None:
        settings = DocSyncSettings()
        assert settings.readme_path == Path("README.md")
        assert settings.search_phrase == DEFAULT_SEARCH_PHRASE
        assert settings.repo_url is None
        assert settings.branch == "main"
        assert settings.exec_allowlist == ("git",)
        assert settings.log_level == "WARNING"


class TestEnvironment:
    """``TSDOCSYNC_*`` variables."""

    def test_overrides(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TSDOCSYNC_README_PATH", "docs/API.md")
        monkeypatch.setenv("TSDOCSYNC_BRANCH", "trunk")
        monkeypatch.setenv("TSDOCSYNC_LOG_LEVEL", "debug")
        settings = DocSyncSettings()
        assert settings.readme_path == Path("docs/API.md")
        assert settings.branch == "trunk"
        assert settings.log_level == "DEBUG"

    def test_allowlist_is_comma_separated(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TSDOCSYNC_EXEC_ALLOWLIST", "git, /usr/bin/* ,")
        assert DocSyncSettings().exec_allowlist == ("git", "/usr/bin/*")

    def test_blank_repo_url_is_none(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TSDOCSYNC_REPO_URL", "  ")
        assert DocSyncSettings().repo_url is None

    def test_invalid_values_raise_settings_error(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.setenv("TSDOCSYNC_LOG_LEVEL", "chatty")
        monkeypatch.setenv("TSDOCSYNC_GIT_TIMEOUT", "0")
        with pytest.raises(SettingsError) as exc_info:
            load_settings()
        error = exc_info.value
        assert error.code is ErrorCode.SETTINGS_INVALID
        assert {entry["loc"] for entry in error.errors} == {"log_level", "git_timeout"}

    def test_get_settings_caches(self, monkeypatch: pytest.MonkeyPatch) -> None:
        first = get_settings()
        monkeypatch.setenv("TSDOCSYNC_BRANCH", "dev")
        assert get_settings() is first
        assert get_settings(reload=True).branch == "dev"


@pytest.mark.parametrize(
    ("patterns", "executable", "expected"),
    [
        (("git",), Path("/usr/bin/git"), True),
        (("/usr/bin/*",), Path("/usr/bin/git"), True),
        (("git",), Path("/usr/bin/rm"), False),
        ((), Path("/usr/bin/git"), False),
    ],
)
def test_is_allowed(patterns: tuple[str, ...], executable: Path, expected: bool) -> None:
    assert DocSyncSettings(exec_allowlist=patterns).is_allowed(executable) is expected
