"""Deep links from rendered headings to declaration lines in a hosted repository."""

from __future__ import annotations

import re
from pathlib import Path
from typing import Final

from tsdocsync.logging import get_logger
from tsdocsync.process import ToolExecutionError, run_tool
from tsdocsync.settings import get_settings

__all__ = ["GITLAB_HOST", "DeepLinker", "build_deep_link"]

LOGGER = get_logger(__name__)

GITLAB_HOST: Final[re.Pattern[str]] = re.compile(r"://(www\.)?gitlab\.com")
"""Hosts using GitLab's ``/-/blob/`` URL layout."""


def build_deep_link(repo_url: str, relative_path: str, line: int, branch: str = "main") -> str:
    """Format a blob URL pointing at ``line`` of ``relative_path``.

    Examples
    --------
    >>> build_deep_link("https://github.com/acme/lib/", "src/index.ts", 12)
    'https://github.com/acme/lib/blob/main/src/index.ts#L12'
    >>> build_deep_link("https://gitlab.com/acme/lib", "src/index.ts", 3, "dev")
    'https://gitlab.com/acme/lib/-/blob/dev/src/index.ts#L3'
    """
    base = repo_url.removesuffix("/")
    if GITLAB_HOST.search(base):
        return f"{base}/-/blob/{branch}/{relative_path}#L{line}"
    return f"{base}/blob/{branch}/{relative_path}#L{line}"


class DeepLinker:
    """Resolve repository-relative paths with ``git ls-files`` and build links.

    Parameters
    ----------
    repo_url : str
        Base URL of the hosted repository.
    branch : str, optional
        Branch named in the links. Defaults to ``"main"``.
    timeout : float | None, optional
        Seconds allowed for each git call. Defaults to the configured
        ``git_timeout``.
    """

    def __init__(self, repo_url: str, *, branch: str = "main", timeout: float | None = None) -> None:
        self.repo_url = repo_url
        self.branch = branch
        self.timeout = timeout if timeout is not None else get_settings().git_timeout
        self._paths: dict[Path, str | None] = {}

    def repo_relative_path(self, path: Path) -> str | None:
        """Path of ``path`` inside its git repository, or ``None`` if untracked."""
        resolved = path.resolve()
        if resolved in self._paths:
            return self._paths[resolved]
        relative: str | None = None
        try:
            result = run_tool(
                ["git", "ls-files", "--full-name", resolved.name],
                cwd=resolved.parent,
                timeout=self.timeout,
            )
        except ToolExecutionError as exc:
            LOGGER.debug("git ls-files failed", extra={"operation": "deep_link", "reason": str(exc)})
        else:
            output = result.stdout.strip()
            if result.returncode == 0 and output:
                relative = output.splitlines()[0]
        self._paths[resolved] = relative
        return relative

    def link_for(self, path: Path, line: int) -> str | None:
        """Deep link to ``line`` of ``path``, or ``None`` when the file is not tracked."""
        relative = self.repo_relative_path(path)
        if relative is None:
            return None
        return build_deep_link(self.repo_url, relative, line, self.branch)
