"""Marker discovery and region replacement in the target document.

A marker is a line containing the search phrase followed by a source path,
optionally directly preceded by a heading line::

    ### API
    The following is auto-generated from `src/index.ts`:

Everything after the marker line up to the next heading whose depth is at
most the marker heading's depth (2 when there is none) is generated
content and gets replaced. Regions are spliced from the last to the first so
earlier offsets stay valid.
"""

from __future__ import annotations

import os
import re
import tempfile
from collections.abc import Callable
from dataclasses import dataclass
from enum import StrEnum
from pathlib import Path
from typing import Final

from tsdocsync.errors import DocSyncError, SourceLoadError
from tsdocsync.logging import get_logger
from tsdocsync.render import RenderContext, generate_markdown

__all__ = [
    "DEFAULT_BASE_LEVEL",
    "MarkerRegion",
    "SpliceResult",
    "UpdateResult",
    "UpdateStatus",
    "find_heading_boundary",
    "find_markers",
    "heading_prefix",
    "marker_pattern",
    "splice_all",
    "update_document",
]

LOGGER = get_logger(__name__)

DEFAULT_BASE_LEVEL: Final[int] = 2
_HEADING: Final[re.Pattern[str]] = re.compile(r"^(#{1,6})\s+")
_FENCE: Final[re.Pattern[str]] = re.compile(r"^\s*(```|~~~)")
_LINE: Final[re.Pattern[str]] = re.compile(r"[^\n]*\n|[^\n]+\Z")


def marker_pattern(search_phrase: str) -> re.Pattern[str]:
    """Compile the marker regex for ``search_phrase``.

    Groups: 1 heading with trailing whitespace, 2 the heading's ``#`` run,
    3 the marker text up to and including the marker line's newline,
    4 the source path.
    """
    return re.compile(
        r"(^(#{1,6})\s+)?" + r"(.*?\n" + re.escape(search_phrase) + r"[ `]*([^`: ]+)[`: ]*\n)",
        re.MULTILINE,
    )


def heading_prefix(base_level: int) -> str:
    """Heading prefix for symbols under a marker whose heading depth is ``base_level``."""
    return "#" * (base_level + 1)


@dataclass(slots=True, frozen=True)
class MarkerRegion:
    """One marker and the generated region that follows it.

    Attributes
    ----------
    start : int
        Offset of the marker match (its heading, when present).
    end : int
        Offset where generated content stops.
    base_level : int
        Depth of the marker's heading, ``2`` without one.
    hashes : str | None
        The heading's ``#`` run, ``None`` when the marker has no heading.
    marker_text : str
        Marker text up to and including the marker line's newline.
    source : str
        Source path as written in the marker.
    """

    start: int
    end: int
    base_level: int
    hashes: str | None
    marker_text: str
    source: str

    def replacement(self, fragment: str) -> str:
        heading = f"{'#' * len(self.hashes)} " if self.hashes else ""
        return f"{heading}{self.marker_text}\n{fragment}"


@dataclass(slots=True, frozen=True)
class SpliceResult:
    text: str
    regions: tuple[MarkerRegion, ...]


def find_heading_boundary(text: str, start: int, max_level: int) -> int:
    """Offset of the next heading at depth ``<= max_level`` after ``start``.

    Headings inside fenced code blocks do not count. Returns ``len(text)``
    when there is no such heading.
    """
    in_fence = False
    for line in _LINE.finditer(text, start):
        content = line.group(0)
        if _FENCE.match(content):
            in_fence = not in_fence
            continue
        if in_fence:
            continue
        heading = _HEADING.match(content)
        if heading is not None and len(heading.group(1)) <= max_level:
            return line.start()
    return len(text)


def find_markers(text: str, search_phrase: str) -> list[MarkerRegion]:
    """Return marker regions in document order.

    A region never extends past the start of the following marker.
    """
    matches = list(marker_pattern(search_phrase).finditer(text))
    regions: list[MarkerRegion] = []
    for index, match in enumerate(matches):
        hashes = match.group(2)
        base_level = len(hashes) if hashes else DEFAULT_BASE_LEVEL
        end = find_heading_boundary(text, match.end(), base_level)
        if index + 1 < len(matches):
            end = min(end, matches[index + 1].start())
        regions.append(
            MarkerRegion(
                start=match.start(),
                end=end,
                base_level=base_level,
                hashes=hashes,
                marker_text=match.group(3),
                source=match.group(4),
            )
        )
    return regions


def splice_all(
    text: str,
    search_phrase: str,
    render_fragment: Callable[[MarkerRegion], str],
) -> SpliceResult:
    """Replace every marker region of ``text``, last region first.

    Parameters
    ----------
    text : str
        Document text.
    search_phrase : str
        Marker phrase.
    render_fragment : Callable[[MarkerRegion], str]
        Produces the generated markdown for a region. Exceptions propagate
        unchanged, so a failing region leaves nothing half-written.

    Returns
    -------
    SpliceResult
        Updated text and the regions found (document order). With no
        regions the text is returned unchanged.
    """
    regions = find_markers(text, search_phrase)
    updated = text
    for region in reversed(regions):
        fragment = render_fragment(region)
        updated = updated[: region.start] + region.replacement(fragment) + updated[region.end :]
    return SpliceResult(text=updated, regions=tuple(regions))


class UpdateStatus(StrEnum):
    """Outcome of :func:`update_document`."""

    UPDATED = "updated"
    NO_MARKERS = "no_markers"


@dataclass(slots=True, frozen=True)
class UpdateResult:
    status: UpdateStatus
    path: Path
    count: int
    sources: tuple[str, ...] = ()


def _atomic_write(target: Path, content: str, *, encoding: str = "utf-8") -> None:
    """Write ``content`` to a temporary sibling of ``target`` and swap it in.

    Raises
    ------
    OSError
        If the temporary file cannot be written or moved into place. The
        original ``target`` is left untouched.
    """
    temp_path: Path | None = None
    try:
        with tempfile.NamedTemporaryFile(
            mode="w",
            encoding=encoding,
            dir=target.parent,
            prefix=f".{target.name}.",
            delete=False,
        ) as tmp_file:
            temp_path = Path(tmp_file.name)
            tmp_file.write(content)
            tmp_file.flush()
            os.fsync(tmp_file.fileno())
        os.replace(temp_path, target)
    finally:
        if temp_path is not None and temp_path.exists():
            temp_path.unlink()


def update_document(
    path: Path,
    search_phrase: str,
    repo_url: str | None = None,
    *,
    branch: str = "main",
    progress: Callable[[str], None] | None = None,
) -> UpdateResult:
    """Regenerate every marker region of the document at ``path``.

    The document is read once and written once, after every region has
    rendered; the write replaces the file atomically. Source paths in
    markers are used as written, relative to the working directory.

    Parameters
    ----------
    path : Path
        Target document.
    search_phrase : str
        Marker phrase.
    repo_url : str | None, optional
        Repository URL enabling deep links.
    branch : str, optional
        Branch used in deep links.
    progress : Callable[[str], None] | None, optional
        Receives one line per region before it renders.

    Returns
    -------
    UpdateResult
        ``NO_MARKERS`` (nothing written) or ``UPDATED`` with the region count.

    Raises
    ------
    SourceLoadError
        If the document or a source file cannot be read.
    NoExportsError
        If a source file has no exports.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise SourceLoadError(str(path), cause=exc) from exc

    context = RenderContext.create(repo_url, branch=branch)

    def render(region: MarkerRegion) -> str:
        if progress is not None:
            progress(f"Generating docs for {region.source} with heading level {region.base_level + 1}...")
        return generate_markdown(Path(region.source), heading_prefix(region.base_level), context=context)

    result = splice_all(text, search_phrase, render)
    if not result.regions:
        LOGGER.info("No markers found", extra={"operation": "update", "document": path.as_posix()})
        return UpdateResult(status=UpdateStatus.NO_MARKERS, path=path, count=0)

    try:
        _atomic_write(path, result.text)
    except OSError as exc:
        message = f"Could not write {path}"
        raise DocSyncError(message, cause=exc, context={"path": str(path)}) from exc
    sources = tuple(region.source for region in result.regions)
    LOGGER.info(
        "Updated document",
        extra={"operation": "update", "document": path.as_posix(), "regions": len(sources)},
    )
    return UpdateResult(status=UpdateStatus.UPDATED, path=path, count=len(sources), sources=sources)
