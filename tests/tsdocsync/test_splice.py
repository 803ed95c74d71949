"""Tests for marker discovery and document updates (tsdocsync.splice)."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsdocsync import splice
from tsdocsync.errors import DocSyncError, NoExportsError, SourceLoadError
from tsdocsync.settings import DEFAULT_SEARCH_PHRASE
from tsdocsync.splice import (
    MarkerRegion,
    UpdateStatus,
    find_heading_boundary,
    find_markers,
    heading_prefix,
    marker_pattern,
    splice_all,
    update_document,
)

PHRASE = DEFAULT_SEARCH_PHRASE

FIXTURES_DIR = Path(__file__).parent.parent / "fixtures" / "ts"

ANSWER_FRAGMENT = "### answer · constant\n\nThe universe's answer to everything.\n\n**Value:** `42`\n\n"


def _marker(source: str) -> str:
    return f"{PHRASE} `{source}`:\n"


class TestMarkerPattern:
    """The marker regex and its groups."""

    def test_heading_groups(self) -> None:
        match = marker_pattern(PHRASE).search("### API\n" + _marker("src/index.ts"))
        assert match is not None
        assert match.group(2) == "###"
        assert match.group(3) == "API\n" + _marker("src/index.ts")
        assert match.group(4) == "src/index.ts"

    @pytest.mark.parametrize(
        "marker_line",
        [
            f"{PHRASE} src/index.ts\n",
            f"{PHRASE} `src/index.ts`\n",
            f"{PHRASE} `src/index.ts`:\n",
            f"{PHRASE} src/index.ts:\n",
        ],
    )
    def test_path_decorations(self, marker_line: str) -> None:
        match = marker_pattern(PHRASE).search("Intro\n" + marker_line)
        assert match is not None
        assert match.group(4) == "src/index.ts"

    def test_phrase_is_literal(self) -> None:
        assert marker_pattern("see (x).").search("a\nsee (x). `a.ts`\n") is not None
        assert marker_pattern("see (x).").search("a\nsee xx). `a.ts`\n") is None

    def test_heading_prefix(self) -> None:
        assert heading_prefix(2) == "###"
        assert heading_prefix(4) == "#####"


class TestFindMarkers:
    """Region discovery and heading-level detection."""

    def test_heading_sets_base_level(self) -> None:
        text = "# Doc\n\n#### API\n" + _marker("a.ts") + "\nold\n"
        (region,) = find_markers(text, PHRASE)
        assert region.base_level == 4
        assert region.hashes == "####"
        assert region.source == "a.ts"
        assert region.end == len(text)

    def test_without_heading_defaults_to_level_two(self) -> None:
        text = "Intro paragraph.\n" + _marker("a.ts")
        (region,) = find_markers(text, PHRASE)
        assert region.base_level == 2
        assert region.hashes is None

    def test_blank_line_between_heading_and_marker(self) -> None:
        text = "### API\n\n" + _marker("a.ts")
        (region,) = find_markers(text, PHRASE)
        assert region.base_level == 2
        assert region.start == text.index("\n\n") + 1

    def test_region_stops_at_same_level_heading(self) -> None:
        text = "## API\n" + _marker("a.ts") + "\n### answer\n\nold\n\n## License\n\nMIT\n"
        (region,) = find_markers(text, PHRASE)
        assert text[region.end :] == "## License\n\nMIT\n"

    def test_region_clamped_to_next_marker(self) -> None:
        text = "## A\n" + _marker("a.ts") + "\nold a\n\n" + _marker("b.ts") + "\nold b\n"
        first, second = find_markers(text, PHRASE)
        assert first.end == second.start
        assert second.source == "b.ts"

    def test_no_markers(self) -> None:
        assert find_markers("# Title\n\nNothing here.\n", PHRASE) == []


class TestHeadingBoundary:
    """Boundary search after a marker."""

    def test_deeper_headings_are_skipped(self) -> None:
        text = "start\n### a\n#### b\n## next\n"
        assert find_heading_boundary(text, 0, 2) == text.index("## next")

    def test_fenced_headings_are_ignored(self) -> None:
        text = "start\n```sh\n# comment\n```\n# Real\n"
        assert find_heading_boundary(text, 0, 2) == text.index("# Real")

    def test_hash_without_space_is_not_a_heading(self) -> None:
        text = "start\n#hashtag\n"
        assert find_heading_boundary(text, 0, 2) == len(text)


class TestSpliceAll:
    """Replacement of every region."""

    def test_regions_replaced_in_place(self) -> None:
        text = "## A\n" + _marker("a.ts") + "\nold a\n\n## B\n" + _marker("b.ts") + "\nold b\n"
        calls: list[str] = []

        def render(region: MarkerRegion) -> str:
            calls.append(region.source)
            return f"new {region.source}\n\n"

        result = splice_all(text, PHRASE, render)

        assert result.text == (
            "## A\n" + _marker("a.ts") + "\nnew a.ts\n\n## B\n" + _marker("b.ts") + "\nnew b.ts\n\n"
        )
        assert calls == ["b.ts", "a.ts"]
        assert [region.source for region in result.regions] == ["a.ts", "b.ts"]

    def test_heading_whitespace_is_normalised(self) -> None:
        text = "##   API\n" + _marker("a.ts") + "old\n"
        result = splice_all(text, PHRASE, lambda region: "new\n")
        assert result.text == "## API\n" + _marker("a.ts") + "\nnew\n"

    def test_render_failure_propagates(self) -> None:
        text = "## A\n" + _marker("a.ts")

        def render(region: MarkerRegion) -> str:
            raise NoExportsError(region.source)

        with pytest.raises(NoExportsError):
            splice_all(text, PHRASE, render)


class TestUpdateDocument:
    """End-to-end document regeneration."""

    @pytest.fixture(autouse=True)
    def _in_tmp_path(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        """Marker sources resolve against the working directory."""
        monkeypatch.chdir(tmp_path)

    def _readme(self, directory: Path, body: str) -> Path:
        path = directory / "README.md"
        path.write_text(body, encoding="utf-8")
        return path

    def test_updates_region(self, fixture_copy) -> None:
        directory = fixture_copy("answer.ts")
        readme = self._readme(
            directory,
            "# Project\n\nIntro.\n\n## API\n" + _marker("answer.ts") + "\nstale content\n\n## License\n\nMIT\n",
        )
        messages: list[str] = []

        result = update_document(readme, PHRASE, progress=messages.append)

        assert result.status is UpdateStatus.UPDATED
        assert result.count == 1
        assert result.sources == ("answer.ts",)
        assert messages == ["Generating docs for answer.ts with heading level 3..."]
        assert readme.read_text(encoding="utf-8") == (
            "# Project\n\nIntro.\n\n## API\n" + _marker("answer.ts") + "\n" + ANSWER_FRAGMENT + "## License\n\nMIT\n"
        )

    def test_update_is_idempotent(self, fixture_copy) -> None:
        directory = fixture_copy("answer.ts", "kitchen.ts")
        readme = self._readme(
            directory,
            "## API\n" + _marker("kitchen.ts") + "\n### Answer\n" + _marker("answer.ts") + "\n## End\n",
        )
        update_document(readme, PHRASE)
        first = readme.read_text(encoding="utf-8")
        update_document(readme, PHRASE)
        assert readme.read_text(encoding="utf-8") == first
        assert "#### answer · constant" in first
        assert "### add · function" in first

    def test_sources_resolve_against_working_directory(self, tmp_path: Path) -> None:
        source_dir = tmp_path / "src"
        source_dir.mkdir()
        (source_dir / "answer.ts").write_text(
            (FIXTURES_DIR / "answer.ts").read_text(encoding="utf-8"), encoding="utf-8"
        )
        docs = tmp_path / "docs"
        docs.mkdir()
        readme = self._readme(docs, "## API\n" + _marker("src/answer.ts"))
        result = update_document(readme, PHRASE)
        assert result.status is UpdateStatus.UPDATED
        assert result.sources == ("src/answer.ts",)
        assert ANSWER_FRAGMENT in readme.read_text(encoding="utf-8")

    def test_failed_write_keeps_original(self, fixture_copy, monkeypatch: pytest.MonkeyPatch) -> None:
        directory = fixture_copy("answer.ts")
        original = "## API\n" + _marker("answer.ts") + "\nstale content\n"
        readme = self._readme(directory, original)

        def failing_replace(src: object, dst: object) -> None:
            raise OSError(28, "No space left on device")

        monkeypatch.setattr(splice.os, "replace", failing_replace)
        with pytest.raises(DocSyncError, match="Could not write"):
            update_document(readme, PHRASE)
        assert readme.read_text(encoding="utf-8") == original
        assert sorted(path.name for path in directory.iterdir()) == ["README.md", "answer.ts"]

    def test_write_leaves_no_temporary_files(self, fixture_copy) -> None:
        directory = fixture_copy("answer.ts")
        readme = self._readme(directory, "## API\n" + _marker("answer.ts"))
        update_document(readme, PHRASE)
        assert sorted(path.name for path in directory.iterdir()) == ["README.md", "answer.ts"]

    def test_undecodable_document(self, tmp_path: Path) -> None:
        readme = tmp_path / "README.md"
        readme.write_bytes(b"## API\n\xff\n")
        with pytest.raises(SourceLoadError, match="Could not read"):
            update_document(readme, PHRASE)

    def test_no_markers_leaves_document_untouched(self, tmp_path: Path) -> None:
        readme = self._readme(tmp_path, "# Title\n")
        result = update_document(readme, PHRASE)
        assert result.status is UpdateStatus.NO_MARKERS
        assert result.count == 0
        assert readme.read_text(encoding="utf-8") == "# Title\n"

    def test_missing_source_aborts_without_writing(self, tmp_path: Path) -> None:
        original = "## API\n" + _marker("absent.ts") + "\nold\n"
        readme = self._readme(tmp_path, original)
        with pytest.raises(SourceLoadError):
            update_document(readme, PHRASE)
        assert readme.read_text(encoding="utf-8") == original

    def test_source_without_exports_aborts_without_writing(self, fixture_copy) -> None:
        directory = fixture_copy("answer.ts", "script.ts")
        original = "## A\n" + _marker("answer.ts") + "\n## B\n" + _marker("script.ts")
        readme = self._readme(directory, original)
        with pytest.raises(NoExportsError):
            update_document(readme, PHRASE)
        assert readme.read_text(encoding="utf-8") == original

    def test_missing_document(self, tmp_path: Path) -> None:
        with pytest.raises(SourceLoadError, match="README.md"):
            update_document(tmp_path / "README.md", PHRASE)
