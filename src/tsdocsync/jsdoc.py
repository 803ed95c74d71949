"""JSDoc comment parsing.

Turns the raw text of a ``/** ... */`` block into a :class:`DocComment`:
a free-text summary plus an ordered tuple of :class:`Tag` entries.

Parsing rules
-------------
* Each line loses its ``*`` margin and at most one following space, so
  indentation inside code examples survives.
* The summary is everything before the first tag line.
* A tag line starts with ``@name``; lines inside fenced code blocks never
  start a tag.
* ``@param {T} [name=default] text`` yields identifier ``name``.
* ``@template {C} T text`` yields identifier ``T``; for several names
  (``@template K, V``) the first one is kept.
* ``@return`` is an alias of ``@returns``.
* ``@throws {Type} text`` and ``@returns {Type} text`` keep only ``text``.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Final

__all__ = ["DocComment", "Tag", "is_jsdoc", "parse_jsdoc"]

_TAG_LINE: Final[re.Pattern[str]] = re.compile(r"^\s*@([A-Za-z][\w-]*)(.*)$")
_FENCE: Final[re.Pattern[str]] = re.compile(r"^\s*(```|~~~)")
_MARGIN: Final[re.Pattern[str]] = re.compile(r"^\s*\* ?")
_TYPE_EXPRESSION: Final[re.Pattern[str]] = re.compile(r"^\s*\{")
_TYPED_TAGS: Final[frozenset[str]] = frozenset({"returns", "throws", "exception", "type"})
_TAG_ALIASES: Final[dict[str, str]] = {
    "return": "returns",
    "arg": "param",
    "argument": "param",
    "exception": "throws",
    "typeParam": "template",
}


@dataclass(slots=True, frozen=True)
class Tag:
    """One ``@tag`` entry of a doc comment.

    Attributes
    ----------
    name : str
        Canonical tag name without the ``@`` (``param``, ``returns``...).
    identifier : str | None
        Parameter or type-parameter name for ``@param``/``@template``.
    text : str
        Free-text body with surrounding whitespace trimmed.
    """

    name: str
    identifier: str | None
    text: str


@dataclass(slots=True, frozen=True)
class DocComment:
    """Parsed JSDoc block."""

    summary: str
    tags: tuple[Tag, ...] = ()

    def tags_named(self, name: str) -> tuple[Tag, ...]:
        """Return every tag called ``name`` in source order."""
        return tuple(tag for tag in self.tags if tag.name == name)

    def first_tag(self, name: str) -> Tag | None:
        """Return the first tag called ``name``, if any."""
        return next((tag for tag in self.tags if tag.name == name), None)


def is_jsdoc(text: str) -> bool:
    """Return ``True`` for ``/** ... */`` blocks (``/**/`` is a plain comment)."""
    return text.startswith("/**") and not text.startswith("/**/") and text.endswith("*/")


def _strip_delimiters(text: str) -> list[str]:
    body = text[3:-2]
    lines = body.split("\n")
    stripped: list[str] = []
    for index, raw in enumerate(lines):
        line = raw.rstrip("\r")
        if index == 0:
            line = line.removeprefix(" ")
        else:
            line = _MARGIN.sub("", line, count=1)
        stripped.append(line.rstrip())
    return stripped


def _skip_type_expression(rest: str) -> str:
    """Drop a leading ``{...}`` type expression, honouring nested braces."""
    if not _TYPE_EXPRESSION.match(rest):
        return rest
    text = rest.lstrip()
    depth = 0
    for index, char in enumerate(text):
        if char == "{":
            depth += 1
        elif char == "}":
            depth -= 1
            if depth == 0:
                return text[index + 1 :]
    return ""


def _split_identifier(name: str, rest: str) -> tuple[str | None, str]:
    rest = _skip_type_expression(rest).lstrip()
    if not rest:
        return None, ""
    if name == "param" and rest.startswith("["):
        depth = 0
        for index, char in enumerate(rest):
            if char == "[":
                depth += 1
            elif char == "]":
                depth -= 1
                if depth == 0:
                    inner = rest[1:index]
                    identifier = inner.split("=", 1)[0].strip()
                    return identifier or None, rest[index + 1 :]
        return None, rest
    match = re.match(r"([^\s,]+)((?:\s*,\s*[^\s,]+)*)", rest)
    if match is None:
        return None, rest
    return match.group(1), rest[match.end() :]


def _build_tag(name: str, body_lines: list[str]) -> Tag:
    canonical = _TAG_ALIASES.get(name, name)
    first, *others = body_lines
    identifier: str | None = None
    if canonical in {"param", "template"}:
        identifier, first = _split_identifier(canonical, first)
    elif canonical in _TYPED_TAGS:
        first = _skip_type_expression(first)
    text = "\n".join([first, *others]).strip()
    return Tag(name=canonical, identifier=identifier, text=text)


def parse_jsdoc(text: str) -> DocComment:
    """Parse the raw text of a JSDoc block.

    Parameters
    ----------
    text : str
        Comment text including the ``/**`` and ``*/`` delimiters.

    Returns
    -------
    DocComment
        Summary and tags in source order.

    Examples
    --------
    >>> doc = parse_jsdoc("/**\\n * Add numbers.\\n * @param a first\\n */")
    >>> doc.summary
    'Add numbers.'
    >>> doc.tags[0].identifier, doc.tags[0].text
    ('a', 'first')
    """
    summary_lines: list[str] = []
    pending: list[tuple[str, list[str]]] = []
    in_fence = False
    for line in _strip_delimiters(text):
        match = None if in_fence else _TAG_LINE.match(line)
        if _FENCE.match(line):
            in_fence = not in_fence
        if match is not None:
            pending.append((match.group(1), [match.group(2)]))
        elif pending:
            pending[-1][1].append(line)
        else:
            summary_lines.append(line)
    tags = tuple(_build_tag(name, lines) for name, lines in pending)
    return DocComment(summary="\n".join(summary_lines).strip(), tags=tags)
