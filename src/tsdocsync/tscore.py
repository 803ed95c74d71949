"""Tree-sitter grammar loading and parsing helpers."""

from __future__ import annotations

from functools import cache
from importlib import import_module
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tree_sitter import Language, Parser

from tsdocsync.errors import ConfigurationError

if TYPE_CHECKING:
    from tree_sitter import Node, Tree

__all__ = [
    "GRAMMAR_PACKAGE",
    "TSX_SUFFIXES",
    "language_for_path",
    "load_language",
    "node_text",
    "parse_bytes",
]

GRAMMAR_PACKAGE: Final[str] = "tree_sitter_typescript"
"""Importable package providing the TypeScript and TSX grammars."""

TSX_SUFFIXES: Final[frozenset[str]] = frozenset({".tsx", ".jsx"})
"""File suffixes parsed with the TSX grammar (JSX syntax enabled)."""


@cache
def load_language(dialect: str) -> Language:
    """Load one of the grammars shipped by ``tree-sitter-typescript``.

    Parameters
    ----------
    dialect : str
        ``"typescript"`` or ``"tsx"``. Plain JavaScript parses with the
        TypeScript grammar, JSX with the TSX one.

    Returns
    -------
    Language
        Instantiated Tree-sitter ``Language`` ready for parsing.

    Raises
    ------
    ConfigurationError
        If the grammar package is missing or does not expose the factory.
    """
    try:
        module = import_module(GRAMMAR_PACKAGE)
    except ModuleNotFoundError as exc:  # pragma: no cover - configuration error
        message = (
            f"Tree-sitter package '{GRAMMAR_PACKAGE}' is not installed. "
            "Install tsdocsync with its dependencies to parse TypeScript sources."
        )
        raise ConfigurationError(message, cause=exc) from exc
    factory_name = f"language_{dialect}"
    try:
        factory = getattr(module, factory_name)
    except AttributeError as exc:
        message = f"Tree-sitter package '{GRAMMAR_PACKAGE}' does not expose '{factory_name}()'."
        raise ConfigurationError(message, cause=exc, context={"dialect": dialect}) from exc
    return Language(factory())


def language_for_path(path: Path) -> Language:
    """Return the grammar matching ``path``'s suffix."""
    dialect = "tsx" if path.suffix.lower() in TSX_SUFFIXES else "typescript"
    return load_language(dialect)


def parse_bytes(lang: Language, data: bytes) -> Tree:
    """Parse a byte buffer with the supplied Tree-sitter language.

    Parameters
    ----------
    lang : Language
        Instantiated Tree-sitter grammar.
    data : bytes
        UTF-8 encoded source code to parse.

    Returns
    -------
    Tree
        Parsed syntax tree for the provided source buffer. Syntax errors do
        not raise; they surface as ``ERROR`` nodes in the tree.
    """
    parser = Parser(lang)
    return parser.parse(data)


def node_text(node: Node | None) -> str:
    """Return the UTF-8 source text covered by ``node`` (empty for ``None``)."""
    if node is None or node.text is None:
        return ""
    return node.text.decode("utf-8", "replace")
