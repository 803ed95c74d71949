"""Locate the doc comment of a declaration and pull structured tags out of it."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tsdocsync.model import VariableDeclaration

if TYPE_CHECKING:
    from tsdocsync.jsdoc import DocComment, Tag
    from tsdocsync.model import Declaration, TypeParameter

__all__ = [
    "example_texts",
    "extract_doc",
    "param_doc",
    "param_tags",
    "returns_text",
    "template_docs",
    "throws_texts",
]


def extract_doc(declaration: Declaration | None) -> DocComment | None:
    """Return the doc comment for ``declaration``.

    The declaration's own comment wins. Variables fall back to their
    declaration list, then to the enclosing statement, which is where a
    comment above ``export const x = ...`` ends up.
    """
    if declaration is None:
        return None
    if declaration.doc is not None:
        return declaration.doc
    if isinstance(declaration, VariableDeclaration):
        declaration_list = declaration.parent
        if declaration_list is not None:
            if declaration_list.doc is not None:
                return declaration_list.doc
            statement = declaration_list.parent
            if statement is not None and statement.doc is not None:
                return statement.doc
    return None


def param_tags(doc: DocComment | None) -> tuple[Tag, ...]:
    return doc.tags_named("param") if doc is not None else ()


def param_doc(doc: DocComment | None, name: str) -> str | None:
    """Text of the ``@param`` tag whose identifier is exactly ``name``."""
    return next((tag.text for tag in param_tags(doc) if tag.identifier == name), None)


def template_docs(doc: DocComment | None, type_parameters: tuple[TypeParameter, ...]) -> dict[str, str]:
    """Match ``@template`` tags to type parameters by position.

    Tag names are ignored; the n-th tag documents the n-th type parameter.
    A leading ``"- "`` on the tag text is dropped.
    """
    if doc is None:
        return {}
    tags = doc.tags_named("template")
    docs: dict[str, str] = {}
    for parameter, tag in zip(type_parameters, tags, strict=False):
        docs[parameter.name] = tag.text.removeprefix("- ")
    return docs


def returns_text(doc: DocComment | None) -> str | None:
    tag = doc.first_tag("returns") if doc is not None else None
    return tag.text if tag is not None and tag.text else None


def throws_texts(doc: DocComment | None) -> list[str]:
    return [tag.text for tag in doc.tags_named("throws")] if doc is not None else []


def example_texts(doc: DocComment | None) -> list[str]:
    return [tag.text for tag in doc.tags_named("example")] if doc is not None else []
