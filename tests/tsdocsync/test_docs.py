"""Tests for tsdocsync.docs."""

from __future__ import annotations

from pathlib import Path

from tsdocsync.docs import (
    example_texts,
    extract_doc,
    param_doc,
    returns_text,
    template_docs,
    throws_texts,
)
from tsdocsync.jsdoc import parse_jsdoc
from tsdocsync.model import FunctionDeclaration
from tsdocsync.program import Program


def test_extract_doc_for_variable_uses_statement(program: Program, fixtures_dir: Path) -> None:
    module = program.get_source_module(fixtures_dir / "answer.ts")
    assert module.exports is not None
    doc = extract_doc(module.exports["answer"].primary_declaration)
    assert doc is not None
    assert doc.summary == "The universe's answer to everything."


def test_extract_doc_without_comment(program: Program, write_source) -> None:
    path = write_source("bare.ts", "export const bare = 1;\n")
    module = program.get_source_module(path)
    assert module.exports is not None
    assert extract_doc(module.exports["bare"].primary_declaration) is None
    assert extract_doc(None) is None


def test_function_tag_helpers(program: Program, fixtures_dir: Path) -> None:
    module = program.get_source_module(fixtures_dir / "kitchen.ts")
    assert module.exports is not None
    add = module.exports["add"].primary_declaration
    assert isinstance(add, FunctionDeclaration)
    doc = extract_doc(add)
    assert param_doc(doc, "a") == "first addend"
    assert param_doc(doc, "b") == "second addend"
    assert param_doc(doc, "c") is None
    assert returns_text(doc) == "The sum."
    assert throws_texts(doc) == ["When the result overflows."]
    assert example_texts(doc) == ["add(1, 2); // 3"]


def test_template_docs_match_by_position(program: Program, write_source) -> None:
    path = write_source(
        "generic.ts",
        "/**\n * @template Wrong - the key\n * @template V the value\n */\n"
        "export function pair<K, V, X>(k: K, v: V): X { return null as any; }\n",
    )
    module = program.get_source_module(path)
    assert module.exports is not None
    declaration = module.exports["pair"].primary_declaration
    assert isinstance(declaration, FunctionDeclaration)
    docs = template_docs(extract_doc(declaration), declaration.type_parameters)
    assert docs == {"K": "the key", "V": "the value"}


def test_helpers_tolerate_missing_doc() -> None:
    assert param_doc(None, "a") is None
    assert returns_text(None) is None
    assert throws_texts(None) == []
    assert example_texts(None) == []
    assert template_docs(None, ()) == {}


def test_empty_returns_tag_is_ignored() -> None:
    assert returns_text(parse_jsdoc("/** @returns */")) is None
