"""Tests for type display strings (tsdocsync.typeprint via TypeChecker)."""

from __future__ import annotations

import pytest

from tsdocsync.checker import TypeChecker
from tsdocsync.errors import TypeRenderError
from tsdocsync.typeprint import number_literal, string_literal, widen


def _type_of(checker: TypeChecker, write_source, source: str, name: str) -> str:
    path = write_source("mod.ts", source)
    module = checker.program.get_source_module(path)
    assert module.exports is not None
    return checker.type_to_string(module.exports[name])


class TestLiteralHelpers:
    """Tests for the literal normalisation helpers."""

    def test_string_literal_requotes(self) -> None:
        assert string_literal("'hi'") == '"hi"'
        assert string_literal('"hi"') == '"hi"'
        assert string_literal("'say \"x\"'") == '"say \\"x\\""'

    def test_number_literal_normalises(self) -> None:
        assert number_literal("0x10") == "16"
        assert number_literal("1_000") == "1000"
        assert number_literal("1.5") == "1.5"
        assert number_literal("1e3") == "1000"

    def test_widen(self) -> None:
        assert widen("42") == "number"
        assert widen('"a"') == "string"
        assert widen("true") == "boolean"
        assert widen("Date") == "Date"


class TestVariableTypes:
    """Inferred and annotated variable types."""

    @pytest.mark.parametrize(
        ("source", "expected"),
        [
            ("export const value = 42;", "42"),
            ("export let value = 42;", "number"),
            ("export var value = 'x';", "string"),
            ("export const value = 'x';", '"x"'),
            ("export const value = -1;", "-1"),
            ("export const value = true;", "true"),
            ("export const value = [1, 2];", "number[]"),
            ("export const value = [];", "any[]"),
            ("export const value = { a: 1, b: 'x' };", "{ a: number; b: string; }"),
            ("export const value = new Map<string, number>();", "Map<string, number>"),
            ("export const value = 1 + 'a';", "string"),
            ("export const value = 2 > 1;", "boolean"),
        ],
    )
    def test_inferred(self, checker: TypeChecker, write_source, source: str, expected: str) -> None:
        assert _type_of(checker, write_source, source, "value") == expected

    def test_as_const_object_is_readonly(self, checker: TypeChecker, write_source) -> None:
        source = "export const cfg = { port: 80, host: 'x' } as const;"
        assert _type_of(checker, write_source, source, "cfg") == '{ readonly port: 80; readonly host: "x"; }'

    def test_as_const_tuple(self, checker: TypeChecker, write_source) -> None:
        assert _type_of(checker, write_source, "export const t = [1, 'a'] as const;", "t") == 'readonly [1, "a"]'

    def test_as_type_assertion(self, checker: TypeChecker, write_source) -> None:
        source = "declare const raw: unknown;\nexport const port = raw as number;"
        assert _type_of(checker, write_source, source, "port") == "number"

    def test_multiline_annotation_is_reprinted(self, checker: TypeChecker, write_source) -> None:
        source = (
            "export const opts: {\n"
            "  retries?: number,\n"
            "  /** The name. */\n"
            "  name: string,\n"
            "} = { name: 'x' };\n"
        )
        assert _type_of(checker, write_source, source, "opts") == "{ retries?: number; name: string; }"

    def test_function_type_annotation(self, checker: TypeChecker, write_source) -> None:
        source = "export const cb: (err: Error | null, value?: string) => void = () => {};"
        assert _type_of(checker, write_source, source, "cb") == "(err: Error | null, value?: string) => void"

    def test_identifier_reference_widens_under_let(self, checker: TypeChecker, write_source) -> None:
        source = "const base = 10;\nexport let copy = base;\nexport const alias = base;"
        assert _type_of(checker, write_source, source, "copy") == "number"
        assert _type_of(checker, write_source, source, "alias") == "10"

    def test_call_expression_is_unrenderable(self, checker: TypeChecker, write_source) -> None:
        with pytest.raises(TypeRenderError, match="value"):
            _type_of(checker, write_source, "export const value = compute();", "value")


class TestFunctionTypes:
    """Signatures of functions and arrow functions."""

    def test_arrow_function_infers_from_parameters(self, checker: TypeChecker, write_source) -> None:
        assert _type_of(checker, write_source, "export const inc = (x: number) => x + 1;", "inc") == (
            "(x: number) => number"
        )

    def test_default_parameter_is_optional_and_widened(self, checker: TypeChecker, write_source) -> None:
        source = "export function add(a: number, b = 2): number { return a + b; }"
        assert _type_of(checker, write_source, source, "add") == "(a: number, b?: number) => number"

    def test_generic_signature(self, checker: TypeChecker, write_source) -> None:
        source = "export function id<T extends object = {}>(value: T): T { return value; }"
        assert _type_of(checker, write_source, source, "id") == "<T extends object = {}>(value: T) => T"

    def test_void_and_async_returns(self, checker: TypeChecker, write_source) -> None:
        source = "export function noop() {}\nexport async function one() { return 1; }"
        assert _type_of(checker, write_source, source, "noop") == "() => void"
        assert _type_of(checker, write_source, source, "one") == "() => Promise<number>"

    def test_rest_parameter(self, checker: TypeChecker, write_source) -> None:
        source = "export function join(...parts: string[]): string { return ''; }"
        assert _type_of(checker, write_source, source, "join") == "(...parts: string[]) => string"

    def test_overloads_print_as_call_signatures(self, checker: TypeChecker, write_source) -> None:
        source = (
            "export function parse(x: string): number;\n"
            "export function parse(x: number): string;\n"
            "export function parse(x: any): any { return x; }\n"
        )
        assert _type_of(checker, write_source, source, "parse") == (
            "{ (x: string): number; (x: number): string; }"
        )


class TestDeclarationTypes:
    """Classes, interfaces and type aliases."""

    def test_class_prints_typeof(self, checker: TypeChecker, write_source) -> None:
        assert _type_of(checker, write_source, "export class Widget {}", "Widget") == "typeof Widget"

    def test_interface_prints_name(self, checker: TypeChecker, write_source) -> None:
        assert _type_of(checker, write_source, "export interface Options { a: number }", "Options") == "Options"

    def test_type_alias_union_drops_leading_pipe(self, checker: TypeChecker, write_source) -> None:
        source = "export type Mode =\n  | 'a'\n  | 'b';"
        assert _type_of(checker, write_source, source, "Mode") == '"a" | "b"'
