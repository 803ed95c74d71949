"""Tests for alias and type-assertion resolution."""

from __future__ import annotations

from pathlib import Path

import pytest

from tsdocsync.checker import TypeChecker
from tsdocsync.errors import AliasResolutionError
from tsdocsync.model import ExportSpecifier, FunctionDeclaration, PropertyAssignment, VariableDeclaration
from tsdocsync.resolver import resolve


def _exports(checker: TypeChecker, path: Path) -> dict:
    module = checker.program.get_source_module(path)
    assert module.exports is not None
    return module.exports


class TestAliases:
    """Re-exports and imports."""

    def test_local_export_specifier(self, checker: TypeChecker, fixtures_dir: Path) -> None:
        exports = _exports(checker, fixtures_dir / "kitchen.ts")
        resolved = resolve("sum", exports["sum"], checker)
        assert isinstance(resolved.declaration, FunctionDeclaration)
        assert resolved.declaration.name == "add"
        assert isinstance(resolved.export_declaration, ExportSpecifier)

    def test_reexport_from_other_module(self, checker: TypeChecker, fixtures_dir: Path) -> None:
        exports = _exports(checker, fixtures_dir / "reexport.ts")
        resolved = resolve("universal", exports["universal"], checker)
        assert isinstance(resolved.declaration, VariableDeclaration)
        assert resolved.declaration.module.path.name == "answer.ts"
        assert resolved.typing_symbol.name == "answer"

    def test_unresolvable_reexport_falls_back(self, checker: TypeChecker, fixtures_dir: Path) -> None:
        exports = _exports(checker, fixtures_dir / "reexport.ts")
        resolved = resolve("missing", exports["missing"], checker)
        assert isinstance(resolved.declaration, ExportSpecifier)
        assert resolved.typing_symbol is exports["missing"]

    def test_import_then_export_chain(self, checker: TypeChecker, write_source) -> None:
        write_source("lib.ts", "/** Shared limit. */\nexport const limit = 10;\n")
        path = write_source("index.ts", "import { limit as max } from './lib';\nexport { max };\n")
        exports = _exports(checker, path)
        resolved = resolve("max", exports["max"], checker)
        assert isinstance(resolved.declaration, VariableDeclaration)
        assert resolved.declaration.name == "limit"

    def test_circular_chain_raises_in_checker(self, checker: TypeChecker, write_source) -> None:
        write_source("a.ts", "export { x } from './b';\n")
        path = write_source("b.ts", "export { x } from './a';\n")
        exports = _exports(checker, path)
        with pytest.raises(AliasResolutionError):
            checker.get_aliased_symbol(exports["x"])
        resolved = resolve("x", exports["x"], checker)
        assert isinstance(resolved.declaration, ExportSpecifier)


class TestTypeAssertions:
    """``export const x = expr as T``."""

    def test_identifier_target(self, checker: TypeChecker, fixtures_dir: Path) -> None:
        exports = _exports(checker, fixtures_dir / "assertion.ts")
        resolved = resolve("greeter", exports["greeter"], checker)
        assert isinstance(resolved.declaration, VariableDeclaration)
        assert resolved.declaration.name == "impl"
        assert isinstance(resolved.export_declaration, VariableDeclaration)
        assert resolved.export_declaration.name == "greeter"

    def test_member_access_target(self, checker: TypeChecker, fixtures_dir: Path) -> None:
        exports = _exports(checker, fixtures_dir / "assertion.ts")
        resolved = resolve("run", exports["run"], checker)
        assert isinstance(resolved.declaration, PropertyAssignment)
        assert resolved.declaration.name == "run"
        assert checker.type_to_string(resolved.typing_symbol, resolved.declaration) == "(x: number) => number"

    def test_unknown_target_keeps_declaration(self, checker: TypeChecker, write_source) -> None:
        path = write_source("mod.ts", "export const port = process.env.PORT as string;\n")
        exports = _exports(checker, path)
        resolved = resolve("port", exports["port"], checker)
        assert resolved.declaration is resolved.export_declaration
