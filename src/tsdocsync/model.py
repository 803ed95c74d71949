"""Declaration and symbol model produced by the binder.

Declarations form a closed set of tagged variants, one dataclass per
syntactic kind. Each keeps the Tree-sitter node it was bound from, the
owning :class:`~tsdocsync.program.SourceModule`, a 1-based source line, a
parent link and at most one attached :class:`~tsdocsync.jsdoc.DocComment`.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Flag, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tree_sitter import Node

    from tsdocsync.jsdoc import DocComment
    from tsdocsync.program import SourceModule

__all__ = [
    "ClassDeclaration",
    "ConstructSignature",
    "Constructor",
    "Declaration",
    "EnumDeclaration",
    "ExportAssignment",
    "ExportSpecifier",
    "FunctionDeclaration",
    "GetAccessor",
    "ImportSpecifier",
    "InterfaceDeclaration",
    "MethodDeclaration",
    "MethodSignature",
    "Parameter",
    "PropertyAssignment",
    "PropertyDeclaration",
    "PropertySignature",
    "SetAccessor",
    "SignatureDeclaration",
    "Symbol",
    "SymbolFlags",
    "TypeAliasDeclaration",
    "TypeParameter",
    "VariableDeclaration",
    "VariableDeclarationList",
    "VariableStatement",
    "lower_first",
]


class SymbolFlags(Flag):
    """Binding flags of a :class:`Symbol`."""

    NONE = 0
    VALUE = auto()
    TYPE = auto()
    ALIAS = auto()


@dataclass(slots=True, frozen=True)
class Parameter:
    """Formal parameter of a signature."""

    node: Node
    name: str
    type_node: Node | None
    initializer: Node | None
    question: bool
    rest: bool


@dataclass(slots=True, frozen=True)
class TypeParameter:
    """Generic type parameter with optional constraint and default."""

    node: Node
    name: str
    constraint: Node | None
    default: Node | None


@dataclass(slots=True, eq=False, kw_only=True)
class Declaration:
    """Base of every bound declaration."""

    node: Node
    module: SourceModule
    name: str | None
    line: int
    doc: DocComment | None = None
    parent: Declaration | None = None
    modifiers: frozenset[str] = frozenset()

    @property
    def is_static(self) -> bool:
        return "static" in self.modifiers

    @property
    def is_abstract(self) -> bool:
        return "abstract" in self.modifiers

    @property
    def is_readonly(self) -> bool:
        return "readonly" in self.modifiers


@dataclass(slots=True, eq=False, kw_only=True)
class SignatureDeclaration(Declaration):
    """Declaration with a call shape: type parameters, parameters, return type."""

    type_parameters: tuple[TypeParameter, ...] = ()
    parameters: tuple[Parameter, ...] = ()
    return_type: Node | None = None
    body: Node | None = None

    @property
    def is_async(self) -> bool:
        return "async" in self.modifiers


@dataclass(slots=True, eq=False, kw_only=True)
class FunctionDeclaration(SignatureDeclaration):
    """``function f() {}`` or an overload signature ``function f(): T;``."""


@dataclass(slots=True, eq=False, kw_only=True)
class ClassDeclaration(Declaration):
    type_parameters: tuple[TypeParameter, ...] = ()
    members: list[Declaration] = field(default_factory=list)


@dataclass(slots=True, eq=False, kw_only=True)
class InterfaceDeclaration(Declaration):
    type_parameters: tuple[TypeParameter, ...] = ()
    members: list[Declaration] = field(default_factory=list)


@dataclass(slots=True, eq=False, kw_only=True)
class TypeAliasDeclaration(Declaration):
    type_parameters: tuple[TypeParameter, ...] = ()
    type_node: Node | None = None


@dataclass(slots=True, eq=False, kw_only=True)
class EnumDeclaration(Declaration):
    pass


@dataclass(slots=True, eq=False, kw_only=True)
class VariableStatement(Declaration):
    """Statement owning a declaration list; carries the statement's doc comment."""

    declaration_list: VariableDeclarationList | None = None


@dataclass(slots=True, eq=False, kw_only=True)
class VariableDeclarationList(Declaration):
    """``const``/``let``/``var`` list; ``flag`` holds the keyword."""

    flag: str = "var"
    declarations: list[VariableDeclaration] = field(default_factory=list)

    @property
    def is_const(self) -> bool:
        return self.flag == "const"


@dataclass(slots=True, eq=False, kw_only=True)
class VariableDeclaration(Declaration):
    type_node: Node | None = None
    initializer: Node | None = None


@dataclass(slots=True, eq=False, kw_only=True)
class MethodDeclaration(SignatureDeclaration):
    """Class method, including abstract methods and overload signatures."""


@dataclass(slots=True, eq=False, kw_only=True)
class MethodSignature(SignatureDeclaration):
    """Method member of an interface or object type."""


@dataclass(slots=True, eq=False, kw_only=True)
class GetAccessor(SignatureDeclaration):
    pass


@dataclass(slots=True, eq=False, kw_only=True)
class SetAccessor(SignatureDeclaration):
    pass


@dataclass(slots=True, eq=False, kw_only=True)
class Constructor(SignatureDeclaration):
    pass


@dataclass(slots=True, eq=False, kw_only=True)
class ConstructSignature(SignatureDeclaration):
    """``new (...): T`` member of an interface."""


@dataclass(slots=True, eq=False, kw_only=True)
class PropertyDeclaration(Declaration):
    """Class field."""

    type_node: Node | None = None
    initializer: Node | None = None
    optional: bool = False


@dataclass(slots=True, eq=False, kw_only=True)
class PropertySignature(Declaration):
    """Property member of an interface or object type."""

    type_node: Node | None = None
    optional: bool = False


@dataclass(slots=True, eq=False, kw_only=True)
class PropertyAssignment(Declaration):
    """``key: value`` (or shorthand ``key``) entry of an object literal."""

    initializer: Node | None = None
    const_context: bool = False


@dataclass(slots=True, eq=False, kw_only=True)
class ExportSpecifier(Declaration):
    """``export { property_name as name } [from "module_specifier"]``."""

    property_name: str = ""
    module_specifier: str | None = None


@dataclass(slots=True, eq=False, kw_only=True)
class ImportSpecifier(Declaration):
    """Named or default import; default imports use ``property_name="default"``."""

    property_name: str = ""
    module_specifier: str = ""


@dataclass(slots=True, eq=False, kw_only=True)
class ExportAssignment(Declaration):
    """``export default <expression>`` or ``export = <expression>``."""

    expression: Node | None = None


_VALUE_KINDS = (
    FunctionDeclaration,
    ClassDeclaration,
    EnumDeclaration,
    VariableDeclaration,
    MethodDeclaration,
    MethodSignature,
    PropertyDeclaration,
    PropertySignature,
    PropertyAssignment,
    GetAccessor,
    SetAccessor,
    ExportAssignment,
)


@dataclass(slots=True, eq=False)
class Symbol:
    """Named entity with its declarations in source order."""

    name: str
    module: SourceModule
    flags: SymbolFlags = SymbolFlags.NONE
    declarations: list[Declaration] = field(default_factory=list)

    @property
    def is_alias(self) -> bool:
        return bool(self.flags & SymbolFlags.ALIAS)

    @property
    def value_declaration(self) -> Declaration | None:
        """First value-bearing declaration, if any."""
        return next((decl for decl in self.declarations if isinstance(decl, _VALUE_KINDS)), None)

    @property
    def primary_declaration(self) -> Declaration | None:
        """``value_declaration`` or, failing that, the first declaration."""
        value = self.value_declaration
        if value is not None:
            return value
        return self.declarations[0] if self.declarations else None

    def add(self, declaration: Declaration, flags: SymbolFlags) -> None:
        self.declarations.append(declaration)
        self.flags |= flags


def lower_first(name: str) -> str:
    """Lower-case the first character of ``name``."""
    return name[:1].lower() + name[1:]
