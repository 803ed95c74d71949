"""Symbol lookups and type display strings on top of a :class:`Program`."""

from __future__ import annotations

from typing import TYPE_CHECKING

from tsdocsync.errors import AliasResolutionError, SourceLoadError, TypeRenderError
from tsdocsync.logging import get_logger
from tsdocsync.model import (
    ClassDeclaration,
    ExportAssignment,
    ExportSpecifier,
    ImportSpecifier,
    InterfaceDeclaration,
    PropertyAssignment,
    PropertyDeclaration,
    Symbol,
    SymbolFlags,
    TypeAliasDeclaration,
    VariableDeclaration,
)
from tsdocsync.program import (
    bind_object_members,
    bind_type_members,
    property_key,
    unwrap_expression,
)
from tsdocsync.tscore import node_text
from tsdocsync.typeprint import TypeWriter, Unrenderable

if TYPE_CHECKING:
    from tree_sitter import Node

    from tsdocsync.model import Declaration
    from tsdocsync.program import Program, SourceModule

__all__ = ["TypeChecker"]

LOGGER = get_logger(__name__)

_NAMED_TYPE_NODES = frozenset({"type_identifier", "identifier", "generic_type", "nested_type_identifier"})


class TypeChecker:
    """Answer the questions the renderer asks about symbols.

    Parameters
    ----------
    program : Program
        Module cache for the current generation pass.
    """

    def __init__(self, program: Program) -> None:
        self.program = program
        self.writer = TypeWriter(self)
        self._properties: dict[tuple[int, str], tuple[Symbol, Symbol | None]] = {}
        self._visiting: set[int] = set()

    # aliases ----------------------------------------------------------------

    def get_aliased_symbol(self, symbol: Symbol) -> Symbol:
        """Follow an alias chain (imports, re-exports) to its target symbol.

        Raises
        ------
        AliasResolutionError
            If a module cannot be resolved, a name is missing or the chain
            loops back on itself.
        """
        seen: set[int] = set()
        current = symbol
        while current.is_alias:
            if id(current) in seen:
                raise AliasResolutionError(symbol.name, "circular alias chain")
            seen.add(id(current))
            current = self._alias_target(current)
        return current

    def _alias_target(self, symbol: Symbol) -> Symbol:
        declaration = symbol.declarations[0]
        try:
            if isinstance(declaration, ExportSpecifier):
                if declaration.module_specifier is None:
                    return self._local(declaration.module, declaration.property_name, symbol.name)
                return self._export_of(declaration, declaration.module_specifier, declaration.property_name)
            if isinstance(declaration, ImportSpecifier):
                return self._export_of(declaration, declaration.module_specifier, declaration.property_name)
        except SourceLoadError as exc:
            raise AliasResolutionError(symbol.name, exc.message) from exc
        if isinstance(declaration, ExportAssignment) and declaration.expression is not None:
            expression = unwrap_expression(declaration.expression)
            if expression is not None and expression.type == "identifier":
                return self._local(declaration.module, node_text(expression), symbol.name)
        raise AliasResolutionError(symbol.name, f"unsupported alias {type(declaration).__name__}")

    @staticmethod
    def _local(module: SourceModule, name: str, alias: str) -> Symbol:
        target = module.locals.get(name)
        if target is None:
            raise AliasResolutionError(alias, f"'{name}' is not declared in {module.path.name}")
        return target

    def _export_of(self, declaration: Declaration, specifier: str, name: str) -> Symbol:
        target_module = self.program.resolve_module(declaration.module, specifier)
        if target_module is None:
            raise AliasResolutionError(name, f"cannot resolve module '{specifier}'")
        if target_module.exports is None:
            raise AliasResolutionError(name, f"'{specifier}' has no exports")
        target = target_module.exports.get(name)
        if target is None and name == "default":
            target = target_module.exports.get("export=")
        if target is None:
            raise AliasResolutionError(name, f"'{specifier}' does not export '{name}'")
        return target

    # lookups ----------------------------------------------------------------

    def get_symbol_at_location(self, node: Node, module: SourceModule) -> Symbol | None:
        """Return the symbol an expression refers to, or ``None``.

        Identifiers are looked up in module scope (imports followed),
        member accesses walk object types, object literals and class
        statics.
        """
        node = unwrap_expression(node)  # type: ignore[assignment]
        if node is None:
            return None
        if node.type in {"identifier", "shorthand_property_identifier"}:
            symbol = module.locals.get(node_text(node))
            if symbol is None or not symbol.is_alias:
                return symbol
            try:
                return self.get_aliased_symbol(symbol)
            except AliasResolutionError as exc:
                LOGGER.debug("Alias not followed", extra={"operation": "lookup", "reason": exc.reason})
                return None
        if node.type == "member_expression":
            target = node.child_by_field_name("object")
            prop = node.child_by_field_name("property")
            owner = self.get_symbol_at_location(target, module) if target is not None else None
            if owner is None or prop is None:
                return None
            return self.get_property_of_symbol(owner, node_text(prop))
        if node.type == "subscript_expression":
            target = node.child_by_field_name("object")
            index = node.child_by_field_name("index")
            if target is None or index is None or index.type != "string":
                return None
            owner = self.get_symbol_at_location(target, module)
            return self.get_property_of_symbol(owner, property_key(node_text(index))) if owner else None
        return None

    def get_property_of_symbol(self, symbol: Symbol, name: str) -> Symbol | None:
        """Return the member ``name`` of ``symbol``'s value, or ``None``."""
        key = (id(symbol), name)
        cached = self._properties.get(key)
        if cached is not None:
            return cached[1]
        members = [member for member in self._value_members(symbol) if property_key(member.name or "") == name]
        found: Symbol | None = None
        if members:
            found = Symbol(name=name, module=members[0].module, flags=SymbolFlags.VALUE)
            for member in members:
                found.add(member, SymbolFlags.VALUE)
        self._properties[key] = (symbol, found)
        return found

    def symbol_for(self, declaration: Declaration) -> Symbol:
        """Wrap a single member declaration in a throwaway symbol."""
        symbol = Symbol(name=declaration.name or "", module=declaration.module, flags=SymbolFlags.VALUE)
        symbol.add(declaration, SymbolFlags.VALUE)
        return symbol

    def _value_members(self, symbol: Symbol) -> list[Declaration]:
        declaration = symbol.primary_declaration
        if declaration is None or id(declaration) in self._visiting:
            return []
        self._visiting.add(id(declaration))
        try:
            if isinstance(declaration, ClassDeclaration):
                return [member for member in declaration.members if member.is_static]
            type_node = getattr(declaration, "type_node", None)
            if type_node is not None and not isinstance(declaration, TypeAliasDeclaration):
                return self._type_members(type_node, declaration)
            if isinstance(declaration, (VariableDeclaration, PropertyDeclaration, PropertyAssignment)):
                return self._initializer_members(declaration.initializer, declaration)
            if isinstance(declaration, ExportAssignment):
                return self._initializer_members(declaration.expression, declaration)
            return []
        finally:
            self._visiting.discard(id(declaration))

    def _initializer_members(self, initializer: Node | None, owner: Declaration) -> list[Declaration]:
        node = unwrap_expression(initializer)
        const_context = False
        while node is not None and node.type in {"as_expression", "satisfies_expression"}:
            named = [child for child in node.named_children if child.type != "comment"]
            if node.type == "as_expression" and len(named) >= 2:  # noqa: PLR2004
                return self._type_members(named[1], owner)
            const_context = const_context or any(child.type == "const" for child in node.children)
            node = unwrap_expression(named[0]) if named else None
        if node is None:
            return []
        if node.type == "object":
            object_node = node
            return self.program.members_of(
                object_node,
                owner,
                lambda: bind_object_members(object_node, owner, const_context=const_context),
            )
        if node.type == "new_expression":
            constructor = node.child_by_field_name("constructor")
            target = self.get_symbol_at_location(constructor, owner.module) if constructor is not None else None
            declaration = target.primary_declaration if target is not None else None
            return self._instance_members(declaration)
        if node.type in {"identifier", "member_expression", "subscript_expression"}:
            target = self.get_symbol_at_location(node, owner.module)
            return self._value_members(target) if target is not None else []
        return []

    def _type_members(self, type_node: Node, owner: Declaration) -> list[Declaration]:
        if type_node.type == "object_type":
            return self.program.members_of(type_node, owner, lambda: bind_type_members(type_node, owner))
        if type_node.type in {"parenthesized_type", "readonly_type"} and type_node.named_children:
            return self._type_members(type_node.named_children[-1], owner)
        if type_node.type not in _NAMED_TYPE_NODES:
            return []
        name_node = type_node.child_by_field_name("name") if type_node.type == "generic_type" else type_node
        target = owner.module.locals.get(node_text(name_node))
        if target is not None and target.is_alias:
            try:
                target = self.get_aliased_symbol(target)
            except AliasResolutionError:
                return []
        if target is None:
            return []
        declaration = next(
            (decl for decl in target.declarations if isinstance(decl, (InterfaceDeclaration, ClassDeclaration, TypeAliasDeclaration))),
            None,
        )
        return self._instance_members(declaration)

    def _instance_members(self, declaration: Declaration | None) -> list[Declaration]:
        if isinstance(declaration, InterfaceDeclaration):
            return declaration.members
        if isinstance(declaration, ClassDeclaration):
            return [member for member in declaration.members if not member.is_static]
        if isinstance(declaration, TypeAliasDeclaration) and declaration.type_node is not None:
            if id(declaration) in self._visiting:
                return []
            self._visiting.add(id(declaration))
            try:
                return self._type_members(declaration.type_node, declaration)
            finally:
                self._visiting.discard(id(declaration))
        return []

    # types ------------------------------------------------------------------

    def type_to_string(self, symbol: Symbol, site: Declaration | None = None) -> str:
        """Return the display type of ``symbol`` as seen from ``site``.

        Parameters
        ----------
        symbol : Symbol
            Symbol whose type is printed; its declarations supply overloads.
        site : Declaration | None, optional
            Declaration to type. Defaults to the symbol's primary declaration.

        Raises
        ------
        TypeRenderError
            If no display string can be derived.
        """
        declaration = site if site is not None else symbol.primary_declaration
        if declaration is None:
            raise TypeRenderError(symbol.name, "symbol has no declaration")
        try:
            return self.writer.declaration_type(declaration, symbol)
        except Unrenderable as exc:
            raise TypeRenderError(symbol.name, str(exc)) from exc
