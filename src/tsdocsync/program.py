"""Binder: turns parsed TypeScript sources into modules, symbols and declarations.

A :class:`Program` owns every :class:`SourceModule` parsed during one
generation pass. Binding walks the top-level statements of a file in source
order and records

* ``locals``: every module-scope declaration and import, keyed by name;
* ``exports``: the export table, or ``None`` when the file has no
  ``import``/``export`` statement (it is a script, not a module).

Doc comments are attached while binding: the closest ``/** */`` block among
the comments that directly precede a statement or member becomes that
declaration's :class:`~tsdocsync.jsdoc.DocComment`. Variable docs live on the
:class:`~tsdocsync.model.VariableStatement`; function, class, interface, type
and enum docs live on the declaration itself.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Final

from tsdocsync.errors import SourceLoadError
from tsdocsync.jsdoc import DocComment, is_jsdoc, parse_jsdoc
from tsdocsync.logging import get_logger
from tsdocsync.model import (
    ClassDeclaration,
    ConstructSignature,
    Constructor,
    Declaration,
    EnumDeclaration,
    ExportAssignment,
    ExportSpecifier,
    FunctionDeclaration,
    GetAccessor,
    ImportSpecifier,
    InterfaceDeclaration,
    MethodDeclaration,
    MethodSignature,
    Parameter,
    PropertyAssignment,
    PropertyDeclaration,
    PropertySignature,
    SetAccessor,
    SignatureDeclaration,
    Symbol,
    SymbolFlags,
    TypeAliasDeclaration,
    TypeParameter,
    VariableDeclaration,
    VariableDeclarationList,
    VariableStatement,
)
from tsdocsync.tscore import language_for_path, node_text, parse_bytes

if TYPE_CHECKING:
    from collections.abc import Callable

    from tree_sitter import Node, Tree

__all__ = [
    "Program",
    "SourceModule",
    "annotation_type",
    "bind_function",
    "bind_object_members",
    "bind_type_members",
    "property_key",
    "unwrap_expression",
]

LOGGER = get_logger(__name__)

_MODIFIER_TOKENS: Final[frozenset[str]] = frozenset(
    {"static", "readonly", "abstract", "async", "get", "set", "declare", "accessor", "*"}
)
_ANNOTATION_NODES: Final[frozenset[str]] = frozenset(
    {
        "type_annotation",
        "asserts_annotation",
        "type_predicate_annotation",
        "omitting_type_annotation",
        "opting_type_annotation",
    }
)
_SCRIPT_SUFFIXES: Final[tuple[str, ...]] = (".ts", ".tsx", ".d.ts", ".js", ".jsx", ".mts", ".cts")
_JS_TO_TS: Final[dict[str, tuple[str, ...]]] = {
    ".js": (".ts", ".tsx", ".d.ts", ".js"),
    ".jsx": (".tsx", ".jsx"),
    ".mjs": (".mts", ".d.mts", ".mjs"),
    ".cjs": (".cts", ".d.cts", ".cjs"),
}


@dataclass(slots=True, eq=False)
class SourceModule:
    """One parsed and bound source file."""

    path: Path
    source: bytes
    tree: Tree
    locals: dict[str, Symbol] = field(default_factory=dict)
    exports: dict[str, Symbol] | None = None

    @property
    def is_module(self) -> bool:
        """``False`` for scripts without import or export statements."""
        return self.exports is not None


def annotation_type(node: Node | None) -> Node | None:
    """Return the type inside a ``: T`` annotation (or ``node`` itself)."""
    if node is None:
        return None
    if node.type in _ANNOTATION_NODES:
        return node.named_children[0] if node.named_children else None
    return node


def unwrap_expression(node: Node | None) -> Node | None:
    """Strip parentheses and non-null assertions around an expression."""
    while node is not None and node.type in {"parenthesized_expression", "non_null_expression"}:
        inner = [child for child in node.named_children if child.type != "comment"]
        node = inner[0] if inner else None
    return node


def property_key(text: str) -> str:
    """Normalise a property name for lookups (quotes removed)."""
    if len(text) >= 2 and text[0] == text[-1] and text[0] in {"'", '"', "`"}:
        return text[1:-1]
    return text


def _string_value(node: Node | None) -> str:
    return property_key(node_text(node))


def _line(node: Node) -> int:
    return node.start_point[0] + 1


def leading_doc(node: Node) -> DocComment | None:
    """Return the closest JSDoc block among the comments directly above ``node``.

    Decorators between the comment and the declaration are skipped.
    """
    sibling = node.prev_sibling
    while sibling is not None and sibling.type in {"comment", "decorator"}:
        text = node_text(sibling)
        if sibling.type == "comment" and is_jsdoc(text):
            return parse_jsdoc(text)
        sibling = sibling.prev_sibling
    return None


def _modifiers(node: Node) -> frozenset[str]:
    name_node = node.child_by_field_name("name")
    limit = name_node.start_byte if name_node is not None else node.end_byte
    found: set[str] = set()
    for child in node.children:
        if child.start_byte >= limit:
            break
        if child.type == "accessibility_modifier":
            found.add(node_text(child))
        elif child.type == "override_modifier":
            found.add("override")
        elif not child.is_named and child.type in _MODIFIER_TOKENS:
            found.add(child.type)
    return frozenset(found)


def _has_question(node: Node) -> bool:
    return any(child.type == "?" for child in node.children)


def _type_parameters(node: Node | None) -> tuple[TypeParameter, ...]:
    if node is None:
        return ()
    params: list[TypeParameter] = []
    for child in node.named_children:
        if child.type != "type_parameter":
            continue
        constraint = child.child_by_field_name("constraint")
        default = child.child_by_field_name("value")
        params.append(
            TypeParameter(
                node=child,
                name=node_text(child.child_by_field_name("name")),
                constraint=constraint.named_children[0] if constraint and constraint.named_children else None,
                default=default.named_children[0] if default and default.named_children else None,
            )
        )
    return tuple(params)


def _parameters(node: Node | None) -> tuple[Parameter, ...]:
    if node is None:
        return ()
    if node.type == "identifier":
        # single bare arrow-function parameter: ``x => x``
        return (
            Parameter(node=node, name=node_text(node), type_node=None, initializer=None, question=False, rest=False),
        )
    params: list[Parameter] = []
    for child in node.named_children:
        if child.type not in {"required_parameter", "optional_parameter"}:
            continue
        pattern = child.child_by_field_name("pattern")
        rest = pattern is not None and pattern.type == "rest_pattern"
        if rest and pattern is not None and pattern.named_children:
            name = node_text(pattern.named_children[0])
        else:
            name = " ".join(node_text(pattern).split())
        params.append(
            Parameter(
                node=child,
                name=name,
                type_node=annotation_type(child.child_by_field_name("type")),
                initializer=child.child_by_field_name("value"),
                question=child.type == "optional_parameter",
                rest=rest,
            )
        )
    return tuple(params)


def _signature_fields(node: Node) -> dict[str, object]:
    parameters = node.child_by_field_name("parameters") or node.child_by_field_name("parameter")
    return_type = node.child_by_field_name("return_type")
    if return_type is None and node.type == "construct_signature":
        return_type = node.child_by_field_name("type")
    return {
        "type_parameters": _type_parameters(node.child_by_field_name("type_parameters")),
        "parameters": _parameters(parameters),
        "return_type": annotation_type(return_type),
        "body": node.child_by_field_name("body"),
    }


def _class_member(node: Node, owner: Declaration, doc: DocComment | None) -> Declaration | None:
    module = owner.module
    kind = node.type
    if kind in {"method_definition", "method_signature", "abstract_method_signature"}:
        name = node_text(node.child_by_field_name("name"))
        modifiers = _modifiers(node)
        if kind == "abstract_method_signature":
            modifiers |= {"abstract"}
        cls: type[SignatureDeclaration] = MethodDeclaration
        if name == "constructor":
            cls = Constructor
        elif "get" in modifiers:
            cls = GetAccessor
        elif "set" in modifiers:
            cls = SetAccessor
        return cls(
            node=node,
            module=module,
            name=name,
            line=_line(node),
            doc=doc,
            parent=owner,
            modifiers=modifiers,
            **_signature_fields(node),  # type: ignore[arg-type]
        )
    if kind == "public_field_definition":
        return PropertyDeclaration(
            node=node,
            module=module,
            name=node_text(node.child_by_field_name("name")),
            line=_line(node),
            doc=doc,
            parent=owner,
            modifiers=_modifiers(node),
            type_node=annotation_type(node.child_by_field_name("type")),
            initializer=node.child_by_field_name("value"),
            optional=_has_question(node),
        )
    return None


def _type_member(node: Node, owner: Declaration, doc: DocComment | None) -> Declaration | None:
    module = owner.module
    kind = node.type
    if kind == "property_signature":
        return PropertySignature(
            node=node,
            module=module,
            name=node_text(node.child_by_field_name("name")),
            line=_line(node),
            doc=doc,
            parent=owner,
            modifiers=_modifiers(node),
            type_node=annotation_type(node.child_by_field_name("type")),
            optional=_has_question(node),
        )
    if kind == "method_signature":
        modifiers = _modifiers(node)
        cls: type[SignatureDeclaration] = MethodSignature
        if "get" in modifiers:
            cls = GetAccessor
        elif "set" in modifiers:
            cls = SetAccessor
        return cls(
            node=node,
            module=module,
            name=node_text(node.child_by_field_name("name")),
            line=_line(node),
            doc=doc,
            parent=owner,
            modifiers=modifiers,
            **_signature_fields(node),  # type: ignore[arg-type]
        )
    if kind == "construct_signature":
        return ConstructSignature(
            node=node,
            module=module,
            name=None,
            line=_line(node),
            doc=doc,
            parent=owner,
            **_signature_fields(node),  # type: ignore[arg-type]
        )
    # call and index signatures have no name and are not documented
    return None


def _bind_members(body: Node | None, owner: Declaration, *, class_body: bool) -> list[Declaration]:
    if body is None:
        return []
    build = _class_member if class_body else _type_member
    members: list[Declaration] = []
    for child in body.named_children:
        if child.type == "comment":
            continue
        member = build(child, owner, leading_doc(child))
        if member is not None:
            members.append(member)
    return members


def bind_function(node: Node, module: SourceModule, parent: Declaration | None = None) -> FunctionDeclaration:
    """Bind a function-like expression (arrow, function expression, object method)."""
    name_node = node.child_by_field_name("name")
    return FunctionDeclaration(
        node=node,
        module=module,
        name=node_text(name_node) or None,
        line=_line(node),
        doc=leading_doc(node),
        parent=parent,
        modifiers=_modifiers(node),
        **_signature_fields(node),  # type: ignore[arg-type]
    )


def bind_type_members(type_node: Node, owner: Declaration) -> list[Declaration]:
    """Bind the members of an object type literal (``{ a: T; m(): U }``)."""
    return _bind_members(type_node, owner, class_body=False)


def bind_object_members(object_node: Node, owner: Declaration, *, const_context: bool) -> list[Declaration]:
    """Bind the entries of an object literal as property declarations.

    Parameters
    ----------
    object_node : Node
        ``object`` expression node.
    owner : Declaration
        Declaration whose initializer holds the literal.
    const_context : bool
        ``True`` under ``as const``; entries then keep readonly literal types.
    """
    members: list[Declaration] = []
    for child in object_node.named_children:
        doc = leading_doc(child) if child.type != "comment" else None
        if child.type == "pair":
            key = child.child_by_field_name("key")
            members.append(
                PropertyAssignment(
                    node=child,
                    module=owner.module,
                    name=node_text(key),
                    line=_line(child),
                    doc=doc,
                    parent=owner,
                    modifiers=frozenset({"readonly"}) if const_context else frozenset(),
                    initializer=child.child_by_field_name("value"),
                    const_context=const_context,
                )
            )
        elif child.type == "shorthand_property_identifier":
            members.append(
                PropertyAssignment(
                    node=child,
                    module=owner.module,
                    name=node_text(child),
                    line=_line(child),
                    doc=doc,
                    parent=owner,
                    initializer=child,
                    const_context=const_context,
                )
            )
        elif child.type == "method_definition":
            member = _class_member(child, owner, doc)
            if member is not None:
                members.append(member)
    return members


class _Binder:
    """Populate ``locals`` and ``exports`` of one :class:`SourceModule`."""

    def __init__(self, module: SourceModule) -> None:
        self.module = module
        self.exports: dict[str, Symbol] = {}
        self.is_module = False

    def bind(self) -> None:
        for child in self.module.tree.root_node.named_children:
            if child.type == "export_statement":
                self.is_module = True
                self._bind_export(child)
            elif child.type == "import_statement":
                self.is_module = True
                self._bind_import(child)
            elif child.type != "comment":
                self._bind_declaration(child, leading_doc(child), export_name=None)
        self.module.exports = self.exports if self.is_module else None

    def _declare(self, table: dict[str, Symbol], name: str, declaration: Declaration, flags: SymbolFlags) -> Symbol:
        symbol = table.get(name)
        if symbol is None:
            symbol = Symbol(name=name, module=self.module)
            table[name] = symbol
        symbol.add(declaration, flags)
        return symbol

    def _publish(self, local_name: str | None, export_name: str | None, declaration: Declaration, flags: SymbolFlags) -> None:
        symbol: Symbol | None = None
        if local_name:
            symbol = self._declare(self.module.locals, local_name, declaration, flags)
        if export_name is None:
            return
        if symbol is not None and export_name == local_name:
            self.exports.setdefault(export_name, symbol)
        else:
            self._declare(self.exports, export_name, declaration, flags)

    def _bind_export(self, node: Node) -> None:
        doc = leading_doc(node)
        is_default = any(child.type == "default" for child in node.children)
        declaration = node.child_by_field_name("declaration")
        if declaration is not None:
            self._bind_declaration(declaration, doc, export_name="default" if is_default else "")
            return
        value = node.child_by_field_name("value")
        if value is not None:
            self._bind_default_value(value, doc, "default")
            return
        if any(child.type == "=" for child in node.children):
            expression = next((c for c in node.named_children if c.type != "comment"), None)
            if expression is not None:
                self._bind_default_value(expression, doc, "export=")
            return
        source = node.child_by_field_name("source")
        clause = next((c for c in node.named_children if c.type == "export_clause"), None)
        if clause is None:
            # ``export * from`` and ``export * as ns from`` are not part of the export table
            return
        for spec in clause.named_children:
            if spec.type != "export_specifier":
                continue
            local = _string_value(spec.child_by_field_name("name"))
            alias = spec.child_by_field_name("alias")
            exported = _string_value(alias) if alias is not None else local
            specifier = ExportSpecifier(
                node=spec,
                module=self.module,
                name=exported,
                line=_line(spec),
                property_name=local,
                module_specifier=_string_value(source) if source is not None else None,
            )
            self._declare(self.exports, exported, specifier, SymbolFlags.ALIAS)

    def _bind_default_value(self, value: Node, doc: DocComment | None, export_name: str) -> None:
        if value.type in {"class", "function_expression", "function", "generator_function"}:
            self._bind_declaration(value, doc, export_name=export_name)
            return
        flags = SymbolFlags.ALIAS if value.type == "identifier" else SymbolFlags.VALUE
        assignment = ExportAssignment(
            node=value,
            module=self.module,
            name=export_name,
            line=_line(value),
            doc=doc,
            expression=value,
        )
        self._declare(self.exports, export_name, assignment, flags)

    def _bind_import(self, node: Node) -> None:
        source = _string_value(node.child_by_field_name("source"))
        clause = next((c for c in node.named_children if c.type == "import_clause"), None)
        if clause is None:
            return
        for child in clause.named_children:
            if child.type == "identifier":
                self._import(child, child, "default", source)
            elif child.type == "named_imports":
                for spec in child.named_children:
                    if spec.type != "import_specifier":
                        continue
                    name_node = spec.child_by_field_name("name")
                    alias = spec.child_by_field_name("alias")
                    self._import(spec, alias or name_node, _string_value(name_node), source)

    def _import(self, node: Node, local: Node | None, property_name: str, source: str) -> None:
        local_name = node_text(local)
        if not local_name:
            return
        specifier = ImportSpecifier(
            node=node,
            module=self.module,
            name=local_name,
            line=_line(node),
            property_name=property_name,
            module_specifier=source,
        )
        self._declare(self.module.locals, local_name, specifier, SymbolFlags.ALIAS)

    def _bind_declaration(self, node: Node, doc: DocComment | None, *, export_name: str | None) -> None:
        """Bind a declaration; ``export_name`` is ``""`` for a named export, ``None`` for locals."""
        kind = node.type
        name = node_text(node.child_by_field_name("name")) or None

        def exported_as() -> str | None:
            if export_name is None:
                return None
            return export_name or name

        common = {"node": node, "module": self.module, "name": name, "line": _line(node), "doc": doc}
        if kind == "ambient_declaration":
            inner = next((c for c in node.named_children if c.type != "comment"), None)
            if inner is not None:
                self._bind_declaration(inner, doc, export_name=export_name)
            return
        if kind in {
            "function_declaration",
            "generator_function_declaration",
            "function_signature",
            "function_expression",
            "function",
            "generator_function",
        }:
            declaration: Declaration = FunctionDeclaration(
                **common,  # type: ignore[arg-type]
                modifiers=_modifiers(node),
                **_signature_fields(node),  # type: ignore[arg-type]
            )
            self._publish(name, exported_as(), declaration, SymbolFlags.VALUE)
        elif kind in {"class_declaration", "abstract_class_declaration", "class"}:
            modifiers = _modifiers(node)
            if kind == "abstract_class_declaration":
                modifiers |= {"abstract"}
            klass = ClassDeclaration(
                **common,  # type: ignore[arg-type]
                modifiers=modifiers,
                type_parameters=_type_parameters(node.child_by_field_name("type_parameters")),
            )
            klass.members = _bind_members(node.child_by_field_name("body"), klass, class_body=True)
            self._publish(name, exported_as(), klass, SymbolFlags.VALUE | SymbolFlags.TYPE)
        elif kind == "interface_declaration":
            interface = InterfaceDeclaration(
                **common,  # type: ignore[arg-type]
                type_parameters=_type_parameters(node.child_by_field_name("type_parameters")),
            )
            interface.members = _bind_members(node.child_by_field_name("body"), interface, class_body=False)
            self._publish(name, exported_as(), interface, SymbolFlags.TYPE)
        elif kind == "type_alias_declaration":
            alias = TypeAliasDeclaration(
                **common,  # type: ignore[arg-type]
                type_parameters=_type_parameters(node.child_by_field_name("type_parameters")),
                type_node=node.child_by_field_name("value"),
            )
            self._publish(name, exported_as(), alias, SymbolFlags.TYPE)
        elif kind == "enum_declaration":
            self._publish(name, exported_as(), EnumDeclaration(**common), SymbolFlags.VALUE | SymbolFlags.TYPE)  # type: ignore[arg-type]
        elif kind in {"lexical_declaration", "variable_declaration"}:
            self._bind_variables(node, doc, export_name)

    def _bind_variables(self, node: Node, doc: DocComment | None, export_name: str | None) -> None:
        keyword = node.child_by_field_name("kind")
        flag = node_text(keyword) if keyword is not None else "var"
        statement = VariableStatement(node=node, module=self.module, name=None, line=_line(node), doc=doc)
        declaration_list = VariableDeclarationList(
            node=node, module=self.module, name=None, line=_line(node), parent=statement, flag=flag
        )
        statement.declaration_list = declaration_list
        for declarator in node.named_children:
            if declarator.type != "variable_declarator":
                continue
            name_node = declarator.child_by_field_name("name")
            if name_node is None or name_node.type != "identifier":
                # destructuring patterns bind no documentable name
                continue
            name = node_text(name_node)
            variable = VariableDeclaration(
                node=declarator,
                module=self.module,
                name=name,
                line=_line(declarator),
                parent=declaration_list,
                type_node=annotation_type(declarator.child_by_field_name("type")),
                initializer=declarator.child_by_field_name("value"),
            )
            declaration_list.declarations.append(variable)
            self._publish(name, None if export_name is None else name, variable, SymbolFlags.VALUE)


class Program:
    """Cache of source modules parsed and bound during one generation pass.

    Examples
    --------
    >>> from pathlib import Path
    >>> program = Program()
    >>> module = program.get_source_module(Path("src/index.ts"))  # doctest: +SKIP
    >>> sorted(module.exports or {})  # doctest: +SKIP
    ['answer']
    """

    def __init__(self) -> None:
        self._modules: dict[Path, SourceModule] = {}
        self._members: dict[tuple[Path, int, int], list[Declaration]] = {}

    def get_source_module(self, path: Path) -> SourceModule:
        """Parse and bind ``path`` (cached per resolved path).

        Raises
        ------
        SourceLoadError
            If the file cannot be read.
        """
        resolved = path.resolve()
        cached = self._modules.get(resolved)
        if cached is not None:
            return cached
        try:
            source = resolved.read_bytes()
        except OSError as exc:
            raise SourceLoadError(str(path), cause=exc) from exc
        tree = parse_bytes(language_for_path(resolved), source)
        module = SourceModule(path=resolved, source=source, tree=tree)
        _Binder(module).bind()
        self._modules[resolved] = module
        LOGGER.debug(
            "Bound source module",
            extra={
                "operation": "bind",
                "path": resolved.as_posix(),
                "exports": len(module.exports or {}),
                "syntax_errors": tree.root_node.has_error,
            },
        )
        return module

    def resolve_module(self, importer: SourceModule, specifier: str) -> SourceModule | None:
        """Resolve a relative module specifier against ``importer``.

        Package imports (anything not starting with ``.`` or ``/``) are not
        resolved and yield ``None``, as do missing files.
        """
        if not specifier.startswith((".", "/")):
            return None
        base = importer.path.parent / specifier
        for candidate in self._candidates(base):
            if candidate.is_file():
                return self.get_source_module(candidate)
        return None

    def members_of(
        self,
        key_node: Node,
        owner: Declaration,
        build: Callable[[], list[Declaration]],
    ) -> list[Declaration]:
        """Return member declarations bound from ``key_node``, binding them once."""
        key = (owner.module.path, key_node.start_byte, key_node.end_byte)
        cached = self._members.get(key)
        if cached is None:
            cached = build()
            self._members[key] = cached
        return cached

    @staticmethod
    def _candidates(base: Path) -> list[Path]:
        candidates: list[Path] = []
        suffix = base.suffix
        if suffix in _JS_TO_TS:
            stem = base.with_suffix("")
            candidates.extend(stem.with_name(stem.name + ext) for ext in _JS_TO_TS[suffix])
        candidates.append(base)
        candidates.extend(base.with_name(base.name + ext) for ext in _SCRIPT_SUFFIXES)
        candidates.extend(base / f"index{ext}" for ext in _SCRIPT_SUFFIXES)
        return candidates
