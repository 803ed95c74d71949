"""Type display strings.

Two layers live here:

* :func:`print_type` reprints a type *annotation* on one line, token by
  token. Whitespace is kept only where the source had some, object types
  are normalised to ``{ a: T; b?: U; }`` and trailing commas disappear.
* :class:`TypeWriter` computes the display type of a *declaration*, inferring
  it from initializers and function bodies when there is no annotation.
  It raises :class:`Unrenderable` when an expression is beyond what
  syntax alone can type (calls, globals, ``await``...).
"""

from __future__ import annotations

import re
from typing import TYPE_CHECKING, Final

from tsdocsync.classify import is_const
from tsdocsync.model import (
    ClassDeclaration,
    ConstructSignature,
    Constructor,
    EnumDeclaration,
    ExportAssignment,
    FunctionDeclaration,
    GetAccessor,
    InterfaceDeclaration,
    MethodDeclaration,
    MethodSignature,
    PropertyAssignment,
    PropertyDeclaration,
    PropertySignature,
    SetAccessor,
    SignatureDeclaration,
    TypeAliasDeclaration,
    VariableDeclaration,
)
from tsdocsync.program import bind_function, unwrap_expression
from tsdocsync.tscore import node_text

if TYPE_CHECKING:
    from collections.abc import Iterator

    from tree_sitter import Node

    from tsdocsync.checker import TypeChecker
    from tsdocsync.model import Declaration, Parameter, Symbol, TypeParameter
    from tsdocsync.program import SourceModule

__all__ = [
    "TypeWriter",
    "Unrenderable",
    "format_type_parameter",
    "number_literal",
    "print_type",
    "string_literal",
    "widen",
]

_ATOMIC_NODES: Final[frozenset[str]] = frozenset(
    {"string", "template_string", "template_literal_type", "number", "regex"}
)
_OBJECT_TYPE_NODES: Final[frozenset[str]] = frozenset({"object_type", "interface_body"})
_NO_SPACE_AFTER: Final[frozenset[str]] = frozenset({"(", "[", "<"})
_NO_SPACE_BEFORE: Final[frozenset[str]] = frozenset({")", "]", ">", ",", ";"})
_CLOSERS: Final[frozenset[str]] = frozenset({")", "]", ">", "}"})
_FUNCTION_NODES: Final[frozenset[str]] = frozenset(
    {
        "arrow_function",
        "function_expression",
        "function",
        "generator_function",
        "function_declaration",
        "generator_function_declaration",
        "method_definition",
        "class",
        "class_declaration",
        "abstract_class_declaration",
    }
)
_COMPARISON_OPERATORS: Final[frozenset[str]] = frozenset(
    {"==", "!=", "===", "!==", "<", ">", "<=", ">=", "instanceof", "in"}
)
_NUMERIC_OPERATORS: Final[frozenset[str]] = frozenset(
    {"-", "*", "/", "%", "**", "&", "|", "^", "<<", ">>", ">>>"}
)
_NUMERIC_LITERAL: Final[re.Pattern[str]] = re.compile(r"^-?\d+(\.\d+)?$")
_MAX_DEPTH: Final[int] = 32


class Unrenderable(Exception):  # noqa: N818
    """Raised when a type cannot be derived from syntax."""


def string_literal(raw: str) -> str:
    """Return a string literal (any quote style) as a double-quoted literal type."""
    if len(raw) < 2:
        return raw
    quote, body = raw[0], raw[1:-1]
    if quote == '"':
        return raw
    if quote == "'":
        body = body.replace("\\'", "'")
    return '"' + body.replace('"', '\\"') + '"'


def number_literal(raw: str) -> str:
    """Normalise a numeric literal the way JavaScript prints it (``0x10`` -> ``16``)."""
    text = raw.replace("_", "")
    try:
        return str(int(text, 0))
    except ValueError:
        pass
    try:
        value = float(text)
    except ValueError:
        return raw
    if value.is_integer() and abs(value) < 1e21:  # noqa: PLR2004
        return str(int(value))
    return repr(value)


def widen(type_string: str) -> str:
    """Widen a literal type to its primitive (``42`` -> ``number``)."""
    if type_string in {"true", "false"}:
        return "boolean"
    if type_string.startswith('"') and type_string.endswith('"'):
        return "string"
    if _NUMERIC_LITERAL.match(type_string):
        return "number"
    return type_string


def _tokens(node: Node, out: list[tuple[int, int, str]]) -> None:
    kind = node.type
    if kind == "comment":
        return
    if kind in _OBJECT_TYPE_NODES:
        out.append((node.start_byte, node.end_byte, _print_object_type(node)))
        return
    if kind == "string" and node.parent is not None and node.parent.type == "literal_type":
        out.append((node.start_byte, node.end_byte, string_literal(node_text(node))))
        return
    if node.child_count == 0 or kind in _ATOMIC_NODES:
        text = node_text(node)
        if text:
            out.append((node.start_byte, node.end_byte, text))
        return
    for child in node.children:
        _tokens(child, out)


def _join(tokens: list[tuple[int, int, str]]) -> str:
    parts: list[str] = []
    previous: tuple[int, str] | None = None
    for index, (start, end, text) in enumerate(tokens):
        following = tokens[index + 1][2] if index + 1 < len(tokens) else None
        if text == "," and (following is None or following in _CLOSERS):
            continue
        if text in {"|", "&"} and (previous is None or previous[1] in {"(", "<", "[", ":", "=", ","}):
            continue
        if previous is None:
            parts.append(text)
        else:
            previous_end, previous_text = previous
            if previous_text == ",":
                spaced = text not in _CLOSERS
            elif previous_text in _NO_SPACE_AFTER or text in _NO_SPACE_BEFORE:
                spaced = False
            else:
                spaced = start > previous_end
            parts.append((" " if spaced else "") + text)
        previous = (end, text)
    return "".join(parts)


def _print_object_type(node: Node) -> str:
    members = []
    for child in node.named_children:
        if child.type == "comment":
            continue
        printed = print_type(child).rstrip(";,").rstrip()
        if printed:
            members.append(printed)
    if not members:
        return "{}"
    return "{ " + "; ".join(members) + "; }"


def print_type(node: Node | None) -> str:
    """Reprint a type node on a single line.

    Examples
    --------
    A source annotation spread over lines::

        options: {
            /** Retries */
            retries?: number,
        }

    prints as ``{ retries?: number; }``.
    """
    if node is None:
        return "any"
    if node.type in _OBJECT_TYPE_NODES:
        return _print_object_type(node)
    tokens: list[tuple[int, int, str]] = []
    _tokens(node, tokens)
    return _join(tokens)


def format_type_parameter(parameter: TypeParameter) -> str:
    """``T``, ``T extends C`` or ``T extends C = D``."""
    text = parameter.name
    if parameter.constraint is not None:
        text += f" extends {print_type(parameter.constraint)}"
    if parameter.default is not None:
        text += f" = {print_type(parameter.default)}"
    return text


def _format_type_parameters(parameters: tuple[TypeParameter, ...]) -> str:
    if not parameters:
        return ""
    return "<" + ", ".join(format_type_parameter(param) for param in parameters) + ">"


def _return_statements(node: Node) -> Iterator[Node]:
    for child in node.named_children:
        if child.type in _FUNCTION_NODES:
            continue
        if child.type == "return_statement":
            yield child
        else:
            yield from _return_statements(child)


def _returned_expression(statement: Node) -> Node | None:
    return next((child for child in statement.named_children if child.type != "comment"), None)


class TypeWriter:
    """Compute display types for declarations and expressions.

    Parameters
    ----------
    checker : TypeChecker
        Used to look up identifiers and member accesses.
    """

    def __init__(self, checker: TypeChecker) -> None:
        self._checker = checker
        self._active: list[Declaration] = []
        self._scopes: list[dict[str, str]] = []

    # declarations -----------------------------------------------------------

    def declaration_type(self, declaration: Declaration, symbol: Symbol | None = None) -> str:
        """Return the display type of ``declaration``.

        Raises
        ------
        Unrenderable
            If the type cannot be derived.
        """
        if any(active is declaration for active in self._active):
            message = "circular reference"
            raise Unrenderable(message)
        if len(self._active) >= _MAX_DEPTH:
            message = "reference chain too deep"
            raise Unrenderable(message)
        self._active.append(declaration)
        try:
            return self._declaration_type(declaration, symbol)
        finally:
            self._active.pop()

    def _declaration_type(self, declaration: Declaration, symbol: Symbol | None) -> str:  # noqa: C901, PLR0911, PLR0912
        module = declaration.module
        if isinstance(declaration, FunctionDeclaration):
            return self._function_type(declaration, symbol)
        if isinstance(declaration, (ClassDeclaration, EnumDeclaration)):
            if not declaration.name:
                message = "anonymous class"
                raise Unrenderable(message)
            return f"typeof {declaration.name}"
        if isinstance(declaration, InterfaceDeclaration):
            return declaration.name or "{}"
        if isinstance(declaration, TypeAliasDeclaration):
            if declaration.type_node is None:
                message = "type alias without a type"
                raise Unrenderable(message)
            return print_type(declaration.type_node)
        if isinstance(declaration, VariableDeclaration):
            if declaration.type_node is not None:
                return print_type(declaration.type_node)
            if declaration.initializer is not None:
                return self.expression_type(declaration.initializer, module, literal=is_const(declaration))
            return "any"
        if isinstance(declaration, PropertyDeclaration):
            if declaration.type_node is not None:
                return print_type(declaration.type_node)
            if declaration.initializer is not None:
                return self.expression_type(declaration.initializer, module, literal=declaration.is_readonly)
            return "any"
        if isinstance(declaration, PropertySignature):
            return print_type(declaration.type_node) if declaration.type_node is not None else "any"
        if isinstance(declaration, PropertyAssignment):
            if declaration.initializer is None:
                return "any"
            return self.expression_type(
                declaration.initializer,
                module,
                literal=declaration.const_context,
                readonly=declaration.const_context,
            )
        if isinstance(declaration, GetAccessor):
            return self.return_type(declaration)
        if isinstance(declaration, SetAccessor):
            return self._setter_type(declaration)
        if isinstance(declaration, (ConstructSignature, Constructor)):
            return "new " + self.signature(declaration)
        if isinstance(declaration, (MethodDeclaration, MethodSignature)):
            return self.signature(declaration)
        if isinstance(declaration, ExportAssignment) and declaration.expression is not None:
            return self.expression_type(declaration.expression, module, literal=True)
        message = f"unresolved {type(declaration).__name__}"
        raise Unrenderable(message)

    def _function_type(self, declaration: FunctionDeclaration, symbol: Symbol | None) -> str:
        overloads = [
            decl for decl in (symbol.declarations if symbol else ()) if isinstance(decl, FunctionDeclaration)
        ]
        if len(overloads) <= 1:
            return self.signature(declaration)
        signatures = [decl for decl in overloads if decl.body is None] or overloads
        if len(signatures) == 1:
            return self.signature(signatures[0])
        return "{ " + "; ".join(self.signature(decl, arrow=False) for decl in signatures) + "; }"

    def _setter_type(self, declaration: SetAccessor) -> str:
        owner = declaration.parent
        members = getattr(owner, "members", ())
        getter = next(
            (
                member
                for member in members
                if isinstance(member, GetAccessor)
                and member.name == declaration.name
                and member.is_static == declaration.is_static
            ),
            None,
        )
        if getter is not None:
            return self.declaration_type(getter)
        if declaration.parameters and declaration.parameters[0].type_node is not None:
            return print_type(declaration.parameters[0].type_node)
        return "any"

    # signatures -------------------------------------------------------------

    def parameter_type(self, parameter: Parameter, module: SourceModule) -> str:
        """Annotated type, else the widened type of the default, else ``any``."""
        if parameter.type_node is not None:
            return print_type(parameter.type_node)
        if parameter.initializer is not None:
            return self._try_expression(parameter.initializer, module) or "any"
        return "any[]" if parameter.rest else "any"

    def parameter(self, parameter: Parameter, module: SourceModule) -> str:
        """``name?: T`` as printed inside a signature."""
        name = ("..." if parameter.rest else "") + parameter.name
        optional = (parameter.question or parameter.initializer is not None) and not parameter.rest
        return f"{name}{'?' if optional else ''}: {self.parameter_type(parameter, module)}"

    def signature(self, declaration: SignatureDeclaration, *, arrow: bool = True) -> str:
        """``<T>(a: A, b?: B) => R`` (or ``(a: A): R`` inside an overload list)."""
        type_parameters = _format_type_parameters(declaration.type_parameters)
        parameters = ", ".join(self.parameter(param, declaration.module) for param in declaration.parameters)
        returns = self.return_type(declaration)
        separator = " => " if arrow else ": "
        return f"{type_parameters}({parameters}){separator}{returns}"

    def return_type(self, declaration: SignatureDeclaration) -> str:
        """Annotated return type, else one inferred from the body."""
        if declaration.return_type is not None:
            return print_type(declaration.return_type)
        if isinstance(declaration, SetAccessor):
            return "void"
        body = declaration.body
        if body is None or "*" in declaration.modifiers:
            return "any"
        module = declaration.module
        self._scopes.append({param.name: self.parameter_type(param, module) for param in declaration.parameters})
        try:
            if body.type != "statement_block":
                inferred = self._try_expression(body, module) or "any"
            else:
                inferred = self._block_return_type(body, module)
        finally:
            self._scopes.pop()
        return f"Promise<{inferred}>" if declaration.is_async else inferred

    def _block_return_type(self, body: Node, module: SourceModule) -> str:
        expressions = [
            expression
            for statement in _return_statements(body)
            if (expression := _returned_expression(statement)) is not None
        ]
        if not expressions:
            return "void"
        types: list[str] = []
        for expression in expressions:
            inferred = self._try_expression(expression, module)
            if inferred is None:
                return "any"
            if inferred not in types:
                types.append(inferred)
        return " | ".join(types)

    def _try_expression(self, node: Node, module: SourceModule) -> str | None:
        try:
            return self.expression_type(node, module)
        except Unrenderable:
            return None

    # expressions ------------------------------------------------------------

    def expression_type(  # noqa: C901, PLR0911, PLR0912
        self,
        node: Node,
        module: SourceModule,
        *,
        literal: bool = False,
        readonly: bool = False,
    ) -> str:
        """Return the type of an expression.

        Parameters
        ----------
        node : Node
            Expression node.
        module : SourceModule
            Module the expression belongs to (scope for identifiers).
        literal : bool, optional
            Keep literal types (``const`` bindings, readonly fields).
        readonly : bool, optional
            ``as const`` context: object members and tuples become readonly.

        Raises
        ------
        Unrenderable
            If the expression cannot be typed from syntax.
        """
        unwrapped = unwrap_expression(node)
        if unwrapped is None:
            message = "empty expression"
            raise Unrenderable(message)
        node = unwrapped
        kind = node.type
        text = node_text(node)
        if kind == "number":
            return number_literal(text) if literal else "number"
        if kind == "string":
            return string_literal(text) if literal else "string"
        if kind == "template_string":
            if literal and not any(child.type == "template_substitution" for child in node.named_children):
                return string_literal(text)
            return "string"
        if kind in {"true", "false"}:
            return kind if literal else "boolean"
        if kind in {"null", "undefined"}:
            return kind
        if kind == "regex":
            return "RegExp"
        if kind == "unary_expression":
            return self._unary_type(node, module, literal=literal)
        if kind == "binary_expression":
            return self._binary_type(node, module)
        if kind == "ternary_expression":
            branches = [node.child_by_field_name("consequence"), node.child_by_field_name("alternative")]
            types: list[str] = []
            for branch in branches:
                if branch is None:
                    continue
                branch_type = self.expression_type(branch, module, literal=literal, readonly=readonly)
                if branch_type not in types:
                    types.append(branch_type)
            return " | ".join(types)
        if kind == "array":
            return self._array_type(node, module, readonly=readonly)
        if kind == "object":
            return self._object_type(node, module, readonly=readonly)
        if kind == "as_expression":
            return self._as_type(node, module)
        if kind == "satisfies_expression":
            inner = next(child for child in node.named_children if child.type != "comment")
            return self.expression_type(inner, module, literal=literal, readonly=readonly)
        if kind in {"arrow_function", "function_expression", "function", "generator_function"}:
            return self.signature(bind_function(node, module))
        if kind == "new_expression":
            constructor = node.child_by_field_name("constructor")
            type_arguments = node.child_by_field_name("type_arguments")
            if constructor is None:
                message = "new without constructor"
                raise Unrenderable(message)
            return node_text(constructor) + (print_type(type_arguments) if type_arguments is not None else "")
        if kind == "class":
            name = node.child_by_field_name("name")
            if name is None:
                message = "anonymous class expression"
                raise Unrenderable(message)
            return f"typeof {node_text(name)}"
        if kind == "identifier":
            scoped = next((scope[text] for scope in reversed(self._scopes) if text in scope), None)
            if scoped is not None:
                return scoped
        if kind in {"identifier", "shorthand_property_identifier", "member_expression", "subscript_expression"}:
            symbol = self._checker.get_symbol_at_location(node, module)
            declaration = symbol.primary_declaration if symbol is not None else None
            if symbol is None or declaration is None:
                message = f"cannot resolve '{text}'"
                raise Unrenderable(message)
            resolved = self.declaration_type(declaration, symbol)
            return resolved if literal else widen(resolved)
        message = f"unsupported expression '{kind}'"
        raise Unrenderable(message)

    def _unary_type(self, node: Node, module: SourceModule, *, literal: bool) -> str:
        operator = node_text(node.child_by_field_name("operator"))
        argument = unwrap_expression(node.child_by_field_name("argument"))
        if operator == "-" and argument is not None and argument.type == "number":
            return "-" + number_literal(node_text(argument)) if literal else "number"
        if operator in {"+", "-", "~"}:
            return "number"
        if operator == "!":
            return "boolean"
        if operator == "typeof":
            return "string"
        if operator == "void":
            return "undefined"
        del module
        message = f"unsupported unary operator '{operator}'"
        raise Unrenderable(message)

    def _binary_type(self, node: Node, module: SourceModule) -> str:
        operator = node_text(node.child_by_field_name("operator"))
        if operator in _COMPARISON_OPERATORS:
            return "boolean"
        if operator in _NUMERIC_OPERATORS:
            return "number"
        if operator == "+":
            left = widen(self.expression_type(node.child_by_field_name("left"), module))
            right = widen(self.expression_type(node.child_by_field_name("right"), module))
            if "string" in {left, right}:
                return "string"
            if left == right == "number":
                return "number"
        message = f"unsupported binary operator '{operator}'"
        raise Unrenderable(message)

    def _array_type(self, node: Node, module: SourceModule, *, readonly: bool) -> str:
        elements = [child for child in node.named_children if child.type != "comment"]
        if any(element.type == "spread_element" for element in elements):
            message = "array spread"
            raise Unrenderable(message)
        if readonly:
            items = [self.expression_type(element, module, literal=True, readonly=True) for element in elements]
            return "readonly [" + ", ".join(items) + "]"
        types: list[str] = []
        for element in elements:
            element_type = self.expression_type(element, module)
            if element_type not in types:
                types.append(element_type)
        if not types:
            return "any[]"
        joined = " | ".join(types)
        if len(types) > 1 or "=>" in joined or " | " in joined:
            return f"({joined})[]"
        return f"{joined}[]"

    def _object_type(self, node: Node, module: SourceModule, *, readonly: bool) -> str:
        entries: list[str] = []
        prefix = "readonly " if readonly else ""
        for child in node.named_children:
            if child.type == "comment":
                continue
            if child.type == "pair":
                key = child.child_by_field_name("key")
                value = child.child_by_field_name("value")
                if key is None or value is None or key.type == "computed_property_name":
                    message = "computed property"
                    raise Unrenderable(message)
                value_type = self.expression_type(value, module, literal=readonly, readonly=readonly)
                entries.append(f"{prefix}{node_text(key)}: {value_type}")
            elif child.type == "shorthand_property_identifier":
                value_type = self.expression_type(child, module, literal=readonly, readonly=readonly)
                entries.append(f"{prefix}{node_text(child)}: {value_type}")
            elif child.type == "method_definition":
                method = bind_function(child, module)
                entries.append(f"{node_text(child.child_by_field_name('name'))}{self.signature(method, arrow=False)}")
            else:
                message = f"unsupported object member '{child.type}'"
                raise Unrenderable(message)
        if not entries:
            return "{}"
        return "{ " + "; ".join(entries) + "; }"

    def _as_type(self, node: Node, module: SourceModule) -> str:
        named = [child for child in node.named_children if child.type != "comment"]
        if len(named) >= 2:  # noqa: PLR2004
            return print_type(named[1])
        if any(child.type == "const" for child in node.children) and named:
            return self.expression_type(named[0], module, literal=True, readonly=True)
        message = "malformed type assertion"
        raise Unrenderable(message)
