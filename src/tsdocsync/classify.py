"""Semantic classification of exported declarations and class members."""

from __future__ import annotations

from enum import StrEnum
from typing import TYPE_CHECKING

from tsdocsync.model import (
    ClassDeclaration,
    ConstructSignature,
    Constructor,
    FunctionDeclaration,
    GetAccessor,
    InterfaceDeclaration,
    MethodDeclaration,
    MethodSignature,
    PropertyAssignment,
    PropertyDeclaration,
    PropertySignature,
    SetAccessor,
    TypeAliasDeclaration,
    VariableDeclaration,
    VariableDeclarationList,
    VariableStatement,
)

if TYPE_CHECKING:
    from tsdocsync.model import Declaration

__all__ = ["Kind", "MemberKind", "classify", "is_callable_type", "is_const", "member_label"]


class Kind(StrEnum):
    """Label shown next to an exported symbol's heading."""

    FUNCTION = "function"
    CLASS = "class"
    ABSTRACT_CLASS = "abstract class"
    INTERFACE = "interface"
    TYPE_ALIAS = "type"
    CONSTANT = "constant"
    VARIABLE = "variable"
    VALUE = "value"


class MemberKind(StrEnum):
    """Label shown next to a class or interface member's heading."""

    METHOD = "method"
    PROPERTY = "property"
    GETTER = "getter"
    SETTER = "setter"
    CONSTRUCTOR = "constructor"
    MEMBER = "member"


_MEMBER_KINDS: dict[type, MemberKind] = {
    MethodDeclaration: MemberKind.METHOD,
    MethodSignature: MemberKind.METHOD,
    PropertyDeclaration: MemberKind.PROPERTY,
    PropertySignature: MemberKind.PROPERTY,
    PropertyAssignment: MemberKind.PROPERTY,
    GetAccessor: MemberKind.GETTER,
    SetAccessor: MemberKind.SETTER,
    ConstructSignature: MemberKind.CONSTRUCTOR,
    Constructor: MemberKind.CONSTRUCTOR,
}

_OPENERS = frozenset("([{<")
_CLOSERS = frozenset(")]}>")


def is_callable_type(type_string: str) -> bool:
    """Return ``True`` when ``type_string`` describes something callable.

    A type is callable when it holds an ``=>`` outside any bracket
    (``(a: A) => R``, ``<T>(x: T) => T``) or when it is an object type made
    of call signatures, which is how overloaded functions print
    (``{ (a: A): R; (b: B): R; }``).

    Examples
    --------
    >>> is_callable_type("(x: number) => string")
    True
    >>> is_callable_type("{ readonly run: () => void; }")
    False
    >>> is_callable_type("(string | number)[]")
    False
    """
    text = type_string.strip()
    if text.startswith("{ ("):
        return True
    depth = 0
    index = 0
    while index < len(text):
        if text.startswith("=>", index):
            if depth == 0:
                return True
            index += 2
            continue
        char = text[index]
        if char in _OPENERS:
            depth += 1
        elif char in _CLOSERS:
            depth -= 1
        index += 1
    return False


def is_const(declaration: Declaration) -> bool:
    """Walk declaration, declaration list and statement; the first flag found wins."""
    node: Declaration | None = declaration
    while node is not None:
        if isinstance(node, VariableDeclarationList):
            return node.is_const
        if isinstance(node, VariableStatement):
            return node.declaration_list is not None and node.declaration_list.is_const
        node = node.parent
    return False


def classify(declaration: Declaration, type_string: str | None) -> Kind:
    """Assign a :class:`Kind` to ``declaration``.

    Parameters
    ----------
    declaration : Declaration
        Effective declaration after alias and assertion resolution.
    type_string : str | None
        Rendered type, or ``None`` when the type could not be rendered.

    Returns
    -------
    Kind
        Call shape is checked before const-ness, so ``const f = () => 1``
        is a ``function`` rather than a ``constant``.
    """
    if isinstance(declaration, FunctionDeclaration):
        return Kind.FUNCTION
    if isinstance(declaration, ClassDeclaration):
        return Kind.ABSTRACT_CLASS if declaration.is_abstract else Kind.CLASS
    if isinstance(declaration, InterfaceDeclaration):
        return Kind.INTERFACE
    if isinstance(declaration, TypeAliasDeclaration):
        return Kind.TYPE_ALIAS
    if isinstance(declaration, VariableDeclaration):
        if type_string:
            if is_callable_type(type_string):
                return Kind.FUNCTION
            if type_string.startswith("typeof "):
                return Kind.CLASS
        return Kind.CONSTANT if is_const(declaration) else Kind.VARIABLE
    if type_string and is_callable_type(type_string):
        return Kind.FUNCTION
    return Kind.VALUE


def member_label(member: Declaration) -> str:
    """Return ``[abstract ][static ]<kind>`` for a class or interface member."""
    kind = _MEMBER_KINDS.get(type(member), MemberKind.MEMBER)
    prefix = ("abstract " if member.is_abstract else "") + ("static " if member.is_static else "")
    return f"{prefix}{kind.value}"
