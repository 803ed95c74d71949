"""Follow re-export and type-assertion chains to the declaration used for typing."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING

from tsdocsync.errors import AliasResolutionError
from tsdocsync.logging import get_logger, with_fields
from tsdocsync.model import ExportAssignment, ExportSpecifier, VariableDeclaration
from tsdocsync.program import unwrap_expression

if TYPE_CHECKING:
    from tsdocsync.checker import TypeChecker
    from tsdocsync.model import Declaration, Symbol

__all__ = ["ResolvedSymbol", "resolve"]

LOGGER = get_logger(__name__)


@dataclass(slots=True, frozen=True)
class ResolvedSymbol:
    """Outcome of resolving one exported binding.

    Attributes
    ----------
    declaration : Declaration | None
        Effective declaration used for typing, classification and body
        rendering. ``None`` when the symbol has no declaration at all.
    typing_symbol : Symbol
        Symbol whose type is printed (the alias target when one was found).
    export_declaration : Declaration | None
        Declaration attached to the export itself. Its doc comment is
        consulted before the effective declaration's.
    """

    declaration: Declaration | None
    typing_symbol: Symbol
    export_declaration: Declaration | None


def resolve(name: str, symbol: Symbol, checker: TypeChecker) -> ResolvedSymbol:
    """Resolve an exported binding.

    Parameters
    ----------
    name : str
        Exported name, used for logging only.
    symbol : Symbol
        Symbol from the module's export table.
    checker : TypeChecker
        Alias and symbol lookups.

    Returns
    -------
    ResolvedSymbol
        Failures to follow a chain are logged at debug level and leave the
        original symbol and declaration in place.
    """
    declaration = symbol.primary_declaration
    export_declaration = declaration
    typing_symbol = symbol
    logger = with_fields(LOGGER, operation="resolve", symbol=name)

    if isinstance(declaration, (ExportSpecifier, ExportAssignment)) and symbol.is_alias:
        try:
            target = checker.get_aliased_symbol(symbol)
        except AliasResolutionError as exc:
            logger.debug("Alias kept unresolved", extra={"reason": exc.reason})
        else:
            target_declaration = target.primary_declaration
            if target_declaration is not None:
                typing_symbol = target
                declaration = target_declaration
    elif isinstance(declaration, VariableDeclaration):
        initializer = unwrap_expression(declaration.initializer)
        if initializer is not None and initializer.type == "as_expression":
            expression = next((child for child in initializer.named_children if child.type != "comment"), None)
            inner = checker.get_symbol_at_location(expression, declaration.module) if expression is not None else None
            inner_declaration = inner.value_declaration if inner is not None else None
            if inner is not None and inner_declaration is not None:
                typing_symbol = inner
                declaration = inner_declaration
            else:
                logger.debug("Type assertion target not found")

    return ResolvedSymbol(
        declaration=declaration,
        typing_symbol=typing_symbol,
        export_declaration=export_declaration,
    )
