"""Markdown rendering of exported symbols and their members.

Each exported binding becomes one fragment::

    ### name · kind

    Summary paragraph.

    **Signature:** `(a: number) => string`

    ...

Class and interface members follow their owner one heading level deeper.
Rendering never fails because of missing information: absent docs are
skipped and absent types render ``*Type information unavailable*``. Only
unreadable files and files without exports abort generation.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Final

from jinja2 import Environment, StrictUndefined, select_autoescape

from tsdocsync.checker import TypeChecker
from tsdocsync.classify import Kind, classify, is_callable_type, member_label
from tsdocsync.docs import (
    example_texts,
    extract_doc,
    param_doc,
    param_tags,
    returns_text,
    template_docs,
    throws_texts,
)
from tsdocsync.errors import NoExportsError, TypeRenderError
from tsdocsync.links import DeepLinker
from tsdocsync.logging import get_logger, with_fields
from tsdocsync.model import (
    ClassDeclaration,
    Constructor,
    FunctionDeclaration,
    InterfaceDeclaration,
    MethodDeclaration,
    MethodSignature,
    SignatureDeclaration,
    TypeAliasDeclaration,
    VariableDeclaration,
    lower_first,
)
from tsdocsync.program import Program
from tsdocsync.resolver import resolve
from tsdocsync.tscore import node_text
from tsdocsync.typeprint import format_type_parameter, print_type

if TYPE_CHECKING:
    from pathlib import Path

    from jinja2 import Template

    from tsdocsync.jsdoc import DocComment
    from tsdocsync.model import Declaration, Parameter, Symbol, TypeParameter

__all__ = ["RenderContext", "generate_markdown", "render_member", "render_symbol"]

LOGGER = get_logger(__name__)

TYPE_UNAVAILABLE: Final[str] = "*Type information unavailable*\n\n"
NO_DECLARATION: Final[str] = "*No declaration found*\n\n"

_HEADING = "{{ prefix }} {{ title }}{% if label %} · {{ label }}{% endif %}\n\n{% if summary %}{{ summary }}\n\n{% endif %}"

_CODE_LINE = "**{{ field }}:** `{{ code }}`\n\n"

_TYPE_PARAMETERS = "**Type Parameters:**\n\n{% for text, comment in entries %}- `{{ text }}`{% if comment %} - {{ comment }}{% endif %}\n{% endfor %}\n"

_PARAMETERS = "**Parameters:**\n\n{% for parameter in entries %}- `{{ parameter.name }}{% if parameter.question %}?{% endif %}: {{ parameter.type }}`{% if parameter.optional %} (optional){% endif %}{% if parameter.comment %} - {{ parameter.comment }}{% endif %}\n{% endfor %}\n"

_TAG_LIST = "**{{ title }}:**\n\n{% for name, text in tags %}- `{{ name }}`{{ separator }}{{ text }}\n{% endfor %}\n"

_TAG_BLOCKS = "{% if returns %}**Returns:** {{ returns }}\n\n{% endif %}{% if throws %}**Throws:**\n\n{% for text in throws %}- {{ text }}\n{% endfor %}\n{% endif %}{% if examples %}**Examples:**\n\n{% for text in examples %}{{ text }}\n\n{% endfor %}{% endif %}"


def _build_environment() -> Environment:
    """Build the Jinja2 environment for markdown fragments.

    Returns
    -------
    Environment
        Strict undefined handling, no autoescaping, trailing newlines kept.
    """
    return Environment(
        undefined=StrictUndefined,
        trim_blocks=False,
        lstrip_blocks=True,
        keep_trailing_newline=True,
        autoescape=select_autoescape(enabled_extensions=(), default=False, default_for_string=False),
    )


_ENV = _build_environment()
_HEADING_TEMPLATE: Template = _ENV.from_string(_HEADING)
_CODE_LINE_TEMPLATE: Template = _ENV.from_string(_CODE_LINE)
_TYPE_PARAMETERS_TEMPLATE: Template = _ENV.from_string(_TYPE_PARAMETERS)
_PARAMETERS_TEMPLATE: Template = _ENV.from_string(_PARAMETERS)
_TAG_LIST_TEMPLATE: Template = _ENV.from_string(_TAG_LIST)
_TAG_BLOCKS_TEMPLATE: Template = _ENV.from_string(_TAG_BLOCKS)


@dataclass(slots=True)
class RenderContext:
    """Collaborators shared by every fragment of one generation pass.

    Attributes
    ----------
    checker : TypeChecker
        Type oracle over the pass's :class:`~tsdocsync.program.Program`.
    linker : DeepLinker | None
        Deep-link builder; ``None`` disables links.
    """

    checker: TypeChecker
    linker: DeepLinker | None = None

    @classmethod
    def create(cls, repo_url: str | None = None, *, branch: str = "main") -> RenderContext:
        """Fresh program and checker, plus a linker when ``repo_url`` is set."""
        linker = DeepLinker(repo_url, branch=branch) if repo_url else None
        return cls(checker=TypeChecker(Program()), linker=linker)

    def label(self, text: str, declaration: Declaration) -> str:
        """Wrap ``text`` in a deep link to ``declaration`` when one resolves."""
        if self.linker is None:
            return text
        url = self.linker.link_for(declaration.module.path, declaration.line)
        return f"[{text}]({url})" if url else text


def _type_string(checker: TypeChecker, symbol: Symbol, declaration: Declaration) -> str | None:
    try:
        return checker.type_to_string(symbol, declaration)
    except TypeRenderError as exc:
        LOGGER.debug(exc.message, extra={"operation": "render", "reason": exc.reason})
        return None


def _heading(prefix: str, title: str, label: str | None, doc: DocComment | None) -> str:
    summary = doc.summary if doc is not None else None
    return _HEADING_TEMPLATE.render(prefix=prefix, title=title, label=label, summary=summary)


def _code_line(field: str, code: str) -> str:
    return _CODE_LINE_TEMPLATE.render(field=field, code=code)


# tag blocks -----------------------------------------------------------------


def _tag_blocks(doc: DocComment | None) -> str:
    if doc is None or not doc.tags:
        return ""
    return _TAG_BLOCKS_TEMPLATE.render(
        returns=returns_text(doc),
        throws=throws_texts(doc),
        examples=example_texts(doc),
    )


def _examples(doc: DocComment | None) -> str:
    return _TAG_BLOCKS_TEMPLATE.render(returns=None, throws=(), examples=example_texts(doc))


def _type_parameters(type_parameters: tuple[TypeParameter, ...], doc: DocComment | None) -> str:
    docs = template_docs(doc, type_parameters)
    entries = [(format_type_parameter(parameter), docs.get(parameter.name)) for parameter in type_parameters]
    return _TYPE_PARAMETERS_TEMPLATE.render(entries=entries)


def _parameter_entry(parameter: Parameter, doc: DocComment | None) -> dict[str, object]:
    return {
        "name": parameter.name,
        "question": parameter.question,
        "type": print_type(parameter.type_node) if parameter.type_node is not None else "any",
        "optional": parameter.initializer is not None,
        "comment": param_doc(doc, parameter.name),
    }


def _parameters(declaration: SignatureDeclaration) -> str:
    if not declaration.parameters:
        return ""
    entries = [_parameter_entry(parameter, declaration.doc) for parameter in declaration.parameters]
    return _PARAMETERS_TEMPLATE.render(entries=entries)


def _tag_list(title: str, doc: DocComment | None, separator: str) -> str:
    tags = [(tag.identifier or "unknown", tag.text) for tag in param_tags(doc)]
    if not tags:
        return ""
    return _TAG_LIST_TEMPLATE.render(title=title, tags=tags, separator=separator)


# bodies ---------------------------------------------------------------------


def _function_body(declaration: Declaration, type_string: str, doc: DocComment | None) -> str:
    out = [_code_line("Signature", type_string)]
    if not isinstance(declaration, SignatureDeclaration):
        # function-typed values have no syntactic call shape of their own
        if doc is not None and doc.tags:
            out.append(_tag_list("Parameters", doc, " - "))
        out.append(_tag_blocks(doc))
        return "".join(out)
    if declaration.type_parameters:
        out.append(_type_parameters(declaration.type_parameters, doc))
    out.append(_parameters(declaration))
    out.append(_tag_blocks(doc))
    return "".join(out)


def _constructor_parameters(declaration: ClassDeclaration | InterfaceDeclaration) -> str:
    constructor = next((member for member in declaration.members if isinstance(member, Constructor)), None)
    return _tag_list("Constructor Parameters", extract_doc(constructor), ": ")


def _documented_members(declaration: ClassDeclaration | InterfaceDeclaration) -> list[Declaration]:
    public = [
        member
        for member in declaration.members
        if not (member.name or "").startswith("_") and not isinstance(member, Constructor)
    ]
    return [member for member in public if member.is_static] + [
        member for member in public if not member.is_static
    ]


def _class_body(
    declaration: ClassDeclaration | InterfaceDeclaration,
    owner_name: str,
    heading_prefix: str,
    context: RenderContext,
) -> str:
    doc = extract_doc(declaration)
    out: list[str] = []
    if declaration.type_parameters:
        out.append(_type_parameters(declaration.type_parameters, doc))
    out.append(_tag_blocks(doc))
    out.append(_constructor_parameters(declaration))
    out.extend(
        render_member(member, owner_name, heading_prefix, context) for member in _documented_members(declaration)
    )
    return "".join(out)


def _body(  # noqa: PLR0913
    declaration: Declaration,
    type_string: str | None,
    kind: Kind,
    doc: DocComment | None,
    name: str,
    heading_prefix: str,
    context: RenderContext,
) -> str:
    if type_string is None:
        return TYPE_UNAVAILABLE
    if isinstance(declaration, VariableDeclaration):
        if is_callable_type(type_string):
            return _function_body(declaration, type_string, doc)
        if type_string.startswith("typeof "):
            return _code_line("Type", type_string)
    if isinstance(declaration, FunctionDeclaration) or kind is Kind.FUNCTION:
        return _function_body(declaration, type_string, doc)
    if isinstance(declaration, (ClassDeclaration, InterfaceDeclaration)):
        return _class_body(declaration, name, heading_prefix, context)
    if isinstance(declaration, TypeAliasDeclaration):
        declared = node_text(declaration.type_node) if declaration.type_node is not None else type_string
        return _code_line("Type", declared)
    return _code_line("Value", type_string)


# entry points ---------------------------------------------------------------


def render_member(member: Declaration, owner_name: str, heading_prefix: str, context: RenderContext) -> str:
    """Render one class or interface member one heading level below its owner.

    Parameters
    ----------
    member : Declaration
        Member declaration.
    owner_name : str
        Exported name of the owning class or interface. Static members are
        shown as ``Owner.member``, instance members as ``owner.member``.
    heading_prefix : str
        Heading prefix of the owner (``"###"``); one ``#`` is added.
    context : RenderContext
        Shared collaborators.

    Returns
    -------
    str
        Markdown fragment.
    """
    owner = owner_name if member.is_static else lower_first(owner_name)
    display = f"{owner}.{member.name or 'new'}"
    doc = extract_doc(member)
    out = [_heading(f"{heading_prefix}#", display, context.label(member_label(member), member), doc)]

    checker = context.checker
    try:
        type_string = checker.type_to_string(checker.symbol_for(member), member)
    except TypeRenderError as exc:
        LOGGER.warning(
            "Member type unavailable",
            extra={"operation": "render", "member": display, "reason": exc.reason},
        )
        out.append(TYPE_UNAVAILABLE)
        return "".join(out)

    if isinstance(member, (MethodDeclaration, MethodSignature)):
        out.append(_code_line("Signature", type_string))
        out.append(_parameters(member))
        out.append(_tag_blocks(doc))
    else:
        out.append(_code_line("Type", type_string))
        out.append(_examples(doc))
    return "".join(out)


def render_symbol(name: str, symbol: Symbol, heading_prefix: str, context: RenderContext) -> str:
    """Render one exported binding.

    Parameters
    ----------
    name : str
        Exported name shown in the heading.
    symbol : Symbol
        Symbol from the export table.
    heading_prefix : str
        ``"#"`` repeated to the symbol heading depth.
    context : RenderContext
        Shared collaborators.

    Returns
    -------
    str
        Markdown fragment ending with a blank line.
    """
    resolved = resolve(name, symbol, context.checker)
    declaration = resolved.declaration
    if declaration is None:
        return _heading(heading_prefix, name, None, None) + NO_DECLARATION

    type_string = _type_string(context.checker, resolved.typing_symbol, declaration)
    kind = classify(declaration, type_string)
    with_fields(LOGGER, operation="render", symbol=name).debug(
        "Rendering symbol", extra={"kind": kind.value, "typed": type_string is not None}
    )

    doc = extract_doc(resolved.export_declaration) or extract_doc(declaration)
    out = [_heading(heading_prefix, name, context.label(kind.value, declaration), doc)]
    out.append(_body(declaration, type_string, kind, doc, name, heading_prefix, context))
    return "".join(out)


def generate_markdown(
    path: Path,
    heading_prefix: str,
    repo_url: str | None = None,
    *,
    branch: str = "main",
    context: RenderContext | None = None,
) -> str:
    """Render every export of ``path``, in export-table order.

    Parameters
    ----------
    path : Path
        TypeScript or JavaScript source file.
    heading_prefix : str
        Heading prefix for the exported symbols (``"###"``).
    repo_url : str | None, optional
        Repository URL enabling deep links.
    branch : str, optional
        Branch used in deep links.
    context : RenderContext | None, optional
        Reuse an existing context (program cache, linker) instead of
        creating one.

    Returns
    -------
    str
        Concatenated fragments.

    Raises
    ------
    SourceLoadError
        If ``path`` cannot be read.
    NoExportsError
        If ``path`` is not a module.
    """
    if context is None:
        context = RenderContext.create(repo_url, branch=branch)
    module = context.checker.program.get_source_module(path)
    if not module.is_module:
        raise NoExportsError(str(path))
    exports = module.exports or {}
    return "".join(render_symbol(name, symbol, heading_prefix, context) for name, symbol in exports.items())
