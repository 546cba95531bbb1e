"""Render an interface description as a Python stub module.

The stubs carry no behaviour; they exist so a regular documentation
generator can present the scripting interface as an ordinary API.
"""

from __future__ import annotations

from typing import Iterable, List, Sequence

from . import naming
from .description import (
    ClassDescription,
    EnumerationGroup,
    InterfaceDescription,
    MethodDescription,
    ParameterDescription,
    documented_entries,
)

__all__ = [
    "CLASS_PLACEHOLDER",
    "DOC_PLACEHOLDER",
    "escape_docstring",
    "render_class",
    "render_enumeration",
    "render_method",
    "signatures",
    "synthesize",
]

CLASS_PLACEHOLDER = "n/a"
DOC_PLACEHOLDER = "Documentation not available."
INDENT = "    "


def synthesize(description: InterfaceDescription) -> str:
    """Return the stub module body for ``description``.

    Entries are rendered in their original order. Enumeration groups that
    carry no description metadata are skipped.
    """

    entries = documented_entries(description.entries)
    blocks: List[str] = []

    forward = _forward_declarations(entries)
    if forward:
        blocks.append("\n".join(forward) + "\n")

    for entry in entries:
        if isinstance(entry, ClassDescription):
            blocks.append(render_class(entry))
        else:
            blocks.append(render_enumeration(entry))

    return "\n\n".join(blocks)


def render_class(cls: ClassDescription) -> str:
    name = naming.class_name(cls.name)
    if cls.parent:
        header = f"class {name}({naming.class_name(cls.parent)}):"
    else:
        header = f"class {name}:"
    lines = [header]
    lines.extend(_docstring(cls.description or CLASS_PLACEHOLDER, INDENT))
    for method in cls.methods:
        lines.append("")
        lines.extend(render_method(method).splitlines())
    return "\n".join(lines) + "\n"


def render_method(method: MethodDescription) -> str:
    """Render one stub method, indented for a class body."""

    name = naming.member_name(method.name)
    params = _parameter_names(method.parameters)
    inner = INDENT * 2

    body: List[str] = [method.description.strip() or DOC_PLACEHOLDER, ""]
    body.append("Usage::")
    body.append("")
    for signature in signatures(name, method.parameters):
        body.append(f"{INDENT}{signature}")
    doc_lines = _parameter_docs(params, method.parameters)
    if method.result is not None:
        doc_lines.append(
            f":returns: {method.result.strip() or DOC_PLACEHOLDER}"
        )
    if doc_lines:
        body.append("")
        body.extend(doc_lines)

    lines = [f"{INDENT}def {name}({_def_arguments(params, method)}):"]
    lines.extend(_docstring("\n".join(body), inner))
    return "\n".join(lines) + "\n"


def signatures(
    name: str, parameters: Sequence[ParameterDescription]
) -> List[str]:
    """Return the call forms shown for a method.

    The first form passes every parameter positionally. The second passes
    optional parameters by keyword and is only listed when it differs.
    """

    names = _parameter_names(parameters)
    positional = f"{name}({', '.join(names)})"
    required = [
        arg for arg, param in zip(names, parameters) if not param.optional
    ]
    optional = [
        f"{arg}=value"
        for arg, param in zip(names, parameters)
        if param.optional
    ]
    keyword = f"{name}({', '.join(required + optional)})"
    if keyword == positional:
        return [positional]
    return [positional, keyword]


def render_enumeration(group: EnumerationGroup) -> str:
    lines = [f"class {naming.class_name(group.name)}:"]
    lines.extend(_docstring(group.description or DOC_PLACEHOLDER, INDENT))
    for member in group.members:
        lines.append("")
        lines.append(
            f"{INDENT}{naming.constant_name(member.name)} = {member.code!r}"
        )
        lines.extend(
            _docstring(member.description.strip() or DOC_PLACEHOLDER, INDENT)
        )
    return "\n".join(lines) + "\n"


def _def_arguments(names: Sequence[str], method: MethodDescription) -> str:
    args = ["self"]
    seen_optional = False
    keyword_only = False
    for arg, param in zip(names, method.parameters):
        if param.optional:
            seen_optional = True
            args.append(f"{arg}=None")
            continue
        if seen_optional and not keyword_only:
            # A required parameter cannot follow a defaulted positional one.
            args.append("*")
            keyword_only = True
        args.append(arg)
    return ", ".join(args)


def _parameter_names(parameters: Iterable[ParameterDescription]) -> List[str]:
    names: List[str] = []
    for param in parameters:
        candidate = naming.member_name(param.name)
        if candidate == "self":
            candidate = "self_"
        base = candidate
        suffix = 2
        while candidate in names:
            candidate = f"{base}_{suffix}"
            suffix += 1
        names.append(candidate)
    return names


def _parameter_docs(
    names: Sequence[str], parameters: Sequence[ParameterDescription]
) -> List[str]:
    lines = []
    for arg, param in zip(names, parameters):
        text = param.description.strip() or DOC_PLACEHOLDER
        if param.optional:
            text = f"{text} (optional)"
        lines.append(f":param {arg}: {text}")
    return lines


def _forward_declarations(entries: Iterable[object]) -> List[str]:
    """Declare parents that are used before their class statement."""

    declared: set[str] = set()
    pending: List[str] = []
    for entry in entries:
        if isinstance(entry, ClassDescription):
            if entry.parent:
                parent = naming.class_name(entry.parent)
                if parent not in declared and parent not in pending:
                    pending.append(parent)
            declared.add(naming.class_name(entry.name))
        elif isinstance(entry, EnumerationGroup):
            declared.add(naming.class_name(entry.name))
    if not pending:
        return []
    lines = ["# Parent classes declared later in this module or elsewhere."]
    lines.extend(
        f"{parent} = type({parent!r}, (), {{'__module__': __name__}})"
        for parent in pending
    )
    return lines


def escape_docstring(text: str) -> str:
    """Make ``text`` safe to place between triple double quotes."""

    escaped = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    if escaped.endswith('"'):
        escaped = escaped[:-1] + '\\"'
    return escaped


def _docstring(text: str, indent: str) -> List[str]:
    lines = escape_docstring(text).splitlines() or [""]
    if len(lines) == 1:
        return [f'{indent}"""{lines[0]}"""']
    out = [f'{indent}"""{lines[0]}']
    out.extend(f"{indent}{line}" if line else "" for line in lines[1:])
    out.append(f'{indent}"""')
    return out
