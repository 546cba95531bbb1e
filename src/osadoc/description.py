"""Immutable model of a scripting interface and the selectors that find it.

The model is populated by :mod:`osadoc.binding` and consumed by
:mod:`osadoc.synthesizer`; neither side needs the other's internals.
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from enum import Enum
from typing import Optional, Sequence, Union

PLACEHOLDER_NAMESPACE = "TheApplication"
APPLICATION_CLASS = "application"


class SelectorKind(Enum):
    """How the target application or addition is identified."""

    NAME = "name"
    PATH = "path"
    BUNDLE_ID = "bundle_id"
    SIGNATURE = "signature"

    @property
    def flag(self) -> str:
        return f"--{self.value}"

    @classmethod
    def from_flag(cls, flag: str) -> Optional["SelectorKind"]:
        for member in cls:
            if member.flag == flag:
                return member
        return None


@dataclass(frozen=True)
class Selector:
    kind: SelectorKind
    criterion: str


@dataclass(frozen=True)
class ParameterDescription:
    name: str
    description: str = ""
    optional: bool = False


@dataclass(frozen=True)
class MethodDescription:
    """A scriptable command.

    ``result`` is ``None`` when the command returns nothing; otherwise it
    holds the (possibly empty) description of the returned value.
    """

    name: str
    parameters: tuple[ParameterDescription, ...] = ()
    result: Optional[str] = None
    description: str = ""


@dataclass(frozen=True)
class ClassDescription:
    name: str
    parent: Optional[str] = None
    description: Optional[str] = None
    methods: tuple[MethodDescription, ...] = ()


@dataclass(frozen=True)
class EnumerationMember:
    name: str
    description: str
    code: str


@dataclass(frozen=True)
class EnumerationGroup:
    """A group of named constants.

    A ``description`` of ``None`` marks an incidental group that carries no
    description metadata.
    """

    name: str
    description: Optional[str]
    members: tuple[EnumerationMember, ...] = ()


Entry = Union[ClassDescription, EnumerationGroup]


@dataclass(frozen=True)
class InterfaceDescription:
    """Classes and enumeration groups published under ``name``.

    ``entries`` keeps the order of the underlying scripting definition.
    ``commands`` holds operations that are not attached to any class yet.
    """

    name: str
    entries: tuple[Entry, ...] = ()
    commands: tuple[MethodDescription, ...] = ()

    @property
    def classes(self) -> tuple[ClassDescription, ...]:
        return tuple(
            entry
            for entry in self.entries
            if isinstance(entry, ClassDescription)
        )

    @property
    def enumerations(self) -> tuple[EnumerationGroup, ...]:
        return tuple(
            entry
            for entry in self.entries
            if isinstance(entry, EnumerationGroup)
        )


def attach_commands(
    description: InterfaceDescription,
    *,
    class_name: str = APPLICATION_CLASS,
    class_description: Optional[str] = None,
) -> InterfaceDescription:
    """Return ``description`` with its commands attached to ``class_name``.

    Commands already present on the class (by name) are not duplicated. When
    no such class exists, one is created at the front of the entries.
    """

    if not description.commands:
        return description

    entries = list(description.entries)
    for index, entry in enumerate(entries):
        if isinstance(entry, ClassDescription) and entry.name == class_name:
            known = {method.name for method in entry.methods}
            extra = tuple(
                command
                for command in description.commands
                if command.name not in known
            )
            entries[index] = replace(entry, methods=entry.methods + extra)
            break
    else:
        entries.insert(
            0,
            ClassDescription(
                name=class_name,
                description=class_description,
                methods=description.commands,
            ),
        )
    return replace(description, entries=tuple(entries), commands=())


def placeholder_application(
    addition: InterfaceDescription,
    *,
    namespace: str = PLACEHOLDER_NAMESPACE,
) -> InterfaceDescription:
    """Shape a scripting addition's description like an application's.

    Addition commands only make sense once merged into a host application,
    so they are attached to a synthetic application class published under
    the conventional placeholder namespace.
    """

    renamed = replace(addition, name=namespace)
    return attach_commands(
        renamed,
        class_description=(
            "Placeholder for the host application the addition's commands "
            "are merged into."
        ),
    )


def documented_entries(entries: Sequence[Entry]) -> tuple[Entry, ...]:
    """Drop enumeration groups that carry no description metadata."""

    return tuple(
        entry
        for entry in entries
        if not (
            isinstance(entry, EnumerationGroup) and entry.description is None
        )
    )
