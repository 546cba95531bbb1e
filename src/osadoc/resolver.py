"""Resolve a selector into the interface description to document."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional, Protocol

from .binding import BindingError, BundleHandle
from .description import (
    InterfaceDescription,
    Selector,
    SelectorKind,
    attach_commands,
    placeholder_application,
)

__all__ = ["Binding", "ResolutionError", "ResolvedInterface", "resolve"]

_LOGGER = logging.getLogger("osadoc.resolver")


class ResolutionError(RuntimeError):
    """Raised when the selector does not lead to a describable interface."""


class Binding(Protocol):
    def locate_application(self, selector: Selector) -> BundleHandle:
        ...

    def locate_addition(self, selector: Selector) -> BundleHandle:
        ...

    def describe(
        self, handle: BundleHandle, *, name: str
    ) -> InterfaceDescription:
        ...


@dataclass(frozen=True)
class ResolvedInterface:
    description: InterfaceDescription
    display_name: Optional[str]


def resolve(
    selector: Selector,
    *,
    addition: bool,
    binding: Binding,
    logger: logging.Logger = _LOGGER,
) -> ResolvedInterface:
    """Locate and describe the application or addition ``selector`` names.

    Binding failures surface as :class:`ResolutionError`; nothing is
    retried.
    """

    try:
        if addition:
            resolved = _resolve_addition(selector, binding)
        else:
            resolved = _resolve_application(selector, binding)
    except BindingError as exc:
        raise ResolutionError(str(exc)) from exc

    logger.info(
        "Resolved scripting interface",
        extra={
            "selector": selector.kind.value,
            "criterion": selector.criterion,
            "addition": addition,
            "display_name": resolved.display_name,
            "entry_count": len(resolved.description.entries),
        },
    )
    return resolved


def _resolve_application(
    selector: Selector, binding: Binding
) -> ResolvedInterface:
    handle = binding.locate_application(selector)
    if handle.name:
        display_name = handle.name
    elif selector.kind is SelectorKind.NAME:
        display_name = selector.criterion
    else:
        raise ResolutionError("cannot guess application name; use --name")

    description = binding.describe(handle, name=display_name)
    return ResolvedInterface(
        description=attach_commands(description),
        display_name=display_name,
    )


def _resolve_addition(
    selector: Selector, binding: Binding
) -> ResolvedInterface:
    display_name: Optional[str] = None
    if selector.kind is SelectorKind.NAME:
        display_name = selector.criterion

    handle = binding.locate_addition(selector)
    addition = binding.describe(
        handle, name=handle.name or display_name or handle.path.stem
    )
    return ResolvedInterface(
        description=placeholder_application(addition),
        display_name=display_name,
    )
