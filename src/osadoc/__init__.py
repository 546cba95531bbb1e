"""Document macOS scripting interfaces as ordinary Python APIs."""

from .description import (
    ClassDescription,
    EnumerationGroup,
    EnumerationMember,
    InterfaceDescription,
    MethodDescription,
    ParameterDescription,
    Selector,
    SelectorKind,
)
from .resolver import ResolutionError, ResolvedInterface, resolve
from .synthesizer import synthesize
from .generator import GeneratorError, run_generator
from .cli import main

__all__ = [
    "ClassDescription",
    "EnumerationGroup",
    "EnumerationMember",
    "InterfaceDescription",
    "MethodDescription",
    "ParameterDescription",
    "Selector",
    "SelectorKind",
    "ResolutionError",
    "ResolvedInterface",
    "resolve",
    "synthesize",
    "GeneratorError",
    "run_generator",
    "main",
]
