from __future__ import annotations

from pathlib import Path

import pytest

from osadoc.binding import BindingError, BundleHandle
from osadoc.description import (
    APPLICATION_CLASS,
    PLACEHOLDER_NAMESPACE,
    ClassDescription,
    InterfaceDescription,
    MethodDescription,
    Selector,
    SelectorKind,
)
from osadoc.resolver import ResolutionError, resolve


class FakeBinding:
    def __init__(self, handle: BundleHandle, *, fail: bool = False) -> None:
        self.handle = handle
        self.fail = fail
        self.located: list[tuple[str, Selector]] = []
        self.described: list[tuple[BundleHandle, str]] = []

    def locate_application(self, selector: Selector) -> BundleHandle:
        self.located.append(("application", selector))
        if self.fail:
            raise BindingError("No application found for --name 'Nope'.")
        return self.handle

    def locate_addition(self, selector: Selector) -> BundleHandle:
        self.located.append(("addition", selector))
        if self.fail:
            raise BindingError("No scripting addition found.")
        return self.handle

    def describe(
        self, handle: BundleHandle, *, name: str
    ) -> InterfaceDescription:
        self.described.append((handle, name))
        return InterfaceDescription(
            name=name,
            entries=(ClassDescription(name="window"),),
            commands=(MethodDescription(name="beep"),),
        )


def test_resolve_application_uses_bundle_name(dummy_logger):
    binding = FakeBinding(BundleHandle(Path("/Apps/TE.app"), "TextEdit"))

    resolved = resolve(
        Selector(SelectorKind.BUNDLE_ID, "com.apple.TextEdit"),
        addition=False,
        binding=binding,
        logger=dummy_logger,
    )

    assert resolved.display_name == "TextEdit"
    assert resolved.description.name == "TextEdit"
    assert binding.described[0][1] == "TextEdit"
    app_class = resolved.description.classes[0]
    assert app_class.name == APPLICATION_CLASS
    assert [method.name for method in app_class.methods] == ["beep"]
    assert resolved.description.commands == ()
    assert dummy_logger.messages("info") == ["Resolved scripting interface"]


def test_resolve_application_falls_back_to_name_criterion(dummy_logger):
    binding = FakeBinding(BundleHandle(Path("/Apps/Thing.app")))

    resolved = resolve(
        Selector(SelectorKind.NAME, "Thing"),
        addition=False,
        binding=binding,
        logger=dummy_logger,
    )

    assert resolved.display_name == "Thing"


@pytest.mark.parametrize(
    "kind, criterion",
    [
        (SelectorKind.PATH, "/Apps/Thing.app"),
        (SelectorKind.BUNDLE_ID, "com.example.thing"),
        (SelectorKind.SIGNATURE, "thng"),
    ],
)
def test_resolve_application_without_name_fails(
    dummy_logger, kind, criterion
):
    binding = FakeBinding(BundleHandle(Path(criterion)))

    with pytest.raises(ResolutionError, match="use --name"):
        resolve(
            Selector(kind, criterion),
            addition=False,
            binding=binding,
            logger=dummy_logger,
        )
    assert binding.described == []


def test_resolve_addition_uses_placeholder_namespace(dummy_logger):
    handle = BundleHandle(Path("/Library/ScriptingAdditions/Std.osax"))
    binding = FakeBinding(handle)

    resolved = resolve(
        Selector(SelectorKind.NAME, "Std"),
        addition=True,
        binding=binding,
        logger=dummy_logger,
    )

    assert binding.located == [
        ("addition", Selector(SelectorKind.NAME, "Std"))
    ]
    assert resolved.display_name == "Std"
    assert resolved.description.name == PLACEHOLDER_NAMESPACE
    app_class = resolved.description.classes[0]
    assert app_class.name == APPLICATION_CLASS
    assert app_class.description.startswith("Placeholder")
    assert [method.name for method in app_class.methods] == ["beep"]


def test_resolve_addition_without_name_has_no_display_name(dummy_logger):
    handle = BundleHandle(Path("/Library/ScriptingAdditions/Std.osax"))
    binding = FakeBinding(handle)

    resolved = resolve(
        Selector(SelectorKind.BUNDLE_ID, "com.example.std"),
        addition=True,
        binding=binding,
        logger=dummy_logger,
    )

    assert resolved.display_name is None
    assert binding.described == [(handle, "Std")]


def test_binding_errors_become_resolution_errors(dummy_logger):
    binding = FakeBinding(BundleHandle(Path("/nowhere")), fail=True)

    with pytest.raises(ResolutionError, match="Nope") as excinfo:
        resolve(
            Selector(SelectorKind.NAME, "Nope"),
            addition=False,
            binding=binding,
            logger=dummy_logger,
        )

    assert isinstance(excinfo.value.__cause__, BindingError)
    assert dummy_logger.records == []
