"""Locate scriptable bundles on macOS and describe their interface.

Applications are found through appscript's ``aem.findapp`` helpers and
scripting additions through the standard ``ScriptingAdditions`` folders.
The scripting definition itself is produced by the system ``sdef`` tool and
mapped onto :mod:`osadoc.description`.
"""

from __future__ import annotations

import importlib
import plistlib
import re
import subprocess
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple
from urllib.parse import unquote, urlparse
from xml.etree import ElementTree
from xml.parsers.expat import ExpatError

from .description import (
    ClassDescription,
    Entry,
    EnumerationGroup,
    EnumerationMember,
    InterfaceDescription,
    MethodDescription,
    ParameterDescription,
    Selector,
    SelectorKind,
)

__all__ = [
    "ADDITION_DIRS",
    "BindingError",
    "BundleHandle",
    "DependencyError",
    "ScriptingBinding",
    "bundle_name",
    "description_from_sdef",
]

ADDITION_DIRS: Tuple[Path, ...] = (
    Path.home() / "Library" / "ScriptingAdditions",
    Path("/Library/ScriptingAdditions"),
    Path("/System/Library/ScriptingAdditions"),
)
ADDITION_SUFFIX = ".osax"
DIRECT_PARAMETER = "direct"

# Apple's sdef files declare the 2003 namespace.
XINCLUDE_NAMESPACES = (
    "http://www.w3.org/2001/XInclude",
    "http://www.w3.org/2003/XInclude",
)
_INCLUDE_TAGS = frozenset(f"{{{ns}}}include" for ns in XINCLUDE_NAMESPACES)
_MAX_INCLUDE_DEPTH = 8
_XPOINTER = re.compile(r"^xpointer\(\s*((?:/[\w.-]+)+)\s*\)$")

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]


class BindingError(RuntimeError):
    """Raised when a bundle cannot be located or described."""


class DependencyError(BindingError):
    """Raised when an optional runtime dependency is unavailable."""


@dataclass(frozen=True)
class BundleHandle:
    """A located application or scripting-addition bundle."""

    path: Path
    name: Optional[str] = None


class ScriptingBinding:
    """Default adapter to the macOS scripting layer."""

    def __init__(
        self,
        *,
        sdef_command: Sequence[str] = ("sdef",),
        addition_dirs: Sequence[Path] = ADDITION_DIRS,
        runner: Runner = subprocess.run,
        findapp: Any = None,
    ) -> None:
        self._sdef_command = tuple(sdef_command)
        self._addition_dirs = tuple(addition_dirs)
        self._runner = runner
        self._findapp = findapp

    def locate_application(self, selector: Selector) -> BundleHandle:
        if selector.kind is SelectorKind.PATH:
            return _handle_for(_existing_path(selector.criterion))

        findapp = self._load_findapp()
        lookups = {
            SelectorKind.NAME: "byname",
            SelectorKind.BUNDLE_ID: "byid",
            SelectorKind.SIGNATURE: "bycreator",
        }
        if selector.kind is SelectorKind.SIGNATURE:
            _check_signature(selector.criterion)
        lookup = getattr(findapp, lookups[selector.kind])
        not_found = getattr(findapp, "ApplicationNotFoundError", LookupError)
        try:
            located = lookup(selector.criterion)
        except not_found as exc:
            raise BindingError(
                "No application found for {0} {1!r}.".format(
                    selector.kind.flag, selector.criterion
                )
            ) from exc
        return _handle_for(Path(located))

    def locate_addition(self, selector: Selector) -> BundleHandle:
        if selector.kind is SelectorKind.PATH:
            return _handle_for(_existing_path(selector.criterion))

        if selector.kind is SelectorKind.SIGNATURE:
            _check_signature(selector.criterion)

        for bundle in self._iter_additions():
            if _addition_matches(bundle, selector):
                return _handle_for(bundle)

        searched = ", ".join(str(path) for path in self._addition_dirs)
        raise BindingError(
            "No scripting addition found for {0} {1!r} (searched {2}).".format(
                selector.kind.flag, selector.criterion, searched
            )
        )

    def describe(
        self, handle: BundleHandle, *, name: str
    ) -> InterfaceDescription:
        """Return the interface published by the bundle at ``handle``.

        Relative includes resolve against the bundle's resources folder,
        where the scripting definition lives.
        """

        return description_from_sdef(
            self.scripting_definition(handle.path),
            name=name,
            base_dir=handle.path / "Contents" / "Resources",
        )

    def scripting_definition(self, path: Path) -> bytes:
        command = [*self._sdef_command, str(path)]
        try:
            completed = self._runner(command, capture_output=True, check=False)
        except FileNotFoundError as exc:
            raise BindingError(
                "The '{0}' command is not available; scripting definitions "
                "can only be read on macOS.".format(self._sdef_command[0])
            ) from exc
        if completed.returncode != 0:
            detail = (completed.stderr or b"").decode("utf-8", "replace")
            raise BindingError(
                "Could not read the scripting definition of {0}: {1}".format(
                    path, detail.strip() or f"exit {completed.returncode}"
                )
            )
        if not (completed.stdout or b"").strip():
            raise BindingError(f"{path} has no scripting definition.")
        return completed.stdout

    def _load_findapp(self) -> Any:
        if self._findapp is None:
            try:
                self._findapp = importlib.import_module("aem.findapp")
            except ImportError as exc:
                raise DependencyError(
                    "Optional dependency 'appscript' is required to locate "
                    "applications by name, bundle id or signature. Install "
                    "it with `pip install appscript` (macOS only) or pass "
                    "--path instead."
                ) from exc
        return self._findapp

    def _iter_additions(self):
        for directory in self._addition_dirs:
            if not directory.is_dir():
                continue
            for candidate in sorted(directory.iterdir()):
                if candidate.suffix.lower() == ADDITION_SUFFIX:
                    yield candidate


def bundle_name(path: Path) -> Optional[str]:
    """Return the human readable name recorded in a bundle's Info.plist."""

    info = _bundle_info(path)
    for key in ("CFBundleDisplayName", "CFBundleName"):
        value = info.get(key)
        if isinstance(value, str) and value.strip():
            return value.strip()
    return None


def description_from_sdef(
    data: bytes, *, name: str, base_dir: Optional[Path] = None
) -> InterfaceDescription:
    """Map a scripting definition document onto the interface model.

    ``xi:include`` elements are replaced by the document they reference;
    relative ``href`` values resolve against ``base_dir``. Commands are
    returned unattached; classes list the commands named by their
    ``responds-to`` elements.
    """

    try:
        root = ElementTree.fromstring(data)
    except ElementTree.ParseError as exc:
        raise BindingError(f"Malformed scripting definition: {exc}") from exc
    _expand_includes(root, base_dir)

    suites = list(root.iter("suite"))
    commands: Dict[str, MethodDescription] = {}
    for suite in suites:
        for element in suite.iter("command"):
            if _is_yes(element.get("hidden")):
                continue
            command = _command(element)
            commands.setdefault(command.name, command)

    builders: Dict[Tuple[str, str], _EntryBuilder] = {}
    for suite in suites:
        for element in suite:
            if element.tag in ("class", "class-extension"):
                _collect_class(builders, element)
            elif element.tag == "enumeration":
                key = ("enumeration", element.get("name", ""))
                if key not in builders:
                    builders[key] = _EntryBuilder(element=element)

    entries = tuple(
        builder.build(key[0], key[1], commands)
        for key, builder in builders.items()
    )
    return InterfaceDescription(
        name=name, entries=entries, commands=tuple(commands.values())
    )


@dataclass
class _EntryBuilder:
    element: Optional[ElementTree.Element] = None
    parent: Optional[str] = None
    description: Optional[str] = None
    responds_to: List[str] = field(default_factory=list)

    def build(
        self,
        kind: str,
        name: str,
        commands: Dict[str, MethodDescription],
    ) -> Entry:
        if kind == "enumeration":
            return _enumeration(self.element)
        methods = []
        for command_name in dict.fromkeys(self.responds_to):
            if command_name in commands:
                methods.append(commands[command_name])
        return ClassDescription(
            name=name,
            parent=self.parent,
            description=self.description,
            methods=tuple(methods),
        )


def _collect_class(
    builders: Dict[Tuple[str, str], _EntryBuilder],
    element: ElementTree.Element,
) -> None:
    if _is_yes(element.get("hidden")):
        return
    if element.tag == "class":
        name = element.get("name", "")
    else:
        name = element.get("extends", "")
    builder = builders.setdefault(("class", name), _EntryBuilder())
    if element.tag == "class":
        builder.parent = builder.parent or element.get("inherits")
        if builder.description is None:
            builder.description = element.get("description")
    for child in element.iter("responds-to"):
        target = child.get("command") or child.get("name")
        if target:
            builder.responds_to.append(target)


def _command(element: ElementTree.Element) -> MethodDescription:
    parameters: List[ParameterDescription] = []
    direct = element.find("direct-parameter")
    if direct is not None:
        parameters.append(
            ParameterDescription(
                name=DIRECT_PARAMETER,
                description=direct.get("description", ""),
                optional=_is_yes(direct.get("optional")),
            )
        )
    for param in element.findall("parameter"):
        if _is_yes(param.get("hidden")):
            continue
        parameters.append(
            ParameterDescription(
                name=param.get("name", ""),
                description=param.get("description", ""),
                optional=_is_yes(param.get("optional")),
            )
        )
    result = element.find("result")
    return MethodDescription(
        name=element.get("name", ""),
        parameters=tuple(parameters),
        result=None if result is None else result.get("description", ""),
        description=element.get("description", ""),
    )


def _enumeration(element: ElementTree.Element) -> EnumerationGroup:
    members = tuple(
        EnumerationMember(
            name=child.get("name", ""),
            description=child.get("description", ""),
            code=child.get("code", ""),
        )
        for child in element.findall("enumerator")
    )
    description: Optional[str] = element.get("description", "")
    if _is_yes(element.get("hidden")):
        description = None
    return EnumerationGroup(
        name=element.get("name", ""),
        description=description,
        members=members,
    )


def _expand_includes(
    element: ElementTree.Element,
    base_dir: Optional[Path],
    depth: int = 0,
) -> None:
    expanded: List[ElementTree.Element] = []
    for child in element:
        if child.tag not in _INCLUDE_TAGS:
            _expand_includes(child, base_dir, depth)
            expanded.append(child)
            continue
        if depth >= _MAX_INCLUDE_DEPTH:
            raise BindingError(
                "Scripting definition includes are nested more than "
                f"{_MAX_INCLUDE_DEPTH} levels deep."
            )
        if child.get("parse", "xml") != "xml":
            raise BindingError(
                "Unsupported include parse mode "
                f"{child.get('parse')!r}; only 'xml' is understood."
            )
        path = _include_path(child.get("href", ""), base_dir)
        included = _load_include(path)
        _expand_includes(included, path.parent, depth + 1)
        expanded.extend(_select(included, child.get("xpointer")))
    element[:] = expanded


def _include_path(href: str, base_dir: Optional[Path]) -> Path:
    if not href.strip():
        raise BindingError("Scripting definition include has no href.")
    parsed = urlparse(href)
    if parsed.scheme == "file":
        path = Path(unquote(parsed.path))
    elif parsed.scheme:
        raise BindingError(f"Unsupported include location: {href}")
    else:
        path = Path(unquote(href))
    if not path.is_absolute() and base_dir is not None:
        path = base_dir / path
    return path


def _load_include(path: Path) -> ElementTree.Element:
    try:
        return ElementTree.parse(path).getroot()
    except ElementTree.ParseError as exc:
        raise BindingError(
            f"Malformed scripting definition include {path}: {exc}"
        ) from exc
    except OSError as exc:
        raise BindingError(
            f"Could not resolve scripting definition include {path}: {exc}"
        ) from exc


def _select(
    root: ElementTree.Element, pointer: Optional[str]
) -> List[ElementTree.Element]:
    """Elements of ``root`` addressed by an ``xpointer(/a/b)`` path."""

    if pointer is None:
        return [root]
    match = _XPOINTER.match(pointer.strip())
    if match is None:
        raise BindingError(f"Unsupported include pointer: {pointer}")
    first, *rest = match.group(1).strip("/").split("/")
    if first != root.tag:
        return []
    if not rest:
        return [root]
    return root.findall("/".join(rest))


def _is_yes(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("yes", "true")


def _existing_path(raw: str) -> Path:
    path = Path(raw).expanduser()
    if not path.exists():
        raise BindingError(f"No such bundle: {path}")
    return path


def _handle_for(path: Path) -> BundleHandle:
    return BundleHandle(path=path, name=bundle_name(path))


def _check_signature(criterion: str) -> None:
    if len(criterion) != 4:
        raise BindingError(
            f"A signature is a four-character code, got {criterion!r}."
        )


def _bundle_info(path: Path) -> Dict[str, Any]:
    plist = path / "Contents" / "Info.plist"
    try:
        with plist.open("rb") as handle:
            info = plistlib.load(handle)
    except (OSError, ValueError, ExpatError):
        return {}
    return info if isinstance(info, dict) else {}


def _addition_matches(bundle: Path, selector: Selector) -> bool:
    if selector.kind is SelectorKind.NAME:
        return bundle.stem.lower() == selector.criterion.lower()
    key = {
        SelectorKind.BUNDLE_ID: "CFBundleIdentifier",
        SelectorKind.SIGNATURE: "CFBundleSignature",
    }[selector.kind]
    return _bundle_info(bundle).get(key) == selector.criterion
