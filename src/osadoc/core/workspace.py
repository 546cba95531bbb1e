"""Locate and prepare the osadoc data directory."""

from __future__ import annotations

import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterator, Mapping


WORKSPACE_ENV = "OSADOC_DATA_HOME"
DEFAULT_WORKSPACE = Path.home() / ".osadoc-data"
SUBDIRECTORIES = ("config", "logs")


class WorkspaceError(RuntimeError):
    """Raised when the workspace layout cannot be prepared."""


@dataclass(frozen=True)
class WorkspaceLayout:
    """Where osadoc keeps its config file and logs.

    ``created`` names the directories (``"home"`` included) that did not
    exist before the layout was prepared.
    """

    home: Path
    created: frozenset[str] = field(default_factory=frozenset)

    def path_for(self, key: str) -> Path:
        if key not in SUBDIRECTORIES:
            raise KeyError(f"Unknown workspace directory '{key}'.")
        return self.home / key

    def __iter__(self) -> Iterator[tuple[str, Path]]:
        return ((key, self.home / key) for key in SUBDIRECTORIES)


def ensure_workspace(
    *,
    env: Mapping[str, str] | None = None,
    path: Path | None = None,
    create: bool = True,
) -> WorkspaceLayout:
    """Return the workspace layout, creating directories when asked.

    ``path`` wins over ``OSADOC_DATA_HOME``. When neither is given and the
    home directory is not writable, a directory under the system temporary
    directory is used instead.
    """

    env_map = os.environ if env is None else env
    requested = path
    if requested is None:
        custom = (env_map.get(WORKSPACE_ENV) or "").strip()
        requested = Path(custom) if custom else None

    base = _absolute(requested or DEFAULT_WORKSPACE)
    if not create:
        _check_not_file(base)
        return WorkspaceLayout(home=base)

    try:
        return _prepare(base)
    except PermissionError as exc:
        if requested is not None:
            raise WorkspaceError(
                f"Unable to prepare workspace at {base}"
            ) from exc

    fallback = _fallback_base()
    try:
        return _prepare(fallback)
    except PermissionError as exc:
        raise WorkspaceError(
            f"Unable to prepare workspace at {base} or {fallback}"
        ) from exc


def _absolute(path: Path) -> Path:
    expanded = path.expanduser()
    try:
        return expanded.resolve()
    except OSError:
        return expanded.absolute()


def _fallback_base() -> Path:
    return Path(tempfile.gettempdir()) / "osadoc-data"


def _prepare(base: Path) -> WorkspaceLayout:
    created = set()
    if _ensure_dir(base):
        created.add("home")
    for key in SUBDIRECTORIES:
        if _ensure_dir(base / key):
            created.add(key)
    return WorkspaceLayout(home=base, created=frozenset(created))


def _check_not_file(path: Path) -> None:
    if path.exists() and not path.is_dir():
        raise WorkspaceError(f"Workspace path is not a directory: {path}")


def _ensure_dir(path: Path) -> bool:
    """Create ``path`` (owner-only) and report whether it was missing."""

    _check_not_file(path)
    missing = not path.exists()
    path.mkdir(mode=0o700, parents=True, exist_ok=True)
    return missing
