"""TOML config files: reading, layering over defaults, packaged templates."""

from __future__ import annotations

import copy
import tomllib
from importlib import resources
from pathlib import Path
from typing import Any, Mapping

__all__ = [
    "TomlConfigError",
    "load_toml",
    "overlay",
    "write_template",
]


class TomlConfigError(RuntimeError):
    """Raised when a TOML config cannot be read, validated or written."""


def load_toml(path: Path) -> dict[str, Any]:
    try:
        with path.open("rb") as handle:
            return tomllib.load(handle)
    except FileNotFoundError as exc:
        raise TomlConfigError(f"Config file not found: {path}") from exc
    except tomllib.TOMLDecodeError as exc:
        raise TomlConfigError(f"Failed to parse {path}: {exc}") from exc


def overlay(
    defaults: Mapping[str, Any], loaded: Mapping[str, Any], *, _prefix=""
) -> dict[str, Any]:
    """Return a copy of ``defaults`` with ``loaded`` values laid over it.

    Tables merge key by key; every key of ``loaded`` must already exist in
    ``defaults``.
    """

    result = copy.deepcopy(dict(defaults))
    for key, value in loaded.items():
        dotted = _prefix + key
        if key not in result:
            raise TomlConfigError(f"Unknown configuration key '{dotted}'.")
        if isinstance(result[key], Mapping):
            if not isinstance(value, Mapping):
                raise TomlConfigError(
                    f"'{dotted}' must be a table, not "
                    f"{type(value).__name__}."
                )
            result[key] = overlay(result[key], value, _prefix=dotted + ".")
        else:
            result[key] = value
    return result


def write_template(
    path: Path, *, package: str, resource: str, overwrite: bool = False
) -> Path:
    """Copy the packaged ``resource`` of ``package`` to ``path``."""

    try:
        text = resources.files(package).joinpath(resource).read_text(
            encoding="utf-8"
        )
    except FileNotFoundError as exc:
        raise TomlConfigError(
            f"Packaged template {package}/{resource} is missing."
        ) from exc

    if path.exists() and not overwrite:
        raise TomlConfigError(
            f"Config already exists: {path} (use --force to replace it)"
        )
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8")
    return path
