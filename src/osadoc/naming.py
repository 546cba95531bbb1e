"""Turn scripting terminology into Python identifiers."""

from __future__ import annotations

import keyword
import re

__all__ = ["class_name", "constant_name", "member_name"]

_WORD_SPLIT = re.compile(r"[^0-9A-Za-z_]+")


def _words(name: str) -> list[str]:
    return [word for word in _WORD_SPLIT.split(name.strip()) if word]


def _finish(identifier: str) -> str:
    if not identifier:
        return "_"
    if identifier[0].isdigit():
        identifier = f"_{identifier}"
    if keyword.iskeyword(identifier):
        identifier = f"{identifier}_"
    return identifier


def class_name(name: str) -> str:
    """``"text document"`` -> ``"TextDocument"``; ``"Widget"`` is kept."""

    words = _words(name)
    return _finish("".join(word[0].upper() + word[1:] for word in words))


def member_name(name: str) -> str:
    """``"make new"`` -> ``"make_new"``; ``"in"`` -> ``"in_"``."""

    if name.isidentifier():
        return _finish(name)
    return _finish("_".join(word.lower() for word in _words(name)))


def constant_name(name: str) -> str:
    """``"plain text"`` -> ``"PLAIN_TEXT"``."""

    return _finish("_".join(word.upper() for word in _words(name)))
