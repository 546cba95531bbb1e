"""Compose the synthesized module and run the documentation generator."""

from __future__ import annotations

import logging
import os
import re
import shlex
import subprocess
import sysconfig
import tempfile
from importlib import resources
from pathlib import Path
from typing import Callable, List, Optional, Sequence

from jinja2 import Environment

from . import naming
from .config import GeneratorSettings
from .synthesizer import escape_docstring

__all__ = [
    "GeneratorError",
    "UMBRELLA_NAMESPACE",
    "build_command",
    "compose_document",
    "default_template_available",
    "page_stem",
    "publish_pages",
    "render_header",
    "run_generator",
    "template_flags",
    "template_search_dir",
    "title_for",
    "unique_tmp_path",
]

UMBRELLA_NAMESPACE = "OSA"
TEMPLATE_SUBDIR = ("share", "osadoc", "templates")
HOST_EXAMPLE = "Finder"
PAGE_SUFFIX = ".html"
INDEX_FILES = ("index.html", "search.js")

Runner = Callable[..., "subprocess.CompletedProcess[bytes]"]

_HEADER_TEMPLATE = '''\
"""{{ title | doc }}

{% if addition %}
{{ label | doc }} is a scripting addition, not an application. Its commands
only become usable once merged into a host application, for example::

    from osax import OSAX
    {{ variable }} = OSAX(
        {{ addition_name | pyrepr | doc }}, name={{ host | pyrepr }}
    )

The commands are documented on the `Application` placeholder class.
{% else %}
The main class is `Application`, which stands for the running
{{ label | doc }} application. Obtain one with::

    from appscript import app
    {{ variable }} = app({{ label | pyrepr | doc }})
{% endif %}

This module was synthesized by osadoc from a scripting definition; its
declarations carry documentation only. `{{ umbrella }}` is the umbrella
namespace shared by every documented interface and `{{ namespace }}` is the
namespace of this one.
"""


class {{ umbrella }}:
    """Umbrella namespace for Open Scripting Architecture interfaces."""


class {{ namespace }}:
    """Namespace of the {{ label | doc }} scripting interface."""
'''


class GeneratorError(RuntimeError):
    """Raised when the documentation generator does not succeed.

    ``source`` is the synthesized module, left on disk for inspection.
    """

    def __init__(
        self, command: Sequence[str], status: object, *, source: Path
    ) -> None:
        self.command = tuple(command)
        self.status = status
        self.source = source
        super().__init__(
            "Documentation generator failed with status {0}: {1}".format(
                status, shlex.join(self.command)
            )
        )


def title_for(label: str) -> str:
    return f"{label} Scripting API"


def render_header(
    *,
    label: str,
    addition: bool,
    criterion: str,
    namespace: str,
    display_name: Optional[str] = None,
) -> str:
    """Render the module docstring and namespace placeholders."""

    env = Environment(
        autoescape=False,
        keep_trailing_newline=True,
        trim_blocks=True,
        lstrip_blocks=True,
    )
    env.filters["pyrepr"] = repr
    env.filters["doc"] = escape_docstring
    template = env.from_string(_HEADER_TEMPLATE)
    return template.render(
        title=title_for(label),
        label=label,
        addition=addition,
        addition_name=display_name or criterion,
        host=HOST_EXAMPLE,
        variable=naming.member_name(label.lower()),
        umbrella=UMBRELLA_NAMESPACE,
        namespace=naming.class_name(namespace),
    )


def compose_document(header: str, body: str) -> str:
    document = header.rstrip("\n") + "\n"
    if body.strip():
        document += "\n\n" + body.rstrip("\n") + "\n"
    return document


def template_search_dir(data_path: Optional[str] = None) -> Path:
    """Directory probed for a custom generator template."""

    base = data_path or sysconfig.get_path("data")
    return Path(base).joinpath(*TEMPLATE_SUBDIR)


def default_template_available() -> bool:
    """Whether pdoc's own default module template can be loaded."""

    try:
        default = resources.files("pdoc").joinpath(
            "templates", "default", "module.html.jinja2"
        )
    except ModuleNotFoundError:
        return False
    return default.is_file()


def template_flags(
    settings: GeneratorSettings,
    *,
    search_dir: Path,
    default_available: bool,
) -> List[str]:
    """Flags selecting the custom template, when it is needed and present.

    The custom template is only passed when the generator's own default
    template cannot be loaded.
    """

    if not settings.template_flag or not settings.template_file:
        return []
    if default_available:
        return []
    if not (search_dir / settings.template_file).is_file():
        return []
    return [settings.template_flag, str(search_dir)]


def build_command(
    settings: GeneratorSettings,
    *,
    title: str,
    source: Path,
    passthrough: Sequence[str] = (),
    template_args: Sequence[str] = (),
) -> List[str]:
    command = [*settings.command, *settings.flags]
    if settings.output_dir is not None and settings.output_flag:
        command.extend([settings.output_flag, str(settings.output_dir)])
    if settings.title_flag:
        command.extend([settings.title_flag, title])
    if settings.main_flag:
        command.extend([settings.main_flag, UMBRELLA_NAMESPACE])
    command.extend(template_args)
    command.extend(passthrough)
    command.append(str(source))
    return command


def page_stem(label: str) -> str:
    """``label`` reduced to letters, digits, ``_`` and ``-``."""

    return re.sub(r"[^\w-]+", "_", label).strip("_") or "osadoc"


def publish_pages(
    output_dir: Path, *, generated: str, stable: str
) -> Optional[Path]:
    """Rename the page written for module ``generated`` to ``stable``.

    pdoc names each page after its module file. References in the page and
    in the index and search files are rewritten to the new name. Returns
    the page, or ``None`` when no page was written for ``generated``.
    """

    page = output_dir / f"{generated}{PAGE_SUFFIX}"
    if not page.is_file():
        return None
    target = output_dir / f"{stable}{PAGE_SUFFIX}"
    page.replace(target)
    for path in (target, *(output_dir / name for name in INDEX_FILES)):
        if not path.is_file():
            continue
        text = path.read_text(encoding="utf-8")
        if generated in text:
            path.write_text(
                text.replace(generated, stable), encoding="utf-8"
            )
    return target


def unique_tmp_path(
    basename: str,
    *,
    directory: Optional[Path] = None,
    extension: str = ".py",
) -> Path:
    """Create and return ``<basename>-<counter>-<pid><extension>``.

    The counter starts at 0 and grows until a name is free. The file is
    created exclusively, so concurrent runs never share a path.
    """

    target_dir = Path(directory or tempfile.gettempdir())
    stem = page_stem(basename)
    pid = os.getpid()
    counter = 0
    while True:
        candidate = target_dir / f"{stem}-{counter}-{pid}{extension}"
        try:
            candidate.touch(exist_ok=False)
        except FileExistsError:
            counter += 1
            continue
        return candidate


def run_generator(
    document: str,
    *,
    label: str,
    settings: GeneratorSettings,
    passthrough: Sequence[str] = (),
    template_args: Sequence[str] = (),
    logger: logging.Logger,
    runner: Runner = subprocess.run,
    directory: Optional[Path] = None,
) -> List[str]:
    """Write ``document`` to a temporary module and run the generator on it.

    Returns the command that ran. On failure the temporary module is kept
    and :class:`GeneratorError` is raised. On success the page in the
    output directory is renamed after ``label``.
    """

    source = unique_tmp_path(
        label, directory=directory, extension=settings.extension
    )
    source.write_text(document, encoding="utf-8")
    command = build_command(
        settings,
        title=title_for(label),
        source=source,
        passthrough=passthrough,
        template_args=template_args,
    )

    logger.info(
        "Invoking documentation generator",
        extra={"command": command, "source": source},
    )
    try:
        completed = runner(command, check=False)
    except OSError as exc:
        logger.error(
            "Documentation generator could not start",
            extra={"source": source, "error": str(exc)},
        )
        raise GeneratorError(command, exc, source=source) from exc

    if completed.returncode != 0:
        logger.error(
            "Documentation generator failed",
            extra={"source": source, "status": completed.returncode},
        )
        raise GeneratorError(command, completed.returncode, source=source)

    source.unlink()
    page = None
    if settings.output_dir is not None:
        page = publish_pages(
            settings.output_dir, generated=source.stem, stable=page_stem(label)
        )
    logger.info(
        "Documentation generated",
        extra={"title": title_for(label), "page": page},
    )
    return command
