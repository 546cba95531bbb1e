"""Command-line entry point for osadoc."""

from __future__ import annotations

import argparse
import logging
import sys
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Sequence

from rich.console import Console
from rich.markup import escape

from .binding import ScriptingBinding
from .config import (
    CONFIG_FILENAME,
    ConfigError,
    GeneratorSettings,
    load_config,
    write_default_config,
)
from .core.logging import configure_logger
from .core.workspace import WorkspaceError, ensure_workspace
from .description import Selector, SelectorKind
from .generator import (
    GeneratorError,
    compose_document,
    default_template_available,
    render_header,
    run_generator,
    template_flags,
    template_search_dir,
)
from .resolver import Binding, ResolutionError, resolve
from .synthesizer import synthesize

PROG = "osadoc"
USAGE = """\
Usage: osadoc [--addition] [--config PATH] [--workspace PATH] [--verbose]
              (--name|--path|--bundle_id|--signature) CRITERION
              [generator-options...]
       osadoc config init [--path PATH] [--workspace PATH] [--force]

Synthesize a Python module describing the scripting interface of an
application (or, with --addition, a scripting addition) and render it with
the configured documentation generator. Options after the criterion that
osadoc does not recognize are passed to the generator unchanged.
"""

_VALUE_OPTIONS = ("--config", "--workspace")


class UsageError(ValueError):
    """Raised when the command line cannot be understood."""


@dataclass(frozen=True)
class Invocation:
    """Parsed command line of a documentation run."""

    selector: Selector
    addition: bool = False
    passthrough: tuple[str, ...] = ()
    config_path: Optional[Path] = None
    workspace_path: Optional[Path] = None
    verbose: bool = False


def parse_arguments(argv: Sequence[str]) -> Invocation:
    """Parse ``argv`` into an :class:`Invocation`.

    Own options may appear in any order until both a selector and its
    criterion are known; from then on the first unrecognized token starts
    the generator options, which are kept verbatim.
    """

    args = list(argv)
    if len(args) < 2:
        raise UsageError("expected a selector and a criterion")

    selector: Optional[Selector] = None
    flags: set[str] = set()
    values: dict[str, str] = {}
    index = 0
    while index < len(args):
        token = args[index]
        kind = SelectorKind.from_flag(token)
        if kind is not None:
            if selector is not None:
                raise UsageError("only one selector may be given")
            if index + 1 >= len(args):
                raise UsageError(f"{token} requires a criterion")
            selector = Selector(kind=kind, criterion=args[index + 1])
            index += 2
            continue
        if token in ("--addition", "--verbose"):
            if token in flags:
                raise UsageError(f"{token} given more than once")
            flags.add(token)
            index += 1
            continue
        if token in _VALUE_OPTIONS:
            if token in values:
                raise UsageError(f"{token} given more than once")
            if index + 1 >= len(args):
                raise UsageError(f"{token} requires a value")
            values[token] = args[index + 1]
            index += 2
            continue
        if selector is None:
            raise UsageError(f"unexpected argument {token!r}")
        break

    if selector is None:
        raise UsageError(
            "one of --name, --path, --bundle_id or --signature is required"
        )

    return Invocation(
        selector=selector,
        addition="--addition" in flags,
        passthrough=tuple(args[index:]),
        config_path=_optional_path(values.get("--config")),
        workspace_path=_optional_path(values.get("--workspace")),
        verbose="--verbose" in flags,
    )


def main(argv: Optional[Sequence[str]] = None) -> int:
    """Run osadoc on ``argv`` and return the process exit code."""

    args = sys.argv[1:] if argv is None else list(argv)
    first = args[0] if args else None
    if first in ("-h", "--help"):
        sys.stdout.write(USAGE)
        return 0
    if first == "config":
        return _config_command(args[1:])

    try:
        invocation = parse_arguments(args)
    except UsageError as exc:
        sys.stderr.write(f"{PROG}: {exc}\n\n{USAGE}")
        return 1

    try:
        loaded = load_config(
            config_path=invocation.config_path,
            workspace_path=invocation.workspace_path,
        )
    except ConfigError as exc:
        _print_error(str(exc))
        return 1

    logger, log_path = configure_logger(
        PROG,
        log_dir=loaded.layout.path_for("logs"),
        level=loaded.config.log_level,
        verbose=invocation.verbose,
    )
    logger.debug(
        "Starting osadoc run",
        extra={
            "argv": args,
            "config_path": loaded.config_path,
            "log_path": log_path,
        },
    )
    return run(
        invocation,
        settings=loaded.config.generator,
        binding=_build_binding(),
        logger=logger,
    )


def run(
    invocation: Invocation,
    *,
    settings: GeneratorSettings,
    binding: Binding,
    logger: logging.Logger,
) -> int:
    """Resolve, synthesize and document; return the process exit code."""

    try:
        resolved = resolve(
            invocation.selector,
            addition=invocation.addition,
            binding=binding,
            logger=logger,
        )
    except ResolutionError as exc:
        logger.error("Resolution failed", extra={"error": str(exc)})
        _print_error(str(exc))
        return 1

    label = resolved.display_name or _fallback_label(invocation.selector)
    body = synthesize(resolved.description)
    header = render_header(
        label=label,
        addition=invocation.addition,
        criterion=invocation.selector.criterion,
        namespace=resolved.description.name,
        display_name=resolved.display_name,
    )
    document = compose_document(header, body)
    logger.info(
        "Synthesized interface module",
        extra={
            "namespace": resolved.description.name,
            "class_count": len(resolved.description.classes),
            "enumeration_count": len(resolved.description.enumerations),
            "size": len(document),
        },
    )

    template_args = template_flags(
        settings,
        search_dir=template_search_dir(),
        default_available=default_template_available(),
    )
    try:
        run_generator(
            document,
            label=label,
            settings=settings,
            passthrough=invocation.passthrough,
            template_args=template_args,
            logger=logger,
        )
    except GeneratorError as exc:
        _print_error(f"{exc} (synthesized module kept at {exc.source})")
        return 1
    return 0


def _fallback_label(selector: Selector) -> str:
    if selector.kind is SelectorKind.PATH:
        return Path(selector.criterion).stem
    return selector.criterion


def _build_binding() -> Binding:
    return ScriptingBinding()


def _print_error(message: str) -> None:
    console = Console(stderr=True, highlight=False, soft_wrap=True)
    console.print(f"[red]error:[/] {escape(message)}")


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return None if value is None else Path(value).expanduser()


def _config_command(argv: Sequence[str]) -> int:
    """``osadoc config init``: write the commented default config file."""

    parser = argparse.ArgumentParser(prog=f"{PROG} config")
    actions = parser.add_subparsers(dest="action", required=True)
    init = actions.add_parser(
        "init", help=f"write a default {CONFIG_FILENAME}"
    )
    init.add_argument(
        "--path",
        type=Path,
        help="file to write (default: <workspace>/config/osadoc.toml)",
    )
    init.add_argument(
        "--workspace", type=Path, help="workspace holding the config file"
    )
    init.add_argument(
        "--force", action="store_true", help="replace an existing file"
    )
    options = parser.parse_args(list(argv))

    try:
        if options.path is not None:
            target = Path.cwd() / options.path.expanduser()
        else:
            layout = ensure_workspace(path=options.workspace)
            target = layout.path_for("config") / CONFIG_FILENAME
        written = write_default_config(target, overwrite=options.force)
    except (WorkspaceError, ConfigError) as exc:
        _print_error(str(exc))
        return 1

    sys.stdout.write(f"Wrote {written}\n")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
