"""Settings for osadoc runs.

Values come from, in decreasing precedence: ``OSADOC_*`` environment
variables, the TOML config file, then the defaults below.
"""

from __future__ import annotations

import os
import shlex
import sys
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Mapping, Optional

from dotenv import load_dotenv

from .core import config as core_config
from .core.workspace import WorkspaceError, WorkspaceLayout, ensure_workspace

CONFIG_FILENAME = "osadoc.toml"
CONFIG_ENV = "OSADOC_CONFIG"
ENV_PREFIX = "OSADOC_"

_DEFAULT_COMMAND: tuple[str, ...] = (sys.executable, "-m", "pdoc")
_TEMPLATE_RESOURCE = "template.toml"
_TEXT_KEYS = (
    "output_flag",
    "extension",
    "title_flag",
    "main_flag",
    "template_flag",
    "template_file",
)


class ConfigError(RuntimeError):
    """Raised when configuration parsing or validation fails."""


@dataclass(frozen=True)
class GeneratorSettings:
    """How the external documentation generator is invoked.

    Empty flag names disable the corresponding option, for generators that
    have no equivalent.
    """

    command: tuple[str, ...] = _DEFAULT_COMMAND
    output_dir: Optional[Path] = Path("doc")
    output_flag: str = "--output-directory"
    extension: str = ".py"
    title_flag: str = "--footer-text"
    main_flag: str = ""
    template_flag: str = "--template-directory"
    template_file: str = "module.html.jinja2"
    flags: tuple[str, ...] = ("--docformat", "restructuredtext")


@dataclass(frozen=True)
class OsadocConfig:
    generator: GeneratorSettings = GeneratorSettings()
    log_level: str = "INFO"


@dataclass(frozen=True)
class LoadResult:
    """Loaded settings with the workspace and the file they came from."""

    config: OsadocConfig
    layout: WorkspaceLayout
    config_path: Optional[Path]


def load_config(
    *,
    config_path: Optional[Path] = None,
    env: Optional[Mapping[str, str]] = None,
    workspace_path: Optional[Path] = None,
) -> LoadResult:
    """Resolve the settings for one run.

    The config file is ``config_path``, else ``$OSADOC_CONFIG``, else
    ``<workspace>/config/osadoc.toml``. Only the last one may be absent.
    When ``env`` is omitted the process environment is used, after loading
    a ``.env`` file if one is found.
    """

    if env is None:
        load_dotenv()
        env = os.environ

    try:
        layout = ensure_workspace(env=env, path=workspace_path)
    except WorkspaceError as exc:
        raise ConfigError(str(exc)) from exc

    if config_path is not None:
        explicit: Optional[Path] = config_path.expanduser()
    else:
        explicit = _env_path(env, CONFIG_ENV)
    candidate = explicit or layout.path_for("config") / CONFIG_FILENAME

    table = _defaults_table()
    loaded_from: Optional[Path] = None
    if candidate.exists():
        try:
            table = core_config.overlay(
                table, core_config.load_toml(candidate)
            )
        except core_config.TomlConfigError as exc:
            raise ConfigError(str(exc)) from exc
        loaded_from = candidate
    elif explicit is not None:
        raise ConfigError(f"Config file not found: {candidate}")

    _apply_env(table, env)
    return LoadResult(
        config=OsadocConfig(
            generator=_generator_settings(table["generator"]),
            log_level=_log_level(table["logging"]["level"]),
        ),
        layout=layout,
        config_path=loaded_from,
    )


def write_default_config(path: Path, *, overwrite: bool = False) -> Path:
    """Write the commented default config file to ``path``."""

    try:
        return core_config.write_template(
            path,
            package=__package__,
            resource=_TEMPLATE_RESOURCE,
            overwrite=overwrite,
        )
    except core_config.TomlConfigError as exc:
        raise ConfigError(str(exc)) from exc


def _defaults_table() -> dict[str, dict[str, Any]]:
    generator: dict[str, Any] = {}
    for item in fields(GeneratorSettings):
        value = item.default
        if isinstance(value, tuple):
            value = list(value)
        elif isinstance(value, Path):
            value = str(value)
        generator[item.name] = value
    # An empty command stands for the interpreter running osadoc.
    generator["command"] = []
    return {
        "generator": generator,
        "logging": {"level": OsadocConfig.log_level},
    }


def _apply_env(
    table: dict[str, dict[str, Any]], env: Mapping[str, str]
) -> None:
    command = _env_value(env, "GENERATOR_COMMAND")
    if command is not None:
        table["generator"]["command"] = shlex.split(command)
    output_dir = _env_value(env, "OUTPUT_DIR")
    if output_dir is not None:
        table["generator"]["output_dir"] = output_dir
    level = _env_value(env, "LOG_LEVEL")
    if level is not None:
        table["logging"]["level"] = level


def _generator_settings(raw: Mapping[str, Any]) -> GeneratorSettings:
    text = {key: _string(raw[key], f"generator.{key}") for key in _TEXT_KEYS}
    extension = text.pop("extension")
    if extension and not extension.startswith("."):
        extension = "." + extension

    output_dir = _string(raw["output_dir"], "generator.output_dir")
    command = _strings(raw["command"], "generator.command")
    return GeneratorSettings(
        command=command or _DEFAULT_COMMAND,
        output_dir=Path(output_dir).expanduser() if output_dir else None,
        extension=extension,
        flags=_strings(raw["flags"], "generator.flags"),
        **text,
    )


def _log_level(value: object) -> str:
    level = _string(value, "logging.level")
    if not level:
        raise ConfigError("logging.level must be a non-empty string.")
    return level.upper()


def _string(value: object, key: str) -> str:
    if not isinstance(value, str):
        raise ConfigError(f"{key} must be a string.")
    return value.strip()


def _strings(value: object, key: str) -> tuple[str, ...]:
    if not isinstance(value, list) or not all(
        isinstance(item, str) for item in value
    ):
        raise ConfigError(f"{key} must be a list of strings.")
    return tuple(value)


def _env_value(env: Mapping[str, str], key: str) -> Optional[str]:
    value = env.get(ENV_PREFIX + key, "").strip()
    return value or None


def _env_path(env: Mapping[str, str], name: str) -> Optional[Path]:
    value = env.get(name, "").strip()
    return Path(value).expanduser() if value else None
