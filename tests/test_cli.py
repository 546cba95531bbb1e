from __future__ import annotations

import json
import subprocess
from pathlib import Path

import pytest

from osadoc import cli
from osadoc import generator as generator_mod
from osadoc.binding import BindingError, BundleHandle
from osadoc.config import GeneratorSettings
from osadoc.description import (
    ClassDescription,
    InterfaceDescription,
    MethodDescription,
    ParameterDescription,
    Selector,
    SelectorKind,
)


class FakeBinding:
    def __init__(self, *, name: str | None = "Widgets", fail: bool = False):
        self.name = name
        self.fail = fail

    def locate_application(self, selector: Selector) -> BundleHandle:
        if self.fail:
            raise BindingError(
                f"No application found for {selector.kind.flag}."
            )
        return BundleHandle(Path("/Apps/Widgets.app"), self.name)

    def locate_addition(self, selector: Selector) -> BundleHandle:
        return BundleHandle(Path("/Library/ScriptingAdditions/Extra.osax"))

    def describe(
        self, handle: BundleHandle, *, name: str
    ) -> InterfaceDescription:
        spin = MethodDescription(
            name="spin",
            parameters=(ParameterDescription("speed", "Spin speed."),),
            result="Completed.",
        )
        return InterfaceDescription(
            name=name,
            entries=(
                ClassDescription(
                    name="Widget",
                    parent="Base",
                    description="A widget.",
                    methods=(spin,),
                ),
            ),
            commands=(MethodDescription(name="quit"),),
        )


class GeneratorRecorder:
    def __init__(self, tmp_path: Path, returncode: int = 0) -> None:
        self.tmp_path = tmp_path
        self.returncode = returncode
        self.documents: list[str] = []
        self.commands: list[list[str]] = []

    def __call__(self, document, **kwargs):
        def runner(command, **_):
            self.commands.append(command)
            self.documents.append(Path(command[-1]).read_text("utf-8"))
            return subprocess.CompletedProcess(command, self.returncode)

        return generator_mod.run_generator(
            document, runner=runner, directory=self.tmp_path, **kwargs
        )


@pytest.fixture
def isolated(tmp_path, monkeypatch):
    monkeypatch.chdir(tmp_path)
    for key in (
        "OSADOC_CONFIG",
        "OSADOC_GENERATOR_COMMAND",
        "OSADOC_OUTPUT_DIR",
        "OSADOC_LOG_LEVEL",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("OSADOC_DATA_HOME", str(tmp_path / "ws"))
    monkeypatch.setattr(cli, "default_template_available", lambda: True)
    return tmp_path


def _install(monkeypatch, tmp_path, *, binding=None, returncode=0):
    recorder = GeneratorRecorder(tmp_path / "tmp", returncode=returncode)
    recorder.tmp_path.mkdir(exist_ok=True)
    binding = binding or FakeBinding()
    monkeypatch.setattr(cli, "_build_binding", lambda: binding)
    monkeypatch.setattr(cli, "run_generator", recorder)
    return recorder


def test_parse_arguments_collects_passthrough():
    invocation = cli.parse_arguments(
        [
            "--addition",
            "--config",
            "c.toml",
            "--name",
            "Extra",
            "--verbose",
            "--show-source",
            "--name",
            "kept",
        ]
    )

    assert invocation.selector == Selector(SelectorKind.NAME, "Extra")
    assert invocation.addition is True
    assert invocation.verbose is True
    assert invocation.config_path == Path("c.toml")
    assert invocation.workspace_path is None
    assert invocation.passthrough == ("--show-source", "--name", "kept")


def test_parse_arguments_minimal():
    invocation = cli.parse_arguments(["--signature", "ttxt"])

    assert invocation.selector == Selector(SelectorKind.SIGNATURE, "ttxt")
    assert invocation.addition is False
    assert invocation.passthrough == ()


@pytest.mark.parametrize(
    "argv, message",
    [
        ([], "selector and a criterion"),
        (["--name"], "selector and a criterion"),
        (["--name", "A", "--path", "B"], "only one selector"),
        (["--path", "B", "--bundle_id", "x"], "only one selector"),
        (["--addition", "--addition", "--name", "A"], "more than once"),
        (["--addition", "--name"], "requires a criterion"),
        (["--config", "a", "--config", "b", "--name", "A"], "more than once"),
        (["--name", "A", "--workspace"], "requires a value"),
        (["--bogus", "--name", "A"], "unexpected argument"),
        (["--addition", "--verbose"], "is required"),
    ],
)
def test_parse_arguments_errors(argv, message):
    with pytest.raises(cli.UsageError, match=message):
        cli.parse_arguments(argv)


def test_main_two_selectors_fails(isolated, capsys):
    exit_code = cli.main(["--name", "TextEdit", "--path", "/Apps/X.app"])

    captured = capsys.readouterr()
    assert exit_code == 1
    assert "only one selector" in captured.err
    assert "Usage: osadoc" in captured.err


def test_main_help(capsys):
    assert cli.main(["--help"]) == 0
    assert capsys.readouterr().out.startswith("Usage: osadoc")


def test_main_documents_application(isolated, monkeypatch, capsys):
    recorder = _install(monkeypatch, isolated)

    exit_code = cli.main(["--name", "Widgets", "--show-source"])

    assert exit_code == 0
    (document,) = recorder.documents
    assert document.startswith('"""Widgets Scripting API')
    assert "class Widget(Base):" in document
    assert "def spin(self, speed):" in document
    assert ":param speed: Spin speed." in document
    assert ":returns: Completed." in document
    assert "class Application:" in document
    assert "def quit(self):" in document

    (command,) = recorder.commands
    assert command[-2] == "--show-source"
    assert "Widgets Scripting API" in command
    assert list(recorder.tmp_path.iterdir()) == []

    log_path = isolated / "ws" / "logs" / "osadoc.log"
    messages = [
        json.loads(line)["message"]
        for line in log_path.read_text("utf-8").splitlines()
    ]
    assert "Resolved scripting interface" in messages
    assert "Documentation generated" in messages
    assert capsys.readouterr().err == ""


def test_main_documents_addition(isolated, monkeypatch):
    recorder = _install(monkeypatch, isolated)

    exit_code = cli.main(["--addition", "--bundle_id", "com.example.extra"])

    assert exit_code == 0
    (document,) = recorder.documents
    assert "class TheApplication:" in document
    assert "scripting addition" in document
    assert "Placeholder for the host application" in document
    assert "com.example.extra Scripting API" in recorder.commands[0]


def test_main_reports_resolution_failure(isolated, monkeypatch, capsys):
    recorder = _install(
        monkeypatch, isolated, binding=FakeBinding(fail=True)
    )

    exit_code = cli.main(["--name", "Nope"])

    assert exit_code == 1
    assert "error:" in capsys.readouterr().err
    assert recorder.commands == []


def test_main_requires_name_when_bundle_has_none(
    isolated, monkeypatch, capsys
):
    _install(monkeypatch, isolated, binding=FakeBinding(name=None))

    exit_code = cli.main(["--bundle_id", "com.example.widgets"])

    assert exit_code == 1
    assert "use --name" in capsys.readouterr().err


def test_main_reports_generator_failure(isolated, monkeypatch, capsys):
    recorder = _install(monkeypatch, isolated, returncode=2)

    exit_code = cli.main(["--name", "Widgets"])

    err = capsys.readouterr().err
    assert exit_code == 1
    assert "status 2" in err
    assert "synthesized module kept at" in err
    (kept,) = list(recorder.tmp_path.iterdir())
    assert kept.name.startswith("Widgets-0-")


def test_main_uses_config_file(isolated, monkeypatch):
    recorder = _install(monkeypatch, isolated)
    config = isolated / "custom.toml"
    config.write_text(
        '[generator]\ncommand = ["gen"]\nflags = []\noutput_dir = ""\n',
        encoding="utf-8",
    )

    exit_code = cli.main(["--config", str(config), "--name", "Widgets"])

    assert exit_code == 0
    assert recorder.commands[0][0] == "gen"
    assert "--output-directory" not in recorder.commands[0]


def test_main_missing_config_fails(isolated, capsys):
    exit_code = cli.main(
        ["--config", str(isolated / "absent.toml"), "--name", "Widgets"]
    )

    assert exit_code == 1
    assert "Config file not found" in capsys.readouterr().err


def test_run_with_explicit_settings(tmp_path, monkeypatch, dummy_logger):
    recorder = GeneratorRecorder(tmp_path)
    monkeypatch.setattr(cli, "run_generator", recorder)
    monkeypatch.setattr(cli, "default_template_available", lambda: True)
    invocation = cli.parse_arguments(["--path", "/Apps/Widgets.app"])

    exit_code = cli.run(
        invocation,
        settings=GeneratorSettings(command=("gen",), flags=()),
        binding=FakeBinding(),
        logger=dummy_logger,
    )

    assert exit_code == 0
    assert "Synthesized interface module" in dummy_logger.messages("info")


def test_config_init_writes_template(tmp_path, capsys):
    target = tmp_path / "conf" / "osadoc.toml"

    assert cli.main(["config", "init", "--path", str(target)]) == 0
    assert "[generator]" in target.read_text(encoding="utf-8")
    assert str(target) in capsys.readouterr().out

    assert cli.main(["config", "init", "--path", str(target)]) == 1
    assert "already exists" in capsys.readouterr().err

    assert cli.main(["config", "init", "--path", str(target), "--force"]) == 0


def test_config_init_defaults_to_workspace(tmp_path):
    workspace_root = tmp_path / "ws"

    exit_code = cli.main(
        ["config", "init", "--workspace", str(workspace_root)]
    )

    assert exit_code == 0
    assert (workspace_root / "config" / "osadoc.toml").exists()


def test_config_requires_subcommand(capsys):
    with pytest.raises(SystemExit) as excinfo:
        cli.main(["config"])

    assert excinfo.value.code == 2
