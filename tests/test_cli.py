"""CLI parser and command behaviour tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from frontextract.cli import _build_parser, main
from tests._fixtures.archive_builder import ContainerBuilder


def test_cli_accepts_verbose_before_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["--verbose", "formats"])
    assert args.verbose is True
    assert args.command == "formats"


def test_cli_accepts_verbose_after_command() -> None:
    parser = _build_parser()
    args = parser.parse_args(["inspect", "app.zip", "--verbose"])
    assert args.verbose is True
    assert args.command == "inspect"
    assert args.path == "app.zip"


def test_cli_extract_options() -> None:
    parser = _build_parser()
    args = parser.parse_args(["extract", "app.asar", "-o", "out.zip", "--archive", "--yes"])
    assert args.command == "extract"
    assert args.input == "app.asar"
    assert args.output == "out.zip"
    assert args.archive is True
    assert args.yes is True
    assert args.config is None


def test_cli_extract_requires_output() -> None:
    parser = _build_parser()
    with pytest.raises(SystemExit):
        parser.parse_args(["extract", "app.zip"])


def test_cli_serve_defaults() -> None:
    args = _build_parser().parse_args(["serve"])
    assert args.host == "127.0.0.1"
    assert args.port == 8000


def test_formats_command_lists_extensions(capsys: pytest.CaptureFixture[str]) -> None:
    main(["formats"])

    out = capsys.readouterr().out
    assert "zip: .zip .asar" in out
    assert "installer: .exe .dmg .deb .rpm" in out


def test_inspect_command(container_builder: ContainerBuilder, capsys: pytest.CaptureFixture[str]) -> None:
    source = container_builder.zip({"a.js": "1", "b.css": "2"})

    main(["inspect", str(source)])

    out = capsys.readouterr().out
    assert "format: zip" in out
    assert "entries: 2" in out


def test_inspect_unsupported_exits_with_category(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    with pytest.raises(SystemExit) as excinfo:
        main(["inspect", str(tmp_path / "notes.txt")])

    assert excinfo.value.code == 1
    assert "unsupported_format" in capsys.readouterr().err


def test_extract_command_end_to_end(
    container_builder: ContainerBuilder,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("FRONTEXTRACT_SCRATCH_ROOT", str(tmp_path / "scratch"))
    source = container_builder.zip({"index.html": "<p>hi</p>", "main.js": "var a=1;"})
    output = tmp_path / "site"

    main(["extract", str(source), "-o", str(output), "--yes"])

    assert (output / "index.html").is_file()
    assert (output / "js" / "main.js").is_file()
    assert "Extracted 2 file(s)" in capsys.readouterr().out


def test_extract_declined_prompt_exits(
    container_builder: ContainerBuilder,
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
) -> None:
    monkeypatch.setenv("FRONTEXTRACT_SCRATCH_ROOT", str(tmp_path / "scratch"))
    monkeypatch.setattr("builtins.input", lambda prompt="": "n")
    source = container_builder.zip({"index.html": "<p>hi</p>"})

    with pytest.raises(SystemExit) as excinfo:
        main(["extract", str(source), "-o", str(tmp_path / "site")])

    assert excinfo.value.code == 1
    assert "cancelled" in capsys.readouterr().err
    assert not (tmp_path / "site").exists()
