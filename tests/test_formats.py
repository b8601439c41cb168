"""Container format detection tests."""

from __future__ import annotations

from pathlib import Path

import pytest

from frontextract.errors import UnsupportedFormat
from frontextract.formats import (
    detect_container,
    detect_format,
    format_family,
    is_supported,
    supported_extensions,
)
from frontextract.models import FormatFamily, FormatTag


@pytest.mark.parametrize(
    ("name", "tag"),
    [
        ("bundle.zip", FormatTag.ZIP),
        ("app.asar", FormatTag.ASAR),
        ("Setup.EXE", FormatTag.EXE),
        ("App.dmg", FormatTag.DMG),
        ("pkg_1.0_amd64.deb", FormatTag.DEB),
        ("pkg-1.0.x86_64.rpm", FormatTag.RPM),
        ("notes.txt", FormatTag.UNKNOWN),
        ("no-extension", FormatTag.UNKNOWN),
    ],
)
def test_detect_format_by_extension(name: str, tag: FormatTag) -> None:
    assert detect_format(name) is tag


def test_format_family_groups_tags() -> None:
    assert format_family(FormatTag.ASAR) is FormatFamily.ZIP
    assert format_family(FormatTag.RPM) is FormatFamily.INSTALLER
    assert format_family(FormatTag.UNKNOWN) is FormatFamily.UNKNOWN
    assert is_supported("x.deb")
    assert not is_supported("x.tar.gz")


def test_supported_extensions_by_family() -> None:
    assert supported_extensions() == {
        "zip": [".zip", ".asar"],
        "installer": [".exe", ".dmg", ".deb", ".rpm"],
    }


def test_detect_container_rejects_unknown_before_io(tmp_path: Path) -> None:
    # The file does not exist; the extension check must fire first.
    with pytest.raises(UnsupportedFormat):
        detect_container(tmp_path / "missing.txt")


def test_detect_container_missing_file(tmp_path: Path) -> None:
    with pytest.raises(FileNotFoundError):
        detect_container(tmp_path / "missing.zip")


def test_detect_container_builds_handle(tmp_path: Path) -> None:
    path = tmp_path / "app.asar"
    path.write_bytes(b"1234")

    handle = detect_container(path)

    assert handle.path == path.resolve()
    assert handle.format is FormatTag.ASAR
    assert handle.family is FormatFamily.ZIP
    assert handle.size == 4
