"""Unpacker behaviour for zip-family containers."""

from __future__ import annotations

import threading
import zipfile
from pathlib import Path

import pytest

from frontextract.errors import Cancelled, UnpackFailure, UnsupportedFormat
from frontextract.models import FormatTag, Stage
from frontextract.progress import RecordingObserver
from frontextract.unpack import InstallerBackend, Unpacker, extract_zip, list_entries
from tests._fixtures.archive_builder import ContainerBuilder


def _unpacker() -> Unpacker:
    return Unpacker(InstallerBackend(), batch_size=2)


def test_unknown_format_rejected_before_io(tmp_path: Path) -> None:
    dest = tmp_path / "out"

    with pytest.raises(UnsupportedFormat):
        _unpacker().unpack(tmp_path / "missing.tar.gz", dest)

    assert not dest.exists()


def test_small_zip_extracted_in_one_step(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({"index.html": "<html></html>", "js/app.js": "let a = 1;"})
    observer = RecordingObserver()

    dest = _unpacker().unpack(source, tmp_path / "out", observer=observer)

    assert (dest / "index.html").read_text(encoding="utf-8") == "<html></html>"
    assert (dest / "js" / "app.js").exists()
    assert [event.percent for event in observer.events] == [10, 40]


def test_large_zip_reports_batched_progress(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    files = {f"assets/file{index}.txt": str(index) for index in range(5)}
    source = container_builder.zip(files)
    observer = RecordingObserver()

    dest = _unpacker().unpack(source, tmp_path / "out", is_large_file=True, observer=observer)

    assert sorted(path.name for path in (dest / "assets").iterdir()) == sorted(
        f"file{index}.txt" for index in range(5)
    )
    percents = [event.percent for event in observer.events]
    assert percents == sorted(percents)
    assert percents[0] == 10 and percents[-1] == 40
    assert all(event.stage is Stage.UNPACKING for event in observer.events)
    assert len(observer.events) == 7


def test_large_zip_honours_cancellation(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({f"f{index}.txt": "x" for index in range(6)})
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(Cancelled):
        _unpacker().unpack(source, tmp_path / "out", is_large_file=True, cancel_event=cancel)


def test_asar_uses_zip_machinery(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({"main.js": "x"}, name="app.asar")
    observer = RecordingObserver()

    dest = _unpacker().unpack(source, tmp_path / "out", observer=observer)

    assert (dest / "main.js").exists()
    assert [event.percent for event in observer.events] == [10, 25, 40]


def test_large_asar_extracted_in_batches(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({f"f{index}.js": "x" for index in range(4)}, name="app.asar")
    observer = RecordingObserver()

    dest = _unpacker().unpack(source, tmp_path / "out", is_large_file=True, observer=observer)

    assert sorted(path.name for path in dest.iterdir()) == [f"f{index}.js" for index in range(4)]
    percents = [event.percent for event in observer.events]
    assert percents[:2] == [10, 25]
    assert percents[-1] == 40
    assert percents == sorted(percents)
    assert len(observer.events) == 7


def test_large_asar_honours_cancellation(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({f"f{index}.js": "x" for index in range(6)}, name="app.asar")
    cancel = threading.Event()
    cancel.set()

    with pytest.raises(Cancelled):
        _unpacker().unpack(source, tmp_path / "out", is_large_file=True, cancel_event=cancel)


def test_exe_handled_as_zip_payload(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.zip({"resources/app/index.html": "<p></p>"}, name="Setup.exe")
    observer = RecordingObserver()

    dest = _unpacker().unpack(source, tmp_path / "out", observer=observer)

    assert (dest / "resources" / "app" / "index.html").exists()
    assert [event.percent for event in observer.events] == [10, 15, 40]


def test_corrupt_zip_raises_unpack_failure(container_builder: ContainerBuilder, tmp_path: Path) -> None:
    source = container_builder.file("broken.zip", b"definitely not a zip")

    with pytest.raises(UnpackFailure):
        _unpacker().unpack(source, tmp_path / "out")


def test_entries_escaping_destination_are_rejected(tmp_path: Path) -> None:
    source = tmp_path / "evil.zip"
    with zipfile.ZipFile(source, "w") as archive:
        archive.writestr("../outside.txt", "nope")

    with pytest.raises(UnpackFailure):
        extract_zip(source, tmp_path / "out")

    assert not (tmp_path / "outside.txt").exists()


def test_unwritable_destination_raises_unpack_failure(
    container_builder: ContainerBuilder, tmp_path: Path
) -> None:
    source = container_builder.zip({"a.txt": "a"})
    blocker = tmp_path / "blocker"
    blocker.write_text("file, not a directory", encoding="utf-8")

    with pytest.raises(UnpackFailure):
        _unpacker().unpack(source, blocker / "out")


def test_list_entries(container_builder: ContainerBuilder) -> None:
    source = container_builder.zip({"a.txt": "a", "dir/b.css": "b"})

    assert sorted(list_entries(source)) == ["a.txt", "dir/b.css"]


def test_detect_format_delegates() -> None:
    assert _unpacker().detect_format("x.RPM") is FormatTag.RPM
