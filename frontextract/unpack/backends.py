"""Platform capability backends for installer containers.

Each backend knows which installer tags its platform can open and how to drive
the native tools for them. The backend is chosen once, by
``backend_for_platform``, when the unpacker is constructed.
"""

from __future__ import annotations

import shutil
import subprocess
import sys
import tempfile
from pathlib import Path
from typing import Callable, FrozenSet, Iterable, Optional

from ..errors import UnpackFailure
from ..logging import get_logger
from ..models import FormatTag
from ..stores.tracker import EphemeralResourceTracker
from .archive import extract_zip

ToolRunner = Callable[..., bytes]
ToolLocator = Callable[[str], Optional[str]]


def _default_runner(
    args: Iterable[str],
    *,
    cwd: Path,
    input_bytes: bytes | None = None,
) -> bytes:
    completed = subprocess.run(
        list(args),
        cwd=str(cwd),
        input=input_bytes,
        capture_output=True,
        check=True,
    )
    return completed.stdout


class InstallerBackend:
    """Opens installer containers that need no native tooling.

    Windows installers (NSIS, Squirrel) are self-extracting archives whose
    payload is zip-structured, so ``.exe`` is handled on every platform.
    """

    platform_name = "generic"
    supported_tags: FrozenSet[FormatTag] = frozenset({FormatTag.EXE})

    def __init__(
        self,
        *,
        runner: ToolRunner | None = None,
        which: ToolLocator = shutil.which,
        tracker: EphemeralResourceTracker | None = None,
        scratch_root: Path | None = None,
    ) -> None:
        self._runner = runner or _default_runner
        self._which = which
        self.tracker = tracker
        self.scratch_root = scratch_root
        self.logger = get_logger(f"unpack.{self.platform_name}")

    def supports(self, tag: FormatTag) -> bool:
        return tag in self.supported_tags

    def unpack(self, tag: FormatTag, path: Path, dest: Path) -> Path:
        """Extract ``path`` (an installer of kind ``tag``) into ``dest``."""
        if not self.supports(tag):
            raise UnpackFailure(
                f"{tag.value} containers cannot be unpacked on {self.platform_name}"
            )
        dest.mkdir(parents=True, exist_ok=True)
        handler = getattr(self, f"_unpack_{tag.value}")
        self.logger.info("Unpacking %s installer %s", tag.value, path.name)
        return handler(path, dest)

    def _unpack_exe(self, path: Path, dest: Path) -> Path:
        return extract_zip(path, dest)

    # ------------------------------------------------------------------
    # Helpers

    def _require(self, tool: str) -> str:
        location = self._which(tool)
        if not location:
            raise UnpackFailure(
                f"Required tool '{tool}' is not available on {self.platform_name}",
                tool=tool,
            )
        return location

    def _run(
        self,
        args: list[str],
        *,
        cwd: Path,
        tool: str,
        input_bytes: bytes | None = None,
    ) -> bytes:
        try:
            return self._runner(args, cwd=cwd, input_bytes=input_bytes)
        except subprocess.CalledProcessError as exc:
            stderr = exc.stderr.decode("utf-8", "replace").strip() if isinstance(exc.stderr, bytes) else str(exc.stderr or "")
            raise UnpackFailure(
                f"{tool} exited with status {exc.returncode}",
                tool=tool,
                exit_code=exc.returncode,
                detail=stderr or str(exc),
            ) from exc
        except FileNotFoundError as exc:
            raise UnpackFailure(f"Required tool '{tool}' could not be executed", tool=tool) from exc
        except OSError as exc:
            raise UnpackFailure(f"{tool} failed: {exc}", tool=tool) from exc


class WindowsBackend(InstallerBackend):
    platform_name = "windows"


class PosixBackend(InstallerBackend):
    """Linux (and other POSIX) hosts: Debian and RPM packages via ar/tar and rpm2cpio/cpio."""

    platform_name = "linux"
    supported_tags = frozenset({FormatTag.EXE, FormatTag.DEB, FormatTag.RPM})

    def _unpack_deb(self, path: Path, dest: Path) -> Path:
        ar = self._require("ar")
        tar = self._require("tar")
        members_dir = dest / ".deb-members"
        members_dir.mkdir(parents=True, exist_ok=True)
        try:
            self._run([ar, "x", str(path)], cwd=members_dir, tool="ar")
            data_members = sorted(members_dir.glob("data.tar*"))
            if not data_members:
                raise UnpackFailure(f"{path.name} has no data.tar member", tool="ar")
            self._run([tar, "-xf", str(data_members[0]), "-C", str(dest)], cwd=dest, tool="tar")
        finally:
            shutil.rmtree(members_dir, ignore_errors=True)
        return dest

    def _unpack_rpm(self, path: Path, dest: Path) -> Path:
        rpm2cpio = self._require("rpm2cpio")
        cpio = self._require("cpio")
        payload = self._run([rpm2cpio, str(path)], cwd=dest, tool="rpm2cpio")
        self._run(
            [cpio, "-idm", "--no-absolute-filenames", "--quiet"],
            cwd=dest,
            tool="cpio",
            input_bytes=payload,
        )
        return dest


class DarwinBackend(PosixBackend):
    """macOS hosts: adds disk images mounted with hdiutil."""

    platform_name = "macos"
    supported_tags = frozenset({FormatTag.EXE, FormatTag.DEB, FormatTag.RPM, FormatTag.DMG})

    def _unpack_dmg(self, path: Path, dest: Path) -> Path:
        hdiutil = self._require("hdiutil")
        root = self.scratch_root or Path(tempfile.gettempdir())
        root.mkdir(parents=True, exist_ok=True)
        mount_point = Path(tempfile.mkdtemp(prefix="dmg-mount-", dir=root))
        if self.tracker is not None:
            self.tracker.register(mount_point)

        attached = False
        try:
            self._run(
                [hdiutil, "attach", str(path), "-mountpoint", str(mount_point), "-nobrowse", "-readonly"],
                cwd=root,
                tool="hdiutil",
            )
            attached = True
            shutil.copytree(mount_point, dest, symlinks=True, dirs_exist_ok=True)
        except shutil.Error as exc:
            raise UnpackFailure(f"Failed to copy mounted image {path.name}: {exc}") from exc
        finally:
            if attached:
                self._detach(hdiutil, mount_point, root)
            shutil.rmtree(mount_point, ignore_errors=True)
            if self.tracker is not None and not mount_point.exists():
                self.tracker.release(mount_point)
        return dest

    def _detach(self, hdiutil: str, mount_point: Path, cwd: Path) -> None:
        try:
            self._run([hdiutil, "detach", str(mount_point), "-force"], cwd=cwd, tool="hdiutil")
        except UnpackFailure as exc:
            self.logger.warning("Failed to detach %s: %s", mount_point, exc.detail)


def backend_for_platform(platform: str | None = None, **kwargs) -> InstallerBackend:
    """Return the installer backend matching ``platform`` (defaults to this host)."""
    name = platform or sys.platform
    if name.startswith("win"):
        return WindowsBackend(**kwargs)
    if name == "darwin":
        return DarwinBackend(**kwargs)
    return PosixBackend(**kwargs)


__all__ = [
    "DarwinBackend",
    "InstallerBackend",
    "PosixBackend",
    "ToolLocator",
    "ToolRunner",
    "WindowsBackend",
    "backend_for_platform",
]
