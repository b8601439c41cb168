"""Container unpacking: zip machinery plus per-platform installer backends."""

from .archive import extract_zip, list_entries
from .backends import (
    DarwinBackend,
    InstallerBackend,
    PosixBackend,
    WindowsBackend,
    backend_for_platform,
)
from .unpacker import Unpacker

__all__ = [
    "DarwinBackend",
    "InstallerBackend",
    "PosixBackend",
    "Unpacker",
    "WindowsBackend",
    "backend_for_platform",
    "extract_zip",
    "list_entries",
]
