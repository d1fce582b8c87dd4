"""Local directory scanning."""

import hashlib
import os
from pathlib import Path
from typing import Collection, List, Optional

from .exclusions import ExclusionSet
from .models import LocalEntry
from ..utils.logging import get_logger

logger = get_logger(__name__)

CHUNK_SIZE = 1024 * 1024


class ScanError(Exception):
    """Raised when a file under the root cannot be read."""
    pass


def file_md5(path: Path) -> str:
    """Hex MD5 of a file's content."""
    digest = hashlib.md5()
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(CHUNK_SIZE), b""):
            digest.update(chunk)
    return digest.hexdigest()


def scan_directory(
    root: Path,
    exclusions: Optional[ExclusionSet] = None,
    ignore: Collection[str] = ()
) -> List[LocalEntry]:
    """List every regular, non-excluded file under ``root``.

    Symbolic links are neither followed nor reported. An unreadable file is
    an error rather than an omission, since an omitted key would look like a
    local deletion to purge.

    Args:
        root: Synchronization root
        exclusions: Patterns tested against each forward-slash relative path
        ignore: Relative paths never reported (the manifest file)

    Returns:
        Entries sorted by relative path
    """
    root = Path(root)
    exclusions = exclusions or ExclusionSet()
    entries: List[LocalEntry] = []
    excluded = 0

    for dirpath, dirnames, filenames in os.walk(root, onerror=_raise_scan_error):
        dirnames.sort()
        for name in sorted(filenames):
            path = Path(dirpath) / name
            relative_path = path.relative_to(root).as_posix()

            if relative_path in ignore:
                continue
            if path.is_symlink() or not path.is_file():
                continue
            if exclusions.matches(relative_path):
                excluded += 1
                continue

            try:
                entries.append(LocalEntry(
                    relative_path=relative_path,
                    size_bytes=path.stat().st_size,
                    content_digest=file_md5(path)
                ))
            except OSError as e:
                raise ScanError(f"Cannot read {path}: {e}") from e

    entries.sort(key=lambda entry: entry.relative_path)
    logger.info("Scanned directory", root=str(root), files=len(entries), excluded=excluded)
    return entries


def _raise_scan_error(error: OSError):
    raise ScanError(f"Cannot list {error.filename}: {error}") from error
