"""Archive detection and safe extraction for downloaded payloads."""

from __future__ import annotations

import tarfile
import zipfile
from enum import Enum
from pathlib import Path

from scanspine.core.errors import ArchiveError

ARCHIVE_EXTENSIONS = (
    ".zip",
    ".tar",
    ".tar.gz",
    ".tgz",
    ".tar.bz2",
    ".tbz2",
    ".tar.xz",
    ".txz",
)


class ArchiveFormat(str, Enum):
    """Recognized archive formats."""

    ZIP = "zip"
    TAR = "tar"


def has_archive_extension(name: str) -> bool:
    """True if ``name`` ends in a recognized archive extension."""
    return name.lower().endswith(ARCHIVE_EXTENSIONS)


def detect_format(path: Path) -> ArchiveFormat | None:
    """Sniff the archive format from content, not from the name."""
    if zipfile.is_zipfile(path):
        return ArchiveFormat.ZIP
    try:
        if tarfile.is_tarfile(path):
            return ArchiveFormat.TAR
    except (OSError, tarfile.TarError):
        return None
    return None


def extract(path: Path, dest: Path, fmt: ArchiveFormat) -> None:
    """
    Extract ``path`` into ``dest``.

    Members that would land outside ``dest`` (absolute paths, ``..``,
    links pointing out) are refused.

    Raises:
        ArchiveError: Corrupt archive or unsafe member
    """
    dest.mkdir(parents=True, exist_ok=True)
    try:
        if fmt is ArchiveFormat.ZIP:
            _extract_zip(path, dest)
        else:
            with tarfile.open(path) as tf:
                tf.extractall(dest, filter="data")
    except ArchiveError:
        raise
    except (zipfile.BadZipFile, tarfile.TarError, OSError, EOFError) as e:
        raise ArchiveError(f"cannot extract {fmt.value} archive: {e}", cause=e).with_context(
            path=str(path)
        ) from e


def _extract_zip(path: Path, dest: Path) -> None:
    root = dest.resolve()
    with zipfile.ZipFile(path) as zf:
        for member in zf.infolist():
            target = (root / member.filename).resolve()
            if not target.is_relative_to(root):
                raise ArchiveError(f"unsafe member path in archive: {member.filename}").with_context(
                    path=str(path)
                )
        zf.extractall(root)
