"""
Filesystem iterator: every regular file under a path.

Supports:
- a directory root (recursive walk, sorted for reproducible order)
- a single-file root (one content item)

Symlinks are not followed unless ``follow_symlinks`` is set; non-regular
files (sockets, fifos, devices, dangling links) are skipped. A filesystem
iterator never yields further iterators.

Unreadable entries do not stop the walk: every readable file is still
emitted, and the failures are reported together when enumeration ends.

Usage:
    iterator = FsIterator("/src/project", exclude_dirs={".git"})
    await iterator.enumerate(sink)
"""

from __future__ import annotations

import os
import stat
from collections.abc import Iterable
from pathlib import Path

from scanspine.core.errors import SourceError, SourceNotFoundError
from scanspine.core.logging import get_logger
from scanspine.framework.iterators.protocol import (
    FILE_SCHEME,
    BaseIterator,
    ContentInfo,
    ContentItem,
    IteratorKind,
    Sink,
)

logger = get_logger(__name__)


class FsIterator(BaseIterator):
    """Iterator over a filesystem subtree."""

    kind = IteratorKind.FS

    def __init__(
        self,
        path: str | Path,
        *,
        parent: str | None = None,
        follow_symlinks: bool = False,
        exclude_dirs: Iterable[str] = (),
    ):
        super().__init__(parent=parent)
        self._path = Path(os.path.abspath(path))
        self._follow_symlinks = follow_symlinks
        self._exclude_dirs = frozenset(exclude_dirs)

    @property
    def uid(self) -> str:
        return FILE_SCHEME + self._path.as_posix()

    @property
    def path(self) -> Path:
        return self._path

    def _stat(self, path: str | Path) -> os.stat_result:
        return os.stat(path) if self._follow_symlinks else os.lstat(path)

    async def _enumerate(self, sink: Sink) -> None:
        try:
            root_stat = self._stat(self._path)
        except FileNotFoundError as e:
            raise SourceNotFoundError(f"no such path: {self._path}", cause=e).with_context(
                source=self.uid, path=str(self._path)
            ) from e

        if stat.S_ISREG(root_stat.st_mode):
            data = self._path.read_bytes()
            await sink.add_item(self._make_item(self._path.name, self._path, root_stat, data))
            return

        if not stat.S_ISDIR(root_stat.st_mode):
            raise SourceError(f"not a regular file or directory: {self._path}").with_context(
                source=self.uid, path=str(self._path)
            )

        failures: list[OSError] = []
        emitted = 0
        for dirpath, dirnames, filenames in os.walk(
            self._path, followlinks=self._follow_symlinks, onerror=failures.append
        ):
            dirnames[:] = sorted(d for d in dirnames if d not in self._exclude_dirs)
            for name in sorted(filenames):
                full = Path(dirpath, name)
                try:
                    st = self._stat(full)
                    if not stat.S_ISREG(st.st_mode):
                        continue
                    data = full.read_bytes()
                except OSError as e:
                    failures.append(e)
                    continue
                rel = full.relative_to(self._path).as_posix()
                await sink.add_item(self._make_item(rel, full, st, data))
                emitted += 1

        logger.debug("iterator.fs_walked", source=self.uid, files=emitted, failures=len(failures))
        if failures:
            raise SourceError(
                f"{len(failures)} path(s) could not be read under {self._path}",
                cause=failures[0],
            ).with_context(
                source=self.uid,
                path=str(self._path),
                unreadable=[str(getattr(f, "filename", f)) for f in failures],
            )

    def _make_item(self, rel: str, full: Path, st: os.stat_result, data: bytes) -> ContentItem:
        info = ContentInfo(
            source=self.uid,
            path=rel,
            size=st.st_size,
            mode=st.st_mode,
            mtime=st.st_mtime,
            uid=FILE_SCHEME + full.as_posix(),
        )
        return ContentItem(info, data)
