"""
Traversal Unit protocol.

A Traversal Unit (iterator) is bound to one data source (a directory
subtree, a VCS reference or a downloadable archive) and enumerates it once,
pushing what it finds into a Sink:

- ContentItems: bytes plus metadata, handed to backends
- new iterators: nested sources discovered along the way

Design Principles:
- Protocol over Inheritance: the engine only needs ``uid`` and ``enumerate``
- Explicit work set: iterators never recurse into children themselves;
  they hand them to the sink and the engine schedules them uniformly
- Termination by construction: each kind only yields iterators of a
  strictly smaller scope (archive → fs, git → fs, fs → nothing)

Usage:
    class MySink:
        async def add_item(self, item: ContentItem) -> None: ...
        async def add_iterator(self, iterator: BaseIterator) -> None: ...

    await FsIterator("/src/project").enumerate(MySink())
"""

from __future__ import annotations

import stat
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from enum import Enum
from pathlib import PurePosixPath
from typing import Any, Protocol, runtime_checkable

from scanspine.core.errors import OrchestrationError, ScanspineError, SourceError
from scanspine.core.logging import get_logger

logger = get_logger(__name__)

FILE_SCHEME = "file://"
GIT_SCHEME_PREFIX = "git+"
HTTPS_SCHEME = "https"
HTTP_SCHEME = "http"
GIT_SCHEME = "git"


class IteratorKind(str, Enum):
    """Traversal Unit kinds."""

    FS = "fs"
    GIT = "git"
    HTTP = "http"


@dataclass(frozen=True)
class ContentInfo:
    """
    Metadata of one content item, without its bytes.

    ``source`` is the identifier of the iterator that emitted the item;
    ``path`` is the item's logical path inside that source (posix style).
    """

    source: str
    path: str
    size: int
    mode: int = stat.S_IFREG | 0o644
    mtime: float = 0.0
    uid: str = ""

    def __post_init__(self) -> None:
        if not self.uid:
            uid = f"{self.source.rstrip('/')}/{self.path}" if self.path else self.source
            object.__setattr__(self, "uid", uid)

    @property
    def name(self) -> str:
        """Base name of the item."""
        return PurePosixPath(self.path).name

    def to_dict(self) -> dict[str, Any]:
        return {
            "uid": self.uid,
            "source": self.source,
            "path": self.path,
            "size": self.size,
            "mode": self.mode,
            "mtime": self.mtime,
        }


@dataclass(frozen=True)
class ContentItem:
    """One unit of bytes plus identifying metadata. Immutable once produced."""

    info: ContentInfo
    data: bytes = field(repr=False)

    @classmethod
    def from_bytes(
        cls,
        source: str,
        path: str,
        data: bytes,
        *,
        mode: int = stat.S_IFREG | 0o644,
        mtime: float = 0.0,
        uid: str = "",
    ) -> ContentItem:
        info = ContentInfo(source=source, path=path, size=len(data), mode=mode, mtime=mtime, uid=uid)
        return cls(info, data)


@runtime_checkable
class Sink(Protocol):
    """
    Receiver of everything an iterator discovers.

    May be shared by many iterators enumerating at the same time; both
    methods may be called any number of times, in any order. Either may
    suspend to apply backpressure.
    """

    async def add_item(self, item: ContentItem) -> None:
        """Accept one content item."""
        ...

    async def add_iterator(self, iterator: BaseIterator) -> None:
        """Accept a newly discovered Traversal Unit."""
        ...


class BaseIterator(ABC):
    """
    Base class for Traversal Units.

    Subclasses implement ``uid`` and ``_enumerate``. ``enumerate`` guards
    against re-invocation and attributes any failure to ``uid``.
    """

    kind: IteratorKind

    def __init__(self, *, parent: str | None = None):
        self._parent = parent
        self._enumerated = False

    @property
    @abstractmethod
    def uid(self) -> str:
        """Stable, scheme-qualified source identifier."""

    @property
    def parent(self) -> str | None:
        """Identifier of the iterator that yielded this one, if any."""
        return self._parent

    async def enumerate(self, sink: Sink) -> None:
        """
        Traverse the source once, pushing items and child iterators to ``sink``.

        Raises:
            OrchestrationError: If called more than once
            ScanspineError: Describing what could not be read
        """
        if self._enumerated:
            raise OrchestrationError(f"iterator already enumerated: {self.uid}")
        self._enumerated = True
        logger.debug("iterator.enumerate_started", source=self.uid, kind=self.kind.value)
        try:
            await self._enumerate(sink)
        except ScanspineError as e:
            if e.context.source is None:
                e.with_context(source=self.uid)
            raise
        except OSError as e:
            raise self._wrap_error(e) from e

    @abstractmethod
    async def _enumerate(self, sink: Sink) -> None:
        """Kind-specific traversal."""

    def _wrap_error(self, error: Exception, message: str | None = None) -> SourceError:
        """Wrap an exception in SourceError with context."""
        if isinstance(error, SourceError):
            return error
        return SourceError(
            message or str(error),
            cause=error,
        ).with_context(source=self.uid)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.uid!r})"
