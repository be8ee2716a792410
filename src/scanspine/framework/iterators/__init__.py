"""
Traversal Units package.

Iterators bind to one data source and enumerate it into a Sink, yielding
content items and further iterators.
"""

from scanspine.framework.iterators.fs import FsIterator
from scanspine.framework.iterators.git import GitIterator
from scanspine.framework.iterators.http import HttpIterator
from scanspine.framework.iterators.protocol import (
    FILE_SCHEME,
    GIT_SCHEME_PREFIX,
    BaseIterator,
    ContentInfo,
    ContentItem,
    IteratorKind,
    Sink,
)

__all__ = [
    # Types
    "IteratorKind",
    "ContentInfo",
    "ContentItem",
    # Protocols
    "Sink",
    "BaseIterator",
    # Kinds
    "FsIterator",
    "GitIterator",
    "HttpIterator",
    # Schemes
    "FILE_SCHEME",
    "GIT_SCHEME_PREFIX",
]
