"""
Input resolution: user-supplied strings → root iterators.

Rules, first match wins:

    ""                                   → error
    http://...                           → error unless allow_http
    https://.../name.zip (or .tar.gz...) → HttpIterator
    git://...  https://github.com/...    → GitIterator (".git" trimmed)
    any url ending in .git, git+<url>    → GitIterator
    no scheme                            → FsIterator over an existing path
    anything else                        → error

``git+<url>@<ref>`` pins a branch or tag.

The engine never sees input strings; it is handed the iterators built here.
"""

from __future__ import annotations

import os
from collections.abc import Iterable
from urllib.parse import urlsplit

from scanspine.core.errors import ConfigError
from scanspine.core.logging import get_logger
from scanspine.core.settings import ScanSettings
from scanspine.framework.iterators.archive import has_archive_extension
from scanspine.framework.iterators.fs import FsIterator
from scanspine.framework.iterators.git import GIT_SUFFIX, GitIterator
from scanspine.framework.iterators.http import HttpIterator
from scanspine.framework.iterators.protocol import (
    GIT_SCHEME,
    GIT_SCHEME_PREFIX,
    HTTP_SCHEME,
    HTTPS_SCHEME,
    BaseIterator,
)

logger = get_logger(__name__)

GIT_HOSTS = frozenset({"github.com"})


def _split_ref(url: str) -> tuple[str, str | None]:
    """``https://host/repo@v1`` → (``https://host/repo``, ``v1``)."""
    head, sep, ref = url.rpartition("@")
    if sep and "/" not in ref and "://" in head and head.rfind("/") > head.find("://") + 2:
        return head, ref or None
    return url, None


def _is_git(scheme: str, host: str, path: str) -> bool:
    if scheme == GIT_SCHEME:
        return True
    if scheme == HTTPS_SCHEME and host.lower() in GIT_HOSTS:
        return True
    return path.endswith(GIT_SUFFIX)


def resolve_input(text: str, settings: ScanSettings) -> BaseIterator:
    """
    Build the root iterator for one input string.

    Raises:
        ConfigError: Empty, blocked, missing, or unrecognized input
    """
    if not text or not text.strip():
        raise ConfigError("empty input")
    text = text.strip()

    if text.startswith(GIT_SCHEME_PREFIX):
        url, ref = _split_ref(text.removeprefix(GIT_SCHEME_PREFIX))
        if not urlsplit(url).scheme:
            raise ConfigError(f"git input needs a url: {text}")
        return GitIterator(url, ref=ref, prefix=settings.work_dir)

    parts = urlsplit(text)
    scheme = parts.scheme.lower()

    if scheme == HTTP_SCHEME and not settings.allow_http:
        raise ConfigError("plain http is currently blocked, did you mean https?")

    if scheme in (HTTP_SCHEME, HTTPS_SCHEME) and has_archive_extension(parts.path):
        return HttpIterator(
            text,
            prefix=settings.work_dir,
            max_redirects=settings.max_redirects,
            allow_http=settings.allow_http,
            timeout=settings.http_timeout,
        )

    if scheme and _is_git(scheme, parts.netloc, parts.path):
        return GitIterator(text, prefix=settings.work_dir)

    # single letters are drive names, not schemes
    if not scheme or len(scheme) == 1:
        if not os.path.exists(text):
            raise ConfigError(f"no such file or directory: {text}").with_context(path=text)
        return FsIterator(text)

    raise ConfigError(f"not sure how to scan this input: {text}")


def resolve_inputs(inputs: Iterable[str], settings: ScanSettings) -> list[BaseIterator]:
    """Resolve every input; the first bad one raises."""
    iterators = [resolve_input(text, settings) for text in inputs]
    logger.debug("resolver.resolved", roots=[it.uid for it in iterators])
    return iterators


__all__ = [
    "resolve_input",
    "resolve_inputs",
]
