"""
HTTP iterator: download a payload, then scan it or unpack it.

ARCHITECTURE
────────────
::

    HttpIterator(url, prefix=work_dir, max_redirects=20)
      ├── ._download()   ─ httpx stream to <prefix>/http/<hash>/<name>
      ├── detect_format  ─ zip / tar sniffed from content
      └── ._enumerate()
            archive  → one FsIterator over the extracted tree
            other    → the download itself as a single ContentItem

Plain ``http://`` is refused unless ``allow_http`` is set. Redirects are
followed up to ``max_redirects`` (20, as browsers do; httpx's own default
is too low for release-asset CDNs).
"""

from __future__ import annotations

import asyncio
import shutil
from pathlib import Path, PurePosixPath
from urllib.parse import urlsplit

import httpx

from scanspine.core.errors import NetworkError, SourceError, SourceNotFoundError
from scanspine.core.hashing import compute_hash
from scanspine.core.logging import get_logger
from scanspine.framework.iterators.archive import detect_format, extract
from scanspine.framework.iterators.fs import FsIterator
from scanspine.framework.iterators.protocol import (
    HTTP_SCHEME,
    HTTPS_SCHEME,
    BaseIterator,
    ContentInfo,
    ContentItem,
    IteratorKind,
    Sink,
)

logger = get_logger(__name__)

DEFAULT_MAX_REDIRECTS = 20
DEFAULT_FILENAME = "download"


class HttpIterator(BaseIterator):
    """Iterator over a network-fetched payload."""

    kind = IteratorKind.HTTP

    def __init__(
        self,
        url: str,
        *,
        prefix: str | Path,
        parent: str | None = None,
        max_redirects: int = DEFAULT_MAX_REDIRECTS,
        allow_http: bool = False,
        timeout: float = 60.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        super().__init__(parent=parent)
        self._url = url
        self._prefix = Path(prefix)
        self._max_redirects = max_redirects
        self._allow_http = allow_http
        self._timeout = timeout
        self._transport = transport

    @property
    def uid(self) -> str:
        return self._url

    @property
    def download_dir(self) -> Path:
        return self._prefix / "http" / compute_hash(self._url)

    @property
    def filename(self) -> str:
        return PurePosixPath(urlsplit(self._url).path).name or DEFAULT_FILENAME

    async def _enumerate(self, sink: Sink) -> None:
        self._check_scheme()

        workdir = self.download_dir
        workdir.mkdir(parents=True, exist_ok=True)
        payload = workdir / self.filename
        await self._download(payload)

        fmt = await asyncio.to_thread(detect_format, payload)
        if fmt is None:
            st = payload.stat()
            info = ContentInfo(
                source=self.uid,
                path=self.filename,
                size=st.st_size,
                mode=st.st_mode,
                mtime=st.st_mtime,
                uid=self._url,
            )
            await sink.add_item(ContentItem(info, payload.read_bytes()))
            return

        extracted = workdir / "extracted"
        if extracted.exists():
            shutil.rmtree(extracted)
        await asyncio.to_thread(extract, payload, extracted, fmt)
        logger.info("iterator.archive_extracted", source=self.uid, format=fmt.value)
        await sink.add_iterator(FsIterator(extracted, parent=self.uid))

    def _check_scheme(self) -> None:
        scheme = urlsplit(self._url).scheme.lower()
        if scheme == HTTP_SCHEME and not self._allow_http:
            raise SourceError("plain http is blocked, did you mean https?").with_context(
                source=self.uid, url=self._url
            )
        if scheme not in (HTTP_SCHEME, HTTPS_SCHEME):
            raise SourceError(f"unsupported url scheme: {scheme or '(none)'}").with_context(
                source=self.uid, url=self._url
            )

    async def _download(self, target: Path) -> None:
        async with httpx.AsyncClient(
            follow_redirects=True,
            max_redirects=self._max_redirects,
            timeout=self._timeout,
            transport=self._transport,
        ) as client:
            try:
                async with client.stream("GET", self._url) as response:
                    response.raise_for_status()
                    with target.open("wb") as fh:
                        async for chunk in response.aiter_bytes():
                            fh.write(chunk)
            except httpx.TooManyRedirects as e:
                raise NetworkError(
                    f"stopped after {self._max_redirects} redirects", retryable=False, cause=e
                ).with_context(source=self.uid, url=self._url) from e
            except httpx.HTTPStatusError as e:
                status = e.response.status_code
                error_cls = SourceNotFoundError if status == 404 else SourceError
                raise error_cls(f"download failed with HTTP {status}", cause=e).with_context(
                    source=self.uid, url=self._url, http_status=status
                ) from e
            except httpx.TransportError as e:
                raise NetworkError(f"download failed: {e}", cause=e).with_context(
                    source=self.uid, url=self._url
                ) from e
        logger.debug("iterator.downloaded", source=self.uid, bytes=target.stat().st_size)
