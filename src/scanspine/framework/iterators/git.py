"""
Git iterator: clone a repository reference, then hand off to the filesystem.

WHY
───
Scanning a remote repository is "get the bytes locally, then walk them".
The clone lives in a private checkout directory derived from the source
identifier, so repeated scans of the same reference reuse it (fetch instead
of clone) and two different references never share one.

ARCHITECTURE
────────────
::

    GitIterator(url, ref=None, prefix=work_dir)
      ├── .uid          ─ "git+<url without .git>[@ref]"
      ├── ._clone()     ─ git clone --depth 1 (or fetch + checkout if present)
      └── ._enumerate() ─ yields exactly one FsIterator(checkout, exclude .git)

    On failure nothing is yielded and the error is attributed to .uid.

Uses the ``git`` executable through asyncio subprocesses; the clone is the
suspension point, the walk happens in the child FsIterator.
"""

from __future__ import annotations

import asyncio
import os
import shutil
from pathlib import Path

from scanspine.core.errors import NetworkError, SourceError, SourceNotFoundError
from scanspine.core.hashing import compute_hash
from scanspine.core.logging import get_logger
from scanspine.framework.iterators.fs import FsIterator
from scanspine.framework.iterators.protocol import (
    GIT_SCHEME_PREFIX,
    BaseIterator,
    IteratorKind,
    Sink,
)

logger = get_logger(__name__)

GIT_SUFFIX = ".git"

# stderr fragments that mean the remote could not be reached at all
_NETWORK_MARKERS = (
    "could not resolve host",
    "unable to access",
    "connection timed out",
    "connection refused",
    "network is unreachable",
)
_NOT_FOUND_MARKERS = (
    "not found",
    "does not exist",
    "couldn't find remote ref",
)


class GitIterator(BaseIterator):
    """Iterator over one reference of a git repository."""

    kind = IteratorKind.GIT

    def __init__(
        self,
        url: str,
        *,
        prefix: str | Path,
        ref: str | None = None,
        parent: str | None = None,
        trim_git_suffix: bool = True,
        depth: int = 1,
        git: str = "git",
    ):
        super().__init__(parent=parent)
        self._url = url
        self._ref = ref
        self._prefix = Path(prefix)
        self._trim_git_suffix = trim_git_suffix
        self._depth = depth
        self._git = git

    @property
    def url(self) -> str:
        return self._url

    @property
    def ref(self) -> str | None:
        return self._ref

    @property
    def uid(self) -> str:
        url = self._url
        if self._trim_git_suffix:
            url = url.removesuffix(GIT_SUFFIX)
        uid = GIT_SCHEME_PREFIX + url
        if self._ref:
            uid += "@" + self._ref
        return uid

    @property
    def checkout_dir(self) -> Path:
        """Private clone location for this reference."""
        return self._prefix / "git" / compute_hash(self.uid)

    async def _enumerate(self, sink: Sink) -> None:
        dest = self.checkout_dir
        await self._clone(dest)
        logger.info("iterator.git_cloned", source=self.uid, path=str(dest))
        await sink.add_iterator(FsIterator(dest, parent=self.uid, exclude_dirs={GIT_SUFFIX}))

    async def _clone(self, dest: Path) -> None:
        if (dest / GIT_SUFFIX).is_dir():
            await self._run_git("fetch", "--quiet", "--depth", str(self._depth), "origin", self._ref or "HEAD", cwd=dest)
            await self._run_git("checkout", "--quiet", "--force", "FETCH_HEAD", cwd=dest)
            return

        if dest.exists():
            # leftover from an interrupted clone
            shutil.rmtree(dest)
        dest.parent.mkdir(parents=True, exist_ok=True)

        args = ["clone", "--quiet", "--depth", str(self._depth)]
        if self._ref:
            args += ["--branch", self._ref]
        args += ["--", self._url, str(dest)]
        await self._run_git(*args)

    async def _run_git(self, *args: str, cwd: Path | None = None) -> str:
        """Run git, returning stdout; failures are mapped onto the error hierarchy."""
        env = {**os.environ, "GIT_TERMINAL_PROMPT": "0"}
        try:
            proc = await asyncio.create_subprocess_exec(
                self._git,
                *args,
                cwd=cwd,
                env=env,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except FileNotFoundError as e:
            raise SourceError(f"git executable not found: {self._git}", cause=e).with_context(
                source=self.uid
            ) from e

        try:
            stdout, stderr = await proc.communicate()
        except asyncio.CancelledError:
            proc.kill()
            raise

        if proc.returncode != 0:
            message = stderr.decode(errors="replace").strip() or f"exit status {proc.returncode}"
            raise self._classify_failure(args[0], message)
        return stdout.decode(errors="replace")

    def _classify_failure(self, command: str, message: str) -> SourceError | NetworkError:
        lowered = message.lower()
        text = f"git {command} failed: {message}"
        if any(marker in lowered for marker in _NETWORK_MARKERS):
            error: SourceError | NetworkError = NetworkError(text)
        elif any(marker in lowered for marker in _NOT_FOUND_MARKERS):
            error = SourceNotFoundError(text)
        else:
            error = SourceError(text)
        error.with_context(source=self.uid, url=self._url)
        return error
