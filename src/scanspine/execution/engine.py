"""
Scan engine: drive iterators to completion and fan items out to backends.

Manifesto:
    A scan is a growing set of independent tasks: one per iterator
    enumeration, one per emitted content item (which fans out to every
    enabled backend). One driver loop waits on that set until it is empty.
    No recursion, no ordering assumptions, no shared mutable state except
    the cache and the result aggregate.

Architecture:
    ::

        ScanEngine.run(roots, backends, cache)
          │
          ├── work set: asyncio tasks
          │     ├── enumerate(iterator)      ≤ max_iterators at once
          │     │     sink.add_item      → dispatch task  (≤ max_pending_items)
          │     │     sink.add_iterator  → enumerate task (child source)
          │     └── dispatch(item)
          │           └── per backend: fingerprint → cache hit?
          │                              else scan  (≤ max_concurrency)
          │
          ├── driver: asyncio.wait(FIRST_COMPLETED) until the set is empty
          └── ResultAggregate ← verdicts + errors, per source

    A source is done once its enumeration and every dispatch of its items
    have finished; the aggregate then refuses writes for it and
    ``on_source_done`` fires.

Failure policy:
    - iterator failure    → error on that source, siblings continue
    - backend failure     → error on (source, backend, item), partial verdict kept
    - no enabled backends → ConfigError out of ``run``
    - ``cancel`` event    → in-flight work cancelled, unfinished sources get
                            ScanCancelledError, partial aggregate returned
    - run task cancelled  → children cancelled, CancelledError propagates

Caching:
    Fingerprint = sha256(name@version, NUL, fingerprint_info, NUL, bytes).
    Check-then-insert is serialized per fingerprint with KeyedLocks so
    concurrent identical items scan once. Cache reads and writes run in a
    worker thread so a DirectoryCache never blocks the event loop. Verdicts
    are cached only on success. Duplicate work across processes sharing a
    DirectoryCache is tolerated.

Tags:
    engine, orchestrator, asyncio, fan-out, cache, scanspine

Doc-Types:
    - API Reference
    - Technical Design
"""

from __future__ import annotations

import asyncio
import uuid
from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import replace

from scanspine.core.cache import KeyedLocks, VerdictCache
from scanspine.core.errors import (
    BackendError,
    ConfigError,
    ScanCancelledError,
    ScanspineError,
    wrap_error,
)
from scanspine.core.hashing import fingerprint
from scanspine.core.logging import LogContext, get_logger
from scanspine.core.settings import ScanSettings
from scanspine.execution.results import ResultAggregate, ScanResult
from scanspine.framework.backends.protocol import Backend, Verdict
from scanspine.framework.iterators.protocol import BaseIterator, ContentItem

logger = get_logger(__name__)

SourceDoneCallback = Callable[[str], None]


def select_backends(backends: Sequence[Backend], enabled: Mapping[str, bool] | None) -> list[Backend]:
    """
    Apply a resolved name → enabled map to the available backends.

    Raises:
        ConfigError: Duplicate backend names, unknown names in ``enabled``,
            or nothing left to run
    """
    names = [b.name for b in backends]
    duplicates = sorted({n for n in names if names.count(n) > 1})
    if duplicates:
        raise ConfigError(f"duplicate backend name(s): {', '.join(duplicates)}")
    if enabled is not None:
        unknown = sorted(set(enabled) - set(names))
        if unknown:
            raise ConfigError(f"unknown backend(s) in enabled map: {', '.join(unknown)}")
        backends = [b for b in backends if enabled.get(b.name, False)]
    if not backends:
        raise ConfigError("no backends enabled")
    return list(backends)


class _SourceSink:
    """Sink handed to one iterator; everything it receives belongs to that source."""

    def __init__(self, run: _ScanRun, source: str):
        self._run = run
        self._source = source

    async def add_item(self, item: ContentItem) -> None:
        await self._run.submit_item(self._source, item)

    async def add_iterator(self, iterator: BaseIterator) -> None:
        self._run.schedule_iterator(iterator, parent=iterator.parent or self._source)


class _ScanRun:
    """State of one ``ScanEngine.run`` call."""

    def __init__(
        self,
        settings: ScanSettings,
        backends: list[Backend],
        cache: VerdictCache | None,
        on_source_done: SourceDoneCallback | None,
        run_id: str,
    ):
        self.run_id = run_id
        self.aggregate = ResultAggregate()
        self._backends = backends
        self._cache = cache
        self._on_source_done = on_source_done
        self._backend_slots = asyncio.Semaphore(settings.max_concurrency)
        self._item_slots = asyncio.Semaphore(settings.max_pending_items)
        self._iterator_slots = asyncio.Semaphore(settings.max_iterators)
        self._locks = KeyedLocks()
        self._tasks: set[asyncio.Task[None]] = set()
        self._scheduled: set[str] = set()
        self._outstanding: dict[str, int] = {}
        self._cancelling = False

    # ── work set ─────────────────────────────────────────────────

    def _spawn(self, coro) -> None:
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    def _acquire(self, source: str) -> None:
        self._outstanding[source] = self._outstanding.get(source, 0) + 1

    def _release(self, source: str) -> None:
        self._outstanding[source] -= 1
        if self._outstanding[source] or self._cancelling:
            return
        del self._outstanding[source]
        self.aggregate.mark_done(source)
        logger.debug("source.done", source=source)
        if self._on_source_done is not None:
            self._on_source_done(source)

    def schedule_iterator(self, iterator: BaseIterator, *, parent: str | None = None) -> None:
        source = iterator.uid
        if source in self._scheduled:
            logger.debug("engine.duplicate_source", source=source)
            return
        self._scheduled.add(source)
        self.aggregate.register_source(source, parent)
        self._acquire(source)
        self._spawn(self._enumerate(iterator))

    async def submit_item(self, source: str, item: ContentItem) -> None:
        await self._item_slots.acquire()
        self._acquire(source)
        self._spawn(self._dispatch(source, item))

    # ── tasks ────────────────────────────────────────────────────

    async def _enumerate(self, iterator: BaseIterator) -> None:
        source = iterator.uid
        try:
            async with self._iterator_slots:
                await iterator.enumerate(_SourceSink(self, source))
        except ScanspineError as e:
            self._record_error(source, e.with_context(source=source))
        except Exception as e:
            self._record_error(source, wrap_error(e, source=source))
        finally:
            self._release(source)

    async def _dispatch(self, source: str, item: ContentItem) -> None:
        try:
            await asyncio.gather(*(self._scan_one(source, item, b) for b in self._backends))
        finally:
            self._item_slots.release()
            self._release(source)

    async def _scan_one(self, source: str, item: ContentItem, backend: Backend) -> None:
        try:
            verdict, cached = await self._verdict(item, backend)
        except BackendError as e:
            e.with_context(source=source, backend=backend.name, item=item.info.uid)
            self._record_error(source, e)
            if e.partial is not None:
                partial = self._attribute(e.partial, backend)
                self.aggregate.add_verdict(source, item.info, partial, partial=True)
            return
        except ScanspineError as e:
            self._record_error(source, e.with_context(source=source, backend=backend.name, item=item.info.uid))
            return
        except Exception as e:
            error = BackendError(f"backend {backend.name} failed: {e}", cause=e).with_context(
                source=source, backend=backend.name, item=item.info.uid
            )
            self._record_error(source, error)
            return
        self.aggregate.add_verdict(source, item.info, verdict, cached=cached)

    async def _verdict(self, item: ContentItem, backend: Backend) -> tuple[Verdict, bool]:
        if self._cache is None:
            return await self._invoke(item, backend), False

        fp = fingerprint(item.data, backend.name, backend.version, backend.fingerprint_info(item.info))
        async with self._locks.hold(fp):
            hit = await asyncio.to_thread(self._cache.get, fp)
            if hit is not None:
                logger.debug("cache.hit", backend=backend.name, item=item.info.uid)
                return hit, True
            verdict = await self._invoke(item, backend)
            try:
                await asyncio.to_thread(self._cache.set, fp, verdict)
            except OSError as e:
                logger.warning("cache.write_failed", backend=backend.name, error=str(e))
            return verdict, False

    async def _invoke(self, item: ContentItem, backend: Backend) -> Verdict:
        async with self._backend_slots:
            verdict = await backend.scan(item.data, item.info)
        return self._attribute(verdict, backend)

    @staticmethod
    def _attribute(verdict: Verdict, backend: Backend) -> Verdict:
        if verdict.backend != backend.name:
            verdict = replace(verdict, backend=backend.name)
        return verdict

    def _record_error(self, source: str, error: ScanspineError) -> None:
        log = logger.warning if error.context.backend is None else logger.info
        event = "iterator.enumerate_failed" if error.context.backend is None else "backend.scan_failed"
        log(event, **error.to_dict())
        self.aggregate.add_error(source, error)

    # ── driver ───────────────────────────────────────────────────

    async def drive(self, cancel: asyncio.Event | None) -> bool:
        """Wait until the work set drains. Returns True if cancelled."""
        waiter = asyncio.ensure_future(cancel.wait()) if cancel is not None else None
        try:
            while self._tasks:
                pending: set[asyncio.Future] = set(self._tasks)
                if waiter is not None:
                    pending.add(waiter)
                done, _ = await asyncio.wait(pending, return_when=asyncio.FIRST_COMPLETED)
                if waiter is not None and waiter in done:
                    await self._shutdown()
                    return True
                failed = [t for t in done if t is not waiter and not t.cancelled() and t.exception() is not None]
                if failed:
                    await self._shutdown()
                    raise failed[0].exception()
            return False
        except asyncio.CancelledError:
            await self._shutdown()
            raise
        finally:
            if waiter is not None:
                waiter.cancel()

    async def _shutdown(self) -> None:
        self._cancelling = True
        tasks = list(self._tasks)
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)

    def close_unfinished(self) -> None:
        for source in self.aggregate.sources():
            if not self.aggregate.get(source).done:
                self.aggregate.add_error(
                    source, ScanCancelledError("scan cancelled before source completed").with_context(source=source)
                )
                self.aggregate.mark_done(source)


class ScanEngine:
    """
    Orchestrator for one or more scans.

    Example:
        engine = ScanEngine(ScanSettings(max_concurrency=16))
        result = await engine.run(
            [FsIterator("./project")],
            [CranBackend(), SpdxBackend()],
            cache=InMemoryCache(),
        )
        for source in result.aggregate:
            print(source, result.aggregate.licenses_for(source))
    """

    def __init__(self, settings: ScanSettings | None = None, **overrides):
        settings = settings or ScanSettings()
        if overrides:
            settings = ScanSettings(**{**settings.model_dump(), **overrides})
        self._settings = settings

    @property
    def settings(self) -> ScanSettings:
        return self._settings

    async def run(
        self,
        roots: Iterable[BaseIterator],
        backends: Sequence[Backend],
        cache: VerdictCache | None = None,
        *,
        enabled: Mapping[str, bool] | None = None,
        cancel: asyncio.Event | None = None,
        on_source_done: SourceDoneCallback | None = None,
    ) -> ScanResult:
        """
        Scan every root and return the aggregate.

        Raises:
            ConfigError: No backends to run
            asyncio.CancelledError: The calling task was cancelled
        """
        selected = select_backends(backends, enabled)
        run_id = uuid.uuid4().hex[:12]
        state = _ScanRun(self._settings, selected, cache, on_source_done, run_id)

        async with LogContext(run_id=run_id):
            logger.info("engine.run_started", backends=[f"{b.name}@{b.version}" for b in selected])
            for root in roots:
                state.schedule_iterator(root, parent=root.parent)
            cancelled = await state.drive(cancel)
            if cancelled:
                state.close_unfinished()
                logger.warning("engine.run_cancelled", sources=len(state.aggregate))
            result = ScanResult(aggregate=state.aggregate, run_id=run_id, cancelled=cancelled)
            logger.info(
                "engine.run_completed",
                sources=len(state.aggregate),
                errors=len(result.errors),
                cancelled=cancelled,
            )
        return result


__all__ = [
    "ScanEngine",
    "select_backends",
]
