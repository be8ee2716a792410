"""
Result Aggregate: per-source accumulation of verdicts and errors.

Manifesto:
    Presentation layers need one read-only mapping of source → what every
    backend said about every item under it, plus what went wrong. Writers
    append; nobody overwrites. Merge order never matters.

Architecture:
    ::

        ScanResult
        ├── aggregate: ResultAggregate
        │     source uid → SourceResult
        │                    ├── parent      (lineage: git+… → file://…)
        │                    ├── findings    one per (item uid, backend)
        │                    ├── errors      traversal + backend failures
        │                    └── done        no writes accepted afterwards
        ├── cancelled
        └── run_id

Features:
    - **Append-only:** a (item, backend) pair is recorded once
    - **Provenance:** claims are kept per backend, never merged across them
    - **Lineage:** ``children_of`` / ``lineage`` / ``licenses_for(recursive)``
    - **Set semantics:** ``snapshot()`` compares aggregates independent of order

Tags:
    results, aggregate, verdict, lineage, scanspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import threading
from collections.abc import Iterator
from dataclasses import dataclass, field
from typing import Any

from scanspine.core.errors import OrchestrationError, ScanspineError
from scanspine.framework.backends.protocol import Verdict
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License, unique_licenses


@dataclass(frozen=True)
class Finding:
    """One backend's verdict on one content item."""

    item: ContentInfo
    backend: str
    verdict: Verdict
    cached: bool = False
    partial: bool = False

    @property
    def licenses(self) -> tuple[License, ...]:
        return self.verdict.licenses

    def to_dict(self) -> dict[str, Any]:
        return {
            "item": self.item.uid,
            "path": self.item.path,
            "backend": self.backend,
            "licenses": [str(x) for x in self.verdict.licenses],
            "verdict": self.verdict.to_dict(),
            "cached": self.cached,
            "partial": self.partial,
        }


@dataclass
class SourceResult:
    """Everything recorded against one source identifier."""

    source: str
    parent: str | None = None
    findings: list[Finding] = field(default_factory=list)
    errors: list[ScanspineError] = field(default_factory=list)
    done: bool = False

    @property
    def licenses(self) -> tuple[License, ...]:
        """Distinct claims across all findings, first-seen order."""
        return unique_licenses(x for f in self.findings for x in f.licenses)

    @property
    def verdicts(self) -> list[Verdict]:
        return [f.verdict for f in self.findings]

    def to_dict(self) -> dict[str, Any]:
        return {
            "source": self.source,
            "parent": self.parent,
            "done": self.done,
            "licenses": [str(x) for x in self.licenses],
            "findings": [f.to_dict() for f in self.findings],
            "errors": [e.to_dict() for e in self.errors],
        }


class ResultAggregate:
    """
    Source identifier → SourceResult, safe for concurrent writers.

    Writes for a source are rejected once it is marked done.
    """

    def __init__(self) -> None:
        self._sources: dict[str, SourceResult] = {}
        self._seen: set[tuple[str, str, str]] = set()
        self._lock = threading.Lock()

    # ── writes ───────────────────────────────────────────────────

    def register_source(self, source: str, parent: str | None = None) -> SourceResult:
        """Create the entry for ``source`` if needed; the first parent sticks."""
        with self._lock:
            result = self._sources.get(source)
            if result is None:
                result = self._sources[source] = SourceResult(source=source, parent=parent)
            elif result.parent is None and parent is not None:
                result.parent = parent
            return result

    def add_verdict(
        self,
        source: str,
        item: ContentInfo,
        verdict: Verdict,
        *,
        cached: bool = False,
        partial: bool = False,
    ) -> bool:
        """
        Record a verdict. Returns False if this (item, backend) was already recorded.

        Raises:
            OrchestrationError: Source already marked done
        """
        key = (source, item.uid, verdict.backend)
        with self._lock:
            result = self._writable(source)
            if key in self._seen:
                return False
            self._seen.add(key)
            result.findings.append(
                Finding(item=item, backend=verdict.backend, verdict=verdict, cached=cached, partial=partial)
            )
            return True

    def add_error(self, source: str, error: ScanspineError) -> None:
        """
        Record a non-fatal error against ``source``.

        Raises:
            OrchestrationError: Source already marked done
        """
        with self._lock:
            self._writable(source).errors.append(error)

    def mark_done(self, source: str) -> None:
        with self._lock:
            self._writable(source).done = True

    def _writable(self, source: str) -> SourceResult:
        result = self._sources.get(source)
        if result is None:
            result = self._sources[source] = SourceResult(source=source)
        elif result.done:
            raise OrchestrationError(f"source already complete: {source}").with_context(source=source)
        return result

    # ── reads ────────────────────────────────────────────────────

    def get(self, source: str) -> SourceResult:
        with self._lock:
            try:
                return self._sources[source]
            except KeyError:
                raise KeyError(f"no results for source: {source}") from None

    def __contains__(self, source: object) -> bool:
        return source in self._sources

    def __len__(self) -> int:
        return len(self._sources)

    def __iter__(self) -> Iterator[str]:
        return iter(self.sources())

    def sources(self) -> list[str]:
        with self._lock:
            return sorted(self._sources)

    def roots(self) -> list[str]:
        """Sources nobody yielded."""
        with self._lock:
            return sorted(s for s, r in self._sources.items() if r.parent is None)

    def children_of(self, source: str) -> list[str]:
        with self._lock:
            return sorted(s for s, r in self._sources.items() if r.parent == source)

    def lineage(self, source: str) -> list[str]:
        """``source`` followed by its ancestors, nearest first."""
        chain = [source]
        with self._lock:
            current = self._sources.get(source)
            while current is not None and current.parent is not None and current.parent not in chain:
                chain.append(current.parent)
                current = self._sources.get(current.parent)
        return chain

    def descendants(self, source: str) -> list[str]:
        found: list[str] = []
        pending = [source]
        while pending:
            for child in self.children_of(pending.pop()):
                if child not in found and child != source:
                    found.append(child)
                    pending.append(child)
        return found

    def licenses_for(self, source: str, *, recursive: bool = False) -> tuple[License, ...]:
        sources = [source, *self.descendants(source)] if recursive else [source]
        claims: list[License] = []
        for s in sources:
            if s in self._sources:
                claims.extend(self.get(s).licenses)
        return unique_licenses(claims)

    def errors_for(self, source: str, *, recursive: bool = False) -> list[ScanspineError]:
        sources = [source, *self.descendants(source)] if recursive else [source]
        return [e for s in sources if s in self._sources for e in self.get(s).errors]

    def all_errors(self) -> list[ScanspineError]:
        with self._lock:
            return [e for r in self._sources.values() for e in r.errors]

    def snapshot(self) -> dict[str, tuple[frozenset[Any], frozenset[Any]]]:
        """Order-free view: source → (findings, errors) as sets."""
        with self._lock:
            return {
                source: (
                    frozenset((f.item.uid, f.backend, f.verdict.licenses, f.partial) for f in r.findings),
                    frozenset((type(e).__name__, e.message, e.context.backend, e.context.item) for e in r.errors),
                )
                for source, r in self._sources.items()
            }

    def to_dict(self) -> dict[str, Any]:
        return {source: self.get(source).to_dict() for source in self.sources()}


@dataclass
class ScanResult:
    """What ``ScanEngine.run`` returns."""

    aggregate: ResultAggregate
    run_id: str
    cancelled: bool = False

    @property
    def errors(self) -> list[ScanspineError]:
        return self.aggregate.all_errors()

    @property
    def ok(self) -> bool:
        return not self.cancelled and not self.errors

    def to_dict(self) -> dict[str, Any]:
        return {
            "run_id": self.run_id,
            "cancelled": self.cancelled,
            "sources": self.aggregate.to_dict(),
        }
