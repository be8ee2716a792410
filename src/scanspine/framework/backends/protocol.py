"""
Backend protocol: one content item in, one Verdict out.

Design Principles:
- Protocol over Inheritance: the engine needs only ``name``, ``version``
  and ``scan``; BaseBackend is a convenience, not a requirement
- Independence: backends share no mutable state (the license registry is
  read-only); a failure in one never affects another
- Determinism: the same bytes give the same Verdict, which is what makes
  content-addressed caching sound

A backend that finds nothing relevant returns an empty Verdict. It raises
only when it cannot complete analysis (malformed input it claims to
understand, internal resource errors) and may attach a partial Verdict to
the BackendError it raises.

Usage:
    class ReadmeBackend(BaseBackend):
        name = "readme"
        version = "1"

        def scan_data(self, data: bytes, info: ContentInfo) -> Verdict:
            if info.name != "README":
                return self.verdict()
            ...
"""

from __future__ import annotations

import asyncio
from abc import ABC, abstractmethod
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, ClassVar, Protocol, runtime_checkable

from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License, unique_licenses
from scanspine.licenses.registry import LicenseRegistry, get_registry

if TYPE_CHECKING:
    from scanspine.core.settings import ScanSettings


@dataclass(frozen=True)
class Verdict:
    """
    Output of one backend for one content item.

    ``licenses`` is deduplicated on construction (first-seen order kept).
    ``confidence`` and ``details`` carry backend-specific provenance.
    """

    backend: str
    licenses: tuple[License, ...] = ()
    confidence: float | None = None
    details: Mapping[str, Any] = field(default_factory=dict, hash=False)

    def __post_init__(self) -> None:
        object.__setattr__(self, "licenses", unique_licenses(self.licenses))

    @property
    def empty(self) -> bool:
        return not self.licenses

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {
            "backend": self.backend,
            "licenses": [license.to_dict() for license in self.licenses],
        }
        if self.confidence is not None:
            result["confidence"] = self.confidence
        if self.details:
            result["details"] = dict(self.details)
        return result

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Verdict:
        return cls(
            backend=data["backend"],
            licenses=tuple(License.from_dict(x) for x in data.get("licenses", [])),
            confidence=data.get("confidence"),
            details=dict(data.get("details", {})),
        )


@runtime_checkable
class Backend(Protocol):
    """
    Protocol for analysis backends.

    ``scan`` must be safe to call concurrently for distinct items and must
    not keep a reference to ``data`` after returning.
    """

    @property
    def name(self) -> str:
        """Stable backend name (used for enable/disable and attribution)."""
        ...

    @property
    def version(self) -> str:
        """Changes whenever the same bytes could produce a different verdict."""
        ...

    def fingerprint_info(self, info: ContentInfo) -> str:
        """Item metadata, beyond the bytes, that this backend's verdict depends on."""
        ...

    async def scan(self, data: bytes, info: ContentInfo) -> Verdict:
        """Analyze one content item."""
        ...


class BaseBackend(ABC):
    """
    Base class for backends whose analysis is plain synchronous code.

    ``scan`` runs ``scan_data`` in a worker thread so slow analysis does not
    stall traversal or other backends.
    """

    name: ClassVar[str]
    version: ClassVar[str] = "1"
    description: ClassVar[str] = ""
    default_enabled: ClassVar[bool] = True

    def __init__(self, *, registry: LicenseRegistry | None = None):
        self._registry = registry

    @classmethod
    def from_settings(cls, settings: ScanSettings, *, registry: LicenseRegistry | None = None) -> BaseBackend:
        """Construct from run settings; backends with their own config override this."""
        return cls(registry=registry)

    @property
    def registry(self) -> LicenseRegistry:
        return self._registry if self._registry is not None else get_registry()

    @property
    def identity(self) -> str:
        return f"{self.name}@{self.version}"

    def fingerprint_info(self, info: ContentInfo) -> str:
        """
        Part of the cache key taken from item metadata.

        Empty by default: the verdict depends on the bytes alone. Backends
        that look at ``info`` (a file name, say) return what they look at,
        so two items with equal bytes share a cache entry only when the
        backend would treat them the same.
        """
        return ""

    async def scan(self, data: bytes, info: ContentInfo) -> Verdict:
        return await asyncio.to_thread(self.scan_data, data, info)

    @abstractmethod
    def scan_data(self, data: bytes, info: ContentInfo) -> Verdict:
        """Synchronous analysis of one content item."""

    def verdict(
        self,
        licenses: Iterable[License] = (),
        *,
        confidence: float | None = None,
        **details: Any,
    ) -> Verdict:
        """Build a Verdict attributed to this backend."""
        return Verdict(
            backend=self.name,
            licenses=tuple(licenses),
            confidence=confidence,
            details=details,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.identity})"
