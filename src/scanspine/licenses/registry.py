"""
License registry: read-only lookup of canonical license metadata.

The registry is loaded once from an SPDX license-list dataset (the
``licenses.json`` of spdx/license-list-data, optionally with its
``details/`` directory for full texts) and never mutated afterwards.

The bundled dataset lists every identifier of the SPDX license list with
its deprecation flag; display names, approval flags and reference links
are filled in for the common licenses only, and it carries no texts. Point
``registry_path`` at a license-list-data checkout (``json/licenses.json``)
for the complete metadata and texts.

All concurrent readers share one instance; lookups are exact-match and
case-sensitive.

Architecture:
    ::

        licenses.json ──► LicenseRegistry.from_spdx() ──► MappingProxyType
        details/<id>.json ─┘ (licenseText)                 (immutable index)

        get_registry()   ─ process-wide instance, initialized once
        init_registry()  ─ explicit one-time initialization from a path

Examples:
    >>> registry = LicenseRegistry.bundled()
    >>> registry.get("MIT").name
    'MIT License'
    >>> "mit" in registry
    False

Tags:
    licenses, spdx, registry, immutable, scanspine

Doc-Types:
    - API Reference
"""

from __future__ import annotations

import json
import threading
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any

from scanspine.core.errors import ConfigError, UnknownLicenseError
from scanspine.core.logging import get_logger

logger = get_logger(__name__)

BUNDLED_DATASET = "licenses.json"


@dataclass(frozen=True)
class LicenseEntry:
    """
    Immutable metadata for one canonical license.

    Approval flags are ``None`` when the dataset does not state them.
    """

    license_id: str
    name: str
    deprecated: bool = False
    osi_approved: bool | None = None
    fsf_libre: bool | None = None
    text: str = ""
    see_also: tuple[str, ...] = ()
    reference: str = ""

    @classmethod
    def from_spdx(cls, raw: Mapping[str, Any], text: str = "") -> LicenseEntry:
        """Build an entry from one element of the SPDX ``licenses`` array."""
        try:
            license_id = raw["licenseId"]
        except KeyError as e:
            raise ConfigError("license entry without licenseId", cause=e) from e
        return cls(
            license_id=license_id,
            name=raw.get("name", license_id),
            deprecated=bool(raw.get("isDeprecatedLicenseId", False)),
            osi_approved=_flag(raw, "isOsiApproved"),
            fsf_libre=_flag(raw, "isFsfLibre"),
            text=text or raw.get("licenseText", ""),
            see_also=tuple(raw.get("seeAlso", ())),
            reference=raw.get("reference", ""),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "license_id": self.license_id,
            "name": self.name,
            "deprecated": self.deprecated,
            "osi_approved": self.osi_approved,
            "fsf_libre": self.fsf_libre,
            "see_also": list(self.see_also),
        }


class LicenseRegistry:
    """
    Immutable index of LicenseEntry by canonical identifier.

    Safe for concurrent readers: the index is built in ``__init__`` and only
    exposed through a read-only mapping.
    """

    def __init__(self, entries: Iterable[LicenseEntry], *, version: str = ""):
        index: dict[str, LicenseEntry] = {}
        for entry in entries:
            if entry.license_id in index:
                raise ConfigError(f"duplicate license identifier: {entry.license_id}")
            index[entry.license_id] = entry
        self._entries: Mapping[str, LicenseEntry] = MappingProxyType(index)
        self._version = version

    @property
    def version(self) -> str:
        """License list version of the dataset."""
        return self._version

    def get(self, license_id: str) -> LicenseEntry:
        """
        Look up an entry by exact identifier.

        Raises:
            UnknownLicenseError: If the identifier is not in the registry
        """
        try:
            return self._entries[license_id]
        except KeyError:
            raise UnknownLicenseError(license_id) from None

    def __contains__(self, license_id: object) -> bool:
        return license_id in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[str]:
        return iter(self._entries)

    def ids(self) -> list[str]:
        """All identifiers, sorted."""
        return sorted(self._entries)

    # ── Loading ──────────────────────────────────────────────────────

    @classmethod
    def from_spdx(
        cls,
        document: Mapping[str, Any],
        details_dir: Path | None = None,
    ) -> LicenseRegistry:
        """
        Build a registry from a parsed SPDX ``licenses.json`` document.

        If ``details_dir`` is given, each entry's full text is read from the
        per-license details file its ``reference`` points at.
        """
        raw_entries = document.get("licenses") or []
        if not raw_entries:
            raise ConfigError("license dataset contains no licenses")

        entries = []
        for raw in raw_entries:
            text = ""
            if details_dir is not None and raw.get("reference"):
                text = _read_details_text(details_dir / raw["reference"].removeprefix("./"))
            entries.append(LicenseEntry.from_spdx(raw, text=text))
        return cls(entries, version=document.get("licenseListVersion", ""))

    @classmethod
    def load(cls, path: str | Path) -> LicenseRegistry:
        """
        Load from a ``licenses.json`` file.

        A sibling ``details/`` directory, as laid out in license-list-data,
        is used for license texts when present.
        """
        path = Path(path)
        try:
            document = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as e:
            raise ConfigError(f"cannot load license dataset: {path}", cause=e) from e
        details = path.parent / "details"
        return cls.from_spdx(document, details if details.is_dir() else None)

    @classmethod
    def bundled(cls) -> LicenseRegistry:
        """Registry from the dataset shipped with the package."""
        data = resources.files("scanspine.licenses").joinpath("data").joinpath(BUNDLED_DATASET).read_text(encoding="utf-8")
        return cls.from_spdx(json.loads(data))


def _flag(raw: Mapping[str, Any], key: str) -> bool | None:
    value = raw.get(key)
    return None if value is None else bool(value)


def _read_details_text(path: Path) -> str:
    try:
        details = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, ValueError) as e:
        raise ConfigError(f"cannot read license details: {path}", cause=e) from e
    return details.get("licenseText", "")


# ── Process-wide registry ────────────────────────────────────────────────

_registry: LicenseRegistry | None = None
_lock = threading.Lock()


def init_registry(path: str | Path | None = None) -> LicenseRegistry:
    """
    Initialize the process-wide registry exactly once.

    Args:
        path: ``licenses.json`` to load; ``None`` uses the bundled dataset

    Raises:
        ConfigError: If the registry was already initialized
    """
    global _registry
    with _lock:
        if _registry is not None:
            raise ConfigError("license registry already initialized")
        _registry = LicenseRegistry.load(path) if path else LicenseRegistry.bundled()
        logger.debug("registry.initialized", licenses=len(_registry), version=_registry.version)
        return _registry


def get_registry() -> LicenseRegistry:
    """Return the process-wide registry, initializing from the bundled dataset if needed."""
    global _registry
    if _registry is not None:
        return _registry
    with _lock:
        if _registry is None:
            _registry = LicenseRegistry.bundled()
            logger.debug("registry.initialized", licenses=len(_registry), version=_registry.version)
        return _registry


def clear_registry() -> None:
    """Forget the process-wide registry (for testing)."""
    global _registry
    with _lock:
        _registry = None
