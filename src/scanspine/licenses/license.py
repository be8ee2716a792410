"""
License claims: canonical, comparable license statements.

A claim is either a registry identifier (an SPDX ID validated against the
LicenseRegistry) or an (origin, custom) pair naming a license in some other
namespace. Origin should be a reverse-DNS style namespace; an empty origin
means the provenance is unknown, which is only acceptable as an
intermediate state (``validate()`` rejects it).

Equality is exact on all three fields. No semantic equivalence is inferred
between ``License(spdx="MIT")`` and ``License(origin="x", custom="MIT")``.

Examples:
    >>> str(License(spdx="MIT"))
    'MIT'
    >>> str(License(origin="cran", custom="AGPL-3"))
    'AGPL-3(cran)'
    >>> str(License(custom="AGPL-3"))
    'AGPL-3(unknown)'
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Any

from scanspine.core.errors import InvalidLicenseError, LicenseMismatchError, ValidationError
from scanspine.licenses.registry import LicenseEntry, LicenseRegistry, get_registry


@dataclass(frozen=True)
class License:
    """An immutable license claim."""

    spdx: str = ""
    origin: str = ""
    custom: str = ""

    def __str__(self) -> str:
        if self.origin and self.custom:
            return f"{self.custom}({self.origin})"
        if self.custom:
            return f"{self.custom}(unknown)"
        return self.spdx

    def validate(self, registry: LicenseRegistry | None = None) -> None:
        """
        Check the claim has a valid representation.

        A registry identifier must exist in the registry; a custom identifier
        needs an origin; a claim with nothing set is invalid.

        Raises:
            UnknownLicenseError: Registry identifier not found
            InvalidLicenseError: Custom license without origin, or empty claim
        """
        if self.spdx:
            self.entry(registry)
            return
        if self.origin and self.custom:
            return
        if self.custom:
            raise InvalidLicenseError(f"unknown custom license: {self.custom}")
        raise InvalidLicenseError("unknown license format")

    def entry(self, registry: LicenseRegistry | None = None) -> LicenseEntry:
        """Registry metadata for this claim's identifier."""
        if registry is None:
            registry = get_registry()
        return registry.get(self.spdx)

    def is_valid(self, registry: LicenseRegistry | None = None) -> bool:
        try:
            self.validate(registry)
        except ValidationError:
            return False
        return True

    def to_dict(self) -> dict[str, str]:
        return {"spdx": self.spdx, "origin": self.origin, "custom": self.custom}

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> License:
        return cls(
            spdx=data.get("spdx", ""),
            origin=data.get("origin", ""),
            custom=data.get("custom", ""),
        )


def compare(a: License, b: License) -> None:
    """
    Check two claims are identical.

    Fields are compared in order spdx, origin, custom; the first difference
    is reported.

    Raises:
        LicenseMismatchError: With ``field`` set to the differing field
    """
    for field_name in ("spdx", "origin", "custom"):
        if getattr(a, field_name) != getattr(b, field_name):
            raise LicenseMismatchError(field_name)


def join_licenses(licenses: Iterable[License]) -> str:
    """Comma-space join of the string renderings."""
    return ", ".join(str(license) for license in licenses)


def unique_licenses(licenses: Iterable[License]) -> tuple[License, ...]:
    """Drop repeated claims, keeping first-seen order."""
    return tuple(dict.fromkeys(licenses))
