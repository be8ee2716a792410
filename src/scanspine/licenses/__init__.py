"""License identity model and registry."""

from scanspine.licenses.license import License, compare, join_licenses, unique_licenses
from scanspine.licenses.registry import (
    LicenseEntry,
    LicenseRegistry,
    clear_registry,
    get_registry,
    init_registry,
)

__all__ = [
    "License",
    "compare",
    "join_licenses",
    "unique_licenses",
    "LicenseEntry",
    "LicenseRegistry",
    "get_registry",
    "init_registry",
    "clear_registry",
]
