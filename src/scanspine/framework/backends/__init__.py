"""
Backend Capability package.

Importing this package registers the built-in backends (``cran``, ``spdx``,
``regexp``) with the backend registry.
"""

from scanspine.framework.backends import cran, regexp, spdx  # noqa: F401  (registration)
from scanspine.framework.backends.cran import CranBackend, parse_license_field
from scanspine.framework.backends.protocol import Backend, BaseBackend, Verdict
from scanspine.framework.backends.regexp import RegexpBackend, RegexpRule, load_rules, parse_rules
from scanspine.framework.backends.registry import (
    create_backends,
    get_backend_class,
    list_backends,
    register_backend,
    resolve_enabled,
)
from scanspine.framework.backends.spdx import SpdxBackend

__all__ = [
    # Protocol
    "Backend",
    "BaseBackend",
    "Verdict",
    # Registry
    "register_backend",
    "get_backend_class",
    "list_backends",
    "resolve_enabled",
    "create_backends",
    # Built-in
    "CranBackend",
    "SpdxBackend",
    "RegexpBackend",
    "RegexpRule",
    "parse_license_field",
    "parse_rules",
    "load_rules",
]
