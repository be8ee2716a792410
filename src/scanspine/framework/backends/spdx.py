"""
SPDX backend: ``SPDX-License-Identifier:`` tags in source files.

    # SPDX-License-Identifier: Apache-2.0 OR MIT
    /* SPDX-License-Identifier: GPL-2.0-only WITH Linux-syscall-note */

Each identifier in the tag expression becomes a claim: registry
identifiers as ``License(spdx=...)``, ``LicenseRef-*`` as a custom claim
with origin ``spdx``. ``AND``/``OR`` and parentheses are flattened (every
named license is reported); the exception after ``WITH`` is not a license
and is skipped. Identifiers missing from the registry make the item fail,
with the recognized claims kept as a partial verdict.

Binary content (a NUL byte near the start) is skipped.
"""

from __future__ import annotations

import re

from scanspine.core.errors import BackendError
from scanspine.framework.backends.protocol import BaseBackend, Verdict
from scanspine.framework.backends.registry import register_backend
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License

SPDX_ORIGIN = "spdx"
LICENSE_REF_PREFIX = "LicenseRef-"
BINARY_SNIFF_BYTES = 8192

_TAG = re.compile(r"SPDX-License-Identifier:[ \t]*(?P<expr>[^\r\n]*)")
# trailing comment terminators that share the tag's line
_COMMENT_END = re.compile(r"\s*(\*/|-->|\*\)|#\}|%>)\s*$")
_EXPR_TOKEN = re.compile(r"[()]|[^\s()]+")
_OPERATORS = {"AND", "OR"}


def is_binary(data: bytes) -> bool:
    return b"\0" in data[:BINARY_SNIFF_BYTES]


def expression_ids(expr: str) -> list[str]:
    """License identifiers named by one tag expression, in order."""
    expr = _COMMENT_END.sub("", expr).strip()
    ids: list[str] = []
    skip_next = False
    for token in _EXPR_TOKEN.findall(expr):
        if token in ("(", ")"):
            continue
        upper = token.upper()
        if upper == "WITH":
            skip_next = True
            continue
        if skip_next:
            skip_next = False
            continue
        if upper in _OPERATORS:
            continue
        ids.append(token)
    return ids


@register_backend("spdx")
class SpdxBackend(BaseBackend):
    """Finds SPDX-License-Identifier tags."""

    version = "1"
    description = "SPDX-License-Identifier tags"

    def scan_data(self, data: bytes, info: ContentInfo) -> Verdict:
        if is_binary(data):
            return self.verdict()

        text = data.decode("utf-8", errors="replace")
        licenses: list[License] = []
        unknown: list[str] = []
        for match in _TAG.finditer(text):
            for license_id in expression_ids(match.group("expr")):
                if license_id.startswith(LICENSE_REF_PREFIX):
                    licenses.append(License(origin=SPDX_ORIGIN, custom=license_id))
                elif license_id in self.registry:
                    licenses.append(License(spdx=license_id))
                else:
                    unknown.append(license_id)

        if unknown:
            raise BackendError(
                f"unknown registry identifier(s): {', '.join(dict.fromkeys(unknown))}",
                partial=self.verdict(licenses),
            ).with_context(backend=self.name, item=info.uid, unknown=sorted(set(unknown)))
        return self.verdict(licenses)
