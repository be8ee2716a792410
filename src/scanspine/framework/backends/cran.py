"""
CRAN backend: license fields of R package ``DESCRIPTION`` files.

A DESCRIPTION file is Debian Control File (DCF) formatted: ``Field: value``
lines, with continuation lines starting with whitespace. The ``License``
field is a small expression language:

    Artistic-2.0 | AGPL-3 + file LICENSE

``|`` separates alternatives, ``+`` joins licenses that apply together, and
``file <name>`` points at an accompanying license file (not a claim).

Parsing rules
─────────────
- newlines count as spaces
- ``|`` splits alternative groups; ``+`` with whitespace on at least one
  side splits a group into tokens (so ``-+-+##&`` stays one token)
- ``file <anything>`` tokens are dropped, remaining tokens are trimmed and
  their inner whitespace collapsed
- claims carry only a custom identifier, in first-seen order, without
  duplicates
- a blank field, or a blank ``|`` group next to other content, is a format
  error; whatever claims were found are still returned on the error
"""

from __future__ import annotations

import re

from scanspine.core.errors import BackendError, LicenseFormatError
from scanspine.core.logging import get_logger
from scanspine.framework.backends.protocol import BaseBackend, Verdict
from scanspine.framework.backends.registry import register_backend
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License, unique_licenses

logger = get_logger(__name__)

CRAN_FILENAME = "DESCRIPTION"
LICENSE_FIELD = "License"

_AND_SPLIT = re.compile(r"\s+\+\s*|\s*\+\s+")
_WHITESPACE = re.compile(r"\s+")
_FILE_TOKEN = re.compile(r"^file\s+\S.*$", re.IGNORECASE)
_FIELD_LINE = re.compile(r"^([^\s:][^:]*):(.*)$")


def parse_license_field(text: str) -> list[License]:
    """
    Parse a CRAN license expression into custom-only claims.

    Raises:
        LicenseFormatError: Blank expression or blank alternative group;
            ``error.licenses`` holds the claims that were recovered
    """
    normalized = text.replace("\r", " ").replace("\n", " ")
    if not normalized.strip():
        raise LicenseFormatError(licenses=[])

    claims: list[License] = []
    malformed = False
    for group in normalized.split("|"):
        if not group.strip():
            malformed = True
            continue
        for token in _AND_SPLIT.split(group):
            token = _WHITESPACE.sub(" ", token).strip()
            if not token or _FILE_TOKEN.match(token):
                continue
            claims.append(License(custom=token))

    licenses = list(unique_licenses(claims))
    if malformed:
        raise LicenseFormatError(licenses=licenses)
    return licenses


def read_dcf_field(text: str, field: str) -> str | None:
    """
    Value of ``field`` in a DCF document, continuation lines joined by newlines.

    The first paragraph only; field names compare case-sensitively, as R does.
    """
    value: list[str] | None = None
    started = False
    for line in text.splitlines():
        if not line.strip():
            if started:
                break
            continue
        started = True
        if line[0] in " \t":
            if value is not None:
                value.append(line.strip())
            continue
        if value is not None:
            break
        m = _FIELD_LINE.match(line)
        if m and m.group(1) == field:
            value = [m.group(2).strip()]
    return None if value is None else "\n".join(value)


@register_backend("cran")
class CranBackend(BaseBackend):
    """Reads the License field of R package DESCRIPTION files."""

    version = "1"
    description = "R package DESCRIPTION license fields"

    def fingerprint_info(self, info: ContentInfo) -> str:
        return CRAN_FILENAME if info.name == CRAN_FILENAME else ""

    def scan_data(self, data: bytes, info: ContentInfo) -> Verdict:
        if info.name != CRAN_FILENAME:
            return self.verdict()

        text = data.decode("utf-8", errors="replace")
        field = read_dcf_field(text, LICENSE_FIELD)
        if field is None:
            return self.verdict()

        try:
            licenses = parse_license_field(field)
        except LicenseFormatError as e:
            partial = self.verdict(e.licenses, field=field)
            raise BackendError(
                f"{e.message}: {field!r}", partial=partial, cause=e
            ).with_context(backend=self.name, item=info.uid) from e

        logger.debug("backend.cran_parsed", item=info.uid, licenses=[str(x) for x in licenses])
        return self.verdict(licenses, field=field)
