"""
Regexp backend: user-supplied patterns mapped to license claims.

Rules live in a JSON file (``regexp_path`` in settings)::

    {
      "rules": [
        {"pattern": "Permission is hereby granted, free of charge", "spdx": "MIT"},
        {"pattern": "internal use only", "origin": "com.example", "custom": "Proprietary",
         "ignore_case": true}
      ]
    }

A top-level list is accepted in place of the ``rules`` object. Every rule
is checked when the backend is built: a pattern that does not compile or a
claim that does not validate is a configuration error.

The backend version embeds a hash of the normalized rules, so editing the
rule file invalidates previously cached verdicts.
"""

from __future__ import annotations

import json
import re
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Any

from scanspine.core.errors import ConfigError, ScanspineError
from scanspine.core.hashing import compute_hash
from scanspine.framework.backends.protocol import BaseBackend, Verdict
from scanspine.framework.backends.registry import register_backend
from scanspine.framework.backends.spdx import is_binary
from scanspine.framework.iterators.protocol import ContentInfo
from scanspine.licenses.license import License
from scanspine.licenses.registry import LicenseRegistry

if TYPE_CHECKING:
    from scanspine.core.settings import ScanSettings

RULES_VERSION = "1"


@dataclass(frozen=True)
class RegexpRule:
    """One pattern and the claim it implies."""

    pattern: re.Pattern[str]
    license: License

    def to_dict(self) -> dict[str, Any]:
        return {
            "pattern": self.pattern.pattern,
            "ignore_case": bool(self.pattern.flags & re.IGNORECASE),
            **self.license.to_dict(),
        }


def parse_rules(document: Any, registry: LicenseRegistry | None = None) -> list[RegexpRule]:
    """
    Build rules from a decoded JSON document.

    Raises:
        ConfigError: Wrong shape, bad pattern, or invalid claim
    """
    raw = document.get("rules") if isinstance(document, Mapping) else document
    if not isinstance(raw, list):
        raise ConfigError("regexp rules must be a list or an object with a 'rules' list")

    rules: list[RegexpRule] = []
    for index, entry in enumerate(raw):
        if not isinstance(entry, Mapping) or not isinstance(entry.get("pattern"), str):
            raise ConfigError(f"regexp rule {index} needs a string 'pattern'")
        flags = re.IGNORECASE if entry.get("ignore_case") else 0
        try:
            pattern = re.compile(entry["pattern"], flags | re.MULTILINE)
        except re.error as e:
            raise ConfigError(f"regexp rule {index} does not compile: {e}", cause=e) from e
        license = License.from_dict(entry)
        try:
            license.validate(registry)
        except ScanspineError as e:
            raise ConfigError(f"regexp rule {index} has an invalid license: {e.message}", cause=e) from e
        rules.append(RegexpRule(pattern=pattern, license=license))
    return rules


def load_rules(path: str | Path, registry: LicenseRegistry | None = None) -> list[RegexpRule]:
    path = Path(path)
    try:
        document = json.loads(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(f"cannot read regexp rules {path}: {e}", cause=e).with_context(path=str(path)) from e
    except ValueError as e:
        raise ConfigError(f"regexp rules {path} are not valid JSON: {e}", cause=e).with_context(path=str(path)) from e
    return parse_rules(document, registry)


@register_backend("regexp")
class RegexpBackend(BaseBackend):
    """Matches configured regular expressions against text content."""

    description = "user-defined regular expression rules"
    default_enabled = False

    def __init__(self, rules: Iterable[RegexpRule] = (), *, registry: LicenseRegistry | None = None):
        super().__init__(registry=registry)
        self._rules = tuple(rules)
        digest = compute_hash(json.dumps([r.to_dict() for r in self._rules], sort_keys=True), length=12)
        self._version = f"{RULES_VERSION}+{digest}"

    @classmethod
    def from_settings(cls, settings: ScanSettings, *, registry: LicenseRegistry | None = None) -> RegexpBackend:
        if settings.regexp_path is None:
            raise ConfigError("the regexp backend needs a rules file (regexp_path)")
        return cls(load_rules(settings.regexp_path, registry), registry=registry)

    @property
    def version(self) -> str:  # type: ignore[override]
        return self._version

    @property
    def rules(self) -> tuple[RegexpRule, ...]:
        return self._rules

    def scan_data(self, data: bytes, info: ContentInfo) -> Verdict:
        if not self._rules or is_binary(data):
            return self.verdict()
        text = data.decode("utf-8", errors="replace")
        matched = [rule for rule in self._rules if rule.pattern.search(text)]
        return self.verdict(
            (rule.license for rule in matched),
            patterns=[rule.pattern.pattern for rule in matched],
        )
