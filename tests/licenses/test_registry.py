"""
Tests for scanspine.licenses.registry.

Covers:
- Bundled dataset loading and entry metadata
- Loading from a file, with and without a details/ directory
- Immutability and duplicate detection
- Single-init process-wide registry
"""

import json

import pytest

from scanspine.core.errors import ConfigError, UnknownLicenseError
from scanspine.licenses.registry import (
    LicenseEntry,
    LicenseRegistry,
    get_registry,
    init_registry,
)


def _dataset(*ids):
    return {
        "licenseListVersion": "9.9",
        "licenses": [
            {"licenseId": i, "name": f"{i} License", "reference": f"./{i}.json", "isOsiApproved": True}
            for i in ids
        ],
    }


class TestBundled:
    def test_loads(self, registry):
        assert len(registry) > 600
        assert registry.version == "3.27.0"
        assert "MIT" in registry
        assert "Apache-2.0" in registry

    def test_entry_metadata(self, registry):
        entry = registry.get("GPL-2.0")
        assert entry.deprecated
        assert entry.see_also
        assert registry.get("MIT").fsf_libre

    @pytest.mark.parametrize("license_id", ["BSD-3-Clause-Clear", "LGPL-2.0-or-later", "Zlib", "0BSD"])
    def test_full_identifier_list(self, registry, license_id):
        assert license_id in registry

    def test_sparse_entry(self, registry):
        entry = registry.get("BSD-3-Clause-Clear")
        assert entry.name == "BSD-3-Clause-Clear"
        assert entry.osi_approved is None
        assert entry.fsf_libre is None
        assert not entry.deprecated

    def test_deprecated_flags(self, registry):
        assert registry.get("LGPL-2.0+").deprecated
        assert not registry.get("LGPL-2.0-or-later").deprecated

    def test_unknown(self, registry):
        with pytest.raises(UnknownLicenseError):
            registry.get("AGPL-3")

    def test_ids_sorted(self, registry):
        assert registry.ids() == sorted(registry)


class TestLoad:
    def test_from_file(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text(json.dumps(_dataset("A-1.0", "B-2.0")))
        registry = LicenseRegistry.load(path)
        assert registry.ids() == ["A-1.0", "B-2.0"]
        assert registry.version == "9.9"
        assert registry.get("A-1.0").text == ""
        assert registry.get("A-1.0").osi_approved is True

    def test_details_dir_supplies_text(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text(json.dumps(_dataset("A-1.0")))
        (tmp_path / "details").mkdir()
        (tmp_path / "details" / "A-1.0.json").write_text(json.dumps({"licenseText": "Permission granted."}))
        assert LicenseRegistry.load(path).get("A-1.0").text == "Permission granted."

    def test_unreadable(self, tmp_path):
        with pytest.raises(ConfigError):
            LicenseRegistry.load(tmp_path / "missing.json")

    def test_empty_dataset(self):
        with pytest.raises(ConfigError):
            LicenseRegistry.from_spdx({"licenses": []})

    def test_entry_without_id(self):
        with pytest.raises(ConfigError):
            LicenseRegistry.from_spdx({"licenses": [{"name": "anonymous"}]})

    def test_duplicates_rejected(self):
        entry = LicenseEntry(license_id="X", name="X")
        with pytest.raises(ConfigError):
            LicenseRegistry([entry, entry])


class TestImmutability:
    def test_entries_frozen(self, registry):
        entry = registry.get("MIT")
        with pytest.raises(AttributeError):
            entry.name = "changed"

    def test_index_read_only(self, registry):
        with pytest.raises(TypeError):
            registry._entries["NEW"] = LicenseEntry(license_id="NEW", name="NEW")


class TestProcessRegistry:
    def test_get_initializes_lazily(self):
        assert get_registry() is get_registry()

    def test_init_once(self, tmp_path):
        path = tmp_path / "licenses.json"
        path.write_text(json.dumps(_dataset("Only-1.0")))
        registry = init_registry(path)
        assert get_registry() is registry
        with pytest.raises(ConfigError):
            init_registry()

    def test_init_after_get_fails(self):
        get_registry()
        with pytest.raises(ConfigError):
            init_registry()
