"""
Tests for backend registration and enable/disable resolution.
"""

import pytest

from scanspine.core.errors import ConfigError
from scanspine.core.settings import ScanSettings
from scanspine.framework.backends import (
    Backend,
    CranBackend,
    SpdxBackend,
    create_backends,
    get_backend_class,
    list_backends,
    resolve_enabled,
)
from scanspine.framework.backends.registry import default_enablement

NAMES = ["cran", "regexp", "spdx"]


class TestRegistry:
    def test_builtins_registered(self):
        assert list_backends() == NAMES
        assert get_backend_class("cran") is CranBackend
        assert get_backend_class("spdx") is SpdxBackend

    def test_unknown(self):
        with pytest.raises(ConfigError):
            get_backend_class("scancode")

    def test_defaults(self):
        assert default_enablement() == {"cran": True, "regexp": False, "spdx": True}

    def test_instances_satisfy_protocol(self):
        assert isinstance(CranBackend(), Backend)


class TestResolveEnabled:
    def test_everything_by_default(self):
        assert resolve_enabled(NAMES) == NAMES

    def test_defaults_and_config(self):
        defaults = {"regexp": False}
        assert resolve_enabled(NAMES, defaults=defaults) == ["cran", "spdx"]
        assert resolve_enabled(NAMES, {"regexp": True, "cran": False}, defaults=defaults) == ["regexp", "spdx"]

    def test_allow_list(self):
        assert resolve_enabled(NAMES, {"spdx": True}, yes=["cran"]) == ["cran"]

    def test_allow_list_overrides_config(self):
        assert resolve_enabled(NAMES, {"regexp": False}, yes=["regexp"]) == ["regexp"]

    def test_deny_list(self):
        assert resolve_enabled(NAMES, no=["spdx"]) == ["cran", "regexp"]

    def test_both_lists(self):
        with pytest.raises(ConfigError):
            resolve_enabled(NAMES, yes=["cran"], no=["spdx"])

    @pytest.mark.parametrize("kwargs", [{"yes": ["nope"]}, {"no": ["nope"]}, {"config": {"nope": True}}])
    def test_unknown_names(self, kwargs):
        with pytest.raises(ConfigError):
            resolve_enabled(NAMES, **kwargs)

    def test_everything_disabled_is_empty(self):
        assert resolve_enabled(NAMES, no=NAMES) == []


class TestCreateBackends:
    def test_from_settings(self, tmp_path, registry):
        backends = create_backends(ScanSettings(work_dir=tmp_path), registry=registry)
        assert [b.name for b in backends] == ["cran", "spdx"]

    def test_flags(self, tmp_path):
        backends = create_backends(ScanSettings(work_dir=tmp_path), no=["cran"])
        assert [b.name for b in backends] == ["spdx"]

    def test_enabled_backend_with_missing_config(self, tmp_path):
        with pytest.raises(ConfigError):
            create_backends(ScanSettings(work_dir=tmp_path, backends={"regexp": True}))
