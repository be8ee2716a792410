"""Tests for scanspine.core.settings."""

import json

import pytest

from scanspine.core.errors import ConfigError
from scanspine.core.settings import ScanSettings, load_settings


class TestScanSettings:
    def test_defaults(self):
        settings = ScanSettings()
        assert settings.max_concurrency == 8
        assert settings.max_pending_items == 64
        assert settings.max_iterators == 4
        assert settings.max_redirects == 20
        assert settings.allow_http is False
        assert settings.cache_dir is None
        assert settings.backends == {}

    def test_env_prefix(self, monkeypatch):
        monkeypatch.setenv("SCANSPINE_MAX_CONCURRENCY", "3")
        monkeypatch.setenv("SCANSPINE_ALLOW_HTTP", "true")
        settings = ScanSettings()
        assert settings.max_concurrency == 3
        assert settings.allow_http is True


class TestLoadSettings:
    def test_file_then_overrides(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_concurrency": 2, "backends": {"regexp": True}, "unknown": 1}))

        settings = load_settings(path, max_concurrency=5, cache_dir=None)
        assert settings.max_concurrency == 5
        assert settings.backends == {"regexp": True}
        assert settings.cache_dir is None

    def test_file_beats_environment(self, tmp_path, monkeypatch):
        monkeypatch.setenv("SCANSPINE_MAX_ITERATORS", "9")
        path = tmp_path / "config.json"
        path.write_text(json.dumps({"max_iterators": 1}))
        assert load_settings(path).max_iterators == 1

    def test_invalid_value(self):
        with pytest.raises(ConfigError):
            load_settings(max_concurrency=0)

    def test_invalid_log_format(self):
        with pytest.raises(ConfigError):
            load_settings(log_format="xml")

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigError):
            load_settings(tmp_path / "nope.json")

    def test_not_json(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("max_concurrency = 2")
        with pytest.raises(ConfigError):
            load_settings(path)

    def test_not_an_object(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text("[1, 2]")
        with pytest.raises(ConfigError):
            load_settings(path)
