# tests/unit/config/test_settings.py - v2
"""Tests for config/settings.py - typed Settings and validation rules."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from alldocs.config.settings import ConfigurationError, Settings, load_settings
from alldocs.core.errors import AllDocsError


class TestSettingsDefaults:
    def test_default_backend(self):
        s = Settings(_env_file=None)
        assert s.cache_backend == "json"
        assert s.cache_root == Path("~/.alldocs/cache")

    def test_default_origins(self):
        s = Settings(_env_file=None)
        assert s.packument_origin == "https://registry.npmjs.com"
        assert s.partition_origin == "https://replicate.npmjs.com"

    def test_default_aliases(self):
        s = Settings(_env_file=None)
        assert s.registry_aliases_set == frozenset(
            {"registry.npmjs.com", "registry.npmjs.org", "replicate.npmjs.com"}
        )

    def test_default_logging(self):
        s = Settings(_env_file=None)
        assert s.log_format == "text"
        assert s.log_file is None

    def test_views_dir(self, tmp_path):
        s = Settings(_env_file=None, config_dir=tmp_path)
        assert s.views_dir == tmp_path / "views"


class TestSettingsValidation:
    def test_redis_without_url(self):
        with pytest.raises(ConfigurationError, match="CACHE_REDIS_URL"):
            Settings(_env_file=None, cache_backend="redis")

    def test_s3_without_bucket(self):
        with pytest.raises(ConfigurationError, match="CACHE_S3_BUCKET"):
            Settings(_env_file=None, cache_backend="s3")

    def test_empty_aliases(self):
        with pytest.raises(ConfigurationError, match="REGISTRY_ALIASES"):
            Settings(_env_file=None, registry_aliases=" , ")

    def test_errors_are_collected(self):
        with pytest.raises(ConfigurationError) as exc_info:
            Settings(_env_file=None, cache_backend="redis", registry_aliases="")
        assert "CACHE_REDIS_URL" in str(exc_info.value)
        assert "REGISTRY_ALIASES" in str(exc_info.value)

    def test_configuration_error_is_alldocs_error(self):
        assert issubclass(ConfigurationError, AllDocsError)

    def test_negative_retention(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, log_retention=-1)

    def test_unknown_backend(self):
        with pytest.raises(ValidationError):
            Settings(_env_file=None, cache_backend="ftp")


class TestSettingsHelpers:
    def test_env_override(self, monkeypatch):
        monkeypatch.setenv("CACHE_BACKEND", "memory")
        assert Settings(_env_file=None).cache_backend == "memory"

    def test_alias_parsing(self):
        s = Settings(_env_file=None, registry_aliases=" NPM.Example.com , mirror.example.com,")
        assert s.registry_aliases_set == frozenset({"npm.example.com", "mirror.example.com"})

    def test_key_codec_uses_aliases(self):
        s = Settings(
            _env_file=None,
            registry_aliases="npm.example.com",
            packument_origin="https://npm.example.com",
        )
        codec = s.key_codec()
        assert codec.encode_origin("https://npm.example.com") == "npm"
        assert codec.encode_origin("https://registry.npmjs.org") != "npm"
        assert codec.decode_origin("npm") == "https://npm.example.com"

    def test_load_settings_overrides(self, monkeypatch, tmp_path):
        monkeypatch.chdir(tmp_path)
        s = load_settings(cache_backend="memory")
        assert s.cache_backend == "memory"
