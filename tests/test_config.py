# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Tests for environment-driven settings.
"""

from __future__ import annotations

import pytest
from pydantic import ValidationError

from apialchemy import ApiSettings, get_settings


class TestApiSettings:
    """pydantic-settings configuration."""

    def test_defaults(self, monkeypatch):
        """Defaults apply without environment overrides."""
        for name in ("BASE_URL", "API_KEY", "API_KEY_HEADER", "TIMEOUT", "PAGE_SIZE", "BULK_SLICE_SIZE"):
            monkeypatch.delenv(f"APIALCHEMY_{name}", raising=False)
        settings = ApiSettings(_env_file=None)
        assert settings.api_key is None
        assert settings.api_key_header == "Api-Key"
        assert settings.bulk_slice_size == 20
        assert settings.timeout == 30.0

    def test_environment_overrides(self, monkeypatch):
        """APIALCHEMY_-prefixed variables override defaults."""
        monkeypatch.setenv("APIALCHEMY_BASE_URL", "https://example.test/v2/")
        monkeypatch.setenv("APIALCHEMY_API_KEY", "k")
        monkeypatch.setenv("APIALCHEMY_TIMEOUT", "5")
        settings = ApiSettings(_env_file=None)
        assert settings.base_url == "https://example.test/v2/"
        assert settings.api_key == "k"
        assert settings.timeout == 5.0

    def test_invalid_values_rejected(self):
        """Timeouts and sizes must be positive."""
        with pytest.raises(ValidationError):
            ApiSettings(_env_file=None, timeout=0)
        with pytest.raises(ValidationError):
            ApiSettings(_env_file=None, bulk_slice_size=0)

    def test_get_settings_cached(self):
        """get_settings returns one shared instance."""
        get_settings.cache_clear()
        try:
            assert get_settings() is get_settings()
        finally:
            get_settings.cache_clear()
