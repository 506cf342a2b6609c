# SPDX-FileCopyrightText: 2025 FanaticPythoner
# SPDX-License-Identifier: Apache-2.0

"""
Connection settings for ApiAlchemy.

Loaded from environment variables prefixed with ``APIALCHEMY_`` (and an optional
``.env`` file) through pydantic-settings.
"""

from __future__ import annotations

from functools import lru_cache
from typing import Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .constants import DefaultConstants


class ApiSettings(BaseSettings):
    """Settings consumed by :class:`~apialchemy.api_session.ApiConnection`."""

    base_url: str = Field("http://localhost:8000/api/v1/")
    api_key: Optional[str] = Field(None)
    api_key_header: str = Field(DefaultConstants.API_KEY_HEADER)
    timeout: float = Field(DefaultConstants.REQUEST_TIMEOUT, gt=0)
    page_size: int = Field(DefaultConstants.PAGE_SIZE, gt=0)
    bulk_slice_size: int = Field(DefaultConstants.BULK_SLICE_SIZE, gt=0)

    model_config = SettingsConfigDict(
        env_prefix=DefaultConstants.ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )


@lru_cache(maxsize=1)
def get_settings() -> ApiSettings:
    """Return a cached settings instance."""
    return ApiSettings()


__all__ = ["ApiSettings", "get_settings"]
