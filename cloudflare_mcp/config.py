# -*- coding: utf-8 -*-
"""Location: ./cloudflare_mcp/config.py
Copyright 2026
SPDX-License-Identifier: Apache-2.0

Configuration for the Cloudflare API MCP server.

Settings are read from environment variables (case-insensitive) and an optional
``.env`` file in the working directory.

Examples:
    >>> from cloudflare_mcp.config import Settings
    >>> s = Settings(_env_file=None, cloudflare_api_base="https://api.example.com/v4/")
    >>> s.cloudflare_api_base
    'https://api.example.com/v4'
    >>> s.response_max_tokens
    6000
"""

# Standard
from functools import lru_cache
from pathlib import Path
import sys
from typing import Literal, Optional

# Third-Party
from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

PACKAGE_ROOT = Path(__file__).resolve().parent

DEFAULT_API_BASE = "https://api.cloudflare.com/client/v4"
DEFAULT_OPENAPI_SPEC_URL = "https://raw.githubusercontent.com/cloudflare/api-schemas/main/openapi.json"


class Settings(BaseSettings):
    """Server configuration settings."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Upstream API
    cloudflare_api_token: Optional[SecretStr] = Field(default=None, description="API token used for every upstream request")
    cloudflare_account_id: Optional[str] = Field(
        default=None,
        description="Fixed account id. When set, the execute tool does not accept an account_id argument.",
    )
    cloudflare_api_base: str = Field(default=DEFAULT_API_BASE, description="Base URL of the Cloudflare REST API")
    http_timeout_seconds: float = Field(default=30.0, gt=0, description="Timeout for host-side HTTP requests")

    # Spec artifacts
    openapi_spec_url: str = Field(default=DEFAULT_OPENAPI_SPEC_URL, description="Location of the upstream OpenAPI document")
    spec_data_dir: Path = Field(default_factory=lambda: PACKAGE_ROOT / "data", description="Directory holding the resolved spec artifacts")

    # Sandbox
    execution_timeout_ms: int = Field(default=30000, ge=100, description="Upper bound for a single execution unit invocation")
    sandbox_python: str = Field(default_factory=lambda: sys.executable or "python3", description="Interpreter used for execution units")
    sandbox_work_dir: Optional[Path] = Field(default=None, description="Parent directory for execution unit directories (system temp dir when unset)")
    sandbox_restrict_fetch: bool = Field(default=True, description="Only allow execution units to reach the configured API origin")
    sandbox_max_message_bytes: int = Field(default=64 * 1024 * 1024, ge=64 * 1024, description="Largest single message accepted from an execution unit")

    # Responses
    response_max_tokens: int = Field(default=6000, ge=1)
    response_chars_per_token: int = Field(default=4, ge=1)

    # Logging
    log_level: str = "INFO"
    log_format: Literal["text", "json"] = "text"
    log_to_file: bool = False
    log_file: Optional[str] = "cloudflare-mcp.log"
    log_folder: Optional[str] = None

    @field_validator("cloudflare_api_base", mode="before")
    @classmethod
    def _strip_trailing_slash(cls, value: str) -> str:
        """Normalize the API base so paths can be appended directly.

        Args:
            value: Configured API base URL.

        Returns:
            The URL without trailing slashes.
        """
        return value.rstrip("/") if isinstance(value, str) else value

    @field_validator("cloudflare_account_id", mode="before")
    @classmethod
    def _blank_account_is_unset(cls, value: Optional[str]) -> Optional[str]:
        """Treat an empty account id as not configured.

        Args:
            value: Configured account id.

        Returns:
            The stripped account id, or None when blank.
        """
        if isinstance(value, str):
            value = value.strip()
            return value or None
        return value

    @field_validator("log_level", mode="before")
    @classmethod
    def _upper_log_level(cls, value: str) -> str:
        """Upper-case the configured log level.

        Args:
            value: Log level name.

        Returns:
            The upper-cased level name.
        """
        return value.upper() if isinstance(value, str) else value


@lru_cache()
def get_settings() -> Settings:
    """Return the cached settings instance.

    Returns:
        Settings: Loaded settings.
    """
    return Settings()


settings = get_settings()
