# Copyright (c) 2025, HaiyangLi <quantocean.li at gmail dot com>
#
# SPDX-License-Identifier: Apache-2.0

from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from .media import MediaType

__all__ = ("SDataSettings", "settings")


class SDataSettings(BaseSettings, frozen=True):
    """Client defaults with environment variable support (``SDATA_*``)."""

    model_config = SettingsConfigDict(
        env_prefix="SDATA_",
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    timeout: float = Field(
        default=120.0, gt=0, description="Per-exchange timeout in seconds"
    )
    timeout_retry_attempts: int = Field(
        default=1,
        ge=0,
        description="Timeouts tolerated before a request gives up",
    )
    user_agent: str = "PythonSDataClient"
    use_http_method_override: bool = Field(
        default=False,
        description="Tunnel PUT/DELETE through POST with X-HTTP-Method-Override",
    )
    default_format: MediaType = MediaType.JSON
    naming_scheme: Literal[
        "default", "pascal_case", "camel_case", "lower_case", "upper_case"
    ] = "default"
    trust_env: bool = Field(
        default=True,
        description="Use ambient credentials (netrc) and proxy variables",
    )


settings = SDataSettings()
