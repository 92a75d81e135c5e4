# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Configuration models for the sabre analysis client."""

from __future__ import annotations

import sys
from enum import Enum
from pathlib import Path
from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .errors import ConfigError

DEFAULT_API_URL: Final[str] = "https://api.mythx.io/v1"
DEFAULT_BINARIES_URL: Final[str] = "https://binaries.soliditylang.org"
TRIAL_ETH_ADDRESS: Final[str] = "0x0000000000000000000000000000000000000000"
TRIAL_PASSWORD: Final[str] = "trial"

_PLATFORMS: Final[dict[str, str]] = {
    "linux": "linux-amd64",
    "darwin": "macosx-amd64",
    "win32": "windows-amd64",
}


def default_cache_dir() -> Path:
    """Return the per-user cache directory for compiler snapshots."""

    return Path.home() / ".cache" / "sabre"


def default_platform() -> str:
    """Return the release platform directory matching the running interpreter."""

    for prefix, platform in _PLATFORMS.items():
        if sys.platform.startswith(prefix):
            return platform
    return "linux-amd64"


class ReleasePolicy(str, Enum):
    """How a version range is narrowed down to one compiler release."""

    LATEST = "latest"
    PREFER_CACHED = "prefer-cached"


class Credentials(BaseModel):
    """Credentials presented to the analysis service."""

    model_config = ConfigDict(frozen=True)

    eth_address: str
    password: str

    @property
    def is_trial(self) -> bool:
        return self.eth_address == TRIAL_ETH_ADDRESS and self.password == TRIAL_PASSWORD


class ApiConfig(BaseModel):
    """Remote analysis service settings."""

    model_config = ConfigDict(validate_assignment=True)

    url: str = DEFAULT_API_URL
    eth_address: str | None = None
    password: str | None = None
    request_timeout: float = 30.0
    client_tool_name: str = "sabre"
    no_cache_lookup: bool = False

    def credentials(self) -> Credentials:
        """Return configured credentials, falling back to the trial account."""

        if self.eth_address and self.password:
            return Credentials(eth_address=self.eth_address, password=self.password)
        return Credentials(eth_address=TRIAL_ETH_ADDRESS, password=TRIAL_PASSWORD)


class ToolchainConfig(BaseModel):
    """Compiler acquisition and cache settings."""

    model_config = ConfigDict(validate_assignment=True)

    cache_dir: Path = Field(default_factory=default_cache_dir)
    platform: str = Field(default_factory=default_platform)
    binaries_url: str = DEFAULT_BINARIES_URL
    release_policy: ReleasePolicy = ReleasePolicy.LATEST
    index_max_age_hours: float = 24.0
    compile_timeout: float = 300.0

    @field_validator("cache_dir", mode="before")
    @classmethod
    def _expand_cache_dir(cls, value: object) -> object:
        if isinstance(value, str):
            return Path(value).expanduser()
        if isinstance(value, Path):
            return value.expanduser()
        return value


class ResolutionConfig(BaseModel):
    """Import resolution settings."""

    model_config = ConfigDict(validate_assignment=True)

    include_paths: list[Path] = Field(default_factory=list)
    search_node_modules: bool = True


class AnalysisConfig(BaseModel):
    """Analysis job submission and polling settings."""

    model_config = ConfigDict(validate_assignment=True)

    mode: str = "quick"
    poll_interval: float = 5.0
    poll_backoff: float = 1.5
    max_poll_interval: float = 30.0


class OutputConfig(BaseModel):
    """Rendering preferences for the presentation layer."""

    model_config = ConfigDict(validate_assignment=True)

    format: str = "text"
    color: bool = True
    emoji: bool = True
    debug: bool = False
    verbose: bool = False
    severity_rules: list[str] = Field(default_factory=list)


class Config(BaseModel):
    """Top-level configuration aggregating every section."""

    model_config = ConfigDict(validate_assignment=True)

    api: ApiConfig = Field(default_factory=ApiConfig)
    toolchain: ToolchainConfig = Field(default_factory=ToolchainConfig)
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    output: OutputConfig = Field(default_factory=OutputConfig)

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON compatible snapshot of the configuration."""

        return self.model_dump(mode="json")


__all__ = [
    "AnalysisConfig",
    "ApiConfig",
    "Config",
    "ConfigError",
    "Credentials",
    "OutputConfig",
    "ReleasePolicy",
    "ResolutionConfig",
    "ToolchainConfig",
    "default_cache_dir",
    "default_platform",
]
