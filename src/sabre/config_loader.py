# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Blackcat Informatics® Inc.
"""Layered configuration loading (defaults, TOML files, pyproject, environment)."""

from __future__ import annotations

import os
import re
import tomllib
from collections.abc import Mapping, MutableMapping, Sequence
from pathlib import Path
from typing import Any, Final, Protocol

from pydantic import ValidationError

from .config import Config, ConfigError

PYPROJECT_TOOL_KEY: Final[str] = "tool"
PYPROJECT_SECTION_KEY: Final[str] = "sabre"
CONFIG_FILENAME: Final[str] = ".sabre.toml"

# Environment variable -> (section, field)
ENVIRONMENT_KEYS: Final[dict[str, tuple[str, str]]] = {
    "MYTHX_ETH_ADDRESS": ("api", "eth_address"),
    "MYTHX_PASSWORD": ("api", "password"),
    "MYTHX_API_URL": ("api", "url"),
    "SABRE_CACHE_DIR": ("toolchain", "cache_dir"),
}

_ENV_VAR_PATTERN = re.compile(r"\$(\w+)|\$\{([^}]+)\}")


class ConfigSource(Protocol):
    """A single layer of configuration data."""

    name: str

    def load(self) -> Mapping[str, Any]:
        """Return the configuration fragment contributed by this source."""
        ...


class TomlConfigSource:
    """Load configuration data from a standalone TOML document."""

    def __init__(self, path: Path, *, env: Mapping[str, str] | None = None) -> None:
        self.path = path
        self.name = str(path)
        self._env = env if env is not None else os.environ

    def load(self) -> Mapping[str, Any]:
        if not self.path.is_file():
            return {}
        try:
            with self.path.open("rb") as handle:
                data = tomllib.load(handle)
        except (OSError, tomllib.TOMLDecodeError) as exc:
            raise ConfigError(f"Unable to read configuration at {self.path}: {exc}") from exc
        if not isinstance(data, MutableMapping):
            raise ConfigError(f"Configuration at {self.path} must be a table")
        return _expand_env(self._select(data), self._env)

    def _select(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        return data


class PyProjectConfigSource(TomlConfigSource):
    """Read configuration from ``[tool.sabre]`` within ``pyproject.toml``."""

    def _select(self, data: Mapping[str, Any]) -> Mapping[str, Any]:
        tool_section = data.get(PYPROJECT_TOOL_KEY)
        if not isinstance(tool_section, Mapping):
            return {}
        section = tool_section.get(PYPROJECT_SECTION_KEY)
        if not isinstance(section, Mapping):
            return {}
        return dict(section)


class EnvironmentConfigSource:
    """Translate well-known environment variables into configuration values."""

    name = "environment"

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        self._env = env if env is not None else os.environ

    def load(self) -> Mapping[str, Any]:
        fragment: dict[str, dict[str, Any]] = {}
        for variable, (section, field) in ENVIRONMENT_KEYS.items():
            value = self._env.get(variable)
            if value:
                fragment.setdefault(section, {})[field] = value
        return fragment


class ConfigLoader:
    """Apply layered configuration sources with predictable precedence."""

    def __init__(self, sources: Sequence[ConfigSource]) -> None:
        if not sources:
            raise ValueError("at least one configuration source is required")
        self._sources = list(sources)

    @classmethod
    def for_root(
        cls,
        project_root: Path,
        *,
        user_config: Path | None = None,
        env: Mapping[str, str] | None = None,
    ) -> ConfigLoader:
        """Build a loader that respects user, project and environment sources."""

        root = project_root.resolve()
        home_config = user_config if user_config is not None else Path.home() / CONFIG_FILENAME
        sources: list[ConfigSource] = [TomlConfigSource(home_config, env=env)]
        pyproject = root / "pyproject.toml"
        if pyproject.exists():
            sources.append(PyProjectConfigSource(pyproject, env=env))
        sources.append(TomlConfigSource(root / CONFIG_FILENAME, env=env))
        sources.append(EnvironmentConfigSource(env))
        return cls(sources)

    def load(self, overrides: Mapping[str, Any] | None = None) -> Config:
        """Return the merged configuration, applying ``overrides`` last."""

        merged: dict[str, Any] = {}
        for source in self._sources:
            fragment = source.load()
            if fragment:
                merged = _deep_merge(merged, fragment)
        if overrides:
            merged = _deep_merge(merged, overrides)
        try:
            return Config.model_validate(merged)
        except ValidationError as exc:
            raise ConfigError(f"Invalid configuration: {exc}") from exc


def load_config(project_root: Path, overrides: Mapping[str, Any] | None = None) -> Config:
    """Load configuration for ``project_root`` using the default tiered sources."""

    return ConfigLoader.for_root(project_root).load(overrides)


def _deep_merge(base: Mapping[str, Any], override: Mapping[str, Any]) -> dict[str, Any]:
    result: dict[str, Any] = dict(base)
    for key, value in override.items():
        if key in result and isinstance(result[key], Mapping) and isinstance(value, Mapping):
            result[key] = _deep_merge(result[key], value)
        else:
            result[key] = value
    return result


def _expand_env(data: Mapping[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    return {key: _expand_env_value(value, env) for key, value in data.items()}


def _expand_env_value(value: Any, env: Mapping[str, str]) -> Any:
    if isinstance(value, str):
        return _ENV_VAR_PATTERN.sub(lambda match: _replace_var(match, env), value)
    if isinstance(value, Mapping):
        return {k: _expand_env_value(v, env) for k, v in value.items()}
    if isinstance(value, list):
        return [_expand_env_value(v, env) for v in value]
    return value


def _replace_var(match: re.Match[str], env: Mapping[str, str]) -> str:
    key = match.group(1) or match.group(2)
    if key is None:
        return match.group(0)
    return env.get(key, match.group(0))


__all__ = [
    "ConfigLoader",
    "EnvironmentConfigSource",
    "PyProjectConfigSource",
    "TomlConfigSource",
    "load_config",
]
