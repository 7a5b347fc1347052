"""Configuration loader for fusionsearch.

This module provides the ConfigLoader class for loading, parsing, and
validating fusionsearch configuration from YAML files and the environment.

Configuration precedence (highest to lowest):
1. Explicit settings in the YAML file
2. Environment variables (FUSIONSEARCH_*)
3. Model defaults
"""

import logging
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError as PydanticValidationError

from fusionsearch.config.defaults import DEFAULT_CONFIG_FILE
from fusionsearch.config.env_loader import substitute_env_vars
from fusionsearch.config.validator import flatten_pydantic_errors
from fusionsearch.lib.errors import ConfigError, FileNotFoundError
from fusionsearch.models.config import FusionSearchConfig

logger = logging.getLogger(__name__)

# (section, field) to environment variable name mapping
ENV_VAR_MAP: dict[tuple[str, str], str] = {
    ("solr", "url"): "FUSIONSEARCH_SOLR_URL",
    ("solr", "username"): "FUSIONSEARCH_SOLR_USERNAME",
    ("solr", "password"): "FUSIONSEARCH_SOLR_PASSWORD",
    ("solr", "timeout_seconds"): "FUSIONSEARCH_SOLR_TIMEOUT",
    ("embedding", "provider"): "FUSIONSEARCH_EMBEDDING_PROVIDER",
    ("embedding", "model"): "FUSIONSEARCH_EMBEDDING_MODEL",
    ("embedding", "api_key"): "FUSIONSEARCH_EMBEDDING_API_KEY",
    ("embedding", "endpoint"): "FUSIONSEARCH_EMBEDDING_ENDPOINT",
    ("search", "rrf_k"): "FUSIONSEARCH_RRF_K",
    ("search", "default_top_k"): "FUSIONSEARCH_DEFAULT_TOP_K",
    ("search", "timeout_seconds"): "FUSIONSEARCH_SEARCH_TIMEOUT",
}

_INT_FIELDS = {"rrf_k", "default_top_k"}
_FLOAT_FIELDS = {"timeout_seconds"}

# Conventional provider key variables used when no key is configured
_PROVIDER_KEY_VARS: dict[str, str] = {
    "openai": "OPENAI_API_KEY",
    "azure_openai": "AZURE_OPENAI_API_KEY",
}


def _parse_env_value(field_name: str, value: str) -> Any:
    """Parse environment variable value to the field's type.

    Args:
        field_name: Name of the field (used to determine type)
        value: String value from environment variable

    Returns:
        Parsed value (int, float or str)

    Raises:
        ValueError: If value cannot be parsed
    """
    if field_name in _INT_FIELDS:
        return int(value)
    elif field_name in _FLOAT_FIELDS:
        return float(value)
    else:
        return value


def _get_env_overrides(env_vars: Mapping[str, str]) -> dict[str, dict[str, Any]]:
    """Collect configuration values from environment variables.

    Unparseable values are skipped with a warning.

    Args:
        env_vars: Environment variables mapping

    Returns:
        Nested dict keyed by section then field
    """
    overrides: dict[str, dict[str, Any]] = {}
    for (section, field_name), env_var_name in ENV_VAR_MAP.items():
        if env_var_name not in env_vars:
            continue
        try:
            value = _parse_env_value(field_name, env_vars[env_var_name])
        except ValueError:
            logger.warning(
                f"Ignoring {env_var_name}={env_vars[env_var_name]!r}: "
                f"expected a number"
            )
            continue
        overrides.setdefault(section, {})[field_name] = value

    return overrides


def _deep_merge(base: dict[str, Any], override: dict[str, Any]) -> None:
    """Deep merge override dict into base dict (in-place).

    For nested dicts, merging is recursive.
    For other types, override completely replaces base.

    Args:
        base: Base dictionary to merge into (modified in-place)
        override: Dictionary with values to override
    """
    for key, override_value in override.items():
        if (
            key in base
            and isinstance(base[key], dict)
            and isinstance(override_value, dict)
        ):
            _deep_merge(base[key], override_value)
        else:
            base[key] = override_value


def _read_yaml_with_env_substitution(
    path: Path, env: Mapping[str, str]
) -> dict[str, Any] | None:
    """Read a YAML file with environment variable substitution.

    Args:
        path: Path to YAML file
        env: Environment used for ``${VAR}`` references

    Returns:
        Parsed dictionary or None if empty

    Raises:
        OSError: If file cannot be read
        yaml.YAMLError: If YAML parsing fails
        ConfigError: If env var substitution fails
    """
    raw_text = path.read_text(encoding="utf-8")
    substituted = substitute_env_vars(raw_text, dict(env))
    content = yaml.safe_load(substituted)
    return content if content else None


class ConfigLoader:
    """Loads and validates fusionsearch configuration.

    Example:
        >>> loader = ConfigLoader()
        >>> config = loader.load("fusionsearch.yaml")
        >>> config.search.rrf_k
        60
    """

    def __init__(self, env: Mapping[str, str] | None = None) -> None:
        """Initialize the loader.

        Args:
            env: Environment mapping (defaults to ``os.environ``)
        """
        self._env: Mapping[str, str] = os.environ if env is None else env

    def load(self, file_path: str | None = None) -> FusionSearchConfig:
        """Load configuration from YAML, environment and defaults.

        When ``file_path`` is None, ``fusionsearch.yaml`` in the working
        directory is used if present; otherwise only environment variables
        and defaults apply.

        Args:
            file_path: Optional path to a YAML configuration file

        Returns:
            Validated FusionSearchConfig

        Raises:
            FileNotFoundError: If an explicit file_path does not exist
            ConfigError: If parsing or validation fails
        """
        path: Path | None = None
        if file_path is not None:
            path = Path(file_path)
            if not path.exists():
                raise FileNotFoundError(
                    file_path,
                    "Pass an existing YAML file or omit --config to use defaults.",
                )
        elif Path(DEFAULT_CONFIG_FILE).exists():
            path = Path(DEFAULT_CONFIG_FILE)

        file_config: dict[str, Any] = {}
        if path is not None:
            logger.debug(f"Loading configuration from {path}")
            try:
                content = _read_yaml_with_env_substitution(path, self._env)
            except yaml.YAMLError as e:
                raise ConfigError(
                    "yaml_parse",
                    f"Failed to parse YAML file {path}: {str(e)}",
                ) from e
            if content is not None and not isinstance(content, dict):
                raise ConfigError(
                    "yaml_parse",
                    f"Configuration file {path} must contain a mapping "
                    f"at the top level",
                )
            file_config = content or {}

        return self.load_from_dict(file_config, source=str(path) if path else None)

    def load_from_dict(
        self, data: dict[str, Any], source: str | None = None
    ) -> FusionSearchConfig:
        """Validate a configuration mapping after applying env fallbacks.

        Args:
            data: Raw configuration mapping (file values)
            source: Optional description of where the data came from

        Returns:
            Validated FusionSearchConfig

        Raises:
            ConfigError: If validation fails
        """
        merged: dict[str, Any] = _get_env_overrides(self._env)
        _deep_merge(merged, data)
        self._apply_api_key_fallback(merged)

        try:
            return FusionSearchConfig.model_validate(merged)
        except PydanticValidationError as e:
            error_messages = flatten_pydantic_errors(e)
            error_text = "\n".join(error_messages)
            where = f" in {source}" if source else ""
            raise ConfigError(
                "config_validation",
                f"Invalid configuration{where}:\n{error_text}",
            ) from e

    def _apply_api_key_fallback(self, merged: dict[str, Any]) -> None:
        """Use the provider's conventional key variable when no key is set."""
        embedding = merged.get("embedding")
        if embedding is None:
            embedding = merged["embedding"] = {}
        if not isinstance(embedding, dict) or embedding.get("api_key"):
            return

        fallback_var = _PROVIDER_KEY_VARS.get(embedding.get("provider", "openai"))
        if fallback_var and self._env.get(fallback_var):
            embedding["api_key"] = self._env[fallback_var]
