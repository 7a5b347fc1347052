"""Environment variable substitution for YAML configuration text."""

import os
import re

from fusionsearch.lib.errors import ConfigError

# ${VAR} or ${VAR:-default}
_ENV_PATTERN = re.compile(r"\$\{([A-Za-z_][A-Za-z0-9_]*)(?::-([^}]*))?\}")


def substitute_env_vars(text: str, env: dict[str, str] | None = None) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` references in text.

    Args:
        text: Raw configuration text
        env: Environment mapping (defaults to ``os.environ``)

    Returns:
        Text with every reference substituted

    Raises:
        ConfigError: If a referenced variable is unset and has no default
    """
    environ = os.environ if env is None else env

    def _replace(match: re.Match[str]) -> str:
        name, default = match.group(1), match.group(2)
        value = environ.get(name)
        if value is not None:
            return value
        if default is not None:
            return default
        raise ConfigError(
            name,
            f"Environment variable '{name}' is not set and has no default",
        )

    return _ENV_PATTERN.sub(_replace, text)
