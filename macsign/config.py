"""Configuration file and environment support.

Settings for the ``sign`` command are looked up in this order:
command-line flag, configuration file, environment variable.
"""

import os
from pathlib import Path

from .errors import ConfigurationError

# Environment variable names
ENV_IDENTITY = "SIGN_IDENTITY"
ENV_KEYCHAIN = "SIGN_KEYCHAIN"

CONFIG_FILENAMES = [".macsign.toml", "macsign.toml"]


def _load_dotenv() -> None:
    """Attempt to load .env file if python-dotenv is available."""
    try:
        from dotenv import load_dotenv
    except ImportError:
        return
    load_dotenv()


_load_dotenv()


def find_config_file(config_path: Path | None = None) -> Path | None:
    """Return the configuration file to read, if any.

    An existing explicit path wins; otherwise the first of
    CONFIG_FILENAMES present in the working directory is used.
    """
    if config_path and config_path.exists():
        return config_path
    for name in CONFIG_FILENAMES:
        candidate = Path.cwd() / name
        if candidate.exists():
            return candidate
    return None


def load_config(config_path: Path | None = None) -> dict[str, object]:
    """Read the signing configuration.

    Identities and keychains are machine specific, so settings live in a
    dedicated dotfile rather than in pyproject.toml:

        [sign]
        identity = "Developer ID Application: John Doe (ABCDE12345)"
        entitlements = "entitlements.plist"
        keychain = "build.keychain"

    Returns:
        The parsed tables, or an empty dict without a configuration file

    Raises:
        ConfigurationError: If the file is not valid TOML
    """
    try:
        import tomllib
    except ImportError:
        import tomli as tomllib  # type: ignore[no-redef]

    path = find_config_file(config_path)
    if path is None:
        return {}
    with open(path, "rb") as f:
        try:
            return tomllib.load(f)
        except tomllib.TOMLDecodeError as e:
            raise ConfigurationError(f"Invalid config file {path}: {e}") from e


def get_config_value(
    config: dict[str, object],
    section: str,
    key: str,
    default: str | None = None,
) -> str | None:
    """Look up a string setting in a table of the configuration.

    Missing tables, missing keys and non-string values all give default.
    """
    table = config.get(section)
    value = table.get(key) if isinstance(table, dict) else None
    return value if isinstance(value, str) else default


def get_env_value(name: str) -> str | None:
    """Return an environment variable, treating empty strings as unset."""
    value = os.getenv(name)
    return value or None
