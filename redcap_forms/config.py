"""Configuration for redcap-forms.

Settings are read from ``config.yaml`` in the redcap-forms home directory
(``~/.config/redcap-forms`` unless ``REDCAP_FORMS_HOME`` is set). Any
setting left out of the file may come from a ``REDCAP_FORMS_*``
environment variable, e.g. ``REDCAP_FORMS_API_TOKEN``.
"""

import os
from pathlib import Path

import yaml
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from redcap_forms.cache import DEFAULT_TTL
from redcap_forms.exceptions import ConfigurationError

HOME_ENV_VAR = "REDCAP_FORMS_HOME"
CONFIG_FILENAME = "config.yaml"


class Settings(BaseSettings):
    """redcap-forms settings."""

    model_config = SettingsConfigDict(env_prefix="REDCAP_FORMS_", extra="ignore")

    api_url: str | None = None
    api_token: str | None = None
    cache_ttl: float = Field(default=DEFAULT_TTL, ge=0)
    data_dir: Path | None = None
    # instrument -> instrument REDCap moves on to when the first is submitted
    auto_continue: dict[str, str] = Field(default_factory=dict)


def get_home() -> Path:
    """Return the redcap-forms home directory."""
    if HOME_ENV_VAR in os.environ:
        return Path(os.environ[HOME_ENV_VAR]).expanduser()
    return Path.home() / ".config" / "redcap-forms"


def get_config_path() -> Path:
    return get_home() / CONFIG_FILENAME


def load_settings(path: Path | str | None = None) -> Settings:
    """Load settings from a YAML file.

    Args:
        path: The config file. Defaults to ``config.yaml`` in the home
            directory. A missing default file yields default settings.

    Returns:
        The loaded Settings.

    Raises:
        ConfigurationError: If an explicitly given file is missing, or any
            file is not a YAML mapping of valid settings.
    """
    config_path = Path(path) if path is not None else get_config_path()

    if not config_path.exists():
        if path is not None:
            raise ConfigurationError(f"Config file not found: {config_path}")
        return Settings()

    try:
        with open(config_path) as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Invalid YAML in {config_path}: {e}") from e

    if not isinstance(data, dict):
        raise ConfigurationError(f"Config file must contain a mapping: {config_path}")

    try:
        return Settings(**data)
    except ValueError as e:
        raise ConfigurationError(f"Invalid settings in {config_path}", {"error": str(e)}) from e
