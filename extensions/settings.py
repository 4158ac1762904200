"""
Runtime settings.

Resolved from, lowest to highest precedence:
    1. defaults below
    2. a YAML file (bountyforge.yaml in the working directory, or --config)
    3. a .env file
    4. BOUNTYFORGE_* environment variables
    5. explicit overrides from CLI options
"""

import logging
from pathlib import Path
from typing import Any

import yaml
from pydantic import field_validator
from pydantic.fields import FieldInfo
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "bountyforge.yaml"
ENV_PREFIX = "BOUNTYFORGE_"
LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL")


def load_yaml_config(path: Path) -> dict[str, Any]:
    """Read a YAML settings file; a non-mapping document is an error."""
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return data


class YamlSettingsSource(PydanticBaseSettingsSource):
    """Settings read from the YAML file named by ``model_config["yaml_file"]``."""

    def __init__(self, settings_cls: type[BaseSettings]):
        super().__init__(settings_cls)
        path = Path(self.config.get("yaml_file") or DEFAULT_CONFIG_FILE)
        self.values = load_yaml_config(path) if path.is_file() else {}

    def get_field_value(self, field: FieldInfo, field_name: str) -> tuple[Any, str, bool]:
        return self.values.get(field_name), field_name, False

    def __call__(self) -> dict[str, Any]:
        known = self.settings_cls.model_fields
        for key in self.values:
            if key not in known:
                logger.warning("Ignoring unknown setting %r", key)
        return {key: value for key, value in self.values.items() if key in known}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        yaml_file=DEFAULT_CONFIG_FILE,
    )

    repos_dir: Path = Path(".")
    results_dir: Path = Path("results")
    quarantine_dir: Path = Path("quarantine")
    build_timeout: int = 900
    http_timeout: int = 30
    concurrency: int = 4
    log_level: str = "INFO"

    @field_validator("log_level", mode="before")
    @classmethod
    def _check_log_level(cls, value: Any) -> str:
        level = str(value).upper()
        if level not in LOG_LEVELS:
            raise ValueError(f"log_level must be one of {', '.join(LOG_LEVELS)}, got {value!r}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (init_settings, env_settings, dotenv_settings, YamlSettingsSource(settings_cls))

    @classmethod
    def load(cls, config_path: Path | None = None, **overrides: Any) -> "Settings":
        """Resolve settings from file, environment and overrides.

        Args:
            config_path: YAML file to read instead of bountyforge.yaml
            **overrides: CLI values; None means "not given"
        """
        settings_cls = cls
        if config_path is not None:
            if not Path(config_path).is_file():
                logger.warning("Config file %s not found, using defaults", config_path)
            settings_cls = type(cls.__name__, (cls,), {
                "model_config": SettingsConfigDict(**{**cls.model_config, "yaml_file": str(config_path)}),
            })

        return settings_cls(**{key: value for key, value in overrides.items() if value is not None})
