"""Configuration models, loading logic and the workspace settings store."""

from __future__ import annotations

import logging
import os
from enum import Enum
from pathlib import Path
from typing import Any, ClassVar, Literal

import yaml
from pydantic import Field, ValidationError
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

from pyarab_runner.utils.paths import find_upward, write_text_atomically

LOGGER = logging.getLogger(__name__)

WORKSPACE_SETTINGS_FILE = Path(".pyarab/settings.yaml")
ENV_PREFIX = "PYARAB_"
WORKSPACE_ENV = "PYARAB_WORKSPACE"
USER_SETTINGS_ENV = "PYARAB_USER_SETTINGS"
DEFAULT_USER_SETTINGS_FILE = Path("~/.config/pyarab/settings.yaml")


class ConfigurationError(RuntimeError):
    """Raised when a settings file cannot be read, validated or written."""


class ConfigurationTarget(str, Enum):
    """Scope a setting is written to."""

    GLOBAL = "global"
    WORKSPACE = "workspace"


class PyArabSettings(BaseSettings):
    """Effective settings for one workspace."""

    _yaml_files_override: ClassVar[tuple[Path, Path] | None] = None

    interpreter_path: str | None = None
    launcher: list[str] = Field(default_factory=lambda: ["python"])
    probe_timeout_seconds: float = Field(default=5.0, gt=0.0)
    file_suffix: str = Field(default=".pyarab", min_length=1)
    terminal_name: str = "PyArab Runner"
    shell: str = "/bin/sh"
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = SettingsConfigDict(
        env_prefix=ENV_PREFIX,
        extra="ignore",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        """Layer environment over workspace YAML over user YAML."""

        if cls._yaml_files_override is None:
            return (init_settings, env_settings)
        user_file, workspace_file = cls._yaml_files_override
        return (
            init_settings,
            env_settings,
            YamlConfigSettingsSource(settings_cls, yaml_file=workspace_file),
            YamlConfigSettingsSource(settings_cls, yaml_file=user_file),
        )

    def as_dict(self) -> dict[str, object]:
        """Return settings as a standard nested dictionary."""

        return self.model_dump(mode="json")


def resolve_workspace_root(override: Path | None = None) -> Path:
    """Resolve the workspace root from an explicit override, env var, or upward search."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(WORKSPACE_ENV)
        if env_value:
            chosen = Path(env_value)
    if chosen is not None:
        return chosen.expanduser().resolve()
    return find_upward(WORKSPACE_SETTINGS_FILE) or Path.cwd().resolve()


def resolve_user_settings_file(override: Path | None = None) -> Path:
    """Resolve the user-level settings file from an override, env var, or default."""

    chosen = override
    if chosen is None:
        env_value = os.getenv(USER_SETTINGS_ENV)
        chosen = Path(env_value) if env_value else DEFAULT_USER_SETTINGS_FILE
    return chosen.expanduser().resolve()


def read_settings_file(path: Path) -> dict[str, Any]:
    """Read one YAML settings file; a missing or empty file is an empty mapping."""

    if not path.exists():
        return {}
    try:
        payload = yaml.safe_load(path.read_text(encoding="utf-8"))
    except (OSError, yaml.YAMLError) as exc:
        raise ConfigurationError(f"Cannot read settings file {path}: {exc}") from exc
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ConfigurationError(f"Settings file {path} must contain a YAML mapping.")
    return payload


def load_settings(
    workspace_root: Path | None = None,
    user_settings_file: Path | None = None,
) -> PyArabSettings:
    """Load settings with user and workspace YAML plus environment overrides."""

    workspace_file = resolve_workspace_root(workspace_root) / WORKSPACE_SETTINGS_FILE
    user_file = resolve_user_settings_file(user_settings_file)
    for settings_file in (user_file, workspace_file):
        read_settings_file(settings_file)

    PyArabSettings._yaml_files_override = (user_file, workspace_file)
    try:
        return PyArabSettings()
    except ValidationError as exc:
        raise ConfigurationError(f"Invalid settings: {exc}") from exc
    finally:
        PyArabSettings._yaml_files_override = None


class SettingsFileStore:
    """Key/value configuration store backed by the user and workspace YAML files."""

    def __init__(self, workspace_root: Path, user_settings_file: Path | None = None) -> None:
        self.workspace_root = workspace_root
        self.user_settings_file = resolve_user_settings_file(user_settings_file)

    @property
    def workspace_settings_file(self) -> Path:
        return self.workspace_root / WORKSPACE_SETTINGS_FILE

    def settings_file(self, target: ConfigurationTarget) -> Path:
        if target is ConfigurationTarget.GLOBAL:
            return self.user_settings_file
        return self.workspace_settings_file

    def load(self) -> PyArabSettings:
        return load_settings(self.workspace_root, self.user_settings_file)

    def env_override(self, key: str) -> str | None:
        """Return the environment variable that overrides ``key``, if one is set."""

        wanted = f"{ENV_PREFIX}{key}".upper()
        for name in os.environ:
            if name.upper() == wanted:
                return name
        return None

    def get(self, key: str) -> Any:
        if key not in PyArabSettings.model_fields:
            raise KeyError(f"Unknown setting: {key}")
        return getattr(self.load(), key)

    def update(
        self,
        key: str,
        value: Any,
        target: ConfigurationTarget = ConfigurationTarget.WORKSPACE,
    ) -> Path:
        """Write one key to the file for ``target``; ``None`` removes the key."""

        if key not in PyArabSettings.model_fields:
            raise KeyError(f"Unknown setting: {key}")
        override = self.env_override(key)
        if override is not None:
            raise ConfigurationError(
                f"Cannot save {key}: it is overridden by the environment variable {override}. "
                f"Unset {override} first."
            )
        path = self.settings_file(target)
        payload = read_settings_file(path)
        if value is None:
            payload.pop(key, None)
        else:
            payload[key] = value
        try:
            write_text_atomically(path, yaml.safe_dump(payload, sort_keys=False))
        except OSError as exc:
            raise ConfigurationError(f"Cannot write settings file {path}: {exc}") from exc
        LOGGER.info("Updated %s setting %s in %s", target.value, key, path)
        return path
