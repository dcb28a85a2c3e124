"""Library settings and per-client YAML configuration."""

from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Any, Iterator, Mapping

import yaml
from pydantic import BaseModel, ConfigDict, Field

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


def _env_paths(raw: str | None) -> list[Path]:
    if not raw:
        return [Path("templates")]
    return [Path(part) for part in raw.split(os.pathsep) if part]


class Settings(BaseModel):
    model_config = ConfigDict(extra="forbid", validate_assignment=True)

    config_path: Path = Field(default_factory=lambda: Path(os.getenv("OUTBOUND_CONFIG_PATH", "config")))
    environment: str = Field(default_factory=lambda: os.getenv("OUTBOUND_ENV", "development"))
    template_paths: list[Path] = Field(default_factory=lambda: _env_paths(os.getenv("OUTBOUND_TEMPLATE_PATH")))


_settings: Settings | None = None


def get_settings() -> Settings:
    global _settings
    if _settings is None:
        _settings = Settings()
    return _settings


def configure(**overrides: Any) -> Settings:
    global _settings
    _settings = Settings.model_validate({**get_settings().model_dump(), **overrides})
    return _settings


def reset_settings() -> None:
    global _settings
    _settings = None


class Configuration(Mapping[str, Any]):
    """Read-only options where missing keys read as ``None``."""

    def __init__(self, values: Mapping[str, Any] | None = None) -> None:
        self._values = dict(values or {})

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        return self._values.get(name)

    def __getitem__(self, key: str) -> Any:
        return self._values[key]

    def get(self, key: str, default: Any = None) -> Any:
        return self._values.get(key, default)

    def __iter__(self) -> Iterator[str]:
        return iter(self._values)

    def __len__(self) -> int:
        return len(self._values)

    def __repr__(self) -> str:
        return f"Configuration({self._values!r})"


def client_config_file(name: str, settings: Settings | None = None) -> Path:
    settings = settings or get_settings()
    return settings.config_path / "clients" / f"{name}.yml"


def load_client_configuration(name: str, settings: Settings | None = None) -> Configuration:
    """Load ``clients/<name>.yml``, scoped to the current environment if present."""
    settings = settings or get_settings()
    path = client_config_file(name, settings)
    if not path.is_file():
        return Configuration()

    try:
        document = yaml.safe_load(path.read_text()) or {}
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"invalid client configuration in {path}", cause=exc) from exc
    if not isinstance(document, Mapping):
        raise ConfigurationError(f"client configuration in {path} must be a mapping")

    section = document.get(settings.environment, document)
    if not isinstance(section, Mapping):
        raise ConfigurationError(f"{settings.environment!r} section of {path} must be a mapping")
    logger.debug("loaded client configuration %s for %s", path, settings.environment)
    return Configuration(section)
