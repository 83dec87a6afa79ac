"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (MIRAGE__GENERATION__API_KEY=sk-...)
  2. mirage.yaml            (searched in cwd, then platform config dir)
  3. Hardcoded defaults

The config file is optional. The only value without a usable default is the
generation API key when the hosted provider is selected.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("mirage")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "websites.db")

DEFAULT_API_BASES: dict[str, str] = {
    "anthropic": "https://api.anthropic.com",
    "openai": "http://localhost:8000/v1",
}


def _find_config_file() -> str | None:
    """Return the path of the first mirage.yaml found, or None."""
    candidates = [
        Path("mirage.yaml"),
        Path(platformdirs.user_config_dir("mirage")) / "mirage.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    host: str = "0.0.0.0"
    port: int = 3000
    base_url: str = "https://thiswebsiteisnot.online"
    admin_key: str = ""

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


class GenerationSettings(BaseModel):
    provider: Literal["anthropic", "openai"] = "anthropic"
    api_key: str = ""
    api_base: str = ""  # empty -> DEFAULT_API_BASES[provider]
    model: str = "claude-3-5-haiku-20241022"
    max_tokens: int = 3000
    temperature: float = 0.4
    timeout_seconds: float = 120.0

    @property
    def resolved_api_base(self) -> str:
        return (self.api_base or DEFAULT_API_BASES[self.provider]).rstrip("/")


class StoreSettings(BaseModel):
    backend: Literal["sqlite", "supabase"] = "sqlite"
    db_path: str = _DEFAULT_DB_PATH
    url: str = ""
    service_key: str = ""


class CacheSettings(BaseModel):
    ttl_seconds: float = 300.0
    sweep_interval_seconds: float | None = None  # None -> ttl_seconds
    single_flight: bool = False

    @property
    def resolved_sweep_interval(self) -> float:
        return self.sweep_interval_seconds or self.ttl_seconds


class LoggingSettings(BaseModel):
    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: MIRAGE__SERVER__PORT=9090
        env_prefix="MIRAGE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    generation: GenerationSettings = GenerationSettings()
    store: StoreSettings = StoreSettings()
    cache: CacheSettings = CacheSettings()
    logging: LoggingSettings = LoggingSettings()

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
        **kwargs: Any,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        return (
            init_settings,  # Constructor args (highest priority)
            env_settings,  # Environment variables
            YamlConfigSettingsSource(settings_cls),  # YAML file
            # dotenv and file secrets intentionally excluded
        )
