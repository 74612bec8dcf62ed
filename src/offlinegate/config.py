"""Configuration loading.

Settings are loaded in priority order (highest first):
  1. Environment variables  (OFFLINEGATE__SERVER__PORT=9090)
  2. offlinegate.yaml       (searched in cwd, then the platform config dir)
  3. Hardcoded defaults

The config file is optional; all fields have defaults.
"""

from __future__ import annotations

from pathlib import Path
from typing import Any, Literal

import platformdirs
from pydantic import BaseModel, ConfigDict, Field
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
    YamlConfigSettingsSource,
)

_DEFAULT_DATA_DIR = platformdirs.user_data_dir("offlinegate")
_DEFAULT_DB_PATH = str(Path(_DEFAULT_DATA_DIR) / "offlinegate.db")

# App shell fetched at install time
_DEFAULT_PRECACHE_URLS = [
    "/",
    "/index.html",
    "/src/css/main.css",
    "/src/js/app.js",
    "/manifest.json",
    "/src/icons/icon-192x192.png",
    "/src/icons/icon-512x512.png",
]


def _find_config_file() -> str | None:
    """Return the path of the first offlinegate.yaml found, or None."""
    candidates = [
        Path("offlinegate.yaml"),
        Path(platformdirs.user_config_dir("offlinegate")) / "offlinegate.yaml",
    ]
    for path in candidates:
        if path.exists():
            return str(path)
    return None


class ServerSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    host: str = "127.0.0.1"
    port: int = 8080
    poll_timeout_seconds: float = 25.0
    # Per-client message backlog; the oldest message is dropped when full.
    client_inbox_size: int = Field(default=100, ge=1)
    # Clients that have not polled for this long are forgotten.
    client_idle_seconds: float = Field(default=300.0, gt=0)


class InterceptorSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    # The interceptor's own origin; requests to other hosts classify as API.
    origin: str = "http://localhost:3000"
    api_prefix: str = "/api/"
    namespace_prefix: str = "offlinegate"
    generation: str = "v1"
    precache_urls: list[str] = Field(default_factory=lambda: list(_DEFAULT_PRECACHE_URLS))


class CacheSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    db_path: str = _DEFAULT_DB_PATH
    static_max_entries: int = Field(default=50, ge=1)
    dynamic_max_entries: int = Field(default=100, ge=1)
    images_max_entries: int = Field(default=200, ge=1)


class FetcherSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    default_timeout_seconds: float = Field(default=10.0, gt=0)
    api_timeout_seconds: float = Field(default=5.0, gt=0)


class SyncSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    tag: str = "background-upload"
    max_retries: int = Field(default=3, ge=1)


class LoggingSettings(BaseModel):
    model_config = ConfigDict(extra="forbid")

    level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"
    format: Literal["json", "text"] = "json"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        # Double-underscore separates nesting: OFFLINEGATE__SERVER__PORT=9090
        env_prefix="OFFLINEGATE__",
        env_nested_delimiter="__",
        yaml_file=_find_config_file(),
        yaml_file_encoding="utf-8",
    )

    server: ServerSettings = ServerSettings()
    interceptor: InterceptorSettings = InterceptorSettings()
    cache: CacheSettings = CacheSettings()
    fetcher: FetcherSettings = FetcherSettings()
    sync: SyncSettings = SyncSettings()
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
        )
