from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from flashlite.domain.constants import POLL_INTERVAL, REQUEST_TIMEOUT


def config_files() -> list[Path]:
    return [
        Path.home() / ".config/flashlite/config.toml",
        Path.home() / ".flashlite.toml",
    ]


class AppConfig(BaseSettings):
    """
    Configuration model for flashlite.
    Supports loading from:
    1. Config file (~/.config/flashlite/config.toml or ~/.flashlite.toml)
    2. Environment variables (FLASHLITE_*)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="FLASHLITE_",
        extra="ignore",
    )

    # Backend
    backend: Literal["local", "http"] = "local"

    # Local (offline) store
    data_file: Path = Field(
        default_factory=lambda: Path.home() / ".local/share/flashlite/store.json"
    )
    local_user: str = "local"

    # HTTP store
    store_url: str = "http://127.0.0.1:8080"
    request_timeout: float = REQUEST_TIMEOUT
    poll_interval: float = POLL_INTERVAL
    email: str | None = None
    password: str | None = None

    # Logging
    log_dir: Path = Field(default_factory=lambda: Path.home() / ".config/flashlite/logs")
    verbose: int = 1

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ) -> tuple[PydanticBaseSettingsSource, ...]:
        from pydantic_settings import TomlConfigSettingsSource

        # First existing file wins; sources listed first take priority.
        toml_file = next((f for f in config_files() if f.exists()), None)

        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_file", "log_dir", mode="before")
    @classmethod
    def expand_path(cls, v: Any) -> Path:
        return Path(v).expanduser()

    @field_validator("store_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        return v.rstrip("/")


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/flashlite/config.toml (if exists)
    3. Environment variables (FLASHLITE_*)
    4. cli_overrides (passed from Typer), None values dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
