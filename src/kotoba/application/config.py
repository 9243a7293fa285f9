from pathlib import Path
from typing import Any, Literal

from pydantic import Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)

from kotoba.domain.constants import (
    DEFAULT_REMOTE_TABLE,
    DEFAULT_STORAGE_KEY,
    PUSH_CHUNK_SIZE,
    REQUEST_TIMEOUT,
)


class AppConfig(BaseSettings):
    """
    Configuration model for kotoba.
    Supports loading from:
    1. Environment variables (KOTOBA_*)
    2. Config file (~/.config/kotoba/config.toml)
    3. Manual overrides (CLI)
    """

    model_config = SettingsConfigDict(
        env_prefix="KOTOBA_",
        extra="ignore",
    )

    # Local store
    data_dir: Path = Field(default_factory=lambda: Path.home() / ".local/share/kotoba")
    storage_key: str = DEFAULT_STORAGE_KEY

    # Remote store
    backend: Literal["rest", "memory"] = "rest"
    remote_url: str | None = None
    remote_api_key: str | None = None
    remote_table: str = DEFAULT_REMOTE_TABLE
    user_id: str | None = None

    # Performance
    request_timeout: float = REQUEST_TIMEOUT
    push_chunk_size: int = Field(default=PUSH_CHUNK_SIZE, ge=1)
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

        # Overrides first, then env, then the first config file that exists
        toml_file = next((f for f in _config_files() if f.exists()), None)
        if toml_file:
            return (
                init_settings,
                env_settings,
                TomlConfigSettingsSource(settings_cls, toml_file=toml_file),
            )
        return (init_settings, env_settings)

    @field_validator("data_dir", mode="before")
    @classmethod
    def resolve_data_dir(cls, v: Any) -> Path:
        return Path(v).expanduser().resolve()

    @field_validator("remote_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v: Any) -> str | None:
        if not v:
            return None
        return str(v).rstrip("/")

    @property
    def history_file(self) -> Path:
        return self.data_dir / f"{self.storage_key}.json"


def _config_files() -> list[Path]:
    # Re-evaluated per call so a patched HOME is honored.
    return [
        Path.home() / ".config/kotoba/config.toml",
        Path.home() / ".kotoba.toml",
    ]


def resolve_config(cli_overrides: dict[str, Any] | None = None) -> AppConfig:
    """
    Multi-layered configuration resolution.
    1. Defaults in AppConfig
    2. ~/.config/kotoba/config.toml (if exists)
    3. Environment variables (KOTOBA_*)
    4. cli_overrides (passed from Typer), None values dropped
    """
    overrides = {k: v for k, v in (cli_overrides or {}).items() if v is not None}
    return AppConfig(**overrides)
