"""Configuration management with YAML and environment variable support."""

import tempfile
from pathlib import Path
from typing import ClassVar, Optional

import yaml
from pydantic import BaseModel, Field, field_validator
from pydantic_settings import (
    BaseSettings,
    PydanticBaseSettingsSource,
    SettingsConfigDict,
)


class YamlConfigSettingsSource(PydanticBaseSettingsSource):
    """Custom settings source that loads configuration from YAML file."""

    def get_field_value(self, field, field_name: str):
        # Not used with prepare method
        pass

    def prepare_field_value(self, field_name: str, field, value, value_is_complex: bool):
        return value

    def __call__(self):
        # Load from config.yaml in current directory
        yaml_path = Path("config.yaml")
        if not yaml_path.exists():
            return {}

        with open(yaml_path) as f:
            data = yaml.safe_load(f) or {}

        return data


class StorageConfig(BaseModel):
    """Object store (Cloudflare R2 / S3-compatible) configuration.

    Credentials are expected via .env or environment variables, e.g.
    MEDIASLOT_STORAGE__ACCESS_KEY_ID.
    """

    account_id: str = ""
    access_key_id: str = ""
    secret_access_key: str = ""
    bucket: str = ""
    public_url: str = ""
    endpoint_url: Optional[str] = None
    region: str = "auto"
    upload_url_expiry: int = 7200
    connect_timeout: float = 30.0
    read_timeout: float = 120.0

    @field_validator("public_url", mode="before")
    @classmethod
    def strip_trailing_slash(cls, v):
        """Public URLs are joined with object keys, so drop trailing slashes."""
        if isinstance(v, str):
            return v.rstrip("/")
        return v

    @property
    def resolved_endpoint(self) -> str:
        """Explicit endpoint, or the R2 endpoint derived from account_id."""
        if self.endpoint_url:
            return self.endpoint_url
        return f"https://{self.account_id}.r2.cloudflarestorage.com"


class TranscodeConfig(BaseModel):
    """Transcode pipeline parameters."""

    ffmpeg_path: str = "ffmpeg"
    audio_codec: str = "aac"
    audio_bitrate: str = "192k"
    timeout_seconds: float = 3600.0
    max_diagnostic_bytes: int = 10 * 1024 * 1024
    scratch_dir: Path = Path(tempfile.gettempdir()) / "mediaslot"
    download_timeout_seconds: float = 600.0
    max_redirects: int = 5
    download_chunk_size: int = 1024 * 1024

    @field_validator("scratch_dir", mode="before")
    @classmethod
    def convert_scratch_dir_to_path(cls, v):
        """Convert string to Path object."""
        if isinstance(v, str):
            return Path(v)
        return v


class ServerConfig(BaseModel):
    """Server configuration."""

    host: str = "0.0.0.0"
    port: int = 3001
    frontend_url: str = ""
    extra_origins: list[str] = Field(default_factory=lambda: ["http://localhost:5173"])

    @property
    def allowed_origins(self) -> list[str]:
        """CORS origins: the frontend URL (if configured) plus extra origins."""
        origins = [self.frontend_url.rstrip("/"), *self.extra_origins]
        return [o for o in origins if o]


class Settings(BaseSettings):
    """Main application settings with YAML and environment variable support.

    Configuration sources (in priority order):
    1. Environment variables (prefix: MEDIASLOT_, delimiter: __)
    2. .env file
    3. YAML file (config.yaml)
    4. Field defaults
    """

    model_config: ClassVar[SettingsConfigDict] = SettingsConfigDict(
        env_nested_delimiter="__",
        env_prefix="MEDIASLOT_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    storage: StorageConfig = Field(default_factory=StorageConfig)
    transcode: TranscodeConfig = Field(default_factory=TranscodeConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: PydanticBaseSettingsSource,
        env_settings: PydanticBaseSettingsSource,
        dotenv_settings: PydanticBaseSettingsSource,
        file_secret_settings: PydanticBaseSettingsSource,
    ):
        """Customize settings sources to include YAML configuration.

        Priority order (highest to lowest):
        1. Init settings (explicit overrides, used by tests)
        2. Environment variables
        3. .env file
        4. YAML file
        """
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            YamlConfigSettingsSource(settings_cls),
        )


# Singleton instance
settings = Settings()
