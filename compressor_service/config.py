"""
Configuration loader for the image compression service.

Environment variables are centralized here to keep the rest of the code
focused on business logic and to make operational tuning clear. Values are
read from the process environment, `.env`, and `compressor.env.<APP_ENV>`.
"""

from functools import lru_cache
import os
from pathlib import Path
from typing import List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .errors import ConfigurationError, UnsupportedFormatError
from .models import EncodingSpec, OutputFormat

VARIANTS = ("local", "remote")
TEMP_BACKENDS = ("file", "memory")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_env: str = Field("dev")
    pipeline_variant: str = Field("local")

    # Record database (remote variant)
    database_url: Optional[str] = Field(None)
    source_table: str = Field("images")
    source_id_column: str = Field("id")
    source_locator_column: str = Field("image_url")

    # Cloudflare R2 / S3-compatible storage
    r2_endpoint: Optional[str] = Field(None)
    r2_access_key_id: Optional[str] = Field(None)
    r2_secret_access_key: Optional[str] = Field(None)
    r2_bucket_name: Optional[str] = Field(None)
    r2_public_base_url: Optional[str] = Field(None)
    r2_key_prefix: str = Field("")

    # Encoding per variant
    remote_format: str = Field("jpeg")
    remote_quality: int = Field(80, ge=0, le=100)
    local_format: str = Field("webp")
    local_quality: int = Field(40, ge=0, le=100)

    # Local directories
    input_dir: Path = Field(Path("input_images"))
    output_dir: Path = Field(Path("output_images"))
    static_url_prefix: str = Field("/compressed_images")

    # Runner
    temp_backend: str = Field("file")
    temp_dir: Optional[Path] = Field(None)
    max_workers: int = Field(1, ge=1, le=32)
    request_timeout_seconds: int = Field(30, gt=0)

    # API
    host: str = Field("0.0.0.0")
    port: int = Field(3000, gt=0, lt=65536)
    log_level: str = Field("INFO")

    @field_validator("pipeline_variant", "temp_backend", mode="before")
    @classmethod
    def normalize_choice(cls, v: str) -> str:
        return str(v).strip().lower()

    @field_validator("pipeline_variant")
    @classmethod
    def validate_variant(cls, v: str) -> str:
        if v not in VARIANTS:
            raise ValueError("PIPELINE_VARIANT must be one of local|remote")
        return v

    @field_validator("temp_backend")
    @classmethod
    def validate_temp_backend(cls, v: str) -> str:
        if v not in TEMP_BACKENDS:
            raise ValueError("TEMP_BACKEND must be one of file|memory")
        return v

    @field_validator("remote_format", "local_format")
    @classmethod
    def validate_format(cls, v: str) -> str:
        try:
            return OutputFormat.parse(v).value
        except UnsupportedFormatError as exc:
            raise ValueError(str(exc)) from exc

    def require_remote(self) -> None:
        """Fail fast with every missing variable named, not just the first."""
        required = {
            "DATABASE_URL": self.database_url,
            "R2_ENDPOINT": self.r2_endpoint,
            "R2_ACCESS_KEY_ID": self.r2_access_key_id,
            "R2_SECRET_ACCESS_KEY": self.r2_secret_access_key,
            "R2_BUCKET_NAME": self.r2_bucket_name,
        }
        missing: List[str] = [name for name, value in required.items() if not value]
        if missing:
            raise ConfigurationError(
                "Remote pipeline configuration is incomplete; missing: " + ", ".join(missing)
            )


@lru_cache()
def get_settings() -> Settings:
    """Return cached settings to avoid reparsing env on every call."""
    app_env = os.environ.get("APP_ENV", "dev")
    return Settings(_env_file=(".env", f"compressor.env.{app_env}"))


def encoding_for_variant(variant: str, settings: Optional[Settings] = None) -> EncodingSpec:
    """
    Translate a pipeline variant into its output encoding.

    The remote pipeline keeps the JPEG format at moderate compression; the
    local one converts to WEBP at a much lower quality by default.
    """
    settings = settings or get_settings()
    if variant == "remote":
        return EncodingSpec.parse(settings.remote_format, settings.remote_quality)
    if variant == "local":
        return EncodingSpec.parse(settings.local_format, settings.local_quality)
    raise ConfigurationError(f"Unknown pipeline variant: {variant!r}")
