from __future__ import annotations

from functools import lru_cache
from pathlib import Path

from pydantic import AliasChoices, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppSettings(BaseSettings):
    """Environment-driven application configuration."""

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"),
        env_file_encoding="utf-8",
        extra="ignore",
    )

    APP_NAME: str = "ScanID"
    DATA_DIR: Path = Field(default_factory=lambda: Path(__file__).resolve().parent.parent / "data")

    API_KEY: str = Field(default="", validation_alias=AliasChoices("API_KEY", "API_TOKEN"))

    DB_URL: str | None = Field(default=None, validation_alias=AliasChoices("DB_URL", "DATABASE_URL"))

    HOST: str = "0.0.0.0"
    PORT: int = 8089
    LOG_LEVEL: str = "INFO"

    # Scanner input handling. Handheld scanners commonly terminate with Tab,
    # so Tab submission stays off unless a surface opts in.
    SCAN_REMOVE_SPACES: bool = True
    SCAN_STRIP_NON_PRINTABLE: bool = True
    SCAN_TAB_SUBMIT_ENABLED: bool = False
    SCAN_TAB_SUBMIT_MIN_LENGTH: int = Field(default=4, ge=0)
    SCAN_LOOKUP_LIMIT: int = Field(default=10, ge=1, le=100)

    # Barcode generation
    BARCODE_DEFAULT_MODE: str = "EAN13"
    BARCODE_MAX_PROBES: int = Field(default=10_000, ge=1)
    BARCODE_ALLOCATION_RETRIES: int = Field(default=3, ge=0)

    @field_validator("BARCODE_DEFAULT_MODE", mode="before")
    @classmethod
    def parse_barcode_mode(cls, value: object) -> str:
        cleaned = str(value or "EAN13").strip().upper()
        if cleaned not in ("EAN13", "CODE128"):
            raise ValueError("BARCODE_DEFAULT_MODE must be EAN13 or CODE128")
        return cleaned

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def parse_log_level(cls, value: object) -> str:
        return str(value or "INFO").strip().upper()

    @property
    def database_url(self) -> str:
        return self.DB_URL or f"sqlite:///{self.DATA_DIR / 'scanid.db'}"


@lru_cache(maxsize=1)
def get_settings() -> AppSettings:
    settings = AppSettings()
    if settings.DB_URL is None:
        settings.DATA_DIR.mkdir(parents=True, exist_ok=True)
    return settings


settings = get_settings()
