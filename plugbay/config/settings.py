"""plugbay configuration via environment / .env file."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLUGBAY_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # --- Registry ---
    ROOT_DIR: Path = Path("~/.local/share/plugbay/plugins")

    # --- Concurrency ---
    LOCK_WRITES: bool = True

    # --- Logging ---
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "WARNING"

    @field_validator("ROOT_DIR", mode="after")
    @classmethod
    def _expand_root(cls, v: Path) -> Path:
        return v.expanduser()

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def _upper_level(cls, v: str) -> str:
        if isinstance(v, str):
            return v.upper()
        return v


settings = Settings()
