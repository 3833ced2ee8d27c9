"""
Process configuration via Pydantic Settings.
All values can be overridden by PLANCK_-prefixed environment variables or a .env file.
"""
from __future__ import annotations

import os
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="PLANCK_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
        validate_assignment=True,
    )

    # ── Files ──────────────────────────────────────────────────────────────
    # Mode of new files when no existing mode is preserved (owner bits only)
    DEFAULT_MODE: int = 0o600
    TEMP_SUFFIX: str = ".tmp"

    # ── Logging ────────────────────────────────────────────────────────────
    LOG_LEVEL: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = "WARNING"

    @field_validator("DEFAULT_MODE", mode="before")
    @classmethod
    def parse_octal(cls, v: object) -> object:
        """Accept octal strings such as "600" or "0o400" as well as ints."""
        if isinstance(v, str):
            text = v.strip().lower()
            if text.startswith("0o"):
                text = text[2:]
            try:
                return int(text, 8)
            except ValueError:
                raise ValueError(f"DEFAULT_MODE must be an octal mode, got {v!r}") from None
        return v

    @field_validator("DEFAULT_MODE")
    @classmethod
    def validate_restrictive(cls, v: int) -> int:
        if v < 0 or v & ~0o700:
            raise ValueError(
                f"DEFAULT_MODE must not grant group or world access, got {oct(v)}"
            )
        return v

    @field_validator("TEMP_SUFFIX")
    @classmethod
    def validate_suffix(cls, v: str) -> str:
        if not v:
            raise ValueError("TEMP_SUFFIX must not be empty")
        separators = {os.sep} | ({os.altsep} if os.altsep else set())
        if any(sep in v for sep in separators):
            raise ValueError(f"TEMP_SUFFIX must not contain a path separator, got {v!r}")
        return v

    @field_validator("LOG_LEVEL", mode="before")
    @classmethod
    def normalise_level(cls, v: object) -> object:
        return v.upper() if isinstance(v, str) else v


# Module-level singleton — import and use everywhere.
settings = Settings()
