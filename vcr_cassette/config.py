"""Application configuration via pydantic-settings."""

from __future__ import annotations

from pathlib import Path
from typing import Literal

from pydantic_settings import BaseSettings, SettingsConfigDict

DEFAULT_CASSETTES_DIR = Path("test/support/cassettes")


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_prefix="VCR_")

    cassettes_dir: Path = DEFAULT_CASSETTES_DIR

    stale_days: int = 365
    secret_display_limit: int = 50

    json_codec: Literal["json", "pydantic"] = "json"
    call_timeout: float = 5.0

    log_level: Literal["debug", "info", "warning", "error", "critical"] = "info"
    log_format: Literal["console", "json"] = "console"
