# File: backend/app/core/config.py
# Version: v0.4.0
"""
Centralized application settings using Pydantic Settings.

Controls:
- App metadata and API prefix
- CORS origins
- Database URL (SQLAlchemy)
- Directory holding per-enzyme ligation-fidelity JSON matrices
- Engine defaults: nearest-neighbor parameter set, enzyme, batch workers
- Server host/port and log level
"""
from __future__ import annotations

from pathlib import Path
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    # --- App ---
    API_PREFIX: str = "/api"
    APP_NAME: str = "OligoForge"
    APP_VERSION: str = "0.1.0"

    # --- CORS ---
    CORS_ORIGINS: str = "*"  # comma-separated or '*' for all

    # --- DB ---
    DB_URL: str = "sqlite:///backend/app/data/oligoforge.db"

    # --- Engine data / defaults ---
    FIDELITY_DATA_DIR: Optional[Path] = Path("backend/app/data/fidelity")
    DEFAULT_PARAMETER_SET: str = "santalucia2004"
    DEFAULT_ENZYME: str = "BsaI"
    MAX_WORKERS: int = 0  # 0 = auto (bounded by CPU count)

    # --- Server ---
    HOST: str = "0.0.0.0"
    PORT: int = 8000
    LOG_LEVEL: str = "info"

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    @property
    def cors_origins_list(self) -> list[str]:
        raw = self.CORS_ORIGINS.strip()
        if raw == "*":
            return ["*"]
        return [o.strip() for o in raw.split(",") if o.strip()]


settings = Settings()
