"""Configuration management using Pydantic Settings."""

from pathlib import Path
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings."""

    # Local development mode (Parquet store instead of Athena)
    local_mode: bool = False

    # AWS configuration
    aws_region: str = "us-east-1"
    athena_database: str = "fleet_diagnostics"
    athena_table: str = "diagnostic_events"
    athena_results_bucket: str = ""
    athena_timeout_s: int = 30

    # Local mode configuration
    local_data_dir: str = "./data"
    events_file: str = "events.parquet"
    seed_log: str = "./data/seed.log"

    # Logging
    log_level: str = "INFO"
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    log_file: Optional[str] = None

    # Coordinators
    debounce_ms: int = 300
    fetch_timeout_s: float = 5.0

    cors_origins: List[str] = ["*"]

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        env_prefix="",
    )

    @property
    def events_path(self) -> Path:
        return Path(self.local_data_dir) / self.events_file

    @property
    def debounce_s(self) -> float:
        return self.debounce_ms / 1000.0


# Global settings instance
settings = Settings()
