"""
Centralised configuration loaded from environment variables.

All settings live here - never scattered across modules.
enrich_host is required for lookups, but a missing value only fails each
lookup (empty result + error log), never the process.
"""

from typing import Optional

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    enrich_host: Optional[str] = None  # hostname only, no scheme or port
    enrich_port: int = 5000
    enrich_path: str = "/enrich"
    request_timeout_seconds: float = 5.0
    max_attempts: int = 1
    source_name: str = "flowenrich"
    shutdown_grace_seconds: float = 10.0
    log_level: str = "INFO"

    class Config:
        env_file = ".env"


# Single shared instance - import this everywhere
settings = Settings()
