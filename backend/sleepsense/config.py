"""
SleepSense - Configuration Management

Centralized configuration using Pydantic Settings.
Environment-specific values are loaded from environment variables or `.env`.
"""

from functools import lru_cache
from typing import List

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    Hierarchy (highest to lowest priority):
    1. Environment variables
    2. .env file
    3. Default values
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # --- Application ---
    app_env: str = "development"
    app_debug: bool = True
    app_log_level: str = "INFO"
    log_json: bool = False  # JSON lines instead of human-readable output
    
    # --- Server ---
    # Local only: the UI collaborator runs on the same machine
    backend_host: str = "127.0.0.1"
    backend_port: int = 8000
    
    # --- Storage ---
    # "file" = one JSON document on disk (default)
    # "memory" = process-local dict (tests, demos)
    storage_backend: str = "file"
    data_dir: str = "./data"
    
    # --- Privacy ---
    anonymize_logs: bool = True  # If True, chat/journal text never reaches the logs
    
    # --- Security ---
    allowed_origins: str = "http://localhost:5173,http://127.0.0.1:5173"
    
    @property
    def allowed_origins_list(self) -> List[str]:
        """Parse comma-separated origins into list."""
        return [origin.strip() for origin in self.allowed_origins.split(",") if origin.strip()]
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.app_env.lower() == "production"


@lru_cache
def get_settings() -> Settings:
    """
    Cached settings instance.
    
    Use dependency injection in routes:
        settings: Settings = Depends(get_settings)
    """
    return Settings()
