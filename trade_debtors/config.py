"""
Configuration Management Module
Loads and manages application configuration from config.yaml
"""

from pathlib import Path
from typing import List, Optional
import yaml
from pydantic import BaseModel
from pydantic_settings import BaseSettings, SettingsConfigDict


class DatabaseConfig(BaseModel):
    """Database configuration"""
    path: str = "./data/trade_debtors.db"


class ApiConfig(BaseModel):
    """API configuration"""
    host: str = "0.0.0.0"
    port: int = 8000
    prefix: str = "/api/v1/trade-debtors"
    cors_origins: List[str] = ["http://localhost:3000"]


class StorageConfig(BaseSettings):
    """
    Object storage configuration

    Credentials are never written to config.yaml; they are read from
    STORAGE_ACCESS_KEY / STORAGE_SECRET_KEY.
    """
    model_config = SettingsConfigDict(env_prefix="STORAGE_", extra="ignore")

    enabled: bool = False
    endpoint: str = "localhost:9000"
    access_key: Optional[str] = None
    secret_key: Optional[str] = None
    bucket: str = "trade-debtors"
    secure: bool = False
    prefix: str = "trade-debtors"
    public_url: Optional[str] = None
    local_dir: str = "./uploads"
    max_file_size: int = 50 * 1024 * 1024


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    file: str = "./logs/app.log"
    max_size: int = 10
    backup_count: int = 5
    console: bool = True
    colorize: bool = True


class RetryConfig(BaseModel):
    """Retry configuration"""
    max_attempts: int = 3
    initial_delay: float = 0.5
    backoff_multiplier: float = 2.0
    max_delay: float = 10.0


class AppConfig(BaseModel):
    """Main application configuration"""
    database: DatabaseConfig = DatabaseConfig()
    api: ApiConfig = ApiConfig()
    storage: StorageConfig = StorageConfig()
    logging: LoggingConfig = LoggingConfig()
    retry: RetryConfig = RetryConfig()


def load_config(config_path: str = "config.yaml") -> AppConfig:
    """Load configuration from YAML file"""
    config_file = Path(config_path)

    if config_file.exists():
        with open(config_file, "r", encoding="utf-8") as f:
            config_data = yaml.safe_load(f) or {}
        # Build storage through its settings class so STORAGE_* env vars fill the gaps
        storage = StorageConfig(**(config_data.pop("storage", None) or {}))
        return AppConfig(storage=storage, **config_data)

    return AppConfig()


# Global configuration instance
config = load_config()
