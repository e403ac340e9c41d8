"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional

from .currency import Currency


class FinanceConfig(BaseSettings):
    """Installment engine configuration"""

    # Storage configuration
    storage_backend: str = "sqlite"  # sqlite or memory
    database_path: str = "installments.db"
    database_busy_timeout: float = 30.0  # Seconds a writer waits for another worker

    # Money
    currency_code: str = "PKR"

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090
    cors_origins: str = "*"  # Comma separated

    # Uploads (guarantor pictures)
    upload_dir: str = "uploads"
    max_upload_size_mb: int = 5

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Listing
    default_page_size: int = 10
    max_page_size: int = 100

    # Ledger attribution
    system_user: str = "System"
    manual_entry_user: str = "Admin"

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "INSTALLMENTS_"
        env_file = ".env"
        case_sensitive = False

    @property
    def currency(self) -> Currency:
        return Currency.from_code(self.currency_code)


# Global configuration instance
config = FinanceConfig()


def get_config() -> FinanceConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> FinanceConfig:
    """Reload configuration from environment"""
    global config
    config = FinanceConfig()
    return config
