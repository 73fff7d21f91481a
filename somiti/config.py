"""
Configuration Management Module

Provides centralized configuration using pydantic-settings for environment-based configuration.
"""

from pydantic_settings import BaseSettings
from typing import Optional


class SomitiConfig(BaseSettings):
    """Somiti ledger configuration"""

    # Database configuration
    database_url: str = "sqlite:///somiti.db"  # or memory:// for tests

    # API configuration
    api_host: str = "0.0.0.0"
    api_port: int = 8090

    # Logging configuration
    log_level: str = "INFO"
    log_format: str = "json"  # json or text
    log_file: Optional[str] = None  # If None, logs to stdout

    # Local calendar; every due date and collection date is resolved in this zone
    timezone: str = "Asia/Dhaka"

    # How collections are matched to scheduled installments: date or installment_number
    payment_matching: str = "date"

    # SMS gateway configuration
    sms_enabled: bool = False
    sms_api_url: str = "https://sms.mszahid.com/services/send.php"
    sms_api_key: str = ""
    sms_timeout: float = 10.0
    sms_workers: int = 2
    sms_async: bool = True  # dispatch on a worker thread, off the write path

    # Feature flags
    enable_audit_logging: bool = True

    class Config:
        env_prefix = "SOMITI_"
        env_file = ".env"
        case_sensitive = False


# Global configuration instance
config = SomitiConfig()


def get_config() -> SomitiConfig:
    """Get global configuration instance"""
    return config


def reload_config() -> SomitiConfig:
    """Reload configuration from environment"""
    global config
    config = SomitiConfig()
    return config
