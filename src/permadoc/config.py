"""
Configuration management for permadoc library.

This module handles environment variables, ledger connection parameters and
default query settings for the document client. Configuration is always
passed explicitly to the client; there is no process-wide instance.
"""

import json
import sys
from typing import Optional, Dict, Any
from pathlib import Path

from pydantic import BaseModel, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from dotenv import load_dotenv
from loguru import logger

from .exceptions import ConfigurationError


DEFAULT_CACHE_SIZE = 500


class QueryOptions(BaseModel):
    """Per-query settings for confirmation polling, trust and result bounds."""

    max_retries: int = Field(default=10, ge=1)
    verified_only: bool = True
    max_results: int = Field(default=25, ge=1)

    def merged(self, overrides: Optional[Dict[str, Any]] = None) -> "QueryOptions":
        """Return a copy with the given fields replaced."""
        if not overrides:
            return self
        return self.model_validate({**self.model_dump(), **overrides})


class PermadocConfig(BaseSettings):
    """Configuration settings for permadoc library."""

    model_config = SettingsConfigDict(
        env_prefix="PERMADOC_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Ledger connection
    ledger_host: str = "arweave.net"
    ledger_port: int = 443
    ledger_protocol: str = "https"
    ledger_timeout_ms: int = 20000
    ledger_logging: bool = False

    # Identity
    admin_address: str
    wallet_file: Optional[str] = None

    # Cache Configuration
    cache_size: int = DEFAULT_CACHE_SIZE

    # Query defaults
    max_retries: int = 10
    verified_only: bool = True
    max_results: int = 25

    # Confirmation backoff
    backoff_base_delay_s: float = 0.1
    backoff_factor: float = 2.0
    backoff_max_delay_s: float = 10.0

    # Logging Configuration
    log_level: str = "INFO"
    log_format: str = "{time:YYYY-MM-DD HH:mm:ss} | {level} | {name}:{function}:{line} | {message}"

    # Environment
    environment: str = "dev"

    @field_validator("admin_address")
    @classmethod
    def validate_admin_address(cls, v):
        """Admin address must be present; every verified read compares against it."""
        if not v or not v.strip():
            raise ValueError("PERMADOC_ADMIN_ADDRESS is required")
        return v.strip()

    @field_validator("ledger_protocol")
    @classmethod
    def validate_protocol(cls, v):
        if v.lower() not in ("http", "https"):
            raise ValueError("Ledger protocol must be http or https")
        return v.lower()

    @field_validator("cache_size")
    @classmethod
    def validate_cache_size(cls, v):
        """Cache size of 0 disables caching; negative sizes are rejected."""
        if v < 0:
            raise ValueError("Cache size must be >= 0")
        return v

    @field_validator("max_retries", "max_results")
    @classmethod
    def validate_positive(cls, v):
        if v < 1:
            raise ValueError("Must be >= 1")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level."""
        valid_levels = ["TRACE", "DEBUG", "INFO", "SUCCESS", "WARNING", "ERROR", "CRITICAL"]
        if v.upper() not in valid_levels:
            raise ValueError(f"Log level must be one of: {valid_levels}")
        return v.upper()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment."""
        valid_envs = ["dev", "test", "staging", "prod"]
        if v.lower() not in valid_envs:
            raise ValueError(f"Environment must be one of: {valid_envs}")
        return v.lower()

    @property
    def ledger_url(self) -> str:
        """Base URL of the ledger gateway."""
        return f"{self.ledger_protocol}://{self.ledger_host}:{self.ledger_port}"

    def get_connection_options(self) -> Dict[str, Any]:
        """Get ledger connection parameters as a dictionary."""
        return {
            "host": self.ledger_host,
            "port": self.ledger_port,
            "protocol": self.ledger_protocol,
            "timeout": self.ledger_timeout_ms,
            "logging": self.ledger_logging,
        }

    def query_options(self) -> QueryOptions:
        """Default per-query settings for this deployment."""
        return QueryOptions(
            max_retries=self.max_retries,
            verified_only=self.verified_only,
            max_results=self.max_results,
        )

    def is_production(self) -> bool:
        """Check if running in production environment."""
        return self.environment == "prod"


def load_config(config_file: Optional[str] = None, **overrides: Any) -> PermadocConfig:
    """
    Load configuration from environment variables and optional config file.

    Args:
        config_file: Optional path to .env file
        **overrides: Explicit values taking precedence over the environment

    Returns:
        PermadocConfig instance

    Raises:
        ConfigurationError: If required configuration is missing or invalid
    """
    if config_file:
        if not Path(config_file).exists():
            raise ConfigurationError(f"Config file not found: {config_file}")
        load_dotenv(config_file)
    elif Path(".env").exists():
        load_dotenv(".env")

    try:
        config = PermadocConfig(**overrides)
    except ValueError as e:
        raise ConfigurationError(f"Failed to load configuration: {str(e)}") from e

    logger.info(f"Configuration loaded successfully for environment: {config.environment}")
    return config


def load_wallet(path: str) -> Dict[str, Any]:
    """
    Read a JSON wallet key file.

    Args:
        path: Path to the key file

    Returns:
        Parsed key material, handed opaquely to the ledger service

    Raises:
        ConfigurationError: If the file is missing or not a JSON object
    """
    wallet_path = Path(path)
    if not wallet_path.exists():
        raise ConfigurationError(f"Wallet file not found: {path}", config_key="wallet_file")

    try:
        wallet = json.loads(wallet_path.read_text(encoding="utf-8"))
    except json.JSONDecodeError as e:
        raise ConfigurationError(f"Wallet file is not valid JSON: {path}", config_key="wallet_file") from e

    if not isinstance(wallet, dict):
        raise ConfigurationError(f"Wallet file must contain a JSON object: {path}", config_key="wallet_file")
    return wallet


def setup_logging(config: PermadocConfig) -> None:
    """
    Setup logging configuration based on config settings.

    Args:
        config: PermadocConfig instance
    """
    logger.remove()

    logger.add(
        sink=sys.stderr,
        format=config.log_format,
        level=config.log_level,
        colorize=True,
    )

    # Add file logging in production
    if config.is_production():
        logger.add(
            sink="logs/permadoc.log",
            format=config.log_format,
            level=config.log_level,
            rotation="10 MB",
            retention="30 days",
            compression="gz",
        )
