"""
Application Configuration Module

Centralizes all configuration using environment variables with Pydantic Settings.
Supports two modes:
    - DEVELOPMENT: Uses the mock fulfillment client (no factory API key needed)
    - PRODUCTION: Forwards orders to the real pizza factory over HTTP

The ENV_MODE variable controls which fulfillment client is instantiated,
enabling seamless switching between local testing and production deployment.

Usage:
    from pizza_service.core.config import get_settings
    
    settings = get_settings()
    if settings.is_development:
        # Use mock fulfillment
    else:
        # Use the factory API
"""

import logging
import sys
from enum import Enum
from typing import Optional
from functools import lru_cache

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class EnvironmentMode(str, Enum):
    """
    Application environment modes.
    
    Attributes:
        DEVELOPMENT: Local testing with the mock fulfillment client
        PRODUCTION: Live environment with the real pizza factory
        STAGING: Pre-production testing against the factory with test keys
    """
    DEVELOPMENT = "development"
    PRODUCTION = "production"
    STAGING = "staging"


class Settings(BaseSettings):
    """
    Application settings loaded from environment variables.
    
    All settings can be overridden via environment variables or .env file.
    Secrets (JWT secret, factory API key) should NEVER be committed.
    
    Attributes:
        env_mode: Current environment (development/production/staging)
        debug: Enable verbose logging and error details
        database_url: Async SQLAlchemy connection string
        jwt_secret: Secret used to sign session tokens
        password_hash_rounds: bcrypt cost factor
        list_per_page: Fixed page size for order history
        factory_url: Base URL of the pizza factory (fulfillment service)
        factory_api_key: Bearer key presented to the factory
    """
    
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )
    
    # ==========================================================================
    # ENVIRONMENT
    # ==========================================================================
    
    env_mode: EnvironmentMode = Field(
        default=EnvironmentMode.DEVELOPMENT,
        description="Application environment mode"
    )
    debug: bool = Field(
        default=False,
        description="Enable debug mode with verbose logging"
    )
    
    # ==========================================================================
    # APPLICATION
    # ==========================================================================
    
    app_name: str = Field(
        default="JWT Pizza Service",
        description="Application display name"
    )
    app_version: str = Field(
        default="1.0.0",
        description="Application version"
    )
    api_host: str = Field(
        default="0.0.0.0",
        description="API server host"
    )
    api_port: int = Field(
        default=3000,
        description="API server port"
    )
    
    # ==========================================================================
    # DATABASE
    # ==========================================================================
    
    database_url: str = Field(
        default="sqlite+aiosqlite:///./pizza.db",
        description="Async SQLAlchemy connection URL"
    )
    database_echo: bool = Field(
        default=False,
        description="Log every SQL statement"
    )
    list_per_page: int = Field(
        default=10,
        description="Orders returned per page of order history"
    )
    
    # ==========================================================================
    # AUTHENTICATION
    # ==========================================================================
    
    jwt_secret: str = Field(
        default="change-me-in-production",
        description="Secret used to sign session tokens"
    )
    jwt_algorithm: str = Field(
        default="HS256",
        description="Session token signing algorithm"
    )
    password_hash_rounds: int = Field(
        default=10,
        description="bcrypt cost factor for stored passwords"
    )
    
    # ==========================================================================
    # PIZZA FACTORY (FULFILLMENT)
    # ==========================================================================
    
    factory_url: str = Field(
        default="https://pizza-factory.cs329.click",
        description="Base URL of the order fulfillment service"
    )
    factory_api_key: Optional[str] = Field(
        default=None,
        description="API key presented to the fulfillment service"
    )
    factory_timeout_seconds: float = Field(
        default=10.0,
        description="Timeout for fulfillment requests"
    )
    
    # ==========================================================================
    # BOOTSTRAP
    # ==========================================================================
    
    default_admin_name: str = Field(
        default="Pizza Admin",
        description="Name of the admin seeded into an empty database"
    )
    default_admin_email: str = Field(
        default="a@jwt.com",
        description="Email of the seeded admin"
    )
    default_admin_password: str = Field(
        default="admin",
        description="Password of the seeded admin"
    )
    
    # ==========================================================================
    # VALIDATORS
    # ==========================================================================
    
    @field_validator("env_mode", mode="before")
    @classmethod
    def validate_env_mode(cls, v: str) -> EnvironmentMode:
        """Convert string to EnvironmentMode enum."""
        if isinstance(v, EnvironmentMode):
            return v
        try:
            return EnvironmentMode(v.lower())
        except ValueError:
            valid = [e.value for e in EnvironmentMode]
            raise ValueError(f"Invalid env_mode. Must be one of: {valid}")
    
    # ==========================================================================
    # COMPUTED PROPERTIES
    # ==========================================================================
    
    @property
    def is_development(self) -> bool:
        """Check if running in development mode."""
        return self.env_mode == EnvironmentMode.DEVELOPMENT
    
    @property
    def is_production(self) -> bool:
        """Check if running in production mode."""
        return self.env_mode == EnvironmentMode.PRODUCTION
    
    @property
    def use_real_services(self) -> bool:
        """Check if the real fulfillment service should be used."""
        return self.env_mode in (EnvironmentMode.PRODUCTION, EnvironmentMode.STAGING)
    
    # ==========================================================================
    # VALIDATION METHODS
    # ==========================================================================
    
    def validate_production_config(self) -> list[str]:
        """
        Validate that all required production settings are configured.
        
        Returns:
            List of missing configuration keys (empty if all present)
        """
        missing = []
        
        if self.use_real_services:
            if not self.factory_api_key:
                missing.append("FACTORY_API_KEY")
            if self.jwt_secret == "change-me-in-production":
                missing.append("JWT_SECRET")
        
        return missing


@lru_cache()
def get_settings() -> Settings:
    """
    Get cached application settings.
    
    Uses LRU cache to ensure settings are loaded only once and stay
    consistent across the application lifecycle.
    
    Returns:
        Settings: Configured application settings
    """
    return Settings()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================

def setup_logging(level: int = logging.INFO) -> logging.Logger:
    """
    Configure application-wide logging.
    
    Args:
        level: Logging level (DEBUG, INFO, WARNING, ERROR)
        
    Returns:
        Configured package logger
    """
    settings = get_settings()
    
    if settings.debug:
        level = logging.DEBUG
    
    log_format = "%(asctime)s │ %(levelname)-8s │ %(name)-25s │ %(message)s"
    date_format = "%Y-%m-%d %H:%M:%S"
    
    logging.basicConfig(
        level=level,
        format=log_format,
        datefmt=date_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )
    
    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("sqlalchemy.engine").setLevel(logging.WARNING)
    
    return logging.getLogger("pizza_service")
