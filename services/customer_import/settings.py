"""
Configuration management using Pydantic Settings.

Loads configuration from environment variables and .env files
with validation and type conversion.
"""

from functools import lru_cache
from typing import Annotated, List, Optional

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class CustomerImportSettings(BaseSettings):
    """
    Configuration for the Customer Import service.

    Settings are loaded in this order of precedence:
    1. Environment variables
    2. .env file in current directory
    3. Default values
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore"
    )

    # Linear API Configuration
    linear_api_key: Optional[str] = Field(
        default=None,
        description="Linear API key (can be overridden with --key)"
    )

    linear_api_url: str = Field(
        default="https://api.linear.app/graphql",
        description="Linear GraphQL endpoint"
    )

    api_timeout: float = Field(
        default=30.0,
        ge=1.0,
        le=300.0,
        description="API request timeout in seconds"
    )

    customer_list_limit: int = Field(
        default=250,
        ge=1,
        le=250,
        description="Number of customers fetched by the single listing query"
    )

    # Concurrency
    upsert_concurrency: int = Field(
        default=10,
        ge=1,
        le=50,
        description="Maximum number of concurrent create/update calls"
    )

    parse_concurrency: Optional[int] = Field(
        default=None,
        ge=1,
        description="Maximum number of rows parsed concurrently (unset = unbounded)"
    )

    # Domain Policy
    domain_strategy: str = Field(
        default="email",
        description="Domain derivation strategy (email, website, combined)"
    )

    excluded_domains: Annotated[List[str], NoDecode] = Field(
        default_factory=lambda: ["t-online.de"],
        description="Shared mail provider domains that never identify a customer (comma-separated)"
    )

    # Input / Output
    csv_encoding: str = Field(
        default="utf-8",
        description="Encoding tried first when reading the CSV file"
    )

    reports_dir: str = Field(
        default="data/customer_import/reports",
        description="Directory for import reports"
    )

    # Logging Configuration
    log_level: str = Field(
        default="INFO",
        description="Logging level (DEBUG, INFO, WARNING, ERROR, CRITICAL)"
    )

    log_format: str = Field(
        default="json",
        description="Log output format (json, text)"
    )

    service_name: str = Field(
        default="customer-import",
        description="Service name for logging and monitoring"
    )

    environment: str = Field(
        default="development",
        description="Environment name (development, staging, production)"
    )

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v):
        """Validate log level is one of the standard levels."""
        valid_levels = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}
        if v.upper() not in valid_levels:
            raise ValueError(f"log_level must be one of: {', '.join(valid_levels)}")
        return v.upper()

    @field_validator("log_format")
    @classmethod
    def validate_log_format(cls, v):
        """Validate log format is supported."""
        valid_formats = {"json", "text"}
        if v.lower() not in valid_formats:
            raise ValueError(f"log_format must be one of: {', '.join(valid_formats)}")
        return v.lower()

    @field_validator("environment")
    @classmethod
    def validate_environment(cls, v):
        """Validate environment name."""
        valid_envs = {"development", "staging", "production"}
        if v.lower() not in valid_envs:
            raise ValueError(f"environment must be one of: {', '.join(valid_envs)}")
        return v.lower()

    @field_validator("domain_strategy")
    @classmethod
    def validate_domain_strategy(cls, v):
        """Validate domain strategy name."""
        valid_strategies = {"email", "website", "combined"}
        if v.lower() not in valid_strategies:
            raise ValueError(f"domain_strategy must be one of: {', '.join(valid_strategies)}")
        return v.lower()

    @field_validator("excluded_domains", mode="before")
    @classmethod
    def split_excluded_domains(cls, v):
        """Accept a comma-separated string, e.g. EXCLUDED_DOMAINS=gmx.de,t-online.de."""
        if isinstance(v, str):
            return v.split(",")
        return v

    @field_validator("excluded_domains")
    @classmethod
    def validate_excluded_domains(cls, v):
        """Lowercase excluded domains and drop blanks."""
        return [domain.strip().lower() for domain in v if domain and domain.strip()]

    @field_validator("linear_api_key")
    @classmethod
    def validate_linear_api_key(cls, v):
        """Treat a blank API key as unset."""
        if v is None:
            return v

        v = v.strip()
        return v or None


@lru_cache()
def get_settings() -> CustomerImportSettings:
    """
    Get cached settings instance.

    Returns:
        Singleton instance of settings
    """
    return CustomerImportSettings()


# Convenience alias
settings = get_settings
