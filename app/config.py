"""
Configuration for the adapter and the embedded site.

Two layers:
- pydantic-settings classes for typed, environment-driven settings
  (AdapterSettings with the ADAPTER_ prefix, SiteSettings with SITE_)
- Config, a cached lookup against AWS Systems Manager Parameter Store with
  fallback to environment variables for local development

Both are resolved once per process (cold start) and treated as read-only.
"""

import os
import logging
from typing import Optional, Dict, Any, List
from functools import lru_cache

import boto3
from botocore.exceptions import ClientError
from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)

# Lambda synchronous invocation response payload limit (6 MiB)
LAMBDA_MAX_RESPONSE_BYTES = 6 * 1024 * 1024

DEFAULT_TEXT_MIME_TYPES = [
    "text/",
    "application/json",
    "application/javascript",
    "application/xml",
    "application/xhtml+xml",
    "application/vnd.api+json",
    "image/svg+xml",
]


class ConfigError(Exception):
    """Raised when configuration cannot be loaded."""
    pass


class AdapterSettings(BaseSettings):
    """Request adapter settings from ADAPTER_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="ADAPTER_", env_file=".env", extra="ignore")

    max_response_bytes: int = LAMBDA_MAX_RESPONSE_BYTES
    text_mime_types: List[str] = Field(default_factory=lambda: list(DEFAULT_TEXT_MIME_TYPES))
    base64_binary: bool = True
    response_streaming: bool = False
    cancel_margin_ms: int = 250
    log_level: str = "INFO"


class SiteSettings(BaseSettings):
    """Embedded site settings from SITE_* environment variables."""

    model_config = SettingsConfigDict(env_prefix="SITE_", env_file=".env", extra="ignore")

    output_name: str = "site"
    root: str = "target/site"
    pkg_dir: str = "pkg"
    name: str = "site-lambda"
    parameter_prefix: str = "/site-lambda"


@lru_cache(maxsize=1)
def get_adapter_settings() -> AdapterSettings:
    """Get the process-wide adapter settings (cached)."""
    return AdapterSettings()


@lru_cache(maxsize=1)
def get_site_settings() -> SiteSettings:
    """Get the process-wide site settings (cached)."""
    return SiteSettings()


class Config:
    """
    Configuration manager for AWS Parameter Store and environment variables.

    Provides cached access to values stored in AWS Systems Manager Parameter Store,
    with automatic fallback to environment variables for local development.

    Usage:
        config = Config()
        analytics_id = config.get("ANALYTICS_ID")
    """

    def __init__(self, parameter_prefix: str = "/site-lambda", use_local: bool = None):
        """
        Initialize configuration manager.

        Args:
            parameter_prefix: Prefix for Parameter Store keys (default: /site-lambda)
            use_local: Force local mode (env vars only). If None, auto-detect based on
                AWS_LAMBDA_FUNCTION_NAME.
        """
        self.parameter_prefix = parameter_prefix.rstrip("/")
        self._cache: Dict[str, Any] = {}

        if use_local is None:
            self.use_local = os.getenv("AWS_LAMBDA_FUNCTION_NAME") is None
        else:
            self.use_local = use_local

        self.ssm_client = None
        if not self.use_local:
            try:
                self.ssm_client = boto3.client("ssm")
                logger.info("Initialized AWS SSM client for Parameter Store")
            except Exception as e:
                logger.warning(f"Failed to initialize SSM client, falling back to env vars: {e}")
                self.use_local = True

    def get(self, key: str, default: Optional[str] = None, required: bool = False) -> Optional[str]:
        """
        Get configuration value from Parameter Store or environment variables.

        Order of precedence:
        1. Cache (if already loaded)
        2. Parameter Store (if running in Lambda)
        3. Environment variable
        4. Default value (never cached)

        Args:
            key: Configuration key (e.g., "ANALYTICS_ID")
            default: Default value if not found
            required: Raise ConfigError if not found and no default

        Returns:
            Configuration value as string

        Raises:
            ConfigError: If required=True and value not found
        """
        if key in self._cache:
            return self._cache[key]

        value = None

        if not self.use_local and self.ssm_client:
            try:
                value = self._get_from_parameter_store(key)
            except ClientError as e:
                logger.warning(f"Failed to get {key} from Parameter Store: {e}")

        if value is None:
            value = os.getenv(key)

        if value is None:
            if default is None and required:
                raise ConfigError(f"Required configuration key '{key}' not found")
            return default

        self._cache[key] = value
        return value

    def _get_from_parameter_store(self, key: str) -> Optional[str]:
        """
        Fetch value from AWS Parameter Store.

        Args:
            key: Parameter key

        Returns:
            Parameter value or None if not found
        """
        parameter_name = f"{self.parameter_prefix}/{key}"

        try:
            response = self.ssm_client.get_parameter(
                Name=parameter_name,
                WithDecryption=True
            )
            value = response["Parameter"]["Value"]
            logger.debug(f"Loaded {key} from Parameter Store")
            return value
        except ClientError as e:
            if e.response["Error"]["Code"] == "ParameterNotFound":
                logger.debug(f"Parameter {parameter_name} not found in Parameter Store")
                return None
            raise

    def get_site_metadata(self) -> Dict[str, Optional[str]]:
        """
        Get values rendered into every page.

        Returns:
            Dict with optional analytics and contact settings
        """
        return {
            "ANALYTICS_ID": self.get("ANALYTICS_ID"),
            "CONTACT_EMAIL": self.get("CONTACT_EMAIL"),
        }

    def clear_cache(self):
        """Clear the configuration cache."""
        self._cache.clear()
        logger.info("Configuration cache cleared")


@lru_cache(maxsize=1)
def get_config() -> Config:
    """
    Get the global Config instance (cached).

    Returns:
        Config singleton instance
    """
    return Config(parameter_prefix=get_site_settings().parameter_prefix)
