"""
Unified configuration management for the 13F holdings pipeline.

This module provides:
- Environment-aware configuration (development, staging, production, test)
- YAML config loading with environment-specific overlays
- Environment variable overrides
- Pydantic models for type-safe access

Usage:
    from thirteenf.utils.config import get_config

    config = get_config()
    db_path = config.database_path
    limits = config.settings.enrichment
"""

import os
from enum import Enum
from pathlib import Path
from typing import Any, Optional

import yaml
from pydantic import BaseModel, Field
from pydantic_settings import BaseSettings


# =============================================================================
# Environment Definition
# =============================================================================

class Environment(Enum):
    """Environment types."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"
    TEST = "test"


# =============================================================================
# Pydantic Config Models (for type-safe access)
# =============================================================================

class TargetCompany(BaseModel):
    """A filer that is always processed before discovery starts."""
    cik: str
    name: str


DEFAULT_TARGET_COMPANIES = [
    TargetCompany(cik="0001785988", name="Wolf Hill Capital Management, LP"),
    TargetCompany(cik="0001802630", name="Soleus Capital Management, L.P."),
    TargetCompany(cik="0001517137", name="Starboard Value LP"),
    TargetCompany(cik="0001535472", name="Corvex Management LP"),
    TargetCompany(cik="0001509842", name="PointState Capital LP"),
    TargetCompany(cik="0001520354", name="BNP Paribas Asset Management Holding S.A."),
]


class SECApiConfig(BaseModel):
    """Configuration for SEC EDGAR access."""
    base_url: str = Field(default="https://www.sec.gov")
    submissions_url: str = Field(default="https://data.sec.gov/submissions")
    company_tickers_url: str = Field(default="https://www.sec.gov/files/company_tickers.json")
    rate_limit_per_second: float = Field(default=4.0)
    rate_limit_burst: int = Field(default=1)
    max_attempts: int = Field(default=3)
    initial_retry_delay: float = Field(default=2.0)
    max_retry_delay: float = Field(default=10.0)
    user_agent: str = Field(default="ThirteenF Research research@example.com")
    timeout: int = Field(default=30)
    activity_timeout: int = Field(default=10)


class DiscoveryConfig(BaseModel):
    """Configuration for incremental 13F filer discovery."""
    registrant_batch_size: int = Field(default=50)
    discovery_batch_size: int = Field(default=20)
    batch_sleep_seconds: float = Field(default=3.0)
    max_concurrency: int = Field(default=1)
    lookback_years: int = Field(default=2)
    min_filings: int = Field(default=2)
    max_recent_filings_checked: int = Field(default=100)
    max_empty_batches: int = Field(default=3)


class PipelineConfig(BaseModel):
    """Configuration for the per-company orchestration."""
    report_period_cutoff: str = Field(default="2024-03-31")
    value_scale_change_date: str = Field(default="2023-01-03")
    start_year: int = Field(default=2024)
    end_year: int = Field(default=2025)
    historical_pages: int = Field(default=1)
    target_companies: list[TargetCompany] = Field(
        default_factory=lambda: list(DEFAULT_TARGET_COMPANIES)
    )


class ResolutionConfig(BaseModel):
    """Configuration for the ticker resolution cascade."""
    mapping_api_url: str = Field(default="https://api.openfigi.com/v3/mapping")
    mapping_batch_size: int = Field(default=10)
    mapping_batch_delay: float = Field(default=0.5)
    mapping_max_attempts: int = Field(default=2)
    mapping_initial_delay: float = Field(default=1.0)
    mapping_rate_limit_per_second: float = Field(default=2.0)
    ai_enabled: bool = Field(default=True)
    ai_model: str = Field(default="gpt-4o-mini")
    ai_max_items: int = Field(default=100)
    ai_timeout: float = Field(default=10.0)
    ai_item_delay: float = Field(default=0.2)
    ai_rate_limit_per_second: float = Field(default=2.0)


class EnrichmentConfig(BaseModel):
    """Configuration for sector enrichment."""
    facts_api_url: str = Field(default="https://api.financialdatasets.ai/company/facts")
    batch_size: int = Field(default=50)
    batch_concurrency: int = Field(default=2)
    request_concurrency: int = Field(default=3)
    rate_limit_per_second: float = Field(default=10.0)
    rate_limit_backoff: float = Field(default=2.0)
    timeout: int = Field(default=10)


class StorageConfig(BaseModel):
    """Configuration for data storage."""
    database_path: str = Field(default="data/database/thirteenf.duckdb")
    ticker_index_path: str = Field(default="data/cache/sec-company-tickers.json")
    ticker_cache_path: str = Field(default="data/cache/ticker-cache.json")
    sector_cache_path: str = Field(default="data/cache/sec-sector-cache.json")
    ticker_index_ttl_hours: int = Field(default=24)


class LoggingConfig(BaseModel):
    """Configuration for logging."""
    level: str = Field(default="INFO")
    log_path: str = Field(default="logs")
    max_log_files: int = Field(default=30)
    log_format: str = Field(default="json")


class Settings(BaseModel):
    """Main settings container."""
    sec_api: SECApiConfig = Field(default_factory=SECApiConfig)
    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    pipeline: PipelineConfig = Field(default_factory=PipelineConfig)
    resolution: ResolutionConfig = Field(default_factory=ResolutionConfig)
    enrichment: EnrichmentConfig = Field(default_factory=EnrichmentConfig)
    storage: StorageConfig = Field(default_factory=StorageConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)


class EnvSettings(BaseSettings):
    """Environment variable settings."""
    sec_api_user_agent: Optional[str] = Field(default=None)
    openai_api_key: Optional[str] = Field(default=None)
    financial_datasets_api_key: Optional[str] = Field(default=None)
    openfigi_api_key: Optional[str] = Field(default=None)
    database_path: Optional[str] = Field(default=None)
    thirteenf_env: str = Field(default="development")
    log_level: Optional[str] = Field(default=None)

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


# =============================================================================
# Unified AppConfig Class
# =============================================================================

class AppConfig:
    """
    Unified configuration manager.

    Combines:
    - Environment-aware configuration (dev/staging/prod/test)
    - YAML config loading with environment overlays
    - Environment variable overrides
    - Type-safe Pydantic settings
    """

    def __init__(self, env: Optional[str] = None):
        """
        Initialize unified configuration.

        Args:
            env: Environment name. Defaults to THIRTEENF_ENV or 'development'.
        """
        self._env_name = env or os.getenv("THIRTEENF_ENV", "development")
        try:
            self._environment = Environment(self._env_name)
        except ValueError:
            self._environment = Environment.DEVELOPMENT

        self._env_settings = EnvSettings()

        # Raw config dict (for dot-notation access)
        self._config: dict[str, Any] = {}

        self._load_config()

        self._settings = self._create_settings()

    def _load_config(self) -> None:
        """Load configuration files with environment overlay."""
        config_dir = get_project_root() / "config"

        base_path = config_dir / "settings.yaml"
        if base_path.exists():
            with open(base_path) as f:
                self._config = yaml.safe_load(f) or {}

        env_path = config_dir / f"settings.{self._environment.value}.yaml"
        if env_path.exists():
            with open(env_path) as f:
                env_config = yaml.safe_load(f) or {}
            self._deep_merge(self._config, env_config)

        self._apply_env_overrides()

    def _deep_merge(self, base: dict, overlay: dict) -> None:
        """Deep merge overlay dict into base dict."""
        for key, value in overlay.items():
            if key in base and isinstance(base[key], dict) and isinstance(value, dict):
                self._deep_merge(base[key], value)
            else:
                base[key] = value

    def _apply_env_overrides(self) -> None:
        """Apply environment variable overrides."""
        if db_path := os.getenv("THIRTEENF_DB_PATH"):
            self._set_nested("storage.database_path", db_path)
        elif self._env_settings.database_path:
            self._set_nested("storage.database_path", self._env_settings.database_path)

        if log_level := os.getenv("THIRTEENF_LOG_LEVEL") or self._env_settings.log_level:
            self._set_nested("logging.level", log_level)

        if rate_limit := os.getenv("THIRTEENF_SEC_RATE_LIMIT"):
            self._set_nested("sec_api.rate_limit_per_second", float(rate_limit))

        if self._env_settings.sec_api_user_agent:
            self._set_nested("sec_api.user_agent", self._env_settings.sec_api_user_agent)

    def _set_nested(self, path: str, value: Any) -> None:
        """Set nested dictionary value using dot notation."""
        keys = path.split(".")
        d = self._config
        for key in keys[:-1]:
            d = d.setdefault(key, {})
        d[keys[-1]] = value

    def _create_settings(self) -> Settings:
        """Create typed Settings object from config dict."""
        return Settings(**self._config)

    # -------------------------------------------------------------------------
    # Public Properties
    # -------------------------------------------------------------------------

    @property
    def environment(self) -> Environment:
        """Current environment."""
        return self._environment

    @property
    def settings(self) -> Settings:
        """Get typed settings object."""
        return self._settings

    @property
    def env(self) -> EnvSettings:
        """Secrets and other environment-only values."""
        return self._env_settings

    @property
    def database_path(self) -> Path:
        """Get absolute database path (":memory:" is passed through)."""
        if self._settings.storage.database_path == ":memory:":
            return Path(":memory:")
        return get_absolute_path(self._settings.storage.database_path)

    # -------------------------------------------------------------------------
    # Access Methods
    # -------------------------------------------------------------------------

    def get(self, key: str, default: Any = None) -> Any:
        """
        Get configuration value using dot notation.

        Args:
            key: Config key (e.g., 'storage.database_path').
            default: Default value if not found.
        """
        keys = key.split(".")
        value = self._config

        for k in keys:
            if isinstance(value, dict) and k in value:
                value = value[k]
            else:
                return default

        return value

    def get_sec_api_config(self) -> dict[str, Any]:
        """Get SEC API configuration dict."""
        return {
            "rate_limit": self._settings.sec_api.rate_limit_per_second,
            "timeout": self._settings.sec_api.timeout,
            "max_attempts": self._settings.sec_api.max_attempts,
            "user_agent": self._settings.sec_api.user_agent,
        }

    def get_api_keys_status(self) -> dict[str, bool]:
        """Report which optional provider keys are configured (never the keys)."""
        return {
            "openai": bool(self._env_settings.openai_api_key),
            "financial_datasets": bool(self._env_settings.financial_datasets_api_key),
            "openfigi": bool(self._env_settings.openfigi_api_key),
        }

    def validate(self) -> list[str]:
        """
        Validate configuration.

        Returns:
            List of validation errors (empty if valid).
        """
        errors = []

        rate_limit = self._settings.sec_api.rate_limit_per_second
        if rate_limit <= 0 or rate_limit > 10:
            errors.append(f"Invalid SEC rate limit: {rate_limit} (must be 0-10)")

        if "@" not in self._settings.sec_api.user_agent:
            errors.append("SEC user agent must include a contact email address")

        pipeline = self._settings.pipeline
        if pipeline.start_year > pipeline.end_year:
            errors.append(
                f"Start year {pipeline.start_year} is after end year {pipeline.end_year}"
            )

        if self._settings.discovery.max_concurrency < 1:
            errors.append("Discovery concurrency must be at least 1")

        return errors


# =============================================================================
# Global Instances and Accessor Functions
# =============================================================================

_config: Optional[AppConfig] = None


def get_project_root() -> Path:
    """Get the project root directory."""
    current = Path(__file__).resolve()
    for parent in [current] + list(current.parents):
        if (parent / "config").exists() and (parent / "thirteenf").exists():
            return parent
    return Path.cwd()


def get_absolute_path(relative_path: str) -> Path:
    """
    Convert a relative path to absolute path from project root.

    Args:
        relative_path: Path relative to project root.

    Returns:
        Absolute Path object.
    """
    path = Path(relative_path)
    if path.is_absolute():
        return path
    return get_project_root() / path


def get_config(env: Optional[str] = None) -> AppConfig:
    """
    Get the unified configuration instance.

    Args:
        env: Optional environment override.
    """
    global _config
    if _config is None or env is not None:
        _config = AppConfig(env=env)
    return _config


def get_settings() -> Settings:
    """Get the current settings instance."""
    return get_config().settings

