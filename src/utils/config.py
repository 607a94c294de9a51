"""Configuration management using Pydantic for validation."""

from pathlib import Path
from typing import Any, Dict, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class DiscoveryConfig(BaseSettings):
    """Network discovery configuration."""

    default_max_hops: int = Field(default=1, ge=0, le=2)
    lookup_batch_size: int = Field(default=500, ge=1)
    truncation_threshold: int = Field(default=5000, ge=1)


class ConcurrencyConfig(BaseSettings):
    """Worker pool and provider timeout configuration."""

    max_workers: int = Field(default=8, ge=1)
    provider_timeout_seconds: float = Field(default=30.0, gt=0.0)
    parallel_analysis: bool = True


class GraphCacheConfig(BaseSettings):
    """Graph handle cache configuration."""

    max_size: int = Field(default=100, ge=1)
    ttl_seconds: float = Field(default=15 * 60, gt=0.0)
    build_workers: int = Field(default=4, ge=1)


class PathwayConfig(BaseSettings):
    """Pathway resolution configuration."""

    max_path_length: int = Field(default=3, ge=1)
    kinship_weight: float = 2.0
    association_weight: float = 1.0

    @field_validator("kinship_weight", "association_weight")
    @classmethod
    def validate_weight(cls, v: float) -> float:
        """Validate weights are positive."""
        if v <= 0:
            raise ValueError("Link type weights must be positive")
        return v


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"
    file: str = ""
    rotation: str = "10 MB"
    retention: int = 5
    enable_query_logging: bool = True


class DatabaseConfig(BaseSettings):
    """Database configuration from environment variables."""

    model_config = SettingsConfigDict(env_prefix="", case_sensitive=False)

    neo4j_uri: str = Field(default="bolt://localhost:7687")
    neo4j_user: str = Field(default="neo4j")
    neo4j_password: str = Field(default="network2024")
    neo4j_database: str = Field(default="neo4j")
    neo4j_max_pool_size: int = Field(default=50, ge=1)


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
    )

    discovery: DiscoveryConfig = Field(default_factory=DiscoveryConfig)
    concurrency: ConcurrencyConfig = Field(default_factory=ConcurrencyConfig)
    cache: GraphCacheConfig = Field(default_factory=GraphCacheConfig)
    pathways: PathwayConfig = Field(default_factory=PathwayConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    @staticmethod
    def _deep_merge_dict(base: Dict[str, Any], overrides: Dict[str, Any]) -> Dict[str, Any]:
        """Deep-merge two dicts (overrides win).

        This is used to apply environment-derived overrides on top of YAML defaults.
        """
        merged: Dict[str, Any] = dict(base)
        for key, value in overrides.items():
            if key in merged and isinstance(merged[key], dict) and isinstance(value, dict):
                merged[key] = Config._deep_merge_dict(merged[key], value)
            else:
                merged[key] = value
        return merged

    @classmethod
    def from_yaml(cls, yaml_path: str | Path = "config/config.yaml") -> "Config":
        """Load configuration from YAML file and environment variables.

        Precedence (highest to lowest):
        1) Environment variables / .env
        2) YAML file
        3) Model defaults

        Args:
            yaml_path: Path to YAML configuration file

        Returns:
            Config instance with loaded settings

        Raises:
            FileNotFoundError: If YAML file doesn't exist
            yaml.YAMLError: If YAML file is invalid
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path) as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ValueError(f"YAML config root must be a mapping/dict: {yaml_path}")

        # Nested BaseSettings (DatabaseConfig) do not pick up plain env vars such as
        # NEO4J_PASSWORD through the parent model, so compute those overrides separately.
        env_overrides = cls().model_dump(exclude_unset=True)

        db_env_overrides = DatabaseConfig().model_dump(exclude_unset=True)
        if db_env_overrides:
            env_overrides["database"] = cls._deep_merge_dict(
                (
                    yaml_config.get("database", {})
                    if isinstance(yaml_config.get("database", {}), dict)
                    else {}
                ),
                db_env_overrides,
            )

        merged = cls._deep_merge_dict(yaml_config, env_overrides)

        return cls(**merged)

    def validate_config(self) -> None:
        """Validate cross-section settings.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.discovery.lookup_batch_size > self.discovery.truncation_threshold:
            raise ValueError(
                "lookup_batch_size cannot exceed truncation_threshold "
                f"({self.discovery.lookup_batch_size} > {self.discovery.truncation_threshold})"
            )
        if self.logging.file:
            Path(self.logging.file).parent.mkdir(parents=True, exist_ok=True)


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get or create global configuration instance.

    Returns:
        Global Config instance

    Raises:
        RuntimeError: If configuration hasn't been initialized
    """
    global _config
    if _config is None:
        raise RuntimeError("Configuration not initialized. Call load_config() first.")
    return _config


def load_config(yaml_path: str | Path = "config/config.yaml") -> Config:
    """Load and validate configuration.

    Args:
        yaml_path: Path to YAML configuration file

    Returns:
        Loaded and validated Config instance
    """
    global _config
    _config = Config.from_yaml(yaml_path)
    _config.validate_config()
    return _config


def reset_config() -> None:
    """Reset global configuration (mainly for testing)."""
    global _config
    _config = None
