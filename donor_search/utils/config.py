"""Configuration management using Pydantic for validation."""

from pathlib import Path
from typing import Any, Dict, List, Literal

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class SearchConfig(BaseSettings):
    """Interactive search configuration."""

    fuzzy_threshold: float = 0.35
    suggestion_threshold: float = 0.6
    suggestion_limit: int = Field(default=5, ge=0)
    debounce_ms: int = 300
    highlight_open: str = "<mark>"
    highlight_close: str = "</mark>"
    min_highlight_length: int = Field(default=2, ge=1)
    history_size: int = Field(default=10, ge=0)
    offload_to_thread: bool = False

    @field_validator("fuzzy_threshold", "suggestion_threshold")
    @classmethod
    def validate_threshold(cls, v: float) -> float:
        """Validate similarity thresholds are between 0 and 1."""
        if not 0 <= v <= 1:
            raise ValueError("Similarity thresholds must be between 0 and 1")
        return v

    @field_validator("debounce_ms")
    @classmethod
    def validate_debounce(cls, v: int) -> int:
        """Validate debounce delay is not negative."""
        if v < 0:
            raise ValueError("Debounce delay must not be negative")
        return v


class NormalizationConfig(BaseSettings):
    """Normalization configuration."""

    rules_file: str | None = "config/normalization_rules.yaml"
    cache_size: int = Field(default=8192, ge=0)


class CatalogConfig(BaseSettings):
    """Donor catalog configuration."""

    donors_file: str = "data/DONORS.csv"
    contributor_types_file: str | None = "data/CONTRIBUTOR_TYPES.csv"
    government_type_codes: List[str] = ["C01"]


class LoggingConfig(BaseSettings):
    """Logging configuration."""

    level: str = "INFO"
    format: Literal["json", "text"] = "text"
    file: str | None = None
    max_size_mb: int = 10
    backup_count: int = 3


class Config(BaseSettings):
    """Main configuration class."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="allow",
        env_nested_delimiter="__",
        env_prefix="DONOR_SEARCH_",
    )

    search: SearchConfig = Field(default_factory=SearchConfig)
    normalization: NormalizationConfig = Field(default_factory=NormalizationConfig)
    catalog: CatalogConfig = Field(default_factory=CatalogConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

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
            ValueError: If the YAML root is not a mapping
        """
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {yaml_path}")

        with open(yaml_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ValueError(f"YAML config root must be a mapping/dict: {yaml_path}")

        # Only values that differ from the model defaults came from the environment.
        env_overrides = cls().model_dump(exclude_defaults=True)
        merged = cls._deep_merge_dict(yaml_config, env_overrides)

        return cls(**merged)

    def validate_config(self) -> None:
        """Validate cross-section settings.

        Raises:
            ValueError: If configuration is invalid
        """
        if self.search.suggestion_threshold < self.search.fuzzy_threshold:
            raise ValueError(
                "Suggestion threshold must be at least the fuzzy search threshold "
                f"({self.search.suggestion_threshold} < {self.search.fuzzy_threshold})"
            )
        if not self.catalog.government_type_codes:
            raise ValueError("At least one government contributor type code is required")


# Global configuration instance
_config: Config | None = None


def get_config() -> Config:
    """Get the global configuration instance.

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
