"""Configuration management for the consumption planner"""

import yaml
import json
from pathlib import Path
from typing import Optional
from pydantic import BaseModel, Field, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import logging

from .exceptions import ConfigurationError

logger = logging.getLogger(__name__)


class LoggingConfig(BaseModel):
    """Logging configuration"""
    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    file: Optional[Path] = None
    max_bytes: int = 10485760  # 10MB
    backup_count: int = 5
    console: bool = True
    structured: bool = False

    @field_validator("level")
    @classmethod
    def validate_level(cls, value: str) -> str:
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level


class OptimizationSettings(BaseModel):
    """Scenario generation and selection settings"""
    max_alternatives: int = Field(default=3, ge=0, le=10)
    parallel_scenarios: bool = True
    max_workers: int = Field(default=5, ge=1)
    default_planning_horizon: str = "1yr"


class BudgetSettings(BaseModel):
    """Grant budget tracking settings"""
    warning_threshold: float = Field(default=80.0, gt=0, le=100)
    critical_threshold: float = Field(default=90.0, gt=0, le=100)
    forecast_window_months: int = Field(default=3, ge=1)
    default_currency: str = "USD"

    @model_validator(mode="after")
    def check_threshold_order(self) -> "BudgetSettings":
        if self.warning_threshold > self.critical_threshold:
            raise ValueError("warning_threshold must not exceed critical_threshold")
        return self


class Settings(BaseSettings):
    """Main application settings"""
    app_name: str = "Consumption Planner"
    version: str = "0.1.0"
    environment: str = "development"
    debug: bool = False

    logging: LoggingConfig = Field(default_factory=LoggingConfig)
    optimization: OptimizationSettings = Field(default_factory=OptimizationSettings)
    budget: BudgetSettings = Field(default_factory=BudgetSettings)

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        env_prefix="CONSUMPTION_PLANNER_",
        env_nested_delimiter="__",
        case_sensitive=False,
        extra="ignore",
    )

    @classmethod
    def from_yaml(cls, path: Path) -> "Settings":
        """Load settings from YAML file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = yaml.safe_load(f)

        return cls(**data if data else {})

    @classmethod
    def from_json(cls, path: Path) -> "Settings":
        """Load settings from JSON file"""
        if not path.exists():
            logger.warning(f"Configuration file {path} not found, using defaults")
            return cls()

        with open(path, 'r') as f:
            data = json.load(f)

        return cls(**data)

    @classmethod
    def from_file(cls, path: Path) -> "Settings":
        """Load settings from a YAML or JSON file, chosen by suffix"""
        try:
            if path.suffix in (".yaml", ".yml"):
                return cls.from_yaml(path)
            return cls.from_json(path)
        except (ValidationError, yaml.YAMLError, json.JSONDecodeError) as e:
            raise ConfigurationError(f"Invalid configuration in {path}: {e}") from e

    def to_yaml(self, path: Path) -> None:
        """Save settings to YAML file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            yaml.dump(self.model_dump(mode="json", exclude_unset=True), f, default_flow_style=False)

    def to_json(self, path: Path) -> None:
        """Save settings to JSON file"""
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, 'w') as f:
            json.dump(self.model_dump(mode="json", exclude_unset=True), f, indent=2)


# Global settings instance
settings: Optional[Settings] = None


def get_settings() -> Settings:
    """Get global settings instance"""
    global settings
    if settings is None:
        config_paths = [
            Path.home() / ".consumption-planner" / "config.yaml",
            Path.home() / ".consumption-planner" / "config.json",
            Path("./consumption-planner.yaml"),
            Path("./consumption-planner.json"),
        ]

        for path in config_paths:
            if path.exists():
                settings = Settings.from_file(path)
                logger.info(f"Loaded configuration from {path}")
                break
        else:
            settings = Settings()
            logger.debug("Using default configuration")

    return settings


def reload_settings(path: Optional[Path] = None) -> Settings:
    """Reload settings from file"""
    global settings

    if path:
        settings = Settings.from_file(path)
    else:
        settings = None
        settings = get_settings()

    return settings
