"""
Configuration management using Pydantic models loaded from YAML.
"""

import logging
from pathlib import Path
from typing import List, Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator


class EngineConfig(BaseModel):
    """Tunables of the availability engine."""
    slot_step_minutes: int = 30
    max_alternatives: int = 5
    alternative_offsets_minutes: List[int] = Field(default_factory=lambda: [-30, 30, -60, 60])
    max_service_duration_minutes: int = 480
    min_advance_minutes: int = 30
    max_advance_days: int = 90

    @field_validator("slot_step_minutes")
    @classmethod
    def validate_step(cls, value: int) -> int:
        """Ensure the slot grid step is positive."""
        if value <= 0:
            raise ValueError("slot_step_minutes must be greater than zero")
        return value

    @field_validator("max_alternatives")
    @classmethod
    def validate_max_alternatives(cls, value: int) -> int:
        if not 1 <= value <= 20:
            raise ValueError(f"max_alternatives must be between 1 and 20, got {value}")
        return value

    @field_validator("alternative_offsets_minutes")
    @classmethod
    def validate_offsets(cls, value: List[int]) -> List[int]:
        """Offsets must be non-zero; duplicates are dropped, order preserved."""
        if any(offset == 0 for offset in value):
            raise ValueError("alternative_offsets_minutes must not contain 0")
        seen: set[int] = set()
        deduped: List[int] = []
        for offset in value:
            if offset not in seen:
                deduped.append(offset)
                seen.add(offset)
        return deduped

    @field_validator("max_service_duration_minutes")
    @classmethod
    def validate_max_duration(cls, value: int) -> int:
        if not 1 <= value <= 24 * 60:
            raise ValueError(f"max_service_duration_minutes must be between 1 and 1440, got {value}")
        return value

    @field_validator("min_advance_minutes")
    @classmethod
    def validate_min_advance(cls, value: int) -> int:
        if value < 0:
            raise ValueError("min_advance_minutes must not be negative")
        return value

    @field_validator("max_advance_days")
    @classmethod
    def validate_max_advance(cls, value: int) -> int:
        if value < 1:
            raise ValueError("max_advance_days must be at least 1")
        return value


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Asia/Taipei"
    log_level: str = "INFO"
    data_file: Optional[Path] = None
    engine: EngineConfig = Field(default_factory=EngineConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Reject timezone names pendulum does not know."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value!r}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        level = value.upper()
        if not isinstance(logging.getLevelName(level), int):
            raise ValueError(f"Unknown log level: {value!r}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        A relative ``data_file`` is resolved against the config file's folder.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        config = cls(**data)
        if config.data_file is not None and not config.data_file.is_absolute():
            config.data_file = config_path.parent / config.data_file
        return config


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
