"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import Optional

import pendulum
import yaml
from pydantic import BaseModel, Field, field_validator

from .domain.models import DEFAULT_SERVICE_DURATION_MINUTES, AppointmentStatus


class DefaultsConfig(BaseModel):
    """Default settings for slot search."""
    duration_minutes: int = DEFAULT_SERVICE_DURATION_MINUTES
    step_minutes: Optional[int] = None  # None: back-to-back slots
    max_slots: Optional[int] = None

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure service duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("step_minutes", "max_slots")
    @classmethod
    def validate_optional_positive(cls, value: Optional[int]) -> Optional[int]:
        """Ensure optional limits are positive when given."""
        if value is not None and value <= 0:
            raise ValueError(f"value must be greater than zero, got {value}")
        return value


class BookingConfig(BaseModel):
    """Settings for committing bookings."""
    default_status: AppointmentStatus = AppointmentStatus.PENDING

    @field_validator("default_status")
    @classmethod
    def validate_status(cls, value: AppointmentStatus) -> AppointmentStatus:
        """Only live statuses can be used for new bookings."""
        if not value.blocks_availability:
            raise ValueError(f"default_status must be pending or confirmed, got {value.value}")
        return value


class DataConfig(BaseModel):
    """Locations of the schedule and appointment data."""
    schedules_file: Path = Path("schedules.yaml")
    appointments_file: Path = Path("appointments.json")

    def resolved(self, base_dir: Path) -> "DataConfig":
        """Resolve relative paths against the config file's directory."""
        return DataConfig(
            schedules_file=self._resolve(self.schedules_file, base_dir),
            appointments_file=self._resolve(self.appointments_file, base_dir),
        )

    @staticmethod
    def _resolve(path: Path, base_dir: Path) -> Path:
        return path if path.is_absolute() else base_dir / path


class AppConfig(BaseModel):
    """Application configuration."""
    timezone: str = "Europe/Moscow"
    log_level: str = "WARNING"
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    booking: BookingConfig = Field(default_factory=BookingConfig)
    data: DataConfig = Field(default_factory=DataConfig)

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        """Ensure the timezone name is known."""
        try:
            pendulum.timezone(value)
        except Exception as exc:
            raise ValueError(f"Unknown timezone: {value}") from exc
        return value

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, value: str) -> str:
        """Ensure the log level is a standard logging level name."""
        level = value.upper()
        if level not in ("DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"):
            raise ValueError(f"Unknown log level: {value}")
        return level

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Relative data paths are resolved against the config file's directory.

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
        config.data = config.data.resolved(config_path.parent)
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
