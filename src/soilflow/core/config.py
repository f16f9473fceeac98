"""
Configuration system with validation and environment awareness.
Based on Pydantic Settings for robust configuration management.
"""
from pathlib import Path
import yaml
from pydantic import Field, model_validator, ConfigDict
from pydantic_settings import BaseSettings
from typing import Optional, Literal, Union

from soilflow.core.constants import DEFAULT_TIMESTEP_SECONDS, WATER_BALANCE_TOLERANCE_M
from soilflow.core.exceptions import ConfigurationError
from soilflow.core.types import InfiltrationMode


class UnsaturatedFlowConfig(BaseSettings):
    """Configuration for vertical drainage through the unsaturated zone"""

    infiltration_mode: InfiltrationMode = Field(
        InfiltrationMode.STATIC,
        description="'dynamic' reclaims surface infiltration when the table ponds"
    )
    timestep_seconds: int = Field(
        DEFAULT_TIMESTEP_SECONDS, gt=0, description="Default model timestep (s)"
    )

    model_config = ConfigDict(env_prefix="SOILFLOW_UNSATURATED_", case_sensitive=False)


class SaturatedFlowConfig(BaseSettings):
    """Configuration for lateral saturated-flow redistribution"""

    # Off reproduces the fill order of previously calibrated runs
    restrict_injection: bool = Field(
        False,
        description="Only inject into layers extending above the water table"
    )

    model_config = ConfigDict(env_prefix="SOILFLOW_SATURATED_", case_sensitive=False)


class ValidationConfig(BaseSettings):
    """Runtime checks on column inputs and outputs"""

    check_preconditions: bool = Field(True, description="Fail fast on invalid column inputs")
    water_balance_tolerance: float = Field(
        WATER_BALANCE_TOLERANCE_M, ge=0, description="Absolute closure tolerance (m)"
    )
    water_balance_relative_tolerance: float = Field(
        1e-6, ge=0, description="Closure tolerance relative to the step inputs"
    )
    raise_on_water_balance_error: bool = Field(
        False, description="Raise instead of warn on closure violations"
    )

    model_config = ConfigDict(env_prefix="SOILFLOW_VALIDATION_", case_sensitive=False)


class MonitoringConfig(BaseSettings):
    """Configuration for logging"""

    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = "INFO"

    model_config = ConfigDict(env_prefix="SOILFLOW_MONITORING_", case_sensitive=False)


class SoilFlowConfig(BaseSettings):
    """Main configuration for the soilflow system"""

    project_name: str = "soilflow"
    environment: Literal["development", "staging", "production"] = "development"

    # Component configurations
    unsaturated: UnsaturatedFlowConfig = Field(default_factory=UnsaturatedFlowConfig)
    saturated: SaturatedFlowConfig = Field(default_factory=SaturatedFlowConfig)
    validation: ValidationConfig = Field(default_factory=ValidationConfig)
    monitoring: MonitoringConfig = Field(default_factory=MonitoringConfig)

    model_config = ConfigDict(
        env_prefix="SOILFLOW_",
        env_nested_delimiter="__",
        case_sensitive=False,
    )

    @model_validator(mode="after")
    def validate_config(self):
        """Cross-field validation"""
        if self.environment == "production" and not self.validation.check_preconditions:
            raise ValueError("Precondition checks cannot be disabled in production")

        return self

    @classmethod
    def from_yaml(cls, yaml_path: Union[str, Path]) -> "SoilFlowConfig":
        """Load configuration from YAML file"""
        yaml_path = Path(yaml_path)
        if not yaml_path.exists():
            raise FileNotFoundError(f"Config file not found: {yaml_path}")

        with open(yaml_path, encoding="utf-8") as f:
            yaml_config = yaml.safe_load(f) or {}

        if not isinstance(yaml_config, dict):
            raise ConfigurationError(f"Config file must hold a mapping: {yaml_path}")

        return cls(**yaml_config)

    def to_yaml(self, yaml_path: Union[str, Path]):
        """Save configuration to YAML file"""
        yaml_path = Path(yaml_path)
        yaml_path.parent.mkdir(parents=True, exist_ok=True)

        with open(yaml_path, "w", encoding="utf-8") as f:
            yaml.dump(self.model_dump(mode="json"), f, default_flow_style=False)


# USAGE: Environment variables override defaults
# export SOILFLOW_UNSATURATED__INFILTRATION_MODE=dynamic
# export SOILFLOW_SATURATED__RESTRICT_INJECTION=true

# Global configuration instance
_config: Optional[SoilFlowConfig] = None


def get_config(config_path: Optional[Path] = None) -> SoilFlowConfig:
    """Get or create configuration instance (singleton pattern)"""
    global _config

    if _config is None:
        if config_path and Path(config_path).exists():
            _config = SoilFlowConfig.from_yaml(config_path)
        else:
            # Try to load from environment
            _config = SoilFlowConfig()

    return _config


def set_config(config: SoilFlowConfig):
    """Set configuration (useful for testing)"""
    global _config
    _config = config


def reset_config():
    """Drop the cached configuration so the next get_config() rebuilds it"""
    global _config
    _config = None
