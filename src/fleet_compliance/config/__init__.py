"""
Configuration Package for the Fleet Compliance Engine.

Exposes the configuration models and the loader function.
"""

from fleet_compliance.config.config_models import (
    BackendConfig,
    ComplianceAppConfig,
    ComplianceSettings,
    CompressionType,
    FleetTypeName,
    LoggingConfig,
    PipelineConfig,
    SpeedPolicy,
    StorageConfig,
)
from fleet_compliance.config.loader import load_config

__all__: list[str] = [
    'BackendConfig',
    'ComplianceAppConfig',
    'ComplianceSettings',
    'CompressionType',
    'FleetTypeName',
    'LoggingConfig',
    'PipelineConfig',
    'SpeedPolicy',
    'StorageConfig',
    'load_config',
]
