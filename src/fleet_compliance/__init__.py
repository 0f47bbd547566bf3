# fleet_compliance/__init__.py
"""
Fleet Compliance - Driving-time and rest-time compliance engine for fleets.

Turns the raw GPS point stream of a driver tracking app into regulatory
figures: distance and driving time, break and rest requirements, daily,
weekly and two-week driving limits per fleet type (trucks, taxis, vans), and
speed violations.

1. **Engine**: Pure functions over pandas frames
   - compute_driver_stats for the driver dashboard
   - evaluate_thresholds / build_alerts for limit and rest alerts
   - classify_speed_violation / detect_speed_violations
   - fleet_summary for the manager dashboard

2. **Pipeline**: Scheduled evaluation against the hosted backend
   - Reads gps_tracking, speed_violations and driver_devices tables
   - Writes a per-driver daily report to Parquet
   - Optionally publishes alerts to driver_alerts

Quick Start - Engine:
    >>> from fleet_compliance import evaluate_driver, get_fleet_rules
    >>>
    >>> evaluation = evaluate_driver('42', positions, rules=get_fleet_rules('taxis'))
    >>> evaluation.stats.remaining_driving_time
    415

Quick Start - Pipeline:
    >>> from fleet_compliance import CompliancePipeline
    >>>
    >>> CompliancePipeline('config/compliance_config.yaml').run()
"""

__version__ = '0.1.0'

from fleet_compliance.client import (
    APIError,
    BackendClient,
    RateLimitError,
    TransientAPIError,
)
from fleet_compliance.common import ParquetFileHandler, setup_logger
from fleet_compliance.config import load_config
from fleet_compliance.engine import (
    DriverEvaluation,
    DriverStats,
    DrivingStatus,
    FleetSummary,
    ThresholdReport,
    build_alerts,
    classify_speed_violation,
    compute_driver_stats,
    detect_speed_violations,
    evaluate_driver,
    evaluate_thresholds,
    fleet_summary,
    format_driving_time,
)
from fleet_compliance.models import AlertSeverity, AlertType, ComplianceAlert
from fleet_compliance.pipeline import CompliancePipeline, PipelineError
from fleet_compliance.rules import (
    FLEET_RULES,
    FleetRules,
    FleetType,
    UnknownFleetTypeError,
    available_fleet_types,
    get_fleet_rules,
)
from fleet_compliance.tables import TrackingRepository

__all__: list[str] = [
    'FLEET_RULES',
    'APIError',
    'AlertSeverity',
    'AlertType',
    'BackendClient',
    'ComplianceAlert',
    'CompliancePipeline',
    'DriverEvaluation',
    'DriverStats',
    'DrivingStatus',
    'FleetRules',
    'FleetSummary',
    'FleetType',
    'ParquetFileHandler',
    'PipelineError',
    'RateLimitError',
    'ThresholdReport',
    'TrackingRepository',
    'TransientAPIError',
    'UnknownFleetTypeError',
    '__version__',
    'available_fleet_types',
    'build_alerts',
    'classify_speed_violation',
    'compute_driver_stats',
    'detect_speed_violations',
    'evaluate_driver',
    'evaluate_thresholds',
    'fleet_summary',
    'format_driving_time',
    'get_fleet_rules',
    'load_config',
    'setup_logger',
]
