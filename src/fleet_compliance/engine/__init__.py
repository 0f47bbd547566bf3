# fleet_compliance/engine/__init__.py

from fleet_compliance.engine.driver_stats import (
    DriverStats,
    DrivingStatus,
    compute_driver_stats,
    driving_status,
    format_driving_time,
    needs_break,
)
from fleet_compliance.engine.evaluation import DriverEvaluation, evaluate_driver
from fleet_compliance.engine.fleet import (
    DriverMapStatus,
    FleetSummary,
    active_drivers,
    driver_map_status,
    fleet_summary,
    latest_positions,
)
from fleet_compliance.engine.segments import (
    Segment,
    compute_intervals,
    continuous_driving_minutes,
    driving_minutes,
    segment_positions,
    total_distance_km,
)
from fleet_compliance.engine.speed import (
    SpeedViolation,
    ViolationSeverity,
    classify_speed_violation,
    detect_speed_violations,
    speed_violation_alert,
    violations_to_frame,
)
from fleet_compliance.engine.thresholds import (
    RestCheck,
    ThresholdLevel,
    ThresholdReport,
    ThresholdState,
    build_alerts,
    evaluate_thresholds,
    summarize_daily_driving,
)

__all__: list[str] = [
    'DriverEvaluation',
    'DriverMapStatus',
    'DriverStats',
    'DrivingStatus',
    'FleetSummary',
    'RestCheck',
    'Segment',
    'SpeedViolation',
    'ThresholdLevel',
    'ThresholdReport',
    'ThresholdState',
    'ViolationSeverity',
    'active_drivers',
    'build_alerts',
    'classify_speed_violation',
    'compute_driver_stats',
    'compute_intervals',
    'continuous_driving_minutes',
    'detect_speed_violations',
    'driver_map_status',
    'driving_minutes',
    'driving_status',
    'evaluate_driver',
    'evaluate_thresholds',
    'fleet_summary',
    'format_driving_time',
    'latest_positions',
    'needs_break',
    'segment_positions',
    'speed_violation_alert',
    'summarize_daily_driving',
    'total_distance_km',
    'violations_to_frame',
]
