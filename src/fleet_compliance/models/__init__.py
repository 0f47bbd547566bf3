# fleet_compliance/models/__init__.py

from fleet_compliance.models.alerts import (
    AlertSeverity,
    AlertType,
    ComplianceAlert,
    worst_severity,
)
from fleet_compliance.models.records import (
    DriverAlertRecord,
    DriverDeviceRecord,
    GPSPointRecord,
    SpeedViolationRecord,
)
from fleet_compliance.models.requests import HTTPMethod, RateLimitInfo, RequestSpec

__all__: list[str] = [
    'AlertSeverity',
    'AlertType',
    'ComplianceAlert',
    'DriverAlertRecord',
    'DriverDeviceRecord',
    'GPSPointRecord',
    'HTTPMethod',
    'RateLimitInfo',
    'RequestSpec',
    'SpeedViolationRecord',
    'worst_severity',
]
