# fleet_compliance/models/alerts.py
"""
Alert models shared by the threshold and speed engines.

A ComplianceAlert is what the driver app shows in its alert list and what the
pipeline inserts into the backend's `driver_alerts` table.
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = [
    'AlertSeverity',
    'AlertType',
    'ComplianceAlert',
    'worst_severity',
]


class AlertType(str, Enum):
    """Kinds of compliance alert."""

    BREAK_REQUIRED = 'break_required'
    DAILY_LIMIT = 'daily_limit'
    WEEKLY_LIMIT = 'weekly_limit'
    BIWEEKLY_LIMIT = 'biweekly_limit'
    DAILY_REST = 'daily_rest'
    WEEKLY_REST = 'weekly_rest'
    SPEED_VIOLATION = 'speed_violation'


class AlertSeverity(str, Enum):
    """Alert severity, ordered from least to most urgent."""

    INFO = 'info'
    WARNING = 'warning'
    CRITICAL = 'critical'

    @property
    def rank(self) -> int:
        """Numeric rank for ordering (info=0, critical=2)."""
        return _SEVERITY_RANK[self]


_SEVERITY_RANK: dict[AlertSeverity, int] = {
    AlertSeverity.INFO: 0,
    AlertSeverity.WARNING: 1,
    AlertSeverity.CRITICAL: 2,
}


class ComplianceAlert(BaseModel):
    """
    A single alert for one driver.

    Attributes:
        driver_id: Driver the alert is addressed to.
        alert_type: What triggered the alert.
        severity: How urgent it is.
        title: Short headline.
        message: Human-readable detail, including the figures involved.
        triggered_at: Evaluation time that produced the alert (UTC).
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    driver_id: str
    alert_type: AlertType
    severity: AlertSeverity
    title: str = Field(min_length=1)
    message: str
    triggered_at: datetime

    @property
    def dedup_key(self) -> tuple[str, str, str]:
        """Identity used to avoid publishing the same alert twice."""
        return (self.driver_id, self.alert_type.value, self.title)

    def to_record(self) -> dict[str, Any]:
        """Row for the `driver_alerts` table."""
        return {
            'driver_id': self.driver_id,
            'alert_type': self.alert_type.value,
            'severity': self.severity.value,
            'title': self.title,
            'message': self.message,
            'is_read': False,
            'created_at': self.triggered_at.isoformat(),
        }


def worst_severity(alerts: list[ComplianceAlert]) -> AlertSeverity | None:
    """Most urgent severity among alerts, None when there are none."""
    if not alerts:
        return None
    return max((alert.severity for alert in alerts), key=lambda severity: severity.rank)
