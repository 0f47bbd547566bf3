# fleet_compliance/tables.py
"""
Typed access to the backend tables the compliance engine reads and writes.

Tables:
    gps_tracking       GPS points pushed by the driver app (read)
    speed_violations   Recorded speed violations (read)
    driver_devices     Registered driver devices (read)
    driver_alerts      Alerts shown in the driver app (read unread, insert)

Rows are validated into pydantic records first, so a renamed or retyped
backend column fails here with the offending row number rather than as a
KeyError deep inside the engine. Invalid rows are logged and skipped; the
rest of the page is kept.
"""

import logging
from collections.abc import Iterable, Iterator
from datetime import UTC, datetime
from typing import Any, Final, TypeVar

import pandas as pd
from pydantic import BaseModel, ValidationError

from fleet_compliance.client import BackendClient
from fleet_compliance.models import (
    ComplianceAlert,
    DriverAlertRecord,
    DriverDeviceRecord,
    GPSPointRecord,
    SpeedViolationRecord,
)
from fleet_compliance.schema import (
    VIOLATION_COLUMNS,
    empty_gps_frame,
    enforce_gps_schema,
    enforce_violation_schema,
)

__all__: list[str] = [
    'DEVICE_COLUMNS',
    'TABLE_DRIVER_ALERTS',
    'TABLE_DRIVER_DEVICES',
    'TABLE_GPS_TRACKING',
    'TABLE_SPEED_VIOLATIONS',
    'TrackingRepository',
]

logger: logging.Logger = logging.getLogger(__name__)

TABLE_GPS_TRACKING: Final[str] = 'gps_tracking'
TABLE_SPEED_VIOLATIONS: Final[str] = 'speed_violations'
TABLE_DRIVER_DEVICES: Final[str] = 'driver_devices'
TABLE_DRIVER_ALERTS: Final[str] = 'driver_alerts'

DEVICE_COLUMNS: Final[list[str]] = [
    'driver_id',
    'device_id',
    'device_name',
    'is_active',
    'last_seen',
]


def _eq(value: object) -> str:
    return f'eq.{value}'


def _gte(moment: datetime) -> str:
    return f'gte.{moment.astimezone(UTC).isoformat()}'


RecordT = TypeVar('RecordT', bound=BaseModel)


def _validate_rows(
    rows: Iterable[dict[str, Any]],
    record_type: type[RecordT],
    table: str,
) -> Iterator[RecordT]:
    """Validate rows into records, logging and skipping invalid ones."""
    invalid_count: int = 0
    for row_number, row in enumerate(rows):
        try:
            yield record_type.model_validate(row)
        except ValidationError as error:
            invalid_count += 1
            logger.warning(
                'Skipping invalid %r row %d: %s',
                table,
                row_number,
                error.errors(include_url=False),
            )
    if invalid_count:
        logger.warning('Skipped %d invalid rows from %r', invalid_count, table)


class TrackingRepository:
    """
    Reads driver data from, and writes alerts to, the backend tables.

    Example:
        >>> with BackendClient(config.backend) as client:
        ...     repository = TrackingRepository(client)
        ...     positions = repository.fetch_positions('42', since)
    """

    def __init__(self, client: BackendClient) -> None:
        self._client: BackendClient = client

    @property
    def client(self) -> BackendClient:
        """The underlying backend client."""
        return self._client

    def fetch_positions(self, driver_id: str, since: datetime) -> pd.DataFrame:
        """
        GPS points of one driver from `since` onwards, oldest first.

        Args:
            driver_id: Driver to fetch.
            since: Inclusive lower bound (timezone-aware).

        Returns:
            Schema-enforced GPS frame, possibly empty.
        """
        rows = self._client.select(
            TABLE_GPS_TRACKING,
            filters={'driver_id': _eq(driver_id), 'timestamp': _gte(since)},
            order='timestamp.asc',
        )
        records: list[GPSPointRecord] = list(
            _validate_rows(rows, GPSPointRecord, TABLE_GPS_TRACKING)
        )
        logger.debug('Fetched %d GPS points for driver %s', len(records), driver_id)

        if not records:
            return empty_gps_frame()
        return enforce_gps_schema(
            pd.DataFrame([record.model_dump(mode='json') for record in records])
        )

    def fetch_speed_violations(self, driver_id: str, since: datetime) -> pd.DataFrame:
        """
        Recorded speed violations of one driver from `since` onwards.

        Returns:
            Schema-enforced violation frame, possibly empty.
        """
        rows = self._client.select(
            TABLE_SPEED_VIOLATIONS,
            filters={'driver_id': _eq(driver_id), 'timestamp': _gte(since)},
            order='timestamp.asc',
        )
        records: list[SpeedViolationRecord] = list(
            _validate_rows(rows, SpeedViolationRecord, TABLE_SPEED_VIOLATIONS)
        )

        if not records:
            return enforce_violation_schema(pd.DataFrame(columns=VIOLATION_COLUMNS))
        return enforce_violation_schema(
            pd.DataFrame([record.model_dump(mode='json') for record in records])
        )

    def fetch_active_devices(self) -> pd.DataFrame:
        """
        Devices currently marked active.

        Returns:
            DataFrame with DEVICE_COLUMNS, one row per device.
        """
        rows = self._client.select(
            TABLE_DRIVER_DEVICES,
            filters={'is_active': _eq('true')},
            order='driver_id.asc',
        )
        records: list[DriverDeviceRecord] = list(
            _validate_rows(rows, DriverDeviceRecord, TABLE_DRIVER_DEVICES)
        )
        logger.info('Fetched %d active devices', len(records))

        return pd.DataFrame(
            [record.model_dump(include=set(DEVICE_COLUMNS)) for record in records],
            columns=DEVICE_COLUMNS,
        )

    def fetch_unread_alerts(self, driver_id: str) -> list[DriverAlertRecord]:
        """Alerts the driver has not read yet."""
        rows = self._client.select(
            TABLE_DRIVER_ALERTS,
            filters={'driver_id': _eq(driver_id), 'is_read': _eq('false')},
            order='created_at.desc',
        )
        return list(_validate_rows(rows, DriverAlertRecord, TABLE_DRIVER_ALERTS))

    def publish_alerts(
        self,
        alerts: list[ComplianceAlert],
        skip_unread_duplicates: bool = True,
    ) -> list[ComplianceAlert]:
        """
        Insert alerts into `driver_alerts`.

        Args:
            alerts: Alerts to publish, any number of drivers.
            skip_unread_duplicates: Skip an alert when the driver already has
                an unread one with the same type and title.

        Returns:
            The alerts that were actually inserted.
        """
        if not alerts:
            return []

        to_publish: list[ComplianceAlert] = alerts
        if skip_unread_duplicates:
            existing: set[tuple[str, str, str]] = set()
            for driver_id in sorted({alert.driver_id for alert in alerts}):
                existing.update(
                    (record.driver_id, record.alert_type, record.title)
                    for record in self.fetch_unread_alerts(driver_id)
                )
            to_publish = [alert for alert in alerts if alert.dedup_key not in existing]

            skipped: int = len(alerts) - len(to_publish)
            if skipped:
                logger.info('Skipping %d alerts already unread by their drivers', skipped)

        self._client.insert(
            TABLE_DRIVER_ALERTS, [alert.to_record() for alert in to_publish]
        )
        return to_publish
