# fleet_compliance/pipeline.py
"""
Batch compliance evaluation over the whole fleet.

Usage:
------
    from fleet_compliance.pipeline import CompliancePipeline

    # One-liner for cron jobs
    CompliancePipeline('config/compliance_config.yaml').run()

    # Or with access to the results
    pipeline = CompliancePipeline('config/compliance_config.yaml')
    report = pipeline.run()
    print(report[['driver_id', 'status', 'remaining_driving_time']])

Design Decisions:
-----------------
- Driver independence: each driver is fetched and evaluated on its own. A
  failure (backend error, bad data) is logged and the run continues; the
  run only fails when every driver fails.

- Report storage: one row per driver and local report date, merged into the
  Parquet report keyed on (driver_id, report_date). Re-running the same day
  replaces that day's rows with fresher figures.

- Alert publishing is opt-in (`pipeline.publish_alerts`). Alerts the driver
  already has unread are not inserted again.
"""

import logging
from datetime import UTC, datetime, timedelta
from pathlib import Path
from types import TracebackType
from typing import Any, Final, Self

import pandas as pd

from fleet_compliance.client import BackendClient
from fleet_compliance.common import ParquetFileHandler, setup_logger
from fleet_compliance.config import ComplianceAppConfig, load_config
from fleet_compliance.engine import (
    DriverEvaluation,
    FleetSummary,
    evaluate_driver,
    fleet_summary,
)
from fleet_compliance.engine.periods import resolve_now
from fleet_compliance.models import ComplianceAlert
from fleet_compliance.rules import FleetRules, get_fleet_rules
from fleet_compliance.schema import empty_gps_frame
from fleet_compliance.tables import TrackingRepository

__all__: list[str] = ['REPORT_KEY_COLUMNS', 'CompliancePipeline', 'PipelineError']

logger: logging.Logger = logging.getLogger(__name__)

REPORT_KEY_COLUMNS: Final[list[str]] = ['driver_id', 'report_date']


class PipelineError(Exception):
    """
    Raised when a compliance run fails as a whole.

    Attributes:
        failed_drivers: Drivers whose evaluation failed.
    """

    def __init__(self, message: str, failed_drivers: list[str] | None = None) -> None:
        super().__init__(message)
        self.failed_drivers: list[str] = failed_drivers or []


class CompliancePipeline:
    """
    Evaluates every driver's compliance and stores the report.

    Attributes:
        config: The loaded configuration (read-only).
        rules: Effective rule set for the configured fleet type (read-only).
        evaluations: Per-driver results of the last run.
        alerts: All alerts produced by the last run.
        summary: Fleet dashboard counters of the last run, or None.

    Example:
        >>> with CompliancePipeline('config/compliance_config.yaml') as pipeline:
        ...     report = pipeline.run()
    """

    def __init__(self, config_path: Path | str) -> None:
        """
        Initialize the pipeline from a configuration file.

        Args:
            config_path: Path to the YAML configuration file.

        Raises:
            FileNotFoundError: If the config file does not exist.
            ValueError: If the config file fails validation.
            UnknownFleetTypeError: If the fleet type has no rule set.
        """
        config_path = Path(config_path)
        self._config: ComplianceAppConfig = load_config(config_path)

        setup_logger(config=self._config.logging)

        logger.info('Initializing CompliancePipeline from config: %s', config_path)

        self._rules: FleetRules = get_fleet_rules(
            self._config.compliance.fleet_type,
            self._config.compliance.rule_overrides,
        )
        self._file_handler: ParquetFileHandler = ParquetFileHandler(
            self._config.storage
        )
        self._client: BackendClient = BackendClient(
            self._config.backend,
            request_delay_seconds=self._config.pipeline.request_delay_seconds,
        )
        self._repository: TrackingRepository = TrackingRepository(self._client)

        self._evaluations: dict[str, DriverEvaluation] = {}
        self._summary: FleetSummary | None = None

        logger.info(
            'Pipeline initialized: fleet_type=%s, lookback=%d days, storage=%s',
            self._rules.fleet_type.value,
            self._config.pipeline.lookback_days,
            self._file_handler.path,
        )

    @property
    def config(self) -> ComplianceAppConfig:
        return self._config

    @property
    def rules(self) -> FleetRules:
        return self._rules

    @property
    def evaluations(self) -> dict[str, DriverEvaluation]:
        return self._evaluations

    @property
    def alerts(self) -> list[ComplianceAlert]:
        return [
            alert
            for evaluation in self._evaluations.values()
            for alert in evaluation.alerts
        ]

    @property
    def summary(self) -> FleetSummary | None:
        return self._summary

    def close(self) -> None:
        """Close the backend client."""
        self._client.close()

    def __enter__(self) -> Self:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    def run(
        self,
        driver_ids: list[str] | None = None,
        now: datetime | None = None,
    ) -> pd.DataFrame:
        """
        Evaluate drivers and persist the report.

        Args:
            driver_ids: Drivers to evaluate. None falls back to the configured
                list, then to every driver with an active device.
            now: Evaluation time (timezone-aware). Defaults to the current time.

        Returns:
            Report rows of this run, one per successfully evaluated driver.

        Raises:
            PipelineError: If every driver failed.
            APIError: If the device list or alert publishing fails.
            OSError: If the report cannot be written.
        """
        run_start_time: datetime = datetime.now(UTC)
        now_ts: pd.Timestamp = resolve_now(now)
        since: datetime = (
            now_ts - pd.Timedelta(days=self._config.pipeline.lookback_days)
        ).to_pydatetime()

        devices: pd.DataFrame = self._repository.fetch_active_devices()
        targets: list[str] = self._resolve_driver_ids(driver_ids, devices)

        self._evaluations = {}
        self._summary = None

        if not targets:
            logger.warning('No drivers to evaluate. Pipeline complete.')
            return pd.DataFrame()

        logger.info(
            'Starting compliance run for %d drivers at %s (history since %s)',
            len(targets),
            now_ts.isoformat(),
            since.isoformat(),
        )

        positions_by_driver: dict[str, pd.DataFrame] = {}
        failed: list[str] = []

        for index, driver_id in enumerate(targets, start=1):
            logger.debug('Evaluating driver %d/%d: %s', index, len(targets), driver_id)
            try:
                positions: pd.DataFrame = self._repository.fetch_positions(
                    driver_id, since
                )
                violations: pd.DataFrame = self._repository.fetch_speed_violations(
                    driver_id, since
                )
                self._evaluations[driver_id] = evaluate_driver(
                    driver_id,
                    positions,
                    violations,
                    rules=self._rules,
                    settings=self._config.compliance,
                    policy=self._config.speed,
                    now=now_ts,
                    speed_limit_kmh=self._config.pipeline.speed_limit_kmh,
                )
                positions_by_driver[driver_id] = positions
            except Exception:
                logger.exception('Evaluation failed for driver %s', driver_id)
                failed.append(driver_id)

        if len(failed) == len(targets):
            raise PipelineError(
                f'All {len(targets)} driver evaluations failed. No report written.',
                failed_drivers=failed,
            )

        report: pd.DataFrame = pd.DataFrame(
            [evaluation.to_report_row() for evaluation in self._evaluations.values()]
        )
        self._file_handler.append(report, REPORT_KEY_COLUMNS)

        non_empty: list[pd.DataFrame] = [
            frame for frame in positions_by_driver.values() if not frame.empty
        ]
        fleet_positions: pd.DataFrame = (
            pd.concat(non_empty, ignore_index=True) if non_empty else empty_gps_frame()
        )
        self._summary = fleet_summary(
            fleet_positions,
            devices,
            now_ts,
            self._config.compliance,
            self._config.speed,
        )

        published: int = 0
        if self._config.pipeline.publish_alerts:
            published = len(self._repository.publish_alerts(self.alerts))

        self._log_run_summary(run_start_time, len(targets), failed, published)
        return report

    def _resolve_driver_ids(
        self,
        driver_ids: list[str] | None,
        devices: pd.DataFrame,
    ) -> list[str]:
        if driver_ids:
            return list(dict.fromkeys(driver_ids))
        if self._config.pipeline.driver_ids:
            return list(dict.fromkeys(self._config.pipeline.driver_ids))
        if devices.empty:
            return []
        return sorted({str(driver_id) for driver_id in devices['driver_id']})

    def _log_run_summary(
        self,
        run_start_time: datetime,
        driver_count: int,
        failed: list[str],
        published: int,
    ) -> None:
        run_duration: timedelta = datetime.now(UTC) - run_start_time
        status_counts: dict[str, Any] = (
            pd.Series([evaluation.status.value for evaluation in self._evaluations.values()])
            .value_counts()
            .to_dict()
        )

        logger.info(
            'Compliance run complete: %d/%d drivers evaluated, %d failed, '
            '%d alerts (%d published). Status: %s. Duration: %s',
            len(self._evaluations),
            driver_count,
            len(failed),
            len(self.alerts),
            published,
            status_counts,
            run_duration,
        )
        if failed:
            logger.warning('Failed drivers: %s', ', '.join(failed))
