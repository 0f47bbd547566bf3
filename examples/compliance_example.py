#!/usr/bin/env python3
"""
Example usage of the compliance engine.

Part 1 evaluates a synthetic GPS track without any backend, which is handy
for trying out rule sets. Part 2 runs the batch pipeline against the backend
configured in config/compliance_config.yaml.
"""

import logging
from datetime import UTC, datetime, timedelta

import pandas as pd

from fleet_compliance import (
    CompliancePipeline,
    evaluate_driver,
    format_driving_time,
    get_fleet_rules,
)
from fleet_compliance.config import ComplianceSettings
from fleet_compliance.schema import enforce_gps_schema

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
)

logger = logging.getLogger(__name__)


def synthetic_track(start: datetime, minutes: int) -> pd.DataFrame:
    """One fix per minute at 72 km/h heading north."""
    return enforce_gps_schema(
        pd.DataFrame(
            {
                'driver_id': 'demo_driver',
                'timestamp': [start + timedelta(minutes=step) for step in range(minutes + 1)],
                'latitude': [45.0 + step * 0.001 for step in range(minutes + 1)],
                'longitude': 9.0,
                'speed': 20.0,
                'battery_level': 80.0,
            }
        )
    )


def example_offline_evaluation() -> None:
    """Example: Evaluate one driver per fleet type from an in-memory track."""
    logger.info('=== Example: Offline Evaluation ===')

    now = datetime.now(UTC)
    positions = synthetic_track(now - timedelta(minutes=300), 295)

    for fleet_type in ('trucks', 'taxis', 'vans'):
        settings = ComplianceSettings(fleet_type=fleet_type)
        evaluation = evaluate_driver(
            'demo_driver',
            positions,
            rules=get_fleet_rules(fleet_type),
            settings=settings,
            now=now,
            speed_limit_kmh=70.0,
        )
        logger.info(
            '%s: status=%s, driven=%s, remaining=%s, alerts=%s',
            fleet_type,
            evaluation.status.value,
            format_driving_time(evaluation.stats.driving_time_today),
            format_driving_time(evaluation.stats.remaining_driving_time),
            [alert.title for alert in evaluation.alerts],
        )


def example_pipeline_run() -> None:
    """Example: Evaluate the whole fleet and store the report."""
    logger.info('=== Example: Pipeline Run ===')

    with CompliancePipeline('config/compliance_config.yaml') as pipeline:
        report = pipeline.run()

        if report.empty:
            logger.info('No drivers evaluated')
            return

        logger.info(
            '\n%s',
            report[['driver_id', 'status', 'driving_time_today', 'alert_count']],
        )
        if pipeline.summary is not None:
            logger.info(
                'Fleet: %d vehicles, %d active drivers, %d alerts',
                pipeline.summary.total_vehicles,
                pipeline.summary.active_drivers,
                pipeline.summary.active_alerts,
            )


def main() -> None:
    """Run the examples."""
    example_offline_evaluation()
    example_pipeline_run()


if __name__ == '__main__':
    main()
