# fleet_compliance/config/config_models.py
"""
Configuration management for the Fleet Compliance Engine.

This module provides Pydantic models for the master configuration file that
controls how driver GPS history is pulled from the hosted backend, which
regulatory rule set applies, and where compliance reports are written.

Design Decisions:
-----------------
- All models use `extra='forbid'` to catch typos and invalid fields in YAML
  configuration files early, preventing silent misconfiguration.

- No logging occurs within this module because the logging configuration itself
  is defined here. Logging must be configured by the caller after loading config.

- The backend API key is a SecretStr so that it never shows up in logs, repr()
  or validation errors. The raw value is read via `.get_secret_value()`.

- Rule limits are not configured field by field. The fleet type selects a
  built-in rule set and `rule_overrides` replaces individual limits on top of it.

Usage:
------
    import yaml
    from fleet_compliance.config.config_models import ComplianceAppConfig

    with open('config.yaml', 'r') as config_file:
        raw_config = yaml.safe_load(config_file)

    config = ComplianceAppConfig.model_validate(raw_config)
"""

from pathlib import Path
from typing import Literal, Self
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    SecretStr,
    field_validator,
    model_validator,
)

# =============================================================================
# Public API
# =============================================================================

__all__: list[str] = [
    'BackendConfig',
    'ComplianceAppConfig',
    'ComplianceSettings',
    'CompressionType',
    'FleetTypeName',
    'LogLevelName',
    'LoggingConfig',
    'PipelineConfig',
    'SpeedPolicy',
    'StorageConfig',
]

# =============================================================================
# Type Aliases
# =============================================================================

# Valid logging level names recognized by Python's logging module.
LogLevelName = Literal['DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL']

# Numeric equivalents of log level names for validation purposes.
LOG_LEVEL_VALUES: frozenset[int] = frozenset({10, 20, 30, 40, 50})

# Mapping from level name to numeric value, avoiding import of logging module
# in the model layer.
LOG_LEVEL_NAME_TO_INT: dict[LogLevelName, int] = {
    'DEBUG': 10,
    'INFO': 20,
    'WARNING': 30,
    'ERROR': 40,
    'CRITICAL': 50,
}

# Valid compression algorithms supported by pandas.to_parquet() and pyarrow.
CompressionType = Literal['snappy', 'gzip', 'brotli', 'lz4', 'zstd'] | None

# Fleet types with a built-in rule set.
FleetTypeName = Literal['trucks', 'taxis', 'vans']

# Limits that may be overridden from configuration.
OVERRIDABLE_RULE_FIELDS: frozenset[str] = frozenset(
    {
        'daily_driving_limit',
        'weekly_driving_limit',
        'biweekly_driving_limit',
        'break_required_after',
        'minimum_break_duration',
        'daily_rest_required',
        'weekly_rest_required',
    }
)


# =============================================================================
# Backend Configuration
# =============================================================================


class BackendConfig(BaseModel):
    """Connection settings for the hosted backend's REST table API.

    The backend exposes each table (`gps_tracking`, `speed_violations`,
    `driver_devices`, `driver_alerts`) under `{base_url}{rest_path}/{table}`
    and authenticates with a project API key sent both as the `apikey` header
    and as a bearer token.

    Attributes:
        base_url: Project URL with scheme, without trailing slash.
        rest_path: Path prefix of the table API.
        api_key: Project API key (service role for batch jobs).
        request_timeout: [connect, read] timeout in seconds.
        verify_ssl: False disables verification, True uses the system CA
            bundle, a string is a path to a custom CA bundle.
        use_truststore: Build the SSLContext from the OS trust store.
        page_size: Rows requested per page when selecting.
    """

    model_config = ConfigDict(extra='forbid')

    base_url: str = Field(
        description='Project URL with scheme, without trailing slash',
    )
    rest_path: str = Field(
        default='/rest/v1',
        description='Path prefix of the table API',
    )
    api_key: SecretStr = Field(
        description='Project API key (masked in logs and repr)',
    )
    request_timeout: tuple[int, int] = Field(
        default=(10, 30),
        description='[connect_timeout, read_timeout] in seconds',
    )
    verify_ssl: bool | str = Field(
        default=True,
        description='False to disable SSL, True for system CA, or path to CA bundle',
    )
    use_truststore: bool = Field(
        default=False,
        description='Use truststore library for OS system CA certificates',
    )
    page_size: int = Field(
        default=1000,
        ge=1,
        le=10000,
        description='Rows per page when selecting from a table',
    )

    @field_validator('base_url')
    @classmethod
    def validate_base_url(cls, base_url: str) -> str:
        """Require an http(s) scheme and strip any trailing slash.

        Raises:
            ValueError: If URL is empty or missing http/https scheme.
        """
        if not base_url:
            raise ValueError('base_url cannot be empty')

        if not base_url.startswith(('http://', 'https://')):
            raise ValueError(
                f"base_url must start with 'http://' or 'https://', got: {base_url!r}"
            )

        return base_url.rstrip('/')

    @field_validator('rest_path')
    @classmethod
    def normalize_rest_path(cls, rest_path: str) -> str:
        """Ensure exactly one leading slash and no trailing slash."""
        return '/' + rest_path.strip('/')

    @field_validator('api_key')
    @classmethod
    def validate_api_key_not_empty(cls, api_key: SecretStr) -> SecretStr:
        """Ensure API key is not empty or whitespace-only.

        Raises:
            ValueError: If API key is empty or contains only whitespace.
        """
        secret_value: str = api_key.get_secret_value()
        if not secret_value or not secret_value.strip():
            raise ValueError('api_key cannot be empty or whitespace-only')
        return api_key

    @field_validator('request_timeout')
    @classmethod
    def validate_timeout_values_positive(
        cls, timeout: tuple[int, int]
    ) -> tuple[int, int]:
        """Ensure both timeout values are positive integers.

        Raises:
            ValueError: If either timeout value is non-positive.
        """
        connect_timeout, read_timeout = timeout

        if connect_timeout <= 0:
            raise ValueError(
                f'connect_timeout must be positive, got: {connect_timeout}'
            )
        if read_timeout <= 0:
            raise ValueError(f'read_timeout must be positive, got: {read_timeout}')

        return timeout

    @field_validator('verify_ssl')
    @classmethod
    def validate_ssl_configuration(cls, verify_ssl: bool | str) -> bool | str:
        """Check that a custom CA bundle path points to an existing file.

        Raises:
            ValueError: If string path does not exist or is not a file.
        """
        if isinstance(verify_ssl, str):
            cert_path = Path(verify_ssl)

            if not cert_path.exists():
                raise ValueError(f'SSL certificate bundle file not found: {verify_ssl}')
            if not cert_path.is_file():
                raise ValueError(
                    f'SSL certificate path must be a file, not directory: {verify_ssl}'
                )

        return verify_ssl

    @property
    def rest_url(self) -> str:
        """Base URL of the table API."""
        return f'{self.base_url}{self.rest_path}'


# =============================================================================
# Compliance Settings
# =============================================================================


class ComplianceSettings(BaseModel):
    """Tuning of the driving-time engine.

    Movement Detection:
        An interval between two consecutive GPS points counts as driving when
        the speed reported at the later point exceeds `moving_speed_kmh`.
        Point-to-point jumps of `max_point_jump_km` or more are treated as GPS
        errors and excluded from the distance total.

    Sample Gaps:
        The tracker pushes a fix every few seconds while a shift is running.
        An interval longer than `max_sample_gap_minutes` means tracking was
        off, so it counts as rest whatever the later point reports. None
        attributes every interval to the later point's speed, which is how
        the tracking app computes driving time; the default of 15 minutes
        reports less driving than the app after a tracking outage.

    Attributes:
        fleet_type: Built-in rule set to apply.
        rule_overrides: Individual rule limits replacing the built-in values.
        timezone: IANA timezone that defines calendar days and weeks.
        moving_speed_kmh: Speed above which an interval counts as driving.
        max_point_jump_km: Distances at or above this are dropped as GPS noise.
        max_sample_gap_minutes: Intervals longer than this count as rest.
        on_shift_window_minutes: A driver is on shift when the last point is
            more recent than this.
        active_driver_window_minutes: A driver is active on the fleet view
            when the last point is more recent than this.
        warning_margin_minutes: Remaining driving time at which a limit
            enters the warning level.
        shift_ending_margin_minutes: Remaining daily driving time at which
            the shift is reported as ending.
        break_warning_margin_minutes: Remaining continuous driving time at
            which the break threshold enters the warning level.
    """

    model_config = ConfigDict(extra='forbid')

    fleet_type: FleetTypeName = Field(
        default='trucks',
        description="Rule set to apply: 'trucks', 'taxis' or 'vans'",
    )
    rule_overrides: dict[str, float] = Field(
        default_factory=dict,
        description='Rule limits overriding the built-in fleet values',
    )
    timezone: str = Field(
        default='UTC',
        description='IANA timezone used to split days and weeks',
    )
    moving_speed_kmh: float = Field(
        default=5.0,
        ge=0.0,
        le=50.0,
        description='Speed (km/h) above which an interval counts as driving',
    )
    max_point_jump_km: float = Field(
        default=2.0,
        gt=0.0,
        description='Point-to-point distances at or above this are ignored',
    )
    max_sample_gap_minutes: float | None = Field(
        default=15.0,
        gt=0.0,
        description='Intervals longer than this count as rest. None disables.',
    )
    on_shift_window_minutes: float = Field(
        default=30.0,
        gt=0.0,
        description='Minutes since last point within which a driver is on shift',
    )
    active_driver_window_minutes: float = Field(
        default=60.0,
        gt=0.0,
        description='Minutes since last point within which a driver is active',
    )
    warning_margin_minutes: float = Field(
        default=120.0,
        ge=0.0,
        description='Remaining minutes at which a limit turns to warning',
    )
    shift_ending_margin_minutes: float = Field(
        default=60.0,
        ge=0.0,
        description='Remaining daily minutes at which the shift is ending',
    )
    break_warning_margin_minutes: float = Field(
        default=15.0,
        ge=0.0,
        description='Remaining continuous minutes at which a break is due soon',
    )

    @field_validator('timezone')
    @classmethod
    def validate_timezone(cls, timezone: str) -> str:
        """Ensure the timezone name resolves in the IANA database.

        Raises:
            ValueError: If the timezone is unknown.
        """
        try:
            ZoneInfo(timezone)
        except (ZoneInfoNotFoundError, ValueError) as zone_error:
            raise ValueError(f'Unknown timezone: {timezone!r}') from zone_error
        return timezone

    @field_validator('rule_overrides')
    @classmethod
    def validate_rule_override_names(
        cls, rule_overrides: dict[str, float]
    ) -> dict[str, float]:
        """Reject overrides for fields that are not rule limits.

        Raises:
            ValueError: If an override names an unknown rule field.
        """
        unknown: set[str] = set(rule_overrides) - OVERRIDABLE_RULE_FIELDS
        if unknown:
            raise ValueError(
                f'Unknown rule override(s): {sorted(unknown)}. '
                f'Valid fields: {sorted(OVERRIDABLE_RULE_FIELDS)}'
            )
        return rule_overrides

    @model_validator(mode='after')
    def validate_margins_ordered(self) -> Self:
        """The shift-ending margin must not exceed the general warning margin.

        Raises:
            ValueError: If shift_ending_margin_minutes > warning_margin_minutes.
        """
        if self.shift_ending_margin_minutes > self.warning_margin_minutes:
            raise ValueError(
                'shift_ending_margin_minutes must be <= warning_margin_minutes, '
                f'got {self.shift_ending_margin_minutes} > {self.warning_margin_minutes}'
            )
        return self


# =============================================================================
# Speed Policy
# =============================================================================


class SpeedPolicy(BaseModel):
    """Speed violation severity bands and fleet-level alert triggers.

    Severity Bands:
        excess = recorded - limit
          - excess <= tolerance_kmh: no violation
          - excess <= major_excess_kmh: minor
          - excess <= critical_excess_kmh: major
          - beyond: critical

    Attributes:
        tolerance_kmh: Excess ignored entirely (device/measurement tolerance).
        major_excess_kmh: Upper bound of the minor band.
        critical_excess_kmh: Upper bound of the major band.
        fleet_alert_speed_kmh: Latest speed above which a driver counts as an
            active alert on the fleet dashboard.
        low_battery_percent: Device battery below which a driver counts as
            an active alert on the fleet dashboard.
    """

    model_config = ConfigDict(extra='forbid')

    tolerance_kmh: float = Field(default=0.0, ge=0.0)
    major_excess_kmh: float = Field(default=10.0, gt=0.0)
    critical_excess_kmh: float = Field(default=40.0, gt=0.0)
    fleet_alert_speed_kmh: float = Field(default=108.0, gt=0.0)
    low_battery_percent: float = Field(default=20.0, ge=0.0, le=100.0)

    @model_validator(mode='after')
    def validate_bands_ordered(self) -> Self:
        """Severity bands must be strictly increasing.

        Raises:
            ValueError: If bands overlap or are out of order.
        """
        if not (
            self.tolerance_kmh < self.major_excess_kmh < self.critical_excess_kmh
        ):
            raise ValueError(
                'Speed bands must satisfy tolerance_kmh < major_excess_kmh < '
                f'critical_excess_kmh, got {self.tolerance_kmh}, '
                f'{self.major_excess_kmh}, {self.critical_excess_kmh}'
            )
        return self


# =============================================================================
# Pipeline Configuration
# =============================================================================


class PipelineConfig(BaseModel):
    """Settings for batch compliance runs.

    Attributes:
        lookback_days: Days of GPS history pulled per driver. Must cover the
            bi-weekly window (current plus previous week), hence the minimum.
        publish_alerts: Insert generated alerts into `driver_alerts`.
        request_delay_seconds: Delay between paginated backend requests.
        driver_ids: Fixed list of drivers to evaluate. Empty means every
            driver with an active device.
        speed_limit_kmh: When set, today's GPS speeds are checked against
            this limit in addition to the recorded violations.
    """

    model_config = ConfigDict(extra='forbid')

    lookback_days: int = Field(
        default=14,
        ge=14,
        le=31,
        description='Days of GPS history to evaluate (14-31)',
    )
    publish_alerts: bool = Field(
        default=False,
        description='Insert generated alerts into the driver_alerts table',
    )
    request_delay_seconds: float = Field(
        default=0.0,
        ge=0.0,
        le=30.0,
        description='Delay between paginated requests in seconds (0-30)',
    )
    driver_ids: list[str] = Field(
        default_factory=list,
        description='Drivers to evaluate; empty evaluates all active devices',
    )
    speed_limit_kmh: float | None = Field(
        default=None,
        gt=0.0,
        description='Limit to check GPS speeds against; None uses recorded violations only',
    )


# =============================================================================
# Storage Configuration
# =============================================================================


class StorageConfig(BaseModel):
    """Where compliance reports are persisted.

    Attributes:
        parquet_path: Report file path. Extension .parquet is appended
            automatically if missing.
        parquet_compression: Compression codec for the Parquet writer.
    """

    model_config = ConfigDict(extra='forbid')

    parquet_path: Path = Field(
        description='Report Parquet file path (.parquet extension auto-added)',
    )
    parquet_compression: CompressionType = Field(
        default='snappy',
        description="Compression codec: 'snappy', 'gzip', 'brotli', 'lz4', 'zstd', or None",
    )

    @field_validator('parquet_path', mode='before')
    @classmethod
    def normalize_parquet_path(cls, path_value: str | Path) -> Path:
        """Convert to Path and ensure a .parquet extension."""
        path_string: str = str(path_value)

        if not path_string.lower().endswith('.parquet'):
            path_string = f'{path_string}.parquet'

        return Path(path_string)


# =============================================================================
# Logging Configuration
# =============================================================================


class LoggingConfig(BaseModel):
    """Configuration for application logging output.

    Console output is always enabled. File output is enabled by providing a
    file_path; file_level then defaults to DEBUG.

    Attributes:
        file_path: Path to log file. None disables file logging.
            Extension .log is appended automatically if missing.
        console_level: Minimum log level for console output.
        file_level: Minimum log level for file output.
    """

    model_config = ConfigDict(extra='forbid')

    file_path: Path | None = Field(
        default=None,
        description='Log file path (.log extension auto-added). None disables file logging.',
    )
    console_level: LogLevelName | int = Field(
        default='INFO',
        description="Console log level: 'DEBUG', 'INFO', 'WARNING', 'ERROR', 'CRITICAL', or int",
    )
    file_level: LogLevelName | int | None = Field(
        default=None,
        description='File log level. None disables file logging.',
    )

    @field_validator('file_path', mode='before')
    @classmethod
    def normalize_log_file_path(cls, path_value: str | Path | None) -> Path | None:
        """Normalize path and ensure .log extension."""
        if path_value is None:
            return None

        path_string: str = str(path_value)

        if not path_string.lower().endswith('.log'):
            path_string = f'{path_string}.log'

        return Path(path_string)

    @field_validator('console_level', 'file_level', mode='after')
    @classmethod
    def validate_numeric_log_level(
        cls, level_value: LogLevelName | int | None
    ) -> LogLevelName | int | None:
        """Validate numeric log levels are standard Python logging values.

        Raises:
            ValueError: If numeric level is not a standard logging value.
        """
        if level_value is None or isinstance(level_value, str):
            return level_value

        if level_value not in LOG_LEVEL_VALUES:
            raise ValueError(
                f'Numeric log level must be one of {sorted(LOG_LEVEL_VALUES)}, '
                f'got: {level_value}'
            )

        return level_value

    @model_validator(mode='after')
    def ensure_file_logging_configuration_consistency(self) -> Self:
        """Default file_level to DEBUG, and require a path when a level is set.

        Raises:
            ValueError: If file_level is set but file_path is missing.
        """
        has_file_path: bool = self.file_path is not None
        has_file_level: bool = self.file_level is not None

        if has_file_path and not has_file_level:
            # Cannot log here, logging isn't configured yet
            self.file_level = 'DEBUG'

        if has_file_level and not has_file_path:
            raise ValueError(
                'file_level is specified but file_path is missing. '
                'Provide file_path to enable file logging, or remove file_level.'
            )

        return self

    def get_console_level_int(self) -> int:
        """Convert console_level to numeric value for logging module."""
        if isinstance(self.console_level, int):
            return self.console_level
        return LOG_LEVEL_NAME_TO_INT[self.console_level]

    def get_file_level_int(self) -> int | None:
        """Convert file_level to numeric value, None if file logging is off."""
        if self.file_level is None:
            return None
        if isinstance(self.file_level, int):
            return self.file_level
        return LOG_LEVEL_NAME_TO_INT[self.file_level]


# =============================================================================
# Root Configuration
# =============================================================================


class ComplianceAppConfig(BaseModel):
    """Root configuration model for the Fleet Compliance Engine.

    Only `backend` and `storage` are required; every engine setting has a
    default matching the regulatory defaults for trucks.

    Attributes:
        backend: Hosted backend connection settings.
        compliance: Driving-time engine settings and rule selection.
        speed: Speed violation bands and fleet alert triggers.
        pipeline: Batch run settings.
        storage: Report storage.
        logging: Console and file logging.
    """

    model_config = ConfigDict(extra='forbid')

    backend: BackendConfig = Field(
        description='Hosted backend connection settings',
    )
    compliance: ComplianceSettings = Field(
        default_factory=ComplianceSettings,
        description='Driving-time engine settings',
    )
    speed: SpeedPolicy = Field(
        default_factory=SpeedPolicy,
        description='Speed violation policy',
    )
    pipeline: PipelineConfig = Field(
        default_factory=PipelineConfig,
        description='Batch run settings',
    )
    storage: StorageConfig = Field(
        description='Report Parquet storage configuration',
    )
    logging: LoggingConfig = Field(
        default_factory=LoggingConfig,
        description='Application logging configuration',
    )
