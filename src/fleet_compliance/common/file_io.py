# fleet_compliance/common/file_io.py
"""
Parquet persistence for compliance reports.

Design Philosophy:
------------------
- load() returns None on errors (a missing or corrupt report is recoverable,
  the next run rebuilds it)
- save() raises on errors (filesystem issues require explicit handling)
- Writes are atomic (temp file + rename) so a crash never leaves a
  half-written report behind

This class is NOT thread-safe. Use one handler per writer.

Usage:
------
    from fleet_compliance.config import StorageConfig
    from fleet_compliance.common.file_io import ParquetFileHandler

    handler = ParquetFileHandler(StorageConfig(parquet_path='data/report.parquet'))
    handler.append(report_frame, key_columns=['driver_id', 'report_date'])
"""

import logging
import tempfile
from contextlib import suppress
from pathlib import Path
from typing import cast

import pandas as pd
from pyarrow import (
    ArrowInvalid as _ArrowInvalid,  # pyright: ignore[reportUnknownVariableType]
    ArrowIOError as _ArrowIOError,  # pyright: ignore[reportUnknownVariableType]
)

from fleet_compliance.config import CompressionType, StorageConfig

# The pyarrow stubs are incomplete; cast so the except clauses type-check.
ArrowInvalid: type[Exception] = cast(type[Exception], _ArrowInvalid)
ArrowIOError: type[Exception] = cast(type[Exception], _ArrowIOError)


__all__: list[str] = ['ParquetFileHandler']

logger: logging.Logger = logging.getLogger(__name__)


class ParquetFileHandler:
    """
    Handles reading and writing a single Parquet report file.

    Atomic Write Guarantee:
        save() writes to a temporary file in the same directory and then
        renames it over the target. The previous report stays intact until
        the new one is completely written.

    Attributes:
        path: The configured Parquet file path (read-only property).
        exists: Whether the Parquet file currently exists (read-only property).
    """

    def __init__(self, storage_config: StorageConfig) -> None:
        """
        Initialize the handler and create the parent directory.

        Args:
            storage_config: Storage configuration with path and compression.

        Raises:
            OSError: If parent directory cannot be created.
        """
        self._storage_config: StorageConfig = storage_config

        # Fail fast on permission issues rather than at the end of a run
        self._storage_config.parquet_path.parent.mkdir(parents=True, exist_ok=True)

        logger.info(
            'Initialized ParquetFileHandler: path=%r, compression=%r',
            self._storage_config.parquet_path,
            self._storage_config.parquet_compression,
        )

    @property
    def path(self) -> Path:
        """The configured Parquet file path."""
        return self._storage_config.parquet_path

    @property
    def compression(self) -> CompressionType:
        """The configured compression codec."""
        return self._storage_config.parquet_compression

    @property
    def exists(self) -> bool:
        """Whether the Parquet file currently exists on disk."""
        return self._storage_config.parquet_path.exists()

    def load(self) -> pd.DataFrame | None:
        """
        Load the report file into a DataFrame.

        Returns:
            DataFrame with the file contents, or None if the file is missing,
            unreadable, or corrupt.
        """
        file_path: Path = self._storage_config.parquet_path

        if not file_path.exists():
            return None

        try:
            logger.debug('Loading report from %r', file_path)
            dataframe: pd.DataFrame = pd.read_parquet(file_path)
            logger.debug(
                'Loaded %d rows (%d columns) from %r',
                len(dataframe),
                len(dataframe.columns),
                file_path,
            )
            return dataframe

        except (OSError, ArrowInvalid, ArrowIOError) as read_error:
            logger.exception(
                'Failed to read Parquet file %r: %s',
                file_path,
                read_error,
            )
            return None

    def save(self, dataframe: pd.DataFrame) -> None:
        """
        Save a DataFrame to the report file atomically.

        Args:
            dataframe: The DataFrame to persist. Empty DataFrames are allowed
                but trigger a warning log.

        Raises:
            OSError: File system errors (permissions, disk full, etc).
            ArrowInvalid: DataFrame contains types that cannot be serialized.
            ArrowIOError: I/O errors during write.
        """
        if dataframe.empty:
            logger.warning('Saving empty DataFrame to %r', self.path)

        file_path: Path = self._storage_config.parquet_path
        compression: CompressionType = self._storage_config.parquet_compression
        record_count: int = len(dataframe)
        temp_path: Path | None = None

        # Same directory keeps the rename on one filesystem, which makes it atomic
        try:
            with tempfile.NamedTemporaryFile(
                mode='wb',
                suffix='.parquet.tmp',
                dir=file_path.parent,
                delete=False,
            ) as temp_file:
                temp_path = Path(temp_file.name)

            logger.debug(
                'Writing %d rows to temp file %r (compression=%r)',
                record_count,
                temp_path,
                compression,
            )

            dataframe.to_parquet(
                temp_path,
                index=False,
                compression=compression,
            )

            temp_path.replace(file_path)

            logger.info(
                'Saved %d rows (%d columns) to %r',
                record_count,
                len(dataframe.columns),
                file_path,
            )

        except (OSError, ArrowInvalid, ArrowIOError) as write_error:
            logger.exception(
                'Failed to save %d rows to %r: %s',
                record_count,
                file_path,
                write_error,
            )
            if temp_path is not None and temp_path.exists():
                with suppress(OSError):
                    temp_path.unlink()
            raise

    def append(
        self,
        dataframe: pd.DataFrame,
        key_columns: list[str],
    ) -> pd.DataFrame:
        """
        Merge new rows into the existing report and save.

        Rows sharing the same key columns are deduplicated, keeping the new
        row, so re-running a day replaces that day's report for each driver.

        Args:
            dataframe: New report rows.
            key_columns: Columns identifying a report row.

        Returns:
            The combined DataFrame that was written.

        Raises:
            ValueError: If a key column is missing from the new rows.
            OSError: On write failure (see save()).
        """
        missing_keys: set[str] = set(key_columns) - set(dataframe.columns)
        if missing_keys:
            raise ValueError(f'Report rows missing key columns: {sorted(missing_keys)}')

        existing: pd.DataFrame | None = self.load()

        if existing is None or existing.empty:
            combined: pd.DataFrame = dataframe.reset_index(drop=True)
        else:
            combined = pd.concat([existing, dataframe], ignore_index=True)
            before: int = len(combined)
            combined = combined.drop_duplicates(subset=key_columns, keep='last')
            logger.debug(
                'Merged report: %d existing + %d new, %d duplicates replaced',
                len(existing),
                len(dataframe),
                before - len(combined),
            )

        combined = combined.sort_values(key_columns).reset_index(drop=True)
        self.save(combined)
        return combined

    def delete(self) -> bool:
        """
        Delete the report file if it exists.

        Returns:
            True if file was deleted, False if file did not exist.

        Raises:
            OSError: If file exists but cannot be deleted.
        """
        file_path: Path = self._storage_config.parquet_path

        if not file_path.exists():
            logger.debug('Delete requested but file does not exist: %r', file_path)
            return False

        file_path.unlink()
        logger.info('Deleted Parquet file: %r', file_path)
        return True
