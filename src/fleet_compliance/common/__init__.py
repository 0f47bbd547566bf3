# fleet_compliance/common/__init__.py

from fleet_compliance.common.file_io import ParquetFileHandler
from fleet_compliance.common.logger import setup_logger
from fleet_compliance.common.truststore_context import build_truststore_ssl_context

__all__: list[str] = [
    'ParquetFileHandler',
    'build_truststore_ssl_context',
    'setup_logger',
]
