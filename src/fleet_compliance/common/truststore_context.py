# fleet_compliance/common/truststore_context.py
"""
SSL Context Factory using the System Trust Store.

Builds an SSLContext that verifies certificates against the operating
system's native trust store instead of the certifi bundle. Needed when the
backend is reached through a TLS-inspecting corporate proxy whose root CA is
installed system-wide only.

The `truststore` library is imported lazily, so it is only required when
`BackendConfig.use_truststore` is enabled.
"""

import ssl
from ssl import SSLContext

__all__: list[str] = ['build_truststore_ssl_context']


def build_truststore_ssl_context() -> SSLContext:
    """
    Create an SSLContext using truststore for system certificate validation.

    Returns:
        SSLContext: Client-side TLS context backed by the OS trust store.

    Raises:
        RuntimeError: If truststore is not installed.
    """
    try:
        import truststore  # noqa: PLC0415
    except ImportError as import_error:
        raise RuntimeError(
            'truststore is required when use_truststore=True; '
            'install it with: pip install fleet-compliance[truststore]'
        ) from import_error

    ssl_context: SSLContext = truststore.SSLContext(ssl.PROTOCOL_TLS_CLIENT)
    return ssl_context
