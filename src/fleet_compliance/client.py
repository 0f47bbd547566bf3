# fleet_compliance/client.py
"""
HTTP client for the hosted backend's REST table API.

Tables are addressed as `{base_url}{rest_path}/{table}`. Reads use
PostgREST-style filters (`column=operator.value`), an `order` parameter and
`limit`/`offset` pagination; writes POST a JSON list of rows. Every request
carries the project key both as `apikey` and as a bearer token.

Retry Behavior:
---------------
The client automatically retries requests on transient failures:
- Rate limits (429): Respects Retry-After header, falls back to exponential backoff
- Server errors (5xx): Exponential backoff
- Timeouts: Exponential backoff
- Connection errors: Exponential backoff

Non-retryable errors (4xx except 429) fail immediately.

SSL/TLS Handling:
-----------------
- Standard verification (verify_ssl=True)
- Disabled verification (verify_ssl=False) for development
- Custom CA bundle (verify_ssl='/path/to/cert.pem') for proxied networks
- Truststore integration (use_truststore=True) for the OS certificate store
"""

import logging
import time
from collections.abc import Iterator, Mapping
from ssl import SSLContext
from types import TracebackType
from typing import Any, Final, Self, cast

import httpx
from tenacity import (
    RetryCallState,
    retry,
    retry_if_exception_type,
    stop_after_attempt,
)

from fleet_compliance.common import build_truststore_ssl_context
from fleet_compliance.config import BackendConfig
from fleet_compliance.models import HTTPMethod, RateLimitInfo, RequestSpec

__all__: list[str] = [
    'APIError',
    'BackendClient',
    'RateLimitError',
    'TransientAPIError',
]

logger: logging.Logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_STATUS_RATE_LIMITED: Final[int] = 429
HTTP_STATUS_SERVER_ERROR_MIN: Final[int] = 500
HTTP_STATUS_SERVER_ERROR_MAX: Final[int] = 599

# Retry configuration
MAX_RETRY_ATTEMPTS: Final[int] = 5
RETRY_BACKOFF_MULTIPLIER: Final[float] = 1.0
RETRY_BACKOFF_MAX_SECONDS: Final[float] = 60.0

PREFER_RETURN_REPRESENTATION: Final[str] = 'return=representation'


# =============================================================================
# Exception Hierarchy
# =============================================================================


class APIError(Exception):
    """
    Base exception for backend API errors.

    Attributes:
        status_code: HTTP status code if available, None for connection errors.
        response_body: Raw response body for debugging, None if unavailable.
    """

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_body: str | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code: int | None = status_code
        self.response_body: str | None = response_body


class TransientAPIError(APIError):
    """
    Raised for transient errors that should be retried.

    This includes timeouts, connection errors, and server errors (5xx).
    """

    pass


class RateLimitError(TransientAPIError):
    """
    Raised when the backend rate limit is exceeded (HTTP 429).

    Attributes:
        rate_limit_info: Parsed rate limit headers including retry_after_seconds.
    """

    def __init__(self, rate_limit_info: RateLimitInfo) -> None:
        super().__init__(
            f'Rate limit exceeded, retry after {rate_limit_info.retry_after_seconds}s',
            status_code=HTTP_STATUS_RATE_LIMITED,
        )
        self.rate_limit_info: RateLimitInfo = rate_limit_info


# =============================================================================
# Custom Wait Strategy for Rate Limits
# =============================================================================


def _wait_for_rate_limit_or_exponential(retry_state: RetryCallState) -> float:
    """
    Wait strategy that respects the Retry-After header for rate limits.

    Args:
        retry_state: Tenacity retry state containing exception info.

    Returns:
        Number of seconds to wait before next retry attempt.
    """
    exception: BaseException | None = (
        retry_state.outcome.exception() if retry_state.outcome else None
    )

    if isinstance(exception, RateLimitError):
        wait_seconds: float = exception.rate_limit_info.retry_after_seconds
        # Small buffer so the retry lands after the window resets
        return wait_seconds + 0.5

    attempt_number: int = retry_state.attempt_number
    exponential_wait: float = RETRY_BACKOFF_MULTIPLIER * (2 ** (attempt_number - 1))
    return min(exponential_wait, RETRY_BACKOFF_MAX_SECONDS)


# =============================================================================
# HTTP Client
# =============================================================================


class BackendClient:
    """
    Client for the backend's table API.

    The client handles:
    - HTTP transport with connection pooling
    - Automatic retries with exponential backoff for transient errors
    - Rate limit handling that respects Retry-After headers
    - Offset pagination of table reads
    - SSL verification (including truststore)

    Thread Safety:
        Designed for single-threaded use. Create one client per thread.

    Example:
        >>> with BackendClient(config.backend) as client:
        ...     for row in client.select('gps_tracking', {'driver_id': 'eq.42'}):
        ...         print(row['timestamp'])
    """

    def __init__(
        self,
        backend_config: BackendConfig,
        pool_connections: int = 5,
        pool_maxsize: int = 10,
        request_delay_seconds: float = 0.0,
    ) -> None:
        """
        Initialize the backend client.

        Args:
            backend_config: Base URL, API key, timeouts and SSL settings.
            pool_connections: Maximum number of keepalive connections.
            pool_maxsize: Maximum total connections allowed in the pool.
            request_delay_seconds: Default delay between paginated requests.

        Raises:
            OSError: If truststore SSLContext cannot be built (when use_truststore=True).
        """
        self._config: BackendConfig = backend_config
        self._request_delay_seconds: float = request_delay_seconds

        ssl_verify: SSLContext | bool | str = self._build_ssl_context()

        connect_timeout: int
        read_timeout: int
        connect_timeout, read_timeout = backend_config.request_timeout
        default_timeout = httpx.Timeout(
            connect=connect_timeout,
            read=read_timeout,
            write=connect_timeout,
            pool=connect_timeout,
        )

        self._http_client: httpx.Client = httpx.Client(
            timeout=default_timeout,
            verify=ssl_verify,
            limits=httpx.Limits(
                max_keepalive_connections=pool_connections,
                max_connections=pool_maxsize,
            ),
        )

        logger.info(
            'Initialized BackendClient: rest_url=%r, pool_size=%d',
            backend_config.rest_url,
            pool_maxsize,
        )

    def _build_ssl_context(self) -> SSLContext | bool | str:
        if self._config.use_truststore:
            logger.debug('Building SSLContext from truststore (system CA store)')
            return build_truststore_ssl_context()

        logger.debug('Using SSL verification setting: %r', self._config.verify_ssl)
        return self._config.verify_ssl

    def _get_effective_delay(self, override: float | None) -> float:
        return self._request_delay_seconds if override is None else override

    # -------------------------------------------------------------------------
    # Context Manager Protocol
    # -------------------------------------------------------------------------

    def close(self) -> None:
        """Close HTTP client and release connection pool resources."""
        self._http_client.close()
        logger.debug('BackendClient closed')

    def __enter__(self) -> Self:
        """Enter context manager, returning self."""
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        """Exit context manager, closing the HTTP client."""
        self.close()

    # -------------------------------------------------------------------------
    # Request Building
    # -------------------------------------------------------------------------

    def table_url(self, table: str) -> str:
        """Full URL of a table endpoint."""
        return f'{self._config.rest_url}/{table}'

    def build_request_spec(
        self,
        table: str,
        method: HTTPMethod = HTTPMethod.GET,
        query_params: Mapping[str, str] | None = None,
        body: list[dict[str, Any]] | dict[str, Any] | None = None,
        prefer: str | None = None,
    ) -> RequestSpec:
        """
        Build the RequestSpec for one table request.

        Args:
            table: Table name, e.g. 'gps_tracking'.
            method: HTTP method.
            query_params: Filters and modifiers, already in `op.value` form.
            body: JSON body for writes.
            prefer: Value of the `Prefer` header, if any.

        Returns:
            RequestSpec with authentication headers applied.
        """
        api_key: str = self._config.api_key.get_secret_value()
        headers: dict[str, str] = {
            'apikey': api_key,
            'Authorization': f'Bearer {api_key}',
            'Accept': 'application/json',
        }
        if body is not None:
            headers['Content-Type'] = 'application/json'
        if prefer is not None:
            headers['Prefer'] = prefer

        return RequestSpec(
            url=self.table_url(table),
            method=method,
            headers=headers,
            query_params=dict(query_params or {}),
            body=body,
            timeout=self._config.request_timeout,
        )

    # -------------------------------------------------------------------------
    # Table Operations
    # -------------------------------------------------------------------------

    def fetch_page(
        self,
        table: str,
        filters: Mapping[str, str] | None = None,
        order: str | None = None,
        columns: str = '*',
        limit: int | None = None,
        offset: int = 0,
    ) -> list[dict[str, Any]]:
        """
        Fetch a single page of rows.

        Args:
            table: Table name.
            filters: Column filters, e.g. {'driver_id': 'eq.42'}.
            order: Order clause, e.g. 'timestamp.asc'.
            columns: Column selection.
            limit: Page size; defaults to the configured page size.
            offset: Rows to skip.

        Returns:
            Rows as dictionaries.

        Raises:
            APIError: For non-retryable API errors (4xx except 429).
            TransientAPIError: After exhausting retries on transient errors.
        """
        query_params: dict[str, str] = {'select': columns}
        query_params.update(filters or {})
        if order is not None:
            query_params['order'] = order
        query_params['limit'] = str(limit or self._config.page_size)
        query_params['offset'] = str(offset)

        request_spec: RequestSpec = self.build_request_spec(
            table, query_params=query_params
        )
        return self._execute_request(request_spec)

    def select(
        self,
        table: str,
        filters: Mapping[str, str] | None = None,
        order: str | None = None,
        columns: str = '*',
        page_size: int | None = None,
        request_delay_seconds: float | None = None,
    ) -> Iterator[dict[str, Any]]:
        """
        Iterate over every row matching the filters, page by page.

        Pagination stops at the first page shorter than the page size.

        Args:
            table: Table name.
            filters: Column filters in `op.value` form.
            order: Order clause. Give one for stable pagination.
            columns: Column selection.
            page_size: Rows per request; defaults to the configured page size.
            request_delay_seconds: Delay between page requests. None uses
                the instance default.

        Yields:
            Rows as dictionaries.

        Raises:
            APIError: For non-retryable API errors.
            TransientAPIError: After exhausting retries on transient errors.
        """
        limit: int = page_size or self._config.page_size
        effective_delay: float = self._get_effective_delay(request_delay_seconds)
        offset: int = 0
        page_count: int = 0

        while True:
            rows: list[dict[str, Any]] = self.fetch_page(
                table, filters, order, columns, limit=limit, offset=offset
            )
            page_count += 1
            offset += len(rows)

            logger.debug(
                'Page %d of %r: %d rows (running total: %d)',
                page_count,
                table,
                len(rows),
                offset,
            )

            yield from rows

            if len(rows) < limit:
                logger.info(
                    'Pagination complete for %r: %d rows across %d pages',
                    table,
                    offset,
                    page_count,
                )
                break

            if effective_delay > 0:
                time.sleep(effective_delay)

    def insert(
        self,
        table: str,
        rows: list[dict[str, Any]],
    ) -> list[dict[str, Any]]:
        """
        Insert rows and return them as stored by the backend.

        Args:
            table: Table name.
            rows: Row objects. An empty list sends no request.

        Returns:
            Inserted rows, including backend-generated columns.

        Raises:
            APIError: For non-retryable API errors.
            TransientAPIError: After exhausting retries on transient errors.
        """
        if not rows:
            return []

        request_spec: RequestSpec = self.build_request_spec(
            table,
            method=HTTPMethod.POST,
            body=rows,
            prefer=PREFER_RETURN_REPRESENTATION,
        )
        inserted: list[dict[str, Any]] = self._execute_request(request_spec)
        logger.info('Inserted %d rows into %r', len(inserted), table)
        return inserted

    # -------------------------------------------------------------------------
    # HTTP Execution Layer
    # -------------------------------------------------------------------------

    def _execute_request(self, request_spec: RequestSpec) -> list[dict[str, Any]]:
        """
        Execute an HTTP request with automatic retry on transient failures.

        Raises:
            APIError: For non-retryable errors (4xx except 429).
            TransientAPIError: After exhausting retries.
            RateLimitError: After exhausting rate limit retries.
        """
        return self._execute_with_retry(request_spec)

    @retry(
        retry=retry_if_exception_type(TransientAPIError),
        wait=_wait_for_rate_limit_or_exponential,
        stop=stop_after_attempt(MAX_RETRY_ATTEMPTS),
        reraise=True,
    )
    def _execute_with_retry(self, request_spec: RequestSpec) -> list[dict[str, Any]]:
        response: httpx.Response = self._send_http_request(request_spec)
        return self._handle_response(response)

    def _send_http_request(self, request_spec: RequestSpec) -> httpx.Response:
        """
        Send the HTTP request, converting transport errors to TransientAPIError.

        Raises:
            TransientAPIError: On timeout or connection errors (retryable).
        """
        timeout = httpx.Timeout(
            connect=request_spec.timeout[0],
            read=request_spec.timeout[1],
            write=request_spec.timeout[0],
            pool=request_spec.timeout[0],
        )

        try:
            return self._http_client.request(
                method=request_spec.method.value,
                url=request_spec.url,
                params=request_spec.query_params,
                headers=request_spec.headers,
                json=request_spec.body,
                timeout=timeout,
            )
        except httpx.TimeoutException as error:
            logger.warning('Request timeout (will retry): %s', request_spec.url)
            raise TransientAPIError(f'Request timeout: {error}') from error
        except httpx.RequestError as error:
            logger.warning(
                'Connection error (will retry): %s - %s', request_spec.url, error
            )
            raise TransientAPIError(f'Connection error: {error}') from error

    def _handle_response(self, response: httpx.Response) -> list[dict[str, Any]]:
        """
        Handle HTTP response, raising appropriate exceptions for errors.

        Table reads return a JSON array; a single object is wrapped in a list
        and an empty body (204 No Content) yields an empty list.

        Raises:
            RateLimitError: On HTTP 429 (retryable).
            TransientAPIError: On 5xx server errors (retryable).
            APIError: On 4xx client errors or malformed responses (not retryable).
        """
        status_code: int = response.status_code

        if status_code == HTTP_STATUS_RATE_LIMITED:
            rate_limit_info: RateLimitInfo = RateLimitInfo.from_response_headers(
                dict(response.headers)
            )
            logger.warning(
                'Rate limited (will retry after %.1fs): remaining=%s',
                rate_limit_info.retry_after_seconds,
                rate_limit_info.remaining,
            )
            raise RateLimitError(rate_limit_info)

        if HTTP_STATUS_SERVER_ERROR_MIN <= status_code <= HTTP_STATUS_SERVER_ERROR_MAX:
            logger.warning(
                'Server error %d (will retry): %s',
                status_code,
                response.text[:200],
            )
            raise TransientAPIError(
                message=f'Server error: HTTP {status_code}',
                status_code=status_code,
                response_body=response.text,
            )

        if not response.is_success:
            logger.error(
                'Client error %d (not retryable): %s',
                status_code,
                response.text[:500],
            )
            raise APIError(
                message=f'Client error: HTTP {status_code}',
                status_code=status_code,
                response_body=response.text,
            )

        if not response.content:
            return []

        try:
            json_body: Any = response.json()
        except ValueError as parse_error:
            raise APIError(
                message=f'Invalid JSON in response: {parse_error}',
                status_code=status_code,
                response_body=response.text[:500],
            ) from parse_error

        if isinstance(json_body, dict):
            json_body = [json_body]

        if not isinstance(json_body, list) or not all(
            isinstance(row, dict) for row in json_body
        ):
            raise APIError(
                message=(
                    f'Expected JSON array of objects in response, got '
                    f'{type(json_body).__name__}. Content: {response.text[:200]}'
                ),
                status_code=status_code,
                response_body=response.text[:500],
            )

        # isinstance checks above guarantee a list of JSON objects
        return cast(list[dict[str, Any]], json_body)
