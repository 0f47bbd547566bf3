# fleet_compliance/models/requests.py
"""
Request specification models for the backend table API.

The BackendClient turns a table name and its filters into a RequestSpec (table
URL, PostgREST-style filter parameters, auth headers) and executes it. The
TrackingRepository above it only knows tables and columns.
"""

from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

__all__: list[str] = ['HTTPMethod', 'RateLimitInfo', 'RequestSpec']


class HTTPMethod(str, Enum):
    """Supported HTTP methods for table requests."""

    GET = 'GET'
    POST = 'POST'


class RequestSpec(BaseModel):
    """
    Complete specification for one HTTP request.

    Attributes:
        url: Complete URL ready for HTTP request.
        method: HTTP method.
        headers: All headers including authentication.
        query_params: Serialized query parameters (all strings). Filters use
            the `column=operator.value` convention, e.g. `driver_id=eq.42`.
        body: JSON body for inserts/updates (None for GET). Inserts send a
            list of row objects.
        timeout: Tuple of (connect_timeout, read_timeout) in seconds.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    url: str
    method: HTTPMethod = HTTPMethod.GET
    headers: dict[str, str] = Field(default_factory=dict)
    query_params: dict[str, str] = Field(default_factory=dict)
    body: list[dict[str, Any]] | dict[str, Any] | None = None
    timeout: tuple[int, int] = Field(
        default=(10, 30),
        description='(connect_timeout, read_timeout) in seconds',
    )


class RateLimitInfo(BaseModel):
    """
    Rate limit metadata extracted from HTTP response headers.

    Attributes:
        retry_after_seconds: Seconds to wait before retrying.
        limit: Maximum requests allowed in the rate limit window.
        remaining: Requests remaining in current window.
        reset_at_unix: Unix timestamp when the rate limit resets.
    """

    model_config = ConfigDict(extra='forbid', frozen=True)

    retry_after_seconds: float = 1.0
    limit: int | None = None
    remaining: int | None = None
    reset_at_unix: int | None = None

    @classmethod
    def from_response_headers(cls, headers: dict[str, str]) -> 'RateLimitInfo':
        """
        Extract rate limit information from HTTP response headers.

        Header lookup is case-insensitive. A missing Retry-After header
        defaults to a 1 second wait.
        """
        normalized_headers: dict[str, str] = {
            key.lower(): value for key, value in headers.items()
        }

        retry_after_raw: str = normalized_headers.get('retry-after', '1')
        limit_raw: str | None = normalized_headers.get('x-ratelimit-limit')
        remaining_raw: str | None = normalized_headers.get('x-ratelimit-remaining')
        reset_raw: str | None = normalized_headers.get('x-ratelimit-reset')

        return cls(
            retry_after_seconds=float(retry_after_raw),
            limit=int(limit_raw) if limit_raw is not None else None,
            remaining=int(remaining_raw) if remaining_raw is not None else None,
            reset_at_unix=int(reset_raw) if reset_raw is not None else None,
        )
