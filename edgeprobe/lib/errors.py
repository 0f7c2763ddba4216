"""Client-facing error taxonomy.

Each error carries the status code and any extra headers the response must
carry. `api.middleware.error_handler` turns them into JSON bodies through
the secure response builder.
"""

from __future__ import annotations


class ProbeError(Exception):
    """Base class for errors reported to the client as JSON."""

    status_code = 500

    def __init__(self, message: str, headers: dict[str, str] | None = None):
        super().__init__(message)
        self.message = message
        self.headers = headers or {}


class Unauthorized(ProbeError):
    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message, headers={"WWW-Authenticate": "Bearer"})


class RateLimited(ProbeError):
    status_code = 429

    def __init__(self, retry_after: int, message: str = "Rate limit exceeded"):
        super().__init__(message, headers={"Retry-After": str(retry_after)})
        self.retry_after = retry_after


class InvalidSize(ProbeError):
    status_code = 400


class InvalidPattern(ProbeError):
    status_code = 400


class PayloadTooLarge(ProbeError):
    status_code = 413


class StoreUnavailable(ProbeError):
    """Only surfaced when the limiter is configured to fail closed."""

    status_code = 503

    def __init__(self, message: str = "Rate limiter unavailable"):
        super().__init__(message)
