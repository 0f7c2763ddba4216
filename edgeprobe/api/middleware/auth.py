"""Shared-secret authentication for expensive routes.

Clients send the probe token in `x-api-probe-token`. The value must equal
the configured secret exactly; an unset secret rejects every request.
"""

from __future__ import annotations

import hmac

from starlette.requests import Request

from lib.errors import Unauthorized

PROBE_TOKEN_HEADER = "x-api-probe-token"


def token_matches(provided: str, expected: str) -> bool:
    """Exact comparison in constant time. Empty secret never matches."""
    if not expected:
        return False
    return hmac.compare_digest(provided.encode(), expected.encode())


def require_probe_token(request: Request, secret: str) -> None:
    """Raise Unauthorized unless the request carries the probe token."""
    provided = request.headers.get(PROBE_TOKEN_HEADER, "")
    if not token_matches(provided, secret):
        raise Unauthorized()
