"""Secure response builder.

Every response the service emits goes through `secure_response()`, which
picks the content type from the body and overlays the fixed security header
set after any caller-supplied headers, so the security headers always win.
"""

from __future__ import annotations

import json
from typing import Any, Mapping

from starlette.datastructures import MutableHeaders
from starlette.responses import Response

SECURITY_HEADERS: dict[str, str] = {
    "Strict-Transport-Security": "max-age=31536000; includeSubDomains; preload",
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "strict-origin-when-cross-origin",
    "X-XSS-Protection": "0",
    "Cache-Control": "no-store, no-cache, must-revalidate, proxy-revalidate",
    "Pragma": "no-cache",
    "Expires": "0",
    "Permissions-Policy": "geolocation=(), microphone=(), camera=()",
}

OCTET_STREAM = "application/octet-stream"
JSON_TYPE = "application/json"
TEXT_TYPE = "text/plain; charset=utf-8"


def apply_security_headers(headers: MutableHeaders) -> MutableHeaders:
    """Overlay the fixed security headers onto `headers` in place."""
    for name, value in SECURITY_HEADERS.items():
        headers[name] = value
    return headers


def secure_response(
    body: Any,
    status_code: int = 200,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """Build a response with strict security headers and the right content type.

    - bytes / bytearray / memoryview are passed through untouched as
      application/octet-stream
    - str is sent as text/plain
    - anything else is JSON-encoded as application/json

    A caller-supplied content-type wins over the default; security headers
    win over everything.
    """
    merged = MutableHeaders()
    for name, value in (headers or {}).items():
        merged[name] = value

    if isinstance(body, (bytes, bytearray, memoryview)):
        content = bytes(body)
        default_type = OCTET_STREAM
    elif isinstance(body, str):
        content = body.encode("utf-8")
        default_type = TEXT_TYPE
    else:
        content = json.dumps(body, ensure_ascii=False).encode("utf-8")
        default_type = JSON_TYPE

    if "content-type" not in merged:
        merged["content-type"] = default_type

    apply_security_headers(merged)
    return Response(content=content, status_code=status_code, headers=dict(merged.items()))


def error_response(
    message: str,
    status_code: int,
    headers: Mapping[str, str] | None = None,
) -> Response:
    """JSON error body `{"error": message}` with the security header set."""
    return secure_response({"error": message}, status_code=status_code, headers=headers)
