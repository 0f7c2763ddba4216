"""Synthetic payload routes for throughput testing.

1. /speed: download `size` bytes of `pattern` (or just describe them with `meta`)
2. /upload: sink an inbound body and report how much arrived
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from starlette.responses import Response

from api.dependencies import get_random_source
from api.middleware.security import OCTET_STREAM, secure_response
from api.validators.schemas import SpeedRequest
from lib.errors import InvalidPattern, PayloadTooLarge
from lib.metadata import trace_headers, utc_timestamp
from lib.payload import (
    DEFAULT_PATTERN,
    MAX_SIZE,
    PATTERNS,
    RandomSource,
    describe,
    generate_payload,
    parse_size,
    read_bounded_body,
)

router = APIRouter()


@router.get("/speed")
def speed(
    request: Request,
    size: Optional[str] = None,
    pattern: Optional[str] = None,
    meta: Optional[str] = None,
    random_source: RandomSource = Depends(get_random_source),
) -> Response:
    """Serve a synthetic download. Sync so large fills run in the threadpool."""
    try:
        params = SpeedRequest(
            size=parse_size(size),
            pattern=pattern or DEFAULT_PATTERN,
            meta=meta is not None,
        )
    except ValidationError:
        raise InvalidPattern(f"Invalid pattern. Must be one of: {', '.join(PATTERNS)}")

    if params.meta:
        return secure_response(describe(params.size, params.pattern), headers=trace_headers(request))

    body = generate_payload(params.size, params.pattern, random_source)
    return secure_response(
        body,
        headers={
            **trace_headers(request),
            "content-type": OCTET_STREAM,
            "content-length": str(params.size),
        },
    )


@router.post("/upload")
async def upload(request: Request) -> Response:
    """Consume the whole body and report its length."""
    body, received = await read_bounded_body(request, MAX_SIZE)
    if body is None:
        raise PayloadTooLarge(f"Upload too large (max {MAX_SIZE} bytes)")
    return secure_response(
        {
            "received": len(body),
            "timestamp": utc_timestamp(),
            "traceparent": request.headers.get("traceparent"),
        },
        headers={**trace_headers(request), "x-bytes-received": str(received)},
    )
