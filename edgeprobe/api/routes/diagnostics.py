"""Diagnostic routes: pure reflection of request and client metadata.

1. /ping: timestamp + client network metadata
2. /info: fixed client/network field list, IP and user agent
3. /headers: every inbound header
4. /version: build info from configuration
5. /healthz: constant liveness answer
6. /echo: request body and headers, verbatim
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from starlette.responses import Response

from api.dependencies import get_metadata_provider, get_settings
from api.middleware.security import secure_response
from config import Settings
from lib.errors import PayloadTooLarge
from lib.metadata import (
    INFO_FIELDS,
    ClientMetadataProvider,
    client_ip,
    header_map,
    trace_headers,
    utc_timestamp,
)
from lib.payload import MAX_SIZE, read_bounded_body

router = APIRouter()


@router.get("/ping")
async def ping(
    request: Request,
    metadata: ClientMetadataProvider = Depends(get_metadata_provider),
) -> Response:
    return secure_response(
        {
            "timestamp": utc_timestamp(),
            "cf": metadata(request),
            "traceparent": request.headers.get("traceparent"),
        },
        headers=trace_headers(request),
    )


@router.get("/info")
async def info(
    request: Request,
    settings: Settings = Depends(get_settings),
    metadata: ClientMetadataProvider = Depends(get_metadata_provider),
) -> Response:
    meta = metadata(request)
    body = {"ip": client_ip(request, settings.client_ip_header)}
    body.update({name: meta.get(name) for name in INFO_FIELDS})
    body["user_agent"] = request.headers.get("user-agent")
    body["traceparent"] = request.headers.get("traceparent")
    return secure_response(body, headers=trace_headers(request))


@router.get("/headers")
async def headers(request: Request) -> Response:
    return secure_response(
        {"headers": header_map(request), "traceparent": request.headers.get("traceparent")},
        headers=trace_headers(request),
    )


@router.get("/version")
async def version(request: Request, settings: Settings = Depends(get_settings)) -> Response:
    return secure_response(
        {
            "version": settings.version,
            "commit": settings.git_commit,
            "build": settings.build_time,
        },
        headers=trace_headers(request),
    )


@router.get("/healthz")
async def healthz() -> Response:
    return secure_response({"status": "ok"})


@router.post("/echo")
async def echo(request: Request) -> Response:
    """Return the raw body text and inbound headers unchanged."""
    body, _ = await read_bounded_body(request, MAX_SIZE)
    if body is None:
        raise PayloadTooLarge(f"Echo body too large (max {MAX_SIZE} bytes)")
    return secure_response(
        {
            "echoed": body.decode("utf-8", errors="replace"),
            "headers": header_map(request),
            "traceparent": request.headers.get("traceparent"),
        },
        headers=trace_headers(request),
    )
