"""Client network metadata and request reflection helpers.

The edge proxy in front of the service annotates each request with the
visitor's location (Cloudflare "visitor location headers") and a `cf-ray`
id whose suffix names the colo that served it. `HeaderMetadataProvider`
turns those headers into the metadata dict the diagnostic routes reflect.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Mapping, Protocol

from starlette.requests import Request

# metadata field → inbound header
LOCATION_HEADERS: dict[str, str] = {
    "country": "cf-ipcountry",
    "city": "cf-ipcity",
    "region": "cf-region",
    "continent": "cf-ipcontinent",
    "postal_code": "cf-postal-code",
    "latitude": "cf-iplatitude",
    "longitude": "cf-iplongitude",
    "timezone": "cf-timezone",
    "asn": "x-client-asn",
}

# Fixed field list reported by /info
INFO_FIELDS = ("asn", "city", "region", "country", "latitude", "longitude", "timezone", "colo")


class ClientMetadataProvider(Protocol):
    def __call__(self, request: Request) -> dict:
        """Network metadata for the request's client; only fields present."""
        ...


class HeaderMetadataProvider:
    """Reads client metadata from trusted edge-proxy headers."""

    def __init__(self, headers: Mapping[str, str] | None = None):
        self.headers = dict(LOCATION_HEADERS if headers is None else headers)

    def __call__(self, request: Request) -> dict:
        meta: dict = {}
        ray = request.headers.get("cf-ray", "")
        if "-" in ray:
            meta["colo"] = ray.rsplit("-", 1)[1]
        for field, header in self.headers.items():
            value = request.headers.get(header)
            if value is None or value == "":
                continue
            if field == "asn":
                value = int(value) if value.isdigit() else value
            meta[field] = value
        return meta


def client_ip(request: Request, header: str) -> str:
    """Trusted client IP from the proxy header, or 'unknown'."""
    return request.headers.get(header) or "unknown"


def header_map(request: Request) -> dict[str, str]:
    """Every inbound header, repeated headers joined with ', '."""
    return {name: ", ".join(request.headers.getlist(name)) for name in request.headers.keys()}


def utc_timestamp() -> str:
    """Current time as ISO-8601 UTC with millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def trace_headers(request: Request) -> dict[str, str]:
    """Echo the traceparent header back when the client sent one."""
    traceparent = request.headers.get("traceparent")
    return {"traceparent": traceparent} if traceparent else {}
