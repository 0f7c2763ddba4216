"""Protection layer: route cost tiers, auth gate, and rate limiting.

Runs before routing. Every path falls into one tier:

- expensive (/speed, /upload, /echo): probe token required, then counted
  unless the service is configured to count free-limited paths only
- free-limited (/ping, /info, /healthz, /headers, /version): counted
- unclassified (anything else): passed straight through

Classification is by exact path and ignores the method, so a wrong token
on `GET /echo` is still a 401.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field

from loguru import logger
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from starlette.types import ASGIApp

from api.middleware.auth import require_probe_token
from api.middleware.rate_limit import RateLimiter
from api.middleware.security import error_response
from config import Settings
from lib.errors import ProbeError, RateLimited, StoreUnavailable
from lib.metadata import client_ip
from lib.sanitize import mask_ip


class RouteClass(enum.Enum):
    EXPENSIVE = "expensive"
    FREE_LIMITED = "free-limited"
    UNCLASSIFIED = "unclassified"


@dataclass(frozen=True)
class RouteTable:
    """Immutable path → tier mapping."""

    expensive: frozenset[str] = field(default_factory=lambda: frozenset({"/speed", "/upload", "/echo"}))
    free_limited: frozenset[str] = field(
        default_factory=lambda: frozenset({"/ping", "/info", "/healthz", "/headers", "/version"})
    )

    def classify(self, path: str) -> RouteClass:
        if path in self.expensive:
            return RouteClass.EXPENSIVE
        if path in self.free_limited:
            return RouteClass.FREE_LIMITED
        return RouteClass.UNCLASSIFIED


DEFAULT_ROUTES = RouteTable()


class ProtectionMiddleware(BaseHTTPMiddleware):
    """Auth gate, then rate limiter, then the route handler."""

    def __init__(
        self,
        app: ASGIApp,
        settings: Settings,
        limiter: RateLimiter,
        routes: RouteTable = DEFAULT_ROUTES,
    ):
        super().__init__(app)
        self.settings = settings
        self.limiter = limiter
        self.routes = routes

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        path = request.url.path
        route_class = self.routes.classify(path)
        if route_class is RouteClass.UNCLASSIFIED:
            return await call_next(request)

        ip = client_ip(request, self.settings.client_ip_header)
        try:
            if route_class is RouteClass.EXPENSIVE:
                require_probe_token(request, self.settings.api_probe_token)
            if route_class is RouteClass.FREE_LIMITED or self.settings.rate_limit_expensive:
                await self._enforce_rate_limit(ip, path)
        except ProbeError as exc:
            logger.info(
                "Rejected {method} {path} from {ip}: {status} {err}",
                method=request.method,
                path=path,
                ip=mask_ip(ip),
                status=exc.status_code,
                err=exc.message,
            )
            return error_response(exc.message, exc.status_code, exc.headers)

        return await call_next(request)

    async def _enforce_rate_limit(self, ip: str, path: str) -> None:
        result = await self.limiter.hit(ip, path)
        if not result.store_available:
            if not self.settings.rate_limit_fail_open:
                raise StoreUnavailable()
            logger.warning("Rate limit store unavailable, letting {path} through", path=path)
            return
        if not result.allowed:
            raise RateLimited(retry_after=self.limiter.window)
