"""Edge probe: FastAPI server entry point.

Serves:
- /ping, /info, /headers, /version, /healthz: free, rate limited
- /speed, /upload, /echo: probe token required, rate limited
- anything else: 404 JSON
"""

from __future__ import annotations

import sys
import warnings

from loguru import logger

from config import Settings, settings as default_settings

# Configure log level once per process
logger.remove()
logger.add(sys.stderr, level=default_settings.log_level)

# Route Python warnings through loguru instead of raw stderr.
# DeprecationWarnings → DEBUG (hidden at INFO), other warnings → WARNING.
def _warning_handler(message, category, filename, lineno, file=None, line=None):
    if issubclass(category, DeprecationWarning):
        logger.debug("{msg}", msg=str(message))
    else:
        logger.warning("{cat}: {msg}", cat=category.__name__, msg=str(message))

warnings.showwarning = _warning_handler

# Sentry error monitoring (before FastAPI import for auto-instrumentation)
if default_settings.sentry_dsn:
    import sentry_sdk

    sentry_sdk.init(
        dsn=default_settings.sentry_dsn,
        traces_sample_rate=0,
        send_default_pii=False,
    )
    logger.info("Sentry initialized")

from fastapi import FastAPI

from api.middleware.error_handler import register_error_handlers
from api.middleware.protection import DEFAULT_ROUTES, ProtectionMiddleware, RouteTable
from api.middleware.rate_limit import RateLimiter
from api.routes.diagnostics import router as diagnostics_router
from api.routes.payload import router as payload_router
from lib.circuit_breaker import CircuitBreaker
from lib.metadata import ClientMetadataProvider, HeaderMetadataProvider
from lib.payload import OsRandomSource, RandomSource
from store import LimitsStore, RateLimitStore


def create_app(
    settings: Settings | None = None,
    store: RateLimitStore | None = None,
    random_source: RandomSource | None = None,
    metadata_provider: ClientMetadataProvider | None = None,
    routes: RouteTable = DEFAULT_ROUTES,
    limiter: RateLimiter | None = None,
) -> FastAPI:
    """Build the application. Collaborators default to the production ones."""
    settings = settings or default_settings
    if limiter is None:
        limiter = RateLimiter(
            store or LimitsStore(settings.rate_limit_storage_uri),
            limit=settings.rate_limit,
            window=settings.rate_limit_window,
            deferred_write=settings.rate_limit_deferred_write,
            breaker=CircuitBreaker(
                "rate-limit-store",
                failure_threshold=settings.rate_limit_store_failures,
                recovery_timeout=settings.rate_limit_store_recovery,
            ),
        )

    # Exact paths only: /ping/ is not /ping
    app = FastAPI(title="Edge Probe", version=settings.version, redirect_slashes=False)

    app.state.settings = settings
    app.state.limiter = limiter
    app.state.random_source = random_source or OsRandomSource()
    app.state.metadata_provider = metadata_provider or HeaderMetadataProvider()

    # -----------------------------------------------------------------------
    # Middleware (auth gate, then rate limiter, before routing)
    # -----------------------------------------------------------------------
    app.add_middleware(ProtectionMiddleware, settings=settings, limiter=limiter, routes=routes)

    # Error handlers
    register_error_handlers(app)

    # -----------------------------------------------------------------------
    # Routes
    # -----------------------------------------------------------------------
    app.include_router(diagnostics_router)
    app.include_router(payload_router)

    # -----------------------------------------------------------------------
    # Startup / Shutdown
    # -----------------------------------------------------------------------
    @app.on_event("startup")
    async def startup():
        logger.info(
            "Edge probe {version} ({commit}) starting on port {port}",
            version=settings.version,
            commit=settings.git_commit,
            port=settings.port,
        )
        if not settings.api_probe_token:
            logger.warning("API_PROBE_TOKEN is not set, expensive routes will reject every request")
        check_health = getattr(limiter.store, "check_health", None)
        if check_health is not None:
            if await check_health():
                logger.info("Rate limit store reachable")
            else:
                logger.warning("Rate limit store unreachable at startup")

    @app.on_event("shutdown")
    async def shutdown():
        await limiter.drain(timeout=5.0)
        close = getattr(limiter.store, "close", None)
        if close is not None:
            await close()

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=default_settings.port, log_level=default_settings.log_level.lower())
