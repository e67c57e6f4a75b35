"""FastAPI application factory with lifespan context manager."""

from __future__ import annotations

import logging
import time
from contextlib import asynccontextmanager
from importlib.metadata import PackageNotFoundError, version as package_version

from fastapi import FastAPI

from dns_switcher.adapters.channel import CommandChannel
from dns_switcher.config import Settings
from dns_switcher.exceptions import AppError, register_exception_handlers

logger = logging.getLogger(__name__)

_start_time: float = 0.0


def get_uptime() -> int:
    """Return process uptime in seconds."""
    return int(time.monotonic() - _start_time)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan: open the router channel, build the engine."""
    global _start_time
    _start_time = time.monotonic()

    settings: Settings = app.state.settings

    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )

    from dns_switcher.adapters.channel import RouterOSRestChannel, execute
    from dns_switcher.services.device_session import DeviceSession
    from dns_switcher.services.reconciler import DnsReconciler

    channel: CommandChannel | None = app.state.channel
    owned_channel = None
    if channel is None:
        owned_channel = RouterOSRestChannel(
            settings.device_base_url(),
            settings.mikrotik_username,
            settings.mikrotik_password,
            verify=settings.mikrotik_verify_tls,
            timeout=settings.mikrotik_timeout,
        )
        channel = owned_channel

    session = DeviceSession(channel)
    app.state.device_session = session
    app.state.reconciler = DnsReconciler(
        session, settings.app_comment, lease_strategy=settings.lease_strategy
    )

    # Probe the router once; an unreachable router is reported, not fatal
    try:
        async with session.transaction("startup") as tx:
            result = await execute(tx.channel, "/system/identity/print")
        identity = next((r.get("name") for r in result.replies if r.get("name")), "?")
        logger.info("Connected to router %s at %s", identity, settings.mikrotik_host)
    except AppError as exc:
        logger.warning("Router %s not reachable at startup: %s", settings.mikrotik_host, exc.message)

    logger.info(
        "DNS Switcher started on %s:%d (custom DNS %s, marker %r, strategy %s)",
        settings.host,
        settings.port,
        settings.custom_dns,
        settings.app_comment,
        settings.lease_strategy,
    )

    yield

    if owned_channel is not None:
        await owned_channel.close()
    logger.info("DNS Switcher stopped")


def create_app(settings: Settings | None = None, channel: CommandChannel | None = None) -> FastAPI:
    """Create and configure the FastAPI application.

    ``channel`` replaces the REST connection to the router (used by tests).
    """
    if settings is None:
        settings = Settings()

    try:
        app_version = package_version("dns-switcher")
    except PackageNotFoundError:
        app_version = "1.0.0"

    from dns_switcher.models.error import ErrorResponse

    app = FastAPI(
        title="DNS Switcher",
        version=app_version,
        summary="Per-client DNS overrides on a MikroTik DHCP server",
        lifespan=lifespan,
        responses={
            400: {"model": ErrorResponse},
            403: {"model": ErrorResponse},
            409: {"model": ErrorResponse},
            502: {"model": ErrorResponse},
            503: {"model": ErrorResponse},
        },
    )

    app.state.settings = settings
    app.state.version = app_version
    app.state.channel = channel

    register_exception_handlers(app)

    from dns_switcher.middleware.client_ip import ClientIPMiddleware

    app.add_middleware(
        ClientIPMiddleware,
        networks=settings.parse_ip_allowlist(),
        trust_proxy=settings.trust_proxy_headers,
        header=settings.client_ip_header,
    )

    from dns_switcher.routers import dns, health

    app.include_router(health.router)
    app.include_router(dns.router)

    return app
