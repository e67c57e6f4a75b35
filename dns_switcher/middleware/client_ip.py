"""Resolve the calling client's address and enforce the source allowlist."""

from __future__ import annotations

import ipaddress
import logging

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request

from dns_switcher.exceptions import ForbiddenError, error_response

logger = logging.getLogger(__name__)

_SKIP_PATHS = {"/health", "/ready"}


class ClientIPMiddleware(BaseHTTPMiddleware):
    """Store the client address in ``request.state.client_ip``.

    The address is the socket peer, or the configured header (``X-Real-IP``)
    when the service sits behind a trusted reverse proxy. It is the key for
    every DNS operation, so requests whose address cannot be determined or
    is outside the allowlist are rejected here.
    """

    def __init__(
        self,
        app,
        networks: list[ipaddress.IPv4Network | ipaddress.IPv6Network],
        trust_proxy: bool = False,
        header: str = "X-Real-IP",
    ):
        super().__init__(app)
        self._networks = networks
        self._trust_proxy = trust_proxy
        self._header = header

    async def dispatch(self, request: Request, call_next):
        if request.url.path in _SKIP_PATHS:
            return await call_next(request)

        client_ip = self._get_client_ip(request)
        if not self._is_allowed(client_ip):
            logger.info("Rejected request from %r to %s", client_ip, request.url.path)
            # Exception handlers sit inside this middleware, so render directly
            return error_response(ForbiddenError(client_ip))

        request.state.client_ip = client_ip
        return await call_next(request)

    def _get_client_ip(self, request: Request) -> str:
        if self._trust_proxy:
            forwarded = request.headers.get(self._header, "").strip()
            if forwarded:
                return forwarded
        if request.client:
            return request.client.host
        return ""

    def _is_allowed(self, ip_str: str) -> bool:
        """Check if IP is in allowlist. Empty allowlist allows all."""
        if not self._networks:
            return True
        if not ip_str:
            return False
        try:
            addr = ipaddress.ip_address(ip_str)
        except ValueError:
            return False
        return any(addr in net for net in self._networks)
