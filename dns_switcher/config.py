"""Application configuration via pydantic-settings."""

from __future__ import annotations

import ipaddress
import logging
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """DNS Switcher configuration.

    Loaded from environment variables (``MIKROTIK_HOST``, ``CUSTOM_DNS``, ...)
    and an optional ``.env`` file. The router credentials have no default, so
    the service refuses to start without them.
    """

    model_config = {"env_file": ".env", "extra": "ignore"}

    # -- HTTP ----------------------------------------------------------------
    host: str = "0.0.0.0"
    port: int = 3000

    # -- Router --------------------------------------------------------------
    mikrotik_host: str = "192.168.88.1"
    mikrotik_port: int | None = None  # 443 with TLS, 80 without
    mikrotik_use_tls: bool = True
    mikrotik_verify_tls: bool = False  # RouterOS ships a self-signed cert
    mikrotik_timeout: float = 10.0
    mikrotik_username: str
    mikrotik_password: str

    # -- DNS switching -------------------------------------------------------
    custom_dns: str = "8.8.8.8"
    app_comment: str = "DNS-Switcher-Managed"
    lease_strategy: Literal["dedicated", "promote"] = "dedicated"

    # -- Client resolution ---------------------------------------------------
    trust_proxy_headers: bool = False
    client_ip_header: str = "X-Real-IP"
    ip_allowlist: str = ""  # comma-separated, empty allows everyone

    # -- Misc ----------------------------------------------------------------
    log_level: str = "INFO"

    def device_base_url(self) -> str:
        """Base URL of the router's REST API."""
        scheme = "https" if self.mikrotik_use_tls else "http"
        port = self.mikrotik_port or (443 if self.mikrotik_use_tls else 80)
        return f"{scheme}://{self.mikrotik_host}:{port}/rest"

    def parse_ip_allowlist(self) -> list[ipaddress.IPv4Network | ipaddress.IPv6Network]:
        """Parse the comma-separated IP allowlist into network objects."""
        networks = []
        for entry in self.ip_allowlist.split(","):
            entry = entry.strip()
            if not entry:
                continue
            try:
                networks.append(ipaddress.ip_network(entry, strict=False))
            except ValueError:
                logger.warning("Invalid network in allowlist: %s", entry)
        return networks

    @field_validator("custom_dns")
    @classmethod
    def _check_custom_dns(cls, v: str) -> str:
        return str(ipaddress.IPv4Address(v.strip()))

    @field_validator("app_comment")
    @classmethod
    def _check_app_comment(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("app_comment must not be empty")
        return v

    @field_validator("log_level")
    @classmethod
    def _normalise_log_level(cls, v: str) -> str:
        return v.upper()
