"""FastAPI dependency injection via Depends()."""

from __future__ import annotations

from typing import TYPE_CHECKING

from fastapi import Request

from dns_switcher.exceptions import ValidationError

if TYPE_CHECKING:
    from dns_switcher.config import Settings
    from dns_switcher.services.device_session import DeviceSession
    from dns_switcher.services.reconciler import DnsReconciler


def get_settings(request: Request) -> Settings:
    return request.app.state.settings


def get_device_session(request: Request) -> DeviceSession:
    return request.app.state.device_session


def get_reconciler(request: Request) -> DnsReconciler:
    return request.app.state.reconciler


def get_client_ip(request: Request) -> str:
    client_ip = getattr(request.state, "client_ip", "")
    if not client_ip:
        raise ValidationError("Could not determine the client IP address")
    return client_ip
