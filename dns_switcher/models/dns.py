"""DNS status and change response models."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel


class DnsStatusResponse(BaseModel):
    client_ip: str
    current_dns: str
    source: Literal["client", "global", "none"]
    status: Literal["DEFAULT", "CUSTOM", "UNMANAGED"]


class DnsChangeResponse(BaseModel):
    client_ip: str
    message: str
    dns: str | None = None


class ServiceInfoResponse(BaseModel):
    service: str
    version: str
    custom_dns: str
    endpoints: dict[str, str]
