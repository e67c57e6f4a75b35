"""Health and readiness response models."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel


class HealthResponse(BaseModel):
    status: Literal["ok", "degraded"]
    version: str
    uptime: int
    device: str
    lastDeviceSuccess: datetime | None
    lastDeviceError: str | None = None


class ReadyResponse(BaseModel):
    ready: bool
    identity: str | None = None
    reason: str | None = None
