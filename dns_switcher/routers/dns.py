"""Per-client DNS endpoints: show, switch to custom, revert to default."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Request

from dns_switcher.dependencies import get_client_ip, get_reconciler, get_settings
from dns_switcher.models.dns import DnsChangeResponse, DnsStatusResponse, ServiceInfoResponse

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["dns"])


@router.get("", response_model=ServiceInfoResponse)
async def service_info(request: Request, settings=Depends(get_settings)) -> ServiceInfoResponse:
    return ServiceInfoResponse(
        service="MikroTik DNS Switcher",
        version=request.app.state.version,
        custom_dns=settings.custom_dns,
        endpoints={
            "GET /api/dns": "Show current DNS server",
            "POST /api/dns/custom": f"Switch to custom DNS ({settings.custom_dns})",
            "POST /api/dns/default": "Remove custom DNS (use default from DHCP server)",
        },
    )


@router.get("/dns", response_model=DnsStatusResponse)
async def get_dns(
    client_ip: str = Depends(get_client_ip),
    reconciler=Depends(get_reconciler),
) -> DnsStatusResponse:
    lookup = await reconciler.get_current_dns(client_ip)
    logger.info(
        "DNS for %s: %s (%s, %s)", client_ip, lookup.describe(), lookup.source.value, lookup.status.value
    )
    return DnsStatusResponse(
        client_ip=client_ip,
        current_dns=lookup.describe(),
        source=lookup.source.value,
        status=lookup.status.value,
    )


@router.post("/dns/custom", response_model=DnsChangeResponse)
async def set_custom_dns(
    client_ip: str = Depends(get_client_ip),
    reconciler=Depends(get_reconciler),
    settings=Depends(get_settings),
) -> DnsChangeResponse:
    await reconciler.apply_custom_dns(client_ip, settings.custom_dns)
    return DnsChangeResponse(
        client_ip=client_ip,
        message="DNS changed to custom",
        dns=settings.custom_dns,
    )


@router.post("/dns/default", response_model=DnsChangeResponse)
async def set_default_dns(
    client_ip: str = Depends(get_client_ip),
    reconciler=Depends(get_reconciler),
) -> DnsChangeResponse:
    await reconciler.remove_custom_dns(client_ip)
    return DnsChangeResponse(
        client_ip=client_ip,
        message="Custom DNS removed, using default from DHCP server",
    )
