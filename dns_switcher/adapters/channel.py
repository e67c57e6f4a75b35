"""Command channel to the router's REST API.

Every RouterOS console command (``/ip/dhcp-server/lease/print``,
``/ip/dhcp-server/option/add``, ...) is sent as ``POST /rest<command>`` with
its attributes as JSON. Responses are turned into a stream of tagged records:
zero or more ``Reply`` followed by exactly one ``Done``, ``Trap`` or ``Fatal``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import AsyncIterator, Protocol

import httpx

from dns_switcher.exceptions import ChannelFailureError, DeviceRejectedError

logger = logging.getLogger(__name__)

AttributeValue = str | list[str]

# Trap texts RouterOS uses when the targeted item does not exist
_ABSENT_MARKERS = ("no such item", "no such object", "not found")


@dataclass(frozen=True)
class Reply:
    attributes: dict[str, str]


@dataclass(frozen=True)
class Done:
    attributes: dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class Trap:
    message: str


@dataclass(frozen=True)
class Fatal:
    reason: str


Response = Reply | Done | Trap | Fatal


class CommandChannel(Protocol):
    def send(
        self, command: str, attributes: dict[str, AttributeValue] | None = None
    ) -> AsyncIterator[Response]: ...


@dataclass
class CommandResult:
    """Collected outcome of one successful command."""

    replies: list[dict[str, str]] = field(default_factory=list)
    ret: str | None = None


def _as_text(value: object) -> str:
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


def _record(raw: dict) -> dict[str, str]:
    return {str(k): _as_text(v) for k, v in raw.items()}


def _error_text(response: httpx.Response) -> str:
    """Extract RouterOS' ``detail``/``message`` from an error body."""
    try:
        body = response.json()
    except ValueError:
        return response.text.strip() or response.reason_phrase
    if isinstance(body, dict):
        return str(body.get("detail") or body.get("message") or body)
    return str(body)


class RouterOSRestChannel:
    """Command channel over the RouterOS v7 REST API (one shared HTTP client)."""

    def __init__(
        self,
        base_url: str,
        username: str,
        password: str,
        *,
        verify: bool = False,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self._client = httpx.AsyncClient(
            base_url=base_url,
            auth=(username, password),
            verify=verify,
            timeout=timeout,
            transport=transport,
            headers={"Accept": "application/json"},
        )

    async def send(
        self, command: str, attributes: dict[str, AttributeValue] | None = None
    ) -> AsyncIterator[Response]:
        logger.debug("-> %s %s", command, attributes or {})
        try:
            response = await self._client.post(command, json=attributes or {})
        except httpx.HTTPError as exc:
            yield Fatal(f"{type(exc).__name__}: {exc}")
            return

        status = response.status_code
        if status in (401, 403) or status >= 500:
            yield Fatal(f"HTTP {status}: {_error_text(response)}")
            return
        if status >= 400:
            yield Trap(_error_text(response))
            return
        if not response.is_success:
            yield Fatal(f"Unexpected HTTP {status}")
            return

        if not response.content:
            yield Done()
            return
        try:
            payload = response.json()
        except ValueError:
            yield Fatal(f"Undecodable response body for {command}")
            return

        if isinstance(payload, list):
            for item in payload:
                if isinstance(item, dict):
                    yield Reply(_record(item))
            yield Done()
        elif isinstance(payload, dict) and "ret" in payload:
            yield Done({"ret": _as_text(payload["ret"])})
        elif isinstance(payload, dict):
            yield Reply(_record(payload))
            yield Done()
        else:
            yield Done()

    async def close(self) -> None:
        await self._client.aclose()


async def execute(
    channel: CommandChannel,
    command: str,
    attributes: dict[str, AttributeValue] | None = None,
) -> CommandResult:
    """Run one command to completion.

    Raises DeviceRejectedError on a trap and ChannelFailureError on a fatal
    reply or a stream that ends without a completion marker.
    """
    replies: list[dict[str, str]] = []
    async for response in channel.send(command, attributes):
        match response:
            case Reply(attributes=attrs):
                replies.append(attrs)
            case Done(attributes=attrs):
                return CommandResult(replies=replies, ret=attrs.get("ret"))
            case Trap(message=message):
                logger.debug("<- %s trapped: %s", command, message)
                raise DeviceRejectedError(command, message)
            case Fatal(reason=reason):
                logger.warning("<- %s fatal: %s", command, reason)
                raise ChannelFailureError(command, reason)
    raise ChannelFailureError(command, "response ended without a completion marker")


def is_absent(exc: DeviceRejectedError) -> bool:
    """True when a trap only says the targeted item does not exist."""
    text = exc.device_message.lower()
    return any(marker in text for marker in _ABSENT_MARKERS)
