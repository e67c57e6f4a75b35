"""Read and mutate DHCP options (DNS server overrides) on the router."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

from dns_switcher.adapters.channel import CommandChannel, execute, is_absent
from dns_switcher.adapters.ownership import Ownership, classify
from dns_switcher.exceptions import ConflictError, DeviceRejectedError

logger = logging.getLogger(__name__)

_OPTION_PATH = "/ip/dhcp-server/option"

DNS_OPTION_CODE = 6

_NAME_UNSAFE_RE = re.compile(r"[^0-9A-Za-z]")


def option_name_for(address: str) -> str:
    """Option name for a client address: ``10.0.0.50`` -> ``dns-10-0-0-50``."""
    return "dns-" + _NAME_UNSAFE_RE.sub("-", address)


def quote_value(server: str) -> str:
    """RouterOS expects string option values in single quotes."""
    return f"'{server}'"


@dataclass(frozen=True)
class DhcpOption:
    id: str
    name: str
    code: int
    value: str
    comment: str = ""

    @classmethod
    def from_record(cls, record: dict[str, str]) -> DhcpOption:
        try:
            code = int(record.get("code", "0"))
        except ValueError:
            code = 0
        return cls(
            id=record.get(".id", ""),
            name=record.get("name", ""),
            code=code,
            value=record.get("value", ""),
            comment=record.get("comment", ""),
        )

    @property
    def server(self) -> str:
        """The value with the device's quoting removed."""
        return self.value.strip().strip("'\"")

    def ownership(self, marker: str) -> Ownership:
        return classify(self.comment, marker)


class OptionRepository:
    """Option lookups and mutations over a command channel."""

    def __init__(self, channel: CommandChannel):
        self._channel = channel

    async def find_by_name(self, name: str) -> DhcpOption | None:
        result = await execute(self._channel, f"{_OPTION_PATH}/print", {".query": [f"name={name}"]})
        for record in result.replies:
            if record.get("name") == name:
                return DhcpOption.from_record(record)
        return None

    async def ensure(self, name: str, code: int, value: str, comment: str) -> None:
        """Create the option, or refresh its value if the name is taken.

        The router has no upsert, so a trapped ``add`` is followed by a lookup
        and a ``set`` on the same name. An option carrying someone else's
        comment is never touched.
        """
        try:
            await execute(
                self._channel,
                f"{_OPTION_PATH}/add",
                {"name": name, "code": str(code), "value": value, "comment": comment},
            )
            logger.info("Created DHCP option %s = %s", name, value)
            return
        except DeviceRejectedError as exc:
            existing = await self.find_by_name(name)
            if existing is None:
                raise
            logger.debug("Option %s exists (%s), updating instead", name, exc.device_message)

        if existing.ownership(comment) is Ownership.MANAGED_BY_OTHER:
            raise ConflictError(
                f"DHCP option '{name}' is managed by '{existing.comment}'",
                {"name": name, "comment": existing.comment},
            )

        attributes = {"numbers": existing.id or name, "value": value}
        if not existing.comment:
            attributes["comment"] = comment
        await execute(self._channel, f"{_OPTION_PATH}/set", attributes)
        logger.info("Updated DHCP option %s = %s", name, value)

    async def remove(self, name: str) -> None:
        existing = await self.find_by_name(name)
        if existing is None:
            logger.info("DHCP option %s already absent", name)
            return
        try:
            await execute(self._channel, f"{_OPTION_PATH}/remove", {"numbers": existing.id or name})
        except DeviceRejectedError as exc:
            if not is_absent(exc):
                raise
            logger.info("DHCP option %s already absent", name)
            return
        logger.info("Removed DHCP option %s", name)
