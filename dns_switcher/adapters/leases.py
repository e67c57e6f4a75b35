"""Read and mutate DHCP server leases on the router."""

from __future__ import annotations

import logging
from dataclasses import dataclass

from dns_switcher.adapters.channel import CommandChannel, execute, is_absent
from dns_switcher.adapters.ownership import Ownership, classify
from dns_switcher.exceptions import DeviceRejectedError

logger = logging.getLogger(__name__)

_LEASE_PATH = "/ip/dhcp-server/lease"


def _parse_bool(value: str | None) -> bool:
    if value is None:
        return False
    return value.strip().lower() in {"yes", "true", "1", "on"}


def _is_dns_option(name: str) -> bool:
    return "dns" in name.lower()


def merge_dns_option(options: tuple[str, ...], dns_option_name: str) -> tuple[str, ...]:
    """Replace the DNS entry of an option list, keeping every other option."""
    merged = [name for name in options if not _is_dns_option(name)]
    merged.append(dns_option_name)
    return tuple(merged)


@dataclass(frozen=True)
class Lease:
    id: str
    address: str
    mac_address: str | None = None
    dynamic: bool = False
    comment: str = ""
    dhcp_options: tuple[str, ...] = ()

    @classmethod
    def from_record(cls, record: dict[str, str]) -> Lease:
        options = tuple(
            name.strip() for name in record.get("dhcp-option", "").split(",") if name.strip()
        )
        return cls(
            id=record.get(".id", ""),
            address=record.get("address", ""),
            mac_address=record.get("mac-address") or None,
            dynamic=_parse_bool(record.get("dynamic")),
            comment=record.get("comment", ""),
            dhcp_options=options,
        )

    @property
    def dns_option_name(self) -> str | None:
        """The linked option that carries DNS servers, by naming convention."""
        for name in self.dhcp_options:
            if _is_dns_option(name):
                return name
        return None

    def ownership(self, marker: str) -> Ownership:
        return classify(self.comment, marker)


class LeaseRepository:
    """Lease lookups and mutations over a command channel."""

    def __init__(self, channel: CommandChannel):
        self._channel = channel

    async def find_all_by_address(self, address: str) -> list[Lease]:
        """All leases whose address is exactly ``address``, in device order.

        The device-side filter is only a hint: anything it returns that is
        not an exact match is dropped.
        """
        result = await execute(
            self._channel, f"{_LEASE_PATH}/print", {".query": [f"address={address}"]}
        )
        leases = []
        for record in result.replies:
            if record.get("address") != address:
                logger.debug("Ignoring lease %s for query %s", record.get("address"), address)
                continue
            leases.append(Lease.from_record(record))
        return leases

    async def find_by_address(self, address: str) -> Lease | None:
        leases = await self.find_all_by_address(address)
        return leases[0] if leases else None

    async def find_managed_by_address(self, address: str, marker: str) -> Lease | None:
        for lease in await self.find_all_by_address(address):
            if lease.ownership(marker) is Ownership.MANAGED_BY_US:
                return lease
        return None

    async def create(
        self,
        address: str,
        mac_address: str | None,
        dns_option_name: str | None,
        comment: str,
    ) -> str:
        """Add a static lease and return its id."""
        attributes = {"address": address, "comment": comment}
        if mac_address:
            attributes["mac-address"] = mac_address
        if dns_option_name:
            attributes["dhcp-option"] = dns_option_name

        result = await execute(self._channel, f"{_LEASE_PATH}/add", attributes)
        logger.info(
            "Created static lease %s for %s (mac=%s, option=%s)",
            result.ret,
            address,
            mac_address,
            dns_option_name,
        )
        return result.ret or ""

    async def update(
        self,
        lease_id: str,
        dns_option_name: str | None = None,
        comment: str | None = None,
        *,
        current_options: tuple[str, ...] = (),
    ) -> None:
        """Set option linkage and/or comment; fields left as None are untouched.

        The router replaces a lease's whole option list on ``set``, so the
        lease's ``current_options`` are sent back with only the DNS entry
        swapped.
        """
        attributes = {"numbers": lease_id}
        if dns_option_name is not None:
            attributes["dhcp-option"] = ",".join(merge_dns_option(current_options, dns_option_name))
        if comment is not None:
            attributes["comment"] = comment
        if len(attributes) == 1:
            return

        await execute(self._channel, f"{_LEASE_PATH}/set", attributes)
        logger.info("Updated lease %s: %s", lease_id, attributes)

    async def remove(self, lease_id: str) -> None:
        try:
            await execute(self._channel, f"{_LEASE_PATH}/remove", {"numbers": lease_id})
        except DeviceRejectedError as exc:
            if not is_absent(exc):
                raise
            logger.info("Lease %s already absent", lease_id)
            return
        logger.info("Removed lease %s", lease_id)

    async def convert_dynamic_to_static(self, lease_id: str) -> None:
        """Promote a dynamic lease; required before it accepts comment/option edits."""
        await execute(self._channel, f"{_LEASE_PATH}/make-static", {"numbers": lease_id})
        logger.info("Converted lease %s to static", lease_id)
